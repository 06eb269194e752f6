"""
inference.py
~~~~~~~~~~~~

Forward pass of the 3-layer fully-connected MNIST model:

    hidden1 = relu(x . W1 + b1)
    hidden2 = relu(hidden1 . W2 + b2)
    logits  = hidden2 . W3 + b3

Weight matrices are stored as (inputs, outputs), biases as (outputs,).
"""

from typing import Dict, List, Tuple

import numpy as np

from mnist_demo.checkpoint import CheckpointError

# (weights, biases, activation) for each layer, in order
LAYERS: List[Tuple[str, str, bool]] = [
    ('hidden1/weights', 'hidden1/biases', True),
    ('hidden2/weights', 'hidden2/biases', True),
    ('softmax_linear/weights', 'softmax_linear/biases', False),
]

VARIABLE_NAMES = [name for layer in LAYERS for name in layer[:2]]


class DimensionMismatchError(ValueError):
    """Raised when an input or parameter has a shape the model cannot use."""


def relu(x: np.ndarray) -> np.ndarray:
    """Elementwise max(0, x)."""
    return np.maximum(x, 0)


def argmax(values: np.ndarray) -> int:
    """Index of the largest value. Ties go to the lowest index."""
    return int(np.argmax(values))


def _get(variables: Dict[str, np.ndarray], name: str) -> np.ndarray:
    if name not in variables:
        raise CheckpointError(f"Model variable '{name}' is missing")
    return np.asarray(variables[name])


def logits(x: np.ndarray, variables: Dict[str, np.ndarray]) -> np.ndarray:
    """
    Run the forward pass and return the output layer before argmax.

    Args:
        x: 1-D input vector with one value per input unit
        variables: Mapping of the six model variable names to arrays

    Returns:
        1-D array of class scores

    Raises:
        DimensionMismatchError: If x or any parameter has an incompatible shape
        CheckpointError: If a model variable is missing
    """
    activation = np.asarray(x, dtype=np.float32)
    if activation.ndim != 1:
        raise DimensionMismatchError(
            f"Input must be a 1-D vector, got shape {activation.shape}"
        )

    for weights_name, biases_name, apply_relu in LAYERS:
        weights = _get(variables, weights_name)
        biases = _get(variables, biases_name)

        if weights.ndim != 2:
            raise DimensionMismatchError(
                f"'{weights_name}' must be 2-D, got shape {weights.shape}"
            )
        if activation.shape[0] != weights.shape[0]:
            raise DimensionMismatchError(
                f"'{weights_name}' expects {weights.shape[0]} input(s), "
                f"got a vector of length {activation.shape[0]}"
            )
        if biases.shape != (weights.shape[1],):
            raise DimensionMismatchError(
                f"'{biases_name}' must have shape ({weights.shape[1]},), "
                f"got {biases.shape}"
            )

        activation = activation @ weights + biases
        if apply_relu:
            activation = relu(activation)

    return activation


def infer(x: np.ndarray, variables: Dict[str, np.ndarray]) -> int:
    """
    Predict the digit class for a single flattened image.

    Args:
        x: 1-D input vector (784 values for MNIST)
        variables: Mapping of the six model variable names to arrays

    Returns:
        int: Predicted class index
    """
    return argmax(logits(x, variables))
