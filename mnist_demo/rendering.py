"""
rendering.py
~~~~~~~~~~~~

Presentation helpers: turn a flattened digit into a 28x28 RGBA bitmap and a
PNG, build the per-sample result view, and format the accuracy figure.
"""

import base64
from io import BytesIO
from typing import Any, Dict, Optional, Union

import numpy as np

# Use non-GUI backend for matplotlib (required for server environments)
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

from mnist_demo.inference import DimensionMismatchError

IMAGE_WIDTH = 28
IMAGE_HEIGHT = 28

RESULT_CLASS = 'result'
ERROR_CLASS = 'error'


def render_mnist_image(array: np.ndarray) -> np.ndarray:
    """
    Convert a flattened grayscale digit into an opaque RGBA bitmap.

    Args:
        array: 784 values, nominally in [0, 1]

    Returns:
        (28, 28, 4) uint8 array; R, G and B hold the gray level, alpha is 255

    Raises:
        DimensionMismatchError: If the input does not have 784 values
    """
    values = np.asarray(array, dtype=np.float64).ravel()
    expected = IMAGE_WIDTH * IMAGE_HEIGHT
    if values.size != expected:
        raise DimensionMismatchError(
            f"Image must have {expected} values, got {values.size}"
        )

    # Round half up and clamp, like Math.round into a Uint8ClampedArray
    gray = np.clip(np.floor(values * 255 + 0.5), 0, 255).astype(np.uint8)

    bitmap = np.empty((IMAGE_HEIGHT, IMAGE_WIDTH, 4), dtype=np.uint8)
    bitmap[..., :3] = gray.reshape(IMAGE_HEIGHT, IMAGE_WIDTH, 1)
    bitmap[..., 3] = 255
    return bitmap


def encode_png(bitmap: np.ndarray) -> str:
    """
    Encode an RGBA bitmap as a base64 PNG string.

    Args:
        bitmap: (height, width, 4) uint8 array

    Returns:
        Base64-encoded PNG image string
    """
    # Save image to a bytes buffer instead of a file
    buffer = BytesIO()
    plt.imsave(buffer, bitmap, format='png')
    buffer.seek(0)
    return base64.b64encode(buffer.getvalue()).decode('utf-8')


def is_error(label: int, predicted: int) -> bool:
    """True when the prediction should be marked as wrong."""
    return int(label) != int(predicted)


def render_result(
    image: np.ndarray,
    label: int,
    predicted: int,
    index: Optional[int] = None
) -> Dict[str, Any]:
    """
    Build the view of a single evaluated sample.

    Args:
        image: 784-element array representing the 28x28 digit image
        label: The correct digit (0-9)
        predicted: The digit the network predicted (0-9)
        index: Position of the sample in the evaluation set

    Returns:
        Dict with the PNG image, both labels and the CSS classes to apply
    """
    classes = [RESULT_CLASS]
    if is_error(label, predicted):
        classes.append(ERROR_CLASS)

    return {
        'index': index,
        'actual': int(label),
        'predicted': int(predicted),
        'correct': not is_error(label, predicted),
        'classes': classes,
        'image_data': encode_png(render_mnist_image(image)),
    }


def accuracy_percent(correct: int, total: int) -> float:
    """Return 100 * correct / total."""
    if total <= 0:
        raise ValueError("Accuracy is undefined for an empty evaluation set")
    if not 0 <= correct <= total:
        raise ValueError(f"Correct count {correct} is outside 0..{total}")
    return correct * 100 / total


def format_accuracy(accuracy: Union[int, float]) -> str:
    """Format an accuracy percentage for display, e.g. '75%' or '62.5%'."""
    value = float(accuracy)
    if value.is_integer():
        return f"{int(value)}%"
    return f"{value!r}%"
