"""
checkpoint.py
~~~~~~~~~~~~~

Reader and writer for checkpoint directories.

A checkpoint directory holds a ``manifest.json`` describing every variable
and one raw little-endian data file per variable:

    {
        "hidden1/weights": {"filename": "hidden1_weights", "shape": [784, 128]},
        "hidden1/biases": {
            "filename": "hidden1_biases",
            "shape": [128],
            "quantization": {"min": -0.5, "scale": 0.004, "dtype": "uint8"}
        }
    }

Unquantized files contain float32 values. Quantized files contain uint8 or
uint16 values that are restored as ``value * scale + min``.
"""

import os
import json
import logging
from typing import Dict, Any, Optional

import numpy as np

# Configure module logger
logger = logging.getLogger(__name__)

MANIFEST_FILE_NAME = 'manifest.json'

QUANTIZED_DTYPES = {
    'uint8': np.dtype('<u1'),
    'uint16': np.dtype('<u2'),
}


class CheckpointError(Exception):
    """Raised when a checkpoint directory or one of its variables is unusable."""


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_manifest_entry(var_name: str, entry: Any) -> None:
    """
    Validate one manifest entry.

    Raises:
        CheckpointError: If the filename, shape or quantization is malformed
    """
    if not isinstance(entry, dict) or 'filename' not in entry or 'shape' not in entry:
        raise CheckpointError(
            f"Manifest entry for '{var_name}' needs 'filename' and 'shape'"
        )

    if not isinstance(entry['filename'], str) or not entry['filename']:
        raise CheckpointError(f"Filename for '{var_name}' must be a non-empty string")

    shape = entry['shape']
    if not isinstance(shape, list) or not all(
        isinstance(dim, int) and not isinstance(dim, bool) and dim >= 0
        for dim in shape
    ):
        raise CheckpointError(
            f"Shape for '{var_name}' must be a list of non-negative integers, got {shape!r}"
        )

    quantization = entry.get('quantization')
    if quantization is None:
        return
    if not isinstance(quantization, dict):
        raise CheckpointError(f"Quantization for '{var_name}' must be an object")
    if quantization.get('dtype') not in QUANTIZED_DTYPES:
        raise CheckpointError(
            f"Unsupported quantization dtype '{quantization.get('dtype')}' for '{var_name}'"
        )
    for key in ('min', 'scale'):
        if not _is_number(quantization.get(key)):
            raise CheckpointError(
                f"Quantization for '{var_name}' needs a numeric '{key}'"
            )


class CheckpointLoader:
    """
    Loads named variables from a checkpoint directory.

    The manifest is read on first use. Variables are cached once loaded and
    returned as read-only float32 arrays.
    """

    def __init__(self, path: str):
        """
        Initialize the loader.

        Args:
            path: Directory containing manifest.json and the variable files
        """
        self.path = path
        self._manifest: Optional[Dict[str, Dict[str, Any]]] = None
        self._variables: Dict[str, np.ndarray] = {}

    def get_manifest(self) -> Dict[str, Dict[str, Any]]:
        """
        Read and cache the checkpoint manifest.

        Returns:
            Mapping of variable name to its manifest entry

        Raises:
            CheckpointError: If the manifest is missing or malformed
        """
        if self._manifest is not None:
            return self._manifest

        manifest_path = os.path.join(self.path, MANIFEST_FILE_NAME)
        try:
            with open(manifest_path, 'r', encoding='utf-8') as f:
                manifest = json.load(f)
        except FileNotFoundError:
            raise CheckpointError(f"Checkpoint manifest not found: {manifest_path}")
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CheckpointError(f"Invalid checkpoint manifest {manifest_path}: {e}")

        if not isinstance(manifest, dict):
            raise CheckpointError(
                f"Checkpoint manifest must be a JSON object, got {type(manifest).__name__}"
            )

        for var_name, entry in manifest.items():
            _check_manifest_entry(var_name, entry)

        self._manifest = manifest
        logger.debug(f"Read manifest with {len(manifest)} variable(s) from {self.path}")
        return manifest

    def get_variable(self, var_name: str) -> np.ndarray:
        """
        Load a single variable.

        Args:
            var_name: Name of the variable as listed in the manifest

        Returns:
            Read-only float32 array with the manifest shape

        Raises:
            CheckpointError: If the variable is unknown or its data is invalid
        """
        if var_name in self._variables:
            return self._variables[var_name]

        manifest = self.get_manifest()
        if var_name not in manifest:
            raise CheckpointError(f"Variable '{var_name}' not found in checkpoint manifest")

        # Entries were validated by get_manifest
        entry = manifest[var_name]
        shape = tuple(entry['shape'])
        data_path = os.path.join(self.path, entry['filename'])
        quantization = entry.get('quantization')

        if quantization is None:
            dtype = np.dtype('<f4')
        else:
            dtype = QUANTIZED_DTYPES[quantization['dtype']]

        try:
            raw = np.fromfile(data_path, dtype=dtype)
        except (FileNotFoundError, OSError) as e:
            raise CheckpointError(f"Could not read data for '{var_name}': {e}")

        expected = int(np.prod(shape))
        if raw.size != expected:
            raise CheckpointError(
                f"Variable '{var_name}' has {raw.size} value(s), "
                f"expected {expected} for shape {list(shape)}"
            )

        if quantization is None:
            values = raw.astype(np.float32)
        else:
            scale = float(quantization['scale'])
            minimum = float(quantization['min'])
            values = (raw.astype(np.float32) * scale + minimum).astype(np.float32)

        values = values.reshape(shape)
        values.setflags(write=False)
        self._variables[var_name] = values
        return values

    def get_all_variables(self) -> Dict[str, np.ndarray]:
        """
        Load every variable listed in the manifest.

        Returns:
            Mapping of variable name to read-only float32 array
        """
        variables = {
            var_name: self.get_variable(var_name)
            for var_name in self.get_manifest()
        }
        logger.info(f"Loaded {len(variables)} variable(s) from checkpoint {self.path}")
        return variables


def _file_name_for(var_name: str) -> str:
    """Map a variable name such as 'hidden1/weights' to a flat file name."""
    return var_name.replace('/', '_')


def write_checkpoint(
    path: str,
    variables: Dict[str, np.ndarray],
    quantize: Optional[str] = None
) -> Dict[str, Dict[str, Any]]:
    """
    Write variables as a checkpoint directory.

    Args:
        path: Output directory (created if missing)
        variables: Mapping of variable name to array
        quantize: Optional 'uint8' or 'uint16' to store quantized values

    Returns:
        The manifest that was written

    Raises:
        ValueError: If the quantization dtype is unsupported
    """
    if quantize is not None and quantize not in QUANTIZED_DTYPES:
        raise ValueError(f"Unsupported quantization dtype: {quantize}")

    if not os.path.exists(path):
        os.makedirs(path)

    manifest: Dict[str, Dict[str, Any]] = {}
    for var_name, value in variables.items():
        array = np.asarray(value, dtype=np.float32)
        entry: Dict[str, Any] = {
            'filename': _file_name_for(var_name),
            'shape': list(array.shape),
        }
        data_path = os.path.join(path, entry['filename'])

        if quantize is None:
            array.astype('<f4').tofile(data_path)
        else:
            dtype = QUANTIZED_DTYPES[quantize]
            minimum = float(array.min()) if array.size else 0.0
            value_range = float(array.max()) - minimum if array.size else 0.0
            scale = value_range / np.iinfo(dtype).max if value_range > 0 else 1.0
            quantized = np.round((array - minimum) / scale).astype(dtype)
            quantized.tofile(data_path)
            entry['quantization'] = {'min': minimum, 'scale': scale, 'dtype': quantize}

        manifest[var_name] = entry

    with open(os.path.join(path, MANIFEST_FILE_NAME), 'w', encoding='utf-8') as f:
        json.dump(manifest, f, indent=2)

    logger.info(f"Wrote {len(manifest)} variable(s) to checkpoint {path}")
    return manifest
