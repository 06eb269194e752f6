"""
samples.py
~~~~~~~~~~

Loading of the fixed evaluation set stored in ``sample_data.json``:

    {"images": number[][], "labels": number[]}

Each image is a flattened 28x28 grayscale digit with values in [0, 1].
"""

import json
import logging
from typing import Any, Dict, Iterator, Tuple

import numpy as np

logger = logging.getLogger(__name__)

SAMPLE_DATA_FILE_NAME = 'sample_data.json'
NUM_CLASSES = 10


class SampleDataError(ValueError):
    """Raised when sample data cannot be parsed into a valid evaluation set."""


class SampleData:
    """
    Immutable evaluation set of (image, label) pairs.

    Attributes:
        images: (N, D) float32 array, one flattened image per row
        labels: (N,) int array of digit labels
    """

    def __init__(self, images: np.ndarray, labels: np.ndarray):
        images = np.array(images, dtype=np.float32)
        labels = np.array(labels, dtype=np.int64)
        images.setflags(write=False)
        labels.setflags(write=False)
        self.images = images
        self.labels = labels

    def __len__(self) -> int:
        return len(self.labels)

    def __iter__(self) -> Iterator[Tuple[np.ndarray, int]]:
        for image, label in zip(self.images, self.labels):
            yield image, int(label)

    def __repr__(self) -> str:
        return f"SampleData(n={len(self)}, image_size={self.images.shape[1]})"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SampleData':
        """
        Build a sample set from a parsed ``sample_data.json`` payload.

        Raises:
            SampleDataError: If keys are missing or the values are inconsistent
        """
        if not isinstance(data, dict):
            raise SampleDataError("Sample data must be a JSON object")

        for key in ('images', 'labels'):
            if key not in data:
                raise SampleDataError(f"Sample data is missing '{key}'")

        images, labels = data['images'], data['labels']
        if not isinstance(images, list) or not isinstance(labels, list):
            raise SampleDataError("'images' and 'labels' must be lists")

        if len(images) != len(labels):
            raise SampleDataError(
                f"Got {len(images)} image(s) but {len(labels)} label(s)"
            )
        if not images:
            raise SampleDataError("Sample data contains no samples")

        # Ragged rows make numpy raise ValueError on a float dtype
        try:
            image_array = np.asarray(images, dtype=np.float32)
        except (TypeError, ValueError) as e:
            raise SampleDataError(f"Images must be equal-length numeric lists: {e}")
        if image_array.ndim != 2:
            raise SampleDataError(
                f"Images must be a list of flat vectors, got shape {image_array.shape}"
            )

        try:
            label_array = np.asarray(labels, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise SampleDataError(f"Labels must be numbers: {e}")
        if label_array.ndim != 1 or not np.all(label_array == np.round(label_array)):
            raise SampleDataError("Labels must be integers")
        if np.any(label_array < 0) or np.any(label_array >= NUM_CLASSES):
            raise SampleDataError(f"Labels must be between 0 and {NUM_CLASSES - 1}")

        return cls(image_array, label_array.astype(np.int64))


def load_samples(path: str) -> SampleData:
    """
    Read and validate a sample data file.

    Args:
        path: Path to sample_data.json

    Returns:
        SampleData: The parsed evaluation set

    Raises:
        OSError: If the file cannot be read
        SampleDataError: If the file contents are invalid
    """
    with open(path, 'r', encoding='utf-8') as f:
        try:
            payload = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise SampleDataError(f"Invalid JSON in {path}: {e}")

    samples = SampleData.from_dict(payload)
    logger.info(f"Loaded {len(samples)} sample(s) from {path}")
    return samples
