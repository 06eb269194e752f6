"""
conftest.py
~~~~~~~~~~~

Shared fixtures: a small model whose prediction is the index of the
brightest of the first ten pixels, and a demo directory built from it.
"""

import json

import numpy as np
import pytest

from mnist_demo.checkpoint import write_checkpoint
from mnist_demo.samples import SAMPLE_DATA_FILE_NAME

IMAGE_SIZE = 784


def make_image(hot_pixel=None, value=1.0):
    """Blank 784-pixel image, optionally with one lit pixel."""
    image = np.zeros(IMAGE_SIZE, dtype=np.float32)
    if hot_pixel is not None:
        image[hot_pixel] = value
    return image


@pytest.fixture
def pixel_variables():
    """Model that routes pixel c straight through to class c."""
    w1 = np.zeros((IMAGE_SIZE, 10), dtype=np.float32)
    w1[np.arange(10), np.arange(10)] = 1.0
    return {
        'hidden1/weights': w1,
        'hidden1/biases': np.zeros(10, dtype=np.float32),
        'hidden2/weights': np.eye(10, dtype=np.float32),
        'hidden2/biases': np.zeros(10, dtype=np.float32),
        'softmax_linear/weights': np.eye(10, dtype=np.float32),
        'softmax_linear/biases': np.zeros(10, dtype=np.float32),
    }


@pytest.fixture
def random_variables():
    """Randomly initialised 784-16-12-10 model."""
    rng = np.random.default_rng(0)
    return {
        'hidden1/weights': rng.standard_normal((IMAGE_SIZE, 16)).astype(np.float32),
        'hidden1/biases': rng.standard_normal(16).astype(np.float32),
        'hidden2/weights': rng.standard_normal((16, 12)).astype(np.float32),
        'hidden2/biases': rng.standard_normal(12).astype(np.float32),
        'softmax_linear/weights': rng.standard_normal((12, 10)).astype(np.float32),
        'softmax_linear/biases': rng.standard_normal(10).astype(np.float32),
    }


@pytest.fixture
def sample_payload():
    """Four samples; the pixel model gets the first three right."""
    hot_pixels = [3, 7, 1, 5]
    labels = [3, 7, 1, 2]
    return {
        'images': [make_image(p).tolist() for p in hot_pixels],
        'labels': labels,
    }


@pytest.fixture
def demo_dir(tmp_path, pixel_variables, sample_payload):
    """Demo directory with a checkpoint and sample_data.json."""
    path = tmp_path / "demo"
    write_checkpoint(str(path), pixel_variables)
    with open(path / SAMPLE_DATA_FILE_NAME, 'w') as f:
        json.dump(sample_payload, f)
    return str(path)
