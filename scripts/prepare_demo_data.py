#!/usr/bin/env python3
"""
Build a demo directory from NPZ files.

This script writes the checkpoint (manifest.json plus one file per variable)
and sample_data.json that the MNIST inference demo reads.

Usage:
    python scripts/prepare_demo_data.py WEIGHTS_NPZ MNIST_NPZ [OUTPUT_DIR] [NUM_SAMPLES]

WEIGHTS_NPZ must contain W1, b1, W2, b2, W3, b3 with weights stored as
(inputs, outputs). MNIST_NPZ must contain test_images and test_labels.

The script will:
1. Load the weights and write them as a checkpoint
2. Take the first NUM_SAMPLES test images (default 50) as the sample set
3. Verify that the written checkpoint reads back identically
"""

import os
import sys
import json
from typing import Dict, Tuple

import numpy as np

from mnist_demo.checkpoint import CheckpointLoader, write_checkpoint
from mnist_demo.samples import SAMPLE_DATA_FILE_NAME

# NPZ key -> checkpoint variable name
WEIGHT_KEYS = {
    'W1': 'hidden1/weights',
    'b1': 'hidden1/biases',
    'W2': 'hidden2/weights',
    'b2': 'hidden2/biases',
    'W3': 'softmax_linear/weights',
    'b3': 'softmax_linear/biases',
}


def load_weights(filepath: str) -> Dict[str, np.ndarray]:
    """
    Load model weights from an NPZ file.

    Parameters:
    -----------
    filepath : str
        Path to the weights .npz file

    Returns:
    --------
    dict
        Mapping of checkpoint variable name to array
    """
    print(f"📂 Loading weights from: {filepath}")

    with np.load(filepath) as data:
        missing = [key for key in WEIGHT_KEYS if key not in data]
        if missing:
            raise KeyError(f"Weights file is missing: {', '.join(missing)}")
        variables = {
            var_name: np.asarray(data[key], dtype=np.float32)
            for key, var_name in WEIGHT_KEYS.items()
        }

    # Biases may be saved as (n, 1) columns
    for key, var_name in WEIGHT_KEYS.items():
        if key.startswith('b'):
            variables[var_name] = variables[var_name].ravel()

    for var_name, value in variables.items():
        print(f"   - {var_name}: {list(value.shape)}")
    return variables


def load_test_samples(filepath: str, num_samples: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Load the first num_samples MNIST test images and labels.

    Parameters:
    -----------
    filepath : str
        Path to the mnist .npz file
    num_samples : int
        Number of samples to keep

    Returns:
    --------
    tuple
        (images, labels)
    """
    print(f"\n📂 Loading test samples from: {filepath}")

    with np.load(filepath) as data:
        images = np.asarray(data['test_images'][:num_samples], dtype=np.float32)
        labels = np.asarray(data['test_labels'][:num_samples], dtype=np.int64)

    images = images.reshape(len(images), -1)
    if images.max() > 1.0:
        images = images / 255.0

    print(f"✅ Kept {len(images)} sample(s)")
    return images, labels


def save_sample_data(images: np.ndarray, labels: np.ndarray, filepath: str) -> None:
    """Write images and labels as sample_data.json."""
    print(f"\n💾 Writing sample data: {filepath}")

    payload = {
        'images': [[round(float(v), 4) for v in image] for image in images],
        'labels': [int(label) for label in labels],
    }
    with open(filepath, 'w', encoding='utf-8') as f:
        json.dump(payload, f)

    size_kb = os.path.getsize(filepath) / 1024
    print(f"✅ Saved successfully (size: {size_kb:.1f} KB)")


def verify_checkpoint(output_dir: str, variables: Dict[str, np.ndarray]) -> bool:
    """Check that the checkpoint reads back the same values."""
    print(f"\n🔍 Verifying checkpoint...")

    loaded = CheckpointLoader(output_dir).get_all_variables()
    for var_name, value in variables.items():
        assert np.array_equal(loaded[var_name], value), \
            f"{var_name} doesn't match!"

    print("✅ Verification passed! Checkpoint is identical.")
    return True


def main():
    """Main preparation function."""
    print("=" * 60)
    print("MNIST Demo Data Builder")
    print("NPZ → checkpoint + sample_data.json")
    print("=" * 60)

    if len(sys.argv) < 3:
        print(__doc__)
        sys.exit(1)

    weights_path = sys.argv[1]
    mnist_path = sys.argv[2]
    output_dir = sys.argv[3] if len(sys.argv) > 3 else 'demo_data'
    num_samples = int(sys.argv[4]) if len(sys.argv) > 4 else 50

    for path in (weights_path, mnist_path):
        if not os.path.exists(path):
            print(f"❌ Error: File not found: {path}")
            sys.exit(1)

    try:
        variables = load_weights(weights_path)
        write_checkpoint(output_dir, variables)
        print(f"\n💾 Checkpoint written to: {output_dir}")

        images, labels = load_test_samples(mnist_path, num_samples)
        save_sample_data(images, labels, os.path.join(output_dir, SAMPLE_DATA_FILE_NAME))

        verify_checkpoint(output_dir, variables)

        print("\n" + "=" * 60)
        print("✅ DEMO DATA READY!")
        print("=" * 60)
        print(f"\n📝 Next steps:")
        print(f"   MNIST_DEMO_DIR={output_dir} python -m mnist_demo.api_server")

    except Exception as e:
        print(f"\n❌ Error while preparing demo data: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)


if __name__ == '__main__':
    main()
