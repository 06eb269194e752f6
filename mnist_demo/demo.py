"""
demo.py
~~~~~~~

Evaluation driver: load the model variables, load the sample set, then run
inference on every sample in order, render each result and compute the
overall accuracy.

Loading failures are logged and re-raised. Nothing is retried.
"""

import os
import logging
from typing import Any, Dict, Iterator

import numpy as np

from mnist_demo.checkpoint import CheckpointLoader, CheckpointError
from mnist_demo.inference import infer
from mnist_demo.rendering import render_result, accuracy_percent, format_accuracy
from mnist_demo.samples import SampleData, SampleDataError, load_samples, SAMPLE_DATA_FILE_NAME

logger = logging.getLogger(__name__)


def load_variables(demo_dir: str) -> Dict[str, np.ndarray]:
    """
    Load all model variables from the checkpoint in ``demo_dir``.

    Raises:
        CheckpointError: If the checkpoint cannot be loaded
    """
    try:
        return CheckpointLoader(demo_dir).get_all_variables()
    except CheckpointError as e:
        logger.exception(f"Error loading checkpoint from {demo_dir}: {e}")
        raise


def load_sample_data(demo_dir: str) -> SampleData:
    """
    Load the evaluation set from ``demo_dir/sample_data.json``.

    Raises:
        OSError: If the file cannot be read
        SampleDataError: If the file contents are invalid
    """
    path = os.path.join(demo_dir, SAMPLE_DATA_FILE_NAME)
    try:
        return load_samples(path)
    except (OSError, SampleDataError) as e:
        logger.exception(f"Error loading sample data from {path}: {e}")
        raise


def iter_results(
    samples: SampleData,
    variables: Dict[str, np.ndarray]
) -> Iterator[Dict[str, Any]]:
    """
    Run inference on each sample in order and yield its rendered result.

    Args:
        samples: The evaluation set
        variables: Model variables

    Yields:
        Result view dicts (see rendering.render_result)
    """
    for i, (image, label) in enumerate(samples):
        predicted = infer(image, variables)
        logger.info(f"Item {i}, predicted label {predicted}.")
        yield render_result(image, label, predicted, index=i)


def summarize(correct: int, total: int) -> Dict[str, Any]:
    """Accuracy fields of an evaluation report."""
    accuracy = accuracy_percent(correct, total)
    return {
        'total': total,
        'correct': correct,
        'accuracy': accuracy,
        'accuracy_text': format_accuracy(accuracy),
    }


def evaluate(samples: SampleData, variables: Dict[str, np.ndarray]) -> Dict[str, Any]:
    """
    Evaluate the model on every sample.

    Returns:
        Report dict with total, correct, accuracy, accuracy_text and results
    """
    logger.info(f"Evaluation set: n={len(samples)}.")

    num_correct = 0
    results = []
    for result in iter_results(samples, variables):
        if result['correct']:
            num_correct += 1
        results.append(result)

    report = summarize(num_correct, len(samples))
    report['results'] = results

    logger.info(
        f"Evaluation finished: {num_correct}/{len(samples)} correct "
        f"({report['accuracy_text']})"
    )
    return report


def run_demo(demo_dir: str) -> Dict[str, Any]:
    """
    Load parameters, then samples, then evaluate.

    Args:
        demo_dir: Directory holding the checkpoint and sample_data.json

    Returns:
        The evaluation report
    """
    variables = load_variables(demo_dir)
    samples = load_sample_data(demo_dir)
    return evaluate(samples, variables)
