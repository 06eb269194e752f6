"""
test_rendering.py
~~~~~~~~~~~~~~~~~

Unit tests for bitmaps, result views and accuracy formatting.
"""

import base64
from io import BytesIO

import numpy as np
import pytest
import matplotlib.pyplot as plt

from mnist_demo.inference import DimensionMismatchError
from mnist_demo.rendering import (
    render_mnist_image,
    encode_png,
    render_result,
    accuracy_percent,
    format_accuracy,
    RESULT_CLASS,
    ERROR_CLASS
)


@pytest.mark.unit
class TestRenderMnistImage:
    """Test the 784-vector to RGBA conversion."""

    def test_all_ones_is_opaque_white(self):
        bitmap = render_mnist_image(np.ones(784))

        assert bitmap.shape == (28, 28, 4)
        assert bitmap.dtype == np.uint8
        assert np.all(bitmap == 255)

    def test_all_zeros_is_opaque_black(self):
        bitmap = render_mnist_image(np.zeros(784))

        assert np.all(bitmap[..., :3] == 0)
        assert np.all(bitmap[..., 3] == 255)

    def test_pixel_order_is_row_major(self):
        values = np.zeros(784)
        values[28 + 2] = 1.0
        bitmap = render_mnist_image(values)

        assert tuple(bitmap[1, 2]) == (255, 255, 255, 255)
        assert tuple(bitmap[2, 1]) == (0, 0, 0, 255)

    def test_rounds_half_up(self):
        # 0.5 * 255 = 127.5 and 0.01 * 255 = 2.55
        values = np.zeros(784)
        values[:2] = [0.5, 0.01]
        bitmap = render_mnist_image(values)

        assert bitmap[0, 0, 0] == 128
        assert bitmap[0, 1, 0] == 3

    def test_out_of_range_values_are_clamped(self):
        values = np.zeros(784)
        values[:2] = [1.5, -0.3]
        bitmap = render_mnist_image(values)

        assert bitmap[0, 0, 0] == 255
        assert bitmap[0, 1, 0] == 0

    def test_wrong_length_raises(self):
        with pytest.raises(DimensionMismatchError):
            render_mnist_image(np.zeros(783))


@pytest.mark.unit
class TestEncodePng:
    """Test PNG encoding."""

    def test_png_decodes_to_same_pixels(self):
        values = np.zeros(784)
        values[:28] = 1.0
        bitmap = render_mnist_image(values)

        png = base64.b64decode(encode_png(bitmap))
        assert png[:8] == b'\x89PNG\r\n\x1a\n'

        decoded = plt.imread(BytesIO(png), format='png')
        assert decoded.shape[:2] == (28, 28)
        assert np.allclose(decoded[0, :, 0], 1.0)
        assert np.allclose(decoded[1:, :, 0], 0.0)


@pytest.mark.unit
class TestRenderResult:
    """Test the per-sample view."""

    def test_correct_prediction_has_no_error_marker(self):
        view = render_result(np.zeros(784), label=4, predicted=4, index=0)

        assert view['classes'] == [RESULT_CLASS]
        assert ERROR_CLASS not in view['classes']
        assert view['correct'] is True
        assert view['actual'] == 4
        assert view['predicted'] == 4
        assert view['index'] == 0

    def test_wrong_prediction_has_error_marker(self):
        view = render_result(np.zeros(784), label=4, predicted=9)

        assert RESULT_CLASS in view['classes']
        assert ERROR_CLASS in view['classes']
        assert view['correct'] is False

    def test_image_data_is_base64_png(self):
        view = render_result(np.ones(784), label=1, predicted=1)
        assert base64.b64decode(view['image_data'])[1:4] == b'PNG'


@pytest.mark.unit
class TestAccuracy:
    """Test accuracy computation and display."""

    def test_three_of_four(self):
        assert accuracy_percent(3, 4) == 75.0
        assert format_accuracy(accuracy_percent(3, 4)) == '75%'

    def test_fraction_is_kept(self):
        assert format_accuracy(accuracy_percent(5, 8)) == '62.5%'
        assert format_accuracy(accuracy_percent(1, 3)) == f'{100 / 3!r}%'

    def test_all_and_none_correct(self):
        assert format_accuracy(accuracy_percent(10, 10)) == '100%'
        assert format_accuracy(accuracy_percent(0, 10)) == '0%'

    def test_empty_set_raises(self):
        with pytest.raises(ValueError):
            accuracy_percent(0, 0)

    def test_correct_above_total_raises(self):
        with pytest.raises(ValueError):
            accuracy_percent(5, 4)
