"""
test_samples.py
~~~~~~~~~~~~~~~

Unit tests for sample data parsing.
"""

import json

import numpy as np
import pytest

from mnist_demo.samples import SampleData, SampleDataError, load_samples


def write_json(path, payload):
    path.write_text(json.dumps(payload))
    return str(path)


@pytest.mark.unit
class TestLoadSamples:
    """Test reading sample_data.json."""

    def test_load_samples(self, tmp_path, sample_payload):
        samples = load_samples(write_json(tmp_path / "s.json", sample_payload))

        assert len(samples) == 4
        assert samples.images.shape == (4, 784)
        assert samples.images.dtype == np.float32
        assert samples.labels.tolist() == [3, 7, 1, 2]

    def test_iteration_keeps_order(self, tmp_path, sample_payload):
        samples = load_samples(write_json(tmp_path / "s.json", sample_payload))

        pairs = list(samples)
        assert [label for _, label in pairs] == [3, 7, 1, 2]
        assert all(isinstance(label, int) for _, label in pairs)
        assert pairs[1][0][7] == 1.0

    def test_samples_are_immutable(self, tmp_path, sample_payload):
        samples = load_samples(write_json(tmp_path / "s.json", sample_payload))
        with pytest.raises(ValueError):
            samples.images[0, 0] = 0.5
        with pytest.raises(ValueError):
            samples.labels[0] = 9

    def test_missing_file_raises_os_error(self, tmp_path):
        with pytest.raises(OSError):
            load_samples(str(tmp_path / "missing.json"))

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "s.json"
        path.write_text('{"images": [')
        with pytest.raises(SampleDataError):
            load_samples(str(path))

    def test_invalid_utf8(self, tmp_path):
        path = tmp_path / "s.json"
        path.write_bytes(b"\xff\xfe{")
        with pytest.raises(SampleDataError):
            load_samples(str(path))


@pytest.mark.unit
class TestSampleValidation:
    """Test rejection of inconsistent payloads."""

    def test_missing_labels(self):
        with pytest.raises(SampleDataError) as exc_info:
            SampleData.from_dict({'images': [[0.0]]})
        assert 'labels' in str(exc_info.value)

    def test_not_an_object(self):
        with pytest.raises(SampleDataError):
            SampleData.from_dict([[0.0]])

    def test_length_mismatch(self):
        with pytest.raises(SampleDataError) as exc_info:
            SampleData.from_dict({'images': [[0.0], [1.0]], 'labels': [1]})
        assert '2 image(s) but 1 label(s)' in str(exc_info.value)

    def test_empty_set(self):
        with pytest.raises(SampleDataError):
            SampleData.from_dict({'images': [], 'labels': []})

    def test_ragged_images(self):
        with pytest.raises(SampleDataError):
            SampleData.from_dict({'images': [[0.0, 1.0], [0.5]], 'labels': [1, 2]})

    def test_label_out_of_range(self):
        with pytest.raises(SampleDataError):
            SampleData.from_dict({'images': [[0.0]], 'labels': [10]})

    def test_fractional_label(self):
        with pytest.raises(SampleDataError):
            SampleData.from_dict({'images': [[0.0]], 'labels': [1.5]})

    def test_sample_data_error_is_value_error(self):
        assert issubclass(SampleDataError, ValueError)

    def test_repr(self):
        samples = SampleData.from_dict({'images': [[0.0, 1.0]], 'labels': [4]})
        assert repr(samples) == "SampleData(n=1, image_size=2)"
