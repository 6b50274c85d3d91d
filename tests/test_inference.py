"""Tests for the YAMNet classifier adapter."""

from unittest.mock import patch, MagicMock

import numpy as np
import pytest

from taptic.exceptions import ClassifierConfigError
from taptic.engine.inference import YamnetClassifier, load_labels


@pytest.fixture
def labels_csv(tmp_path):
    path = tmp_path / "class_map.csv"
    path.write_text(
        "index,mid,display_name\n"
        "0,/m/09x0r,Speech\n"
        "1,/m/0bt9lr,Dog\n"
        '2,/m/0dgbq,"Smoke detector, smoke alarm"\n'
        "3,/m/03wwcy, Doorbell \n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def model_file(tmp_path):
    path = tmp_path / "yamnet.tflite"
    path.write_bytes(b"fake")
    return path


def fake_interpreter(input_shape, output_shape, output=None):
    interpreter = MagicMock()
    state = {"input": np.array(input_shape), "output": np.array(output_shape)}

    def resize(index, shape):
        state["input"] = np.array(shape)

    interpreter.resize_tensor_input.side_effect = resize
    interpreter.get_input_details.side_effect = lambda: [{"index": 0, "shape": state["input"]}]
    interpreter.get_output_details.side_effect = lambda: [{"index": 1, "shape": state["output"]}]
    interpreter.get_tensor.return_value = output
    return interpreter


class TestLoadLabels:

    def test_reads_display_names(self, labels_csv):
        assert load_labels(labels_csv) == ("Speech", "Dog", "Smoke detector, smoke alarm", "Doorbell")

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            load_labels(tmp_path / "nope.csv")


class TestYamnetClassifier:
    """Test cases for YamnetClassifier."""

    def test_initialization(self):
        classifier = YamnetClassifier()
        assert classifier.interpreter is None
        assert not classifier.is_loaded
        assert classifier.window_samples == 15600

    def test_missing_model_degrades(self, labels_csv, tmp_path):
        classifier = YamnetClassifier(model_path=tmp_path / "missing.tflite", labels_path=labels_csv)
        assert classifier.load_model() is False
        assert not classifier.is_loaded

        scores = classifier.classify(np.zeros(15600, dtype=np.float32))
        np.testing.assert_array_equal(scores, np.zeros(4))

    def test_get_model_info_without_loaded_model(self):
        assert YamnetClassifier().get_model_info() == {"status": "Model not loaded"}

    def test_benchmark_without_loaded_model(self):
        with pytest.raises(RuntimeError, match="Model not loaded"):
            YamnetClassifier().benchmark_latency()

    @patch("taptic.engine.inference.tf.lite.Interpreter")
    def test_dynamic_input_resized_to_window(self, mock_interpreter_cls, labels_csv, model_file):
        interpreter = fake_interpreter([1], [1, 4])
        mock_interpreter_cls.return_value = interpreter

        classifier = YamnetClassifier(model_path=str(model_file), labels_path=labels_csv)
        assert classifier.load_model()
        interpreter.resize_tensor_input.assert_called_once_with(0, [15600])
        interpreter.allocate_tensors.assert_called_once()

    @patch("taptic.engine.inference.tf.lite.Interpreter")
    def test_output_label_mismatch_is_config_error(self, mock_interpreter_cls, labels_csv, model_file):
        mock_interpreter_cls.return_value = fake_interpreter([15600], [1, 521])

        classifier = YamnetClassifier(model_path=str(model_file), labels_path=labels_csv)
        with pytest.raises(ClassifierConfigError, match="521"):
            classifier.load_model()

    @patch("taptic.engine.inference.tf.lite.Interpreter")
    def test_interpreter_error_degrades(self, mock_interpreter_cls, labels_csv, model_file):
        mock_interpreter_cls.side_effect = ValueError("Model provided has model identifier 'fake'")

        classifier = YamnetClassifier(model_path=str(model_file), labels_path=labels_csv)
        assert classifier.load_model() is False
        assert classifier.classify(np.zeros(15600)).shape == (4,)

    @patch("taptic.engine.inference.tf.lite.Interpreter")
    def test_classify_averages_patches(self, mock_interpreter_cls, labels_csv, model_file):
        output = np.array([[0.1, 0.2, 0.9, 0.0], [0.3, 0.0, 0.7, 0.0]], dtype=np.float32)
        interpreter = fake_interpreter([15600], [2, 4], output=output)
        mock_interpreter_cls.return_value = interpreter

        classifier = YamnetClassifier(model_path=str(model_file), labels_path=labels_csv)
        classifier.load_model()

        window = np.linspace(-1, 1, 15600).astype(np.float32)
        before = window.copy()
        scores = classifier.classify(window)

        np.testing.assert_allclose(scores, [0.2, 0.1, 0.8, 0.0], rtol=1e-6)
        np.testing.assert_array_equal(window, before)
        fed = interpreter.set_tensor.call_args[0][1]
        assert fed.shape == (15600,)
        assert fed.dtype == np.float32
        interpreter.invoke.assert_called_once()

    @patch("taptic.engine.inference.tf.lite.Interpreter")
    def test_get_model_info(self, mock_interpreter_cls, labels_csv, model_file):
        mock_interpreter_cls.return_value = fake_interpreter([15600], [1, 4])
        classifier = YamnetClassifier(model_path=str(model_file), labels_path=labels_csv)
        classifier.load_model()

        info = classifier.get_model_info()
        assert info["num_classes"] == 4
        assert info["input_shape"] == [15600]
        assert info["output_shape"] == [1, 4]
