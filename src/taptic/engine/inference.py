import csv
import logging
import os
import time
from typing import Protocol

import numpy as np
import tensorflow as tf

from ..config import MODEL_PATH, LABELS_PATH, WINDOW_SAMPLES, HOP_SAMPLES, SAMPLE_RATE
from ..exceptions import ClassifierConfigError

logger = logging.getLogger(__name__)


class ClassifierBackend(Protocol):
    """
    The only capability the rest of the pipeline needs from a classifier.
    """

    labels: tuple

    def classify(self, window) -> np.ndarray:
        ...


def load_labels(path):
    """
    Read a YAMNet class map CSV (index,mid,display_name) into an ordered tuple
    of display names. The header row is skipped.
    """
    labels = []
    with open(path, "r", encoding="utf-8", newline="") as f:
        reader = csv.reader(f)
        next(reader, None)
        for row in reader:
            if len(row) >= 3:
                labels.append(row[2].strip())
    return tuple(labels)


class YamnetClassifier:
    """
    Wraps a YAMNet TFLite model: one analysis window in, one score per class out.

    Loading is split from construction so callers can decide what to do with a
    missing model. A model that fails to load leaves the classifier degraded: it
    keeps returning all-zero scores so the pipeline still produces loudness
    levels but never any detections.
    """

    def __init__(self, model_path=MODEL_PATH, labels_path=LABELS_PATH,
                 window_samples=WINDOW_SAMPLES):
        self.model_path = model_path
        self.labels_path = labels_path
        self.window_samples = window_samples

        self.labels = ()
        self.interpreter = None
        self.input_details = None
        self.output_details = None
        self._warned_degraded = False

    @property
    def is_loaded(self):
        return self.interpreter is not None

    @property
    def num_classes(self):
        return len(self.labels)

    def load_model(self):
        """
        Load labels and the TFLite model.

        Returns True when the model is ready. File or interpreter errors are
        logged and leave the classifier degraded. A mismatch between the
        model output size and the label catalog raises ClassifierConfigError.
        """
        try:
            self.labels = load_labels(self.labels_path)
        except OSError as e:
            logger.error(f"Failed to load labels from {self.labels_path}: {e}")
            self.labels = ()

        try:
            if not os.path.exists(self.model_path):
                raise FileNotFoundError(f"Model file not found: {self.model_path}")

            interpreter = tf.lite.Interpreter(model_path=self.model_path)
            input_details = interpreter.get_input_details()

            # YAMNet ships with a dynamic [-1] waveform input
            input_shape = list(input_details[0]["shape"])
            if input_shape != [self.window_samples] and input_shape != [1, self.window_samples]:
                interpreter.resize_tensor_input(input_details[0]["index"], [self.window_samples])

            interpreter.allocate_tensors()
        except Exception as e:
            logger.error(f"Failed to load model {self.model_path}: {e}")
            self.interpreter = None
            return False

        input_details = interpreter.get_input_details()
        output_details = interpreter.get_output_details()

        output_length = int(output_details[0]["shape"][-1])
        if output_length != len(self.labels):
            raise ClassifierConfigError(
                f"Model outputs {output_length} scores but {self.labels_path} "
                f"lists {len(self.labels)} labels"
            )

        self.interpreter = interpreter
        self.input_details = input_details
        self.output_details = output_details

        logger.info(f"Model loaded with {len(self.labels)} classes")
        logger.info(f"Input shape: {self.input_details[0]['shape']}")
        logger.info(f"Output shape: {self.output_details[0]['shape']}")
        return True

    def classify(self, window):
        """
        Score one analysis window.

        Args:
            window: float32 array of window_samples samples, not modified

        Returns:
            numpy array with one score per label (all zeros when degraded)
        """
        if self.interpreter is None:
            if not self._warned_degraded:
                logger.warning("Classifier not loaded, returning empty scores")
                self._warned_degraded = True
            return np.zeros(len(self.labels), dtype=np.float32)

        input_data = np.array(window, dtype=np.float32)
        input_data = input_data.reshape(self.input_details[0]["shape"])

        self.interpreter.set_tensor(self.input_details[0]["index"], input_data)
        self.interpreter.invoke()
        output_data = self.interpreter.get_tensor(self.output_details[0]["index"])

        # YAMNet emits one row per 0.48 s patch; average them into one vector
        scores = np.asarray(output_data, dtype=np.float32)
        if scores.ndim > 1:
            scores = scores.reshape(-1, scores.shape[-1]).mean(axis=0)
        return scores

    def get_model_info(self):
        if self.interpreter is None:
            return {"status": "Model not loaded"}

        return {
            "model_path": self.model_path,
            "labels_path": self.labels_path,
            "num_classes": len(self.labels),
            "input_shape": self.input_details[0]["shape"].tolist(),
            "output_shape": self.output_details[0]["shape"].tolist(),
        }

    def benchmark_latency(self, num_runs=20):
        """
        Time inference on random windows against the hop interval, which is
        the real-time deadline for each window.
        """
        if self.interpreter is None:
            raise RuntimeError("Model not loaded")

        deadline_ms = HOP_SAMPLES / SAMPLE_RATE * 1000
        window = (np.random.rand(self.window_samples).astype(np.float32) * 2.0) - 1.0

        latencies = []
        for _ in range(num_runs):
            start_time = time.perf_counter()
            self.classify(window)
            latencies.append((time.perf_counter() - start_time) * 1000)

        avg_latency = float(np.mean(latencies))
        max_latency = float(np.max(latencies))

        logger.info(f"Average latency: {avg_latency:.2f} ms")
        logger.info(f"Max latency: {max_latency:.2f} ms")

        return {
            "average_latency_ms": avg_latency,
            "max_latency_ms": max_latency,
            "deadline_ms": deadline_ms,
            "meets_deadline": max_latency < deadline_ms,
        }
