"""Pytest configuration and fixtures for Taptic tests."""

import pytest
import numpy as np
import sys
import os

# Add src directory to path for testing
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from taptic.app_config import AppConfig


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start=0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


class FakeClassifier:
    """Classifier test double returning preset scores."""

    def __init__(self, labels, scores=None):
        self.labels = tuple(labels)
        self.scores = scores
        self.windows = []

    def classify(self, window):
        self.windows.append(window.copy())
        if self.scores is None:
            return np.zeros(len(self.labels), dtype=np.float32)
        return np.asarray(self.scores, dtype=np.float32)


class FakeSender:
    def __init__(self):
        self.sent = []

    def send(self, label):
        self.sent.append(label)


class ListSource:
    """Audio source serving a fixed list of int16 hops."""

    def __init__(self, hops):
        self.hops = list(hops)
        self.started = False
        self.stopped = False

    @property
    def exhausted(self):
        return not self.hops

    def start(self):
        self.started = True

    def read_hop(self, timeout=None):
        if not self.hops:
            return None
        return self.hops.pop(0)

    def stop(self):
        self.stopped = True


@pytest.fixture
def app_config():
    return AppConfig()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_sender():
    return FakeSender()


@pytest.fixture
def labels():
    return ("Speech", "Dog", "Smoke alarm", "Doorbell", "Music")


@pytest.fixture
def sample_audio_data():
    """Fixture providing one second of a 440 Hz tone as int16 PCM."""
    sample_rate = 16000
    t = np.arange(sample_rate) / sample_rate
    audio = (np.sin(440 * 2 * np.pi * t) * 0.5 * 32767).astype(np.int16)
    return audio, sample_rate
