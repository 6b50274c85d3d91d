"""
Audio sources for Taptic
Both sources hand out fixed-size hops of signed 16-bit mono PCM through the
same pull interface: start(), read_hop(timeout), stop()
"""

import logging
import queue

import numpy as np

from .config import SAMPLE_RATE, CHANNELS, HOP_SAMPLES, AUDIO_QUEUE_SIZE, PCM_SCALE
from .exceptions import AudioSourceError

logger = logging.getLogger(__name__)


class MicrophoneSource:
    """
    Live microphone capture through sounddevice.

    The PortAudio callback runs on its own thread and only copies blocks into a
    bounded queue; read_hop() reassembles them into exact hops for the audio
    thread. When the consumer falls behind, the newest block is dropped.
    """

    def __init__(self, sample_rate=SAMPLE_RATE, hop_samples=HOP_SAMPLES, device=None):
        self.sample_rate = sample_rate
        self.channels = CHANNELS
        self.hop_samples = hop_samples
        self.device = device

        self.audio_queue = queue.Queue(maxsize=AUDIO_QUEUE_SIZE)
        self._pending = np.zeros(0, dtype=np.int16)

        self.is_running = False
        self.stream = None
        self.dropped_blocks = 0

    @property
    def exhausted(self):
        return False

    def audio_callback(self, indata, frames, time_info, status):
        if status:
            logger.debug(f"Audio stream status: {status}")

        try:
            self.audio_queue.put_nowait(indata[:, 0].copy())
        except queue.Full:
            self.dropped_blocks += 1

    def start(self):
        """
        Open the input stream.

        Raises:
            AudioSourceError: no input device or access denied. Retrying is up to the caller.
        """
        if self.is_running:
            logger.warning("Audio capture already running")
            return

        # Drop samples left over from a previous run
        self._pending = np.zeros(0, dtype=np.int16)
        self.audio_queue = queue.Queue(maxsize=AUDIO_QUEUE_SIZE)
        self.dropped_blocks = 0

        try:
            import sounddevice as sd
            self.stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="int16",
                blocksize=self.hop_samples,
                device=self.device,
                callback=self.audio_callback,
            )
            self.stream.start()
        except Exception as e:
            self.stream = None
            raise AudioSourceError(f"Could not open microphone: {e}") from e

        self.is_running = True
        logger.info("Audio capture started successfully")

    def read_hop(self, timeout=None):
        """
        Next hop of exactly hop_samples int16 samples, or None if nothing
        arrived within timeout.
        """
        while len(self._pending) < self.hop_samples:
            try:
                block = self.audio_queue.get(timeout=timeout)
            except queue.Empty:
                return None
            self._pending = np.concatenate([self._pending, block])

        hop = self._pending[:self.hop_samples]
        self._pending = self._pending[self.hop_samples:]
        return hop

    def stop(self):
        if not self.is_running:
            return

        self.is_running = False

        if self.stream is not None:
            try:
                self.stream.stop()
                self.stream.close()
            except Exception as e:
                logger.warning(f"Error closing audio stream: {e}")
            self.stream = None

        if self.dropped_blocks:
            logger.warning(f"Dropped {self.dropped_blocks} audio blocks while running")
        logger.info("Audio capture stopped")


class FileSource:
    """
    Offline source: decodes an audio file with librosa (resampled to the
    classifier rate, downmixed to mono) and serves it hop by hop.
    A trailing partial hop is discarded, like a short microphone read.
    """

    def __init__(self, path, sample_rate=SAMPLE_RATE, hop_samples=HOP_SAMPLES):
        self.path = path
        self.sample_rate = sample_rate
        self.hop_samples = hop_samples

        self.samples = None
        self.position = 0
        self.is_running = False

    @property
    def exhausted(self):
        return self.samples is not None and self.position + self.hop_samples > len(self.samples)

    def start(self):
        try:
            import librosa
            audio, _ = librosa.load(self.path, sr=self.sample_rate, mono=True)
        except Exception as e:
            raise AudioSourceError(f"Could not read audio file {self.path}: {e}") from e

        scaled = np.clip(np.round(audio * PCM_SCALE), -PCM_SCALE, PCM_SCALE - 1)
        self.samples = scaled.astype(np.int16)
        self.position = 0
        self.is_running = True
        logger.info(f"Loaded {len(self.samples) / self.sample_rate:.1f} s from {self.path}")

    def read_hop(self, timeout=None):
        if self.samples is None or self.exhausted:
            return None

        hop = self.samples[self.position:self.position + self.hop_samples]
        self.position += self.hop_samples
        return hop

    def stop(self):
        self.is_running = False
