"""
Taptic classification service
Orchestrates audio capture, framing, classification, the decision engine,
peer relay and notification delivery
"""

import logging
import queue
import threading
import time

from .config import (
    WINDOW_SAMPLES, HOP_SAMPLES, BROADCAST_PORT, JOIN_TIMEOUT_S,
    READ_TIMEOUT_S, FRAME_QUEUE_SIZE
)
from .decision_engine import DecisionEngine
from .features.frame_assembler import FrameAssembler, compute_level, pcm16_to_float
from .network.broadcast_listener import BroadcastListener
from .network.broadcast_sender import BroadcastSender
from .network.message import get_device_name
from .notifications import NotificationManager

logger = logging.getLogger(__name__)


class TapticService:
    """
    Runs the audio thread and the relay listener thread, both feeding one
    DecisionEngine. Notifications are delivered by a separate notifier
    thread reading the engine's notification queue.
    """

    def __init__(self, app_config, classifier, source, history=None, device_name=None,
                 enable_relay=True, port=BROADCAST_PORT, play_audio=True, log_file=None,
                 window_samples=WINDOW_SAMPLES, hop_samples=HOP_SAMPLES):
        self.app_config = app_config
        self.classifier = classifier
        self.source = source
        self.device_name = device_name or get_device_name()

        self.frame_assembler = FrameAssembler(window_samples, hop_samples)

        self.notification_queue = queue.Queue()
        self.frame_queue = queue.Queue(maxsize=FRAME_QUEUE_SIZE)

        self.broadcast_sender = BroadcastSender(self.device_name, port=port) if enable_relay else None
        self.engine = DecisionEngine(
            app_config,
            broadcast_sender=self.broadcast_sender,
            notification_queue=self.notification_queue,
            frame_queue=self.frame_queue,
        )
        self.broadcast_listener = BroadcastListener(
            self.engine.on_remote_event, self.device_name, port=port
        ) if enable_relay else None

        notifier_kwargs = {"history": history, "play_audio": play_audio}
        if log_file is not None:
            notifier_kwargs["log_file"] = log_file
        self.notifier = NotificationManager(app_config, self.notification_queue, **notifier_kwargs)

        # Monitoring
        self.windows_processed = 0
        self.last_level = 0.0
        self.last_results = []
        self.last_inference_ms = 0.0

        self.is_running = False
        self.audio_thread = None

    def start(self):
        """
        Start classification.

        Raises:
            ClassifierConfigError: model and label catalog disagree
            AudioSourceError: the audio source could not be opened
        """
        if self.is_running:
            return

        load_model = getattr(self.classifier, "load_model", None)
        if load_model is not None and not getattr(self.classifier, "is_loaded", False):
            if not load_model():
                logger.warning("Running without a classifier model; only levels will be reported")

        self.source.start()

        self.notifier.start()
        if self.broadcast_listener is not None:
            self.broadcast_listener.start()

        self.frame_assembler.reset()
        self.is_running = True
        self.audio_thread = threading.Thread(
            target=self._audio_loop, name="taptic-audio", daemon=True
        )
        self.audio_thread.start()
        logger.info(f"Taptic listening as '{self.device_name}'")

    def stop(self):
        if not self.is_running:
            return

        self.is_running = False
        self.source.stop()

        if self.audio_thread and self.audio_thread.is_alive() \
                and self.audio_thread is not threading.current_thread():
            self.audio_thread.join(timeout=JOIN_TIMEOUT_S)
        self.audio_thread = None

        if self.broadcast_listener is not None:
            self.broadcast_listener.stop()
        self.notifier.stop()
        logger.info("Taptic stopped")

    def wait(self, timeout=None):
        """
        Block until the audio thread finishes (file sources end on their own).
        """
        thread = self.audio_thread
        if thread is not None:
            thread.join(timeout)

    def process_hop(self, hop):
        """
        Push one int16 hop through framing, classification and the engine.

        Returns:
            (results, level) once a full window is available, otherwise None
        """
        window = self.frame_assembler.push(pcm16_to_float(hop))
        if window is None:
            return None

        level = compute_level(window)

        start_time = time.perf_counter()
        scores = self.classifier.classify(window)
        self.last_inference_ms = (time.perf_counter() - start_time) * 1000

        results = self.engine.on_local_frame(scores, self.classifier.labels, level)

        self.windows_processed += 1
        self.last_level = level
        self.last_results = results
        return results, level

    def _audio_loop(self):
        while self.is_running:
            hop = self.source.read_hop(timeout=READ_TIMEOUT_S)
            if not self.is_running:
                break

            if hop is None:
                if self.source.exhausted:
                    logger.info("Audio source exhausted")
                    break
                continue

            try:
                self.process_hop(hop)
            except Exception as e:
                logger.error(f"Error processing audio window: {e}")

    def get_status(self):
        return {
            "is_running": self.is_running,
            "device_name": self.device_name,
            "buffer_fill_percentage": self.frame_assembler.get_buffer_fill_percentage(),
            "windows_processed": self.windows_processed,
            "last_level": self.last_level,
            "last_inference_ms": self.last_inference_ms,
            "top_label": self.last_results[0].label if self.last_results else None,
        }
