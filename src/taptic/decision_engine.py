"""
Decision engine for Taptic
Turns per-window classifier scores and relayed peer events into gated,
de-duplicated notifications
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from .app_config import normalize_label
from .config import COOLDOWN_MS, NOTIFICATION_ID_BASE
from .engine.selection import top3

logger = logging.getLogger(__name__)


def _now_ms():
    return int(time.time() * 1000)


@dataclass(frozen=True)
class DetectionResult:
    label: str
    score: float
    is_emergency: bool


@dataclass(frozen=True)
class NotificationEvent:
    """A detection that passed threshold and cooldown."""

    notification_id: int
    label: str
    score: float
    is_emergency: bool
    is_local: bool
    origin_host: Optional[str]
    timestamp_ms: int


@dataclass(frozen=True)
class FrameUpdate:
    """Ranked results and loudness for one window, published for display."""

    results: List[DetectionResult] = field(default_factory=list)
    level: float = 0.0


class NotificationIdAllocator:
    """
    Process-wide notification id counter.

    Starts at NOTIFICATION_ID_BASE and increases by one per notification.
    The decision engine owns the single instance and is its only writer.
    """

    def __init__(self, start=NOTIFICATION_ID_BASE):
        self._next = start
        self._lock = threading.Lock()

    def next_id(self):
        with self._lock:
            value = self._next
            self._next += 1
            return value


class DecisionEngine:
    """
    Filter and dispatcher between classification and alerting.

    Local frames and remote relay events both end up in maybe_notify, which
    applies the confidence threshold and a per-label cooldown. The cooldown
    table is shared by the audio thread and the relay listener thread, so the
    check and the update happen under one lock.

    Outputs go through queues: NotificationEvent objects on
    notification_queue and FrameUpdate objects on frame_queue.
    """

    def __init__(self, app_config, broadcast_sender=None, notification_queue=None,
                 frame_queue=None, clock=_now_ms, cooldown_ms=COOLDOWN_MS,
                 id_allocator=None):
        self.app_config = app_config
        self.broadcast_sender = broadcast_sender
        self.notification_queue = notification_queue if notification_queue is not None else queue.Queue()
        self.frame_queue = frame_queue
        self.clock = clock
        self.cooldown_ms = cooldown_ms
        self.id_allocator = id_allocator or NotificationIdAllocator()

        self._last_notify_time = {}
        self._cooldown_lock = threading.Lock()

    def on_local_frame(self, scores, labels, level=0.0):
        """
        Handle one classified window from this device's microphone.

        Returns the top-3 results for display whether or not any of them
        produced a notification. An all-zero vector (degraded classifier)
        means no detections, but the level is still published.
        """
        if scores is None or len(scores) == 0:
            return []

        if not np.any(scores):
            if self.frame_queue is not None:
                self._publish_frame(FrameUpdate([], level))
            return []

        results = []
        for index in top3(scores):
            label = self._get_label(labels, index)
            score = float(scores[index])
            results.append(DetectionResult(label, score, self.app_config.is_emergency_label(label)))

        for result in results:
            self.maybe_notify(result.label, result.score, result.is_emergency, True, None)

        if self.frame_queue is not None:
            self._publish_frame(FrameUpdate(results, level))

        return results

    def on_remote_event(self, label, origin_host):
        """
        Handle a detection relayed by a peer. Remote events always carry full confidence.
        """
        is_emergency = self.app_config.is_emergency_label(label)
        return self.maybe_notify(label, 1.0, is_emergency, False, origin_host)

    def maybe_notify(self, label, score, is_emergency, is_local, origin_host):
        """
        Apply threshold and cooldown, then relay (local only) and notify.
        Returns True if a notification was emitted.
        """
        if score < self.app_config.get_notify_threshold():
            return False

        key = normalize_label(label) or label
        with self._cooldown_lock:
            now = self.clock()
            last_time = self._last_notify_time.get(key)
            if last_time is not None and (now - last_time) < self.cooldown_ms:
                return False
            self._last_notify_time[key] = now

        if is_local and self.broadcast_sender is not None \
                and self.app_config.is_broadcast_send_enabled(label):
            self.broadcast_sender.send(label)

        event = NotificationEvent(
            notification_id=self.id_allocator.next_id(),
            label=label,
            score=score,
            is_emergency=is_emergency,
            is_local=is_local,
            origin_host=origin_host,
            timestamp_ms=now,
        )
        logger.info(
            f"Notify {event.notification_id}: {label} ({score:.2f})"
            f"{' [emergency]' if is_emergency else ''}"
            f"{'' if is_local else f' from {origin_host}'}"
        )
        self.notification_queue.put(event)
        return True

    def _publish_frame(self, update):
        # Display only needs the latest frames; drop the oldest when full
        try:
            self.frame_queue.put_nowait(update)
        except queue.Full:
            try:
                self.frame_queue.get_nowait()
            except queue.Empty:
                pass
            self.frame_queue.put_nowait(update)

    def last_notify_time(self, label):
        with self._cooldown_lock:
            return self._last_notify_time.get(normalize_label(label) or label)

    @staticmethod
    def _get_label(labels, index):
        if labels is None or index < 0 or index >= len(labels):
            return f"class_{index}"
        return labels[index]
