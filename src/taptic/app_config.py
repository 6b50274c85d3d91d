"""
User preferences consumed by the decision engine and notifier.

AppConfig is constructed explicitly and passed to the components that need it.
All accessors are thread-safe; the audio thread, the relay listener thread and
the notifier thread read it concurrently while a front end may write to it.
"""

import threading
import logging

from .config import (
    DEFAULT_NOTIFY_THRESHOLD, DEFAULT_EMERGENCY_LABELS, EMERGENCY_KEYWORDS,
    DEFAULT_NOTIFICATION_SOUND, DEFAULT_EMERGENCY_SOUND,
    DEFAULT_NOTIFICATION_EMOJI, EMERGENCY_COLOR, NORMAL_COLOR
)

logger = logging.getLogger(__name__)


def normalize_label(label):
    """
    Trim and lower-case a label. Returns None for empty or missing labels.
    """
    if label is None:
        return None
    trimmed = label.strip()
    return trimmed.lower() if trimmed else None


def is_emergency_heuristic(normalized_label):
    return any(keyword in normalized_label for keyword in EMERGENCY_KEYWORDS)


class AppConfig:
    """
    Thread-safe settings holder
    """

    def __init__(self, emergency_labels=DEFAULT_EMERGENCY_LABELS):
        self._lock = threading.Lock()

        self._play_sound = True
        self._flash_emergency = True
        self._notify_threshold = DEFAULT_NOTIFY_THRESHOLD
        self._notification_sound = DEFAULT_NOTIFICATION_SOUND
        self._emergency_sound = DEFAULT_EMERGENCY_SOUND
        self._notification_emoji = DEFAULT_NOTIFICATION_EMOJI

        self._emergency_labels = set()
        for label in emergency_labels:
            normalized = normalize_label(label)
            if normalized:
                self._emergency_labels.add(normalized)

        self._broadcast_send_labels = set()
        self._broadcast_listen_labels = set()
        self._notification_colors = {}

    @classmethod
    def from_dict(cls, data):
        """
        Build a config from a plain mapping (e.g. parsed from a JSON file).
        Unknown keys are ignored with a warning.
        """
        config = cls(emergency_labels=data.get("emergency_labels", DEFAULT_EMERGENCY_LABELS))

        setters = {
            "play_sound": config.set_play_sound,
            "flash_emergency": config.set_flash_emergency,
            "notify_threshold": config.set_notify_threshold,
            "notification_sound": config.set_notification_sound,
            "emergency_sound": config.set_emergency_sound,
            "notification_emoji": config.set_notification_emoji,
        }
        for key, value in data.items():
            if key in setters:
                setters[key](value)
            elif key == "broadcast_send_labels":
                for label in value:
                    config.set_broadcast_send_enabled(label, True)
            elif key == "broadcast_listen_labels":
                for label in value:
                    config.set_broadcast_listen_enabled(label, True)
            elif key == "notification_colors":
                for label, color in value.items():
                    config.set_notification_color(label, color)
            elif key != "emergency_labels":
                logger.warning(f"Ignoring unknown config key: {key}")

        return config

    # Notification behaviour

    def is_play_sound(self):
        with self._lock:
            return self._play_sound

    def set_play_sound(self, enabled):
        with self._lock:
            self._play_sound = bool(enabled)

    def is_flash_emergency(self):
        with self._lock:
            return self._flash_emergency

    def set_flash_emergency(self, enabled):
        with self._lock:
            self._flash_emergency = bool(enabled)

    def get_notify_threshold(self):
        with self._lock:
            return self._notify_threshold

    def set_notify_threshold(self, threshold):
        """
        Set the minimum confidence for a notification, clamped to [0, 1]
        """
        with self._lock:
            self._notify_threshold = min(1.0, max(0.0, float(threshold)))

    def get_notification_sound(self):
        with self._lock:
            return self._notification_sound

    def set_notification_sound(self, sound):
        with self._lock:
            self._notification_sound = sound

    def get_emergency_sound(self):
        with self._lock:
            return self._emergency_sound

    def set_emergency_sound(self, sound):
        with self._lock:
            self._emergency_sound = sound

    def get_notification_emoji(self):
        with self._lock:
            return self._notification_emoji

    def set_notification_emoji(self, emoji):
        with self._lock:
            self._notification_emoji = emoji

    # Emergency labels

    def get_emergency_labels(self):
        with self._lock:
            return frozenset(self._emergency_labels)

    def set_emergency_label(self, label, is_emergency):
        normalized = normalize_label(label)
        if normalized is None:
            return
        with self._lock:
            if is_emergency:
                self._emergency_labels.add(normalized)
            else:
                self._emergency_labels.discard(normalized)

    def is_emergency_label(self, label):
        """
        A label is an emergency if it was marked by the user or matches
        one of the built-in keywords. Comparison is case-insensitive.
        """
        normalized = normalize_label(label)
        if normalized is None:
            return False
        with self._lock:
            if normalized in self._emergency_labels:
                return True
        return is_emergency_heuristic(normalized)

    # Relay settings

    def get_broadcast_send_labels(self):
        with self._lock:
            return frozenset(self._broadcast_send_labels)

    def set_broadcast_send_enabled(self, label, enabled):
        normalized = normalize_label(label)
        if normalized is None:
            return
        with self._lock:
            if enabled:
                self._broadcast_send_labels.add(normalized)
            else:
                self._broadcast_send_labels.discard(normalized)

    def is_broadcast_send_enabled(self, label):
        normalized = normalize_label(label)
        with self._lock:
            return normalized in self._broadcast_send_labels

    def get_broadcast_listen_labels(self):
        with self._lock:
            return frozenset(self._broadcast_listen_labels)

    def set_broadcast_listen_enabled(self, label, enabled):
        normalized = normalize_label(label)
        if normalized is None:
            return
        with self._lock:
            if enabled:
                self._broadcast_listen_labels.add(normalized)
            else:
                self._broadcast_listen_labels.discard(normalized)

    def is_broadcast_listen_enabled(self, label):
        normalized = normalize_label(label)
        with self._lock:
            return normalized in self._broadcast_listen_labels

    # Colors

    def get_notification_color(self, label):
        normalized = normalize_label(label)
        if normalized is None:
            return NORMAL_COLOR
        with self._lock:
            color = self._notification_colors.get(normalized)
        if color:
            return color
        return EMERGENCY_COLOR if self.is_emergency_label(label) else NORMAL_COLOR

    def set_notification_color(self, label, color_hex):
        normalized = normalize_label(label)
        if normalized is None:
            return
        with self._lock:
            self._notification_colors[normalized] = color_hex
