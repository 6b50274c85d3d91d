"""
Notification delivery for Taptic
Drains NotificationEvents from the decision engine and alerts the user
"""

import datetime
import logging
import queue
import threading

import numpy as np

from .config import LOG_FILE, SAMPLE_RATE, JOIN_TIMEOUT_S
from .history import DetectionEvent

logger = logging.getLogger(__name__)

# Alert tones by sound name (frequency Hz, duration s)
NORMAL_TONE = (880.0, 0.25)
EMERGENCY_TONE = (1320.0, 0.8)
SOUND_TONES = {
    "Default": NORMAL_TONE,
    "Emergency": EMERGENCY_TONE,
    "Chime": (660.0, 0.4),
    "Beep": (1000.0, 0.15),
    "Alarm": (1760.0, 1.0),
}


def format_notification(event, emoji=None):
    """
    Title and body text for one notification, e.g.
    ("Taptic 🔵", "This Device • Smoke Alarm (87%)")
    """
    title = f"Taptic {emoji}" if emoji else "Taptic"
    percentage = int(event.score * 100)
    if event.is_local:
        source = "This Device"
    else:
        source = event.origin_host or "Remote Device"
    return title, f"{source} • {event.label} ({percentage}%)"


def tone_for(sound, is_emergency=False):
    """
    Tone for a configured sound name. Unknown names fall back to the
    default tone for the notification kind.
    """
    fallback = EMERGENCY_TONE if is_emergency else NORMAL_TONE
    return SOUND_TONES.get(sound, fallback)


def make_tone(frequency, duration, sample_rate=SAMPLE_RATE, volume=0.5):
    t = np.arange(int(sample_rate * duration)) / sample_rate
    tone = np.sin(2 * np.pi * frequency * t) * volume
    # 10 ms fade in/out avoids clicks
    fade = min(len(tone) // 2, int(sample_rate * 0.01))
    if fade:
        ramp = np.linspace(0.0, 1.0, fade)
        tone[:fade] *= ramp
        tone[-fade:] *= ramp[::-1]
    return tone.astype(np.float32)


class NotificationManager:
    """
    Presents notifications: console + log + alert log file, optional tone,
    emergency flash banner, history record, and any registered sinks
    (a front end subscribes here instead of being called from worker threads).
    """

    def __init__(self, app_config, notification_queue, history=None,
                 log_file=LOG_FILE, play_audio=True):
        self.app_config = app_config
        self.notification_queue = notification_queue
        self.history = history
        self.log_file = log_file
        self.play_audio = play_audio

        self.sinks = []
        self.delivered = []

        self.is_running = False
        self.worker_thread = None

    def add_sink(self, sink):
        self.sinks.append(sink)

    def start(self):
        if self.is_running:
            return

        self.is_running = True
        self.worker_thread = threading.Thread(
            target=self._run, name="taptic-notifier", daemon=True
        )
        self.worker_thread.start()

    def stop(self):
        if not self.is_running:
            return

        self.is_running = False
        if self.worker_thread and self.worker_thread.is_alive():
            self.worker_thread.join(timeout=JOIN_TIMEOUT_S)
        self.worker_thread = None

        # Deliver whatever was queued before shutdown
        self.drain()

    def _run(self):
        while self.is_running:
            try:
                event = self.notification_queue.get(timeout=0.2)
            except queue.Empty:
                continue

            try:
                self.show_notification(event)
            except Exception as e:
                logger.error(f"Failed to deliver notification {event.notification_id}: {e}")

    def drain(self):
        """
        Deliver everything currently queued on the calling thread.
        Returns the number of notifications shown.
        """
        count = 0
        while True:
            try:
                event = self.notification_queue.get_nowait()
            except queue.Empty:
                return count
            self.show_notification(event)
            count += 1

    def show_notification(self, event):
        title, text = format_notification(event, self.app_config.get_notification_emoji())

        if event.is_emergency:
            logger.warning(f"{title}: {text}")
            print(f"\n*** EMERGENCY: {text} ***\n")
            if self.app_config.is_flash_emergency():
                self._flash()
        else:
            logger.info(f"{title}: {text}")
            print(f"[{title}] {text}")

        self._write_log(event, text)

        if self.play_audio and self.app_config.is_play_sound():
            self._play_tone(event.is_emergency)

        if self.history is not None:
            self.history.insert(DetectionEvent.from_notification(event))

        for sink in list(self.sinks):
            try:
                sink(event)
            except Exception as e:
                logger.error(f"Notification sink failed: {e}")

        self.delivered.append(event)

    def _write_log(self, event, text):
        if not self.log_file:
            return
        timestamp = datetime.datetime.fromtimestamp(event.timestamp_ms / 1000).strftime("%Y-%m-%d %H:%M:%S")
        tag = "EMERGENCY" if event.is_emergency else "ALERT"
        try:
            with open(self.log_file, "a", encoding="utf-8") as f:
                f.write(f"[{timestamp}] {tag}: {text}\n")
        except OSError as e:
            logger.error(f"Could not write alert log {self.log_file}: {e}")

    def _flash(self):
        banner = "!" * 40
        print(f"{banner}\n{banner}\n{banner}")

    def _play_tone(self, is_emergency):
        sound = self.app_config.get_emergency_sound() if is_emergency else self.app_config.get_notification_sound()
        frequency, duration = tone_for(sound, is_emergency)
        try:
            import sounddevice as sd
            sd.play(make_tone(frequency, duration), SAMPLE_RATE)
        except Exception as e:
            logger.debug(f"Could not play '{sound}' tone: {e}")
