"""
Taptic: ambient sound alerts with LAN relay

Continuously classifies microphone audio with YAMNet and alerts the user
visually when important sounds (alarms, sirens, crying, doorbells) are heard.
Detections can be relayed to other Taptic devices on the local network.

Components:
- Frame assembler producing overlapping 0.975 s windows and a loudness level
- YAMNet TFLite classifier adapter with top-3 selection
- Decision engine with confidence threshold and per-label cooldown
- UDP broadcast relay (sender and listener) between peers
- Notification delivery and detection history
"""

from .app_config import AppConfig
from .features.frame_assembler import FrameAssembler, compute_level
from .engine.selection import top3
from .engine.inference import YamnetClassifier
from .decision_engine import DecisionEngine, DetectionResult, NotificationEvent
from .classification_service import TapticService

__version__ = "1.0.0"
