"""
Configuration constants for Taptic ambient sound alerting
"""

# Audio Configuration
SAMPLE_RATE = 16000  # 16 kHz, required by YAMNet
CHANNELS = 1  # Mono
WINDOW_SAMPLES = 15600  # 0.975 s analysis window (classifier input size)
HOP_SAMPLES = 7800  # 50% overlap, ~487 ms between windows
PCM_SCALE = 32768.0  # int16 -> [-1.0, 1.0)

# Loudness meter
LEVEL_FLOOR = 0.02
LEVEL_CEILING = 1.0
LEVEL_GAIN = 16.0
LEVEL_EXPONENT = 0.65

# Model Configuration
NUM_CLASSES = 521  # AudioSet classes
MODEL_PATH = "models/yamnet.tflite"
LABELS_PATH = "models/yamnet_class_map.csv"
TOP_K = 3

# Decision Engine
DEFAULT_NOTIFY_THRESHOLD = 0.20
COOLDOWN_MS = 5000  # Minimum gap between two notifications for one label
NOTIFICATION_ID_BASE = 1000

# Emergency labels marked by default (normalized)
DEFAULT_EMERGENCY_LABELS = (
    "fire",
    "smoke alarm",
    "fire alarm",
    "siren",
    "emergency vehicle",
    "glass breaking",
    "gunshot",
    "explosion",
    "smoke detector",
)

# Any label containing one of these is treated as an emergency
EMERGENCY_KEYWORDS = (
    "fire", "smoke", "siren", "alarm", "glass", "gunshot",
    "explosion", "emergency", "screaming", "crying", "baby",
)

# Notification defaults
DEFAULT_NOTIFICATION_SOUND = "Default"
DEFAULT_EMERGENCY_SOUND = "Emergency"
DEFAULT_NOTIFICATION_EMOJI = "\U0001F535"  # blue circle
EMERGENCY_COLOR = "#FF5252"
NORMAL_COLOR = "#8AB4FF"

# Relay (wire protocol, do not change without bumping every peer)
BROADCAST_ADDRESS = "255.255.255.255"
BROADCAST_PORT = 50000
RECEIVE_BUFFER_SIZE = 2048
MESSAGE_TIME_FORMAT = "%H:%M:%S"
UNKNOWN_HOST = "Unknown"
FALLBACK_DEVICE_NAME = "Python Device"

# Threads
JOIN_TIMEOUT_S = 1.0
READ_TIMEOUT_S = 0.5
RECV_ERROR_BACKOFF_S = 0.1
AUDIO_QUEUE_SIZE = 16
FRAME_QUEUE_SIZE = 8  # Display updates kept for a slow consumer

# History
HISTORY_DB_PATH = "taptic_history.db"
HISTORY_LIMIT = 1000

# Logging
LOG_FILE = "taptic_alerts.log"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
