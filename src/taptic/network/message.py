"""
Relay wire format and device identity.

Every datagram is a UTF-8 JSON object with exactly three string keys:

    {"type": "<label>", "time": "HH:MM:SS", "host": "<device name>"}

There is no version field; changing the keys breaks every peer still running
the previous format.
"""

import json
import logging
import platform
import socket
from datetime import datetime
from pathlib import Path

from ..config import MESSAGE_TIME_FORMAT, UNKNOWN_HOST, FALLBACK_DEVICE_NAME
from ..exceptions import MessageDecodeError

logger = logging.getLogger(__name__)

# Board/laptop model strings, most specific first
_MODEL_SOURCES = (
    Path("/sys/firmware/devicetree/base/model"),
    Path("/proc/device-tree/model"),
    Path("/sys/class/dmi/id/product_name"),
)


def encode_message(label, host, now=None):
    """
    Serialize one detection for broadcast.
    """
    now = now or datetime.now()
    payload = {
        "type": label,
        "time": now.strftime(MESSAGE_TIME_FORMAT),
        "host": host,
    }
    return json.dumps(payload, ensure_ascii=False).encode("utf-8")


def decode_message(data):
    """
    Parse a received datagram.

    Returns:
        (label, host) where label may be empty and host defaults to "Unknown"

    Raises:
        MessageDecodeError: payload is not UTF-8 JSON object
    """
    try:
        payload = json.loads(bytes(data).decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise MessageDecodeError(f"Malformed datagram: {e}") from e

    if not isinstance(payload, dict):
        raise MessageDecodeError(f"Expected a JSON object, got {type(payload).__name__}")

    label = payload.get("type") or ""
    host = payload.get("host") or UNKNOWN_HOST
    if not isinstance(label, str):
        label = str(label)
    if not isinstance(host, str):
        host = str(host)
    return label, host


def get_device_name():
    """
    Short, best-effort device model name used as the relay identity.

    Informational only. Two devices reporting the same model string will
    filter out each other's alerts as self-messages.
    """
    for source in _MODEL_SOURCES:
        try:
            model = source.read_bytes().decode("utf-8", "ignore").strip("\x00 \n")
        except OSError:
            continue
        if model:
            return model

    name = platform.node() or socket.gethostname()
    return name or FALLBACK_DEVICE_NAME
