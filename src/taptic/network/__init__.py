from .message import encode_message, decode_message, get_device_name
from .broadcast_sender import BroadcastSender
from .broadcast_listener import BroadcastListener

__all__ = [
    "encode_message",
    "decode_message",
    "get_device_name",
    "BroadcastSender",
    "BroadcastListener",
]
