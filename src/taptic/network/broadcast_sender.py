"""
Sends local detections to other Taptic devices on the LAN via UDP broadcast
"""

import logging
import socket
import threading

from ..config import BROADCAST_ADDRESS, BROADCAST_PORT
from .message import encode_message, get_device_name

logger = logging.getLogger(__name__)


class BroadcastSender:
    """
    Fire-and-forget relay sender. Each send runs on its own short-lived
    thread with its own socket, so the audio thread never blocks on the network.
    """

    def __init__(self, device_name=None, address=BROADCAST_ADDRESS, port=BROADCAST_PORT):
        self.device_name = device_name or get_device_name()
        self.address = address
        self.port = port

    def send(self, label):
        """
        Broadcast one detection. Returns the worker thread.
        """
        thread = threading.Thread(
            target=self._send_blocking, args=(label,),
            name="taptic-broadcast-send", daemon=True
        )
        thread.start()
        return thread

    def _send_blocking(self, label):
        try:
            payload = encode_message(label, self.device_name)
            with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
                sock.sendto(payload, (self.address, self.port))
            logger.debug(f"Broadcast sent: {label}")
        except Exception as e:
            logger.error(f"Failed to send broadcast for '{label}': {e}")
