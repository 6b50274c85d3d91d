"""
Listens for detection broadcasts from other Taptic devices
"""

import logging
import socket
import threading
import time

from ..config import (
    BROADCAST_PORT, RECEIVE_BUFFER_SIZE, JOIN_TIMEOUT_S, READ_TIMEOUT_S,
    RECV_ERROR_BACKOFF_S
)
from ..exceptions import MessageDecodeError
from .message import decode_message, get_device_name

logger = logging.getLogger(__name__)


class BroadcastListener:
    """
    Receives relay datagrams on a background thread and forwards peer
    detections to a callback as (label, device_name).

    Messages carrying this device's own name are dropped, since a broadcast
    also reaches the machine that sent it.
    """

    def __init__(self, callback, device_name=None, bind_address="", port=BROADCAST_PORT):
        self.callback = callback
        self.device_name = device_name or get_device_name()
        self.bind_address = bind_address
        self.port = port

        self.is_running = False
        self.socket = None
        self.listener_thread = None
        self._bound = threading.Event()

    def start(self):
        if self.is_running:
            logger.warning("Broadcast listener already running")
            return

        self.is_running = True
        self._bound.clear()
        self.listener_thread = threading.Thread(
            target=self._listen_loop, name="taptic-broadcast-listen", daemon=True
        )
        self.listener_thread.start()
        logger.info("Broadcast listener started")

    def wait_until_bound(self, timeout=None):
        """
        Block until the socket is bound (or the bind failed). Returns True if bound.
        """
        self._bound.wait(timeout)
        return self.socket is not None and self.is_running

    def stop(self):
        if not self.is_running:
            return

        self.is_running = False

        # Shutting down the socket unblocks a pending recvfrom
        sock, self.socket = self.socket, None
        if sock is not None:
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            sock.close()

        if self.listener_thread and self.listener_thread.is_alive():
            self.listener_thread.join(timeout=JOIN_TIMEOUT_S)
        self.listener_thread = None

        logger.info("Broadcast listener stopped")

    @property
    def bound_port(self):
        sock = self.socket
        return sock.getsockname()[1] if sock is not None else None

    def _listen_loop(self):
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.bind_address, self.port))
            sock.settimeout(READ_TIMEOUT_S)
        except OSError as e:
            logger.error(f"Failed to start broadcast listener on port {self.port}: {e}")
            self.is_running = False
            self._bound.set()
            return

        self.socket = sock
        self._bound.set()

        try:
            while self.is_running:
                try:
                    data, addr = sock.recvfrom(RECEIVE_BUFFER_SIZE)
                except socket.timeout:
                    continue
                except OSError as e:
                    if not self.is_running:
                        break
                    logger.error(f"Error receiving packet: {e}")
                    time.sleep(RECV_ERROR_BACKOFF_S)
                    continue

                if not self.is_running:
                    break

                self.handle_datagram(data, addr)
        finally:
            sock.close()

    def handle_datagram(self, data, addr=None):
        """
        Decode one datagram and forward it if it came from a peer.
        Returns True when the callback was invoked.
        """
        try:
            label, device_name = decode_message(data)
        except MessageDecodeError as e:
            logger.debug(f"Dropping datagram from {addr}: {e}")
            return False

        if device_name == self.device_name:
            return False

        if not label:
            return False

        logger.debug(f"Received broadcast: {label} from {device_name}")
        try:
            self.callback(label, device_name)
        except Exception as e:
            logger.error(f"Broadcast callback failed for '{label}': {e}")
            return False
        return True
