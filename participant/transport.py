import logging
import socket
import threading

from .exceptions import MalformedMessage
from .message import MAX_DATAGRAM_SIZE

logger = logging.getLogger(__name__)


class DatagramTransport:
    """
    UDP endpoint shared by the dispatcher, recovery and scheduler threads.

    Only the dispatcher receives; sends from any thread are serialized.
    """

    def __init__(self, host="0.0.0.0", port=5001, poll_interval=0.5):
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.sock.bind((host, port))
        self.sock.settimeout(poll_interval)
        self._send_lock = threading.Lock()

    @property
    def address(self):
        return self.sock.getsockname()

    def receive(self):
        """Wait for one datagram; returns None when the poll interval elapses"""
        try:
            # One extra byte so oversized datagrams are detectable
            return self.sock.recvfrom(MAX_DATAGRAM_SIZE + 1)
        except socket.timeout:
            return None
        except ConnectionRefusedError:
            # ICMP port unreachable left over from a send to a peer that is down
            logger.warning("Last datagram sent from %s was refused", self.address)
            return None

    def send(self, message, address):
        """Send one envelope; failures are logged and the reply dropped"""
        try:
            payload = message.encode()
            with self._send_lock:
                self.sock.sendto(payload, tuple(address))
        except (OSError, MalformedMessage) as e:
            logger.error("Failed to send %s for %s to %s: %s",
                         message.operation.value, message.transaction_id, address, e)
            return False
        logger.info("Sent %s for %s to %s: %s",
                    message.operation.value, message.transaction_id, address, message.data)
        return True

    def close(self):
        self.sock.close()
