import socket

from .exceptions import MalformedMessage
from .message import (MAX_DATAGRAM_SIZE, AvailabilityRequest, Message, Operation,
                      TransactionResult)


class ParticipantClient:
    """Sends envelopes to a participant and waits for a single reply"""

    def __init__(self, host="localhost", port=5001, sender="Client", timeout=3):
        self.host = host
        self.port = port
        self.sender = sender
        self.timeout = timeout

    def send(self, message, timeout=None):
        """Send message and return the decoded reply, or None on timeout"""
        timeout = timeout or self.timeout
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.settimeout(timeout)
            sock.sendto(message.encode(), (self.host, self.port))
            payload, _ = sock.recvfrom(MAX_DATAGRAM_SIZE + 1)
        except socket.timeout:
            return None
        finally:
            sock.close()
        return Message.decode(payload)

    def _result(self, message):
        reply = self.send(message)
        if reply is None:
            return None
        try:
            return TransactionResult.from_json(reply.data).success
        except MalformedMessage:
            return None

    def prepare(self, transaction_id, coordinator_context):
        return self._result(Message(Operation.PREPARE, transaction_id, self.sender, coordinator_context.to_json()))

    def commit(self, transaction_id, booking_id=None):
        return self._result(Message(Operation.COMMIT, transaction_id, self.sender, str(booking_id or "")))

    def abort(self, transaction_id, booking_id=None):
        return self._result(Message(Operation.ABORT, transaction_id, self.sender, str(booking_id or "")))

    def result(self, transaction_id):
        """Ask for the outcome; returns COMMIT, ABORT or None if undecided"""
        reply = self.send(Message(Operation.RESULT, transaction_id, self.sender, ""))
        return reply.operation if reply is not None else None

    def get_bookings(self):
        reply = self.send(Message(Operation.GET_BOOKINGS, None, self.sender, ""))
        return reply.data if reply is not None else None

    def get_availability(self, start_date, end_date, number_of_persons):
        request = AvailabilityRequest(start_date, end_date, number_of_persons)
        reply = self.send(Message(Operation.GET_AVAILABILITY, None, self.sender, request.to_json()))
        return reply.data if reply is not None else None
