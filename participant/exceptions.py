class ParticipantError(Exception):
    """Base class for participant errors"""


class MalformedMessage(ParticipantError):
    """Datagram or payload could not be decoded"""


class StoreError(ParticipantError):
    """Reservation store failed to complete an operation"""


class JournalError(ParticipantError):
    """Journal could not persist or read a transaction context"""
