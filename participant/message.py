"""
Envelope codec for the participant's datagram protocol.

Every datagram carries one JSON object::

    {"operation": "PREPARE", "transactionId": "<uuid>", "sender": "<name>", "data": "<string>"}

The ``data`` string is itself a JSON document whose schema depends on the
operation. Payloads are decoded lazily by the handler that needs them.
"""

import json
import uuid
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import List, Optional

from .exceptions import MalformedMessage

MAX_DATAGRAM_SIZE = 16384


class Operation(str, Enum):
    PREPARE = "PREPARE"
    COMMIT = "COMMIT"
    ABORT = "ABORT"
    GET_BOOKINGS = "GET_BOOKINGS"
    GET_AVAILABILITY = "GET_AVAILABILITY"
    RESULT = "RESULT"


TWO_PHASE_OPERATIONS = (Operation.PREPARE, Operation.COMMIT, Operation.ABORT, Operation.RESULT)


def _loads(raw, what):
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as e:
        raise MalformedMessage(f"{what} is not valid JSON: {e}") from e
    except RecursionError as e:
        raise MalformedMessage(f"{what} is nested too deeply") from e


def _require(data, key, what):
    if not isinstance(data, dict) or key not in data or data[key] is None:
        raise MalformedMessage(f"{what} is missing '{key}'")
    return data[key]


def _parse_uuid(value, what):
    try:
        return uuid.UUID(str(value))
    except ValueError as e:
        raise MalformedMessage(f"{what} is not a valid UUID: {value!r}") from e


def _parse_date(value, what):
    try:
        return date.fromisoformat(str(value))
    except ValueError as e:
        raise MalformedMessage(f"{what} is not a yyyy-mm-dd date: {value!r}") from e


def _parse_int(value, what):
    if isinstance(value, bool):
        raise MalformedMessage(f"{what} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise MalformedMessage(f"{what} must be an integer: {value!r}") from e


@dataclass
class Message:
    """One envelope on the wire"""
    operation: Operation
    transaction_id: Optional[uuid.UUID]
    sender: str
    data: str = ""

    def to_dict(self):
        return {
            "operation": self.operation.value,
            "transactionId": str(self.transaction_id) if self.transaction_id else None,
            "sender": self.sender,
            "data": self.data,
        }

    def encode(self) -> bytes:
        payload = json.dumps(self.to_dict()).encode("utf-8")
        if len(payload) > MAX_DATAGRAM_SIZE:
            raise MalformedMessage(f"Envelope of {len(payload)} bytes exceeds {MAX_DATAGRAM_SIZE}")
        return payload

    @classmethod
    def decode(cls, payload: bytes) -> "Message":
        """Decode a datagram, raising MalformedMessage on any structural error"""
        if len(payload) > MAX_DATAGRAM_SIZE:
            raise MalformedMessage(f"Datagram of {len(payload)} bytes exceeds {MAX_DATAGRAM_SIZE}")
        try:
            text = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedMessage(f"Datagram is not UTF-8: {e}") from e

        envelope = _loads(text, "Envelope")
        raw_operation = _require(envelope, "operation", "Envelope")
        try:
            operation = Operation(raw_operation)
        except ValueError as e:
            raise MalformedMessage(f"Unknown operation: {raw_operation!r}") from e

        raw_id = envelope.get("transactionId")
        transaction_id = _parse_uuid(raw_id, "transactionId") if raw_id else None
        if transaction_id is None and operation in TWO_PHASE_OPERATIONS:
            raise MalformedMessage(f"{operation.value} requires a transactionId")

        sender = envelope.get("sender") or ""
        data = envelope.get("data")
        if data is None:
            data = ""
        if not isinstance(sender, str) or not isinstance(data, str):
            raise MalformedMessage("Envelope 'sender' and 'data' must be strings")

        return cls(operation, transaction_id, sender, data)


@dataclass(frozen=True)
class Peer:
    """A participant or coordinator endpoint"""
    name: str
    host: str
    port: int

    @property
    def address(self):
        return (self.host, self.port)

    def to_dict(self):
        return {"name": self.name, "host": self.host, "port": self.port}

    @classmethod
    def from_dict(cls, data):
        name = _require(data, "name", "Peer")
        host = data.get("host", data.get("url"))
        if not host:
            raise MalformedMessage(f"Peer {name!r} is missing 'host'")
        port = _parse_int(_require(data, "port", "Peer"), "Peer port")
        return cls(str(name), str(host), port)


@dataclass(frozen=True)
class BookingContext:
    """Immutable snapshot of what a participant is asked to reserve"""
    resource_id: uuid.UUID
    start_date: date
    end_date: date
    number_of_persons: int

    def to_dict(self):
        return {
            "resourceId": str(self.resource_id),
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
            "numberOfPersons": self.number_of_persons,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            resource_id=_parse_uuid(_require(data, "resourceId", "BookingContext"), "resourceId"),
            start_date=_parse_date(_require(data, "startDate", "BookingContext"), "startDate"),
            end_date=_parse_date(_require(data, "endDate", "BookingContext"), "endDate"),
            number_of_persons=_parse_int(_require(data, "numberOfPersons", "BookingContext"), "numberOfPersons"),
        )


# What the store is asked to hold; same fields as a booking context
ReservationRequest = BookingContext


@dataclass(frozen=True)
class ParticipantSpec:
    peer: Peer
    booking_context: Optional[BookingContext]


@dataclass(frozen=True)
class CoordinatorContext:
    """PREPARE payload: coordinator identity and every participant's booking"""
    transaction_id: Optional[uuid.UUID]
    coordinator: Peer
    participants: List[ParticipantSpec]

    def to_json(self):
        return json.dumps({
            "transactionId": str(self.transaction_id) if self.transaction_id else None,
            "coordinator": self.coordinator.to_dict(),
            "participants": [
                dict(spec.peer.to_dict(),
                     bookingContext=spec.booking_context.to_dict() if spec.booking_context else None)
                for spec in self.participants
            ],
        })

    @classmethod
    def from_json(cls, raw):
        data = _loads(raw, "CoordinatorContext")
        if not isinstance(data, dict):
            raise MalformedMessage("CoordinatorContext must be a JSON object")

        raw_id = data.get("transactionId")
        transaction_id = _parse_uuid(raw_id, "CoordinatorContext transactionId") if raw_id else None
        coordinator = Peer.from_dict(_require(data, "coordinator", "CoordinatorContext"))

        raw_participants = _require(data, "participants", "CoordinatorContext")
        if not isinstance(raw_participants, list) or not raw_participants:
            raise MalformedMessage("CoordinatorContext 'participants' must be a non-empty list")

        participants = []
        for entry in raw_participants:
            booking = entry.get("bookingContext") if isinstance(entry, dict) else None
            participants.append(ParticipantSpec(
                peer=Peer.from_dict(entry),
                booking_context=BookingContext.from_dict(booking) if booking else None,
            ))
        return cls(transaction_id, coordinator, participants)


@dataclass(frozen=True)
class TransactionResult:
    success: bool

    def to_json(self):
        return json.dumps({"success": self.success})

    @classmethod
    def from_json(cls, raw):
        data = _loads(raw, "TransactionResult")
        success = _require(data, "success", "TransactionResult")
        if not isinstance(success, bool):
            raise MalformedMessage("TransactionResult 'success' must be a boolean")
        return cls(success)


@dataclass(frozen=True)
class AvailabilityRequest:
    start_date: date
    end_date: date
    number_of_persons: int

    def to_json(self):
        return json.dumps({
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
            "numberOfPersons": self.number_of_persons,
        })

    @classmethod
    def from_json(cls, raw):
        data = _loads(raw, "AvailabilityRequest")
        return cls(
            start_date=_parse_date(_require(data, "startDate", "AvailabilityRequest"), "startDate"),
            end_date=_parse_date(_require(data, "endDate", "AvailabilityRequest"), "endDate"),
            number_of_persons=_parse_int(_require(data, "numberOfPersons", "AvailabilityRequest"), "numberOfPersons"),
        )
