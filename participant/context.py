import threading
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .exceptions import MalformedMessage
from .message import BookingContext, CoordinatorContext, Peer


class Vote(str, Enum):
    UNDECIDED = "UNDECIDED"
    YES = "YES"
    NO = "NO"


class State(str, Enum):
    PREPARE = "PREPARE"
    COMMIT = "COMMIT"
    ABORT = "ABORT"


class DecisionWaiter:
    """Single-shot latch completed when the global decision has been applied"""

    def __init__(self):
        self._event = threading.Event()

    def complete(self):
        self._event.set()

    @property
    def completed(self):
        return self._event.is_set()

    def await_or_timeout(self, timeout):
        """Return True if completed, False if the timeout elapsed first"""
        return self._event.wait(timeout)


@dataclass
class ParticipantEntry:
    """One peer in a transaction, as seen by this participant"""
    peer: Peer
    booking_context: Optional[BookingContext] = None
    vote: Vote = Vote.UNDECIDED
    booking_id: Optional[uuid.UUID] = None
    done: bool = False
    decision_waiter: Optional[DecisionWaiter] = field(default=None, repr=False, compare=False)

    @property
    def name(self):
        return self.peer.name

    def to_dict(self):
        return {
            "name": self.peer.name,
            "host": self.peer.host,
            "port": self.peer.port,
            "booking_context": self.booking_context.to_dict() if self.booking_context else None,
            "vote": self.vote.value,
            "booking_id": str(self.booking_id) if self.booking_id else None,
            "done": self.done,
        }

    @classmethod
    def from_dict(cls, data):
        booking = data.get("booking_context")
        return cls(
            peer=Peer(data["name"], data["host"], int(data["port"])),
            booking_context=BookingContext.from_dict(booking) if booking else None,
            vote=Vote(data["vote"]),
            booking_id=uuid.UUID(data["booking_id"]) if data.get("booking_id") else None,
            done=bool(data["done"]),
        )


@dataclass
class ParticipantContext:
    """
    Per-transaction state held by this participant.

    Peers live in one ordered list; ``self_index`` points at our own entry.
    Once ``state`` is COMMIT or ABORT it never changes again.
    """
    transaction_id: uuid.UUID
    coordinator: Peer
    participants: List[ParticipantEntry]
    self_index: int
    state: State = State.PREPARE
    created_at: float = field(default_factory=time.time)

    @classmethod
    def from_coordinator_context(cls, transaction_id, coordinator_context: CoordinatorContext, self_name):
        """Build a fresh context; our own entry must carry a booking context"""
        if coordinator_context.transaction_id and coordinator_context.transaction_id != transaction_id:
            raise MalformedMessage(
                f"CoordinatorContext is for {coordinator_context.transaction_id}, envelope for {transaction_id}")

        participants = [ParticipantEntry(spec.peer, spec.booking_context)
                        for spec in coordinator_context.participants]
        names = [entry.name for entry in participants]
        if self_name not in names:
            raise MalformedMessage(f"{self_name} is not a participant of {transaction_id}")
        self_index = names.index(self_name)
        if participants[self_index].booking_context is None:
            raise MalformedMessage(f"No booking context for {self_name} in {transaction_id}")

        return cls(transaction_id, coordinator_context.coordinator, participants, self_index)

    @property
    def me(self) -> ParticipantEntry:
        return self.participants[self.self_index]

    @property
    def is_terminal(self):
        return self.state in (State.COMMIT, State.ABORT)

    @property
    def in_doubt(self):
        return self.state is State.PREPARE and self.me.vote is Vote.YES

    def peers(self):
        """Every participant except ourselves"""
        return [entry.peer for i, entry in enumerate(self.participants) if i != self.self_index]

    def find_peer(self, name):
        for i, entry in enumerate(self.participants):
            if i != self.self_index and entry.name == name:
                return entry.peer
        return None

    def decide(self, state):
        if self.is_terminal and state is not self.state:
            raise ValueError(f"{self.transaction_id} already decided {self.state.value}")
        self.state = state

    def to_dict(self):
        return {
            "transaction_id": str(self.transaction_id),
            "coordinator": self.coordinator.to_dict(),
            "participants": [entry.to_dict() for entry in self.participants],
            "self_index": self.self_index,
            "state": self.state.value,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            transaction_id=uuid.UUID(data["transaction_id"]),
            coordinator=Peer.from_dict(data["coordinator"]),
            participants=[ParticipantEntry.from_dict(entry) for entry in data["participants"]],
            self_index=int(data["self_index"]),
            state=State(data["state"]),
            created_at=float(data["created_at"]),
        )
