"""Fakes and message builders shared by the participant tests"""

import json
import uuid
from datetime import date

from participant.exceptions import StoreError
from participant.message import (BookingContext, CoordinatorContext, Message, Operation,
                                 ParticipantSpec, Peer)

SELF_NAME = "CarProvider"
COORDINATOR = Peer("TravelBroker", "127.0.0.1", 5000)
CAR_PROVIDER = Peer(SELF_NAME, "127.0.0.1", 5001)
HOTEL_PROVIDER = Peer("HotelProvider", "127.0.0.1", 5002)
CAR_ID = uuid.UUID("7c9e6679-7425-40de-944b-e07fc1f90ae7")
HOTEL_ID = uuid.UUID("0b7d9a4c-5f3e-4c56-9a1e-3d5c2f8b6a11")


# ============================================================================
# Fakes
# ============================================================================

class FakeStore:
    """In-memory reservation store recording every call"""

    def __init__(self):
        self.rentals = {}
        self.calls = []
        self.available = True
        self.fail_reserve = False
        self.fail_decisions = False

    def tentative_reserve(self, request, transaction_id=None):
        self.calls.append(("reserve", transaction_id))
        if self.fail_reserve:
            raise StoreError("database unavailable")
        if not self.available:
            return None
        booking_id = uuid.uuid4()
        self.rentals[booking_id] = {"transaction_id": transaction_id, "confirmed": False}
        return booking_id

    def confirm(self, booking_id):
        self.calls.append(("confirm", booking_id))
        if self.fail_decisions:
            return False
        if booking_id in self.rentals:
            self.rentals[booking_id]["confirmed"] = True
        return True

    def release(self, booking_id):
        self.calls.append(("release", booking_id))
        if self.fail_decisions:
            return False
        self.rentals.pop(booking_id, None)
        return True

    def release_transaction(self, transaction_id):
        self.calls.append(("release_transaction", transaction_id))
        if self.fail_decisions:
            return False
        for booking_id, rental in list(self.rentals.items()):
            if rental["transaction_id"] == transaction_id and not rental["confirmed"]:
                del self.rentals[booking_id]
        return True

    def list_rentals(self):
        return json.dumps([{"rentalId": str(b), "confirmed": r["confirmed"]} for b, r in self.rentals.items()])

    def list_available(self, request):
        self.calls.append(("list_available", request))
        return json.dumps([{"carId": str(CAR_ID)}])

    def count(self, operation):
        return sum(1 for call in self.calls if call[0] == operation)


class FakeTransport:
    """Records outbound messages instead of touching a socket"""

    def __init__(self):
        self.sent = []
        self.incoming = []
        self.closed = False
        self.address = ("127.0.0.1", 5001)

    def send(self, message, address):
        self.sent.append((message, tuple(address)))
        return True

    def receive(self):
        if self.incoming:
            return self.incoming.pop(0)
        return None

    def close(self):
        self.closed = True

    def sent_to(self, address):
        return [message for message, to in self.sent if to == tuple(address)]


class ManualScheduler:
    """Scheduler whose timers and watches fire only when a test says so"""

    def __init__(self):
        self.timers = []
        self.watches = []
        self.error_handler = None
        self.stopped = False

    def call_later(self, delay, callback, *args):
        self.timers.append((delay, callback, args))

    def watch(self, waiter, interval, on_timeout):
        self.watches.append((waiter, interval, on_timeout))

    def run_timers(self):
        timers, self.timers = self.timers, []
        for _, callback, args in timers:
            callback(*args)

    def expire_watch(self, index=-1):
        """Simulate one interval elapsing without a decision"""
        waiter, _, on_timeout = self.watches[index]
        if waiter.completed:
            return False
        return on_timeout()

    def shutdown(self):
        self.stopped = True


# ============================================================================
# Builders
# ============================================================================

def coordinator_context(transaction_id=None, start=date(2024, 6, 1), end=date(2024, 6, 3), persons=2,
                        participants=None):
    if participants is None:
        participants = [
            ParticipantSpec(HOTEL_PROVIDER, BookingContext(HOTEL_ID, start, end, persons)),
            ParticipantSpec(CAR_PROVIDER, BookingContext(CAR_ID, start, end, persons)),
        ]
    return CoordinatorContext(transaction_id, COORDINATOR, participants)


def prepare_message(transaction_id, **kwargs):
    context = coordinator_context(transaction_id, **kwargs)
    return Message(Operation.PREPARE, transaction_id, COORDINATOR.name, context.to_json())


def decision_message(operation, transaction_id, sender=COORDINATOR.name, data=""):
    return Message(operation, transaction_id, sender, data)


def read_record(journal, transaction_id):
    with open(journal.path_for(transaction_id), encoding="utf-8") as f:
        return json.load(f)

