import logging
import sys

from .exceptions import JournalError, MalformedMessage, StoreError
from .logger import TransactionLogger
from .message import AvailabilityRequest, Message, Operation, TWO_PHASE_OPERATIONS
from .protocol import ESCALATION_INTERVAL, GC_DELAY, TwoPhaseParticipant
from .recovery import RecoveryEngine
from .registry import ContextRegistry
from .scheduler import TimeoutScheduler

logger = logging.getLogger(__name__)

DECISION_OPERATIONS = (Operation.COMMIT, Operation.ABORT)
# Participants known to relay decisions during cooperative termination
RELAY_PEERS = ("HotelProvider",)


class ParticipantNode:
    """Participant node: recovers the journal, then serves one datagram endpoint"""

    def __init__(self, name, transport, journal, store, registry=None, scheduler=None,
                 tx_logger=None, escalation_interval=ESCALATION_INTERVAL, gc_delay=GC_DELAY,
                 relay_peers=RELAY_PEERS):
        self.name = name
        self.relay_peers = frozenset(relay_peers)
        self.transport = transport
        self.store = store
        self.registry = registry or ContextRegistry()
        self.scheduler = scheduler or TimeoutScheduler()
        self.scheduler.error_handler = self.fail
        self.logger = tx_logger or TransactionLogger()
        self.participant = TwoPhaseParticipant(
            name, self.registry, journal, store, transport, self.scheduler,
            tx_logger=self.logger, escalation_interval=escalation_interval, gc_delay=gc_delay,
        )
        self.running = True
        self.fatal_error = None

    def fail(self, error):
        """Report an error from a scheduler thread; journal errors stop the node"""
        if isinstance(error, JournalError):
            logger.critical("Journal failure in scheduled task: %s", error)
            self.fatal_error = error
            self.running = False
        else:
            logger.error("Scheduled task failed: %s", error, exc_info=error)

    def recover(self):
        return RecoveryEngine(self.participant).run()

    def reply_address(self, message, source):
        """
        Decisions relayed by another participant are acknowledged to our
        coordinator, not to the relaying peer.
        """
        if message.operation not in DECISION_OPERATIONS:
            return source
        context = self.registry.get(message.transaction_id)
        if context is None:
            return None if message.sender in self.relay_peers else source
        if context.find_peer(message.sender) is not None and message.sender != context.coordinator.name:
            return context.coordinator.address
        return source

    def handle_query(self, message):
        """Answer a read-only query"""
        if message.operation is Operation.GET_BOOKINGS:
            data = self.store.list_rentals()
        else:
            data = self.store.list_available(AvailabilityRequest.from_json(message.data))
        return Message(message.operation, message.transaction_id, self.name, data)

    def handle_request(self, payload, source):
        """Handle incoming datagram"""
        try:
            message = Message.decode(payload)
        except MalformedMessage as e:
            logger.error("Dropping malformed datagram from %s: %s", source, e)
            return None

        logger.info("Received %s message from %s (%s): %s",
                    message.operation.value, message.sender, source, message.data)

        try:
            if message.operation in TWO_PHASE_OPERATIONS:
                response = self.participant.handle(message)
            else:
                response = self.handle_query(message)
        except MalformedMessage as e:
            logger.error("Dropping %s from %s: %s", message.operation.value, message.sender, e)
            return None
        except StoreError as e:
            logger.error("Store failed answering %s: %s", message.operation.value, e)
            return None

        if response is None:
            return None

        address = self.reply_address(message, source)
        if address is None:
            logger.error("No context to route %s reply for %s relayed by %s; dropping",
                         response.operation.value, message.transaction_id, message.sender)
            return None
        self.transport.send(response, address)
        return response

    def serve_forever(self):
        """Receive loop; returns when stopped, raises JournalError on journal failure"""
        logger.info("Participant %s listening on %s", self.name, self.transport.address)
        while self.running and self.fatal_error is None:
            received = self.transport.receive()
            if received is not None:
                payload, source = received
                try:
                    self.handle_request(payload, source)
                except JournalError:
                    raise
                except Exception:
                    logger.exception("Unexpected error handling datagram from %s", source)
        if self.fatal_error is not None:
            raise self.fatal_error

    def start(self):
        """Start the node: recover, then serve until stopped"""
        try:
            self.recover()
            self.serve_forever()
        except JournalError as e:
            logger.critical("Journal failure, shutting down: %s", e)
            sys.exit(1)
        finally:
            self.scheduler.shutdown()
            self.transport.close()
            logger.info("Participant %s stopped", self.name)

    def stop(self):
        self.running = False
