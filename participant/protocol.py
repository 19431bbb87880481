"""
Two-phase commit participant state machine.

Each transaction moves PREPARE -> COMMIT | ABORT and is forgotten a fixed
delay after its decision has been applied locally. Every state change is
journalled before the reply is returned to the dispatcher, so a reply on the
wire always describes durable state.
"""

import logging

from .context import DecisionWaiter, ParticipantContext, State, Vote
from .exceptions import StoreError
from .logger import TransactionLogger
from .message import CoordinatorContext, Message, Operation, TransactionResult

logger = logging.getLogger(__name__)

ESCALATION_INTERVAL = 10.0
GC_DELAY = 60.0


class TwoPhaseParticipant:
    """Applies 2PC messages to the contexts held in the registry"""

    def __init__(self, name, registry, journal, store, transport, scheduler,
                 tx_logger=None, escalation_interval=ESCALATION_INTERVAL, gc_delay=GC_DELAY):
        self.name = name
        self.registry = registry
        self.journal = journal
        self.store = store
        self.transport = transport
        self.scheduler = scheduler
        self.tx_logger = tx_logger or TransactionLogger()
        self.escalation_interval = escalation_interval
        self.gc_delay = gc_delay

    # --- replies ---

    def _result(self, operation, transaction_id, success):
        return Message(operation, transaction_id, self.name, TransactionResult(success).to_json())

    def _decision(self, state, transaction_id):
        operation = Operation.COMMIT if state is State.COMMIT else Operation.ABORT
        return Message(operation, transaction_id, self.name, "")

    def handle(self, message):
        """Route a 2PC message; returns the reply or None"""
        handlers = {
            Operation.PREPARE: self.prepare,
            Operation.COMMIT: self.commit,
            Operation.ABORT: self.abort,
            Operation.RESULT: self.result,
        }
        return handlers[message.operation](message)

    # --- PREPARE ---

    def prepare(self, message):
        tx_id = message.transaction_id
        # Parse before taking the lock so a malformed payload creates nothing
        coordinator_context = CoordinatorContext.from_json(message.data)

        with self.registry.lock(tx_id):
            context = self.registry.get(tx_id)
            if context is not None:
                success = context.me.vote is Vote.YES and context.state is not State.ABORT
                self.tx_logger.log(tx_id, "PREPARE-DUPLICATE", f"state={context.state.value} vote={context.me.vote.value}")
                return self._result(Operation.PREPARE, tx_id, success)

            context = ParticipantContext.from_coordinator_context(tx_id, coordinator_context, self.name)
            # Write-ahead: the record exists before the store is touched
            self.journal.write(context)
            self.registry.put(context)

            me = context.me
            try:
                booking_id = self.store.tentative_reserve(me.booking_context, tx_id)
            except StoreError as e:
                logger.error("Reservation for %s failed: %s", tx_id, e)
                booking_id = None

            if booking_id is None:
                me.vote = Vote.NO
            else:
                me.vote = Vote.YES
                me.booking_id = booking_id
            self.journal.write(context)
            self.tx_logger.log(tx_id, "PREPARED", f"vote={me.vote.value} booking={booking_id}")

            if me.vote is Vote.YES:
                self.watch_in_doubt(context)
            return self._result(Operation.PREPARE, tx_id, me.vote is Vote.YES)

    # --- COMMIT / ABORT ---

    def commit(self, message):
        tx_id = message.transaction_id
        with self.registry.lock(tx_id):
            context = self.registry.get(tx_id)
            if context is None:
                # Unknown here means never prepared or already collected
                self.tx_logger.log(tx_id, "COMMIT-UNKNOWN", "replying success")
                return self._result(Operation.COMMIT, tx_id, True)

            if context.state is State.ABORT:
                logger.error("COMMIT received for %s which is already aborted", tx_id)
                return self._result(Operation.COMMIT, tx_id, False)

            if context.state is State.PREPARE and context.me.vote is not Vote.YES:
                logger.error("COMMIT received for %s but this participant voted %s",
                             tx_id, context.me.vote.value)
                return self._result(Operation.COMMIT, tx_id, False)

            if context.state is State.COMMIT and context.me.done:
                return self._result(Operation.COMMIT, tx_id, True)

            if not self.apply_commit(context):
                return None
            return self._result(Operation.COMMIT, tx_id, True)

    def abort(self, message):
        tx_id = message.transaction_id
        with self.registry.lock(tx_id):
            context = self.registry.get(tx_id)
            if context is None:
                self.tx_logger.log(tx_id, "ABORT-UNKNOWN", "replying success")
                return self._result(Operation.ABORT, tx_id, True)

            if context.state is State.COMMIT:
                logger.error("ABORT received for %s which is already committed", tx_id)
                return self._result(Operation.ABORT, tx_id, False)

            if context.state is State.ABORT and context.me.done:
                return self._result(Operation.ABORT, tx_id, True)

            if not self.apply_abort(context):
                return None
            return self._result(Operation.ABORT, tx_id, True)

    def apply_commit(self, context):
        """
        Confirm the booking and journal COMMIT.

        Returns False, leaving the context untouched, when the store fails;
        the coordinator's resend retries. Caller holds the transaction lock.
        """
        me = context.me
        if not self.store.confirm(me.booking_id):
            logger.error("Store failed to confirm booking %s for %s", me.booking_id, context.transaction_id)
            return False
        context.decide(State.COMMIT)
        me.done = True
        self.journal.write(context)
        self.tx_logger.log(context.transaction_id, "COMMITTED", f"booking={me.booking_id}")
        self._decided(context)
        return True

    def apply_abort(self, context):
        """Release the booking (if any) and journal ABORT; caller holds the lock"""
        me = context.me
        if me.booking_id is not None:
            released = self.store.release(me.booking_id)
        elif me.vote is Vote.UNDECIDED:
            # Crashed between the write-ahead record and the vote
            released = self.store.release_transaction(context.transaction_id)
        else:
            released = True
        if not released:
            logger.error("Store failed to release booking %s for %s", me.booking_id, context.transaction_id)
            return False
        if me.vote is Vote.UNDECIDED:
            me.vote = Vote.NO
        context.decide(State.ABORT)
        me.done = True
        self.journal.write(context)
        self.tx_logger.log(context.transaction_id, "ABORTED", f"booking={me.booking_id}")
        self._decided(context)
        return True

    def _decided(self, context):
        waiter = context.me.decision_waiter
        if waiter is not None:
            waiter.complete()
            context.me.decision_waiter = None
        self.schedule_collection(context.transaction_id)

    # --- RESULT ---

    def result(self, message):
        """Answer a peer asking for the outcome; silent while we are in doubt ourselves"""
        tx_id = message.transaction_id
        with self.registry.lock(tx_id):
            context = self.registry.get(tx_id)
            if context is None:
                self.tx_logger.log(tx_id, "RESULT-UNKNOWN", f"asked by {message.sender}")
                return None
            if context.state is State.PREPARE:
                self.tx_logger.log(tx_id, "RESULT-IN-DOUBT", f"asked by {message.sender}")
                return None
            return self._decision(context.state, tx_id)

    # --- timers ---

    def schedule_collection(self, transaction_id):
        self.scheduler.call_later(self.gc_delay, self.collect, transaction_id)

    def collect(self, transaction_id):
        """Forget a decided transaction: journal record first, then the registry entry"""
        with self.registry.lock(transaction_id):
            context = self.registry.get(transaction_id)
            if context is not None and not (context.is_terminal and context.me.done):
                logger.warning("Skipping collection of undecided transaction %s", transaction_id)
                return
            self.journal.delete(transaction_id)
            self.registry.remove(transaction_id)
        self.tx_logger.log(transaction_id, "COLLECTED")

    def watch_in_doubt(self, context):
        """Arm the coordinator-silence watch; caller holds the lock"""
        waiter = DecisionWaiter()
        context.me.decision_waiter = waiter
        tx_id = context.transaction_id
        self.scheduler.watch(waiter, self.escalation_interval, lambda: self.escalate(tx_id))

    def escalate(self, transaction_id):
        """
        Ask every other participant for the outcome.

        Returns False once the transaction is no longer in doubt, which stops
        the watch.
        """
        with self.registry.lock(transaction_id):
            context = self.registry.get(transaction_id)
            if context is None or not context.in_doubt:
                return False
            peers = context.peers()

        self.tx_logger.log(transaction_id, "ESCALATE", f"coordinator silent, asking {[p.name for p in peers]}")
        query = Message(Operation.RESULT, transaction_id, self.name, "")
        for peer in peers:
            self.transport.send(query, peer.address)
        return True
