import logging

from .context import State, Vote
from .message import Message, Operation, TransactionResult

logger = logging.getLogger(__name__)


class RecoveryEngine:
    """
    Replays the journal before the dispatcher accepts traffic.

    Decided transactions are re-applied and re-announced to the coordinator;
    transactions that never voted YES are aborted; in-doubt transactions ask
    the coordinator for the outcome and arm the in-doubt watch.
    """

    def __init__(self, participant):
        self.participant = participant

    @property
    def name(self):
        return self.participant.name

    def _announce(self, context, operation, success=True):
        message = Message(operation, context.transaction_id, self.name, TransactionResult(success).to_json())
        self.participant.transport.send(message, context.coordinator.address)

    def run(self):
        """Recover every journalled transaction; returns how many were restored"""
        contexts = self.participant.journal.read_all()
        logger.info("Recovering %d journalled transaction(s)", len(contexts))
        for context in contexts:
            self.recover(context)
        logger.info("Recovery complete")
        return len(contexts)

    def recover(self, context):
        participant = self.participant
        tx_id = context.transaction_id
        with participant.registry.lock(tx_id):
            participant.registry.put(context)
            me = context.me
            participant.tx_logger.log(tx_id, "RECOVER", f"state={context.state.value} vote={me.vote.value}")

            if context.state is State.PREPARE:
                if me.vote is Vote.YES:
                    self._recover_in_doubt(context)
                else:
                    self._recover_unvoted(context)
            elif context.state is State.COMMIT:
                self._recover_decided(context, participant.apply_commit, Operation.COMMIT)
            else:
                self._recover_decided(context, participant.apply_abort, Operation.ABORT)

    def _recover_in_doubt(self, context):
        query = Message(Operation.RESULT, context.transaction_id, self.name, "")
        self.participant.transport.send(query, context.coordinator.address)
        self.participant.watch_in_doubt(context)

    def _recover_unvoted(self, context):
        # Never replied YES, so the coordinator cannot have committed
        if not self.participant.apply_abort(context):
            logger.error("Could not release rentals of %s; leaving it for the coordinator",
                         context.transaction_id)
            return
        self._announce(context, Operation.ABORT)

    def _recover_decided(self, context, apply, operation):
        # Replaying confirm or release is idempotent in the store
        if not apply(context):
            logger.error("Could not replay %s for %s; awaiting redelivery",
                         operation.value, context.transaction_id)
            return
        self._announce(context, operation)
