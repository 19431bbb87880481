"""Durable journal of participant contexts"""

import uuid

import pytest

from participant.context import DecisionWaiter, ParticipantContext, State, Vote
from participant.exceptions import JournalError
from participant.journal import Journal
from tests.helpers import SELF_NAME, coordinator_context, read_record


def new_context(tx_id=None):
    tx_id = tx_id or uuid.uuid4()
    return ParticipantContext.from_coordinator_context(tx_id, coordinator_context(tx_id), SELF_NAME)


class TestJournalWrite:

    def test_write_then_read_all_restores_context(self, journal):
        context = new_context()
        context.me.vote = Vote.YES
        context.me.booking_id = uuid.uuid4()
        journal.write(context)

        [restored] = journal.read_all()
        assert restored.transaction_id == context.transaction_id
        assert restored.coordinator == context.coordinator
        assert restored.me.name == SELF_NAME
        assert restored.me.vote is Vote.YES
        assert restored.me.booking_id == context.me.booking_id
        assert restored.me.booking_context == context.me.booking_context
        assert [p.name for p in restored.peers()] == ["HotelProvider"]

    def test_write_replaces_previous_record(self, journal):
        context = new_context()
        journal.write(context)
        context.decide(State.ABORT)
        context.me.done = True
        journal.write(context)

        assert read_record(journal, context.transaction_id)["state"] == "ABORT"
        assert len(journal.read_all()) == 1

    def test_decision_waiter_is_not_persisted(self, journal):
        context = new_context()
        context.me.decision_waiter = DecisionWaiter()
        journal.write(context)
        assert "decision_waiter" not in read_record(journal, context.transaction_id)["participants"][1]
        assert journal.read_all()[0].me.decision_waiter is None

    def test_write_failure_is_a_journal_error(self, tmp_path):
        journal = Journal(tmp_path / "journal")
        journal.directory.rmdir()
        with pytest.raises(JournalError):
            journal.write(new_context())


class TestJournalDelete:

    def test_delete_removes_record(self, journal):
        context = new_context()
        journal.write(context)
        assert journal.delete(context.transaction_id) is True
        assert journal.read_all() == []

    def test_delete_of_missing_record_is_harmless(self, journal):
        assert journal.delete(uuid.uuid4()) is False


class TestJournalReadAll:

    def test_discards_interrupted_write(self, journal):
        context = new_context()
        journal.write(context)
        leftover = journal.directory / f".{uuid.uuid4()}.json.tmp"
        leftover.write_text('{"transaction_id": ')

        assert [c.transaction_id for c in journal.read_all()] == [context.transaction_id]
        assert not leftover.exists()

    def test_ignores_foreign_files(self, journal):
        (journal.directory / "README.json").write_text("{}")
        (journal.directory / "notes.txt").write_text("hello")
        assert journal.read_all() == []

    def test_corrupt_record_is_fatal(self, journal):
        journal.path_for(uuid.uuid4()).write_text("{not json")
        with pytest.raises(JournalError):
            journal.read_all()

    def test_unusable_directory_is_fatal(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        with pytest.raises(JournalError):
            Journal(blocker / "journal")
