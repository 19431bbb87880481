"""
Shared fixtures for the participant test suite.

The 2PC core is exercised against in-memory fakes for the store, the socket
and the scheduler; only the datastore tests touch the Django test database.
"""

import uuid

import pytest

from participant.journal import Journal
from participant.logger import TransactionLogger
from participant.node import ParticipantNode
from participant.protocol import TwoPhaseParticipant
from participant.registry import ContextRegistry
from tests.helpers import SELF_NAME, FakeStore, FakeTransport, ManualScheduler, prepare_message


@pytest.fixture
def tx_id():
    return uuid.uuid4()


@pytest.fixture
def journal(tmp_path):
    return Journal(tmp_path / "journal")


@pytest.fixture
def registry():
    return ContextRegistry()


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def tx_logger():
    return TransactionLogger()


@pytest.fixture
def participant(registry, journal, store, transport, scheduler, tx_logger):
    return TwoPhaseParticipant(SELF_NAME, registry, journal, store, transport, scheduler, tx_logger=tx_logger)


@pytest.fixture
def node(registry, journal, store, transport, scheduler, tx_logger):
    return ParticipantNode(SELF_NAME, transport, journal, store, registry=registry,
                           scheduler=scheduler, tx_logger=tx_logger)


@pytest.fixture
def prepared(participant, tx_id):
    """A transaction this participant voted YES on"""
    participant.prepare(prepare_message(tx_id))
    return participant.registry.get(tx_id)
