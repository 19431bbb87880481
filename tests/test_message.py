"""Envelope and payload decoding"""

import json
import uuid
from datetime import date

import pytest

from participant.exceptions import MalformedMessage
from participant.message import (MAX_DATAGRAM_SIZE, AvailabilityRequest, CoordinatorContext, Message,
                                 Operation, TransactionResult)
from tests.helpers import CAR_ID, COORDINATOR, coordinator_context


def envelope(**fields):
    body = {"operation": "COMMIT", "transactionId": str(uuid.uuid4()), "sender": "TravelBroker", "data": ""}
    body.update(fields)
    return json.dumps(body).encode("utf-8")


class TestEnvelope:

    def test_decodes_two_phase_envelope(self):
        tx_id = uuid.uuid4()
        message = Message.decode(envelope(operation="PREPARE", transactionId=str(tx_id), data="{}"))
        assert message.operation is Operation.PREPARE
        assert message.transaction_id == tx_id
        assert message.sender == "TravelBroker"
        assert message.data == "{}"

    def test_encoded_envelope_uses_wire_field_names(self):
        tx_id = uuid.uuid4()
        raw = json.loads(Message(Operation.RESULT, tx_id, "CarProvider").encode())
        assert raw == {"operation": "RESULT", "transactionId": str(tx_id), "sender": "CarProvider", "data": ""}

    def test_read_only_query_needs_no_transaction_id(self):
        message = Message.decode(envelope(operation="GET_BOOKINGS", transactionId=None))
        assert message.transaction_id is None

    def test_null_data_becomes_empty_string(self):
        assert Message.decode(envelope(data=None)).data == ""

    @pytest.mark.parametrize("payload", [
        b"not json",
        b"\xff\xfe",
        envelope(operation="DELETE_EVERYTHING"),
        envelope(operation=None),
        envelope(transactionId=None),
        envelope(transactionId="not-a-uuid"),
        envelope(data={"nested": True}),
    ])
    def test_rejects_malformed_envelopes(self, payload):
        with pytest.raises(MalformedMessage):
            Message.decode(payload)

    def test_rejects_deeply_nested_json(self):
        payload = b"[" * 8000 + b"]" * 8000
        assert len(payload) <= MAX_DATAGRAM_SIZE
        with pytest.raises(MalformedMessage):
            Message.decode(payload)

    def test_rejects_deeply_nested_payload(self):
        with pytest.raises(MalformedMessage):
            CoordinatorContext.from_json('{"a": ' * 5000 + "1" + "}" * 5000)

    def test_rejects_oversized_datagram(self):
        payload = envelope(data="x" * MAX_DATAGRAM_SIZE)
        assert len(payload) > MAX_DATAGRAM_SIZE
        with pytest.raises(MalformedMessage):
            Message.decode(payload)

    def test_refuses_to_encode_oversized_envelope(self):
        with pytest.raises(MalformedMessage):
            Message(Operation.GET_BOOKINGS, None, "CarProvider", "x" * MAX_DATAGRAM_SIZE).encode()


class TestPayloads:

    def test_coordinator_context_survives_the_wire(self):
        tx_id = uuid.uuid4()
        parsed = CoordinatorContext.from_json(coordinator_context(tx_id).to_json())
        assert parsed.transaction_id == tx_id
        assert parsed.coordinator == COORDINATOR
        car = parsed.participants[1]
        assert car.peer.name == "CarProvider"
        assert car.booking_context.resource_id == CAR_ID
        assert car.booking_context.start_date == date(2024, 6, 1)
        assert car.booking_context.number_of_persons == 2

    def test_peer_accepts_url_as_host(self):
        raw = json.loads(coordinator_context().to_json())
        raw["coordinator"] = {"name": "TravelBroker", "url": "10.0.0.1", "port": 5000}
        assert CoordinatorContext.from_json(json.dumps(raw)).coordinator.host == "10.0.0.1"

    @pytest.mark.parametrize("mutate", [
        lambda raw: raw.pop("coordinator"),
        lambda raw: raw.update(participants=[]),
        lambda raw: raw["participants"][1]["bookingContext"].update(startDate="01.06.2024"),
        lambda raw: raw["participants"][1]["bookingContext"].update(numberOfPersons="two"),
        lambda raw: raw["participants"][1].pop("port"),
    ])
    def test_rejects_malformed_coordinator_context(self, mutate):
        raw = json.loads(coordinator_context().to_json())
        mutate(raw)
        with pytest.raises(MalformedMessage):
            CoordinatorContext.from_json(json.dumps(raw))

    def test_coordinator_context_must_be_json(self):
        with pytest.raises(MalformedMessage):
            CoordinatorContext.from_json("booking-id-1234")

    def test_transaction_result(self):
        assert TransactionResult.from_json('{"success": true}').success is True
        assert json.loads(TransactionResult(False).to_json()) == {"success": False}
        with pytest.raises(MalformedMessage):
            TransactionResult.from_json('{"success": "yes"}')

    def test_availability_request(self):
        request = AvailabilityRequest.from_json(
            '{"startDate": "2024-06-01", "endDate": "2024-06-03", "numberOfPersons": 4}')
        assert request == AvailabilityRequest(date(2024, 6, 1), date(2024, 6, 3), 4)
        with pytest.raises(MalformedMessage):
            AvailabilityRequest.from_json('{"startDate": "2024-06-01"}')
