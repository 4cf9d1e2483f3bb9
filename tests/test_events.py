import dataclasses
import uuid

import pytest

from rapidnet.events import ClientEvent, EventKind, ServerEvent


def test_client_event_message():
    client_id = uuid.uuid4()
    event = ClientEvent(EventKind.MESSAGE, client_id, message=b"TestKey")
    assert event.kind is EventKind.MESSAGE
    assert event.client_id == client_id
    assert event.message == b"TestKey"
    assert event.error is None


def test_client_event_connected():
    client_id = uuid.uuid4()
    event = ClientEvent(EventKind.CONNECTED, client_id)
    assert event.kind is EventKind.CONNECTED
    assert event.client_id == client_id


def test_client_event_disconnected():
    client_id = uuid.uuid4()
    event = ClientEvent(EventKind.DISCONNECTED, client_id)
    assert event.kind is EventKind.DISCONNECTED
    assert event.client_id == client_id


def test_client_event_error():
    client_id = uuid.uuid4()
    error_message = "Test error message"
    event = ClientEvent(EventKind.ERROR, client_id, error=error_message)
    assert event.kind is EventKind.ERROR
    assert event.client_id == client_id
    assert event.error == error_message


def test_server_event_message():
    client_id = uuid.uuid4()
    event = ServerEvent(EventKind.MESSAGE, client_id, message=b"TestValue")
    assert event.client_id == client_id
    assert event.message == b"TestValue"


def test_kind_accepts_its_value_string():
    event = ServerEvent("connected", uuid.uuid4())
    assert event.kind is EventKind.CONNECTED


def test_unknown_kind_is_rejected():
    with pytest.raises(ValueError):
        ClientEvent("exploded", uuid.uuid4())


def test_message_event_requires_message():
    with pytest.raises(ValueError):
        ClientEvent(EventKind.MESSAGE, uuid.uuid4())


def test_error_event_requires_error():
    with pytest.raises(ValueError):
        ServerEvent(EventKind.ERROR, uuid.uuid4())


def test_events_are_immutable():
    event = ClientEvent(EventKind.CONNECTED, uuid.uuid4())
    with pytest.raises(dataclasses.FrozenInstanceError):
        event.client_id = uuid.uuid4()


def test_events_compare_by_value():
    client_id = uuid.uuid4()
    assert ClientEvent(EventKind.DISCONNECTED, client_id) == ClientEvent(
        EventKind.DISCONNECTED, client_id
    )
    assert ClientEvent(EventKind.CONNECTED, client_id) != ClientEvent(
        EventKind.DISCONNECTED, client_id
    )