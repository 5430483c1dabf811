import json
import logging

import pytest

from services import events
from services.events import EventPublisher, InMemoryEventPublisher, LogEventPublisher, build_publisher


def test_publisher_interface_cannot_be_instantiated():
    with pytest.raises(TypeError):
        EventPublisher()


def test_log_publisher_writes_the_envelope(caplog):
    with caplog.at_level(logging.INFO, logger="services.events"):
        LogEventPublisher().publish(events.USER_REGISTERED, {"user_id": "u1"})

    message = caplog.records[-1].getMessage()
    envelope = json.loads(message.split(" ", 1)[1])
    assert envelope["type"] == events.USER_REGISTERED
    assert envelope["payload"] == {"user_id": "u1"}
    assert "occurred_at" in envelope


def test_in_memory_and_log_envelopes_share_a_shape(caplog):
    memory = InMemoryEventPublisher()
    memory.publish(events.USER_LOGGED_IN, {"user_id": "u2"})
    with caplog.at_level(logging.INFO, logger="services.events"):
        LogEventPublisher().publish(events.USER_LOGGED_IN, {"user_id": "u2"})

    logged = json.loads(caplog.records[-1].getMessage().split(" ", 1)[1])
    assert set(logged) == set(memory.events[0])


def test_build_publisher_defaults_to_log():
    assert isinstance(build_publisher({}), LogEventPublisher)
    assert isinstance(build_publisher({"EVENT_PUBLISHER": "memory"}), InMemoryEventPublisher)
