from __future__ import annotations

import json

import pytest

from event_relay.errors import ValidationFailure
from event_relay.events import Event, EventContext, Group, User, parse_event, validate_payload


def test_round_trip_through_bytes() -> None:
    original = Event(event_type="purchase", properties={"amount": 12.5})

    parsed = parse_event(original.to_bytes())

    assert parsed.event_id == original.event_id
    assert parsed.properties == {"amount": 12.5}


@pytest.mark.parametrize(
    "payload",
    [
        b"",
        b"not json",
        b"[]",
        json.dumps({"event_type": ""}).encode(),
        json.dumps({"properties": {}}).encode(),
    ],
)
def test_invalid_payloads_fail_validation(payload: bytes) -> None:
    assert validate_payload(payload) is False
    with pytest.raises(ValidationFailure):
        parse_event(payload)


def test_context_merge_prefers_newer_layer() -> None:
    base = EventContext(user=User(id="a"), extra={"app": "web", "region": "eu"})
    layer = EventContext(group=Group(id="g"), extra={"region": "us"})

    merged = base.merge(layer)

    assert merged.user.id == "a"
    assert merged.group.id == "g"
    assert merged.extra == {"app": "web", "region": "us"}


def test_event_context_wins_over_client_context() -> None:
    event = Event(event_type="identify", context=EventContext(user=User(id="event-user")))

    applied = event.with_context(EventContext(user=User(id="client-user"), extra={"k": 1}))

    assert applied.context.user.id == "event-user"
    assert applied.context.extra == {"k": 1}
    assert event.context.extra == {}
