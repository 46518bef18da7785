import asyncio

import pytest

from reporta.dispatcher import EventDispatcher
from reporta.events import EventKind, parse_webhook
from reporta.sessions import Step

from helpers import text


def webhook_payload(*messages):
    return {
        "object": "whatsapp_business_account",
        "entry": [{"id": "1", "changes": [{"field": "messages", "value": {"messages": list(messages)}}]}],
    }


def text_message(sender, body, msg_id="wamid.1"):
    return {"from": sender, "id": msg_id, "type": "text", "text": {"body": body}}


def test_parse_text_image_and_location():
    events = parse_webhook(
        webhook_payload(
            text_message("521", "  hola  "),
            {"from": "521", "id": "wamid.2", "type": "image",
             "image": {"id": "media-9", "mime_type": "image/jpeg", "caption": "mira"}},
            {"from": "521", "id": "wamid.3", "type": "location",
             "location": {"latitude": 20.2, "longitude": -87.4, "name": "Parque"}},
        )
    )

    assert [e.kind for e in events] == [EventKind.text, EventKind.image, EventKind.location]
    assert events[0].text == "hola"
    assert events[0].delivery_id == "wamid.1"
    assert events[1].image_ref == "media-9"
    assert events[1].image_mime_type == "image/jpeg"
    assert events[1].text == "mira"
    assert (events[2].location.lat, events[2].location.lon) == (20.2, -87.4)
    assert events[2].location.label == "Parque"


def test_parse_unknown_type_becomes_empty_text():
    events = parse_webhook(webhook_payload({"from": "521", "id": "wamid.4", "type": "audio", "audio": {"id": "a"}}))

    assert len(events) == 1
    assert events[0].kind == EventKind.text
    assert events[0].text == ""


def test_parse_malformed_location():
    events = parse_webhook(
        webhook_payload({"from": "521", "type": "location", "location": {"latitude": "north"}})
    )
    assert events[0].kind == EventKind.location
    assert events[0].location is None


@pytest.mark.parametrize(
    "payload",
    [None, [], {}, {"entry": None}, {"entry": [{"changes": [{"value": {"statuses": [{}]}}]}]},
     webhook_payload({"id": "no-sender", "type": "text", "text": {"body": "x"}})],
)
def test_parse_ignores_payloads_without_messages(payload):
    assert parse_webhook(payload) == []


def test_parse_walks_every_entry_and_change():
    payload = {
        "entry": [
            {"changes": [{"value": {"messages": [text_message("a", "1", "m1")]}},
                         {"value": {"messages": [text_message("b", "2", "m2")]}}]},
            {"changes": [{"value": {"messages": [text_message("c", "3", "m3")]}}]},
        ]
    }
    assert [e.reporter_id for e in parse_webhook(payload)] == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_dispatcher_keeps_per_reporter_order(engine):
    dispatcher = EventDispatcher(engine)
    for body in ["hola", "1", "1"]:
        dispatcher.submit(text("521", body))
    dispatcher.submit(text("522", "hola"))

    await dispatcher.join()

    assert engine.store.get("521").step == Step.AWAITING_PHOTO
    assert engine.store.get("522").step == Step.AWAITING_CATEGORY
    assert dispatcher.busy_reporters == 0


class ExplodingEngine:
    def __init__(self):
        self.handled = []

    async def handle(self, event):
        await asyncio.sleep(0)
        self.handled.append(event.text)
        if event.text == "boom":
            raise RuntimeError("unexpected")


@pytest.mark.asyncio
async def test_dispatcher_survives_engine_errors():
    engine = ExplodingEngine()
    dispatcher = EventDispatcher(engine)
    for body in ["a", "boom", "b"]:
        dispatcher.submit(text("521", body))

    await dispatcher.join()

    assert engine.handled == ["a", "boom", "b"]
