"""Inbound chat events and the WhatsApp Cloud API webhook parser."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional
import logging

logger = logging.getLogger("reporta.events")


class EventKind(str, Enum):
    text = "text"
    image = "image"
    location = "location"


@dataclass(frozen=True)
class SharedLocation:
    lat: float
    lon: float
    label: Optional[str] = None


@dataclass(frozen=True)
class InboundEvent:
    reporter_id: str
    kind: EventKind
    text: str = ""
    image_ref: Optional[str] = None
    image_mime_type: Optional[str] = None
    location: Optional[SharedLocation] = None
    # Transport message id, used to drop exact redeliveries
    delivery_id: Optional[str] = None


def _parse_message(msg: Dict[str, Any]) -> Optional[InboundEvent]:
    reporter_id = msg.get("from")
    if not reporter_id:
        return None
    delivery_id = msg.get("id")
    msg_type = msg.get("type")

    if msg_type == "image" or "image" in msg:
        image = msg.get("image")
        if not isinstance(image, dict):
            image = {}
        return InboundEvent(
            reporter_id=reporter_id,
            kind=EventKind.image,
            text=(image.get("caption") or "").strip(),
            image_ref=image.get("id"),
            image_mime_type=image.get("mime_type"),
            delivery_id=delivery_id,
        )

    if msg_type == "location" or "location" in msg:
        loc = msg.get("location") or {}
        try:
            shared = SharedLocation(
                lat=float(loc["latitude"]),
                lon=float(loc["longitude"]),
                label=loc.get("address") or loc.get("name"),
            )
        except (KeyError, TypeError, ValueError):
            logger.warning("Ignoring malformed location payload from %s", reporter_id)
            shared = None
        return InboundEvent(
            reporter_id=reporter_id,
            kind=EventKind.location,
            location=shared,
            delivery_id=delivery_id,
        )

    # Text and anything we do not understand (audio, stickers...) become text
    # events so the engine re-prompts for the current step.
    body = msg.get("text")
    text = ((body.get("body") if isinstance(body, dict) else None) or "").strip()
    return InboundEvent(
        reporter_id=reporter_id,
        kind=EventKind.text,
        text=text,
        delivery_id=delivery_id,
    )


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def parse_webhook(payload: Any) -> List[InboundEvent]:
    """Extract every message of a WhatsApp Cloud webhook payload."""
    events: List[InboundEvent] = []
    if not isinstance(payload, dict):
        return events
    for entry in _as_list(payload.get("entry")):
        for change in _as_list(entry.get("changes") if isinstance(entry, dict) else None):
            value = change.get("value") if isinstance(change, dict) else None
            if not isinstance(value, dict):
                continue
            for msg in _as_list(value.get("messages")):
                if not isinstance(msg, dict):
                    continue
                event = _parse_message(msg)
                if event is not None:
                    events.append(event)
    return events


__all__ = ["EventKind", "SharedLocation", "InboundEvent", "parse_webhook"]
