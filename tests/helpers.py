"""Test doubles and event builders shared by the test modules."""

from typing import Dict, List, Optional, Tuple

from reporta.errors import PersistenceError, UpstreamError
from reporta.events import EventKind, InboundEvent, SharedLocation
from reporta.geo import BoundingBox, Coordinates
from reporta.geocoder import Geocoder
from reporta.media import MediaFetcher
from reporta.models import Report, priority_for
from reporta.notifier import Notifier

TULUM = (20.2, -87.4)
ADMIN_TOKEN = "mod-secret"
ADMIN_PHONE = "5219840000000"


class RecordingNotifier(Notifier):
    def __init__(self) -> None:
        self.sent: List[Tuple[str, str]] = []

    async def send(self, recipient_id: str, text: str) -> bool:
        self.sent.append((recipient_id, text))
        return True

    def texts_for(self, recipient_id: str) -> List[str]:
        return [text for rid, text in self.sent if rid == recipient_id]

    def last_for(self, recipient_id: str) -> Optional[str]:
        texts = self.texts_for(recipient_id)
        return texts[-1] if texts else None


class FakeMedia(MediaFetcher):
    def __init__(self) -> None:
        self.calls: List[str] = []
        self.fail = False

    async def fetch(self, media_id: str, mime_type: Optional[str] = None) -> str:
        self.calls.append(media_id)
        if self.fail:
            raise UpstreamError("media", "download failed")
        return f"https://cdn.test/{media_id}.jpg"


class FakeGeocoder(Geocoder):
    def __init__(self) -> None:
        self.results: Dict[str, Coordinates] = {}
        self.queries: List[str] = []
        self.fail = False

    async def geocode(self, address: str, box: BoundingBox) -> Optional[Coordinates]:
        self.queries.append(address)
        if self.fail:
            raise UpstreamError("geocoder", "timeout")
        return self.results.get(address)


class FlakyRepository:
    """Wraps a repository and fails the next `failures` inserts."""

    def __init__(self, inner, failures: int = 1) -> None:
        self._inner = inner
        self.failures = failures
        self.insert_calls = 0

    async def insert(self, report: Report) -> Report:
        self.insert_calls += 1
        if self.failures > 0:
            self.failures -= 1
            raise PersistenceError("database unavailable")
        return await self._inner.insert(report)

    def __getattr__(self, name):
        return getattr(self._inner, name)


def text(reporter_id: str, body: str, delivery_id: Optional[str] = None) -> InboundEvent:
    return InboundEvent(reporter_id=reporter_id, kind=EventKind.text, text=body, delivery_id=delivery_id)


def image(reporter_id: str, media_id: str = "media-1", caption: str = "") -> InboundEvent:
    return InboundEvent(
        reporter_id=reporter_id,
        kind=EventKind.image,
        text=caption,
        image_ref=media_id,
        image_mime_type="image/jpeg",
    )


def location(reporter_id: str, lat: float, lon: float, label: Optional[str] = None) -> InboundEvent:
    return InboundEvent(
        reporter_id=reporter_id,
        kind=EventKind.location,
        location=SharedLocation(lat=lat, lon=lon, label=label),
    )


def make_report(reporter_id: str = "5219841111111", severity: int = 3, **overrides) -> Report:
    fields = dict(
        reporter_id=reporter_id,
        category="Calles y Carreteras 🚗",
        subcategory="Hoyo en la calle",
        description="hoyo grande",
        photo_urls=["https://cdn.test/media-1.jpg"],
        lat=TULUM[0],
        lon=TULUM[1],
        landmark="frente a tienda",
        severity=severity,
        priority=priority_for(severity),
    )
    fields.update(overrides)
    return Report(**fields)


async def run_full_flow(engine, reporter_id: str, location_text: str = "20.2,-87.4", severity: str = "4"):
    """Drive a reporter from the greeting through to submission."""
    steps = [
        text(reporter_id, "hola"),
        text(reporter_id, "1"),
        text(reporter_id, "1"),
        image(reporter_id),
        text(reporter_id, "hoyo grande"),
        text(reporter_id, location_text),
        text(reporter_id, "frente a tienda"),
        text(reporter_id, severity),
    ]
    step = None
    for event in steps:
        step = await engine.handle(event)
    return step
