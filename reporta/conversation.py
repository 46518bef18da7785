"""
Conversation engine: the per-reporter questionnaire state machine.

One inbound event moves a reporter at most one step forward. Step handlers
run their side effects (photo download, geocoding, persistence) first and
only then write the session, so a failing collaborator leaves the reporter at
the step they were on and they can simply send the same answer again.
"""

from __future__ import annotations

from typing import Optional, Tuple
import logging

from . import messages
from .catalog import Catalog
from .edit_links import EditLinkResolver
from .errors import PersistenceError, ReportaError, UpstreamError, ValidationError
from .events import EventKind, InboundEvent
from .geo import BoundingBox, Coordinates, ensure_in_region, parse_coordinates
from .geocoder import Geocoder
from .media import MediaFetcher
from .models import MAX_SEVERITY, MIN_SEVERITY, Report, ReportStatus, priority_for
from .notifier import ModeratorAlerts, Notifier
from .observability import conversation_events_total, reports_submitted_total
from .repository import ReportRepository
from .sessions import DeliveryLog, Session, SessionStore, Step

logger = logging.getLogger("reporta.conversation")

CANCEL_WORDS = {"cancelar", "cancel"}
REQUIRED_ANSWERS = ("category", "description", "photo_urls")


class ConversationEngine:
    def __init__(
        self,
        store: SessionStore,
        catalog: Catalog,
        notifier: Notifier,
        media: MediaFetcher,
        geocoder: Geocoder,
        repository: ReportRepository,
        edit_links: EditLinkResolver,
        moderator_alerts: ModeratorAlerts,
        region: BoundingBox,
        public_base_url: str,
        moderation_panel_url: str,
        deliveries: Optional[DeliveryLog] = None,
    ) -> None:
        self.store = store
        self.catalog = catalog
        self._notifier = notifier
        self._media = media
        self._geocoder = geocoder
        self._repository = repository
        self._edit_links = edit_links
        self._alerts = moderator_alerts
        self._region = region
        self._public_base_url = public_base_url.rstrip("/")
        self._panel_url = moderation_panel_url
        self._deliveries = deliveries or DeliveryLog()

    async def handle(self, event: InboundEvent) -> Step:
        """Process one inbound event and return the reporter's resulting step."""
        reporter_id = event.reporter_id
        async with self.store.hold(reporter_id):
            if event.delivery_id and self._deliveries.seen(event.delivery_id):
                logger.info("Dropping repeated delivery %s from %s", event.delivery_id, reporter_id)
                conversation_events_total.labels(step="-", outcome="duplicate").inc()
                return self.store.get(reporter_id).step

            session = self.store.get(reporter_id)
            try:
                step = await self._dispatch(event, session)
                outcome = "advanced"
            except ReportaError as exc:
                # Recoverable: the session was not written, re-prompt
                logger.info(
                    "Rejected input from %s at %s: %s",
                    reporter_id, session.step.value, type(exc).__name__,
                )
                await self._reply(reporter_id, exc.message)
                step = session.step
                outcome = "rejected"

            conversation_events_total.labels(step=session.step.value, outcome=outcome).inc()
            if event.delivery_id:
                self._deliveries.record(event.delivery_id)
            return step

    async def _dispatch(self, event: InboundEvent, session: Session) -> Step:
        if session.step != Step.INITIAL and event.text.strip().lower() in CANCEL_WORDS:
            self.store.reset(event.reporter_id)
            await self._reply(event.reporter_id, messages.CANCELLED)
            return Step.INITIAL

        handler = {
            Step.INITIAL: self._on_initial,
            Step.AWAITING_CATEGORY: self._on_category,
            Step.AWAITING_SUBCATEGORY: self._on_subcategory,
            Step.AWAITING_PHOTO: self._on_photo,
            Step.AWAITING_DESCRIPTION: self._on_description,
            Step.AWAITING_LOCATION: self._on_location,
            Step.AWAITING_LANDMARK: self._on_landmark,
            Step.AWAITING_SEVERITY: self._on_severity,
        }[session.step]
        return await handler(event, session)

    async def _reply(self, reporter_id: str, text: str) -> None:
        await self._notifier.send(reporter_id, text)

    async def _restart(self, reporter_id: str) -> Step:
        self.store.reset(reporter_id)
        self.store.set(reporter_id, Step.AWAITING_CATEGORY)
        await self._reply(reporter_id, messages.category_menu(self.catalog))
        return Step.AWAITING_CATEGORY

    # ---------- step handlers ----------
    async def _on_initial(self, event: InboundEvent, session: Session) -> Step:
        return await self._restart(event.reporter_id)

    async def _on_category(self, event: InboundEvent, session: Session) -> Step:
        category = self.catalog.by_key(event.text)
        if category is None:
            raise ValidationError(messages.category_invalid(self.catalog))

        answers = {"category": category.name, "category_key": category.key}
        if not category.has_subcategories:
            answers["subcategory"] = category.other_label
            self.store.set(event.reporter_id, Step.AWAITING_PHOTO, answers)
            await self._reply(event.reporter_id, messages.PHOTO_PROMPT)
            return Step.AWAITING_PHOTO

        self.store.set(event.reporter_id, Step.AWAITING_SUBCATEGORY, answers)
        await self._reply(event.reporter_id, messages.subcategory_menu(category))
        return Step.AWAITING_SUBCATEGORY

    async def _on_subcategory(self, event: InboundEvent, session: Session) -> Step:
        category = self.catalog.by_key(session.answers.get("category_key", ""))
        if category is None:
            logger.warning("Session of %s points at unknown category; restarting", event.reporter_id)
            return await self._restart(event.reporter_id)

        subcategory = category.resolve_subcategory(event.text)
        if subcategory is None:
            raise ValidationError(messages.SUBCATEGORY_INVALID)

        self.store.set(event.reporter_id, Step.AWAITING_PHOTO, {"subcategory": subcategory})
        await self._reply(event.reporter_id, messages.PHOTO_PROMPT)
        return Step.AWAITING_PHOTO

    async def _on_photo(self, event: InboundEvent, session: Session) -> Step:
        if event.kind != EventKind.image or not event.image_ref:
            raise ValidationError(messages.PHOTO_REQUIRED)

        try:
            photo_url = await self._media.fetch(event.image_ref, event.image_mime_type)
        except UpstreamError as exc:
            raise UpstreamError("media", messages.PHOTO_FAILED) from exc

        self.store.set(event.reporter_id, Step.AWAITING_DESCRIPTION, {"photo_urls": [photo_url]})
        await self._reply(event.reporter_id, messages.DESCRIPTION_PROMPT)
        return Step.AWAITING_DESCRIPTION

    async def _on_description(self, event: InboundEvent, session: Session) -> Step:
        description = event.text.strip()
        if not description:
            raise ValidationError(messages.DESCRIPTION_REQUIRED)

        self.store.set(event.reporter_id, Step.AWAITING_LOCATION, {"description": description})
        await self._reply(event.reporter_id, messages.LOCATION_PROMPT)
        return Step.AWAITING_LOCATION

    async def _on_location(self, event: InboundEvent, session: Session) -> Step:
        coords, label = await self.resolve_location(event)
        self.store.set(
            event.reporter_id,
            Step.AWAITING_LANDMARK,
            {"lat": coords.lat, "lon": coords.lon, "location_label": label},
        )
        await self._reply(event.reporter_id, messages.LANDMARK_PROMPT)
        return Step.AWAITING_LANDMARK

    async def _on_landmark(self, event: InboundEvent, session: Session) -> Step:
        landmark = event.text.strip()
        if not landmark:
            raise ValidationError(messages.LANDMARK_REQUIRED)

        self.store.set(event.reporter_id, Step.AWAITING_SEVERITY, {"landmark": landmark})
        await self._reply(event.reporter_id, messages.SEVERITY_PROMPT)
        return Step.AWAITING_SEVERITY

    async def _on_severity(self, event: InboundEvent, session: Session) -> Step:
        answer = event.text.strip()
        if not answer.isdigit() or not MIN_SEVERITY <= int(answer) <= MAX_SEVERITY:
            raise ValidationError(messages.SEVERITY_INVALID)
        return await self._submit(event.reporter_id, session, int(answer))

    # ---------- location policy ----------
    async def resolve_location(self, event: InboundEvent) -> Tuple[Coordinates, Optional[str]]:
        """Native share first, then a strict `lat,lon` text, then the geocoder."""
        if event.location is not None:
            coords = ensure_in_region(event.location.lat, event.location.lon, self._region)
            return coords, event.location.label

        text = event.text.strip()
        if event.kind != EventKind.text or not text:
            raise ValidationError(messages.LOCATION_REQUIRED)

        parsed = parse_coordinates(text)
        if parsed is not None:
            return ensure_in_region(parsed.lat, parsed.lon, self._region), None

        try:
            found = await self._geocoder.geocode(text, self._region)
        except UpstreamError as exc:
            raise UpstreamError("geocoder", messages.GEOCODER_FAILED) from exc
        if found is None:
            raise ValidationError(messages.ADDRESS_NOT_FOUND)
        return ensure_in_region(found.lat, found.lon, self._region), text

    # ---------- submission ----------
    async def _submit(self, reporter_id: str, session: Session, severity: int) -> Step:
        answers = session.answers
        missing = [key for key in REQUIRED_ANSWERS if not answers.get(key)]
        if missing:
            logger.error("Session of %s reached submission without %s; restarting", reporter_id, missing)
            self.store.reset(reporter_id)
            await self._reply(reporter_id, messages.SESSION_LOST)
            return Step.INITIAL

        report = Report(
            reporter_id=reporter_id,
            category=answers["category"],
            subcategory=answers.get("subcategory"),
            description=answers["description"],
            photo_urls=list(answers.get("photo_urls") or []),
            lat=answers.get("lat"),
            lon=answers.get("lon"),
            location_label=answers.get("location_label"),
            landmark=answers.get("landmark"),
            severity=severity,
            priority=priority_for(severity),
            status=ReportStatus.pending.value,
        )
        try:
            report = await self._repository.insert(report)
        except PersistenceError as exc:
            raise PersistenceError(messages.SAVE_FAILED) from exc

        # The report exists now: never let a retry of this step insert again
        self.store.reset(reporter_id)
        reports_submitted_total.inc()

        edit_url = None
        try:
            link = await self._edit_links.issue(report.id, reporter_id)
            edit_url = f"{self._public_base_url}/e/{link.short_id}"
        except PersistenceError:
            logger.error("Report %s saved without an edit link", report.id)

        await self._alerts.send(messages.moderator_new_report(report, self._panel_url))
        await self._reply(reporter_id, messages.report_received(report.category, edit_url))
        return Step.INITIAL
