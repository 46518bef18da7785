"""Wiring of the long-lived collaborators shared by the HTTP routes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional
import logging

from .catalog import Catalog, load_catalog
from .config import Settings
from .conversation import ConversationEngine
from .database import build_engine, build_session_factory
from .dispatcher import EventDispatcher
from .edit_links import EditLinkResolver
from .geo import BoundingBox
from .geocoder import Geocoder, OpenCageGeocoder
from .media import MediaFetcher, WhatsAppMediaFetcher
from .moderation import ModerationGateway
from .notifier import ModeratorAlerts, Notifier, TelegramAdminNotifier, WhatsAppNotifier
from .repository import ReportRepository
from .sessions import DeliveryLog, SessionStore
from .storage import build_storage

logger = logging.getLogger("reporta.services")


@dataclass
class Services:
    settings: Settings
    catalog: Catalog
    store: SessionStore
    repository: ReportRepository
    edit_links: EditLinkResolver
    gateway: ModerationGateway
    engine: ConversationEngine
    dispatcher: EventDispatcher
    db_engine: Any = None
    closeables: List[Any] = field(default_factory=list)

    async def aclose(self) -> None:
        await self.dispatcher.join()
        for resource in self.closeables:
            try:
                await resource.aclose()
            except Exception as exc:
                logger.warning("Error closing %s: %s", type(resource).__name__, exc)
        if self.db_engine is not None:
            await self.db_engine.dispose()


def build_services(
    settings: Settings,
    session_factory=None,
    notifier: Optional[Notifier] = None,
    media: Optional[MediaFetcher] = None,
    geocoder: Optional[Geocoder] = None,
    telegram: Optional[TelegramAdminNotifier] = None,
) -> Services:
    """Build every collaborator from settings; any of them can be injected."""
    db_engine = None
    if session_factory is None:
        db_engine = build_engine(settings.database_url)
        session_factory = build_session_factory(db_engine)

    closeables: List[Any] = []
    if notifier is None:
        notifier = WhatsAppNotifier(settings)
        closeables.append(notifier)
    if media is None:
        media = WhatsAppMediaFetcher(settings, build_storage(settings))
        closeables.append(media)
    if geocoder is None:
        geocoder = OpenCageGeocoder(settings)
        closeables.append(geocoder)
    if telegram is None:
        telegram = TelegramAdminNotifier(settings)

    region = BoundingBox.from_settings(settings)
    catalog = load_catalog(settings.categories_file)
    store = SessionStore()
    repository = ReportRepository(session_factory, region)
    edit_links = EditLinkResolver(
        session_factory,
        secret=settings.edit_token_secret,
        ttl_seconds=settings.edit_token_ttl_seconds,
    )
    gateway = ModerationGateway(
        repository,
        notifier,
        admin_token=settings.admin_mod_token,
        map_base_url=settings.map_base_url,
        terms_url=settings.terms_url,
    )
    engine = ConversationEngine(
        store=store,
        catalog=catalog,
        notifier=notifier,
        media=media,
        geocoder=geocoder,
        repository=repository,
        edit_links=edit_links,
        moderator_alerts=ModeratorAlerts(notifier, settings.admin_phone, telegram),
        region=region,
        public_base_url=settings.public_base_url,
        moderation_panel_url=settings.moderation_panel_url,
        deliveries=DeliveryLog(settings.delivery_dedup_seconds),
    )
    return Services(
        settings=settings,
        catalog=catalog,
        store=store,
        repository=repository,
        edit_links=edit_links,
        gateway=gateway,
        engine=engine,
        dispatcher=EventDispatcher(engine),
        db_engine=db_engine,
        closeables=closeables,
    )
