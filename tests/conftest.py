import os
import tempfile
from dataclasses import replace
from pathlib import Path

import httpx
import pytest
import pytest_asyncio

# Importing reporta.main builds the module-level app from the environment
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("LOCAL_STORAGE_DIR", str(Path(tempfile.gettempdir()) / "reporta-test-storage"))

from reporta.config import get_settings
from reporta.database import build_engine, build_session_factory, init_db
from reporta.notifier import TelegramAdminNotifier
from reporta.services import build_services

from helpers import ADMIN_PHONE, ADMIN_TOKEN, FakeGeocoder, FakeMedia, RecordingNotifier


@pytest.fixture
def settings(tmp_path):
    return replace(
        get_settings(),
        database_url="sqlite+aiosqlite://",
        public_base_url="https://reporta.test",
        map_base_url="https://reporta.test/map",
        moderation_panel_url="https://reporta.test/admin/reports/pending",
        terms_url="https://reporta.test/terms",
        edit_token_secret="test-secret",
        admin_phone=ADMIN_PHONE,
        admin_mod_token=ADMIN_TOKEN,
        verify_token="verify-me",
        whatsapp_access_token="wa-token",
        whatsapp_phone_number_id="123456",
        opencage_api_key="oc-key",
        storage_provider="local",
        local_storage_dir=str(tmp_path / "storage"),
        categories_file=None,
        telegram_bot_token=None,
        telegram_admin_chat_id=None,
        sentry_dsn=None,
    )


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    # Fresh database file per test
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'reporta.db'}")
    await init_db(engine)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def media():
    return FakeMedia()


@pytest.fixture
def geocoder():
    return FakeGeocoder()


@pytest.fixture
def services(settings, session_factory, notifier, media, geocoder):
    return build_services(
        settings,
        session_factory=session_factory,
        notifier=notifier,
        media=media,
        geocoder=geocoder,
        telegram=TelegramAdminNotifier(settings),
    )


@pytest.fixture
def engine(services):
    return services.engine


@pytest.fixture
def repository(services):
    return services.repository


@pytest.fixture
def edit_links(services):
    return services.edit_links


@pytest.fixture
def gateway(services):
    return services.gateway


@pytest_asyncio.fixture
async def client(services):
    from reporta.main import create_app

    app = create_app(services)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await services.dispatcher.join()
