from pathlib import Path
from typing import Optional
import logging

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, PlainTextResponse, Response
from fastapi.staticfiles import StaticFiles

from .config import get_settings
from .database import init_db
from .dependencies import get_services, http_error
from .errors import ReportaError
from .events import parse_webhook
from .models import ReportStatus
from .observability import (
    get_health_check,
    init_sentry,
    metrics_response,
    setup_logging,
    setup_metrics_middleware,
)
from .routes import edit as edit_routes
from .routes import moderation as moderation_routes
from .schemas import ReportPublic
from .services import Services, build_services

logger = logging.getLogger("reporta.main")

_ROOT = Path(__file__).resolve().parents[1]
_PUBLIC_DIR = _ROOT / "public"


def create_app(services: Optional[Services] = None) -> FastAPI:
    """
    Build the API. Tests pass a prepared `Services`; otherwise it is built from
    the environment on startup.
    """
    settings = services.settings if services is not None else get_settings()

    app = FastAPI(title="Reporta API")
    app.state.services = services

    setup_metrics_middleware(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(edit_routes.router)
    app.include_router(moderation_routes.router)

    @app.on_event("startup")
    async def startup_event():
        logger.info("Starting up Reporta...")
        if app.state.services is None:
            app.state.services = build_services(settings)
        db_engine = app.state.services.db_engine
        if db_engine is not None:
            await init_db(db_engine)

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("Shutting down Reporta...")
        if app.state.services is not None:
            await app.state.services.aclose()

    @app.get("/", response_class=PlainTextResponse)
    def root():
        return "Reporta bot running"

    @app.get("/ping", response_class=PlainTextResponse)
    def ping():
        return "pong"

    @app.get("/health")
    def health(services: Services = Depends(get_services)):
        """Health check endpoint for monitoring."""
        return get_health_check(
            sessions=len(services.store),
            busy_reporters=services.dispatcher.busy_reporters,
        )

    @app.get("/metrics")
    def metrics() -> Response:
        """Prometheus metrics endpoint."""
        return metrics_response()

    @app.get("/webhook", response_class=PlainTextResponse)
    def verify_webhook(
        mode: Optional[str] = Query(None, alias="hub.mode"),
        token: Optional[str] = Query(None, alias="hub.verify_token"),
        challenge: Optional[str] = Query(None, alias="hub.challenge"),
        services: Services = Depends(get_services),
    ):
        verify_token = services.settings.verify_token
        if mode == "subscribe" and verify_token and token == verify_token:
            return challenge or ""
        raise HTTPException(status_code=403, detail="Forbidden")

    @app.post("/webhook")
    async def receive_webhook(request: Request, services: Services = Depends(get_services)):
        # Always acknowledge, the provider retries anything that is not a 200
        try:
            payload = await request.json()
        except ValueError:
            logger.warning("Webhook body is not valid JSON; ignoring")
            return {"status": "ok", "events": 0}

        events = parse_webhook(payload)
        for event in events:
            services.dispatcher.submit(event)
        return {"status": "ok", "events": len(events)}

    @app.get("/api/reports")
    async def list_published_reports(services: Services = Depends(get_services)):
        try:
            reports = await services.repository.list_by_status(
                ReportStatus.published.value, newest_first=True
            )
        except ReportaError as exc:
            raise http_error(exc) from exc
        return [ReportPublic.from_report(r) for r in reports]

    @app.get("/map")
    def map_view():
        map_file = _PUBLIC_DIR / "map.html"
        if not map_file.exists():
            raise HTTPException(status_code=404, detail="Map not available")
        return FileResponse(str(map_file))

    # Serve locally stored photos (development fallback for S3)
    if settings.storage_provider != "s3":
        storage_dir = Path(settings.local_storage_dir)
        try:
            storage_dir.mkdir(parents=True, exist_ok=True)
            app.mount("/storage", StaticFiles(directory=str(storage_dir)), name="storage")
        except OSError as exc:
            logger.warning("Local storage directory unavailable (%s); /storage not served", exc)

    # Mounted last so it never shadows the API routes
    if _PUBLIC_DIR.exists():
        app.mount("/", StaticFiles(directory=str(_PUBLIC_DIR), html=True), name="public")

    return app


def _configure() -> FastAPI:
    settings = get_settings()
    setup_logging()
    init_sentry(settings.sentry_dsn, settings.environment)
    return create_app()


app = _configure()
