"""Media fetcher: download a WhatsApp image attachment and store it durably."""

from __future__ import annotations

from typing import Callable, Optional
import logging
import time

import httpx

from .config import Settings
from .errors import UpstreamError
from .observability import upstream_failures_total
from .photo_utils import validate_image
from .storage import StorageError, guess_extension

logger = logging.getLogger("reporta.media")

GRAPH_BASE_URL = "https://graph.facebook.com"


class MediaFetcher:
    """Fetch an image by transport reference and return its public URL."""

    async def fetch(self, media_id: str, mime_type: Optional[str] = None) -> str:
        raise NotImplementedError


class WhatsAppMediaFetcher(MediaFetcher):
    def __init__(
        self,
        settings: Settings,
        storage,
        client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._token = settings.whatsapp_access_token
        self._api_version = settings.whatsapp_api_version
        self._storage = storage
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.http_timeout_seconds, connect=5.0)
        )
        self._clock = clock

    def _fail(self, message: str) -> UpstreamError:
        upstream_failures_total.labels(service="media").inc()
        logger.error(message)
        return UpstreamError("media", message)

    async def fetch(self, media_id: str, mime_type: Optional[str] = None) -> str:
        if not self._token:
            raise self._fail("WHATSAPP_ACCESS_TOKEN is not configured; cannot download media")
        if not media_id:
            raise self._fail("Image event without a media id")

        headers = {"Authorization": f"Bearer {self._token}"}
        try:
            meta_resp = await self._client.get(
                f"{GRAPH_BASE_URL}/{self._api_version}/{media_id}", headers=headers
            )
            meta_resp.raise_for_status()
            meta = meta_resp.json()
            file_resp = await self._client.get(meta["url"], headers=headers)
            file_resp.raise_for_status()
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            raise self._fail(f"Failed to download media {media_id}: {exc}") from exc

        content_type = (
            mime_type
            or meta.get("mime_type")
            or file_resp.headers.get("content-type")
            or "image/jpeg"
        )
        data = file_resp.content
        validate_image(data, content_type)

        key = f"reports/report-{int(self._clock() * 1000)}-{media_id}.{guess_extension(content_type)}"
        try:
            return await self._storage.save(key, data, content_type)
        except StorageError as exc:
            raise self._fail(f"Failed to store media {media_id}: {exc}") from exc

    async def aclose(self) -> None:
        await self._client.aclose()
