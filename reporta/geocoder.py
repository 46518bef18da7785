"""Geocoder adapter backed by the OpenCage forward-geocoding API."""

from __future__ import annotations

from typing import Optional
import logging

import httpx

from .config import Settings
from .errors import UpstreamError
from .geo import BoundingBox, Coordinates
from .observability import upstream_failures_total

logger = logging.getLogger("reporta.geocoder")

OPENCAGE_URL = "https://api.opencagedata.com/geocode/v1/json"


class Geocoder:
    async def geocode(self, address: str, box: BoundingBox) -> Optional[Coordinates]:
        raise NotImplementedError


class OpenCageGeocoder(Geocoder):
    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None) -> None:
        self._api_key = settings.opencage_api_key
        self._suffix = settings.geocoder_query_suffix or ""
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.http_timeout_seconds, connect=5.0)
        )
        if not self._api_key:
            logger.warning("OPENCAGE_API_KEY not configured. Address lookups will always miss.")

    async def geocode(self, address: str, box: BoundingBox) -> Optional[Coordinates]:
        """Resolve `address` inside `box`; None when nothing matches."""
        if not self._api_key or not address:
            return None

        params = {
            "key": self._api_key,
            "q": f"{address}{self._suffix}",
            "limit": 1,
            "bounds": box.as_bounds_param(),
            "no_annotations": 1,
        }
        try:
            resp = await self._client.get(OPENCAGE_URL, params=params)
            resp.raise_for_status()
            body = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            upstream_failures_total.labels(service="geocoder").inc()
            logger.error("Geocoding request failed: %s", exc)
            raise UpstreamError("geocoder", str(exc)) from exc

        results = body.get("results") or []
        if not results:
            logger.info("No geocoding result for %r", address)
            return None
        geometry = results[0].get("geometry") or {}
        try:
            return Coordinates(lat=float(geometry["lat"]), lon=float(geometry["lng"]))
        except (KeyError, TypeError, ValueError):
            logger.warning("Geocoding result without usable geometry for %r", address)
            return None

    async def aclose(self) -> None:
        await self._client.aclose()
