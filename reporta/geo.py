"""Coordinates, the service bounding box and `lat,lon` text parsing."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
import re

from .config import Settings
from .errors import RegionError

# Strict "lat,lon" pair, both parts plain decimals
COORDINATES_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*,\s*(-?\d+(?:\.\d+)?)\s*$")


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lon: float


@dataclass(frozen=True)
class BoundingBox:
    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    @classmethod
    def from_settings(cls, settings: Settings) -> "BoundingBox":
        return cls(
            min_lat=settings.region_min_lat,
            max_lat=settings.region_max_lat,
            min_lon=settings.region_min_lon,
            max_lon=settings.region_max_lon,
        )

    def contains(self, lat: float, lon: float) -> bool:
        return self.min_lat <= lat <= self.max_lat and self.min_lon <= lon <= self.max_lon

    def as_bounds_param(self) -> str:
        """OpenCage `bounds` order: min_lon,min_lat,max_lon,max_lat."""
        return f"{self.min_lon},{self.min_lat},{self.max_lon},{self.max_lat}"


def parse_coordinates(text: Optional[str]) -> Optional[Coordinates]:
    """Return coordinates for a strict `lat,lon` string, else None."""
    if not text:
        return None
    match = COORDINATES_RE.match(text)
    if not match:
        return None
    return Coordinates(lat=float(match.group(1)), lon=float(match.group(2)))


def ensure_in_region(lat: float, lon: float, box: BoundingBox) -> Coordinates:
    if lat is None or lon is None or not box.contains(lat, lon):
        raise RegionError("Las coordenadas no están dentro del área de servicio.")
    return Coordinates(lat=lat, lon=lon)


__all__ = ["Coordinates", "BoundingBox", "parse_coordinates", "ensure_in_region"]
