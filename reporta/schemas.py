from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, Field

from .models import Report


class ReportPublic(BaseModel):
    id: str
    category: str
    subcategory: Optional[str] = None
    description: str
    severity: int
    status: str
    photo_urls: List[str] = []
    lat: Optional[float] = None
    lon: Optional[float] = None
    created_at: datetime

    @classmethod
    def from_report(cls, report: Report) -> "ReportPublic":
        return cls(
            id=report.id,
            category=report.category,
            subcategory=report.subcategory,
            description=report.description,
            severity=report.severity,
            status=report.status,
            photo_urls=list(report.photo_urls or []),
            lat=report.lat,
            lon=report.lon,
            created_at=report.created_at,
        )


class PendingReport(ReportPublic):
    priority: int
    landmark: Optional[str] = None
    location_label: Optional[str] = None


class ReportEditView(BaseModel):
    id: str
    status: str
    photo_urls: List[str] = []
    lat: Optional[float] = None
    lon: Optional[float] = None
    location_label: Optional[str] = None


class LocationUpdate(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)
    label: Optional[str] = None


class DenyRequest(BaseModel):
    reason: Optional[str] = None
    admin_token: Optional[str] = None


class ModerationResult(BaseModel):
    ok: bool = True
    report: PendingReport


class PendingList(BaseModel):
    ok: bool = True
    reports: List[PendingReport]


def to_pending(report: Report) -> PendingReport:
    return PendingReport(
        **ReportPublic.from_report(report).model_dump(),
        priority=report.priority,
        landmark=report.landmark,
        location_label=report.location_label,
    )
