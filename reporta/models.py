from typing import Optional, List
from datetime import datetime, timezone
from enum import Enum
import uuid

from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON, DateTime


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo on the way back; treat naive values as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ReportStatus(str, Enum):
    pending = "pending"
    published = "published"
    rejected = "rejected"
    # Written by the external admin panel after publication
    assigned = "assigned"
    resolved = "resolved"


# Severity 1..5 maps to priority by a fixed factor
PRIORITY_MULTIPLIER = 2
MIN_SEVERITY = 1
MAX_SEVERITY = 5


def priority_for(severity: int) -> int:
    return severity * PRIORITY_MULTIPLIER


class Report(SQLModel, table=True):
    __tablename__ = "reports"
    id: Optional[str] = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    reporter_id: str = Field(index=True)
    category: str
    subcategory: Optional[str] = None
    description: str
    photo_urls: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    lat: Optional[float] = None
    lon: Optional[float] = None
    # Free-text address or label from the reporter's location share
    location_label: Optional[str] = None
    landmark: Optional[str] = None
    severity: int
    priority: int
    status: str = Field(default=ReportStatus.pending.value, index=True)
    denied_reason: Optional[str] = None
    responsible: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False, index=True))
    updated_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))


class EditToken(SQLModel, table=True):
    __tablename__ = "edit_tokens"
    short_id: str = Field(primary_key=True)
    report_id: str = Field(foreign_key="reports.id", index=True)
    token: str = Field(index=True)
    expires_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
