"""Moderator routes: pending queue, approve, deny and status notifications."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends

from ..dependencies import get_moderator_credential, get_services, http_error
from ..errors import ReportaError
from ..schemas import DenyRequest, ModerationResult, PendingList, to_pending
from ..services import Services

router = APIRouter(prefix="/admin/reports", tags=["moderation"])


@router.get("/pending", response_model=PendingList)
async def list_pending(
    credential: Optional[str] = Depends(get_moderator_credential),
    services: Services = Depends(get_services),
):
    """Pending reports, oldest first, for the moderation queue."""
    try:
        reports = await services.gateway.list_pending(credential)
    except ReportaError as exc:
        raise http_error(exc) from exc
    return PendingList(reports=[to_pending(r) for r in reports])


@router.post("/{report_id}/approve", response_model=ModerationResult)
async def approve_report(
    report_id: str,
    credential: Optional[str] = Depends(get_moderator_credential),
    services: Services = Depends(get_services),
):
    try:
        report = await services.gateway.approve(report_id, credential)
    except ReportaError as exc:
        raise http_error(exc) from exc
    return ModerationResult(report=to_pending(report))


@router.post("/{report_id}/deny", response_model=ModerationResult)
async def deny_report(
    report_id: str,
    body: Optional[DenyRequest] = Body(None),
    credential: Optional[str] = Depends(get_moderator_credential),
    services: Services = Depends(get_services),
):
    body = body or DenyRequest()
    try:
        report = await services.gateway.deny(report_id, body.reason, credential or body.admin_token)
    except ReportaError as exc:
        raise http_error(exc) from exc
    return ModerationResult(report=to_pending(report))


@router.post("/{report_id}/notify")
async def notify_status(
    report_id: str,
    credential: Optional[str] = Depends(get_moderator_credential),
    services: Services = Depends(get_services),
):
    """Re-send the reporter the message for the report's current status."""
    try:
        sent = await services.gateway.notify(report_id, credential)
    except ReportaError as exc:
        raise http_error(exc) from exc
    return {"ok": True, "sent": sent}
