"""Reporter self-service: short edit links and location correction."""

from __future__ import annotations

from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import RedirectResponse

from ..dependencies import get_services, http_error
from ..errors import ReportaError
from ..schemas import LocationUpdate, ReportEditView
from ..services import Services

router = APIRouter(tags=["edit"])


def _edit_view(report) -> ReportEditView:
    return ReportEditView(
        id=report.id,
        status=report.status,
        photo_urls=list(report.photo_urls or []),
        lat=report.lat,
        lon=report.lon,
        location_label=report.location_label,
    )


@router.get("/e/{short_id}")
async def follow_edit_link(short_id: str, services: Services = Depends(get_services)):
    try:
        link = await services.edit_links.resolve(short_id)
    except ReportaError as exc:
        raise http_error(exc) from exc
    return RedirectResponse(
        url=f"/edit.html?reportId={quote(link.report_id)}&t={quote(link.token, safe='')}",
        status_code=307,
    )


@router.get("/api/reports/{report_id}", response_model=ReportEditView)
async def get_report_for_edit(
    report_id: str,
    token: Optional[str] = Query(None),
    services: Services = Depends(get_services),
):
    if not token:
        raise HTTPException(status_code=401, detail="Falta token")
    try:
        await services.edit_links.authorize(token, report_id)
        report = await services.repository.get(report_id)
    except ReportaError as exc:
        raise http_error(exc) from exc
    return _edit_view(report)


@router.put("/api/reports/{report_id}/location")
async def update_report_location(
    report_id: str,
    body: LocationUpdate,
    token: Optional[str] = Query(None),
    services: Services = Depends(get_services),
):
    if not token:
        raise HTTPException(status_code=401, detail="Falta token")
    try:
        await services.edit_links.authorize(token, report_id)
        report = await services.repository.update_location(report_id, body.lat, body.lon, body.label)
    except ReportaError as exc:
        raise http_error(exc) from exc
    return {"ok": True, "report": _edit_view(report)}
