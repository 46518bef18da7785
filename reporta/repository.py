"""Persistence for finished reports.

Every write is a single-row statement in its own session; database errors are
wrapped in `PersistenceError` so callers never see driver exceptions.
"""

from __future__ import annotations

from typing import List, Optional
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from .errors import ConflictError, NotFoundError, PersistenceError, ValidationError
from .geo import BoundingBox, ensure_in_region
from .models import MAX_SEVERITY, MIN_SEVERITY, Report, ReportStatus, priority_for, utcnow

logger = logging.getLogger("reporta.repository")


class ReportRepository:
    def __init__(self, session_factory, region: BoundingBox) -> None:
        self._session_factory = session_factory
        self._region = region

    async def insert(self, report: Report) -> Report:
        if report.severity is None or not MIN_SEVERITY <= report.severity <= MAX_SEVERITY:
            raise ValidationError(f"La gravedad debe estar entre {MIN_SEVERITY} y {MAX_SEVERITY}.")
        # Priority is always derived from severity
        report.priority = priority_for(report.severity)
        if report.lat is not None or report.lon is not None:
            ensure_in_region(report.lat, report.lon, self._region)
        try:
            async with self._session_factory() as session:
                session.add(report)
                await session.commit()
                await session.refresh(report)
        except SQLAlchemyError as exc:
            logger.error("Failed to insert report for %s: %s", report.reporter_id, exc)
            raise PersistenceError("No se pudo guardar el reporte.") from exc
        logger.info("Inserted report %s (status=%s)", report.id, report.status)
        return report

    async def get(self, report_id: str) -> Report:
        try:
            async with self._session_factory() as session:
                report = await session.get(Report, report_id)
        except SQLAlchemyError as exc:
            raise PersistenceError("No se pudo leer el reporte.") from exc
        if report is None:
            raise NotFoundError("Reporte no encontrado")
        return report

    async def list_by_status(self, status: str, newest_first: bool = False) -> List[Report]:
        order = Report.created_at.desc() if newest_first else Report.created_at.asc()
        statement = select(Report).where(Report.status == status).order_by(order)
        try:
            async with self._session_factory() as session:
                result = await session.exec(statement)
                return list(result.all())
        except SQLAlchemyError as exc:
            raise PersistenceError("No se pudieron leer los reportes.") from exc

    async def update_status(self, report_id: str, status: str, reason: Optional[str] = None) -> Report:
        try:
            async with self._session_factory() as session:
                report = await session.get(Report, report_id)
                if report is None:
                    raise NotFoundError("Reporte no encontrado")
                report.status = status
                report.denied_reason = reason
                report.updated_at = utcnow()
                session.add(report)
                await session.commit()
                await session.refresh(report)
        except SQLAlchemyError as exc:
            logger.error("Failed to update status of %s: %s", report_id, exc)
            raise PersistenceError("No se pudo actualizar el reporte.") from exc
        logger.info("Report %s status -> %s", report_id, status)
        return report

    async def update_location(
        self, report_id: str, lat: float, lon: float, label: Optional[str] = None
    ) -> Report:
        ensure_in_region(lat, lon, self._region)
        try:
            async with self._session_factory() as session:
                report = await session.get(Report, report_id)
                if report is None:
                    raise NotFoundError("Reporte no encontrado")
                if report.status != ReportStatus.pending.value:
                    raise ConflictError("El reporte ya fue moderado y no se puede editar.")
                report.lat = lat
                report.lon = lon
                if label is not None:
                    report.location_label = label
                report.updated_at = utcnow()
                session.add(report)
                await session.commit()
                await session.refresh(report)
        except SQLAlchemyError as exc:
            logger.error("Failed to update location of %s: %s", report_id, exc)
            raise PersistenceError("No se pudo actualizar la ubicación.") from exc
        logger.info("Report %s location updated", report_id)
        return report
