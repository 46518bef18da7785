"""Moderation gateway: approve, deny and re-notify reports.

Every operation checks the moderator credential before touching the
repository. Notifications are best-effort and are re-sent when a moderator
repeats an approval or denial.
"""

from __future__ import annotations

from typing import List, Optional
import logging
import secrets

from . import messages
from .errors import AuthError
from .models import Report, ReportStatus
from .notifier import Notifier
from .observability import moderation_actions_total
from .repository import ReportRepository

logger = logging.getLogger("reporta.moderation")


class ModerationGateway:
    def __init__(
        self,
        repository: ReportRepository,
        notifier: Notifier,
        admin_token: Optional[str],
        map_base_url: str,
        terms_url: str,
    ) -> None:
        self._repository = repository
        self._notifier = notifier
        self._admin_token = admin_token
        self._map_base_url = map_base_url
        self._terms_url = terms_url

    def check_credential(self, credential: Optional[str]) -> None:
        # An unset admin token disables moderation entirely
        if not self._admin_token or not credential:
            raise AuthError("No autorizado")
        if not secrets.compare_digest(str(credential), self._admin_token):
            raise AuthError("No autorizado")

    async def approve(self, report_id: str, credential: Optional[str]) -> Report:
        self.check_credential(credential)
        report = await self._repository.update_status(report_id, ReportStatus.published.value, reason=None)
        moderation_actions_total.labels(action="approve").inc()
        await self._notifier.send(report.reporter_id, messages.report_published(report, self._map_base_url))
        return report

    async def deny(self, report_id: str, reason: Optional[str], credential: Optional[str]) -> Report:
        self.check_credential(credential)
        reason = (reason or "").strip() or None
        report = await self._repository.update_status(report_id, ReportStatus.rejected.value, reason=reason)
        moderation_actions_total.labels(action="deny").inc()
        await self._notifier.send(report.reporter_id, messages.report_rejected(report, reason, self._terms_url))
        return report

    async def list_pending(self, credential: Optional[str]) -> List[Report]:
        self.check_credential(credential)
        return await self._repository.list_by_status(ReportStatus.pending.value, newest_first=False)

    def _status_message(self, report: Report) -> Optional[str]:
        if report.status == ReportStatus.published.value:
            return messages.report_published(report, self._map_base_url)
        if report.status == ReportStatus.rejected.value:
            return messages.report_rejected(report, report.denied_reason, self._terms_url)
        if report.status == ReportStatus.assigned.value:
            return messages.report_assigned(report)
        if report.status == ReportStatus.resolved.value:
            return messages.report_resolved(report)
        return None

    async def notify(self, report_id: str, credential: Optional[str]) -> bool:
        """Tell the reporter about the report's current status.

        Returns False when the status has no reporter-facing message.
        """
        self.check_credential(credential)
        report = await self._repository.get(report_id)
        text = self._status_message(report)
        if text is None:
            logger.info("Report %s in status %s has no notification", report_id, report.status)
            return False
        moderation_actions_total.labels(action="notify").inc()
        return await self._notifier.send(report.reporter_id, text)
