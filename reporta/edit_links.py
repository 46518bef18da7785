"""Short-lived edit links that let a reporter fix their report's location.

A link is a signed JWT bound to one report plus a short public id stored in
`edit_tokens`. Expiry is checked twice: by the token's own `exp` claim and by
the stored `expires_at`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable
import logging
import secrets
import string

from jose import jwt, JWTError
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from .errors import ExpiredError, InvalidTokenError, NotFoundError, PersistenceError
from .models import EditToken, as_utc

logger = logging.getLogger("reporta.edit_links")

ALGORITHM = "HS256"
SHORT_ID_ALPHABET = string.ascii_lowercase + string.digits
SHORT_ID_LENGTH = 8


@dataclass(frozen=True)
class EditLink:
    short_id: str
    token: str
    expires_at: datetime


@dataclass(frozen=True)
class ResolvedLink:
    report_id: str
    token: str


def generate_short_id() -> str:
    return "".join(secrets.choice(SHORT_ID_ALPHABET) for _ in range(SHORT_ID_LENGTH))


class EditLinkResolver:
    def __init__(
        self,
        session_factory,
        secret: str,
        ttl_seconds: int = 60 * 60 * 24,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._session_factory = session_factory
        self._secret = secret
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock

    def _sign(self, report_id: str, reporter_id: str, expires_at: datetime) -> str:
        claims = {
            "report_id": report_id,
            "reporter": reporter_id,
            "exp": int(expires_at.timestamp()),
        }
        return jwt.encode(claims, self._secret, algorithm=ALGORITHM)

    async def issue(self, report_id: str, reporter_id: str) -> EditLink:
        expires_at = self._clock() + self._ttl
        token = self._sign(report_id, reporter_id, expires_at)
        record = EditToken(
            short_id=generate_short_id(),
            report_id=report_id,
            token=token,
            expires_at=expires_at,
        )
        try:
            async with self._session_factory() as session:
                session.add(record)
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error("Failed to store edit token for report %s: %s", report_id, exc)
            raise PersistenceError("No se pudo generar el enlace de edición.") from exc
        return EditLink(short_id=record.short_id, token=token, expires_at=expires_at)

    async def _load(self, statement) -> EditToken:
        try:
            async with self._session_factory() as session:
                result = await session.exec(statement)
                return result.first()
        except SQLAlchemyError as exc:
            raise PersistenceError("No se pudo leer el enlace de edición.") from exc

    async def resolve(self, short_id: str) -> ResolvedLink:
        record = await self._load(select(EditToken).where(EditToken.short_id == short_id))
        if record is None:
            raise NotFoundError("Enlace inválido")
        if as_utc(record.expires_at) <= self._clock():
            raise ExpiredError("Enlace expirado")
        return ResolvedLink(report_id=record.report_id, token=record.token)

    async def authorize(self, token: str, report_id: str) -> dict:
        """Return the token claims if it may edit `report_id`."""
        if not token:
            raise InvalidTokenError("Falta token")
        try:
            claims = jwt.decode(token, self._secret, algorithms=[ALGORITHM])
        except JWTError as exc:
            # Covers bad signatures and an expired `exp` claim
            raise InvalidTokenError("Token inválido") from exc
        if claims.get("report_id") != report_id:
            raise InvalidTokenError("Token inválido")

        record = await self._load(select(EditToken).where(EditToken.token == token))
        if record is None or record.report_id != report_id:
            raise InvalidTokenError("Token inválido")
        if as_utc(record.expires_at) <= self._clock():
            raise InvalidTokenError("Token expirado")
        return claims
