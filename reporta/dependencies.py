"""Common FastAPI dependencies."""

from typing import Optional

from fastapi import Header, HTTPException, Query, Request

from .errors import (
    AuthError,
    ConflictError,
    ExpiredError,
    InvalidTokenError,
    NotFoundError,
    PersistenceError,
    ReportaError,
    UpstreamError,
    ValidationError,
)
from .services import Services

# Most specific classes first; RegionError is caught as a ValidationError
_STATUS_BY_ERROR = (
    (AuthError, 401),
    (InvalidTokenError, 403),
    (NotFoundError, 404),
    (ConflictError, 409),
    (ExpiredError, 410),
    (ValidationError, 400),
    (UpstreamError, 502),
    (PersistenceError, 500),
)


def get_services(request: Request) -> Services:
    return request.app.state.services


def http_error(exc: ReportaError) -> HTTPException:
    for error_cls, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            return HTTPException(status_code=status_code, detail=exc.message or error_cls.__name__)
    return HTTPException(status_code=500, detail="Internal error")


def get_moderator_credential(
    request: Request,
    x_admin_token: Optional[str] = Header(None),
    admin_token: Optional[str] = Query(None),
) -> Optional[str]:
    """
    Accepts the moderator token from `X-Admin-Token`, an `Authorization: Bearer`
    header or the `admin_token` query parameter, in that order.
    """
    if x_admin_token:
        return x_admin_token.strip()

    auth_header = request.headers.get("authorization")
    if auth_header and auth_header.lower().startswith("bearer "):
        return auth_header.split(None, 1)[1].strip().strip("'\"")

    return admin_token


__all__ = ["get_services", "get_moderator_credential", "http_error"]
