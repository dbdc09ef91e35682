"""Shared API dependencies."""

import secrets

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader

from critical.core.config import settings
from critical.core.logging import get_logger

logger = get_logger(__name__)

api_token_header = APIKeyHeader(name=settings.auth_token_header, auto_error=False)


def _presented_token(header: str | None) -> str:
    if not header:
        return ""
    scheme, _, credentials = header.partition(" ")
    if credentials and scheme.lower() == "bearer":
        return credentials.strip()
    return header.strip()


def verify_api_key(request: Request, header: str | None = Security(api_token_header)) -> str:
    """Accept the configured token either bare or as a bearer credential.

    The API is open when ``CRITICAL_AUTH_API_TOKEN`` is unset.
    """

    expected = settings.auth_api_token
    if not expected:
        return ""

    token = _presented_token(header)
    if token and secrets.compare_digest(token, expected):
        return token

    logger.warning("api_token_rejected", path=request.url.path, presented=bool(header))
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API token")


def get_auth_dependency(token: str = Depends(verify_api_key)) -> str:
    return token
