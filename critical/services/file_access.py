"""Raw byte access to local files and remote URLs."""

from __future__ import annotations

import asyncio
import base64
import os
from typing import Dict, Optional

import httpx

from critical.core.errors import ResolutionError
from critical.core.logging import get_logger

logger = get_logger(__name__)

REMOTE_PREFIXES = ("http://", "https://", "//")


def is_remote(location: Optional[str]) -> bool:
    """Return True for http(s) and protocol-relative URLs."""

    return bool(location) and location.lower().startswith(REMOTE_PREFIXES)


def normalize_url(location: str) -> str:
    """Give protocol-relative URLs an explicit https scheme."""

    if location.startswith("//"):
        return f"https:{location}"
    return location


def basic_auth_token(user: str, password: str) -> str:
    """Encode credentials for a Basic ``Authorization`` header."""

    return base64.b64encode(f"{user}:{password}".encode("utf-8")).decode("ascii")


def request_headers(
    user_agent: Optional[str] = None,
    credentials: Optional[tuple[str, str]] = None,
) -> Dict[str, str]:
    """Build the headers sent with every fetch and page load."""

    headers: Dict[str, str] = {}
    if user_agent:
        headers["User-Agent"] = user_agent
    if credentials:
        headers["Authorization"] = f"Basic {basic_auth_token(*credentials)}"
    return headers


class FileAccess:
    """Reads bytes from disk or over HTTP, raising ``ResolutionError`` on failure."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self._client = client
        self._headers = headers or {}
        self._timeout = timeout

    async def read(self, location: str) -> bytes:
        """Return the raw bytes stored at ``location``."""

        if is_remote(location):
            return await self.fetch(normalize_url(location))
        return await self.read_local(location)

    async def fetch(self, url: str) -> bytes:
        """Download ``url`` into memory."""

        logger.debug("fetch_started", url=url)
        try:
            response = await self._client.get(
                url,
                headers=self._headers,
                timeout=self._timeout,
                follow_redirects=True,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ResolutionError(url, f"HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise ResolutionError(url, str(exc) or exc.__class__.__name__) from exc
        return response.content

    async def read_local(self, path: str) -> bytes:
        """Read a file from disk without blocking the event loop."""

        if not os.path.isfile(path):
            raise ResolutionError(path, "file does not exist")
        try:
            return await asyncio.to_thread(_read_bytes, path)
        except OSError as exc:
            raise ResolutionError(path, str(exc)) from exc


def _read_bytes(path: str) -> bytes:
    with open(path, "rb") as handle:
        return handle.read()
