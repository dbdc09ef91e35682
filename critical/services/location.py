"""Provides a network-reachable URL for the document being processed."""

from __future__ import annotations

import asyncio
import os
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional
from urllib.parse import quote

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import HTMLResponse
from starlette.routing import BaseRoute, Mount, Route
from starlette.staticfiles import StaticFiles

from critical.core.config import settings
from critical.core.logging import get_logger
from critical.models.options import GenerateOptions
from critical.services.file_access import is_remote, normalize_url
from critical.services.resources import ResourceLocator

logger = get_logger(__name__)

STARTUP_POLL_SECONDS = 0.01


def _document_endpoint(body: bytes):
    async def endpoint(request: Request) -> HTMLResponse:
        return HTMLResponse(body)

    return endpoint


def build_document_app(root: str, documents: Optional[Dict[str, bytes]] = None) -> Starlette:
    """Starlette app serving files below ``root`` plus in-memory documents."""

    routes: List[BaseRoute] = [
        Route(path, _document_endpoint(body), methods=["GET"]) for path, body in (documents or {}).items()
    ]
    routes.append(Mount("/", app=StaticFiles(directory=root, check_dir=False)))
    return Starlette(routes=routes)


class LocalDocumentServer:
    """Short-lived loopback uvicorn server running on the current event loop."""

    def __init__(self, root: str, host: Optional[str] = None, documents: Optional[Dict[str, bytes]] = None) -> None:
        self.root = root
        self.host = host or settings.local_server_host
        self.app = build_document_app(root, documents)
        self._server = uvicorn.Server(
            uvicorn.Config(
                self.app,
                host=self.host,
                port=0,
                lifespan="off",
                log_config=None,
                log_level="warning",
                access_log=False,
            )
        )
        self._task: Optional[asyncio.Task] = None

    @property
    def port(self) -> int:
        if not self._server.started:
            raise RuntimeError("Local document server is not running")
        return self._server.servers[0].sockets[0].getsockname()[1]

    def url_for(self, path: str) -> str:
        return f"http://{self.host}:{self.port}/{quote(path.lstrip('/'))}"

    async def start(self) -> None:
        self._task = asyncio.create_task(self._server.serve())
        while not self._server.started:
            if self._task.done():
                await self._task
                raise RuntimeError(f"Local document server for {self.root} exited during startup")
            await asyncio.sleep(STARTUP_POLL_SECONDS)
        logger.debug("local_server_started", root=self.root, port=self.port)

    async def stop(self) -> None:
        if self._task is None:
            return
        port = self.port if self._server.started else None
        self._server.should_exit = True
        await self._task
        self._task = None
        logger.debug("local_server_stopped", port=port)


@asynccontextmanager
async def reachable_location(options: GenerateOptions, locator: ResourceLocator) -> AsyncIterator[str]:
    """Yield a URL the rendering engine can navigate to.

    Remote sources are used directly. Local files and literal HTML are served
    by a loopback server that is shut down when the block exits, whatever the
    outcome.
    """

    if options.html is None and is_remote(options.src):
        yield normalize_url(options.src)
        return

    base = options.base if options.base and not is_remote(options.base) else None
    documents: Dict[str, bytes] = {}

    if options.html is not None:
        root = os.path.abspath(base or os.getcwd())
        url_path = f"critical-{uuid.uuid4().hex}.html"
        documents["/" + url_path] = options.html.encode("utf-8")
    else:
        path = locator.document_location()
        root = os.path.abspath(base) if base else os.path.dirname(path)
        if os.path.commonpath([root, path]) != root:
            root = os.path.dirname(path)
        url_path = os.path.relpath(path, root).replace(os.sep, "/")

    server = LocalDocumentServer(root, documents=documents)
    await server.start()
    try:
        yield server.url_for(url_path)
    finally:
        await server.stop()
