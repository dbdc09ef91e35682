"""Test doubles shared across the suite."""

from __future__ import annotations

from typing import Callable, Dict, List, Optional, Union

import httpx

from critical.services.critical_css import ExtractionRequest

Responder = Union[str, Exception, Callable[[ExtractionRequest], str]]


class FakeExtractor:
    """Stands in for the rendering engine and records every request.

    Responses are keyed by viewport width; without a response the aggregate
    CSS is echoed back.
    """

    def __init__(self, responses: Optional[Dict[int, Responder]] = None, default: Optional[Responder] = None) -> None:
        self.responses = responses or {}
        self.default = default
        self.requests: List[ExtractionRequest] = []

    async def extract(self, request: ExtractionRequest) -> str:
        self.requests.append(request)
        responder = self.responses.get(request.width, self.default)
        if responder is None:
            return request.css
        if isinstance(responder, Exception):
            raise responder
        if callable(responder):
            return responder(request)
        return responder


def static_transport(routes: Dict[str, Union[bytes, str, int]]) -> httpx.MockTransport:
    """Serve fixed bodies by URL; an int entry is returned as a bare status code."""

    def handler(request: httpx.Request) -> httpx.Response:
        body = routes.get(str(request.url))
        if body is None:
            return httpx.Response(404)
        if isinstance(body, int):
            return httpx.Response(body)
        return httpx.Response(200, content=body.encode("utf-8") if isinstance(body, str) else body)

    return httpx.MockTransport(handler)
