"""Shared fixtures for the critical CSS test-suite."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional

import httpx
import pytest
import pytest_asyncio

from critical.core.errors import ExtractionError
from critical.models.options import GenerateOptions
from critical.services import job_store
from critical.services.file_access import FileAccess
from critical.services.resources import ResourceLocator
from tests.helpers import FakeExtractor, static_transport


@pytest.fixture
def fake_extractor() -> FakeExtractor:
    return FakeExtractor()


@pytest_asyncio.fixture
async def offline_client():
    """Client whose every request fails with a 404."""

    async with httpx.AsyncClient(transport=static_transport({})) as client:
        yield client


@pytest.fixture
def make_locator(offline_client) -> Callable[..., ResourceLocator]:
    def factory(client: Optional[httpx.AsyncClient] = None, **options) -> ResourceLocator:
        files = FileAccess(client or offline_client)
        return ResourceLocator(GenerateOptions(**options), files)

    return factory


@pytest.fixture
def site(tmp_path: Path) -> Path:
    """A small on-disk site with a document, stylesheets and an image."""

    (tmp_path / "css").mkdir()
    (tmp_path / "img").mkdir()
    (tmp_path / "index.html").write_text(
        "<html><head>"
        '<link rel="stylesheet" href="css/main.css">'
        '<link rel="stylesheet" href="css/extra.css">'
        '<link rel="stylesheet" href="css/print.css" media="print">'
        "</head><body><h1>Hello</h1></body></html>",
        encoding="utf-8",
    )
    (tmp_path / "css" / "main.css").write_text(
        "h1 { color: red; background: url(../img/dot.png) }\n", encoding="utf-8"
    )
    (tmp_path / "css" / "extra.css").write_text("footer { color: blue }\n", encoding="utf-8")
    (tmp_path / "css" / "print.css").write_text("body { color: black }\n", encoding="utf-8")
    (tmp_path / "img" / "dot.png").write_bytes(b"\x89PNG\r\n\x1a\n" + b"\x00" * 24)
    return tmp_path


@pytest.fixture
def unloaded_error() -> ExtractionError:
    return ExtractionError("PAGE_UNLOADED_DURING_EXECUTION: Execution context was destroyed")


@pytest.fixture(autouse=True)
def clear_jobs():
    yield
    job_store.job_store.clear()
