"""Tests for stylesheet aggregation."""

import asyncio
import base64

import httpx
import pytest

from critical.core.errors import ResolutionError
from critical.models.options import GenerateOptions
from critical.services.aggregator import StylesheetAggregator
from critical.services.assets import ImageInliner
from critical.services.file_access import FileAccess
from critical.services.resources import ResourceLocator


def _aggregator(client: httpx.AsyncClient, **options) -> StylesheetAggregator:
    opts = GenerateOptions(**options)
    files = FileAccess(client)
    return StylesheetAggregator(opts, ResourceLocator(opts, files), ImageInliner(files))


@pytest.mark.unit
class TestStylesheetAggregator:
    async def test_concatenates_in_reference_order(self, site, offline_client):
        aggregator = _aggregator(offline_client, src=str(site / "index.html"))
        document = await aggregator.locator.resolve_document()

        css = await aggregator.aggregate(document, ["css/main.css", "css/extra.css"])

        assert css == (
            "h1 { color: red; background: url(img/dot.png) }\n"
            "\n"
            "footer { color: blue }\n"
        )

    async def test_order_is_independent_of_completion_time(self):
        async def handler(request):
            if request.url.path == "/slow.css":
                await asyncio.sleep(0.05)
            return httpx.Response(200, content=f"/* {request.url.path} */".encode())

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            aggregator = _aggregator(client, src="https://example.com/")
            document = await aggregator.locator.resolve_document()
            css = await aggregator.aggregate(document, ["slow.css", "fast.css"])

        assert css == "/* /slow.css */\n/* /fast.css */"

    async def test_inlines_images_before_rewriting(self, site, offline_client):
        aggregator = _aggregator(offline_client, src=str(site / "index.html"), inlineImages=True)
        document = await aggregator.locator.resolve_document()

        css = await aggregator.aggregate(document, ["css/main.css"])

        encoded = base64.b64encode((site / "img" / "dot.png").read_bytes()).decode("ascii")
        assert f"url(data:image/png;base64,{encoded})" in css

    async def test_one_failing_stylesheet_aborts(self, site, offline_client):
        aggregator = _aggregator(offline_client, src=str(site / "index.html"))
        document = await aggregator.locator.resolve_document()

        with pytest.raises(ResolutionError):
            await aggregator.aggregate(document, ["css/main.css", "css/missing.css"])

    async def test_override_entries_resolve_against_base(self, site, offline_client):
        aggregator = _aggregator(offline_client, html="<p></p>", base=str(site), css=["css/extra.css"])
        document = await aggregator.locator.resolve_document()

        css = await aggregator.aggregate(document, list(aggregator.options.css))

        assert css == "footer { color: blue }\n"
