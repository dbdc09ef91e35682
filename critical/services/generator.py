"""Critical path CSS generation across one or more viewports."""

from __future__ import annotations

import asyncio
from contextlib import AsyncExitStack
from typing import Any, Mapping, Optional

import httpx
from pydantic import ValidationError

from critical.core.concurrency import gather_or_cancel
from critical.core.config import settings
from critical.core.errors import ExtractionError, InvalidInputError, NoStylesheetsFoundError
from critical.core.logging import get_logger
from critical.models.options import Dimension, GenerateOptions
from critical.services.aggregator import StylesheetAggregator
from critical.services.assets import ImageInliner
from critical.services.critical_css import CriticalExtractor, ExtractionRequest, critical_css_extractor
from critical.services.css_tree import minify_css
from critical.services.discovery import discover
from critical.services.file_access import FileAccess, basic_auth_token, request_headers
from critical.services.location import reachable_location
from critical.services.merger import combine_css, filter_css
from critical.services.resources import ResourceLocator

logger = get_logger(__name__)


def validate_options(options: GenerateOptions | Mapping[str, Any] | None) -> GenerateOptions:
    """Coerce raw options and make sure a source was given."""

    if isinstance(options, GenerateOptions):
        validated = options
    else:
        try:
            validated = GenerateOptions.model_validate(dict(options or {}))
        except ValidationError as exc:
            raise InvalidInputError(f"Invalid options: {exc}") from exc

    if not validated.has_source:
        raise InvalidInputError("A valid source is required.")
    return validated


class _DimensionPipeline:
    """Resolve, aggregate and extract for one viewport."""

    def __init__(
        self,
        options: GenerateOptions,
        locator: ResourceLocator,
        aggregator: StylesheetAggregator,
        extractor: CriticalExtractor,
        url: str,
    ) -> None:
        self.options = options
        self.locator = locator
        self.aggregator = aggregator
        self.extractor = extractor
        self.url = url

    async def run(self, dimension: Dimension) -> str:
        document = await self.locator.resolve_document()
        references = discover(document, self.options)
        if not references:
            raise NoStylesheetsFoundError()

        css = await self.aggregator.aggregate(document, references)
        logger.debug(
            "critical_dimension_processing",
            document=document.label,
            width=dimension.width,
            height=dimension.height,
        )
        return await self._extract(self._request(css, dimension))

    def _request(self, css: str, dimension: Dimension) -> ExtractionRequest:
        headers = {}
        if self.options.credentials:
            headers["Authorization"] = f"Basic {basic_auth_token(*self.options.credentials)}"
        return ExtractionRequest(
            url=self.url,
            css=css,
            width=dimension.width,
            height=dimension.height,
            user_agent=self.options.user_agent or settings.user_agent,
            headers=headers,
            engine_options=dict(self.options.penthouse),
        )

    async def _extract(self, request: ExtractionRequest) -> str:
        try:
            return await asyncio.wait_for(
                self.extractor.extract(request),
                timeout=settings.extraction_timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise ExtractionError(
                f"Critical CSS extraction timed out after {settings.extraction_timeout_seconds}s "
                f"[{request.width}x{request.height}]"
            ) from exc
        except ExtractionError as exc:
            if not exc.page_unloaded:
                raise
            logger.warning(
                "critical_page_unloaded",
                url=request.url,
                width=request.width,
                height=request.height,
            )
            return ""


async def generate(
    options: GenerateOptions | Mapping[str, Any] | None,
    *,
    extractor: Optional[CriticalExtractor] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> str:
    """Return the minified critical CSS of a document across every requested dimension."""

    opts = validate_options(options)
    logger.info(
        "critical_generation_started",
        src=opts.src,
        inline_html=opts.html is not None,
        dimensions=[f"{d.width}x{d.height}" for d in opts.dimensions],
    )

    async with AsyncExitStack() as stack:
        if client is None:
            client = await stack.enter_async_context(
                httpx.AsyncClient(timeout=settings.fetch_timeout_seconds)
            )
        files = FileAccess(
            client,
            headers=request_headers(opts.user_agent or settings.user_agent, opts.credentials),
            timeout=settings.fetch_timeout_seconds,
        )
        locator = ResourceLocator(opts, files)
        aggregator = StylesheetAggregator(opts, locator, ImageInliner(files))
        url = await stack.enter_async_context(reachable_location(opts, locator))

        pipeline = _DimensionPipeline(opts, locator, aggregator, extractor or critical_css_extractor, url)
        fragments = await gather_or_cancel(*(pipeline.run(dimension) for dimension in opts.dimensions))

    critical_css = combine_css(fragments)

    if opts.ignore:
        logger.debug("critical_applying_filter", ignore=[str(rule) for rule in opts.ignore])
        critical_css = filter_css(critical_css, opts.ignore, opts.ignore_options)

    critical_css = minify_css(critical_css)
    logger.info("critical_generation_completed", size=len(critical_css))
    return critical_css


def generate_sync(options: GenerateOptions | Mapping[str, Any] | None, **kwargs: Any) -> str:
    """Blocking wrapper around :func:`generate` for worker processes."""

    return asyncio.run(generate(options, **kwargs))
