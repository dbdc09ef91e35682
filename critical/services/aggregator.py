"""Builds the aggregate CSS string for one document."""

from __future__ import annotations

import asyncio
from typing import List, Sequence

from critical.core.concurrency import gather_or_cancel
from critical.core.config import settings
from critical.core.logging import get_logger
from critical.models.options import GenerateOptions
from critical.models.resource import Resource
from critical.services.assets import (
    DocumentContext,
    ImageInliner,
    default_asset_paths,
    rewrite_asset_paths,
)
from critical.services.resources import ResourceLocator

logger = get_logger(__name__)


class StylesheetAggregator:
    """Resolves, transforms and concatenates the stylesheets of a document."""

    def __init__(
        self,
        options: GenerateOptions,
        locator: ResourceLocator,
        inliner: ImageInliner,
        max_concurrency: int | None = None,
    ) -> None:
        self.options = options
        self.locator = locator
        self.inliner = inliner
        self.max_concurrency = max(1, max_concurrency or settings.max_concurrency)

    async def aggregate(self, document: Resource, references: Sequence[str]) -> str:
        """Return the transformed stylesheets joined in reference order."""

        context = DocumentContext.for_document(document, self.options)
        semaphore = asyncio.Semaphore(self.max_concurrency)
        locations = self._locations(document, references)

        texts = await gather_or_cancel(
            *(self._materialize(location, context, semaphore) for location in locations)
        )
        css = "\n".join(texts)
        logger.debug("stylesheets_aggregated", document=document.label, count=len(texts), size=len(css))
        return css

    def _locations(self, document: Resource, references: Sequence[str]) -> List[str]:
        if self.options.css:
            return [self.locator.locate_override(reference) for reference in references]
        return [self.locator.locate(reference, document) for reference in references]

    async def _materialize(
        self,
        location: str,
        context: DocumentContext,
        semaphore: asyncio.Semaphore,
    ) -> str:
        async with semaphore:
            stylesheet = await self.locator.resolve(location)
            if self.options.inline_images:
                await self.inliner.inline(
                    stylesheet,
                    default_asset_paths(stylesheet, self.options),
                    self.options.max_image_file_size,
                )
            rewrite_asset_paths(stylesheet, context)
            return stylesheet.contents
