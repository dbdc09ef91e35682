"""Rendering engine adapter that computes above-the-fold CSS."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Protocol, Set

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, Playwright, TimeoutError as PlaywrightTimeoutError, async_playwright

from critical.core.config import settings
from critical.core.errors import PAGE_UNLOADED, ExtractionError
from critical.core.logging import get_logger
from critical.services.css_tree import (
    AtBlock,
    FontFace,
    Node,
    RawRule,
    StyleRule,
    parse,
    serialize,
    walk_style_rules,
)

logger = get_logger(__name__)

IGNORED_PSEUDOS = re.compile(
    r"::?(?:before|after|first-line|first-letter|selection|placeholder|marker|backdrop|"
    r"-(?:webkit|moz|ms)-[\w-]+)(?![\w-])"
    r"|:(?:hover|focus-within|focus-visible|focus|active|visited|link|target)(?![\w-])",
    re.IGNORECASE,
)
TRAILING_COMBINATOR = re.compile(r"[\s>+~]+$")
DANGLING_COMMA = re.compile(r"(?<=\()\s*,\s*|\s*,\s*(?=\))|(?<=,)\s*,")
EMPTY_PSEUDO_FUNCTION = re.compile(r":(?:not|is|where|has|matches|-webkit-any|-moz-any)\(\s*\)", re.IGNORECASE)
UNLOAD_MARKERS = ("execution context was destroyed", "navigating frame was detached", "target closed")
DROPPED_AT_RULES = {"import", "charset", "namespace"}
KEYFRAMES = re.compile(r"@(?:-[a-z]+-)?keyframes\s+([-\w]+)", re.IGNORECASE)

ABOVE_FOLD_SCRIPT = """
(selectors) => {
  const fold = window.innerHeight;
  return selectors.map((selector) => {
    let nodes;
    try {
      nodes = document.querySelectorAll(selector);
    } catch (error) {
      return false;
    }
    for (const node of nodes) {
      if (node === document.documentElement || node === document.body) {
        return true;
      }
      const rect = node.getBoundingClientRect();
      if (rect.top < fold) {
        return true;
      }
    }
    return false;
  });
}
"""

MEDIA_SCRIPT = "(queries) => queries.map((query) => window.matchMedia(query).matches)"


@dataclass(frozen=True)
class ExtractionRequest:
    """Everything the engine needs for one viewport."""

    url: str
    css: str
    width: int
    height: int
    user_agent: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)
    engine_options: Dict[str, Any] = field(default_factory=dict)


class CriticalExtractor(Protocol):
    """Computes the critical CSS of a page for one viewport."""

    async def extract(self, request: ExtractionRequest) -> str:
        ...


def query_selector(selector: str) -> str:
    """Strip pseudo-elements and user-action states so the selector can be queried."""

    stripped = IGNORED_PSEUDOS.sub("", selector)
    previous = None
    while stripped != previous:
        previous = stripped
        stripped = EMPTY_PSEUDO_FUNCTION.sub("", DANGLING_COMMA.sub("", stripped))
    stripped = TRAILING_COMBINATOR.sub("", stripped).strip()
    return stripped or "*"


def _used_values(rules: Iterable[StyleRule], names: Set[str]) -> str:
    return " ".join(
        declaration.value.lower()
        for rule in rules
        for declaration in rule.declarations
        if declaration.name in names
    )


def prune(
    nodes: List[Node],
    visible: Set[str],
    media_matches: Dict[str, bool],
    force_include: Iterable[str] = (),
) -> List[Node]:
    """Keep the rules that apply above the fold.

    ``visible`` holds the query selectors that matched an element above the
    fold, ``media_matches`` the evaluation of every ``@media`` condition.
    Selectors listed in ``force_include`` are kept unconditionally.
    """

    forced = set(force_include)

    def keep_rules(items: List[Node]) -> List[Node]:
        kept: List[Node] = []
        for node in items:
            if isinstance(node, StyleRule):
                node.selectors = [
                    selector
                    for selector in node.selectors
                    if selector in forced or query_selector(selector) in visible
                ]
                if node.selectors:
                    kept.append(node)
            elif isinstance(node, AtBlock):
                if node.name == "media" and not media_matches.get(node.condition, False):
                    continue
                node.children = keep_rules(node.children)
                if node.children:
                    kept.append(node)
            else:
                kept.append(node)
        return kept

    kept = keep_rules(nodes)
    rules = list(walk_style_rules(kept))
    fonts = _used_values(rules, {"font-family", "font"})
    animations = _used_values(rules, {"animation", "animation-name"})

    result: List[Node] = []
    for node in kept:
        if isinstance(node, FontFace):
            if node.family and node.family in fonts:
                result.append(node)
        elif isinstance(node, RawRule):
            if node.name in DROPPED_AT_RULES:
                continue
            keyframes = KEYFRAMES.match(node.text)
            if keyframes and keyframes.group(1).lower() in animations:
                result.append(node)
        else:
            result.append(node)
    return result


def _media_conditions(nodes: Iterable[Node]) -> List[str]:
    conditions: List[str] = []
    for node in nodes:
        if isinstance(node, AtBlock):
            if node.name == "media":
                conditions.append(node.condition)
            conditions.extend(_media_conditions(node.children))
    return list(dict.fromkeys(conditions))


class PlaywrightCriticalExtractor:
    """Loads the page in headless Chromium and keeps the rules styling the first screen.

    Recognized engine options: ``timeout`` (ms), ``renderWaitTime`` (ms),
    ``forceInclude`` (selectors always kept) and ``keepLargerMediaQueries``.
    """

    async def extract(self, request: ExtractionRequest) -> str:
        """Return the critical CSS of ``request.url`` at the requested viewport."""

        nodes = parse(request.css)
        selectors = sorted(
            {query_selector(selector) for rule in walk_style_rules(nodes) for selector in rule.selectors}
        )
        conditions = _media_conditions(nodes)

        try:
            async with async_playwright() as p:
                visible, media_matches = await self._evaluate(p, request, selectors, conditions)
        except PlaywrightTimeoutError as exc:
            logger.warning("critical_extraction_timeout", url=request.url, error=str(exc))
            raise ExtractionError(f"Timed out rendering {request.url}: {exc}") from exc
        except PlaywrightError as exc:
            message = str(exc)
            if any(marker in message.lower() for marker in UNLOAD_MARKERS):
                raise ExtractionError(f"{PAGE_UNLOADED}: {message}") from exc
            logger.error("critical_extraction_failed", url=request.url, error=message)
            raise ExtractionError(message) from exc

        if request.engine_options.get("keepLargerMediaQueries"):
            media_matches = {condition: True for condition in conditions}

        kept = prune(
            nodes,
            visible,
            media_matches,
            force_include=request.engine_options.get("forceInclude") or (),
        )
        return serialize(kept)

    async def _evaluate(
        self,
        playwright: Playwright,
        request: ExtractionRequest,
        selectors: List[str],
        conditions: List[str],
    ) -> tuple[Set[str], Dict[str, bool]]:
        options = request.engine_options
        timeout = options.get("timeout") or settings.navigation_timeout_seconds * 1000

        browser = await playwright.chromium.launch(headless=True)
        context = await browser.new_context(
            viewport={"width": request.width, "height": request.height},
            user_agent=request.user_agent or settings.user_agent,
            extra_http_headers=request.headers or None,
        )
        try:
            page = await context.new_page()
            await page.goto(request.url, wait_until="load", timeout=timeout)
            if options.get("renderWaitTime"):
                await page.wait_for_timeout(options["renderWaitTime"])
            return await self._collect(page, selectors, conditions)
        finally:
            await context.close()
            await browser.close()

    @staticmethod
    async def _collect(
        page: Page,
        selectors: List[str],
        conditions: List[str],
    ) -> tuple[Set[str], Dict[str, bool]]:
        flags = await page.evaluate(ABOVE_FOLD_SCRIPT, selectors) if selectors else []
        matches = await page.evaluate(MEDIA_SCRIPT, conditions) if conditions else []
        visible = {selector for selector, flag in zip(selectors, flags) if flag}
        return visible, dict(zip(conditions, matches))


critical_css_extractor = PlaywrightCriticalExtractor()
