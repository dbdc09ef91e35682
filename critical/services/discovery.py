"""Finds the stylesheets an HTML document depends on."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from bs4 import BeautifulSoup

from critical.core.logging import get_logger
from critical.models.options import GenerateOptions
from critical.models.resource import Resource

logger = get_logger(__name__)


@dataclass(frozen=True)
class StylesheetLink:
    href: str
    media: Optional[str] = None

    @property
    def is_print(self) -> bool:
        return (self.media or "").strip().lower() == "print"


def _rel_values(link) -> List[str]:
    rel = link.get("rel") or []
    if isinstance(rel, str):
        rel = rel.split()
    return [value.lower() for value in rel]


def extract_stylesheet_links(html: str) -> List[StylesheetLink]:
    """Return stylesheet links followed by ``preload`` style hints, in document order."""

    soup = BeautifulSoup(html, "html.parser")
    stylesheets: List[StylesheetLink] = []
    preloads: List[StylesheetLink] = []

    for link in soup.find_all("link"):
        rel = _rel_values(link)
        entry = StylesheetLink(href=(link.get("href") or "").strip(), media=link.get("media"))
        if "stylesheet" in rel:
            stylesheets.append(entry)
        elif "preload" in rel and (link.get("as") or "").strip().lower() == "style":
            preloads.append(entry)

    return stylesheets + preloads


def discover(document: Resource, options: GenerateOptions) -> List[str]:
    """Return the stylesheet references to aggregate for ``document``.

    An explicit ``css`` option replaces discovery entirely and is returned
    as given. Otherwise print-only and href-less links are skipped and the
    remaining references are deduplicated on first occurrence.
    """

    if options.css:
        logger.debug("stylesheets_overridden", count=len(options.css))
        return list(options.css)

    links = extract_stylesheet_links(document.contents)
    references = [link.href for link in links if link.href and not link.is_print]
    unique = list(dict.fromkeys(references))

    logger.debug("stylesheets_discovered", document=document.label, count=len(unique), stylesheets=unique)
    return unique
