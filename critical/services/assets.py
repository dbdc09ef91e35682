"""Image inlining and asset path rewriting for stylesheet contents."""

from __future__ import annotations

import asyncio
import base64
import os
import posixpath
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence
from urllib.parse import urljoin, urlsplit

from critical.core.errors import ResolutionError
from critical.core.logging import get_logger
from critical.models.options import GenerateOptions
from critical.models.resource import Resource
from critical.services.file_access import FileAccess, is_remote, normalize_url
from critical.services.resources import strip_query, url_origin

logger = get_logger(__name__)

URL_PATTERN = re.compile(r"""url\(\s*(['"]?)(.*?)\1\s*\)""", re.IGNORECASE | re.DOTALL)

IMAGE_MIME_TYPES = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "svg": "image/svg+xml",
    "webp": "image/webp",
    "avif": "image/avif",
    "ico": "image/x-icon",
    "bmp": "image/bmp",
}


def image_mime_type(reference: str) -> Optional[str]:
    """Return the image MIME type implied by the reference's extension."""

    path = urlsplit(strip_query(reference)).path if is_remote(reference) else strip_query(reference)
    extension = posixpath.splitext(path)[1].lstrip(".").lower()
    return IMAGE_MIME_TYPES.get(extension)


def _is_embedded(reference: str) -> bool:
    return not reference or reference.lower().startswith("data:") or reference.startswith("#")


def default_asset_paths(stylesheet: Resource, options: GenerateOptions) -> List[str]:
    """Search directories used for inlining, first match wins."""

    if options.asset_paths:
        paths = list(options.asset_paths)
    else:
        paths = [stylesheet.base]
        if is_remote(options.src):
            src = normalize_url(options.src)
            origin = url_origin(src)
            paths.extend([origin, origin + posixpath.dirname(urlsplit(src).path)])
        if options.base:
            paths.append(options.base)
    return list(dict.fromkeys(paths))


class ImageInliner:
    """Replaces small image references with base64 data URIs."""

    def __init__(self, files: FileAccess) -> None:
        self.files = files

    async def inline(self, stylesheet: Resource, search_paths: Sequence[str], max_size: int) -> Resource:
        references = {
            match.group(2).strip()
            for match in URL_PATTERN.finditer(stylesheet.contents)
        }
        candidates = [ref for ref in references if not _is_embedded(ref) and image_mime_type(ref)]
        if not candidates:
            return stylesheet

        payloads = await asyncio.gather(
            *(self._load(ref, search_paths, max_size) for ref in candidates)
        )
        data_uris: Dict[str, str] = {
            ref: f"data:{image_mime_type(ref)};base64,{base64.b64encode(body).decode('ascii')}"
            for ref, body in zip(candidates, payloads)
            if body is not None
        }
        if not data_uris:
            return stylesheet

        def replace(match: re.Match) -> str:
            uri = data_uris.get(match.group(2).strip())
            if uri is None:
                return match.group(0)
            quote = match.group(1)
            return f"url({quote}{uri}{quote})"

        stylesheet.contents = URL_PATTERN.sub(replace, stylesheet.contents)
        logger.debug("images_inlined", stylesheet=stylesheet.label, count=len(data_uris))
        return stylesheet

    async def _load(self, reference: str, search_paths: Sequence[str], max_size: int) -> Optional[bytes]:
        """Return the bytes of the first reachable candidate, or None when unusable."""

        for candidate in self._candidates(reference, search_paths):
            if is_remote(candidate):
                try:
                    body = await self.files.fetch(candidate)
                except ResolutionError as exc:
                    logger.debug("inline_candidate_unreachable", candidate=candidate, error=str(exc))
                    continue
                size = len(body)
            else:
                if not os.path.isfile(candidate):
                    continue
                try:
                    size = os.path.getsize(candidate)
                    body = await self.files.read_local(candidate) if size <= max_size else b""
                except (OSError, ResolutionError) as exc:
                    logger.debug("inline_candidate_unreadable", candidate=candidate, error=str(exc))
                    continue

            if size > max_size:
                logger.debug("inline_skipped_too_large", candidate=candidate, size=size, limit=max_size)
                return None
            return body

        logger.debug("inline_asset_not_found", reference=reference)
        return None

    @staticmethod
    def _candidates(reference: str, search_paths: Sequence[str]) -> List[str]:
        if is_remote(reference):
            return [normalize_url(reference)]

        candidates: List[str] = []
        for root in search_paths:
            if is_remote(root):
                root = normalize_url(root)
                candidates.append(urljoin(root if root.endswith("/") else root + "/", reference))
            else:
                path = strip_query(reference).lstrip("/")
                candidates.append(os.path.normpath(os.path.join(root, path)))
        return list(dict.fromkeys(candidates))


@dataclass(frozen=True)
class DocumentContext:
    """Where the aggregated CSS conceptually lives."""

    directory: str
    remote: bool = False
    base: Optional[str] = None

    @classmethod
    def for_document(cls, document: Resource, options: GenerateOptions) -> "DocumentContext":
        base = options.base
        if base and not is_remote(base):
            base = os.path.abspath(base)
        return cls(
            directory=document.base,
            remote=document.remote or is_remote(document.base),
            base=base,
        )


def _within(path: str, directory: str) -> bool:
    try:
        return os.path.commonpath([path, directory]) == directory
    except ValueError:
        return False


def _rebase(reference: str, stylesheet: Resource, context: DocumentContext) -> Optional[str]:
    if _is_embedded(reference) or is_remote(reference):
        return None

    if stylesheet.remote or is_remote(stylesheet.base):
        return urljoin(stylesheet.path or stylesheet.base, reference)

    if reference.startswith("/") or context.remote:
        return None

    path = strip_query(reference)
    suffix = reference[len(path):]
    absolute = os.path.normpath(os.path.join(stylesheet.base, path))

    if context.base and not is_remote(context.base) and _within(absolute, context.base):
        relative = os.path.relpath(absolute, context.base)
        return "/" + relative.replace(os.sep, "/") + suffix
    return os.path.relpath(absolute, context.directory).replace(os.sep, "/") + suffix


def rewrite_asset_paths(stylesheet: Resource, context: DocumentContext) -> Resource:
    """Anchor relative ``url()`` references at the stylesheet's own location."""

    def replace(match: re.Match) -> str:
        rebased = _rebase(match.group(2).strip(), stylesheet, context)
        if rebased is None:
            return match.group(0)
        quote = match.group(1)
        return f"url({quote}{rebased}{quote})"

    stylesheet.contents = URL_PATTERN.sub(replace, stylesheet.contents)
    return stylesheet
