"""Turns paths, URLs and literal content into ``Resource`` records."""

from __future__ import annotations

import os
import posixpath
from typing import Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

from critical.core.logging import get_logger
from critical.models.options import GenerateOptions
from critical.models.resource import Resource
from critical.services.file_access import FileAccess, is_remote, normalize_url

logger = get_logger(__name__)


def url_directory(url: str) -> str:
    """Return the directory component of ``url`` with a trailing slash."""

    parts = urlsplit(url)
    directory = posixpath.dirname(parts.path) if not parts.path.endswith("/") else parts.path
    if not directory.endswith("/"):
        directory += "/"
    return urlunsplit((parts.scheme, parts.netloc, directory, "", ""))


def url_origin(url: str) -> str:
    parts = urlsplit(normalize_url(url))
    return f"{parts.scheme}://{parts.netloc}"


def strip_query(reference: str) -> str:
    """Drop ``?query`` and ``#fragment`` suffixes from a local reference."""

    for marker in ("?", "#"):
        reference = reference.split(marker, 1)[0]
    return reference


def decode(body: bytes) -> str:
    return body.decode("utf-8-sig", errors="replace")


class ResourceLocator:
    """Resolves documents and stylesheets for a single generation run."""

    def __init__(self, options: GenerateOptions, files: FileAccess) -> None:
        self.options = options
        self.files = files

    def from_content(self, contents: str, base: Optional[str] = None) -> Resource:
        """Wrap literal content, anchoring it at ``base`` or the working directory."""

        anchor = base or self.options.base or os.getcwd()
        if not is_remote(anchor):
            anchor = os.path.abspath(anchor)
        return Resource(contents=contents, path=None, base=anchor, remote=False)

    async def resolve(self, location: str) -> Resource:
        """Read or fetch ``location`` and record where it came from."""

        if is_remote(location):
            url = normalize_url(location)
            body = await self.files.fetch(url)
            logger.debug("resource_fetched", url=url, size=len(body))
            return Resource(contents=decode(body), path=url, base=url_directory(url), remote=True)

        path = os.path.abspath(location)
        body = await self.files.read_local(path)
        logger.debug("resource_read", path=path, size=len(body))
        return Resource(contents=decode(body), path=path, base=os.path.dirname(path))

    async def resolve_document(self) -> Resource:
        """Materialize the HTML source described by the options."""

        if self.options.html is not None:
            return self.from_content(self.options.html)
        return await self.resolve(self.document_location())

    def document_location(self) -> str:
        """Absolute path or URL of ``options.src``."""

        src = self.options.src or ""
        if is_remote(src):
            return normalize_url(src)
        if os.path.isabs(src):
            return src
        base = self.options.base
        if base and not is_remote(base) and os.path.exists(os.path.join(base, src)):
            return os.path.abspath(os.path.join(base, src))
        return os.path.abspath(src)

    def locate(self, reference: str, document: Resource) -> str:
        """Resolve a stylesheet reference found inside ``document``."""

        if is_remote(reference):
            return normalize_url(reference)
        if document.remote or is_remote(document.base):
            return urljoin(document.path or document.base, reference)

        path = strip_query(reference)
        if path.startswith("/"):
            root = self.options.base or document.base
            if is_remote(root):
                return urljoin(root, path)
            return os.path.normpath(os.path.join(root, path.lstrip("/")))
        return os.path.normpath(os.path.join(document.base, path))

    def locate_override(self, reference: str) -> str:
        """Resolve an entry of the explicit ``css`` option."""

        if is_remote(reference):
            return normalize_url(reference)
        path = strip_query(reference)
        if os.path.isabs(path):
            return path
        base = self.options.base
        if base and not is_remote(base):
            candidate = os.path.join(base, path)
            if os.path.isfile(candidate):
                return os.path.abspath(candidate)
        return os.path.abspath(path)
