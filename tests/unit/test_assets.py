"""Tests for image inlining and asset path rewriting."""

import base64
import os

import httpx
import pytest

from critical.models.options import GenerateOptions
from critical.models.resource import Resource
from critical.services.assets import (
    DocumentContext,
    ImageInliner,
    default_asset_paths,
    image_mime_type,
    rewrite_asset_paths,
)
from critical.services.file_access import FileAccess
from tests.helpers import static_transport


def _stylesheet(css: str, base: str, path: str | None = None, remote: bool = False) -> Resource:
    return Resource(contents=css, path=path or os.path.join(base, "main.css"), base=base, remote=remote)


@pytest.fixture
def inliner(offline_client) -> ImageInliner:
    return ImageInliner(FileAccess(offline_client))


@pytest.mark.unit
class TestImageInliner:
    async def test_image_at_size_limit_is_inlined(self, tmp_path, inliner):
        (tmp_path / "exact.png").write_bytes(b"x" * 100)
        stylesheet = _stylesheet("a{background:url(exact.png)}", str(tmp_path))

        await inliner.inline(stylesheet, [str(tmp_path)], 100)

        encoded = base64.b64encode(b"x" * 100).decode("ascii")
        assert stylesheet.contents == f"a{{background:url(data:image/png;base64,{encoded})}}"

    async def test_image_one_byte_over_limit_is_kept(self, tmp_path, inliner):
        (tmp_path / "large.png").write_bytes(b"x" * 101)
        stylesheet = _stylesheet("a{background:url(large.png)}", str(tmp_path))

        await inliner.inline(stylesheet, [str(tmp_path)], 100)

        assert stylesheet.contents == "a{background:url(large.png)}"

    async def test_inlining_is_idempotent(self, tmp_path, inliner):
        (tmp_path / "dot.gif").write_bytes(b"GIF89a")
        stylesheet = _stylesheet("a{background:url('dot.gif')}", str(tmp_path))

        await inliner.inline(stylesheet, [str(tmp_path)], 1024)
        first = stylesheet.contents
        await inliner.inline(stylesheet, [str(tmp_path)], 1024)

        assert first.startswith("a{background:url('data:image/gif;base64,")
        assert stylesheet.contents == first

    async def test_first_search_path_wins(self, tmp_path, inliner):
        first, second = tmp_path / "first", tmp_path / "second"
        first.mkdir()
        second.mkdir()
        (first / "logo.svg").write_bytes(b"<svg>first</svg>")
        (second / "logo.svg").write_bytes(b"<svg>second</svg>")
        stylesheet = _stylesheet('a{background:url("logo.svg")}', str(tmp_path))

        await inliner.inline(stylesheet, [str(tmp_path), str(first), str(second)], 1024)

        encoded = base64.b64encode(b"<svg>first</svg>").decode("ascii")
        assert f'url("data:image/svg+xml;base64,{encoded}")' in stylesheet.contents

    async def test_missing_and_non_image_assets_are_left_alone(self, tmp_path, inliner):
        (tmp_path / "font.woff").write_bytes(b"wOFF")
        css = "@font-face{src:url(font.woff)}a{background:url(missing.png)}"
        stylesheet = _stylesheet(css, str(tmp_path))

        await inliner.inline(stylesheet, [str(tmp_path)], 1024)

        assert stylesheet.contents == css

    async def test_remote_images_are_fetched(self, tmp_path):
        transport = static_transport(
            {
                "https://example.com/img/a.png": b"PNGDATA",
                "https://example.com/img/b.png": 500,
            }
        )
        css = "a{background:url(img/a.png)}b{background:url(img/b.png)}"
        stylesheet = _stylesheet(css, "https://example.com/", path="https://example.com/main.css", remote=True)

        async with httpx.AsyncClient(transport=transport) as client:
            await ImageInliner(FileAccess(client)).inline(stylesheet, ["https://example.com/"], 1024)

        encoded = base64.b64encode(b"PNGDATA").decode("ascii")
        assert f"url(data:image/png;base64,{encoded})" in stylesheet.contents
        assert "url(img/b.png)" in stylesheet.contents


@pytest.mark.unit
class TestDefaultAssetPaths:
    def test_local_defaults(self, tmp_path):
        stylesheet = _stylesheet("", str(tmp_path / "css"))
        options = GenerateOptions(src=str(tmp_path / "index.html"), base=str(tmp_path))

        assert default_asset_paths(stylesheet, options) == [str(tmp_path / "css"), str(tmp_path)]

    def test_remote_source_adds_origin(self):
        stylesheet = _stylesheet("", "https://cdn.example.com/css/", remote=True)
        options = GenerateOptions(src="https://example.com/blog/post.html")

        assert default_asset_paths(stylesheet, options) == [
            "https://cdn.example.com/css/",
            "https://example.com",
            "https://example.com/blog",
        ]

    def test_explicit_paths_replace_defaults_and_are_deduplicated(self, tmp_path):
        stylesheet = _stylesheet("", str(tmp_path / "css"))
        options = GenerateOptions(html="x", assetPaths=["/a", "/b", "/a"])

        assert default_asset_paths(stylesheet, options) == ["/a", "/b"]


@pytest.mark.unit
class TestRewriteAssetPaths:
    def test_relative_to_document_directory(self, tmp_path):
        stylesheet = _stylesheet("a{background:url(../img/a.png)}", str(tmp_path / "css"))
        context = DocumentContext(directory=str(tmp_path))

        rewrite_asset_paths(stylesheet, context)

        assert stylesheet.contents == "a{background:url(img/a.png)}"

    def test_root_relative_under_base(self, tmp_path):
        stylesheet = _stylesheet('a{background:url("../img/a.png?v=2")}', str(tmp_path / "css"))
        context = DocumentContext(directory=str(tmp_path / "pages"), base=str(tmp_path))

        rewrite_asset_paths(stylesheet, context)

        assert stylesheet.contents == 'a{background:url("/img/a.png?v=2")}'

    def test_remote_stylesheet_gets_absolute_urls(self):
        stylesheet = _stylesheet(
            "a{background:url(../img/a.png)}b{background:url(/b.png)}",
            "https://cdn.example.com/css/",
            path="https://cdn.example.com/css/main.css",
            remote=True,
        )

        rewrite_asset_paths(stylesheet, DocumentContext(directory="/site"))

        assert stylesheet.contents == (
            "a{background:url(https://cdn.example.com/img/a.png)}"
            "b{background:url(https://cdn.example.com/b.png)}"
        )

    def test_embedded_and_absolute_references_are_untouched(self, tmp_path):
        css = (
            "a{background:url(data:image/png;base64,AAAA)}"
            "b{background:url(https://example.com/b.png)}"
            "c{background:url(/c.png)}"
            "d{filter:url(#blur)}"
        )
        stylesheet = _stylesheet(css, str(tmp_path / "css"))

        rewrite_asset_paths(stylesheet, DocumentContext(directory=str(tmp_path)))

        assert stylesheet.contents == css


@pytest.mark.unit
def test_image_mime_type():
    assert image_mime_type("a/b.JPG?x=1") == "image/jpeg"
    assert image_mime_type("https://example.com/i.webp") == "image/webp"
    assert image_mime_type("font.woff2") is None
