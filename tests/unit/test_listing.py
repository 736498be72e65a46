"""
Unit tests for the directory lister and its templates.
"""

import asyncio
import json
from types import SimpleNamespace

import pytest

from servehandler.config import ServeConfig
from servehandler.core.filesystem import FileSystemHandlers
from servehandler.core.listing import breadcrumbs, format_bytes, is_listable, render_directory
from servehandler.views.templates import directory_template, error_template


def make_context(public, relative_path="/", config=None, accepts_json=True):
    """Minimal context object for render_directory()."""
    absolute = public.joinpath(*[part for part in relative_path.split("/") if part])
    return SimpleNamespace(
        config=config or ServeConfig(),
        handlers=FileSystemHandlers(),
        root=str(public),
        absolute_path=str(absolute),
        relative_path=relative_path,
        accepts_json=accepts_json,
    )


class TestHelpers:
    """Tests for listing helpers."""

    @pytest.mark.parametrize("size,expected", [
        (0, "0 B"),
        (1023, "1023 B"),
        (1024, "1 KB"),
        (1536, "2 KB"),
        (5 * 1024 ** 2, "5 MB"),
    ])
    def test_format_bytes(self, size, expected):
        assert format_bytes(size) == expected

    def test_breadcrumbs(self):
        assert breadcrumbs("public/docs/guide/", "/") == [
            {"name": "public/", "url": "/"},
            {"name": "docs/", "url": "/docs/"},
            {"name": "guide/", "url": "/docs/guide/"},
        ]

    def test_breadcrumbs_without_suffix(self):
        assert breadcrumbs("public/docs", "") == [
            {"name": "public/", "url": "/"},
            {"name": "docs", "url": "/docs"},
        ]

    def test_is_listable(self):
        assert is_listable("docs.md", [])
        assert not is_listable(".git", [])
        assert not is_listable(".DS_Store", [])
        assert not is_listable("secret.txt", ["secret*"])


class TestRenderDirectory:
    """Tests for render_directory()."""

    def test_root_listing(self, public):
        result = asyncio.run(render_directory(make_context(public)))
        listing = json.loads(result.output)

        assert [entry["base"] for entry in listing["files"]] == [
            "another-directory/",
            "directory/",
            "single-directory/",
            ".dotfile",
            "404.html",
            "docs.md",
            "docs.txt",
            "object.json",
        ]
        assert listing["directory"] == "public/"
        assert listing["paths"] == [{"name": "public/", "url": "/"}]

    def test_file_entry(self, public):
        result = asyncio.run(render_directory(make_context(public)))
        entry = next(e for e in result.listing["files"] if e["base"] == "docs.md")

        assert entry == {
            "base": "docs.md",
            "relative": "/docs.md",
            "title": "docs.md",
            "type": "file",
            "ext": "md",
            "size": "6 B",
        }

    def test_subdirectory_listing(self, public):
        result = asyncio.run(render_directory(make_context(public, "/directory")))
        listing = result.listing

        assert listing["files"][0] == {"base": "..", "relative": "/", "title": "/", "type": "directory"}
        assert [entry["base"] for entry in listing["files"][1:]] == ["clean-file.html", "index.html"]
        assert listing["files"][2]["relative"] == "/directory/index.html"
        assert listing["directory"] == "public/directory/"
        assert listing["paths"] == [
            {"name": "public/", "url": "/"},
            {"name": "directory/", "url": "/directory/"},
        ]

    def test_suffix_follows_trailing_slash(self, public):
        config = ServeConfig(trailing_slash=False)
        result = asyncio.run(render_directory(make_context(public, config=config)))
        entry = next(e for e in result.listing["files"] if e["type"] == "directory")

        assert entry["base"] == "another-directory"
        assert entry["relative"] == "/another-directory"
        assert result.listing["directory"] == "public"

    def test_unlisted(self, public):
        config = ServeConfig(unlisted=["docs.*", "*-directory"])
        result = asyncio.run(render_directory(make_context(public, config=config)))
        bases = [entry["base"] for entry in result.listing["files"]]

        assert bases == ["directory/", ".dotfile", "404.html", "object.json"]

    def test_html_output(self, public):
        (public / "<b>.txt").write_text("x")
        result = asyncio.run(render_directory(make_context(public, accepts_json=False)))

        assert result.output.startswith("<!DOCTYPE html>")
        assert "&lt;b&gt;.txt" in result.output
        assert "<b>.txt" not in result.output
        assert 'href="/%3Cb%3E.txt"' in result.output

    def test_listing_disabled(self, public):
        config = ServeConfig(directory_listing=False)
        assert asyncio.run(render_directory(make_context(public, config=config))) is None

    def test_listing_limited_to_globs(self, public):
        config = ServeConfig(directory_listing=["/directory"])
        assert asyncio.run(render_directory(make_context(public, "/directory", config=config)))
        assert asyncio.run(render_directory(make_context(public, "/another-directory", config=config))) is None

    def test_render_single(self, public):
        config = ServeConfig(render_single=True)
        result = asyncio.run(render_directory(make_context(public, "/single-directory", config=config)))

        stats, path = result.single_file
        assert path == str(public / "single-directory" / "content.txt")
        assert stats.size == 6
        assert result.output is None

    def test_render_single_needs_one_file(self, public):
        config = ServeConfig(render_single=True)
        result = asyncio.run(render_directory(make_context(public, "/directory", config=config)))
        assert result.single_file is None
        assert result.output


class TestTemplates:
    """Tests for the built-in pages."""

    def test_directory_template(self):
        html = directory_template({
            "files": [{"base": "a.txt", "relative": "/a.txt", "title": "a.txt", "type": "file", "size": "1 B"}],
            "directory": "public/",
            "paths": [{"name": "public/", "url": "/"}],
        })

        assert "<title>Files within public/</title>" in html
        assert '<a href="/a.txt" title="a.txt">a.txt</a>' in html
        assert '<span class="size">1 B</span>' in html

    def test_error_template(self):
        html = error_template(404, "Not <here>")
        assert "<h1>404</h1>" in html
        assert "Not &lt;here&gt;" in html

    def test_links_are_percent_encoded(self):
        html = directory_template({
            "files": [{"base": "a#b?.txt", "relative": "/50%/a#b?.txt", "title": "a#b?.txt", "type": "file"}],
            "directory": "public/50%/",
            "paths": [{"name": "public/", "url": "/"}, {"name": "50%/", "url": "/50%/"}],
        })

        assert '<a href="/50%25/a%23b%3F.txt" title="a#b?.txt">a#b?.txt</a>' in html
        assert '<a href="/50%25/">50%/</a>' in html
