"""
pytest configuration and fixtures.
"""

import asyncio
import os
from pathlib import Path
from typing import Callable
import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from servehandler import HTTPRequest, HTTPResponse, ServeConfig, serve


DOCS_TXT = "Hello, this is a docs text file"


@pytest.fixture
def public(tmp_path: Path) -> Path:
    """
    Public root used by the integration tests.

        public/
        ├── .DS_Store
        ├── .dotfile
        ├── .git/HEAD
        ├── 404.html
        ├── another-directory/another-file.txt
        ├── directory/
        │   ├── clean-file.html
        │   └── index.html
        ├── docs.md
        ├── docs.txt
        ├── object.json
        └── single-directory/content.txt
    """
    root = tmp_path / "public"
    root.mkdir()

    (root / ".DS_Store").write_bytes(b"\x00\x01")
    (root / ".dotfile").write_text("dotfile contents")
    (root / ".git").mkdir()
    (root / ".git" / "HEAD").write_text("ref: refs/heads/main")
    (root / "404.html").write_text("<span>Not Found</span>")
    (root / "docs.md").write_text("# Docs")
    (root / "docs.txt").write_text(DOCS_TXT)
    (root / "object.json").write_text('{"a": 1}')

    (root / "another-directory").mkdir()
    (root / "another-directory" / "another-file.txt").write_text("another")

    (root / "directory").mkdir()
    (root / "directory" / "index.html").write_text("<h1>Directory index</h1>")
    (root / "directory" / "clean-file.html").write_text("<p>clean</p>")

    (root / "single-directory").mkdir()
    (root / "single-directory" / "content.txt").write_text("single")

    return root


@pytest.fixture
def symlinked(public: Path) -> Path:
    """Add symlinks/ with a working and a dangling link."""
    links = public / "symlinks"
    links.mkdir()
    try:
        os.symlink(os.path.join("..", "object.json"), links / "package.json")
        os.symlink(os.path.join("..", "does-not-exist.txt"), links / "dangling.txt")
    except (OSError, NotImplementedError):
        pytest.skip("Symbolic links are not supported here")
    return public


@pytest.fixture
def fetch(public: Path) -> Callable[..., HTTPResponse]:
    """
    Run one request through serve() and return the buffered response.

    Usage:
        response = fetch("/docs.md", config={"etag": True},
                         headers={"Accept": "application/json"})
    """

    def run(url: str, config=None, headers=None, handlers=None, method: str = "GET") -> HTTPResponse:
        if config is None:
            config = ServeConfig()
        elif isinstance(config, dict):
            config = ServeConfig.from_dict(config)
        if config.public is None:
            config.public = str(public)

        request = HTTPRequest(method=method, url=url, headers=headers or {})
        response = HTTPResponse()
        asyncio.run(serve(request, response, config, handlers))
        return response

    return run
