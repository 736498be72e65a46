"""
=============================================================================
FILESYSTEM CAPABILITIES
=============================================================================

Every filesystem access the handler makes goes through a small set of
injectable functions:

    ┌──────────────────────┬───────────────────────────────────────────────┐
    │ Capability           │ Default                                       │
    ├──────────────────────┼───────────────────────────────────────────────┤
    │ stat(path)           │ os.stat, follows links                        │
    │ lstat(path, listing) │ os.lstat, does not follow links               │
    │ readdir(path)        │ os.listdir                                    │
    │ realpath(path)       │ os.path.realpath                              │
    │ create_read_stream(  │ FileStream: 64 KiB chunks, inclusive          │
    │   path, start, end)  │ start/end                                     │
    └──────────────────────┴───────────────────────────────────────────────┘

Overrides replace single capabilities and may be plain functions or
coroutines; the handler awaits whatever comes back if it is awaitable:

    async def stat(path):
        return await remote_store.stat(path)

    handlers = FileSystemHandlers.from_overrides({"stat": stat})

lstat gets a second argument telling it whether the call comes from the
directory lister, so an override can treat listings differently.

The defaults are coroutines that run the blocking os calls, and each
chunk read, in a worker thread.

Any of these may raise FileNotFoundError, NotADirectoryError or
servehandler.errors.NotFound to mean "absent". Anything else aborts the
request with a 500.

=============================================================================
"""

from dataclasses import dataclass, fields
from typing import Any, Callable, Optional
import asyncio
import inspect
import os
import stat as stat_module


CHUNK_SIZE = 64 * 1024


@dataclass
class FileStats:
    """
    The parts of a stat result the handler looks at.

    Custom handlers can return this, an os.stat_result, or any object with
    the same attributes and predicate methods.
    """

    size: Optional[int] = None
    mtime: float = 0.0
    mode: int = stat_module.S_IFREG

    @classmethod
    def from_stat_result(cls, result: os.stat_result) -> "FileStats":
        return cls(size=result.st_size, mtime=result.st_mtime, mode=result.st_mode)

    def is_file(self) -> bool:
        return stat_module.S_ISREG(self.mode)

    def is_directory(self) -> bool:
        return stat_module.S_ISDIR(self.mode)

    def is_symlink(self) -> bool:
        return stat_module.S_ISLNK(self.mode)


def as_stats(value: Any) -> Any:
    """Adapt os.stat_result values; anything else is passed through."""
    if isinstance(value, os.stat_result):
        return FileStats.from_stat_result(value)
    return value


class FileStream:
    """
    Async iterator over a file's bytes, optionally limited to a range.

    The file is opened on construction so a missing or unreadable file
    fails in create_read_stream() rather than halfway through a response.

    Args:
        path: File to read.
        start: First byte offset (inclusive).
        end: Last byte offset (inclusive); None reads to the end.
        chunk_size: Bytes per chunk.
    """

    def __init__(
        self,
        path: str,
        start: Optional[int] = None,
        end: Optional[int] = None,
        chunk_size: int = CHUNK_SIZE,
    ):
        self.path = path
        self.start = start or 0
        self.end = end
        self.chunk_size = chunk_size
        self._file = open(path, "rb")
        if self.start:
            self._file.seek(self.start)
        self._remaining = None if end is None else max(end - self.start + 1, 0)

    @property
    def closed(self) -> bool:
        return self._file.closed

    def __aiter__(self) -> "FileStream":
        return self

    async def __anext__(self) -> bytes:
        if self._file.closed:
            raise StopAsyncIteration

        size = self.chunk_size
        if self._remaining is not None:
            size = min(size, self._remaining)

        chunk = await asyncio.to_thread(self._file.read, size) if size else b""
        if not chunk:
            self._file.close()
            raise StopAsyncIteration

        if self._remaining is not None:
            self._remaining -= len(chunk)
        return chunk

    async def aclose(self) -> None:
        self._file.close()

    def close(self) -> None:
        self._file.close()


# ─────────────────────────────────────────────────────────────────────────
# DEFAULT CAPABILITIES
# ─────────────────────────────────────────────────────────────────────────

# Each blocking os call runs in a worker thread

async def default_stat(path: str) -> FileStats:
    return FileStats.from_stat_result(await asyncio.to_thread(os.stat, path))


async def default_lstat(path: str, is_directory_listing: bool = False) -> FileStats:
    return FileStats.from_stat_result(await asyncio.to_thread(os.lstat, path))


async def default_readdir(path: str) -> list:
    return await asyncio.to_thread(os.listdir, path)


async def default_realpath(path: str) -> str:
    return await asyncio.to_thread(os.path.realpath, path)


async def default_create_read_stream(
    path: str,
    start: Optional[int] = None,
    end: Optional[int] = None,
    **options: Any,
) -> FileStream:
    return await asyncio.to_thread(FileStream, path, start, end)


@dataclass
class FileSystemHandlers:
    """The capability set used for one request."""

    stat: Callable = default_stat
    lstat: Callable = default_lstat
    readdir: Callable = default_readdir
    realpath: Callable = default_realpath
    create_read_stream: Callable = default_create_read_stream

    @classmethod
    def from_overrides(cls, overrides: Any = None) -> "FileSystemHandlers":
        """
        Defaults with the given capabilities replaced.

        Args:
            overrides: None, a FileSystemHandlers, a mapping of name →
                       callable, or any object with some of the capability
                       attributes. Missing or None entries keep the default.
        """
        if overrides is None:
            return cls()
        if isinstance(overrides, cls):
            return overrides

        chosen = {}
        for capability in fields(cls):
            if isinstance(overrides, dict):
                candidate = overrides.get(capability.name)
            else:
                candidate = getattr(overrides, capability.name, None)
            if candidate is not None:
                chosen[capability.name] = candidate
        return cls(**chosen)


async def call(function: Callable, *args: Any, **kwargs: Any) -> Any:
    """Call a capability, awaiting the result when it is awaitable."""
    result = function(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result
