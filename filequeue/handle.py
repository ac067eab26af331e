from __future__ import annotations

import asyncio
import codecs
import functools
import os
import weakref
from typing import Any, Awaitable, Callable, Mapping, TypeVar, Union

from . import disk_io
from .lines import make_line, split_lines
from .options import WriteOptions
from .registry import ChainPolicy, PathQueueRegistry, shared_registry

T = TypeVar("T")
Data = Union[str, bytes, bytearray, memoryview]
Options = Union[WriteOptions, Mapping[str, Any], str, None]


class FileHandle:
    """
    A file addressed by path whose async operations are serialized with every
    other handle on the same path string.

    Async operations are plain methods that enqueue immediately and return an
    `asyncio.Future`; the position in the queue is fixed at call time, not at
    await time. They must be called from a running event loop. Cancelling the
    returned future abandons the wait, not the operation: it still runs in
    its turn, and operations queued after it still wait for it.

    The `*_sync` methods block and bypass the queue, so they can observe the
    file in the middle of pending async work on the same path.

    Every operation uses ChainPolicy.CONTINUE_REGARDLESS: a failed read or
    write never prevents the operations queued behind it from running.
    """

    POLICY = ChainPolicy.CONTINUE_REGARDLESS

    def __init__(
        self,
        path: str | os.PathLike[str],
        encoding: str = "utf8",
        *,
        registry: PathQueueRegistry | None = None,
    ) -> None:
        self._path = os.fspath(path)
        if not self._path:
            raise ValueError("path must not be empty")
        codecs.lookup(encoding)
        self._encoding = encoding
        self._registry = registry if registry is not None else shared_registry()

        self._registry.attach(self._path)
        weakref.finalize(self, self._registry.detach, self._path)

    # --------------------------------------------------
    # Properties
    # --------------------------------------------------

    @property
    def path(self) -> str:
        return self._path

    @property
    def encoding(self) -> str:
        return self._encoding

    @property
    def registry(self) -> PathQueueRegistry:
        return self._registry

    @property
    def name(self) -> str:
        return os.path.basename(self._path)

    @property
    def ext(self) -> str:
        return os.path.splitext(self.name)[1]

    @functools.cached_property
    def dir(self) -> FileHandle | None:
        parent = os.path.dirname(self._path)
        # "" for a bare name; the path itself for a filesystem root.
        if not parent or parent == self._path:
            return None
        return FileHandle(parent, self._encoding, registry=self._registry)

    def __fspath__(self) -> str:
        return self._path

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FileHandle):
            return NotImplemented
        return (self._path, self._encoding) == (other._path, other._encoding)

    def __hash__(self) -> int:
        return hash((self._path, self._encoding))

    def __repr__(self) -> str:
        return f"FileHandle({self._path!r}, encoding={self._encoding!r})"

    # --------------------------------------------------
    # Queued operations
    # --------------------------------------------------

    def read(self) -> asyncio.Future[str]:
        async def _op() -> str:
            return await asyncio.to_thread(disk_io.read_text, self._path, self._encoding)

        return self._enqueue(_op)

    def read_lines(self) -> asyncio.Future[list[str]]:
        # Reads inside this slot; enqueueing a second read() from here would
        # wait on itself.
        async def _op() -> list[str]:
            text = await asyncio.to_thread(disk_io.read_text, self._path, self._encoding)
            return split_lines(text)

        return self._enqueue(_op)

    def write(self, data: Data, options: Options = None) -> asyncio.Future[None]:
        return self._put(data, options, append=False)

    def write_line(self, data: Data, options: Options = None) -> asyncio.Future[None]:
        return self._put(make_line(_coerce_data(data)), options, append=False)

    def append(self, data: Data, options: Options = None) -> asyncio.Future[None]:
        return self._put(data, options, append=True)

    def append_line(self, data: Data, options: Options = None) -> asyncio.Future[None]:
        return self._put(make_line(_coerce_data(data)), options, append=True)

    def delete(self) -> asyncio.Future[None]:
        async def _op() -> None:
            await asyncio.to_thread(disk_io.unlink_if_present, self._path)

        return self._enqueue(_op)

    def exists(self) -> asyncio.Future[bool]:
        async def _op() -> bool:
            return await asyncio.to_thread(disk_io.path_kind, self._path) in ("file", "dir")

        return self._enqueue(_op)

    def is_file(self) -> asyncio.Future[bool]:
        async def _op() -> bool:
            return await asyncio.to_thread(disk_io.path_kind, self._path) == "file"

        return self._enqueue(_op)

    def is_dir(self) -> asyncio.Future[bool]:
        async def _op() -> bool:
            return await asyncio.to_thread(disk_io.path_kind, self._path) == "dir"

        return self._enqueue(_op)

    def mkdir(self, mode: int = 0o777) -> asyncio.Future[None]:
        """
        Create this directory unless it already is one.

        Missing ancestors are created first, each through its own path's
        queue, with the default mode (as os.makedirs does).
        """

        async def _op() -> None:
            if await asyncio.to_thread(disk_io.path_kind, self._path) == "dir":
                return
            parent = self.dir
            if parent is not None:
                await parent.mkdir()
            await asyncio.to_thread(disk_io.make_dir, self._path, mode)

        return self._enqueue(_op)

    # --------------------------------------------------
    # Blocking, unqueued
    # --------------------------------------------------

    def read_sync(self) -> str:
        return disk_io.read_text(self._path, self._encoding)

    def read_lines_sync(self) -> list[str]:
        return split_lines(self.read_sync())

    def exists_sync(self) -> bool:
        return disk_io.path_kind(self._path) in ("file", "dir")

    # --------------------------------------------------
    # Internals
    # --------------------------------------------------

    def _enqueue(self, operation: Callable[[], Awaitable[T]]) -> asyncio.Future[T]:
        return self._registry.extend(self._path, operation, self.POLICY)

    def _put(self, data: Data, options: Options, *, append: bool) -> asyncio.Future[None]:
        # Bad input fails here, before anything is enqueued.
        opts = WriteOptions.coerce(options)
        payload = _encode(_coerce_data(data), opts.encoding or self._encoding)

        # Enqueued on the parent's queue now, awaited from our slot later.
        parent = self.dir
        parent_ready = parent.mkdir() if parent is not None else None

        async def _op() -> None:
            if parent_ready is not None:
                await parent_ready
            await asyncio.to_thread(
                disk_io.write_bytes, self._path, payload, mode=opts.mode, append=append
            )

        return self._enqueue(_op)


def _coerce_data(data: Data) -> str | bytes:
    if isinstance(data, str):
        return data
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data)
    raise TypeError(f"data must be str or bytes-like, not {type(data).__name__}")


def _encode(data: str | bytes, encoding: str) -> bytes:
    return data.encode(encoding) if isinstance(data, str) else data
