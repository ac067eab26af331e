from __future__ import annotations

import asyncio
import concurrent.futures
import enum
import logging
import os
import threading
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar, Union

from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")
PathArg = Union[str, "os.PathLike[str]"]


class ChainPolicy(enum.Enum):
    # Run after the previous operation no matter how it ended.
    CONTINUE_REGARDLESS = "continue-regardless"
    # Run only if the previous operation succeeded; otherwise fail with
    # PredecessorFailedError.
    CONTINUE_ON_SUCCESS = "continue-on-success"


class PredecessorFailedError(RuntimeError):
    """
    An operation enqueued with CONTINUE_ON_SUCCESS was not run because the
    operation before it on the same path raised or was cancelled.
    """

    def __init__(self, path: str):
        super().__init__(f"previous operation on {path!r} did not succeed")
        self.path = path


@dataclass
class OperationChain:
    """
    Registry entry for one path.

    `tail` is the link future of the most recently enqueued operation. A link
    resolves only once its operation has finished and everything enqueued
    before it has settled; its result is the operation's exception, or None
    on success. Links never raise and callers never see them, so cancelling a
    caller's future cannot advance the chain. None means nothing was ever
    enqueued, i.e. an already-completed chain.
    """

    path: str
    tail: asyncio.Future[BaseException | None] | None = None
    handles: int = 0

    @property
    def settled(self) -> bool:
        return self.tail is None or self.tail.done()


def _settle(link: asyncio.Future[BaseException | None], failure: BaseException | None) -> None:
    if not link.done():
        link.set_result(failure)


async def _wait_settled(previous: asyncio.Future[Any]) -> None:
    if previous.done():
        return
    owner = previous.get_loop()
    if owner is asyncio.get_running_loop():
        # asyncio.wait never re-raises the awaited future's exception.
        await asyncio.wait([previous])
        return
    if owner.is_closed():
        # A closed loop will never run its pending work.
        logger.debug("QUEUE WAIT: predecessor's event loop is closed; treating it as settled")
        return

    # Pending on another thread's loop: relay completion through a
    # thread-safe future.
    bridge: concurrent.futures.Future[None] = concurrent.futures.Future()

    def _relay(_: asyncio.Future[Any]) -> None:
        try:
            bridge.set_result(None)
        except concurrent.futures.InvalidStateError:
            # The waiter was cancelled; nobody is listening.
            pass

    try:
        owner.call_soon_threadsafe(previous.add_done_callback, _relay)
    except RuntimeError:
        # Closed between the check above and the call.
        logger.debug("QUEUE WAIT: predecessor's event loop is closed; treating it as settled")
        return
    await asyncio.wrap_future(bridge)


def _raise_if_failed(path: str, previous: asyncio.Future[BaseException | None]) -> None:
    if not previous.done():
        # Abandoned on a closed event loop; it never finished.
        logger.info("QUEUE SKIP: %s predecessor never completed", path)
        raise PredecessorFailedError(path)
    exc = previous.result()
    if isinstance(exc, asyncio.CancelledError):
        logger.info("QUEUE SKIP: %s predecessor was cancelled", path)
        raise PredecessorFailedError(path)
    if exc is not None:
        logger.info("QUEUE SKIP: %s predecessor failed: %r", path, exc)
        raise PredecessorFailedError(path) from exc


class PathQueueRegistry:
    """
    Provides one operation chain per path string so that async operations on
    the same path run one at a time, in the order they were enqueued.

    Keys are compared as exact strings: "a.txt" and "./a.txt" are different
    queues. Entries are kept for the registry's lifetime unless
    `evict_idle` is set, in which case an entry is dropped once its chain is
    settled and no FileHandle is attached to it.
    """

    def __init__(self, *, evict_idle: bool = False, debug_log_operations: bool = False) -> None:
        # Reentrant: handle finalizers may call detach() from a GC pass that
        # starts while this thread already holds the guard.
        self._guard = threading.RLock()
        self._chains: dict[str, OperationChain] = {}
        # Queued work is handed out shielded; keep it referenced until done.
        self._inflight: set[asyncio.Task[Any]] = set()
        self._evict_idle = evict_idle
        self._debug_log_operations = debug_log_operations

    @classmethod
    def from_settings(cls, settings: Settings) -> "PathQueueRegistry":
        return cls(
            evict_idle=settings.evict_idle,
            debug_log_operations=settings.debug_log_operations,
        )

    @property
    def evict_idle(self) -> bool:
        return self._evict_idle

    def chain_for(self, path: PathArg) -> OperationChain:
        key = os.fspath(path)
        with self._guard:
            return self._chain_locked(key)

    def extend(
        self,
        path: PathArg,
        operation: Callable[[], Awaitable[T]],
        policy: ChainPolicy = ChainPolicy.CONTINUE_REGARDLESS,
    ) -> asyncio.Future[T]:
        """
        Enqueue `operation` behind everything already enqueued for `path`.

        The returned future resolves with this operation's own result or
        error, never with a predecessor's. Cancelling it (directly, through
        asyncio.wait_for, a TaskGroup...) only stops the caller from waiting:
        the operation still runs in its turn and the queue still waits for it.
        Must be called from a running event loop.
        """
        key = os.fspath(path)
        loop = asyncio.get_running_loop()
        with self._guard:
            chain = self._chain_locked(key)
            previous = chain.tail
            link: asyncio.Future[BaseException | None] = loop.create_future()
            work = loop.create_task(self._run(key, previous, operation, policy, link))
            chain.tail = link
            self._inflight.add(work)
        work.add_done_callback(self._inflight.discard)

        if self._debug_log_operations:
            logger.debug(
                "QUEUE EXTEND: path=%s policy=%s behind_pending=%s",
                key,
                policy.value,
                previous is not None and not previous.done(),
            )
        if self._evict_idle:
            link.add_done_callback(lambda f: self._evict_if_idle(key, f))
        return asyncio.shield(work)

    def attach(self, path: PathArg) -> OperationChain:
        key = os.fspath(path)
        with self._guard:
            chain = self._chain_locked(key)
            chain.handles += 1
            return chain

    def detach(self, path: PathArg) -> None:
        key = os.fspath(path)
        with self._guard:
            chain = self._chains.get(key)
            if chain is None:
                return
            chain.handles = max(0, chain.handles - 1)
            if self._evict_idle and chain.handles == 0 and chain.settled:
                del self._chains[key]

    def paths(self) -> list[str]:
        with self._guard:
            return list(self._chains)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, os.PathLike)):
            return False
        with self._guard:
            return os.fspath(path) in self._chains

    def __len__(self) -> int:
        with self._guard:
            return len(self._chains)

    def _chain_locked(self, key: str) -> OperationChain:
        chain = self._chains.get(key)
        if chain is None:
            chain = OperationChain(key)
            self._chains[key] = chain
        return chain

    def _evict_if_idle(self, key: str, link: asyncio.Future[Any]) -> None:
        with self._guard:
            chain = self._chains.get(key)
            if chain is not None and chain.tail is link and chain.handles == 0:
                del self._chains[key]

    async def _run(
        self,
        key: str,
        previous: asyncio.Future[BaseException | None] | None,
        operation: Callable[[], Awaitable[T]],
        policy: ChainPolicy,
        link: asyncio.Future[BaseException | None],
    ) -> T:
        failure: BaseException | None = None
        try:
            if previous is not None:
                await _wait_settled(previous)
                if policy is ChainPolicy.CONTINUE_ON_SUCCESS:
                    _raise_if_failed(key, previous)
            return await operation()
        except BaseException as e:
            failure = e
            raise
        finally:
            if previous is not None and not previous.done() and previous.get_loop() is link.get_loop():
                # Only reachable when this work itself is cancelled (loop
                # shutdown) while still waiting its turn.
                previous.add_done_callback(lambda _: _settle(link, failure))
            else:
                _settle(link, failure)


_SHARED: PathQueueRegistry | None = None
_SHARED_GUARD = threading.Lock()


def shared_registry() -> PathQueueRegistry:
    """
    Process-wide default registry, built from environment settings on first
    use. Pass an explicit registry to FileHandle when isolation is needed.
    """
    global _SHARED
    with _SHARED_GUARD:
        if _SHARED is None:
            _SHARED = PathQueueRegistry.from_settings(get_settings())
        return _SHARED
