"""Fan-out/fan-in iteration over independent sources on a shared executor."""

from __future__ import annotations

import threading
from concurrent.futures import Executor
from concurrent.futures import Future
from concurrent.futures import as_completed
from concurrent.futures import wait
from typing import Callable
from typing import Generic
from typing import Iterable
from typing import Iterator
from typing import List
from typing import Set
from typing import TypeVar

from orso.logging import get_logger

logger = get_logger()

T = TypeVar("T")


class ParallelIterable(Generic[T]):
    """Pull several sources concurrently and merge their items into one stream.

    Each source is a zero-argument callable returning an iterable. On
    iteration every source is submitted to ``executor``; items are yielded as
    each source finishes, so no order is promised across sources. The first
    source failure seen by the consumer is raised unchanged.

    The executor is borrowed, never shut down. ``close()`` must be called (or
    the instance used as a context manager) so that queued work is cancelled
    and running work has finished before the caller moves on.
    """

    def __init__(self, sources: Iterable[Callable[[], Iterable[T]]], executor: Executor):
        self._sources = list(sources)
        self._executor = executor
        self._futures: List[Future] = []
        self._observed: Set[Future] = set()
        self._started = False
        self._closed = threading.Event()

    def _drain(self, source: Callable[[], Iterable[T]]) -> List[T]:
        items: List[T] = []
        iterator = iter(source())
        try:
            for item in iterator:
                if self._closed.is_set():
                    break
                items.append(item)
        finally:
            close = getattr(iterator, "close", None)
            if close is not None:
                close()
        return items

    def __iter__(self) -> Iterator[T]:
        if self._closed.is_set():
            raise ValueError("Cannot iterate a closed parallel iterable")
        if self._started:
            raise ValueError("Parallel iterable can only be iterated once")
        self._started = True
        self._futures = [self._executor.submit(self._drain, source) for source in self._sources]
        return self._merge()

    def _merge(self) -> Iterator[T]:
        for future in as_completed(self._futures):
            self._observed.add(future)
            yield from future.result()

    def close(self) -> None:
        """Cancel queued sources and wait for running ones.

        Raises:
            Exception: the first failure of a source whose result was never
                consumed.
        """
        if self._closed.is_set():
            return
        self._closed.set()

        for future in self._futures:
            future.cancel()
        running = [future for future in self._futures if not future.cancelled()]
        wait(running)

        failures = [
            future.exception()
            for future in running
            if future not in self._observed and future.exception() is not None
        ]
        if not failures:
            return
        for failure in failures[1:]:
            logger.warning(f"Additional failure while closing parallel iterable: {failure}")
        raise failures[0]

    def close_quietly(self) -> None:
        """Close while another error is already propagating; log close failures."""
        try:
            self.close()
        except Exception as close_error:
            logger.warning(f"Suppressed failure while closing parallel iterable: {close_error}")

    def __enter__(self) -> "ParallelIterable[T]":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc is None:
            self.close()
        else:
            self.close_quietly()
