"""Closeable iterables handed from planning to scan execution."""

from __future__ import annotations

from typing import Callable
from typing import Generic
from typing import Iterable
from typing import Iterator
from typing import Optional
from typing import Tuple
from typing import TypeVar

T = TypeVar("T")
U = TypeVar("U")


class _MappedIterable(Generic[T, U]):
    __slots__ = ("_iterable", "_func")

    def __init__(self, iterable: Iterable[T], func: Callable[[T], U]):
        self._iterable = iterable
        self._func = func

    def __iter__(self) -> Iterator[U]:
        return map(self._func, self._iterable)


class CloseableIterable(Generic[T]):
    """An iterable paired with a close action.

    Iteration is delegated to the wrapped iterable, so an instance is
    re-iterable exactly when the wrapped iterable is.
    """

    def __init__(self, iterable: Iterable[T], on_close: Optional[Callable[[], None]] = None):
        self._iterable = iterable
        self._on_close = on_close

    @classmethod
    def with_noop_close(cls, iterable: Iterable[T]) -> "CloseableIterable[T]":
        return cls(iterable)

    def __iter__(self) -> Iterator[T]:
        return iter(self._iterable)

    def close(self) -> None:
        if self._on_close is not None:
            self._on_close()

    def transform(self, func: Callable[[T], U]) -> "CloseableIterable[U]":
        """Lazily apply ``func`` to each item; closing the result closes this iterable."""
        return CloseableIterable(_MappedIterable(self, func), self.close)

    def __enter__(self) -> "CloseableIterable[T]":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class MaterializedIterable(CloseableIterable[T]):
    """A fully materialized, re-iterable sequence whose ``close()`` does nothing.

    Returned when all I/O backing the items has already completed. It does not
    stream: every item is held in memory before the first one is handed out.
    """

    def __init__(self, items: Iterable[T]):
        self._items: Tuple[T, ...] = tuple(items)
        super().__init__(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item: object) -> bool:
        return item in self._items
