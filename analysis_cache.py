"""
Per-document cache of line terminator analysis results.

Every open view of a document subscribes to the same ObservableCell, keyed by
the case-folded document path, so all views agree on the classification.
"""

import logging
import os
import threading
from typing import Callable, Dict, Generic, List, Optional, TypeVar, Union

from linebreaks import AnalysisResult

logger = logging.getLogger("LineSense.cache")

T = TypeVar("T")

PathLike = Union[str, "os.PathLike[str]"]


class Subscription:
    """Handle returned by ObservableCell.subscribe; dispose() to stop receiving values."""

    def __init__(self, cell: "ObservableCell", callback: Callable) -> None:
        self._cell = cell
        self._callback = callback
        self.disposed = False

    def dispose(self) -> None:
        if not self.disposed:
            self.disposed = True
            self._cell._unsubscribe(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.dispose()


class ObservableCell(Generic[T]):
    """
    A value holder that broadcasts every new value to its subscribers.

    Notifications are synchronous and delivered in subscription order. The
    subscriber list is copied when set() starts, so a callback that
    subscribes or unsubscribes only affects later notifications.

    Delivery happens outside the lock, so callers must keep to one writer per
    cell: two threads calling set() at once may notify in a different order
    than the one value ends up holding.
    """

    def __init__(self, value: Optional[T] = None) -> None:
        self._value = value
        self._subscriptions: List[Subscription] = []
        self._lock = threading.Lock()

    @property
    def value(self) -> Optional[T]:
        return self._value

    def subscribe(
        self, callback: Callable[[Optional[T]], None], replay: bool = False
    ) -> Subscription:
        subscription = Subscription(self, callback)
        with self._lock:
            self._subscriptions.append(subscription)
            current = self._value
        if replay:
            callback(current)
        return subscription

    def _unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def set(self, value: Optional[T]) -> None:
        with self._lock:
            self._value = value
            targets = list(self._subscriptions)
        for subscription in targets:
            subscription._callback(value)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)


def normalize_path(path: PathLike) -> str:
    return os.fspath(path).casefold()


class AnalysisCache:
    """
    Registry of analysis cells keyed by normalized document path.

    Cells are created lazily and kept until evict() is called; the cache
    itself lives as long as whoever created it holds on to it.
    """

    def __init__(self) -> None:
        self._cells: Dict[str, ObservableCell[AnalysisResult]] = {}
        self._lock = threading.Lock()

    def get_or_create(self, path: PathLike) -> ObservableCell[AnalysisResult]:
        key = normalize_path(path)
        with self._lock:
            cell = self._cells.get(key)
            if cell is None:
                cell = ObservableCell()
                self._cells[key] = cell
                logger.debug("Created analysis cell for %s", key)
        return cell

    def get(self, path: PathLike) -> Optional[AnalysisResult]:
        with self._lock:
            cell = self._cells.get(normalize_path(path))
        return cell.value if cell is not None else None

    def publish(self, path: PathLike, result: AnalysisResult) -> None:
        cell = self.get_or_create(path)
        logger.debug("Publishing %r for %s", result.display_label, normalize_path(path))
        cell.set(result)

    def evict(self, path: PathLike) -> bool:
        with self._lock:
            cell = self._cells.pop(normalize_path(path), None)
        return cell is not None

    def paths(self) -> List[str]:
        with self._lock:
            return list(self._cells)

    def __contains__(self, path: PathLike) -> bool:
        with self._lock:
            return normalize_path(path) in self._cells

    def __len__(self) -> int:
        with self._lock:
            return len(self._cells)
