"""A bounded worker pool shared by the directory, URL and pane collectors."""

from __future__ import annotations

import queue
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Sequence

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class Outcome(Generic[T, R]):
    """Result of one work item: either a value or the exception it raised."""

    index: int
    item: T
    value: R | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BoundedPool(Generic[T, R]):
    """Run `worker` over `items` on at most `size` threads.

    Workers pull from a shared queue until it is empty. A failing item is
    reported as an Outcome carrying its exception; it never stops the other
    items.

    Pacing is optional: worker `i` first waits `i * stagger`, then waits
    `interval` between two consecutive items it processes.
    """

    def __init__(
        self,
        worker: Callable[[T], R],
        items: Sequence[T],
        size: int,
        *,
        name: str = "pool",
        stagger: float = 0.0,
        interval: float = 0.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._worker = worker
        self._items = list(items)
        self._size = max(0, min(size, len(self._items)))
        self._name = name
        self._stagger = stagger
        self._interval = interval
        self._sleep = sleep
        self._work: queue.SimpleQueue[tuple[int, T]] = queue.SimpleQueue()
        self._results: queue.SimpleQueue[Outcome[T, R] | None] = queue.SimpleQueue()
        self._threads: list[threading.Thread] = []

    @property
    def size(self) -> int:
        return self._size

    def start(self) -> BoundedPool[T, R]:
        """Queue every item and launch the workers. Calling it twice is a no-op."""
        if self._threads or not self._items:
            return self
        for index, item in enumerate(self._items):
            self._work.put((index, item))
        for worker_index in range(self._size):
            thread = threading.Thread(
                target=self._run,
                args=(worker_index,),
                name=f"{self._name}-{worker_index}",
                daemon=True,
            )
            self._threads.append(thread)
            thread.start()
        return self

    def _run(self, worker_index: int) -> None:
        try:
            if self._stagger and worker_index:
                self._sleep(worker_index * self._stagger)
            first = True
            while True:
                try:
                    index, item = self._work.get_nowait()
                except queue.Empty:
                    return
                if not first and self._interval:
                    self._sleep(self._interval)
                first = False
                try:
                    outcome = Outcome(index=index, item=item, value=self._worker(item))
                except Exception as e:  # noqa: BLE001
                    outcome = Outcome(index=index, item=item, error=e)
                self._results.put(outcome)
        finally:
            self._results.put(None)

    def as_completed(self) -> Iterator[Outcome[T, R]]:
        """Yield outcomes as workers finish them, starting the pool if needed."""
        self.start()
        remaining = len(self._threads)
        while remaining:
            outcome = self._results.get()
            if outcome is None:
                remaining -= 1
                continue
            yield outcome

    def in_order(self) -> list[Outcome[T, R]]:
        """Wait for every item and return outcomes in submission order."""
        return sorted(self.as_completed(), key=lambda outcome: outcome.index)
