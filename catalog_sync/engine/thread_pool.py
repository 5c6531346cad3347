"""Bounded worker pool fanning items out to threads."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, wait
from threading import BoundedSemaphore, Lock
from typing import Callable, Iterable, TypeVar

T = TypeVar("T")
R = TypeVar("R")


class WorkerPool:
    """Run a handler over items with at most ``max_workers`` in flight.

    A token is taken before each dispatch (blocking while the pool is
    saturated) and handed back when the item finishes, whatever its outcome.
    """

    def __init__(self, max_workers: int = 5, thread_name_prefix: str = "sync") -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self.max_workers = max_workers
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix=thread_name_prefix
        )
        self._tokens = BoundedSemaphore(max_workers)
        self._lock = Lock()
        self._in_flight = 0
        self.peak_in_flight = 0

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._in_flight

    def run_all(
        self,
        items: Iterable[T],
        handler: Callable[[T], R],
        on_error: Callable[[T, Exception], R] | None = None,
    ) -> list[R]:
        """Process every item and return once all of them have completed.

        Items may complete in any order; results are listed in dispatch order.
        Without ``on_error`` the first handler exception is re-raised, but only
        after every item finished.
        """

        futures: list[Future[R]] = []
        for item in items:
            self._tokens.acquire()
            try:
                futures.append(self._executor.submit(self._run_one, item, handler, on_error))
            except BaseException:
                self._tokens.release()
                raise
        wait(futures)
        return [future.result() for future in futures]

    def _run_one(
        self,
        item: T,
        handler: Callable[[T], R],
        on_error: Callable[[T, Exception], R] | None,
    ) -> R:
        with self._lock:
            self._in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self._in_flight)
        try:
            return handler(item)
        except Exception as exc:  # noqa: BLE001
            if on_error is None:
                raise
            return on_error(item, exc)
        finally:
            with self._lock:
                self._in_flight -= 1
            self._tokens.release()

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)


__all__ = ["WorkerPool"]
