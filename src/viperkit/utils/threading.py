"""Threading utilities for background scans and remediation batches."""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional, ParamSpec, TypeVar

P = ParamSpec("P")
T = TypeVar("T")


class WorkerPool:
    """Lazily created thread pool shared by one case session.

    Enumeration, hashing and whole remediation batches are submitted here so
    the controlling thread never blocks. A batch is a single submitted call;
    the items inside it still run one after another.
    """

    def __init__(self, max_workers: int = 4, name: str = "viperkit"):
        self._max_workers = max(1, max_workers)
        self._name = name
        self._executor: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()

    @property
    def max_workers(self) -> int:
        return self._max_workers

    def submit(self, func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> "Future[T]":
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers, thread_name_prefix=self._name
                )
            executor = self._executor
        return executor.submit(func, *args, **kwargs)

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)
