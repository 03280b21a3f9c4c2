from __future__ import annotations

import types
import typing as tp
from threading import Lock as T_LOCK


class Lock:
    def __init__(self) -> None:
        self._lock = T_LOCK()

    def __enter__(self) -> None:
        self._lock.acquire()

    def __exit__(
        self,
        exc_type: type[BaseException] | None = None,
        exc_value: BaseException | None = None,
        traceback: types.TracebackType | None = None,
    ) -> None:
        self._lock.release()


class OnceFlags:
    """
    A thread-safe set of flags, each of which can be raised only once per process.

    Example:
        ```
        flags = OnceFlags()
        flags.first_time("purge")  # True
        flags.first_time("purge")  # False
        ```
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._raised: tp.Set[tp.Hashable] = set()

    def first_time(self, flag: tp.Hashable) -> bool:
        with self._lock:
            if flag in self._raised:
                return False
            self._raised.add(flag)
            return True
