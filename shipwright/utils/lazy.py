"""
延迟计算值

Lazy 在第一次访问时计算并缓存结果，整个进程只计算一次。
并发的首次访问共享同一个 Future，不会重复计算。
计算失败时，所有正在等待的调用方都得到同一个异常，之后的访问会重新计算。
"""

import threading
from concurrent.futures import Future
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")


class Lazy(Generic[T]):
    """线程安全的延迟值"""

    def __init__(self, creator: Callable[[], T]):
        self._creator = creator
        self._lock = threading.Lock()
        self._future: Optional["Future[T]"] = None

    @property
    def has_value(self) -> bool:
        future = self._future
        return future is not None and future.done() and future.exception() is None

    @property
    def value(self) -> T:
        with self._lock:
            future = self._future
            is_owner = future is None
            if is_owner:
                future = Future()
                self._future = future

        if not is_owner:
            return future.result()

        try:
            result = self._creator()
        except BaseException as e:
            with self._lock:
                self._future = None
            future.set_exception(e)
            raise

        future.set_result(result)
        return result

    def reset(self) -> None:
        """丢弃已缓存的结果（测试使用）"""
        with self._lock:
            self._future = None
