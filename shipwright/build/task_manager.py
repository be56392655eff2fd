"""
任务管理与取消

TaskManager 把一批相互独立的阻塞操作放进线程池并在一个点上统一等待。
取消是协作式的：只在流水线指定的检查点生效，不会中断正在执行的文件操作。
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Callable, List, Optional, TypeVar

from ..utils.logging import debug

T = TypeVar("T")


class CancellationToken:
    """取消标记"""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class TaskManager:
    """一组并发任务

    任务执行过程中可以继续添加任务，await_tasks 会等到所有任务（包括新加入的）结束。
    """

    def __init__(self, cancellation_token: Optional[CancellationToken] = None, max_workers: Optional[int] = None):
        self.cancellation_token = cancellation_token or CancellationToken()
        self.max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._tasks: List[Future] = []
        self._lock = threading.Lock()

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="shipwright")
        return self._executor

    def add_task(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Optional[Future]:
        """提交任务，已取消时忽略"""
        if self.cancellation_token.cancelled:
            debug(f"已取消，忽略任务: {getattr(fn, '__name__', fn)}")
            return None

        with self._lock:
            future = self._get_executor().submit(fn, *args, **kwargs)
            self._tasks.append(future)
        return future

    def cancel_tasks(self) -> None:
        """取消尚未开始的任务"""
        with self._lock:
            for future in self._tasks:
                future.cancel()
            self._tasks.clear()

    def await_tasks(self) -> List[Any]:
        """等待所有任务结束并返回结果（按提交顺序）

        Raises:
            Exception: 第一个失败任务（按提交顺序）的异常，此时未开始的任务会被取消
        """
        results: List[Any] = []
        while True:
            with self._lock:
                batch = self._tasks
                self._tasks = []
            if not batch:
                return results

            if self.cancellation_token.cancelled:
                for future in batch:
                    future.cancel()
                self.cancel_tasks()
                return []

            wait(batch)
            for future in batch:
                if future.cancelled():
                    continue
                exc = future.exception()
                if exc is not None:
                    self.cancel_tasks()
                    raise exc
                results.append(future.result())

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self) -> "TaskManager":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()


def best_effort(fn: Callable[..., T]) -> Callable[..., Optional[T]]:
    """包装可以失败的操作：OSError 只记录日志"""

    def wrapper(*args: Any, **kwargs: Any) -> Optional[T]:
        try:
            return fn(*args, **kwargs)
        except OSError as e:
            debug(f"忽略失败的操作 {getattr(fn, '__name__', fn)}: {e}")
            return None

    return wrapper
