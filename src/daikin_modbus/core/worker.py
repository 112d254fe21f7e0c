"""
总线工作线程基类
================

IO线程和命令队列共用的生命周期：单个守护线程、停止事件、限时join。
"""

import threading
from typing import Optional

from ..utils.logger import get_logger

logger = get_logger(__name__)


class BusWorker:
    """
    单线程工作者

    子类实现 _run()，在循环中检查 self._stop_event；
    需要额外唤醒或清理时覆盖 _wake()、_can_start()、_after_stop()。
    """

    thread_name = "BusWorker"

    def __init__(self):
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> bool:
        """
        启动工作线程

        Returns:
            线程已在运行或启动成功返回True，前置条件不满足返回False
        """
        if self.is_running:
            logger.warning(f"{self.thread_name} 已经在运行")
            return True
        if not self._can_start():
            return False

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name=self.thread_name, daemon=True)
        self._thread.start()
        logger.info(f"{self.thread_name} 已启动")
        return True

    def stop(self, timeout: float = 2.0) -> bool:
        """
        请求停止并等待线程退出

        Returns:
            线程在 timeout 内退出（或从未启动）返回True
        """
        thread = self._thread
        if thread is None:
            return True

        self._stop_event.set()
        self._wake()
        thread.join(timeout)
        if thread.is_alive():
            logger.warning(f"{self.thread_name} 未在{timeout}秒内结束")
            return False

        self._thread = None
        self._after_stop()
        logger.info(f"{self.thread_name} 已停止")
        return True

    def _can_start(self) -> bool:
        return True

    def _wake(self) -> None:
        pass

    def _after_stop(self) -> None:
        pass

    def _run(self) -> None:
        raise NotImplementedError

    def __enter__(self):
        """支持with语句"""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """支持with语句"""
        self.stop()
