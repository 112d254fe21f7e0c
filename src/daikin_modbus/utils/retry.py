"""
调用方重试策略
==============

命令队列本身不重试。需要重试的上层操作（例如命令行里的发现流程）
把整个操作交给 retry_call，失败后按指数退避重新执行。
"""

import random
import time
from typing import Callable, Tuple, Type, TypeVar

from ..exceptions import DaikinModbusError

T = TypeVar("T")


def exponential_backoff(base: float, attempt: int, jitter_ratio: float = 0.1) -> float:
    """
    第 attempt 次失败后的等待时间：base * 2^attempt，再叠加至多 jitter_ratio 的随机抖动

    attempt 从0开始计数。
    """
    wait = base * 2 ** attempt
    return wait + random.uniform(0, wait * jitter_ratio)


def retry_call(
    operation: Callable[[], T],
    *,
    max_retry: int,
    base_delay: float,
    retry_on: Tuple[Type[BaseException], ...] = (DaikinModbusError,),
    logger=None,
) -> T:
    """
    执行 operation，遇到 retry_on 中的异常时退避后重来

    Args:
        operation: 无参的总线操作
        max_retry: 首次失败后最多再试几次
        base_delay: 退避基数(秒)
        retry_on: 需要重试的异常类型，其余异常直接抛出
        logger: 记录每次失败的日志器（可选）

    Returns:
        operation 的返回值

    Raises:
        重试耗尽时抛出最后一次失败的异常
    """
    attempt = 0
    while True:
        try:
            return operation()
        except retry_on as e:
            if attempt >= max_retry:
                raise
            wait = exponential_backoff(base_delay, attempt)
            if logger is not None:
                logger.warning(f"总线操作失败({attempt + 1}/{max_retry + 1}): {e}，{wait:.2f}秒后重试")
            time.sleep(wait)
            attempt += 1
