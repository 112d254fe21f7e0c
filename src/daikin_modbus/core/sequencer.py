"""
命令队列模块
============

半双工总线上的所有请求都经过这里：严格先进先出，同一时刻只有一条命令
在线路上等待响应，每条命令发送前等待帧间静默时间。

响应帧由IO线程交给 handle_frame，校验结果只结算给已发送的队首命令，
且响应内容必须与该命令的请求对应。命令超时后先等待一段恢复时间，
期间迟到的响应没有可结算的命令，会被计数并丢弃；
某条命令失败不影响队列中的其他命令，本层不做重试。
"""

import threading
import time
from collections import deque
from concurrent.futures import Future, InvalidStateError
from dataclasses import dataclass, field
from typing import Deque, Optional

from ..config.constants import (
    DEFAULT_SILENT_INTERVAL,
    DEFAULT_COMMAND_TIMEOUT,
    DEFAULT_TIMEOUT_RECOVERY,
)
from ..core.frame_validator import FrameValidator
from ..core.transport import SerialTransport
from ..core.worker import BusWorker
from ..exceptions import DaikinModbusError, TransportError, CommandTimeout
from ..utils.logger import get_logger, format_frame

logger = get_logger(__name__)


@dataclass
class Command:
    """一条待发送或已发送的总线命令"""

    frame: bytes
    future: "Future[bytes]" = field(default_factory=Future)
    sent: bool = False
    sent_at: float = 0.0

    @property
    def slave_address(self) -> int:
        return self.frame[0]

    @property
    def function_code(self) -> int:
        return self.frame[1]


class CommandSequencer(BusWorker):
    """
    命令队列

    一个工作线程按顺序消费队列：等待静默时间 → 写出队首帧 → 等待结算
    （响应、串口错误或超时）→ 处理下一条。
    """

    thread_name = "CommandSequencer"

    def __init__(
        self,
        transport: SerialTransport,
        silent_interval: float = DEFAULT_SILENT_INTERVAL,
        command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
        recovery_interval: float = DEFAULT_TIMEOUT_RECOVERY,
    ):
        """
        Args:
            transport: 串口传输
            silent_interval: 发送前的静默时间(秒)
            command_timeout: 等待响应的超时时间(秒)
            recovery_interval: 超时后发送下一条命令前的等待时间(秒)
        """
        super().__init__()
        self.transport = transport
        self.silent_interval = silent_interval
        self.command_timeout = command_timeout
        self.recovery_interval = recovery_interval

        self._pending: Deque[Command] = deque()
        self._cond = threading.Condition()

        self.commands_sent = 0
        self.commands_failed = 0
        self.commands_timed_out = 0
        self.frames_unexpected = 0

    def _wake(self) -> None:
        with self._cond:
            self._cond.notify_all()

    def _after_stop(self) -> None:
        """工作线程退出后，尚未结算的命令全部以 TransportError 结束"""
        with self._cond:
            leftovers = list(self._pending)
            self._pending.clear()
        for command in leftovers:
            self._settle(command, error=TransportError("命令队列已停止"))

    @property
    def pending_count(self) -> int:
        """队列中尚未结算的命令数（含在途命令）"""
        with self._cond:
            return len(self._pending)

    def get_statistics(self) -> dict:
        """
        获取命令队列统计信息

        Returns:
            包含统计信息的字典
        """
        return {
            "running": self.is_running,
            "pending": self.pending_count,
            "commands_sent": self.commands_sent,
            "commands_failed": self.commands_failed,
            "commands_timed_out": self.commands_timed_out,
            "frames_unexpected": self.frames_unexpected,
        }

    def enqueue(self, frame: bytes) -> "Future[bytes]":
        """
        将一帧请求加入队列

        Args:
            frame: 已构建好的请求帧

        Returns:
            结算为校验后响应帧或分类异常的Future
        """
        command = Command(frame=bytes(frame))
        with self._cond:
            self._pending.append(command)
            self._cond.notify_all()
        return command.future

    def handle_frame(self, frame: bytes) -> None:
        """
        处理IO线程送来的一帧响应，结算已发送的队首命令

        Args:
            frame: 完整的原始响应帧
        """
        command = self._pop_sent_head()
        if command is None:
            with self._cond:
                self.frames_unexpected += 1
            logger.warning(f"没有等待中的命令，丢弃响应: {format_frame(frame)}")
            return

        try:
            payload = FrameValidator.validate(
                frame,
                expected_address=command.slave_address,
                expected_function=command.function_code,
                request=command.frame,
            )
        except DaikinModbusError as e:
            logger.warning(f"命令失败 {format_frame(command.frame)}: {e}")
            self._settle(command, error=e)
        else:
            self._settle(command, result=payload)

    def handle_error(self, error: Exception) -> None:
        """
        处理串口层错误，结算已发送的队首命令

        Args:
            error: 串口层抛出的异常
        """
        command = self._pop_sent_head()
        if command is None:
            return
        if not isinstance(error, TransportError):
            error = TransportError(str(error))
        self._settle(command, error=error)

    def _pop_sent_head(self) -> Optional[Command]:
        with self._cond:
            if not self._pending or not self._pending[0].sent:
                return None
            command = self._pending.popleft()
            self._cond.notify_all()
            return command

    def _settle(
        self,
        command: Command,
        result: Optional[bytes] = None,
        error: Optional[BaseException] = None,
    ) -> None:
        """结算命令，回调在当前线程执行，因此不能持锁调用"""
        if error is not None:
            with self._cond:
                self.commands_failed += 1
        try:
            if error is not None:
                command.future.set_exception(error)
            else:
                command.future.set_result(result)
        except InvalidStateError:
            logger.debug("命令已被取消，忽略结算结果")

    def _run(self) -> None:
        """工作线程主循环"""
        logger.debug("命令队列工作线程开始运行")

        while not self._stop_event.is_set():
            with self._cond:
                while not self._pending and not self._stop_event.is_set():
                    self._cond.wait(0.1)
                if self._stop_event.is_set():
                    break
                command = self._pending[0]

            # 帧间静默时间，同时限制主站发送速率
            if self._stop_event.wait(self.silent_interval):
                break

            self._transmit(command)
            self._await_settlement(command)

        logger.debug("命令队列工作线程已结束")

    def _transmit(self, command: Command) -> None:
        with self._cond:
            command.sent = True
            command.sent_at = time.monotonic()
            self.commands_sent += 1

        logger.debug(f"[发送] {format_frame(command.frame)}")
        try:
            self.transport.send(command.frame)
        except TransportError as e:
            # 写失败立即结算，队列继续
            logger.error(f"命令发送失败: {e}")
            with self._cond:
                if self._pending and self._pending[0] is command:
                    self._pending.popleft()
                else:
                    return
            self._settle(command, error=e)

    def _await_settlement(self, command: Command) -> None:
        deadline = command.sent_at + self.command_timeout
        with self._cond:
            while self._pending and self._pending[0] is command:
                remaining = deadline - time.monotonic()
                if remaining <= 0 or self._stop_event.is_set():
                    break
                self._cond.wait(remaining)
            else:
                return  # 已被响应或错误结算

            if self._stop_event.is_set():
                return  # stop() 负责结算
            self._pending.popleft()
            self.commands_timed_out += 1

        logger.warning(
            f"命令超时({self.command_timeout}s): {format_frame(command.frame)}"
        )
        self._settle(command, error=CommandTimeout(f"等待响应超时: {format_frame(command.frame)}"))

        # 迟到的响应在此期间到达时没有已发送的命令，由 handle_frame 丢弃
        if self._stop_event.wait(self.recovery_interval):
            return
        self.transport.discard_input()
