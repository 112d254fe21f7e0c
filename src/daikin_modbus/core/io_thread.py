"""
IO线程模块
==========

独立的串口读取线程：把分块到达的字节拼接成完整响应帧，交给命令队列处理。

分帧规则：按帧头推算响应长度（读响应 5 + 字节数，写响应8字节，异常响应5字节），
收满即切出一帧，多出的字节留给下一帧。串口读超时会让一帧分成多个长短不一的
数据块到达，因此数据块的长短不能作为帧边界。

帧头无法识别时退回旧规则：收到不足32字节的数据块即结束当前帧。
一次空读（读超时内没有任何新数据）总是结束缓冲区里的残余字节。
"""

import time
from typing import Callable, List, Optional

from ..config.constants import RECEIVE_CHUNK_SIZE
from ..core.frame_validator import FrameValidator
from ..core.transport import SerialTransport
from ..core.worker import BusWorker
from ..exceptions import TransportError, ProtocolViolation
from ..utils.logger import get_logger, format_frame

logger = get_logger(__name__)

FrameCallback = Callable[[bytes], None]
ErrorCallback = Callable[[Exception], None]


class IoThread(BusWorker):
    """
    串口读取线程

    解析出的帧通过 on_frame 投递，读取错误通过 on_error 上报；
    两个回调都在本线程中执行。
    """

    thread_name = "IoThread"

    def __init__(
        self,
        transport: SerialTransport,
        on_frame: FrameCallback,
        on_error: Optional[ErrorCallback] = None,
        chunk_size: int = RECEIVE_CHUNK_SIZE,
    ):
        """
        Args:
            transport: 串口传输
            on_frame: 收到完整帧时的回调
            on_error: 串口读取出错时的回调
            chunk_size: 单次读取的最大字节数
        """
        super().__init__()
        self.transport = transport
        self.on_frame = on_frame
        self.on_error = on_error
        self.chunk_size = chunk_size

        self._buffer = bytearray()
        self.frames_received = 0
        self.read_errors = 0

    def _can_start(self) -> bool:
        if not self.transport.is_open:
            logger.error("串口未打开，IO线程不启动")
            return False
        return True

    def get_statistics(self) -> dict:
        return {
            "running": self.is_running,
            "frames_received": self.frames_received,
            "read_errors": self.read_errors,
            "buffered_bytes": len(self._buffer),
        }

    def feed(self, chunk: bytes) -> List[bytes]:
        """
        处理一次读取结果

        Args:
            chunk: 本次读到的数据块（可能为空）

        Returns:
            本次读取凑齐的完整帧，按到达顺序排列
        """
        if not chunk:
            if not self._buffer:
                return []  # 空闲
            logger.debug(f"读超时，结束残余的 {len(self._buffer)} 字节")
            return [self._take(len(self._buffer))]

        self._buffer.extend(chunk)
        frames = []
        while self._buffer:
            try:
                length = FrameValidator.expected_length(self._buffer)
            except ProtocolViolation:
                if len(chunk) < self.chunk_size:
                    frames.append(self._take(len(self._buffer)))
                break
            if length is None or len(self._buffer) < length:
                break
            frames.append(self._take(length))
        return frames

    def _take(self, length: int) -> bytes:
        frame = bytes(self._buffer[:length])
        del self._buffer[:length]
        return frame

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                chunk = self.transport.receive(self.chunk_size)
            except TransportError as e:
                self.read_errors += 1
                self._buffer.clear()
                logger.error(f"串口读取失败，丢弃半帧: {e}")
                self._dispatch(self.on_error, e)
                self._stop_event.wait(0.1)
                continue

            for frame in self.feed(chunk):
                self.frames_received += 1
                logger.debug(f"[接收] {format_frame(frame)}")
                self._dispatch(self.on_frame, frame)

            if not chunk:
                time.sleep(0.001)  # 串口超时为0时避免忙等

    @staticmethod
    def _dispatch(callback, arg) -> None:
        if callback is None:
            return
        try:
            callback(arg)
        except Exception as e:
            logger.error(f"IO线程回调异常: {e}")
