"""
串口传输层
==========

总线上唯一的串口句柄。只负责原样收发字节，
分帧交给IO线程，时序交给命令队列。
"""

from dataclasses import dataclass
from typing import List, Optional

import serial
from serial.tools import list_ports

from ..config.settings import SerialConfig
from ..exceptions import TransportError
from ..utils.logger import get_logger, format_frame

logger = get_logger(__name__)


@dataclass(frozen=True)
class PortInfo:
    """系统串口描述"""

    device: str
    description: str
    hwid: str


class SerialTransport:
    """RS-485 串口传输"""

    def __init__(self, config: SerialConfig):
        """
        Args:
            config: 串口配置（9600 8E1）
        """
        self.config = config
        self._serial: Optional[serial.Serial] = None

    @property
    def is_open(self) -> bool:
        return self._serial is not None and self._serial.is_open

    def open(self) -> None:
        """
        打开总线串口，已打开时直接返回

        Raises:
            TransportError: 设备不存在、被占用或参数非法
        """
        if self.is_open:
            return

        try:
            self._serial = serial.Serial(**self.config.to_serial_kwargs())
        except (serial.SerialException, ValueError, OSError) as e:
            self._serial = None
            raise TransportError(f"无法打开串口 {self.config.port}: {e}") from e

        logger.info(
            f"总线已连接 {self.config.port} "
            f"{self.config.baudrate}bps {self.config.bytesize}{self.config.parity}{self.config.stopbits}"
        )

    def close(self) -> None:
        """关闭串口，重复调用无副作用"""
        handle, self._serial = self._serial, None
        if handle is None or not handle.is_open:
            return
        try:
            handle.close()
            logger.info(f"总线已断开 {self.config.port}")
        except (serial.SerialException, OSError) as e:
            logger.warning(f"关闭 {self.config.port} 时出错: {e}")

    def send(self, frame: bytes) -> None:
        """
        写出一整帧并等待发送缓冲排空

        Raises:
            TransportError: 串口未打开、写入异常或只写出了部分字节
        """
        handle = self._require_open()
        try:
            written = handle.write(frame)
            handle.flush()
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"发送失败 {format_frame(frame)}: {e}") from e

        if written != len(frame):
            raise TransportError(f"只发送了 {written}/{len(frame)} 字节")

    def receive(self, size: int) -> bytes:
        """
        读取至多 size 字节；读超时内没有数据时返回 b""

        Raises:
            TransportError: 串口未打开或读取异常
        """
        handle = self._require_open()
        try:
            return handle.read(size)
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"接收失败: {e}") from e

    def discard_input(self) -> None:
        """丢弃输入缓冲区中的残余字节"""
        if not self.is_open:
            return
        try:
            self._serial.reset_input_buffer()
        except (serial.SerialException, OSError) as e:
            logger.warning(f"清空输入缓冲区失败: {e}")

    def _require_open(self) -> serial.Serial:
        if not self.is_open:
            raise TransportError(f"串口 {self.config.port} 未打开")
        return self._serial

    @staticmethod
    def available_ports() -> List[PortInfo]:
        """枚举系统串口，枚举失败时返回空列表"""
        try:
            return [
                PortInfo(
                    device=info.device,
                    description=info.description or "未知设备",
                    hwid=info.hwid or "未知硬件ID",
                )
                for info in list_ports.comports()
            ]
        except OSError as e:
            logger.error(f"枚举串口失败: {e}")
            return []

    def __enter__(self):
        """支持with语句"""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """支持with语句"""
        self.close()
