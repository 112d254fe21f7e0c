"""
核心模块
========

包含帧构建、帧校验、串口传输、IO线程和命令队列等核心功能。
"""

from .checksum import calculate_crc16_modbus, crc16_modbus_bytes
from .frame_builder import FrameBuilder
from .frame_validator import FrameValidator
from .transport import SerialTransport, PortInfo
from .worker import BusWorker
from .io_thread import IoThread
from .sequencer import CommandSequencer

__all__ = [
    "calculate_crc16_modbus",
    "crc16_modbus_bytes",
    "FrameBuilder",
    "FrameValidator",
    "SerialTransport",
    "PortInfo",
    "BusWorker",
    "IoThread",
    "CommandSequencer",
]
