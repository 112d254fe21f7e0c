"""
配置模块
=======

包含协议常量定义和配置管理功能。
"""

from .constants import *
from .settings import *

__all__ = [
    # 常量
    "ModbusFunction",
    "UNIT_SLOT_COUNT",
    "MAX_READ_REGISTERS",
    "MAX_WRITE_REGISTERS",
    "RECEIVE_CHUNK_SIZE",
    "DEFAULT_SILENT_INTERVAL",
    # 配置
    "SerialConfig",
    "EngineConfig",
]
