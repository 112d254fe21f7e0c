"""
系统常量定义
============

定义Modbus RTU协议、寄存器地址映射以及总线时序相关的常量。
"""

from enum import IntEnum
import struct
from typing import Final


class ModbusFunction(IntEnum):
    """Modbus功能码枚举"""

    READ_INPUT_REGISTERS = 0x04  # 读输入寄存器
    WRITE_SINGLE_REGISTER = 0x06  # 写单个保持寄存器
    WRITE_MULTIPLE_REGISTERS = 0x10  # 写多个保持寄存器


# 异常响应：请求功能码 | 0x80（实测 0x84 / 0x86 / 0x90）
EXCEPTION_FLAG: Final[int] = 0x80

# CRC16编码格式（小端）
FRAME_CRC_FORMAT: Final[str] = "<H"
FRAME_CRC_SIZE: Final[int] = struct.calcsize(FRAME_CRC_FORMAT)

# 寄存器地址基准（协议地址 = 寄存器号 - 基准）
INPUT_REGISTER_BASE: Final[int] = 30001
HOLDING_REGISTER_BASE: Final[int] = 40001

# 寄存器映射
ADAPTOR_STATUS_REGISTER: Final[int] = 30001  # 适配器状态，bit0=就绪
CONNECTION_STATUS_REGISTER: Final[int] = 30002  # 室内机连接位图（每台1位）
CAPABILITY_REGISTER_START: Final[int] = 31001  # 室内机能力信息，每台3个寄存器
STATUS_REGISTER_START: Final[int] = 32001  # 室内机状态，每台6个寄存器
CONTROL_REGISTER_START: Final[int] = 40001  # 室内机控制寄存器，每台3个寄存器

# 室内机数量与寄存器布局
UNIT_SLOT_COUNT: Final[int] = 16
CAPABILITY_REGISTERS_PER_UNIT: Final[int] = 3
STATUS_REGISTERS_PER_UNIT: Final[int] = 6
CONTROL_REGISTERS_PER_UNIT: Final[int] = 3
CAPABILITY_UNITS_PER_PAGE: Final[int] = 8  # 能力信息每次读取8台
STATUS_PAGE_COUNT: Final[int] = 3  # 状态寄存器分3次读取

# 总线限制
MAX_READ_REGISTERS: Final[int] = 32  # 单次最多读取32个寄存器
MAX_WRITE_REGISTERS: Final[int] = 30  # 单次最多写入30个寄存器
MAX_SEGMENT_UNITS: Final[int] = MAX_WRITE_REGISTERS // CONTROL_REGISTERS_PER_UNIT
RECEIVE_CHUNK_SIZE: Final[int] = 32  # 总线每次最多送出32字节

# 串口配置默认值
DEFAULT_PORT_BAUDRATE: Final[int] = 9600  # 默认波特率
DEFAULT_READ_TIMEOUT: Final[float] = 0.05  # 串口读超时(秒)

# 时序配置默认值
DEFAULT_SLAVE_ADDRESS: Final[int] = 1  # 适配器从站地址
DEFAULT_SILENT_INTERVAL: Final[float] = 0.025  # 帧间静默时间(秒)
DEFAULT_COMMAND_TIMEOUT: Final[float] = 1.0  # 单条命令响应超时(秒)
DEFAULT_TIMEOUT_RECOVERY: Final[float] = 1.0  # 超时后等待迟到响应排空的时间(秒)
DEFAULT_HEALTH_CHECK_INTERVAL: Final[float] = 5.0  # 未初始化时的重试间隔(秒)
DEFAULT_REFRESH_INTERVAL: Final[float] = 60.0  # 周期刷新间隔(秒)
DEFAULT_SYNC_DEBOUNCE: Final[float] = 5.0  # sync() 去抖窗口(秒)

# 重试配置默认值
DEFAULT_RETRY_COUNT: Final[int] = 3  # 默认重试次数
DEFAULT_BACKOFF_BASE: Final[float] = 0.5  # 指数退避基础秒数


def capability_page_count(connection_status: int) -> int:
    """
    根据连接位图计算需要读取的能力信息页数

    Args:
        connection_status: 16位连接位图

    Returns:
        高8台全部未连接时返回1，否则返回2
    """
    return 2 if connection_status & 0xFF00 else 1
