"""
配置管理
========

提供串口和寄存器同步引擎相关的配置类。
"""

from dataclasses import dataclass
import serial

from .constants import (
    DEFAULT_PORT_BAUDRATE,
    DEFAULT_READ_TIMEOUT,
    DEFAULT_SLAVE_ADDRESS,
    DEFAULT_SILENT_INTERVAL,
    DEFAULT_COMMAND_TIMEOUT,
    DEFAULT_HEALTH_CHECK_INTERVAL,
    DEFAULT_REFRESH_INTERVAL,
    DEFAULT_SYNC_DEBOUNCE,
    DEFAULT_RETRY_COUNT,
    DEFAULT_BACKOFF_BASE,
    CONTROL_REGISTER_START,
    HOLDING_REGISTER_BASE,
)


@dataclass
class SerialConfig:
    """串口配置类"""

    port: str  # 串口号
    baudrate: int = DEFAULT_PORT_BAUDRATE  # 波特率
    bytesize: int = serial.EIGHTBITS  # 数据位
    parity: str = serial.PARITY_EVEN  # 校验位，总线要求偶校验
    stopbits: float = serial.STOPBITS_ONE  # 停止位
    timeout: float = DEFAULT_READ_TIMEOUT  # 读超时时间

    def to_serial_kwargs(self) -> dict:
        """转换为serial.Serial的参数字典"""
        return {
            "port": self.port,
            "baudrate": self.baudrate,
            "bytesize": self.bytesize,
            "parity": self.parity,
            "stopbits": self.stopbits,
            "timeout": self.timeout,
        }


@dataclass
class EngineConfig:
    """寄存器同步引擎配置类"""

    slave_address: int = DEFAULT_SLAVE_ADDRESS  # 从站地址
    silent_interval: float = DEFAULT_SILENT_INTERVAL  # 帧间静默时间(秒)
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT  # 单条命令超时(秒)
    health_check_interval: float = DEFAULT_HEALTH_CHECK_INTERVAL  # 初始化重试间隔(秒)
    refresh_interval: float = DEFAULT_REFRESH_INTERVAL  # 周期刷新间隔(秒)
    sync_debounce: float = DEFAULT_SYNC_DEBOUNCE  # sync() 去抖窗口(秒)
    control_register_base: int = CONTROL_REGISTER_START  # 0号室内机控制寄存器号
    retry_count: int = DEFAULT_RETRY_COUNT  # 调用方重试次数
    backoff_base: float = DEFAULT_BACKOFF_BASE  # 指数退避基础秒数

    def __post_init__(self):
        """参数验证"""
        if not 0 <= self.slave_address <= 0xFF:
            raise ValueError("slave_address必须在0到255之间")
        if self.silent_interval < 0:
            raise ValueError("silent_interval不能为负数")
        if self.command_timeout <= 0:
            raise ValueError("command_timeout必须大于0")
        if self.health_check_interval <= 0:
            raise ValueError("health_check_interval必须大于0")
        if self.refresh_interval <= 0:
            raise ValueError("refresh_interval必须大于0")
        if self.sync_debounce < 0:
            raise ValueError("sync_debounce不能为负数")
        if self.control_register_base < HOLDING_REGISTER_BASE:
            raise ValueError(f"control_register_base不能小于{HOLDING_REGISTER_BASE}")
        if self.retry_count < 0:
            raise ValueError("retry_count不能为负数")
        if self.backoff_base <= 0:
            raise ValueError("backoff_base必须大于0")

    def control_register_of(self, unit_index: int, offset: int = 0) -> int:
        """
        计算指定室内机控制寄存器的寄存器号

        Args:
            unit_index: 室内机编号(0-15)
            offset: 控制块内的寄存器偏移(0-2)

        Returns:
            寄存器号
        """
        return self.control_register_base + 3 * unit_index + offset
