"""
室内机数据结构定义
==================

室内机由发现流程根据6字节能力信息创建，保存最近一次轮询得到的寄存器块。
寄存器块的含义（温度换算、运行模式等）由使用方解释。
"""

import struct
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..config.constants import STATUS_REGISTERS_PER_UNIT, CONTROL_REGISTERS_PER_UNIT

CAPABILITY_BLOCK_SIZE = 6  # 3个寄存器
REGISTER_BLOCK_SIZE = STATUS_REGISTERS_PER_UNIT * 2  # 12字节
CONTROL_BLOCK_SIZE = CONTROL_REGISTERS_PER_UNIT * 2  # 6字节


class UnitKind(Enum):
    """室内机类型"""

    AIR_CONDITIONER = "air_conditioner"
    HEAT_RECLAIM_VENTILATION = "heat_reclaim_ventilation"


@dataclass(frozen=True)
class UnitCapability:
    """室内机能力信息（能力寄存器第1个为功能位图，后两个为温度上下限）"""

    flags: int  # 功能位图
    cooling_lower_limit: int  # 制冷设定下限(℃)
    cooling_upper_limit: int  # 制冷设定上限(℃)
    heating_lower_limit: int  # 制热设定下限(℃)
    heating_upper_limit: int  # 制热设定上限(℃)

    @property
    def fan_mode(self) -> bool:
        return bool(self.flags & (1 << 0))

    @property
    def cooling_mode(self) -> bool:
        return bool(self.flags & (1 << 1))

    @property
    def heating_mode(self) -> bool:
        return bool(self.flags & (1 << 2))

    @property
    def auto_mode(self) -> bool:
        return bool(self.flags & (1 << 3))

    @property
    def dry_mode(self) -> bool:
        return bool(self.flags & (1 << 4))

    @property
    def fan_direction(self) -> bool:
        return bool(self.flags & (1 << 11))

    @property
    def fan_volume(self) -> bool:
        return bool(self.flags & (1 << 15))

    @classmethod
    def unpack(cls, data: bytes) -> "UnitCapability":
        """
        从6字节能力寄存器解析

        Raises:
            ValueError: 数据长度不是6字节
        """
        if len(data) != CAPABILITY_BLOCK_SIZE:
            raise ValueError(f"能力信息必须为{CAPABILITY_BLOCK_SIZE}字节: {len(data)}")
        flags, c_low, c_high, h_low, h_high = struct.unpack(">Hbbbb", bytes(data))
        return cls(flags, c_low, c_high, h_low, h_high)


@dataclass
class Unit:
    """一台室内机"""

    index: int  # 室内机编号(0-15)
    capability: UnitCapability
    capability_registers: bytes = b""
    _registers: Optional[bytearray] = field(default=None, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @classmethod
    def from_capability(cls, index: int, capability_registers: bytes) -> "Unit":
        """根据发现流程读到的能力寄存器创建室内机"""
        return cls(
            index=index,
            capability=UnitCapability.unpack(capability_registers),
            capability_registers=bytes(capability_registers),
        )

    @property
    def kind(self) -> UnitKind:
        """同时支持制冷和制热的为空调，否则为全热交换器"""
        if self.capability.cooling_mode and self.capability.heating_mode:
            return UnitKind.AIR_CONDITIONER
        return UnitKind.HEAT_RECLAIM_VENTILATION

    @property
    def registers(self) -> Optional[bytes]:
        """最近一次轮询得到的寄存器块副本，尚未轮询时为None"""
        with self._lock:
            return None if self._registers is None else bytes(self._registers)

    @property
    def has_registers(self) -> bool:
        with self._lock:
            return self._registers is not None

    def update_registers(self, block: bytes) -> None:
        """
        用轮询结果替换寄存器块

        Raises:
            ValueError: 数据长度不是12字节
        """
        if len(block) != REGISTER_BLOCK_SIZE:
            raise ValueError(f"寄存器块必须为{REGISTER_BLOCK_SIZE}字节: {len(block)}")
        with self._lock:
            self._registers = bytearray(block)

    def patch_registers(self, offset: int, data: bytes) -> None:
        """
        修改寄存器块中的部分字节（使用方写入前先更新本地副本）

        Raises:
            ValueError: 尚无寄存器块或越界
        """
        with self._lock:
            if self._registers is None:
                raise ValueError(f"室内机 {self.index} 尚无寄存器数据")
            if offset < 0 or offset + len(data) > CONTROL_BLOCK_SIZE:
                raise ValueError(f"写入范围越界: offset={offset}, size={len(data)}")
            self._registers[offset:offset + len(data)] = data

    def control_block(self) -> bytes:
        """
        批量写回时本机提供的数据

        全热交换器只写第1个寄存器，写其余寄存器会导致总线异常；
        空调写全部3个控制寄存器。

        Raises:
            ValueError: 尚无寄存器块
        """
        with self._lock:
            if self._registers is None:
                raise ValueError(f"室内机 {self.index} 尚无寄存器数据")
            size = 2 if self.kind is UnitKind.HEAT_RECLAIM_VENTILATION else CONTROL_BLOCK_SIZE
            return bytes(self._registers[:size])
