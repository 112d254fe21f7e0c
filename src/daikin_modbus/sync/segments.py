"""
写入分段模块
============

把连续的室内机控制块打包成多寄存器写入段：

- 单段最多10台（30个寄存器）
- 全热交换器只写1个寄存器，单独成段
- 遇到未连接的槽位即断开（多寄存器写要求地址连续）
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..config.constants import (
    CONTROL_REGISTER_START,
    CONTROL_REGISTERS_PER_UNIT,
    MAX_SEGMENT_UNITS,
    UNIT_SLOT_COUNT,
)
from .unit import Unit, UnitKind


@dataclass
class RegisterSegment:
    """一次多寄存器写入覆盖的连续控制块"""

    first_unit: int
    unit_indices: List[int] = field(default_factory=list)
    data: bytearray = field(default_factory=bytearray)

    @property
    def register_count(self) -> int:
        return len(self.data) // 2

    def register_number(self, control_base: int = CONTROL_REGISTER_START) -> int:
        """段起始寄存器号"""
        return control_base + CONTROL_REGISTERS_PER_UNIT * self.first_unit

    def append(self, unit: Unit) -> None:
        self.unit_indices.append(unit.index)
        self.data.extend(unit.control_block())


def build_write_segments(units: Sequence[Optional[Unit]]) -> List[RegisterSegment]:
    """
    按槽位顺序生成写入段

    Args:
        units: 16个槽位，未连接或尚无寄存器数据的槽位视为断开

    Returns:
        写入段列表，按槽位顺序排列
    """
    segments: List[RegisterSegment] = []
    current: Optional[RegisterSegment] = None

    def flush() -> None:
        nonlocal current
        if current is not None and current.unit_indices:
            segments.append(current)
        current = None

    for index in range(min(len(units), UNIT_SLOT_COUNT)):
        unit = units[index]
        if unit is None or not unit.has_registers:
            flush()
            continue

        if unit.kind is UnitKind.HEAT_RECLAIM_VENTILATION:
            flush()
            current = RegisterSegment(first_unit=index)
            current.append(unit)
            flush()
            continue

        if current is None:
            current = RegisterSegment(first_unit=index)
        current.append(unit)
        if len(current.unit_indices) >= MAX_SEGMENT_UNITS:
            flush()

    flush()
    return segments
