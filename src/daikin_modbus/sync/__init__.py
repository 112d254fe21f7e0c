"""
同步模块
========

包含室内机数据结构、写入分段、寄存器同步引擎和控制接口。
"""

from .unit import Unit, UnitKind, UnitCapability
from .segments import RegisterSegment, build_write_segments
from .engine import RegisterSyncEngine
from .controller import UnitController, UnitSnapshot

__all__ = [
    "Unit",
    "UnitKind",
    "UnitCapability",
    "RegisterSegment",
    "build_write_segments",
    "RegisterSyncEngine",
    "UnitController",
    "UnitSnapshot",
]
