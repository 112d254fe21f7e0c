"""
大金空调 Modbus RTU 主站
========================

通过半双工串口总线（偶校验）与多联机空调Modbus适配器通信的主站实现。

主要功能：
- Modbus RTU 请求帧构建与响应帧校验
- 单命令在途的先进先出命令队列
- 室内机发现与周期刷新
- 批量写回的分段打包

作者: lanford
版本: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "lanford"
__email__ = ""
__description__ = "大金空调Modbus RTU主站"

# 导出主要类
from .gateway import HvacGateway
from .sync.engine import RegisterSyncEngine
from .sync.controller import UnitController, UnitSnapshot
from .sync.unit import Unit, UnitKind

__all__ = [
    "HvacGateway",
    "RegisterSyncEngine",
    "UnitController",
    "UnitSnapshot",
    "Unit",
    "UnitKind",
]
