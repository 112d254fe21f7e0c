"""
室内机控制接口
==============

供上层（如HomeKit附件层）调用的同步接口：读取室内机快照、修改单个控制寄存器。
读写前都会先执行一次去抖的 sync()，保证本地寄存器块是最新的。
在引擎的 on_status 回调中调用时跳过这一步：刷新周期正在进行，
回调收到的就是最新数据，再等待 sync() 只会等到自己。

开关机约定：第1个控制寄存器的 bit0，写入低字节 0x01 为开机、0x00 为关机，
高字节保持不变。
"""

from concurrent.futures import Future
from dataclasses import dataclass
from typing import Optional, Union

from ..config.constants import CONTROL_REGISTERS_PER_UNIT
from ..exceptions import DaikinModbusError, UnitNotPresentError
from ..utils.logger import get_logger
from .engine import RegisterSyncEngine
from .unit import Unit, UnitCapability, UnitKind

logger = get_logger(__name__)

POWER_OFF = 0x00
POWER_ON = 0x01


@dataclass(frozen=True)
class UnitSnapshot:
    """室内机只读快照"""

    index: int
    kind: UnitKind
    capability: UnitCapability
    registers: bytes  # 最近一次轮询的12字节寄存器块


class UnitController:
    """室内机控制接口"""

    def __init__(self, engine: RegisterSyncEngine, sync_timeout: Optional[float] = None):
        """
        初始化控制接口

        Args:
            engine: 寄存器同步引擎
            sync_timeout: 等待 sync() 的超时(秒)，None表示一直等待
        """
        self.engine = engine
        self.sync_timeout = sync_timeout

    def _sync(self) -> None:
        """等待一次去抖刷新；刷新失败时沿用旧数据"""
        if self.engine.in_status_callback:
            return
        try:
            self.engine.sync().result(timeout=self.sync_timeout)
        except DaikinModbusError as e:
            logger.warning(f"刷新失败，使用缓存数据: {e}")

    def _unit(self, unit_id: int) -> Unit:
        if not 0 <= unit_id < len(self.engine.units):
            raise UnitNotPresentError(f"室内机编号超出范围: {unit_id}")
        unit = self.engine.units[unit_id]
        if unit is None or not unit.has_registers:
            raise UnitNotPresentError(f"室内机 {unit_id} 未连接或尚无寄存器数据")
        return unit

    def read(self, unit_id: int) -> UnitSnapshot:
        """
        读取室内机快照

        Raises:
            UnitNotPresentError: 室内机未连接或尚无数据
        """
        self._sync()
        unit = self._unit(unit_id)
        return UnitSnapshot(
            index=unit.index,
            kind=unit.kind,
            capability=unit.capability,
            registers=unit.registers,
        )

    def write(
        self, unit_id: int, register_offset: int, value: Union[int, bytes]
    ) -> "Future[bytes]":
        """
        修改室内机的一个控制寄存器

        Args:
            unit_id: 室内机编号
            register_offset: 控制块内的寄存器偏移(0-2)
            value: 16位整数或2字节大端数据

        Returns:
            写入命令结算时完成的Future

        Raises:
            UnitNotPresentError: 室内机未连接或尚无数据
            ValueError: 偏移或数值不合法
        """
        if not 0 <= register_offset < CONTROL_REGISTERS_PER_UNIT:
            raise ValueError(f"寄存器偏移超出范围: {register_offset}")
        if isinstance(value, int):
            if not 0 <= value <= 0xFFFF:
                raise ValueError(f"寄存器值超出范围: {value}")
            value = value.to_bytes(2, "big")
        if len(value) != 2:
            raise ValueError(f"寄存器值必须为2字节: {len(value)}")

        self._sync()
        unit = self._unit(unit_id)
        unit.patch_registers(register_offset * 2, value)

        register_number = self.engine.config.control_register_of(unit_id, register_offset)
        logger.info(f"写室内机 {unit_id} 寄存器 {register_number}: {bytes(value).hex()}")
        return self.engine.send_preset_single_register_command(
            self.engine.config.slave_address, register_number, value
        )

    def set_power(self, unit_id: int, on: bool) -> "Future[bytes]":
        """
        开关室内机

        Raises:
            UnitNotPresentError: 室内机未连接或尚无数据
        """
        self._sync()
        registers = self._unit(unit_id).registers
        value = bytes([registers[0], POWER_ON if on else POWER_OFF])
        return self.write(unit_id, 0, value)
