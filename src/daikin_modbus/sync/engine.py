"""
寄存器同步引擎
==============

负责室内机发现、周期刷新和批量写回：

- 健康检查定时器：未初始化时每5秒执行一次发现流程
- 刷新定时器：初始化后每60秒执行一次 sync()
- sync()：按需刷新，5秒内的重复调用复用进行中或最近一次的结果

所有总线访问都经过命令队列，发现与刷新之间由引擎内部的周期锁互斥。
"""

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, List, Optional

from ..config.constants import (
    ADAPTOR_STATUS_REGISTER,
    CONNECTION_STATUS_REGISTER,
    CAPABILITY_REGISTER_START,
    CAPABILITY_REGISTERS_PER_UNIT,
    CAPABILITY_UNITS_PER_PAGE,
    STATUS_REGISTER_START,
    STATUS_PAGE_COUNT,
    MAX_READ_REGISTERS,
    UNIT_SLOT_COUNT,
    capability_page_count,
)
from ..config.settings import EngineConfig
from ..core.frame_builder import FrameBuilder
from ..core.frame_validator import read_register_data
from ..core.sequencer import CommandSequencer
from ..exceptions import AdaptorNotReady, DaikinModbusError
from ..utils.logger import get_logger
from .segments import RegisterSegment, build_write_segments
from .unit import Unit, CAPABILITY_BLOCK_SIZE, REGISTER_BLOCK_SIZE

logger = get_logger(__name__)

StatusCallback = Callable[[int, Unit, bytes], None]


class RegisterSyncEngine:
    """寄存器同步引擎"""

    def __init__(
        self,
        sequencer: CommandSequencer,
        config: Optional[EngineConfig] = None,
        on_status: Optional[StatusCallback] = None,
    ):
        """
        初始化同步引擎

        Args:
            sequencer: 命令队列
            config: 引擎配置（可选）
            on_status: 每台室内机收到新的12字节状态块时的回调，在刷新线程中执行；
                回调里可以调用 UnitController，此时不再等待 sync()
        """
        self.sequencer = sequencer
        self.config = config or EngineConfig()
        self.on_status = on_status

        self.units: List[Optional[Unit]] = [None] * UNIT_SLOT_COUNT
        self.connection_status = 0
        self.initialized = False

        self._cycle_lock = threading.RLock()
        self._sync_lock = threading.Lock()
        self._sync_future: Optional[Future] = None
        self._last_sync_time: Optional[float] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._callback_state = threading.local()

        self._threads: List[threading.Thread] = []
        self._stop_event = threading.Event()

    # ------------------------------------------------------------------
    # 命令接口
    # ------------------------------------------------------------------

    def send_read_input_register_command(
        self, slave_address: int, start_register: int, count: int
    ) -> "Future[bytes]":
        """发送读输入寄存器命令，返回结算为完整响应帧的Future"""
        frame = FrameBuilder.build_read_input_registers(slave_address, start_register, count)
        return self.sequencer.enqueue(frame)

    def send_preset_single_register_command(
        self, slave_address: int, register_number: int, value: bytes
    ) -> "Future[bytes]":
        """发送写单个寄存器命令"""
        frame = FrameBuilder.build_write_single_register(slave_address, register_number, value)
        return self.sequencer.enqueue(frame)

    def send_preset_multiple_register_command(
        self, slave_address: int, register_number: int, values: bytes
    ) -> "Future[bytes]":
        """发送写多个寄存器命令"""
        frame = FrameBuilder.build_write_multiple_registers(slave_address, register_number, values)
        return self.sequencer.enqueue(frame)

    def read_input_registers(self, start_register: int, count: int) -> bytes:
        """
        读取输入寄存器并等待结果

        Returns:
            寄存器数据（count*2字节）

        Raises:
            DaikinModbusError: 命令失败或响应字节数不符
        """
        frame = self.send_read_input_register_command(
            self.config.slave_address, start_register, count
        ).result()
        return read_register_data(frame, expected_bytes=count * 2)

    # ------------------------------------------------------------------
    # 发现流程
    # ------------------------------------------------------------------

    def discover(self) -> List[int]:
        """
        发现已连接的室内机并重建槽位表

        Returns:
            已连接室内机编号列表

        Raises:
            AdaptorNotReady: 适配器尚未就绪
            DaikinModbusError: 总线命令失败
        """
        with self._cycle_lock:
            adaptor_status = int.from_bytes(
                self.read_input_registers(ADAPTOR_STATUS_REGISTER, 1), "big"
            )
            if not adaptor_status & 0x0001:
                raise AdaptorNotReady(f"适配器未就绪: status={hex(adaptor_status)}")

            connection_status = int.from_bytes(
                self.read_input_registers(CONNECTION_STATUS_REGISTER, 1), "big"
            )
            logger.info(f"室内机连接位图: {connection_status:016b}")

            page_registers = CAPABILITY_REGISTERS_PER_UNIT * CAPABILITY_UNITS_PER_PAGE
            capability = bytearray()
            for page in range(capability_page_count(connection_status)):
                capability += self.read_input_registers(
                    CAPABILITY_REGISTER_START + page * page_registers, page_registers
                )

            units: List[Optional[Unit]] = [None] * UNIT_SLOT_COUNT
            for index in range(UNIT_SLOT_COUNT):
                if not connection_status & (1 << index):
                    continue
                start = index * CAPABILITY_BLOCK_SIZE
                unit = Unit.from_capability(index, capability[start:start + CAPABILITY_BLOCK_SIZE])
                units[index] = unit
                logger.info(f"发现室内机 {index}: {unit.kind.value}")

            self.connection_status = connection_status
            self.units = units
            return [unit.index for unit in units if unit is not None]

    def initialize(self) -> bool:
        """
        执行发现流程，成功后立即刷新一次

        Returns:
            发现成功返回True；失败时保持未初始化，由健康检查定时器重试
        """
        with self._cycle_lock:
            try:
                present = self.discover()
            except DaikinModbusError as e:
                self.initialized = False
                logger.warning(f"系统初始化失败: {e}")
                return False

            self.initialized = True
            logger.info(f"系统初始化完成，已连接室内机: {present}")

            try:
                self.refresh_all_registers()
            except DaikinModbusError as e:
                logger.warning(f"首次刷新失败: {e}")
            return True

    # ------------------------------------------------------------------
    # 刷新流程
    # ------------------------------------------------------------------

    def refresh_all_registers(self) -> List[RegisterSegment]:
        """
        读取全部室内机状态并批量写回控制寄存器

        任一步失败都会中止本次刷新并抛出异常。

        Returns:
            本次写回的写入段
        """
        with self._cycle_lock:
            logger.debug("开始刷新全部寄存器")
            status = bytearray()
            for page in range(STATUS_PAGE_COUNT):
                status += self.read_input_registers(
                    STATUS_REGISTER_START + page * MAX_READ_REGISTERS, MAX_READ_REGISTERS
                )

            for unit in self.units:
                if unit is None:
                    continue
                start = unit.index * REGISTER_BLOCK_SIZE
                block = bytes(status[start:start + REGISTER_BLOCK_SIZE])
                unit.update_registers(block)
                self._notify_status(unit, block)

            segments = build_write_segments(self.units)
            for segment in segments:
                self.send_preset_multiple_register_command(
                    self.config.slave_address,
                    segment.register_number(self.config.control_register_base),
                    bytes(segment.data),
                ).result()

            logger.debug(f"刷新完成，写回 {len(segments)} 段")
            return segments

    @property
    def in_status_callback(self) -> bool:
        """当前线程是否正在执行 on_status 回调（此时刷新周期持有周期锁）"""
        return getattr(self._callback_state, "active", False)

    def _notify_status(self, unit: Unit, block: bytes) -> None:
        if self.on_status is None:
            return
        self._callback_state.active = True
        try:
            self.on_status(unit.index, unit, block)
        except Exception as e:
            logger.error(f"状态回调异常(室内机 {unit.index}): {e}")
        finally:
            self._callback_state.active = False

    def sync(self) -> "Future[None]":
        """
        按需刷新（去抖）

        进行中的刷新或上次完成不足去抖窗口时，返回同一个Future，
        不产生新的总线流量。

        Returns:
            刷新完成（或失败）时结算的Future
        """
        with self._sync_lock:
            future = self._sync_future
            if future is not None:
                if not future.done():
                    return future
                if (
                    self._last_sync_time is not None
                    and time.monotonic() - self._last_sync_time < self.config.sync_debounce
                ):
                    return future

            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix="RegisterSync"
                )
            self._sync_future = self._executor.submit(self._run_sync)
            return self._sync_future

    def _run_sync(self) -> None:
        try:
            self.refresh_all_registers()
        except DaikinModbusError as e:
            logger.warning(f"同步失败: {e}")
            raise
        finally:
            with self._sync_lock:
                self._last_sync_time = time.monotonic()

    # ------------------------------------------------------------------
    # 定时器
    # ------------------------------------------------------------------

    def start(self) -> None:
        """启动健康检查与周期刷新定时器，并立即尝试初始化"""
        if self._threads:
            logger.warning("同步引擎已经在运行")
            return

        self._stop_event.clear()
        self._threads = [
            threading.Thread(
                target=self._health_check_loop, name="HealthCheck", daemon=True
            ),
            threading.Thread(target=self._refresh_loop, name="PeriodicRefresh", daemon=True),
        ]
        for thread in self._threads:
            thread.start()
        logger.info("同步引擎已启动")

    def stop(self, timeout: float = 2.0) -> None:
        """停止定时器和同步工作线程"""
        self._stop_event.set()
        for thread in self._threads:
            thread.join(timeout)
            if thread.is_alive():
                logger.warning(f"{thread.name} 未在{timeout}秒内结束")
        self._threads = []

        with self._sync_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False)
        logger.info("同步引擎已停止")

    def _health_check_loop(self) -> None:
        while not self._stop_event.is_set():
            if not self.initialized:
                try:
                    self.initialize()
                except Exception as e:
                    logger.error(f"健康检查异常: {e}")
            if self._stop_event.wait(self.config.health_check_interval):
                break

    def _refresh_loop(self) -> None:
        while not self._stop_event.wait(self.config.refresh_interval):
            if not self.initialized:
                continue
            try:
                self.sync().result()
            except DaikinModbusError:
                pass  # _run_sync 已记录
            except Exception as e:
                logger.error(f"周期刷新异常: {e}")
