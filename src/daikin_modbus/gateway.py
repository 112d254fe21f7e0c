"""
网关模块
========

把串口、IO线程、命令队列、同步引擎和控制接口组装在一起，
一个实例对应一条串口总线。
"""

from typing import Optional

from .config.settings import SerialConfig, EngineConfig
from .core.io_thread import IoThread
from .core.sequencer import CommandSequencer
from .core.transport import SerialTransport
from .sync.controller import UnitController
from .sync.engine import RegisterSyncEngine, StatusCallback
from .utils.logger import get_logger

logger = get_logger(__name__)


class HvacGateway:
    """空调Modbus网关"""

    def __init__(
        self,
        serial_config: SerialConfig,
        engine_config: Optional[EngineConfig] = None,
        on_status: Optional[StatusCallback] = None,
    ):
        """
        初始化网关

        Args:
            serial_config: 串口配置
            engine_config: 引擎配置（可选）
            on_status: 室内机状态回调（可选）
        """
        self.engine_config = engine_config or EngineConfig()
        self.transport = SerialTransport(serial_config)
        self.sequencer = CommandSequencer(
            self.transport,
            silent_interval=self.engine_config.silent_interval,
            command_timeout=self.engine_config.command_timeout,
        )
        self.io_thread = IoThread(
            self.transport,
            on_frame=self.sequencer.handle_frame,
            on_error=self.sequencer.handle_error,
        )
        self.engine = RegisterSyncEngine(self.sequencer, self.engine_config, on_status)
        self.controller = UnitController(self.engine)

    def open(self) -> None:
        """
        打开串口并启动IO线程与命令队列（不启动定时器）

        Raises:
            TransportError: 串口无法打开
        """
        self.transport.open()
        self.io_thread.start()
        self.sequencer.start()

    def start(self) -> None:
        """打开总线并启动发现/刷新定时器"""
        self.open()
        self.engine.start()

    def stop(self) -> None:
        """按启动的相反顺序停止所有组件"""
        self.engine.stop()
        self.sequencer.stop()
        self.io_thread.stop()
        self.transport.close()
        logger.info("网关已停止")

    def get_statistics(self) -> dict:
        """汇总各组件的统计信息"""
        return {
            "initialized": self.engine.initialized,
            "io": self.io_thread.get_statistics(),
            "sequencer": self.sequencer.get_statistics(),
        }

    def __enter__(self):
        """支持with语句"""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """支持with语句"""
        self.stop()
