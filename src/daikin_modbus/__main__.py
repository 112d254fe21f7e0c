#!/usr/bin/env python3
"""
大金空调 Modbus RTU 主站 - 模块CLI入口
=====================================

支持通过 python -m daikin_modbus 调用
"""

import sys
import argparse
import logging
import time

from .config.settings import SerialConfig, EngineConfig
from .core.transport import SerialTransport
from .exceptions import DaikinModbusError
from .gateway import HvacGateway
from .sync.unit import Unit
from .utils.logger import get_logger, setup_logger
from .utils.retry import retry_call

logger = get_logger(__name__)

# 版本信息
VERSION = "1.0.0"
PROGRAM_NAME = "大金空调Modbus主站"


def _int(text: str) -> int:
    """支持十进制和0x开头的十六进制"""
    return int(text, 0)


def create_parser():
    """创建命令行参数解析器"""
    parser = argparse.ArgumentParser(
        prog="daikin-modbus",
        description=f"{PROGRAM_NAME} v{VERSION}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
使用示例：
  # 列出串口
  python -m daikin_modbus ports

  # 发现室内机
  python -m daikin_modbus discover --port /dev/ttyUSB0

  # 读取0号室内机的状态寄存器
  python -m daikin_modbus read --port /dev/ttyUSB0 --start 32001 --count 6

  # 持续监视
  python -m daikin_modbus monitor --port /dev/ttyUSB0
        """,
    )

    parser.add_argument(
        "--version", action="version", version=f"{PROGRAM_NAME} v{VERSION}"
    )

    bus = argparse.ArgumentParser(add_help=False)
    bus.add_argument("--port", required=True, help="串口号（如 COM1, /dev/ttyUSB0）")
    bus.add_argument("--baudrate", type=int, default=9600, help="波特率（默认9600）")
    bus.add_argument("--slave", type=_int, default=1, help="从站地址（默认1）")
    bus.add_argument("--debug", action="store_true", help="输出收发报文")
    bus.add_argument("--log-file", help="同时写入日志文件")

    subparsers = parser.add_subparsers(dest="command", help="可用命令")

    subparsers.add_parser("ports", help="列出可用串口")

    subparsers.add_parser("discover", parents=[bus], help="发现已连接的室内机")

    read_parser = subparsers.add_parser("read", parents=[bus], help="读取输入寄存器")
    read_parser.add_argument("--start", type=_int, required=True, help="起始寄存器号（如 32001）")
    read_parser.add_argument("--count", type=_int, default=1, help="寄存器数量（1-32）")

    write_parser = subparsers.add_parser("write", parents=[bus], help="写单个保持寄存器")
    write_parser.add_argument("--register", type=_int, required=True, help="寄存器号（如 40001）")
    write_parser.add_argument("--value", type=_int, required=True, help="16位寄存器值")

    monitor_parser = subparsers.add_parser("monitor", parents=[bus], help="持续监视室内机状态")
    monitor_parser.add_argument(
        "--interval", type=float, default=60.0, help="刷新间隔（秒，默认60）"
    )

    return parser


def _print_status(index: int, unit: Unit, block: bytes) -> None:
    print(f"  室内机 {index:2d} [{unit.kind.value}] {block.hex(' ')}")


def run_ports() -> None:
    """打印系统可用的串口"""
    ports = SerialTransport.available_ports()
    if not ports:
        print("没有找到可用的串口。")
        return
    print("可用的串口：")
    for port in ports:
        print(f"  {port.device} - {port.description}")


def run_discover(gateway: HvacGateway) -> bool:
    """执行发现流程（失败按指数退避重试）"""
    config = gateway.engine_config
    present = retry_call(
        gateway.engine.discover,
        max_retry=config.retry_count,
        base_delay=config.backoff_base,
        logger=logger,
    )
    print(f"连接位图: {gateway.engine.connection_status:016b}")
    if not present:
        print("没有发现室内机。")
        return True
    for index in present:
        unit = gateway.engine.units[index]
        cap = unit.capability
        print(
            f"  室内机 {index:2d} [{unit.kind.value}] "
            f"制冷 {cap.cooling_lower_limit}~{cap.cooling_upper_limit}℃, "
            f"制热 {cap.heating_lower_limit}~{cap.heating_upper_limit}℃"
        )
    return True


def run_read(gateway: HvacGateway, start: int, count: int) -> bool:
    """读取输入寄存器并打印"""
    data = gateway.engine.read_input_registers(start, count)
    for offset in range(0, len(data), 2):
        value = int.from_bytes(data[offset:offset + 2], "big")
        print(f"  {start + offset // 2}: 0x{value:04x} ({value})")
    return True


def run_write(gateway: HvacGateway, register: int, value: int) -> bool:
    """写单个保持寄存器"""
    if not 0 <= value <= 0xFFFF:
        raise ValueError(f"寄存器值超出范围: {value}")
    gateway.engine.send_preset_single_register_command(
        gateway.engine_config.slave_address, register, value.to_bytes(2, "big")
    ).result()
    print(f"已写入 {register} = 0x{value:04x}")
    return True


def run_monitor(gateway: HvacGateway) -> bool:
    """启动定时器并持续打印状态，Ctrl+C 退出"""
    gateway.engine.start()
    while True:
        time.sleep(1)


def main():
    """主函数"""
    parser = create_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    if args.command == "ports":
        run_ports()
        return

    setup_logger(
        level=logging.DEBUG if args.debug else logging.INFO,
        log_file=args.log_file,
    )

    engine_config = EngineConfig(slave_address=args.slave)
    if args.command == "monitor":
        engine_config.refresh_interval = args.interval

    gateway = HvacGateway(
        SerialConfig(port=args.port, baudrate=args.baudrate),
        engine_config,
        on_status=_print_status if args.command == "monitor" else None,
    )

    success = False
    try:
        gateway.open()
        if args.command == "discover":
            success = run_discover(gateway)
        elif args.command == "read":
            success = run_read(gateway, args.start, args.count)
        elif args.command == "write":
            success = run_write(gateway, args.register, args.value)
        elif args.command == "monitor":
            success = run_monitor(gateway)
    except KeyboardInterrupt:
        print("\n\n👋 用户中断程序，退出")
        success = args.command == "monitor"
    except (DaikinModbusError, ValueError) as e:
        logger.error(f"执行失败: {e}")
        print(f"\n💥 执行失败: {e}")
    finally:
        gateway.stop()

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
