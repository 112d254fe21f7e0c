"""
测试公共夹具
============

提供模拟的Modbus从站（FakeSequencer）和响应帧构造工具。
"""

import struct
import sys
from concurrent.futures import Future
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from daikin_modbus.core.checksum import crc16_modbus_bytes
from daikin_modbus.exceptions import DaikinModbusError

AC_CAPABILITY = struct.pack(">Hbbbb", 0x0006, 16, 32, 16, 30)  # 制冷+制热
HRV_CAPABILITY = struct.pack(">Hbbbb", 0x0001, 0, 0, 0, 0)  # 仅送风


def make_read_response(slave: int, data: bytes) -> bytes:
    """构造读输入寄存器响应帧"""
    body = bytes([slave, 0x04, len(data)]) + data
    return body + crc16_modbus_bytes(body)


def make_write_echo(request: bytes) -> bytes:
    """构造写寄存器响应帧（前6字节回显）"""
    body = request[:6]
    return body + crc16_modbus_bytes(body)


class FakeSequencer:
    """
    模拟命令队列+从站

    读请求按寄存器表返回数据，写请求回显；
    registers 的键为寄存器号（如30001），值为16位整数。
    """

    def __init__(self):
        self.registers = {}
        self.frames = []
        self.failures = {}  # 起始寄存器号 -> 异常

    def enqueue(self, frame: bytes) -> Future:
        self.frames.append(bytes(frame))
        future: Future = Future()
        function = frame[1]
        address = struct.unpack(">H", frame[2:4])[0]

        if function == 0x04:
            start = 30001 + address
            if start in self.failures:
                future.set_exception(self.failures[start])
                return future
            count = struct.unpack(">H", frame[4:6])[0]
            data = b"".join(
                self.registers.get(start + i, 0).to_bytes(2, "big") for i in range(count)
            )
            future.set_result(make_read_response(frame[0], data))
        else:
            start = 40001 + address
            if start in self.failures:
                future.set_exception(self.failures[start])
                return future
            future.set_result(make_write_echo(frame))
        return future

    def reads(self):
        """所有读请求的(起始寄存器号, 数量)"""
        return [
            (30001 + struct.unpack(">H", f[2:4])[0], struct.unpack(">H", f[4:6])[0])
            for f in self.frames
            if f[1] == 0x04
        ]

    def writes(self):
        """所有写请求的(功能码, 起始寄存器号, 数据)"""
        result = []
        for f in self.frames:
            if f[1] == 0x06:
                result.append((0x06, 40001 + struct.unpack(">H", f[2:4])[0], f[4:6]))
            elif f[1] == 0x10:
                result.append((0x10, 40001 + struct.unpack(">H", f[2:4])[0], f[7:-2]))
        return result

    def set_adaptor(self, ready: bool = True, connection: int = 0, kinds=None) -> None:
        """
        设置适配器状态、连接位图与能力信息

        Args:
            ready: 适配器是否就绪
            connection: 连接位图
            kinds: {室内机编号: 能力字节}，默认全部为空调
        """
        kinds = kinds or {}
        self.registers[30001] = 0x0001 if ready else 0x0000
        self.registers[30002] = connection
        for index in range(16):
            cap = kinds.get(index, AC_CAPABILITY)
            for k in range(3):
                self.registers[31001 + index * 3 + k] = int.from_bytes(cap[k * 2:k * 2 + 2], "big")
            for k in range(6):
                self.registers[32001 + index * 6 + k] = (index << 8) | k

    def fail(self, register: int, error: DaikinModbusError) -> None:
        self.failures[register] = error


@pytest.fixture
def fake_sequencer():
    """模拟的命令队列"""
    return FakeSequencer()
