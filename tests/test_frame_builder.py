#!/usr/bin/env python3
"""
请求帧构建测试
==============

测试 daikin_modbus.core.frame_builder 模块。
"""

import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from daikin_modbus.core.checksum import calculate_crc16_modbus
from daikin_modbus.core.frame_builder import (
    FrameBuilder,
    build_read_input_registers,
    build_write_single_register,
    build_write_multiple_registers,
)


class TestBuildReadInputRegisters:
    """测试读输入寄存器请求帧"""

    def test_adaptor_status_request(self):
        """读30001 x1 的完整帧"""
        frame = FrameBuilder.build_read_input_registers(1, 30001, 1)
        assert frame == bytes([0x01, 0x04, 0x00, 0x00, 0x00, 0x01, 0x31, 0xCA])

    def test_address_and_count_fields(self):
        """地址为寄存器号-30001，数量大端"""
        frame = FrameBuilder.build_read_input_registers(1, 32033, 32)
        assert len(frame) == 8
        assert frame[1] == 0x04
        assert frame[2:4] == (32033 - 30001).to_bytes(2, "big")
        assert frame[4:6] == b'\x00\x20'
        assert calculate_crc16_modbus(frame) == 0

    @pytest.mark.parametrize("count", [0, 33, -1])
    def test_count_out_of_range(self, count):
        """数量必须在1到32之间"""
        with pytest.raises(ValueError):
            FrameBuilder.build_read_input_registers(1, 30001, count)

    def test_register_below_base(self):
        """寄存器号低于30001时拒绝"""
        with pytest.raises(ValueError):
            FrameBuilder.build_read_input_registers(1, 30000, 1)

    def test_slave_address_range(self):
        """从站地址必须是一个字节"""
        with pytest.raises(ValueError):
            FrameBuilder.build_read_input_registers(256, 30001, 1)


class TestBuildWriteSingleRegister:
    """测试写单个寄存器请求帧"""

    def test_frame_layout(self):
        """地址为寄存器号-40001，值原样放入"""
        frame = FrameBuilder.build_write_single_register(1, 40004, b'\x00\x01')
        assert frame[:6] == bytes([0x01, 0x06, 0x00, 0x03, 0x00, 0x01])
        assert len(frame) == 8
        assert calculate_crc16_modbus(frame) == 0

    def test_value_must_be_two_bytes(self):
        """值不是2字节时拒绝"""
        with pytest.raises(ValueError):
            FrameBuilder.build_write_single_register(1, 40001, b'\x01')


class TestBuildWriteMultipleRegisters:
    """测试写多个寄存器请求帧"""

    def test_frame_layout(self):
        """寄存器数、字节数与数据字段"""
        values = bytes(range(12))  # 6个寄存器
        frame = FrameBuilder.build_write_multiple_registers(1, 40007, values)

        assert frame[0] == 0x01
        assert frame[1] == 0x10
        assert frame[2:4] == b'\x00\x06'
        assert frame[4:6] == b'\x00\x06'
        assert frame[6] == 12
        assert frame[7:19] == values
        assert len(frame) == 9 + len(values)
        assert calculate_crc16_modbus(frame) == 0

    def test_thirty_registers_allowed(self):
        """30个寄存器是写入上限"""
        frame = FrameBuilder.build_write_multiple_registers(1, 40001, bytes(60))
        assert frame[4:6] == b'\x00\x1e'

    def test_more_than_thirty_registers_rejected(self):
        """超过30个寄存器时拒绝"""
        with pytest.raises(ValueError):
            FrameBuilder.build_write_multiple_registers(1, 40001, bytes(62))

    @pytest.mark.parametrize("values", [b'', b'\x01\x02\x03'])
    def test_values_must_be_whole_registers(self, values):
        """数据长度必须为正偶数"""
        with pytest.raises(ValueError):
            FrameBuilder.build_write_multiple_registers(1, 40001, values)


def test_module_level_aliases():
    """模块级函数与静态方法结果一致"""
    assert build_read_input_registers(1, 30002, 1) == FrameBuilder.build_read_input_registers(1, 30002, 1)
    assert build_write_single_register(1, 40001, b'\x00\x01') == \
        FrameBuilder.build_write_single_register(1, 40001, b'\x00\x01')
    assert build_write_multiple_registers(1, 40001, b'\x00\x01') == \
        FrameBuilder.build_write_multiple_registers(1, 40001, b'\x00\x01')
