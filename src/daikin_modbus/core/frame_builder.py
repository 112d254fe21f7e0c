"""
请求帧构建模块
==============

负责封装Modbus RTU请求帧，全部为无副作用的纯函数。

请求帧格式：| 从站地址(1B) | 功能码(1B) | 数据(4B或NB) | CRC16(2B, 小端) |
"""

import struct
from typing import Union

from ..config.constants import (
    ModbusFunction,
    INPUT_REGISTER_BASE,
    HOLDING_REGISTER_BASE,
    MAX_READ_REGISTERS,
    MAX_WRITE_REGISTERS,
)
from .checksum import crc16_modbus_bytes


def _check_slave_address(slave_address: int) -> None:
    if not 0 <= slave_address <= 0xFF:
        raise ValueError(f"从站地址超出范围: {slave_address}")


def _protocol_address(register_number: int, base: int) -> int:
    """将寄存器号换算为协议地址（寄存器号从基准开始按1计数）"""
    address = register_number - base
    if not 0 <= address <= 0xFFFF:
        raise ValueError(f"寄存器号 {register_number} 不在 {base} 段内")
    return address


class FrameBuilder:
    """请求帧构建器"""

    @staticmethod
    def build_read_input_registers(slave_address: int, start_register: int, count: int) -> bytes:
        """
        构建读输入寄存器(0x04)请求帧

        Args:
            slave_address: 从站地址
            start_register: 起始寄存器号（30001段）
            count: 寄存器数量，1到32

        Returns:
            8字节请求帧

        Examples:
            >>> FrameBuilder.build_read_input_registers(1, 30001, 1).hex()
            '01040000000131ca'
        """
        _check_slave_address(slave_address)
        if not 1 <= count <= MAX_READ_REGISTERS:
            raise ValueError(f"读取数量必须在1到{MAX_READ_REGISTERS}之间: {count}")

        address = _protocol_address(start_register, INPUT_REGISTER_BASE)
        body = struct.pack(
            ">BBHH", slave_address, ModbusFunction.READ_INPUT_REGISTERS, address, count
        )
        return body + crc16_modbus_bytes(body)

    @staticmethod
    def build_write_single_register(
        slave_address: int, register_number: int, value: Union[bytes, bytearray]
    ) -> bytes:
        """
        构建写单个寄存器(0x06)请求帧

        Args:
            slave_address: 从站地址
            register_number: 寄存器号（40001段）
            value: 2字节寄存器值（大端）

        Returns:
            8字节请求帧
        """
        _check_slave_address(slave_address)
        if len(value) != 2:
            raise ValueError(f"单寄存器值必须为2字节: {len(value)}")

        address = _protocol_address(register_number, HOLDING_REGISTER_BASE)
        body = (
            struct.pack(">BBH", slave_address, ModbusFunction.WRITE_SINGLE_REGISTER, address)
            + bytes(value)
        )
        return body + crc16_modbus_bytes(body)

    @staticmethod
    def build_write_multiple_registers(
        slave_address: int, register_number: int, values: Union[bytes, bytearray]
    ) -> bytes:
        """
        构建写多个寄存器(0x10)请求帧

        帧格式：地址 | 0x10 | 起始地址(2B) | 寄存器数(2B) | 字节数(1B) | 数据 | CRC

        Args:
            slave_address: 从站地址
            register_number: 起始寄存器号（40001段）
            values: 寄存器数据，长度必须为偶数，最多30个寄存器

        Returns:
            请求帧
        """
        _check_slave_address(slave_address)
        if len(values) == 0 or len(values) % 2:
            raise ValueError(f"寄存器数据长度必须为正偶数: {len(values)}")

        count = len(values) // 2
        if count > MAX_WRITE_REGISTERS:
            raise ValueError(f"单次最多写入{MAX_WRITE_REGISTERS}个寄存器: {count}")

        address = _protocol_address(register_number, HOLDING_REGISTER_BASE)
        body = (
            struct.pack(
                ">BBHHB",
                slave_address,
                ModbusFunction.WRITE_MULTIPLE_REGISTERS,
                address,
                count,
                len(values),
            )
            + bytes(values)
        )
        return body + crc16_modbus_bytes(body)


def build_read_input_registers(slave_address: int, start_register: int, count: int) -> bytes:
    """模块级函数别名"""
    return FrameBuilder.build_read_input_registers(slave_address, start_register, count)


def build_write_single_register(slave_address: int, register_number: int, value: bytes) -> bytes:
    """模块级函数别名"""
    return FrameBuilder.build_write_single_register(slave_address, register_number, value)


def build_write_multiple_registers(slave_address: int, register_number: int, values: bytes) -> bytes:
    """模块级函数别名"""
    return FrameBuilder.build_write_multiple_registers(slave_address, register_number, values)
