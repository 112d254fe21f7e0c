"""
校验算法模块
============

提供Modbus RTU使用的CRC-16/MODBUS校验算法。
"""

import struct

from ..config.constants import FRAME_CRC_FORMAT


def calculate_crc16_modbus(data: bytes) -> int:
    """
    计算CRC16校验码（Modbus格式）

    多项式0xA001（0x8005反射），初值0xFFFF，无结果异或。

    Args:
        data: 需要计算CRC的字节数据

    Returns:
        CRC16校验码，16位无符号整数

    Raises:
        TypeError: 当输入不是bytes类型时抛出

    Examples:
        >>> hex(calculate_crc16_modbus(b'123456789'))
        '0x4b37'
    """
    if not isinstance(data, (bytes, bytearray)):
        raise TypeError("输入数据必须是bytes类型")

    crc = 0xFFFF
    polynomial = 0xA001

    for byte in data:
        crc ^= byte
        for _ in range(8):
            if crc & 0x0001:
                crc = (crc >> 1) ^ polynomial
            else:
                crc >>= 1

    return crc


def crc16_modbus_bytes(data: bytes) -> bytes:
    """
    计算CRC16并按线路字节序（小端）编码

    Examples:
        >>> crc16_modbus_bytes(bytes([0x01, 0x04, 0x00, 0x00, 0x00, 0x01])).hex()
        '31ca'
    """
    return struct.pack(FRAME_CRC_FORMAT, calculate_crc16_modbus(data))
