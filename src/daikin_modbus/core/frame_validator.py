"""
响应帧校验模块
==============

校验串口送来的完整响应帧：识别异常响应、定位并比对CRC。

本总线保证请求/响应严格按序且同一时刻最多一个未完成请求，结果直接交给
队首命令；给出请求帧时再检查响应内容与之对应，防止迟到的响应被错认。
"""

import struct
from typing import Optional

from ..config.constants import ModbusFunction, EXCEPTION_FLAG, FRAME_CRC_FORMAT, FRAME_CRC_SIZE
from ..exceptions import ExceptionResponse, ChecksumMismatch, ProtocolViolation
from .checksum import calculate_crc16_modbus

# 非读响应（写单个/写多个的回显）CRC固定在第6字节
FIXED_CRC_OFFSET = 6

# 异常响应：地址 + 功能码 + 异常码 + CRC
EXCEPTION_FRAME_LENGTH = 5


class FrameValidator:
    """响应帧校验器"""

    @staticmethod
    def crc_offset(frame: bytes) -> int:
        """
        计算响应帧中CRC的起始位置

        读输入寄存器响应：3 + 字节数字段；其余功能码固定为6。

        Raises:
            ProtocolViolation: 读响应缺少字节数字段
        """
        if frame[1] == ModbusFunction.READ_INPUT_REGISTERS:
            if len(frame) < 3:
                raise ProtocolViolation(f"读响应缺少字节数字段: {frame.hex()}")
            return 3 + frame[2]
        return FIXED_CRC_OFFSET

    @staticmethod
    def expected_length(buffer: bytes) -> Optional[int]:
        """
        根据已收到的帧头推算完整响应的长度

        异常响应5字节，读响应 5 + 字节数，写响应8字节。

        Returns:
            完整帧长度；帧头尚未收全时返回None

        Raises:
            ProtocolViolation: 无法识别的功能码
        """
        if len(buffer) < 2:
            return None
        function_code = buffer[1]
        if function_code & EXCEPTION_FLAG:
            return EXCEPTION_FRAME_LENGTH
        if function_code == ModbusFunction.READ_INPUT_REGISTERS:
            if len(buffer) < 3:
                return None
            return 3 + buffer[2] + FRAME_CRC_SIZE
        if function_code in (
            ModbusFunction.WRITE_SINGLE_REGISTER,
            ModbusFunction.WRITE_MULTIPLE_REGISTERS,
        ):
            return FIXED_CRC_OFFSET + FRAME_CRC_SIZE
        raise ProtocolViolation(f"无法识别的功能码: {hex(function_code)}")

    @staticmethod
    def match_request(frame: bytes, request: bytes) -> None:
        """
        检查响应内容与请求对应

        读响应的字节数必须为请求寄存器数的2倍；写响应必须回显请求的
        起始地址和值（0x06）或数量（0x10）。

        Raises:
            ProtocolViolation: 响应与请求不对应
        """
        if frame[0] != request[0]:
            raise ProtocolViolation(f"从站地址不匹配: 期望={request[0]}, 实际={frame[0]}")
        if frame[1] != request[1]:
            raise ProtocolViolation(
                f"功能码不匹配: 期望={hex(request[1])}, 实际={hex(frame[1])}"
            )
        if frame[1] == ModbusFunction.READ_INPUT_REGISTERS:
            expected_bytes = struct.unpack_from(">H", request, 4)[0] * 2
            if frame[2] != expected_bytes:
                raise ProtocolViolation(
                    f"字节数与请求不符: 期望={expected_bytes}, 实际={frame[2]}"
                )
        elif frame[2:6] != request[2:6]:
            raise ProtocolViolation(
                f"写响应回显与请求不符: 期望={request[2:6].hex()}, 实际={frame[2:6].hex()}"
            )

    @staticmethod
    def validate(
        frame: bytes,
        expected_address: Optional[int] = None,
        expected_function: Optional[int] = None,
        request: Optional[bytes] = None,
    ) -> bytes:
        """
        校验一帧完整的响应

        Args:
            frame: 接收到的原始字节
            expected_address: 期望的从站地址，None表示不检查
            expected_function: 期望的功能码，None表示不检查
            request: 对应的请求帧，给出时检查响应内容与之对应

        Returns:
            校验通过的完整帧（原样返回）

        Raises:
            ExceptionResponse: 功能码最高位置位
            ChecksumMismatch: CRC不一致
            ProtocolViolation: 帧长度或字段不合法
        """
        frame = bytes(frame)
        if len(frame) < 2:
            raise ProtocolViolation(f"帧长度不足: {len(frame)}")

        address = frame[0]
        function_code = frame[1]

        # 异常响应与后续字节无关
        if function_code & EXCEPTION_FLAG:
            exception_code = frame[2] if len(frame) > 2 else None
            raise ExceptionResponse(function_code, exception_code)

        offset = FrameValidator.crc_offset(frame)
        if len(frame) < offset + FRAME_CRC_SIZE:
            raise ProtocolViolation(
                f"帧长度不足: 需要{offset + FRAME_CRC_SIZE}字节, 实际{len(frame)}字节"
            )

        received_crc = struct.unpack_from(FRAME_CRC_FORMAT, frame, offset)[0]
        calculated_crc = calculate_crc16_modbus(frame[:offset])
        if received_crc != calculated_crc:
            raise ChecksumMismatch(
                f"CRC校验错误: 接收={hex(received_crc)}, 计算={hex(calculated_crc)}"
            )

        if expected_address is not None and address != expected_address:
            raise ProtocolViolation(f"从站地址不匹配: 期望={expected_address}, 实际={address}")
        if expected_function is not None and function_code != expected_function:
            raise ProtocolViolation(
                f"功能码不匹配: 期望={hex(expected_function)}, 实际={hex(function_code)}"
            )
        if request is not None:
            FrameValidator.match_request(frame, request)

        return frame


def validate_frame(
    frame: bytes,
    expected_address: Optional[int] = None,
    expected_function: Optional[int] = None,
    request: Optional[bytes] = None,
) -> bytes:
    """模块级函数别名"""
    return FrameValidator.validate(frame, expected_address, expected_function, request)


def read_register_data(frame: bytes, expected_bytes: Optional[int] = None) -> bytes:
    """
    从已校验的读输入寄存器响应中取出寄存器数据

    Args:
        frame: FrameValidator.validate 返回的帧
        expected_bytes: 期望的数据字节数，None表示不检查

    Returns:
        寄存器数据（不含地址、功能码、字节数和CRC）

    Raises:
        ProtocolViolation: 字节数与期望不符
    """
    byte_count = frame[2]
    if expected_bytes is not None and byte_count != expected_bytes:
        raise ProtocolViolation(f"字节数不匹配: 期望={expected_bytes}, 实际={byte_count}")
    return bytes(frame[3:3 + byte_count])
