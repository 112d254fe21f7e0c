"""自定义异常类型。"""

from typing import Optional


class DaikinModbusError(Exception):
    """基础异常。"""


class TransportError(DaikinModbusError):
    """串口未打开或读写失败。"""


class ProtocolError(DaikinModbusError):
    """响应帧无法被接受。"""


class ExceptionResponse(ProtocolError):
    """从站返回异常响应（功能码 | 0x80）。"""

    def __init__(self, function_code: int, exception_code: Optional[int] = None):
        self.function_code = function_code
        self.exception_code = exception_code
        detail = f"功能码={hex(function_code)}"
        if exception_code is not None:
            detail += f", 异常码={hex(exception_code)}"
        super().__init__(f"异常响应: {detail}")


class ChecksumMismatch(ProtocolError):
    """CRC16 校验失败。"""


class ProtocolViolation(ProtocolError):
    """帧长度或字段不合法。"""


class AdaptorNotReady(DaikinModbusError):
    """适配器尚未就绪。"""


class CommandTimeout(DaikinModbusError):
    """等待响应超时。"""


class UnitNotPresentError(DaikinModbusError):
    """室内机未连接或尚无寄存器数据。"""


__all__ = [
    "DaikinModbusError",
    "TransportError",
    "ProtocolError",
    "ExceptionResponse",
    "ChecksumMismatch",
    "ProtocolViolation",
    "AdaptorNotReady",
    "CommandTimeout",
    "UnitNotPresentError",
]
