"""
日志记录模块
============

所有模块通过 get_logger(__name__) 取得 daikin_modbus 下的子日志器，
处理器只挂在包根日志器上：控制台彩色输出，可选写入文件。
"""

import datetime
import logging
import sys
from typing import Optional

ROOT_LOGGER_NAME = "daikin_modbus"

FILE_FORMAT = "%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s"


class ColoredFormatter(logging.Formatter):
    """按级别着色，附带毫秒时间戳、线程名和调用位置"""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[0m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.datetime.fromtimestamp(record.created)
        timestamp = created.strftime("%H:%M:%S.") + f"{created.microsecond // 1000:03d}"
        location = f"{record.filename}.{record.funcName}():{record.lineno}"

        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"

        color = self.COLORS.get(record.levelname, self.RESET)
        return f"{color}[{timestamp}] [{record.threadName}] {message} [{location}]{self.RESET}"


_configured = False


def setup_logger(
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    console_output: bool = True,
) -> logging.Logger:
    """
    配置包根日志器，重复调用会替换之前的处理器

    Args:
        level: 日志级别
        log_file: 日志文件路径，None表示不写入文件
        console_output: 是否输出到控制台

    Returns:
        包根日志器
    """
    global _configured

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    if console_output:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(ColoredFormatter())
        root.addHandler(console)
    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        root.addHandler(file_handler)

    root.propagate = False
    _configured = True
    return root


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """取得日志器；首次调用时以默认参数配置包根日志器"""
    if not _configured:
        setup_logger()
    return logging.getLogger(name)


def format_frame(data: bytes) -> str:
    """
    将报文格式化为空格分隔的十六进制字符串

    Examples:
        >>> format_frame(b'\\x01\\x04\\x00')
        '01 04 00'
    """
    return data.hex(" ")
