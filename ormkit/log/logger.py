"""日志配置

ormkit 内部统一通过 get_logger("ormkit.xxx") 取日志器，
应用侧用 setup_root_logger() 或 setup_logger() 决定输出位置。
"""

import inspect
import logging
import os
import time
from logging.handlers import RotatingFileHandler
from typing import Any, Optional


DEFAULT_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(filename)s:%(lineno)d - %(message)s"

_DEFAULT_MAX_BYTES = 10 * 1024 * 1024
_DEFAULT_BACKUP_COUNT = 5


class MicrosecondFormatter(logging.Formatter):
    """时间戳精确到微秒的格式化器"""

    def formatTime(self, record, datefmt=None):
        stamp = time.strftime(datefmt or "%Y-%m-%d %H:%M:%S", self.converter(record.created))
        micros = int((record.created - int(record.created)) * 1000000)
        return f"{stamp}.{micros:06d}"


def create_formatter(
    log_format: str = None,
    datefmt: str = "%Y-%m-%d %H:%M:%S",
    use_microseconds: bool = True
) -> logging.Formatter:
    fmt = log_format or DEFAULT_LOG_FORMAT
    formatter_cls = MicrosecondFormatter if use_microseconds else logging.Formatter
    return formatter_cls(fmt=fmt, datefmt=datefmt)


def _file_handler(log_file: str, options: Optional[dict]) -> logging.Handler:
    """options 为空时写普通文件，否则按大小轮转"""
    log_dir = os.path.dirname(log_file)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    if not options:
        return logging.FileHandler(log_file, encoding="utf-8")
    return RotatingFileHandler(
        log_file,
        maxBytes=options.get("maxBytes", _DEFAULT_MAX_BYTES),
        backupCount=options.get("backupCount", _DEFAULT_BACKUP_COUNT),
        encoding=options.get("encoding", "utf-8"),
    )


def setup_logger(
    name: str = None,
    level: str = "INFO",
    log_file: str = None,
    log_format: str = None,
    console: bool = True,
    use_microseconds: bool = True,
    propagate: bool = True,
    file_handler_options: dict = None
) -> logging.Logger:
    """配置日志器并返回，已有的处理器会被替换

    Args:
        name: 日志器名称，None 为根日志器
        level: DEBUG / INFO / WARNING / ERROR / CRITICAL，大小写均可
        log_file: 日志文件路径，不传则不写文件
        log_format: 日志格式，默认 DEFAULT_LOG_FORMAT
        console: 是否输出到控制台
        use_microseconds: 时间戳是否精确到微秒
        propagate: 是否传播到父日志器
        file_handler_options: 轮转选项 maxBytes / backupCount / encoding

    使用示例:
        logger = setup_logger(
            "ormkit.orm.sortable",
            level="DEBUG",
            log_file="logs/ordering.log",
            file_handler_options={"maxBytes": 1024 * 1024, "backupCount": 3}
        )
    """
    _logger = logging.getLogger(name)
    _logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    _logger.propagate = propagate
    _logger.handlers.clear()

    handlers = []
    if console:
        handlers.append(logging.StreamHandler())
    if log_file:
        handlers.append(_file_handler(log_file, file_handler_options))

    formatter = create_formatter(log_format, use_microseconds=use_microseconds)
    for handler in handlers:
        handler.setFormatter(formatter)
        _logger.addHandler(handler)

    return _logger


def setup_root_logger(
    level: str = "INFO",
    log_file: str = None,
    console: bool = True,
    use_microseconds: bool = True,
    file_handler_options: dict = None,
    config: Any = None
) -> logging.Logger:
    """配置根日志器，ormkit.* 日志器通过传播共用它的处理器

    提供 config（LoggingSettings）时，级别、文件与轮转选项都以 config 为准。

    使用示例:
        setup_root_logger(config=settings.logging)
    """
    if config is not None:
        level = getattr(config, "level", level)
        log_file = getattr(config, "file_path", log_file) or None
        console = getattr(config, "enable_console", console)
        file_handler_options = {
            "maxBytes": getattr(config, "file_max_bytes", _DEFAULT_MAX_BYTES),
            "backupCount": getattr(config, "file_backup_count", _DEFAULT_BACKUP_COUNT),
            "encoding": getattr(config, "file_encoding", "utf-8"),
        }

    return setup_logger(
        name=None,
        level=level,
        log_file=log_file,
        console=console,
        use_microseconds=use_microseconds,
        propagate=False,
        file_handler_options=file_handler_options
    )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """按名称取日志器

    不传名称时使用调用方模块的 __name__；
    不含点号的简写名称加 'ormkit.' 前缀，如 get_logger("repository") -> "ormkit.repository"。
    """
    if name is None:
        frame = inspect.currentframe()
        caller = frame.f_back if frame is not None else None
        name = caller.f_globals.get('__name__', 'ormkit') if caller is not None else 'ormkit'
    elif name != 'ormkit' and '.' not in name:
        name = f"ormkit.{name}"

    return logging.getLogger(name)


logger = logging.getLogger("ormkit")
