"""structlog 配置 -- 接收循环的日志输出

库模块只调用 structlog.get_logger()，是否初始化由应用决定：

    from agrirouter import setup_logging

    setup_logging()  # 读取 AGRIROUTER_LOG_FORMAT / AGRIROUTER_LOG_LEVEL

dev 模式：可读的控制台输出
json 模式：每行一个 JSON 对象，handler 异常的 traceback 以结构化字段输出
"""

import logging
import os

import structlog
from structlog.types import Processor

DEFAULT_LOG_FORMAT = "dev"
DEFAULT_LOG_LEVEL = "INFO"

# 逐请求日志的第三方 logger，只在 DEBUG 级别放行
HTTP_LOGGERS = ("httpx", "httpcore")


def _resolve_level(name: str) -> int:
    """日志级别名 -> 数值，未知名称回退到 INFO"""
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def _build_processors(log_format: str) -> tuple[list[Processor], Processor]:
    """返回 (共享处理器链, 最终渲染器)"""
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if log_format == "json":
        processors.append(structlog.processors.dict_tracebacks)
        return processors, structlog.processors.JSONRenderer(ensure_ascii=False)
    return processors, structlog.dev.ConsoleRenderer()


def setup_logging(log_format: str | None = None, log_level: str | None = None) -> None:
    """初始化 structlog，并让标准库 logging（httpx 等）走同一输出

    Args:
        log_format: "json" 或 "dev"，None 时读取 AGRIROUTER_LOG_FORMAT
        log_level: 日志级别名，None 时读取 AGRIROUTER_LOG_LEVEL
    """
    log_format = log_format or os.environ.get("AGRIROUTER_LOG_FORMAT", DEFAULT_LOG_FORMAT)
    level = _resolve_level(log_level or os.environ.get("AGRIROUTER_LOG_LEVEL", DEFAULT_LOG_LEVEL))

    shared_processors, renderer = _build_processors(log_format)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
            foreign_pre_chain=shared_processors,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    http_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in HTTP_LOGGERS:
        logging.getLogger(name).setLevel(http_level)
