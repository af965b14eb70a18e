"""structlog 配置模块

dev 模式：可读的彩色控制台输出
json 模式：结构化 JSON 输出
uvicorn 自带 logger 统一交给根 logger 渲染。
Logfire APM：LOGFIRE_SEND_TO_LOGFIRE 环境变量控制，false 时只输出本地日志。
"""

import logging
import os

import structlog

_UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def _resolve_level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    if isinstance(level, int):
        return level
    structlog.get_logger().warning("invalid_log_level", value=name, fallback="INFO")
    return logging.INFO


def setup_logging() -> None:
    """初始化 structlog + 标准库 logging

    环境变量:
        TASKPULSE_LOG_FORMAT: "json" 或 "dev"（默认）
        TASKPULSE_LOG_LEVEL: 日志级别（默认 INFO）
    """
    log_format = os.environ.get("TASKPULSE_LOG_FORMAT", "dev")
    log_level = _resolve_level(os.environ.get("TASKPULSE_LOG_LEVEL", "INFO"))

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer(
            ensure_ascii=False
        )
        shared_processors.append(structlog.processors.format_exc_info)
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=shared_processors,
    )
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    for name in _UVICORN_LOGGERS:
        uv_logger = logging.getLogger(name)
        uv_logger.handlers.clear()
        uv_logger.propagate = True

    # 请求日志由 LoggingMiddleware 输出
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def setup_logfire(app=None) -> None:
    """Logfire 可选初始化

    LOGFIRE_SEND_TO_LOGFIRE 环境变量控制：
    - "true": 启用 Logfire APM（需要 LOGFIRE_TOKEN）
    - "false" (默认): 只输出本地日志
    """
    if os.environ.get("LOGFIRE_SEND_TO_LOGFIRE", "false").lower() != "true":
        return
    try:
        import logfire

        logfire.configure(service_name="taskpulse-gateway")
        if app is not None:
            logfire.instrument_fastapi(app)
    except Exception as e:
        # Logfire 不可用时继续运行
        structlog.get_logger().warning(
            "logfire_init_failed",
            error_type=type(e).__name__,
        )
