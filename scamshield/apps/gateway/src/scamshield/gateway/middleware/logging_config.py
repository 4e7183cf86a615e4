"""structlog 配置

dev 模式：pretty print 可读输出
json 模式：结构化 JSON 输出
日志事件中的超长字符串（base64 媒体等）统一截断，避免整段写入日志。
Logfire APM：LOGFIRE_SEND_TO_LOGFIRE 环境变量控制，false 时降级为纯本地日志。
"""

import logging
import os
from typing import Any

import structlog

# 超过该长度的字符串字段只保留前缀
MAX_LOG_VALUE_CHARS = 256

_NOISY_LOGGERS = ("LiteLLM", "httpx", "httpcore", "aiosqlite")


def truncate_long_values(
    _logger: Any, _method: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """截断事件中的超长字符串值，event 本身不截断"""
    for key, value in event_dict.items():
        if key == "event" or not isinstance(value, str):
            continue
        if len(value) > MAX_LOG_VALUE_CHARS:
            event_dict[key] = f"{value[:MAX_LOG_VALUE_CHARS]}...<{len(value)} chars>"
    return event_dict


def setup_logging() -> None:
    """初始化 structlog 配置

    SCAMSHIELD_LOG_FORMAT: "json"（生产）或 "dev"（默认）
    SCAMSHIELD_LOG_LEVEL: 日志级别，默认 INFO
    """
    log_format = os.environ.get("SCAMSHIELD_LOG_FORMAT", "dev")
    log_level = getattr(
        logging, os.environ.get("SCAMSHIELD_LOG_LEVEL", "INFO").upper(), logging.INFO
    )

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        truncate_long_values,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    renderer: structlog.types.Processor
    if log_format == "json":
        renderer = structlog.processors.JSONRenderer(ensure_ascii=False)
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

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=shared_processors,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def setup_logfire() -> None:
    """Logfire 可选初始化

    LOGFIRE_SEND_TO_LOGFIRE="true" 时启用（需要 LOGFIRE_TOKEN 与 observability 依赖），
    默认仅本地日志。
    """
    if os.environ.get("LOGFIRE_SEND_TO_LOGFIRE", "false").lower() != "true":
        return
    try:
        import logfire

        logfire.configure(service_name="scamshield-gateway")
        logfire.instrument_fastapi()
    except Exception as e:
        structlog.get_logger().warning(
            "logfire_init_failed",
            error=str(e),
            message="Logfire 初始化失败，降级为纯本地日志",
        )
