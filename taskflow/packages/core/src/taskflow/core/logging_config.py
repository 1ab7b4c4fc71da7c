"""structlog 配置模块

引擎内部统一使用 structlog.get_logger()，事件名为 snake_case，
由宿主进程（或 CLI）在启动时调用一次 setup_logging()。

渲染模式（TASKFLOW_LOG_FORMAT）：
- dev（默认）：控制台可读输出
- json：单行 JSON，异常栈展开为字符串字段
"""

import logging
import os

import structlog

# 这些第三方 logger 在 DEBUG 级别输出每条 SQL 调用
_NOISY_LOGGERS = ("aiosqlite",)


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer(ensure_ascii=False)
    return structlog.dev.ConsoleRenderer()


def _pre_chain(log_format: str) -> list[structlog.types.Processor]:
    """structlog 与标准库 logging 共用的处理器"""
    chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if log_format == "json":
        chain.append(structlog.processors.format_exc_info)
    chain.append(structlog.processors.UnicodeDecoder())
    return chain


def setup_logging(log_format: str | None = None, log_level: str | None = None) -> None:
    """初始化 structlog + 标准库 logging

    可以重复调用，每次都会替换 root logger 的 handler。

    Args:
        log_format: "dev" 或 "json"，缺省读取 TASKFLOW_LOG_FORMAT
        log_level: 日志级别名，缺省读取 TASKFLOW_LOG_LEVEL（默认 INFO）
    """
    log_format = (log_format or os.environ.get("TASKFLOW_LOG_FORMAT", "dev")).lower()
    level_name = (log_level or os.environ.get("TASKFLOW_LOG_LEVEL", "INFO")).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    pre_chain = _pre_chain(log_format)
    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=_renderer(log_format),
            foreign_pre_chain=pre_chain,
        )
    )
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.INFO))


def bind_request_context(**values: str) -> None:
    """绑定调用级上下文（actor_id、command 等），后续日志自动携带"""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**values)
