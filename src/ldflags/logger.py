"""structlog ベースのロガー設定"""

from __future__ import annotations

import logging
import sys

import structlog


def new_logger(level: str = "WARNING", format: str = "text") -> structlog.stdlib.BoundLogger:
    """設定済みの structlog ロガーを返す。

    コマンド出力 (stdout) と混ざらないようログは stderr に出す。

    Args:
        level: ログレベル ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
        format: 出力形式 ("json" or "text")

    Returns:
        設定済みの structlog.stdlib.BoundLogger
    """
    log_level = getattr(logging, level.upper(), logging.WARNING)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=log_level,
        force=True,
    )

    processors: list[structlog.types.Processor]
    if format == "json":
        processors = [
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    return structlog.stdlib.get_logger("ldflags")
