"""
日志工具模块

控制台与文件共用一个格式化器，支持 JSON 和文本两种输出。
工单相关日志通过 task_logger 携带工单编号、追踪 ID 等上下文字段。
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

LEVEL_SHORT = {
    "DEBUG": "DBG",
    "INFO": "INF",
    "WARNING": "WRN",
    "ERROR": "ERR",
    "CRITICAL": "CRT",
}

# LogRecord 属性 → 输出字段名
CONTEXT_FIELDS = {
    "task_number": "task",
    "trace_id": "trace",
    "work_order_id": "order",
}

# 第三方库只输出警告及以上
QUIET_LOGGERS = ("uvicorn", "fastapi", "httpx", "httpcore", "sqlalchemy.engine", "oss2")


def _context(record: logging.LogRecord) -> Dict[str, str]:
    return {
        field: str(getattr(record, attr))
        for attr, field in CONTEXT_FIELDS.items()
        if getattr(record, attr, None)
    }


class JSONFormatter(logging.Formatter):
    """单行 JSON，字段名取短写以便检索"""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, timezone.utc)
        entry = {
            "time": created.strftime("%H:%M:%S"),
            "lvl": LEVEL_SHORT.get(record.levelname, record.levelname[:3]),
            "mod": record.name.rsplit(".", 1)[-1],
            "msg": record.getMessage(),
        }
        entry.update(_context(record))
        if record.exc_info:
            entry["error"] = repr(record.exc_info[1])
        return json.dumps(entry, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """可读文本格式，上下文字段追加在行尾括号内"""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s %(levelname)-7s [%(name)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _context(record)
        if not context:
            return line
        suffix = ", ".join(f"{key}={value}" for key, value in context.items())
        return f"{line} ({suffix})"


def _build_handlers(formatter: logging.Formatter, log_file: Optional[str]) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    log_format: str = "json",
) -> None:
    """
    配置根日志记录器，重复调用会替换已有处理器

    Args:
        log_level: 日志级别
        log_file: 日志文件路径，为空时只输出到控制台
        log_format: json | text
    """
    formatter = JSONFormatter() if log_format == "json" else TextFormatter()

    root = logging.getLogger()
    root.setLevel(logging.getLevelName(log_level.upper()))
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in _build_handlers(formatter, log_file):
        root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LoggerAdapter(logging.LoggerAdapter):
    """把固定的上下文字段并入每条日志的 extra，调用处传入的 extra 优先"""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def task_logger(
    logger: logging.Logger,
    task_number: str,
    trace_id: Optional[str] = None,
    work_order_id: Optional[str] = None,
) -> LoggerAdapter:
    """
    绑定工单上下文的日志记录器

    Args:
        logger: 模块日志记录器
        task_number: 工单编号
        trace_id: 追踪 ID
        work_order_id: 工单主键

    Returns:
        LoggerAdapter
    """
    context = {"task_number": task_number, "trace_id": trace_id, "work_order_id": work_order_id}
    return LoggerAdapter(logger, {key: value for key, value in context.items() if value})
