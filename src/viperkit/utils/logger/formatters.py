"""
Log formatters for ViperKit.

HumanFormatter writes the operator-facing log; JsonFormatter writes JSON
Lines for ingestion into a case timeline.
"""

import json
import logging
import traceback
from datetime import datetime, timezone
from typing import Any


def _context_fields(record: logging.LogRecord) -> dict[str, str]:
    fields = {}
    for attr in ("case_id", "action_id"):
        value = getattr(record, attr, None)
        if value:
            fields[attr] = value
    return fields


class HumanFormatter(logging.Formatter):
    """Human-readable log formatter.

    Format: YYYY-MM-DD HH:MM:SS.mmm | LEVEL | component | file:line | message

    Example:
        2026-03-02 09:14:03.511 | INFO  | viperkit.remediation | executor.py:88 | Quarantined C:\\Users\\bob\\Desktop\\evil.exe [case=WS01-20260302-091200 item=3fa2b1c0]
    """

    LEVEL_WIDTH = 5
    NAME_WIDTH = 22

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        time_str = stamp.strftime("%Y-%m-%d %H:%M:%S.") + f"{int(record.msecs):03d}"

        level = record.levelname.ljust(self.LEVEL_WIDTH)
        component = self._shorten_name(record.name)
        location = f"{record.filename}:{record.lineno}"
        message = record.getMessage()

        context = _context_fields(record)
        if context:
            labels = {"case_id": "case", "action_id": "item"}
            tags = " ".join(f"{labels[k]}={v}" for k, v in context.items())
            message = f"{message} [{tags}]"

        formatted = f"{time_str} | {level} | {component} | {location} | {message}"
        if record.exc_info:
            formatted = f"{formatted}\n{self.formatException(record.exc_info)}"
        return formatted

    def _shorten_name(self, name: str) -> str:
        width = self.NAME_WIDTH
        if len(name) <= width:
            return name.ljust(width)
        parts = name.split(".")
        if len(parts) >= 2:
            shortened = f"{parts[0]}...{parts[-1]}"
            if len(shortened) <= width:
                return shortened.ljust(width)
        return name[: width - 3] + "..."


class JsonFormatter(logging.Formatter):
    """JSON Lines formatter.

    Output fields: timestamp, level, logger, message, file, line, function,
    plus case_id / action_id when set and an exception object when present.
    """

    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "file": record.filename,
            "line": record.lineno,
            "function": record.funcName,
        }
        data.update(_context_fields(record))

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            data["exception"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value) if exc_value else None,
                "traceback": self._format_traceback(record.exc_info),
            }

        return json.dumps(data, ensure_ascii=False, default=str)

    def _format_traceback(self, exc_info: tuple) -> list[str]:
        if not exc_info or not exc_info[2]:
            return []
        lines = []
        for chunk in traceback.format_exception(*exc_info):
            lines.extend(line for line in chunk.splitlines() if line.strip())
        return lines
