"""
Structured logging for the bridge.

Every logger obtained through get_logger() accepts keyword fields:

    logger.info("Client connected", client_id=client_id, total=3)

The fields travel on the record as extra_data. Records are rendered as JSON
lines in production and as colored single lines otherwise.

While the bridge handles a connection event it sets client_id_var; the
ClientIdFilter copies it onto every record emitted meanwhile.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

from shared.config.settings import settings

# Client id of the connection whose event is being processed (empty outside one)
client_id_var: ContextVar[str] = ContextVar("client_id", default="")

_NO_CLIENT = "-"


class ClientIdFilter(logging.Filter):
    """
    Stamp record.client_id from client_id_var.

    Usage:
        handler = logging.StreamHandler()
        handler.addFilter(ClientIdFilter())
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.client_id = client_id_var.get() or _NO_CLIENT
        return True


def _record_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Structured fields of a record: its client id (if any) plus extra_data."""
    fields: dict[str, Any] = {}
    client_id = getattr(record, "client_id", _NO_CLIENT)
    if client_id != _NO_CLIENT:
        fields["client_id"] = client_id
    extra_data = getattr(record, "extra_data", None)
    if extra_data:
        fields.update(extra_data)
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        client_id = getattr(record, "client_id", _NO_CLIENT)
        if client_id != _NO_CLIENT:
            payload["client_id"] = client_id
        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            payload["data"] = extra_data
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        if settings.debug:
            payload["where"] = f"{record.pathname}:{record.lineno} in {record.funcName}"
        return json.dumps(payload, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Colored single-line output for a terminal."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[1;31m",
    }
    RESET = "\033[0m"
    DIM = "\033[2m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, "")
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]
        line = (
            f"{self.DIM}{clock}{self.RESET} {color}{record.levelname:<7}{self.RESET} "
            f"{record.name}: {record.getMessage()}"
        )

        fields = _record_fields(record)
        if fields:
            line += f" {self.DIM}(" + ", ".join(f"{key}={value}" for key, value in fields.items()) + f"){self.RESET}"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class StructuredLogger(logging.Logger):
    """
    Logger whose methods take arbitrary keyword fields.

    exc_info, extra, stack_info and stacklevel keep their stdlib meaning;
    every other keyword is collected into record.extra_data.
    """

    def _log(
        self,
        level: int,
        msg: object,
        args: Any,
        exc_info: Any = None,
        extra: dict[str, Any] | None = None,
        stack_info: bool = False,
        stacklevel: int = 1,
        **fields: Any,
    ) -> None:
        extra = dict(extra or {})
        extra["extra_data"] = fields or None
        # One extra frame (this override) between the caller and findCaller
        super()._log(
            level,
            msg,
            args,
            exc_info=exc_info,
            extra=extra,
            stack_info=stack_info,
            stacklevel=stacklevel + 1,
        )


logging.setLoggerClass(StructuredLogger)


def _resolve_level() -> int:
    if settings.log_level:
        level = logging.getLevelName(settings.log_level.upper())
        if isinstance(level, int):
            return level
    return logging.DEBUG if settings.debug else logging.INFO


def setup_logging() -> None:
    """
    Install the bridge's stdout handler on the root logger.

    The CLI calls this. An application embedding the bridge usually owns
    logging already and can skip it; the bridge only emits through standard
    loggers.
    """
    level = _resolve_level()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(ClientIdFilter())
    handler.setFormatter(
        StructuredFormatter() if settings.environment == "production" else DevelopmentFormatter()
    )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)

    # uvicorn is embedded; its per-request and websocket chatter is noise here
    for name, floor in (("uvicorn.access", logging.WARNING), ("uvicorn.error", logging.INFO), ("websockets", logging.WARNING)):
        logging.getLogger(name).setLevel(max(level, floor))


def get_logger(name: str) -> StructuredLogger:
    """
    Logger for a module.

    Usage:
        logger = get_logger(__name__)
        logger.warning("Client not found", client_id=client_id, type="chat_reply")
        logger.error("Handler raised an exception", handler="on_message", exc_info=True)
    """
    return logging.getLogger(name)  # type: ignore[return-value]
