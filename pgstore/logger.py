from datetime import datetime
import re
import os
import sys
import json
import logging
import traceback


SUCCESS_LEVEL = 25
LOG_SEVERITY = {
    "DEBUG": "DEBUG",
    "INFO": "INFO",
    "SUCCESS": "SUCCESS",
    "WARNING": "WARNING",
    "ERROR": "ERROR",
    "CRITICAL": "CRITICAL"
}

# Attributes every LogRecord carries; anything else came in through `extra=`.
_RESERVED_ATTRS = {
    "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "exc_info", "exc_text", "stack_info",
    "lineno", "funcName", "created", "msecs", "relativeCreated",
    "thread", "threadName", "process", "processName", "scope", "name", "taskName",
    "message",
}

logging.addLevelName(SUCCESS_LEVEL, "SUCCESS")


class CustomLogger(logging.Logger):
    def success(self, message, *args, **kwargs):
        if self.isEnabledFor(SUCCESS_LEVEL):
            self.log(SUCCESS_LEVEL, message, *args, **kwargs, stacklevel=2)


def stringify_extra(value):
    if isinstance(value, (list, dict)):
        return str(value)
    else:
        return value


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class CustomFormatter(logging.Formatter):

    def __init__(self, fmt="%(message)s", include_location=False):
        super().__init__(fmt)
        self.include_location = include_location

    def format(self, record):
        level_name = LOG_SEVERITY.get(record.levelname, record.levelname)
        scope = getattr(record, "scope", "")

        location = ""
        if self.include_location:
            location = f"{record.pathname}:{record.lineno}\n({record.module}:{record.funcName}:{record.lineno})"

        metadata_line = f"{datetime.now().isoformat()} [{level_name}] {scope} {location}".strip()

        message_split = record.getMessage().splitlines() or [""]
        message_line = f"     Message: {message_split[0]}"
        for line in message_split[1:]:
            message_line += f"\n             {line}"

        extra_items = [
            f"{key}: {stringify_extra(value)}"
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS
        ]
        extra_info = ""
        if extra_items:
            extra_info = f"\n     {' '.join(extra_items)}"
        formatted_log = f"{metadata_line}\n{message_line}{extra_info}"
        if record.exc_info:
            # clickable "File path:line" entries
            format_exception = "".join(traceback.format_exception(*record.exc_info))
            format_exception = re.sub(r'File "([^"]+)", line (\d+),', r'File "\1:\2"', format_exception)
            formatted_log += f"\n{format_exception}"
        return formatted_log


class JSONFormatter(logging.Formatter):
    def format(self, record):
        log_dict = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "time": self.formatTime(record, self.datefmt),
        }
        if hasattr(record, "scope"):
            log_dict["scope"] = record.scope
        log_dict["location"] = {
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_dict[key] = stringify_extra(value)
        if record.exc_info:
            log_dict["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_dict, ensure_ascii=False, default=str)


def setup_logger(name: str, include_location=False, use_json=None):
    """
    Return a configured module logger.

    Safe to call repeatedly for the same name: the stdout handler is only
    attached once. ``PGSTORE_LOG_JSON`` switches to JSON lines when
    ``use_json`` is not given, ``PGSTORE_LOG_LEVEL`` sets the level.
    """
    if use_json is None:
        use_json = _env_flag("PGSTORE_LOG_JSON")

    logging.setLoggerClass(CustomLogger)
    logger = logging.getLogger(name)

    if not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
        stream_handler = logging.StreamHandler(sys.stdout)
        stream_handler.setLevel(logging.DEBUG)
        if use_json:
            stream_handler.setFormatter(JSONFormatter())
        else:
            stream_handler.setFormatter(CustomFormatter(include_location=include_location))
        logger.addHandler(stream_handler)
    logger.setLevel(os.getenv("PGSTORE_LOG_LEVEL", "DEBUG").upper())
    logger.propagate = False
    return logger
