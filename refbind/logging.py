import datetime as _dt
import json
import logging as _logging
import os
import sys
from dataclasses import dataclass
from typing import Any, Dict, Optional

_LOGGER_NAMESPACE = "refbind"

_DEFAULT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
_DEFAULT_DATEFMT = "%Y-%m-%d %H:%M:%S"

# structured fields passed through ``extra=`` by the binder and the bridge
_CONTEXT_FIELDS = ("decl", "handle", "func_id")

_COLOR_MAP = {
    _logging.DEBUG: "\033[36m",
    _logging.WARNING: "\033[33m",
    _logging.ERROR: "\033[31m",
    _logging.CRITICAL: "\033[41m",
}
_RESET = "\033[0m"


@dataclass
class LoggingState:
    log_dir: Optional[str]
    text_log_path: Optional[str]
    jsonl_log_path: Optional[str]
    console_level: int
    file_level: int


_state: Optional[LoggingState] = None


def _parse_level(value: Optional[str], default: int) -> int:
    if value is None:
        return default
    if isinstance(value, int):
        return value
    value = value.upper()
    if value.isdigit():
        return int(value)
    level = _logging.getLevelName(value)
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {value}")
    return level


class _ConsoleFormatter(_logging.Formatter):
    """Colours by level; INFO stays uncoloured."""

    def __init__(self, use_color: bool) -> None:
        super().__init__(fmt=_DEFAULT_FORMAT, datefmt=_DEFAULT_DATEFMT)
        self.use_color = use_color

    def format(self, record: _logging.LogRecord) -> str:
        message = super().format(record)
        color = _COLOR_MAP.get(record.levelno) if self.use_color else None
        return f"{color}{message}{_RESET}" if color else message


class _BelowLevelFilter(_logging.Filter):
    def __init__(self, level: int) -> None:
        super().__init__()
        self.level = level

    def filter(self, record: _logging.LogRecord) -> bool:
        return record.levelno < self.level


class _JsonLinesFormatter(_logging.Formatter):
    def format(self, record: _logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record, _DEFAULT_DATEFMT),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "lineno": record.lineno,
        }
        for name in _CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                payload[name] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def _log_filename(pattern: str, timestamp_format: str) -> str:
    return pattern.format(timestamp=_dt.datetime.now().strftime(timestamp_format), pid=os.getpid())


def _resolve_log_dir(logging_cfg: Dict[str, Any], output_dir: Optional[str], override: Optional[str]) -> Optional[str]:
    if override:
        return os.path.abspath(override)
    cfg_dir = logging_cfg.get("dir")
    if cfg_dir:
        return os.path.abspath(cfg_dir)
    if output_dir and logging_cfg.get("log_to_output", False):
        return os.path.join(os.path.abspath(output_dir), logging_cfg.get("subdir", "logs"))
    return None


def get_logger(name: Optional[str] = None) -> _logging.Logger:
    if name is None:
        return _logging.getLogger(_LOGGER_NAMESPACE)
    if name.startswith(_LOGGER_NAMESPACE):
        return _logging.getLogger(name)
    return _logging.getLogger(f"{_LOGGER_NAMESPACE}.{name}")


def configure_logging(
    config: Dict[str, Any],
    *,
    output_dir: Optional[str] = None,
    console_level_override: Optional[str] = None,
    log_dir_override: Optional[str] = None,
    disable_color: bool = False,
) -> LoggingState:
    """Set up the ``refbind`` logger once per process.

    Records below ERROR go to stdout, ERROR and above to stderr. With a log
    directory, a text log (and a JSON-lines log when ``[logging].jsonl`` is
    set) is written there as well.
    """
    global _state

    logging_cfg: Dict[str, Any] = config.get("logging", {}) if config else {}
    console_level = _parse_level(console_level_override, _parse_level(logging_cfg.get("console_level"), _logging.INFO))
    file_level = _parse_level(logging_cfg.get("file_level"), _logging.DEBUG)

    logger = get_logger()
    if logger.handlers and _state is not None:
        return _state

    use_color = logging_cfg.get("color", True) and not disable_color
    log_dir = _resolve_log_dir(logging_cfg, output_dir, log_dir_override)

    logger.handlers.clear()
    logger.setLevel(min(console_level, file_level) if log_dir else console_level)
    logger.propagate = False

    stdout_handler = _logging.StreamHandler(stream=sys.stdout)
    stdout_handler.setLevel(console_level)
    stdout_handler.addFilter(_BelowLevelFilter(_logging.ERROR))
    stdout_handler.setFormatter(_ConsoleFormatter(use_color and sys.stdout.isatty()))
    logger.addHandler(stdout_handler)

    stderr_handler = _logging.StreamHandler(stream=sys.stderr)
    stderr_handler.setLevel(max(console_level, _logging.ERROR))
    stderr_handler.setFormatter(_ConsoleFormatter(use_color and sys.stderr.isatty()))
    logger.addHandler(stderr_handler)

    text_log_path = None
    jsonl_log_path = None
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        pattern = logging_cfg.get("filename_pattern", "refbind-{timestamp}.log")
        timestamp_format = logging_cfg.get("timestamp_format", "%Y%m%dT%H%M%S")

        text_log_path = os.path.join(log_dir, _log_filename(pattern, timestamp_format))
        file_handler = _logging.FileHandler(text_log_path, encoding="utf-8")
        file_handler.setLevel(file_level)
        file_handler.setFormatter(_logging.Formatter(_DEFAULT_FORMAT, _DEFAULT_DATEFMT))
        logger.addHandler(file_handler)

        if logging_cfg.get("jsonl", False):
            jsonl_log_path = os.path.splitext(text_log_path)[0] + ".jsonl"
            json_handler = _logging.FileHandler(jsonl_log_path, encoding="utf-8")
            json_handler.setLevel(file_level)
            json_handler.setFormatter(_JsonLinesFormatter())
            logger.addHandler(json_handler)

    _state = LoggingState(
        log_dir=log_dir,
        text_log_path=text_log_path,
        jsonl_log_path=jsonl_log_path,
        console_level=console_level,
        file_level=file_level,
    )
    return _state


def get_logging_state() -> Optional[LoggingState]:
    return _state


def is_configured() -> bool:
    return bool(get_logger().handlers)
