"""
Structured logging for cadence.

Each component logs under ``cadence.<component>``. Records are rendered as
one JSON object per line for production or as a short human-readable line
for development, and carry the failing source's id plus free-form fields.

A component's handlers are shared by every StructuredLogger built for it:
configure() swaps them for new ones (closing the old), while
ensure_configured() only installs defaults when none are attached yet.
"""
import json
import logging
import sys
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

LOGGER_PREFIX = "cadence"

# component -> (level, json_output, log_file) its handlers were built with
_handler_configs: Dict[str, Tuple[int, bool, Optional[str]]] = {}
_config_lock = threading.RLock()


def _level_number(level: str) -> int:
    number = logging.getLevelName(level.upper())
    if not isinstance(number, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return number


@dataclass(frozen=True)
class LogContext:
    """Source and fields attached to a single log call."""
    source_id: Optional[str] = None
    fields: Dict[str, Any] = field(default_factory=dict)


@dataclass
class LogEntry:
    """One rendered log line."""
    timestamp: str
    level: str
    message: str
    component: Optional[str] = None
    source_id: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    fields: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_record(cls, record: logging.LogRecord, timestamp: str) -> "LogEntry":
        failure = record.exc_info[1] if record.exc_info else None
        return cls(
            timestamp=timestamp,
            level=record.levelname,
            message=record.getMessage(),
            component=getattr(record, "component", None),
            source_id=getattr(record, "source_id", None),
            error=str(failure) if failure is not None else None,
            error_type=type(failure).__name__ if failure is not None else None,
            fields=getattr(record, "fields", None) or {},
        )

    def to_json(self) -> str:
        data = {k: v for k, v in asdict(self).items() if v is not None}
        if not data.get("fields"):
            data.pop("fields", None)
        return json.dumps(data, default=str)

    def to_human(self) -> str:
        parts = [f"[{self.timestamp}]", f"[{self.level}]"]
        if self.component:
            parts.append(f"[{self.component}]")
        if self.source_id:
            parts.append(f"<{self.source_id}>")
        parts.append(self.message)
        return " ".join(parts)


def _record_time(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, timezone.utc)


class JSONFormatter(logging.Formatter):
    """JSON log formatter for production."""

    def format(self, record: logging.LogRecord) -> str:
        return LogEntry.from_record(record, _record_time(record).isoformat()).to_json()


class HumanFormatter(logging.Formatter):
    """Human-readable formatter for development; tracebacks follow the line."""

    def format(self, record: logging.LogRecord) -> str:
        line = LogEntry.from_record(record, _record_time(record).strftime("%H:%M:%S")).to_human()
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class _StdoutHandler(logging.StreamHandler):
    """Writes to whatever sys.stdout is when the record is emitted."""

    def __init__(self):
        super().__init__()

    @property
    def stream(self):
        return sys.stdout

    @stream.setter
    def stream(self, value):
        pass


class StructuredLogger:
    """
    Structured logger for one cadence component.

    Usage:
        logger = create_logger("failures", level="WARNING", json_output=True)
        logger.warning("Attempt 2 failed", LogContext(source_id="sync-users", fields={"attempt": 2}))
    """

    def __init__(self, component: str):
        self._component = component
        self._logger = logging.getLogger(f"{LOGGER_PREFIX}.{component}")

    @property
    def component(self) -> str:
        return self._component

    @property
    def handlers(self) -> List[logging.Handler]:
        return list(self._logger.handlers)

    def configure(
        self,
        level: str = "INFO",
        json_output: bool = False,
        log_file: Optional[Path] = None,
    ) -> "StructuredLogger":
        """
        Install this component's handlers.

        Calling again with the same settings keeps the current handlers;
        different settings replace them and close the replaced ones.
        """
        config = (_level_number(level), json_output, str(log_file) if log_file else None)
        with _config_lock:
            if self._logger.handlers and _handler_configs.get(self._component) == config:
                return self
            self.close()

            self._logger.setLevel(config[0])
            console = _StdoutHandler()
            console.setFormatter(JSONFormatter() if json_output else HumanFormatter())
            self._logger.addHandler(console)

            # Files are always JSON
            if log_file:
                file_handler = logging.FileHandler(log_file)
                file_handler.setFormatter(JSONFormatter())
                self._logger.addHandler(file_handler)

            _handler_configs[self._component] = config
        return self

    def ensure_configured(self) -> "StructuredLogger":
        """Install default handlers unless the component already has some."""
        with _config_lock:
            if not self._logger.handlers:
                self.configure()
        return self

    def close(self) -> None:
        """Detach and close this component's handlers."""
        with _config_lock:
            for handler in list(self._logger.handlers):
                self._logger.removeHandler(handler)
                handler.close()
            _handler_configs.pop(self._component, None)

    def _log(self, level: int, message: str, context: Optional[LogContext], exc_info=None) -> None:
        context = context or LogContext()
        self._logger.log(
            level,
            message,
            exc_info=exc_info,
            extra={
                "component": self._component,
                "source_id": context.source_id,
                "fields": dict(context.fields),
            },
        )

    def warning(self, message: str, context: Optional[LogContext] = None) -> None:
        self._log(logging.WARNING, message, context)

    def error(self, message: str, context: Optional[LogContext] = None, exc_info=True) -> None:
        self._log(logging.ERROR, message, context, exc_info=exc_info)


def create_logger(
    component: str,
    level: str = "INFO",
    json_output: bool = False,
    log_dir: Optional[str] = None,
) -> StructuredLogger:
    """Build a logger for `component` with explicit settings, replacing earlier ones."""
    log_file = None
    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        log_file = log_path / f"cadence_{component}.log"

    return StructuredLogger(component).configure(level=level, json_output=json_output, log_file=log_file)


def get_logger(component: str) -> StructuredLogger:
    """Logger for `component`, keeping whatever handlers are already attached."""
    return StructuredLogger(component).ensure_configured()
