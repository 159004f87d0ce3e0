"""
Logging Configuration for the TrueWage report pipeline.

Provides structured logging with:
- JSON formatting for production
- Human-readable formatting for development
- Per-report stage timing for pipeline diagnostics
"""

import logging
import json
import sys
import time
from datetime import datetime, timezone
from typing import Optional, Dict
from pathlib import Path
from contextvars import ContextVar

# Context variables for request tracking
request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar('user_id', default=None)


class JsonFormatter(logging.Formatter):
    """
    JSON log formatter for structured logging.

    Outputs logs as JSON objects for easy parsing by log aggregators.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        user_id = user_id_var.get()
        if user_id:
            log_data["user_id"] = user_id

        if hasattr(record, 'extra_data'):
            log_data.update(record.extra_data)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ReadableFormatter(logging.Formatter):
    """
    Human-readable log formatter for development.
    """

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
        'RESET': '\033[0m',
    }

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for human readability."""
        color = self.COLORS.get(record.levelname, self.COLORS['RESET'])
        reset = self.COLORS['RESET']

        timestamp = datetime.now().strftime('%H:%M:%S.%f')[:-3]
        level = f"{color}{record.levelname:8s}{reset}"

        request_id = request_id_var.get()
        prefix = f"[{request_id[:8]}] " if request_id else ""

        message = f"{timestamp} {level} {prefix}[{record.name}] {record.getMessage()}"

        if hasattr(record, 'extra_data') and record.extra_data:
            extras = ' | '.join(f"{k}={v}" for k, v in record.extra_data.items())
            message += f" | {extras}"

        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)

        return message


class ContextLogger(logging.LoggerAdapter):
    """
    Logger adapter that includes context in all log messages.
    """

    def process(self, msg: str, kwargs: Dict) -> tuple:
        """Add context to log message."""
        extra = kwargs.get('extra', {})

        request_id = request_id_var.get()
        if request_id:
            extra['request_id'] = request_id

        user_id = user_id_var.get()
        if user_id:
            extra['user_id'] = user_id

        if 'extra_data' not in extra:
            extra['extra_data'] = {}
        extra['extra_data'].update(self.extra)

        kwargs['extra'] = extra
        return msg, kwargs


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Optional[Path] = None
) -> None:
    """
    Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, output JSON formatted logs
        log_file: Optional file path for log output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level.upper())

    root_logger.handlers.clear()

    if json_output:
        formatter = JsonFormatter()
    else:
        formatter = ReadableFormatter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JsonFormatter())  # Always JSON for files
        root_logger.addHandler(file_handler)

    # Set levels for noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str, **extra) -> ContextLogger:
    """
    Get a context-aware logger.

    Args:
        name: Logger name (typically __name__)
        **extra: Additional context to include in all logs

    Returns:
        ContextLogger instance
    """
    base_logger = logging.getLogger(name)
    return ContextLogger(base_logger, extra)


class ReportRunLogger:
    """
    Logger for a single report run.

    Records when each analysis stage starts and settles, how long it took,
    and whether its fallback was used, then summarises the run.
    """

    def __init__(self, user_id: Optional[str] = None, is_premium: bool = False):
        self.logger = get_logger("reports.run")
        self.user_id = user_id
        self.is_premium = is_premium
        self._start_time: Optional[float] = None
        self._stage_times: Dict[str, int] = {}
        self._degraded: list = []

    def start(self, scenario_count: int) -> None:
        """Log the start of a report run."""
        self._start_time = time.monotonic()
        self.logger.info(
            "Starting report generation",
            extra={'extra_data': {
                'user_id': self.user_id,
                'is_premium': self.is_premium,
                'scenario_count': scenario_count,
            }}
        )

    def stage_started(self, stage_id: str) -> float:
        self.logger.debug(
            f"Stage started: {stage_id}",
            extra={'extra_data': {'stage': stage_id}}
        )
        return time.monotonic()

    def stage_finished(self, stage_id: str, started: float, used_fallback: bool, error: Optional[str] = None) -> None:
        """Log stage settlement with timing."""
        duration_ms = int((time.monotonic() - started) * 1000)
        self._stage_times[stage_id] = duration_ms
        data = {
            'stage': stage_id,
            'duration_ms': duration_ms,
            'used_fallback': used_fallback,
        }
        if used_fallback:
            self._degraded.append(stage_id)
            data['error'] = error
            self.logger.warning(f"Stage {stage_id} failed, using fallback", extra={'extra_data': data})
        else:
            self.logger.info(f"Stage {stage_id} completed", extra={'extra_data': data})

    def finish(self, outcome: str = "complete") -> None:
        """Log the end of the run with per-stage timings."""
        duration_ms = int((time.monotonic() - self._start_time) * 1000) if self._start_time else 0
        self.logger.info(
            "Report generation finished",
            extra={'extra_data': {
                'outcome': outcome,
                'duration_ms': duration_ms,
                'stage_times': dict(self._stage_times),
                'degraded_stages': list(self._degraded),
            }}
        )
