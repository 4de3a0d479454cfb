"""Unified logging configuration for all entrypoints.

Provides consistent logging across the arm scripts and library code:
    - Console and file handlers with optional rotation
    - JSON output mode for ingestion (ELK, Vector, etc.)
    - Contextual fields (app, robot, handle)
    - Thread name on every record (caller vs. telemetry poller)
    - Warning capture (Python warnings -> logging)
    - Uncaught exception logging

Public API:
    setup_logging(**yaml_cfg.logging, context={"app": "monitor"})
    get_logger(name)
    push_context(robot="10.0.0.5", handle=42)
    pop_context(keys=["handle"])
    install_excepthook()

Format examples:
    Human: 2025-10-28T13:45:12.345Z | INFO     | MainThread | app=monitor robot=10.0.0.5 | Connected
    JSON: {"t":"2025-10-28T13:45:12.345Z","lvl":"INFO","thread":"MainThread","robot":"10.0.0.5","msg":"..."}

Context uses contextvars; threads started through ``contextvars.copy_context``
inherit the fields of their starter.
Idempotent: repeated setup_logging() calls don't duplicate handlers.
"""

import contextvars
import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .fs import ensure_dir

# Per-context fields added to every record
_context_var: contextvars.ContextVar[Dict[str, Any]] = contextvars.ContextVar(
    'logging_context', default={}
)

# Handlers installed by setup_logging (removed on reconfigure)
_installed: List[logging.Handler] = []


class ContextFormatter(logging.Formatter):
    """Formatter that includes contextual fields and the thread name.

    Supports:
        - Human-readable format with colors (optional)
        - JSON format for machine ingestion
        - Contextual fields from push_context()
    """

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def __init__(
        self,
        fmt_mode: str = "human",
        use_color: bool = True,
        tz: str = "UTC",
        stream: Optional[Any] = None
    ):
        super().__init__()
        if fmt_mode not in ("human", "json"):
            raise ValueError(f"Unknown format mode: {fmt_mode}. Use 'human' or 'json'.")
        self.fmt_mode = fmt_mode
        stream = stream if stream is not None else sys.stderr
        self.use_color = use_color and hasattr(stream, "isatty") and stream.isatty()
        self.tz = tz

    def format(self, record: logging.LogRecord) -> str:
        context = _context_var.get()
        if self.tz == "UTC":
            ts = datetime.fromtimestamp(record.created, tz=timezone.utc)
        else:
            ts = datetime.fromtimestamp(record.created)

        if self.fmt_mode == "json":
            return self._format_json(record, ts, context)
        return self._format_human(record, ts, context)

    def _format_json(
        self,
        record: logging.LogRecord,
        ts: datetime,
        context: Dict[str, Any]
    ) -> str:
        log_dict: Dict[str, Any] = {
            't': ts.isoformat(),
            'lvl': record.levelname,
            'name': record.name,
            'pid': os.getpid(),
            'thread': record.threadName,
        }
        log_dict.update(context)
        log_dict['msg'] = record.getMessage()

        if record.exc_info:
            log_dict['exc'] = self.formatException(record.exc_info)

        return json.dumps(log_dict, default=str)

    def _format_human(
        self,
        record: logging.LogRecord,
        ts: datetime,
        context: Dict[str, Any]
    ) -> str:
        ts_str = ts.strftime('%Y-%m-%dT%H:%M:%S.%f')[:-3]
        if self.tz == "UTC":
            ts_str += 'Z'

        level = f"{record.levelname:8s}"
        if self.use_color:
            level = f"{self.COLORS.get(record.levelname, '')}{level}{self.RESET}"

        parts = [ts_str, level, record.threadName]
        if context:
            parts.append(' '.join(f"{k}={v}" for k, v in context.items()))
        parts.append(record.getMessage())
        line = ' | '.join(parts)

        if record.exc_info:
            line += '\n' + self.formatException(record.exc_info)
        return line


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    *,
    json: bool = False,
    color: bool = True,
    to_stderr: bool = True,
    rotate: Optional[Dict[str, Any]] = None,
    tz: str = "UTC",
    capture_warnings: bool = True,
    quiet_libs: Optional[List[str]] = None,
    context: Optional[Dict[str, Any]] = None
) -> List[logging.Handler]:
    """Configure root logger (idempotent).

    Parameters
    ----------
    log_level : str
        Logging level: "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"
    log_file : str, optional
        Log file path; None for no file logging
    json : bool
        Use JSON format in the log file, default False
    color : bool
        Use ANSI colors in console output (TTY only), default True
    to_stderr : bool
        Log to stderr (console), default True
    rotate : dict, optional
        Rotation config:
        - {"mode": "size", "max_bytes": 10_000_000, "backup_count": 5}
        - {"mode": "time", "when": "D", "interval": 1, "backup_count": 7}
    tz : str
        Timezone for timestamps, "UTC" (default) or "local"
    capture_warnings : bool
        Capture Python warnings to logging, default True
    quiet_libs : list[str], optional
        Library names to set to WARNING level
    context : dict, optional
        Initial contextual fields (e.g., {"app": "monitor"})

    Returns
    -------
    list[logging.Handler]
        Handlers added to the root logger.

    Raises
    ------
    ValueError
        On an unknown level or rotation mode.

    Examples
    --------
    >>> setup_logging(log_level="DEBUG", log_file="outputs/logs/arm.log",
    ...               rotate={"mode": "size", "max_bytes": 10_000_000},
    ...               context={"app": "test_connection"})
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    root = logging.getLogger()
    for handler in _installed:
        root.removeHandler(handler)
        handler.close()
    _installed.clear()

    root.setLevel(level)

    if to_stderr:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(
            ContextFormatter("human", color, tz, stream=sys.stderr)
        )
        _installed.append(console_handler)

    if log_file:
        _installed.append(_create_file_handler(log_file, rotate, json, tz))

    for handler in _installed:
        root.addHandler(handler)

    if context:
        push_context(**context)

    if quiet_libs:
        for lib in quiet_libs:
            logging.getLogger(lib).setLevel(logging.WARNING)

    if capture_warnings:
        route_warnings()

    return list(_installed)


def _create_file_handler(
    log_file: str,
    rotate: Optional[Dict[str, Any]],
    json_format: bool,
    tz: str
) -> logging.Handler:
    """Create file handler with optional rotation."""
    log_path = ensure_dir(os.path.dirname(os.path.abspath(log_file))) / os.path.basename(log_file)

    if rotate:
        mode = rotate.get('mode', 'size')
        if mode == 'size':
            handler: logging.Handler = logging.handlers.RotatingFileHandler(
                log_path,
                maxBytes=rotate.get('max_bytes', 10_000_000),
                backupCount=rotate.get('backup_count', 5)
            )
        elif mode == 'time':
            handler = logging.handlers.TimedRotatingFileHandler(
                log_path,
                when=rotate.get('when', 'D'),
                interval=rotate.get('interval', 1),
                backupCount=rotate.get('backup_count', 7)
            )
        else:
            raise ValueError(f"Unknown rotation mode: {mode}. Use 'size' or 'time'.")
    else:
        handler = logging.FileHandler(log_path, encoding='utf-8')

    fmt_mode = "json" if json_format else "human"
    handler.setFormatter(ContextFormatter(fmt_mode, use_color=False, tz=tz))
    return handler


def get_logger(name: str) -> logging.Logger:
    """Get logger by name (typically ``__name__``)."""
    return logging.getLogger(name)


def set_level(level: str) -> None:
    """Update root logger level at runtime.

    Examples
    --------
    >>> set_level("DEBUG")  # see every skipped telemetry read
    """
    logging.getLogger().setLevel(level.upper())


def push_context(**kwargs: Any) -> None:
    """Add contextual fields to all subsequent log records.

    Notes
    -----
    Context is per contextvars context: each thread starts empty unless it
    was started inside a copied context.

    Examples
    --------
    >>> push_context(app="monitor", robot="10.0.0.5")
    >>> logger.info("Connected")  # -> "... | app=monitor robot=10.0.0.5 | Connected"
    """
    _context_var.set({**_context_var.get(), **kwargs})


def pop_context(keys: Optional[List[str]] = None) -> None:
    """Remove contextual fields.

    Parameters
    ----------
    keys : list[str], optional
        Keys to remove; if None, clears all context
    """
    if keys is None:
        _context_var.set({})
        return
    current = dict(_context_var.get())
    for key in keys:
        current.pop(key, None)
    _context_var.set(current)


def get_context() -> Dict[str, Any]:
    """Return a copy of the current contextual fields."""
    return dict(_context_var.get())


def install_excepthook() -> None:
    """Log uncaught exceptions (except Ctrl+C) at CRITICAL before exit."""
    def log_exception(exc_type, exc_value, exc_traceback):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return
        logging.getLogger(__name__).critical(
            "Uncaught exception",
            exc_info=(exc_type, exc_value, exc_traceback)
        )

    sys.excepthook = log_exception


def route_warnings() -> None:
    """Route Python warnings to the ``py.warnings`` logger."""
    logging.captureWarnings(True)
    logging.getLogger('py.warnings').setLevel(logging.WARNING)


def shutdown() -> None:
    """Flush and close all handlers.  Call at the end of main()."""
    logging.shutdown()
