"""Observability utilities for the Bear Notes MCP server.

Provides rotating file logging, per-tool timing metrics and
correlation-id tagged START/END log lines.
"""
import logging
import re
import time
import uuid
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)

# Default log directory (can be overridden via configure_logging)
DEFAULT_LOG_DIR = Path.home() / ".bear-mcp" / "logs"

# Logging format with ISO 8601 timestamps
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

ROOT_LOGGER_NAME = "bear_mcp"

# Global flag to track if logging has been configured
_logging_configured = False


def configure_logging(
    log_dir: Optional[Union[str, Path]] = None,
    level: int = logging.INFO,
    max_bytes: int = 5 * 1024 * 1024,  # 5 MB per file
    backup_count: int = 3,
    console: bool = True,
) -> Path:
    """Configure persistent file logging with rotation.

    Attaches a rotating file handler (and optionally a stderr handler) to
    the ``bear_mcp`` logger hierarchy. stdout is left alone because the
    stdio MCP transport owns it.

    Args:
        log_dir: Directory for log files. Defaults to ~/.bear-mcp/logs/
        level: Logging level (default: INFO)
        max_bytes: Maximum size per log file before rotation
        backup_count: Number of rotated files to keep
        console: Also log to stderr (default: True)

    Returns:
        Path to the log directory
    """
    global _logging_configured

    log_path = Path(log_dir) if log_dir else DEFAULT_LOG_DIR
    log_path.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(level)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    log_file = log_path / "bear-mcp.log"
    if not any(isinstance(h, RotatingFileHandler) for h in root_logger.handlers):
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    if console and not any(
        isinstance(h, logging.StreamHandler) and not isinstance(h, RotatingFileHandler)
        for h in root_logger.handlers
    ):
        console_handler = logging.StreamHandler()  # stderr
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    _logging_configured = True
    root_logger.info(f"Logging configured: {log_file} (max {max_bytes} bytes, {backup_count} backups)")

    return log_path


def is_logging_configured() -> bool:
    """Check if file logging has been configured."""
    return _logging_configured


def _sanitize_error_message(message: Optional[str], max_length: int = 200) -> Optional[str]:
    """Make an error message safe to keep in metrics.

    Replaces the home directory with ``~``, flattens the message onto one
    line and truncates it to ``max_length`` characters.
    """
    if message is None:
        return None
    home = str(Path.home())
    if home and home != "/":
        message = message.replace(home, "~")
    message = re.sub(r"\s+", " ", message).strip()
    if len(message) > max_length:
        message = message[: max_length - 3] + "..."
    return message


@dataclass
class ToolStats:
    """Call counts and timings for one tool."""
    calls: int = 0
    errors: int = 0
    total_ms: float = 0.0
    max_ms: float = 0.0
    last_error: Optional[str] = None

    @property
    def avg_ms(self) -> float:
        return self.total_ms / self.calls if self.calls else 0.0


class MetricsCollector:
    """Thread-safe, in-memory call statistics keyed by tool name.

    Nothing is persisted; the counters start over with the process.
    """

    def __init__(self):
        self._stats: Dict[str, ToolStats] = defaultdict(ToolStats)
        self._lock = Lock()
        self._started = datetime.now(timezone.utc)

    def record(self, tool: str, duration_ms: float, error: Optional[str] = None) -> None:
        """Count one call of ``tool``; a non-None ``error`` marks it failed."""
        with self._lock:
            stats = self._stats[tool]
            stats.calls += 1
            stats.total_ms += duration_ms
            stats.max_ms = max(stats.max_ms, duration_ms)
            if error is not None:
                stats.errors += 1
                stats.last_error = _sanitize_error_message(error)

    def per_tool(self) -> Dict[str, ToolStats]:
        """Copies of the current statistics, safe to read without the lock."""
        with self._lock:
            return {tool: replace(stats) for tool, stats in self._stats.items()}

    def summary(self) -> Dict[str, Any]:
        with self._lock:
            calls = sum(s.calls for s in self._stats.values())
            errors = sum(s.errors for s in self._stats.values())
            return {
                "uptime_seconds": (datetime.now(timezone.utc) - self._started).total_seconds(),
                "calls": calls,
                "errors": errors,
                "success_rate": (calls - errors) / calls if calls else 1.0,
            }

    def reset(self) -> None:
        """Forget every recorded call (used between tests)."""
        with self._lock:
            self._stats.clear()
            self._started = datetime.now(timezone.utc)


# Global metrics collector instance
metrics = MetricsCollector()


@contextmanager
def timed_operation(tool: str, **context):
    """Time one tool call and record it in ``metrics``.

    The yielded dict collects result details for the END log line. Tools
    that turn exceptions into error text set ``op["error"]`` so the call
    still counts as failed.

    Example:
        with timed_operation("search_notes_fulltext", query="plan") as op:
            op["result_count"] = len(service.search("plan"))
    """
    op: Dict[str, Any] = {"correlation_id": uuid.uuid4().hex[:8]}
    cid = op["correlation_id"]
    details = " ".join(f"{k}={v}" for k, v in context.items())
    logger.debug(f"[{cid}] START {tool} {details}".rstrip())

    started = time.perf_counter()
    raised: Optional[BaseException] = None
    try:
        yield op
    except Exception as e:
        raised = e
        raise
    finally:
        elapsed_ms = (time.perf_counter() - started) * 1000
        failure = raised if raised is not None else op.get("error")
        metrics.record(tool, elapsed_ms, str(failure) if failure is not None else None)

        outcome = "OK" if failure is None else f"ERROR: {failure}"
        results = " ".join(
            f"{k}={v}" for k, v in op.items() if k not in ("correlation_id", "error")
        )
        logger.debug(f"[{cid}] END {tool} {elapsed_ms:.2f}ms [{outcome}] {results}".rstrip())
