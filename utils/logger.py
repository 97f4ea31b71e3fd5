"""
Reel Batch - Logging System
One JSON line per event in logs/reel_batch.log, errors mirrored to
logs/errors.log, a colored one-line echo on the console.
"""

import os
import sys
import time
import json
import hashlib
import traceback
from datetime import datetime
from pathlib import Path
from enum import Enum
from typing import Optional, Dict, Any
import threading


class LogLevel(Enum):
    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50

    @classmethod
    def from_name(cls, name: Optional[str], default: 'LogLevel' = None) -> 'LogLevel':
        """Map 'debug'/'info'/'warn'/'error' style names to a level"""
        fallback = default or cls.INFO
        if not name:
            return fallback
        key = name.strip().upper()
        return cls.__members__.get('WARNING' if key == 'WARN' else key, fallback)


CONSOLE_COLORS = {
    LogLevel.DEBUG: "\033[90m",     # Gray
    LogLevel.INFO: "\033[0m",
    LogLevel.WARNING: "\033[93m",   # Yellow
    LogLevel.ERROR: "\033[91m",     # Red
    LogLevel.CRITICAL: "\033[95m",  # Magenta
}
RESET = "\033[0m"


def default_log_dir() -> Path:
    env_dir = os.getenv("REEL_BATCH_LOG_DIR")
    if env_dir:
        return Path(env_dir)
    return Path(__file__).parent.parent / "logs"


class BatchLogger:
    """
    Process-wide logger shared by every worker thread.

    error() and critical() register the failure under a short code
    (CATEGORY-NNNNN-HASH) that is printed to the user and can be looked
    up later with get_error_details().
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls, *args, **kwargs):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, log_dir: Optional[Path] = None, max_file_size_mb: int = 10, max_files: int = 5):
        if hasattr(self, '_initialized'):
            return
        self._initialized = True

        self.log_dir = log_dir or default_log_dir()
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.current_log_file = self.log_dir / "reel_batch.log"
        self.error_log_file = self.log_dir / "errors.log"

        self.max_file_size = max_file_size_mb * 1024 * 1024
        self.max_files = max_files
        self.min_level = LogLevel.from_name(os.getenv("LOG_LEVEL"))

        self.error_registry: Dict[str, Dict[str, Any]] = {}
        self._file_lock = threading.Lock()

        self.debug("SYSTEM", "Logger initialized", {"log_dir": str(self.log_dir), "pid": os.getpid()})

    def set_level(self, level: LogLevel):
        self.min_level = level

    # -------------------------------------------------------------------------
    # Output
    # -------------------------------------------------------------------------

    def _rotate(self, log_file: Path):
        """Shift name.N.log -> name.N+1.log once the live file is too big"""
        if not log_file.exists() or log_file.stat().st_size < self.max_file_size:
            return

        oldest = log_file.with_suffix(f".{self.max_files}.log")
        if oldest.exists():
            oldest.unlink()
        for i in range(self.max_files - 1, 0, -1):
            backup = log_file.with_suffix(f".{i}.log")
            if backup.exists():
                backup.replace(log_file.with_suffix(f".{i + 1}.log"))
        log_file.replace(log_file.with_suffix(".1.log"))

    def _append(self, log_file: Path, line: str):
        self._rotate(log_file)
        with open(log_file, 'a', encoding='utf-8') as f:
            f.write(line + "\n")

    def _emit(self, level: LogLevel, category: str, message: str,
              data: Optional[Dict] = None, error_code: Optional[str] = None):
        if level.value < self.min_level.value:
            return

        entry = {
            "timestamp": datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3],
            "level": level.name,
            "category": category,
            "thread": threading.current_thread().name,
            "message": message,
        }
        if error_code:
            entry["error_code"] = error_code
        if data:
            entry["data"] = data
        line = json.dumps(entry, ensure_ascii=False, default=str)

        tag = error_code or category
        stream = sys.stderr if level.value >= LogLevel.WARNING.value else sys.stdout
        print(f"{CONSOLE_COLORS[level]}[{tag}] {message}{RESET}", file=stream)

        with self._file_lock:
            try:
                self._append(self.current_log_file, line)
                if level.value >= LogLevel.ERROR.value:
                    self._append(self.error_log_file, line)
            except OSError as e:
                print(f"[LOGGER ERROR] Failed to write log: {e}", file=sys.stderr)

    # -------------------------------------------------------------------------
    # Levels
    # -------------------------------------------------------------------------

    def debug(self, category: str, message: str, data: Optional[Dict] = None):
        self._emit(LogLevel.DEBUG, category, message, data)

    def info(self, category: str, message: str, data: Optional[Dict] = None):
        self._emit(LogLevel.INFO, category, message, data)

    def warning(self, category: str, message: str, data: Optional[Dict] = None):
        self._emit(LogLevel.WARNING, category, message, data)

    def error(self, category: str, message: str, data: Optional[Dict] = None,
              exception: Optional[BaseException] = None) -> str:
        """Log an error and return its code for display to users"""
        return self._report(LogLevel.ERROR, category, message, data, exception)

    def critical(self, category: str, message: str, data: Optional[Dict] = None,
                 exception: Optional[BaseException] = None) -> str:
        return self._report(LogLevel.CRITICAL, category, message, data, exception)

    def _report(self, level: LogLevel, category: str, message: str,
                data: Optional[Dict], exception: Optional[BaseException]) -> str:
        digest = hashlib.md5(f"{category}:{message}".encode()).hexdigest()[:4].upper()
        error_code = f"{category}-{int(time.time()) % 100000:05d}-{digest}"

        details = dict(data or {})
        if exception is not None:
            details["exception_type"] = type(exception).__name__
            details["exception_msg"] = str(exception)
            if exception.__traceback__ is not None:
                details["traceback"] = "".join(traceback.format_exception(
                    type(exception), exception, exception.__traceback__
                ))

        record = {
            "category": category,
            "message": message,
            "timestamp": datetime.now().isoformat(),
            "data": details,
        }
        if level is LogLevel.CRITICAL:
            record["critical"] = True
        with self._file_lock:
            self.error_registry[error_code] = record

        self._emit(level, category, message, details, error_code)
        return error_code

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def get_error_details(self, error_code: str) -> Optional[Dict]:
        return self.error_registry.get(error_code)

    def get_recent_errors(self, limit: int = 20) -> list:
        """Newest first"""
        errors = sorted(
            self.error_registry.items(),
            key=lambda pair: pair[1].get("timestamp", ""),
            reverse=True
        )
        return errors[:limit]

    # -------------------------------------------------------------------------
    # Batch items
    # -------------------------------------------------------------------------

    def item_event(self, batch_id: str, url: str, event: str, data: Optional[Dict] = None,
                   level: LogLevel = LogLevel.INFO,
                   exception: Optional[BaseException] = None) -> Optional[str]:
        """
        Log something that happened to one batch item under WORKER.

        Every entry carries batch_id and url so a single item can be
        followed through the log. ERROR and above return an error code.
        """
        item_data = {"batch_id": batch_id, "url": url}
        if data:
            item_data.update(data)
        if level.value >= LogLevel.ERROR.value:
            return self._report(level, "WORKER", event, item_data, exception)
        self._emit(level, "WORKER", event, item_data)
        return None


# Global logger instance
_logger: Optional[BatchLogger] = None


def get_logger() -> BatchLogger:
    """Get the global logger instance"""
    global _logger
    if _logger is None:
        _logger = BatchLogger()
    return _logger
