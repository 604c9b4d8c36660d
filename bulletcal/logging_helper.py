"""
Logging helper module for terminal-first logging.
All output goes to stdout with formatted prefixes, and also to a log file.

The log directory defaults to ~/.bulletcal/logs and can be moved with the
BULLETCAL_LOG_DIR environment variable. Set BULLETCAL_QUIET to keep stdout
clean (the log file is still written).
"""

import os
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional

_log_file = None
_log_file_path: Optional[Path] = None
_lock = threading.Lock()


def _resolve_log_dir() -> Path:
    configured = os.environ.get("BULLETCAL_LOG_DIR")
    if configured:
        return Path(configured).expanduser()
    return Path.home() / ".bulletcal" / "logs"


def _open_log_file():
    """Open the log file on first use."""
    global _log_file, _log_file_path
    if _log_file is None:
        log_dir = _resolve_log_dir()
        log_dir.mkdir(parents=True, exist_ok=True)
        _log_file_path = log_dir / f"bulletcal_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
        _log_file = open(_log_file_path, 'a', encoding='utf-8')
    return _log_file


def _quiet() -> bool:
    return os.environ.get("BULLETCAL_QUIET", "").lower() in ("1", "true", "yes")


def _log(message: str):
    """Write message to both stdout and log file."""
    with _lock:
        if not _quiet():
            print(message)
        log_file = _open_log_file()
        log_file.write(message + '\n')
        log_file.flush()


def reset_log_file():
    """Close the current log file so the next write opens a fresh one."""
    global _log_file, _log_file_path
    with _lock:
        if _log_file is not None:
            _log_file.close()
        _log_file = None
        _log_file_path = None


class Log:
    """Simple logging class that outputs to stdout and log file with formatted prefixes."""

    @staticmethod
    def section(title: str):
        """Print a section header: blank line + '===== TITLE ====='"""
        _log("")
        _log(f"===== {title} =====")

    @staticmethod
    def info(message: str):
        """Print an info message: '[INFO] message'"""
        _log(f"[INFO] {message}")

    @staticmethod
    def warn(message: str):
        """Print a warning message: '[WARN] message'"""
        _log(f"[WARN] {message}")

    @staticmethod
    def error(message: str):
        """Print an error message: '[ERROR] message'"""
        _log(f"[ERROR] {message}")

    @staticmethod
    def kv(pairs: dict):
        """
        Print key-value pairs: '[KV] key=value | key2=value2'

        Args:
            pairs: Dictionary of key-value pairs to print
        """
        kv_string = " | ".join([f"{k}={v}" for k, v in pairs.items()])
        _log(f"[KV] {kv_string}")

    @staticmethod
    def get_log_path() -> str:
        """Get the path to the current log file."""
        with _lock:
            _open_log_file()
            return str(_log_file_path)
