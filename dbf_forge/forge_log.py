"""
Forensic session log.

One `ForgeLog` per session. Categories map onto stdlib logging levels:

    TRACE   5   per-cell conversion lines, written to the session file only
    SYS     21  engine status
    USER    25  user-initiated actions
    WARN    30  recoverable problems, lossy conversions
    ERROR   40  failed files and tickets

Every handler serializes its own writes (logging.Handler holds a lock around
emit), so workers and the caller can log concurrently without interleaving.
"""

from __future__ import annotations

import logging
import platform
import sys
import threading
from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Optional

from dbf_forge import __version__
from dbf_forge.events import EventChannel, LogEvent
from dbf_forge.settings import LOG_RING_SIZE

TRACE = 5
SYS = 21
USER = 25

CATEGORY_NAMES = {
    TRACE: "TRACE",
    SYS: "SYS",
    USER: "USER",
    logging.WARNING: "WARN",
    logging.ERROR: "ERROR",
}

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(SYS, "SYS")
logging.addLevelName(USER, "USER")

_session_counter = 0
_counter_lock = threading.Lock()


def category_of(levelno: int) -> str:
    return CATEGORY_NAMES.get(levelno, logging.getLevelName(levelno))


class ForgeFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__(datefmt="%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        stamp = f"{self.formatTime(record, self.datefmt)}.{int(record.msecs):03d}"
        category = category_of(record.levelno)
        context = getattr(record, "forge_context", None)
        if context:
            return f"[{stamp}] [{category}] [{context}] {record.getMessage()}"
        return f"[{stamp}] [{category:<5}] {record.getMessage()}"


class EventBridgeHandler(logging.Handler):
    """Republishes surfaced records on the event channel and keeps a bounded ring of recent lines."""

    def __init__(self, channel: Optional[EventChannel], ring_size: int = LOG_RING_SIZE) -> None:
        super().__init__(level=SYS)
        self.channel = channel
        self.recent: deque[str] = deque(maxlen=ring_size)
        self.setFormatter(ForgeFormatter())

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = self.format(record)
            self.recent.append(line)
            if self.channel is not None:
                self.channel.publish(LogEvent(level=category_of(record.levelno), message=record.getMessage()))
        except Exception:
            self.handleError(record)


class ForgeLog:
    def __init__(
        self,
        log_dir: Optional[Path] = None,
        channel: Optional[EventChannel] = None,
        console_level: Optional[int] = None,
        session_name: Optional[str] = None,
        ring_size: int = LOG_RING_SIZE,
    ) -> None:
        global _session_counter
        with _counter_lock:
            _session_counter += 1
            serial = _session_counter

        # not registered with logging's manager: the session's handlers go away with it
        self.logger = logging.Logger(f"dbf_forge.session.{serial}", level=TRACE)
        self.logger.propagate = False
        self.path: Optional[Path] = None
        self.file_error: Optional[str] = None

        self.bridge = EventBridgeHandler(channel, ring_size=ring_size)
        self.logger.addHandler(self.bridge)

        if log_dir is not None:
            name = session_name or f"Forge_Session_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
            self._attach_file(Path(log_dir) / name)

        if console_level is not None or (log_dir is not None and self.path is None):
            console = logging.StreamHandler(sys.stderr)
            console.setLevel(console_level if console_level is not None else SYS)
            console.setFormatter(ForgeFormatter())
            self.logger.addHandler(console)
            if self.file_error:
                self.warn(f"Session log unavailable, logging to console only: {self.file_error}")

    def _attach_file(self, path: Path) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(path, encoding="utf-8")
        except OSError as exc:
            self.file_error = str(exc)
            return
        handler.setLevel(TRACE)
        handler.setFormatter(ForgeFormatter())
        handler.acquire()
        try:
            handler.stream.write(
                "=== DBF FORGE SESSION LOG ===\n"
                f"Started: {datetime.now().isoformat(timespec='seconds')}\n"
                f"Version: {__version__}\n"
                f"Platform: {platform.platform()} / Python {platform.python_version()}\n"
                "==============================\n"
            )
            handler.flush()
        finally:
            handler.release()
        self.logger.addHandler(handler)
        self.path = path

    # ── categories ────────────────────────────────────────────────────────────

    def user(self, message: str) -> None:
        self.logger.log(USER, message)

    def system(self, message: str) -> None:
        self.logger.log(SYS, message)

    def warn(self, message: str) -> None:
        self.logger.warning(message)

    def error(self, message: str) -> None:
        self.logger.error(message)

    def trace(self, context: str, message: str) -> None:
        self.logger.log(TRACE, message, extra={"forge_context": context})

    @property
    def recent_lines(self) -> list[str]:
        return list(self.bridge.recent)

    def close(self) -> None:
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()

    def __enter__(self) -> "ForgeLog":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class SilentLog(ForgeLog):
    """Drops every line. Shared, so closing it does nothing."""

    def __init__(self) -> None:
        super().__init__(ring_size=0)
        self.logger.setLevel(logging.CRITICAL + 1)

    def close(self) -> None:
        pass


_SILENT_LOG = SilentLog()


def null_log() -> ForgeLog:
    """The shared log for library calls made without a session."""
    return _SILENT_LOG
