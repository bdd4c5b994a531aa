"""
Centralized logging configuration for the image feed.

Uses rotating file handler with logs stored in logs/ directory.
Includes colored console output for debug mode.
"""
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


_VERBOSE: bool = False
# Base directory for logs. Initialised to the project root and overridable
# through CATFINDER_LOG_DIR or the log_dir argument of setup_logging().
_BASE_DIR: Path = Path(__file__).parent.parent.parent
_LOG_DIR: Optional[Path] = None
_INSTALLED_HANDLERS: list = []


class ColoredFormatter(logging.Formatter):
    """Formatter that adds colors to console output."""

    # ANSI color codes
    COLORS = {
        'DEBUG': '\033[36m',       # Cyan
        'INFO': '\033[32m',        # Green
        'WARNING': '\033[33m',     # Yellow
        'ERROR': '\033[31m',       # Red
        'CRITICAL': '\033[35m',    # Magenta
    }
    FALLBACK_COLOR = '\033[38;5;208m'
    OFFLINE_COLOR = '\033[38;5;135m'
    RESET = '\033[0m'
    BOLD = '\033[1m'

    def format(self, record):
        original_levelname = record.levelname
        original_msg = record.msg

        msg_text = str(record.msg)
        is_fallback = '[FALLBACK]' in msg_text
        is_offline = '[OFFLINE]' in msg_text

        color = None
        if is_fallback:
            # Fallback paths stand out regardless of level.
            color = self.FALLBACK_COLOR
        elif is_offline:
            color = self.OFFLINE_COLOR
        elif record.levelname in self.COLORS:
            color = self.COLORS[record.levelname]

        if color is not None:
            record.levelname = f"{self.BOLD}{color}{record.levelname}{self.RESET}"
            message = super().format(record)
            colored_message = f"{color}{message}{self.RESET}"
            record.levelname = original_levelname
            record.msg = original_msg
            return colored_message

        record.levelname = original_levelname
        record.msg = original_msg
        return super().format(record)


class SuppressingStreamHandler(logging.StreamHandler):
    """Stream handler that suppresses consecutive duplicate sources.

    Repeated DEBUG/INFO lines from the same logger/level are collapsed into a
    single summary line like "[N Suppressed: CHECK LOG]" while file logs
    remain unaffected. Prefetch sweeps produce long runs of these.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._last_name: str | None = None
        self._last_level: int | None = None
        self._suppress_count: int = 0
        self._last_record: logging.LogRecord | None = None

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._emit_with_suppression(record)
        except Exception:
            self.handleError(record)

    def _emit_with_suppression(self, record: logging.LogRecord) -> None:
        if record.levelno >= logging.WARNING:
            self._flush_summary()
            self._emit_record(record)
            self._reset_tracking(None)
            return

        name = record.name
        level = record.levelno

        if self._last_name is None:
            self._emit_record(record)
            self._reset_tracking(record)
            return

        if name == self._last_name and level == self._last_level:
            self._suppress_count += 1
            if self._last_record is None:
                self._last_record = record
            return

        self._flush_summary()
        self._emit_record(record)
        self._reset_tracking(record)

    def _reset_tracking(self, record: Optional[logging.LogRecord]) -> None:
        self._last_name = record.name if record is not None else None
        self._last_level = record.levelno if record is not None else None
        self._suppress_count = 0
        self._last_record = record

    def _emit_record(self, record: logging.LogRecord) -> None:
        """Emit a single record with a Unicode-safe console fallback.

        When the console encoding cannot represent some characters we degrade
        the console line using replacement characters instead of raising a
        logging error; file logs keep the full record.
        """
        try:
            msg = self.format(record)
            stream = self.stream
            if stream is None:
                return
            text = msg + self.terminator
            try:
                stream.write(text)
            except UnicodeEncodeError:
                encoding = getattr(stream, "encoding", None) or "ascii"
                stream.write(text.encode(encoding, errors="replace").decode(encoding, errors="replace"))
            self.flush()
        except Exception:
            self.handleError(record)

    def _flush_summary(self) -> None:
        if self._suppress_count <= 0 or self._last_record is None:
            self._suppress_count = 0
            self._last_record = None
            return

        last = self._last_record
        msg = f"[{self._suppress_count} Suppressed: CHECK LOG]"
        summary = logging.LogRecord(
            last.name,
            last.levelno,
            last.pathname,
            last.lineno,
            msg,
            args=None,
            exc_info=None,
        )
        summary.created = last.created
        summary.msecs = last.msecs
        summary.relativeCreated = last.relativeCreated
        summary.thread = last.thread
        summary.threadName = last.threadName
        summary.process = last.process
        summary.processName = last.processName
        self._emit_record(summary)

        self._suppress_count = 0
        self._last_record = None

    def close(self) -> None:
        try:
            self._flush_summary()
        finally:
            super().close()


def get_log_dir() -> Path:
    """Return the directory used for log files."""
    if _LOG_DIR is not None:
        return _LOG_DIR
    env_dir = os.getenv("CATFINDER_LOG_DIR")
    if env_dir:
        return Path(env_dir)
    return _BASE_DIR / "logs"


def setup_logging(debug: bool = False, verbose: bool = False, log_dir: Optional[Path] = None) -> None:
    """
    Configure application logging with file rotation.

    Args:
        debug: If True, set log level to DEBUG and enable console output.
        verbose: When True, enables high-volume debug logs (per-key cache
            hits, raw discovery payloads) and lets third-party HTTP chatter
            through. Verbose mode also implies debug-level logging.
        log_dir: Optional override for the log directory.
    """
    global _VERBOSE, _LOG_DIR

    debug_enabled = debug or verbose
    if log_dir is not None:
        _LOG_DIR = Path(log_dir)

    log_dir_path = get_log_dir()
    log_dir_path.mkdir(parents=True, exist_ok=True)
    log_file = log_dir_path / "catfinder.log"

    level = logging.DEBUG if debug_enabled else logging.INFO

    formatter = logging.Formatter(
        '%(asctime)s - %(name)-30s - %(levelname)-8s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # File handler with rotation (1MB max, keep 5 backups)
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=1 * 1024 * 1024,
        backupCount=5,
        encoding='utf-8'
    )
    file_handler.setFormatter(formatter)
    file_handler.setLevel(level)

    console_handler = SuppressingStreamHandler(sys.stdout)
    if debug_enabled and sys.stdout.isatty():
        console_handler.setFormatter(ColoredFormatter(
            '%(asctime)s - %(name)-30s - %(levelname)-8s - %(message)s',
            datefmt='%H:%M:%S',
        ))
    else:
        console_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)-30s - %(levelname)-8s - %(message)s',
            datefmt='%H:%M:%S',
        ))
    console_handler.setLevel(level)

    root_logger = logging.getLogger()
    # Re-running setup replaces our handlers instead of stacking them.
    for handler in _INSTALLED_HANDLERS:
        root_logger.removeHandler(handler)
        handler.close()
    _INSTALLED_HANDLERS.clear()

    root_logger.setLevel(level)
    root_logger.addHandler(file_handler)
    _INSTALLED_HANDLERS.append(file_handler)

    if debug_enabled:
        root_logger.addHandler(console_handler)
        _INSTALLED_HANDLERS.append(console_handler)

    # HTTP connection pools and asyncio internals only show their DEBUG
    # chatter when verbose logging is requested.
    noisy_level = logging.DEBUG if verbose else logging.INFO
    for name in ("httpx", "httpcore", "asyncio", "PIL"):
        logging.getLogger(name).setLevel(noisy_level)

    _VERBOSE = bool(verbose)

    root_logger.info("=" * 60)
    root_logger.info(
        "CatFinder logging initialized (debug=%s, verbose=%s)",
        debug_enabled,
        _VERBOSE,
    )
    root_logger.info("=" * 60)


_SHORT_NAME_OVERRIDES = {
    "engine.image_pipeline": "engine.pipeline",
    "engine.image_queue": "engine.queue",
    "engine.deck_engine": "engine.deck",
    "utils.image_prefetcher": "utils.prefetch",
}


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with optional short-name overrides for noisy modules."""
    actual = _SHORT_NAME_OVERRIDES.get(name, name)
    return logging.getLogger(actual)


def is_verbose_logging() -> bool:
    """Return True when verbose debug logging is enabled globally."""

    return _VERBOSE
