from datetime import datetime
from pytz import timezone
import logging.config
import logging
import os
from logging import Logger

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# loggers of the transport stack, only shown in debug mode
_NOISY_LOGGERS = ("httpx", "httpcore")

# checked in order, first match wins
_LEVEL_PREFIXES = (
    (logging.ERROR, "⛔ "),
    (logging.WARNING, "⚠️ "),
)

_ANSI_RESET = "\033[0m"
_COLOR_MAP: dict[str, str] = {
    "cyan": "\033[36m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "red": "\033[31m",
    "magenta": "\033[35m",
    "blue": "\033[34m",
    "white": "\033[37m",
}


def get_log_level() -> int:
    """Level named by LOG_LEVEL (debug, info, warning, error, critical). Unknown names give INFO."""
    level = logging.getLevelName(os.getenv("LOG_LEVEL", "info").strip().upper())
    return level if isinstance(level, int) else logging.INFO


def is_debug_mode() -> bool:
    return get_log_level() <= logging.DEBUG


class LevelPrefixFormatter(logging.Formatter):
    """Formats timestamps in a fixed timezone and marks warnings and errors with an emoji."""

    def __init__(self, tz_name, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.tz = timezone(tz_name)

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, self.tz)
        return dt.strftime(datefmt) if datefmt else dt.isoformat()

    def format(self, record):
        prefix = next((mark for level, mark in _LEVEL_PREFIXES if record.levelno >= level), "")
        # formats a copy, the record is shared by all handlers
        marked = logging.makeLogRecord({**record.__dict__, "msg": prefix + record.getMessage(), "args": ()})
        return super().format(marked)


class ColoredFormatter(LevelPrefixFormatter):
    """Console formatter coloring records that carry a ``color`` attribute.

    The attribute is set by the ``color=<name>`` keyword of :class:`ColorLogger`.
    Unknown color names are ignored.
    """

    def format(self, record) -> str:
        line = super().format(record)
        ansi = _COLOR_MAP.get(getattr(record, "color", None) or "")
        return f"{ansi}{line}{_ANSI_RESET}" if ansi else line


class ColorLogger:
    """Wrapper around :class:`logging.Logger` whose log methods accept ``color=``.

    Usage::

        logger.info("database %s created", "orders", color="green")
        logger.warning("revision conflict on %s", doc_id, color="yellow")

    Only the console handler shows colors; the log file stays plain text.
    Everything else (setLevel, handlers, name, ...) is delegated to the wrapped logger.
    """

    def __init__(self, logger: Logger):
        self._logger = logger

    def _log(self, level: int, msg, args: tuple, color: str | None, kwargs: dict) -> None:
        if color is not None:
            kwargs["extra"] = {**(kwargs.get("extra") or {}), "color": color}
        kwargs.setdefault("stacklevel", 3)
        self._logger.log(level, msg, *args, **kwargs)

    def debug(self, msg, *args, color: str | None = None, **kwargs):
        self._log(logging.DEBUG, msg, args, color, kwargs)

    def info(self, msg, *args, color: str | None = None, **kwargs):
        self._log(logging.INFO, msg, args, color, kwargs)

    def warning(self, msg, *args, color: str | None = None, **kwargs):
        self._log(logging.WARNING, msg, args, color, kwargs)

    def error(self, msg, *args, color: str | None = None, **kwargs):
        self._log(logging.ERROR, msg, args, color, kwargs)

    def critical(self, msg, *args, color: str | None = None, **kwargs):
        self._log(logging.CRITICAL, msg, args, color, kwargs)

    def exception(self, msg, *args, color: str | None = None, **kwargs):
        kwargs.setdefault("exc_info", True)
        self._log(logging.ERROR, msg, args, color, kwargs)

    def log(self, level: int, msg, *args, color: str | None = None, **kwargs):
        self._log(level, msg, args, color, kwargs)

    def __getattr__(self, name):
        return getattr(self._logger, name)


def _build_formatters(tz_name: str) -> dict:
    return {
        "standard": {"()": LevelPrefixFormatter, "format": LOG_FORMAT, "datefmt": DATE_FORMAT, "tz_name": tz_name},
        "colored": {"()": ColoredFormatter, "format": LOG_FORMAT, "datefmt": DATE_FORMAT, "tz_name": tz_name},
    }


def _build_handlers(level: int, root_dir: str | None) -> dict:
    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "colored",
            "level": level,
            "stream": "ext://sys.stdout",
        },
    }
    if root_dir:
        log_dir = os.path.join(root_dir, "logs")
        os.makedirs(log_dir, exist_ok=True)
        handlers["file"] = {
            "class": "logging.FileHandler",
            "formatter": "standard",
            "level": level,
            "filename": os.path.join(log_dir, "app.log"),
            "encoding": "utf-8",
        }
    return handlers


def setup_logging(name: str = "couchmap") -> ColorLogger:
    """Configure the root logger and return the couchmap logger.

    Reads LOG_LEVEL, TIMEZONE (default Europe/Berlin) and ROOT_DIR. Records
    always go to stdout; with ROOT_DIR set they are also written to
    $ROOT_DIR/logs/app.log.
    """
    level = get_log_level()
    handlers = _build_handlers(level, os.getenv("ROOT_DIR"))
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": _build_formatters(os.getenv("TIMEZONE", "Europe/Berlin")),
        "handlers": handlers,
        "root": {"handlers": list(handlers), "level": level},
    })

    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.DEBUG if is_debug_mode() else logging.WARNING)

    return ColorLogger(logging.getLogger(name))
