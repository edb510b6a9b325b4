import datetime
import logging
from logging.handlers import TimedRotatingFileHandler
from typing import Optional
from zoneinfo import ZoneInfo

from .settings import Settings, settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"

logger = logging.getLogger("relay")


class RelayFormatter(logging.Formatter):
    """
    Renders timestamps in LOG_TIMEZONE, or in the host's local time when
    it is unset. An unknown zone name fails at startup.
    """

    def __init__(self, fmt: str = LOG_FORMAT, timezone_name: Optional[str] = None) -> None:
        super().__init__(fmt)
        self._tzinfo = ZoneInfo(timezone_name) if timezone_name else None

    def formatTime(self, record: logging.LogRecord, datefmt: Optional[str] = None) -> str:
        dt = datetime.datetime.fromtimestamp(record.created, tz=self._tzinfo)
        if self._tzinfo is None:
            dt = dt.astimezone()
        return dt.isoformat(timespec="milliseconds")


def _is_relay_record(record: logging.LogRecord) -> bool:
    return record.name == "relay" or record.name.startswith("relay.")


def build_file_handler(config: Settings) -> TimedRotatingFileHandler:
    """
    Relay records only, in `{LOG_DIR}/{LOG_FILE_PREFIX}.log`, rotated at
    midnight with LOG_BACKUP_COUNT days kept.
    """
    config.log_dir.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        config.log_dir / f"{config.log_file_prefix}.log",
        when="midnight",
        backupCount=config.log_backup_count,
        encoding="utf-8",
        delay=True,
    )
    handler.setFormatter(RelayFormatter(timezone_name=config.log_timezone))
    handler.addFilter(_is_relay_record)
    return handler


def setup_logging(config: Settings = settings) -> None:
    """
    Attach the rotating file handler to the relay logger and a console
    handler to the root logger, which uvicorn's loggers share. Safe to call
    more than once.
    """
    if any(isinstance(h, TimedRotatingFileHandler) for h in logger.handlers):
        return

    level = config.log_level.upper()
    logger.setLevel(level)
    logger.addHandler(build_file_handler(config))

    root = logging.getLogger()
    root.setLevel(level)
    if not any(type(h) is logging.StreamHandler for h in root.handlers):
        console = logging.StreamHandler()
        console.setFormatter(RelayFormatter(timezone_name=config.log_timezone))
        root.addHandler(console)


__all__ = ["RelayFormatter", "build_file_handler", "logger", "setup_logging"]
