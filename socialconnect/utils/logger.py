# socialconnect/utils/logger.py

import json
import logging
import logging.handlers
import os
from datetime import datetime

from .helpers import redact_tokens


class DynamicDailyFileHandler(logging.handlers.WatchedFileHandler):
    """
    Writes to <base>/<YYYY>/<MM>/socialconnect-<YYYY-MM-DD>.log and
    reopens the stream when the day changes.
    """
    def __init__(self, base_log_dir, encoding="utf-8"):
        self.base_log_dir = base_log_dir
        self.current_day = self._today()
        super().__init__(self._path_for(self.current_day), encoding=encoding)

    @staticmethod
    def _today():
        return datetime.now().strftime("%Y-%m-%d")

    def _path_for(self, day):
        year, month, _ = day.split("-")
        folder = os.path.join(self.base_log_dir, year, month)
        os.makedirs(folder, exist_ok=True)
        return os.path.join(folder, f"socialconnect-{day}.log")

    def emit(self, record):
        day = self._today()
        if day != self.current_day:
            self.acquire()
            try:
                if self.stream and not self.stream.closed:
                    self.stream.close()
                self.current_day = day
                self.baseFilename = self._path_for(day)
                self.stream = self._open()
            except OSError:
                self.handleError(record)
                return
            finally:
                self.release()
        super().emit(record)


class TokenRedactingFilter(logging.Filter):
    """Platform credentials never reach a handler, whatever the caller formatted."""

    def filter(self, record):
        record.msg = redact_tokens(record.getMessage())
        record.args = None
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record):
        entry = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def get_base_log_dir():
    """APP_LOG_DIR, else <project>/storage/logs. "-" means console only."""
    base_log_dir = os.environ.get("APP_LOG_DIR")
    if base_log_dir is None:
        base_log_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), "../../storage/logs"))
    return base_log_dir


def _formatter():
    if os.environ.get("LOG_FORMAT", "text").lower() == "json":
        return JsonFormatter()
    return logging.Formatter("%(asctime)s %(levelname)s: %(message)s", datefmt="%Y-%m-%d %H:%M:%S")


Log = logging.getLogger("socialconnect")
Log.setLevel(os.environ.get("LOG_LEVEL", "DEBUG").upper())

if not Log.handlers:
    formatter = _formatter()
    redactor = TokenRedactingFilter()

    handlers = [logging.StreamHandler()]
    base_dir = get_base_log_dir()
    if base_dir != "-":
        handlers.append(DynamicDailyFileHandler(base_dir))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(redactor)
        Log.addHandler(handler)

__all__ = ["Log"]
