"""Logging setup for queuedesk. Call setup_logging() once at startup."""
import json
import logging
from datetime import datetime, timezone

from queuedesk.config import settings


class JSONFormatter(logging.Formatter):
    """One JSON object per log line."""

    def format(self, record):
        entry = {
            'ts': datetime.now(tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'msg': record.getMessage(),
            'module': record.module,
            'line': record.lineno,
        }
        if record.exc_info and record.exc_info[0]:
            entry['exception'] = self.formatException(record.exc_info)
        for key in ('method', 'path', 'status_code', 'user'):
            if hasattr(record, key):
                entry[key] = getattr(record, key)
        return json.dumps(entry, default=str, ensure_ascii=False)


class HumanFormatter(logging.Formatter):
    def __init__(self):
        super().__init__('%(asctime)s [%(levelname)s] %(name)s: %(message)s', datefmt='%H:%M:%S')


def setup_logging(level=None, json_logs=None):
    if level is None:
        level = settings.log_level
    if json_logs is None:
        json_logs = settings.json_logs

    root = logging.getLogger()
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    root.handlers.clear()

    console = logging.StreamHandler()
    console.setFormatter(JSONFormatter() if json_logs else HumanFormatter())
    root.addHandler(console)
