"""Logging setup: JSON lines in production, plain text during development."""

import json
import logging
from datetime import datetime, timezone

_EXTRA_FIELDS = ("invoice_id", "owner_id", "template_id", "backend", "error_code")


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_FIELDS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False)


def setup_logging(level: str = "INFO", fmt: str = "text") -> None:
    """Attach a single stream handler to the root logger."""
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_forge_handler", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler()
    handler._forge_handler = True
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
