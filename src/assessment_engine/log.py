"""Logging setup for the assessment engine.

``configure_logging`` installs a stdout handler on the root logger. Records
are rendered as single-line JSON by default so they can be shipped as-is;
pass ``json_format=False`` for plain text during local use.
"""
import json
import logging
import sys

PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# passed through `extra=` by the session and grading modules
CONTEXT_FIELDS = ("questionnaire_id", "attempt_id", "student_id")


class JSONFormatter(logging.Formatter):
    """One JSON object per record, carrying any attempt context ids."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "level": record.levelname,
            "ts": round(record.created, 3),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        payload.update(
            (key, getattr(record, key)) for key in CONTEXT_FIELDS if getattr(record, key, None) is not None
        )
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: int | str = "INFO", json_format: bool = True) -> logging.Logger:
    """Configure root logging to stdout and return the package logger."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if json_format else logging.Formatter(PLAIN_FORMAT))
    logging.basicConfig(level=level, handlers=[handler], force=True)
    return logging.getLogger("assessment_engine")
