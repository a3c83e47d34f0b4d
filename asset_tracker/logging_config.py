import logging
import re

from pythonjsonlogger import jsonlogger

from .config import Settings


class SecretRedactingFilter(logging.Filter):
    _token_param_re = re.compile(r"(token=)[A-Za-z0-9_\-]+", re.IGNORECASE)
    _opaque_re = re.compile(r"\b[A-Za-z0-9_\-]{40,}\b")

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            msg = record.getMessage()
        except Exception:
            return True
        msg = self._token_param_re.sub(r"\1[REDACTED]", msg)
        msg = self._opaque_re.sub("[REDACTED_SECRET]", msg)
        record.msg = msg
        record.args = ()
        return True


def configure_logging(settings: Settings) -> None:
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    handler = logging.StreamHandler()

    if settings.LOG_JSON:
        formatter = jsonlogger.JsonFormatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s"
        )
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s"
        )

    handler.setFormatter(formatter)
    handler.addFilter(SecretRedactingFilter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]

    # Reduce noisy loggers
    logging.getLogger("uvicorn.access").setLevel(logging.INFO)
