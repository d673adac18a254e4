import logging
import sys
from contextvars import ContextVar
from typing import Optional

from pythonjsonlogger import jsonlogger
from app.core.config import Settings

# set per request by RequestIdMiddleware; "-" outside a request (jobs, startup)
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get() or "-"
        return True


def configure_logging(settings: Settings) -> None:
    """
    JSON lines on stdout for the API process and the registry refresh job.
    Every record carries the current request id.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)

    # clear handlers if reloaded
    root.handlers = []

    handler = logging.StreamHandler(sys.stdout)
    fmt = jsonlogger.JsonFormatter(
        "%(asctime)s %(levelname)s %(name)s %(request_id)s %(message)s",
        rename_fields={"levelname": "level", "name": "logger"},
        static_fields={"app": settings.app_name, "environment": settings.environment},
    )
    handler.setFormatter(fmt)
    handler.addFilter(RequestIdFilter())
    root.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(level)
    logging.getLogger("uvicorn.error").setLevel(level)
    # requests/urllib3 are chatty at DEBUG during registry pulls
    logging.getLogger("urllib3").setLevel(max(level, logging.INFO))
    # SQL echo stays opt-in
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
