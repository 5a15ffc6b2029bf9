"""JSON logs on stdout, tagged with the request's trace id, principal and entry id."""

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar

from pythonjsonlogger.json import JsonFormatter

from coinledger.common.config import settings

trace_id_ctx: ContextVar[str] = ContextVar("trace_id", default="")
entry_id_ctx: ContextVar[str] = ContextVar("entry_id", default="")
principal_ctx: ContextVar[str] = ContextVar("principal", default="")

# Record attribute -> context variable.
CONTEXT_FIELDS = {
    "trace_id": trace_id_ctx,
    "entry_id": entry_id_ctx,
    "principal": principal_ctx,
}


class ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = settings.service_name
        for attr, var in CONTEXT_FIELDS.items():
            setattr(record, attr, var.get())
        return True


def configure_logging(level: str | None = None) -> None:
    """Replace root handlers with a single JSON stdout handler."""

    context_filter = ContextFilter()
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(context_filter)
    handler.setFormatter(
        JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(service_name)s %(trace_id)s %(principal)s %(entry_id)s %(message)s",
            rename_fields={"levelname": "level", "asctime": "ts"},
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel((level or settings.log_level).upper())
    # uvicorn.access duplicates http_requests_total.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


@contextmanager
def entry_log_context(entry_id):
    """Tag log lines with `entry_id` for the duration of the block only."""

    token = entry_id_ctx.set(str(entry_id))
    try:
        yield
    finally:
        entry_id_ctx.reset(token)


logger = logging.getLogger("coinledger")
