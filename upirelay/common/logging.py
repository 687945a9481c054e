"""Structured JSON logging with request/order context fields."""

import logging
import sys
from contextvars import ContextVar

from pythonjsonlogger.json import JsonFormatter

from upirelay.common.config import RelaySettings


trace_id_ctx: ContextVar[str] = ContextVar("trace_id", default="")
order_id_ctx: ContextVar[str] = ContextVar("order_id", default="")


class ContextFilter(logging.Filter):
    """Inject service and correlation identifiers into every log record."""

    def __init__(self, service_name: str) -> None:
        super().__init__()
        self.service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = self.service_name
        record.trace_id = trace_id_ctx.get()
        record.order_id = order_id_ctx.get()
        return True


def configure_logging(settings: RelaySettings) -> None:
    """Configure root logger once per process."""

    handler = logging.StreamHandler(sys.stdout)
    context_filter = ContextFilter(settings.service_name)
    handler.addFilter(context_filter)
    formatter = JsonFormatter(
        "%(asctime)s %(levelname)s %(service_name)s %(trace_id)s %(order_id)s %(message)s"
    )
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(settings.log_level.upper())
    root.filters = [context_filter]


logger = logging.getLogger("upirelay")
