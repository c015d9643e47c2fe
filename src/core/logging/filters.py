"""Log filters for context injection and routing."""

import logging

from .context import get_log_context


class LogContextFilter(logging.Filter):
    """
    Copy the current logging context onto each record.

    Lets plain ``logging.Formatter`` format strings reference
    ``%(request_id)s`` and friends without knowing about context variables.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in get_log_context().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


class ComponentFilter(logging.Filter):
    """
    Filter logs to only pass those emitted under a specific component.

    Usage:
        handler = logging.FileHandler("callback.log")
        handler.addFilter(ComponentFilter("callback"))
    """

    def __init__(self, component: str):
        super().__init__()
        self.component = component

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = get_log_context()
        return ctx.get("component") == self.component
