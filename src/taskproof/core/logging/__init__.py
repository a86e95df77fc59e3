from .context import bind_log_context, get_log_context, log_context, unbind_log_context
from .setup import configure_logging

__all__ = ["configure_logging", "get_log_context", "bind_log_context", "unbind_log_context", "log_context"]
