from .context import get_log_context, log_context
from .json_formatter import JSONFormatter
from .redact import redact_env, redact_string
from .setup import configure_logging

__all__ = ["JSONFormatter", "configure_logging", "get_log_context", "log_context", "redact_env", "redact_string"]
