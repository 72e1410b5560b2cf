"""
Shared API
==========

Dependencies, middleware and exception handlers wired into the FastAPI application.
"""

from helpdesk.shared.api.dependencies import (
    get_actor_ref,
    get_engine_config,
    get_notification_sink,
)
from helpdesk.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler,
    status_code_for,
)

__all__ = [
    "get_actor_ref",
    "get_engine_config",
    "get_notification_sink",
    "CorrelationIDMiddleware",
    "LoggingMiddleware",
    "application_exception_handler",
    "global_exception_handler",
    "status_code_for",
]
