"""
Infrastructure Layer
=====================

Low-level technical concerns shared by all contexts: logging setup and
correlation ID propagation.
"""

from helpdesk.shared.infrastructure.logging import (
    correlation_id_var,
    get_logger,
    log_latency,
    setup_logging,
)

__all__ = [
    "correlation_id_var",
    "get_logger",
    "log_latency",
    "setup_logging",
]
