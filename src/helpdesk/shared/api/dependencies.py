"""
Shared API Dependencies
=======================

FastAPI dependencies common to every router: the engine configuration
snapshot, the notification sink and the calling actor.
"""

from typing import Any, Optional

from fastapi import Header, Request

from helpdesk.core.exceptions import ConfigurationException


def get_engine_config(request: Request) -> Any:
    """
    Configuration snapshot for the current request.

    Raises:
        ConfigurationException: If the application started without a config manager
    """
    manager = getattr(request.app.state, "config_manager", None)
    if manager is None:
        raise ConfigurationException("Engine configuration is not available")
    return manager.config


def get_notification_sink(request: Request) -> Optional[Any]:
    """Notification sink registered at startup, if any."""
    return getattr(request.app.state, "notification_sink", None)


def get_actor_ref(
    x_actor_id: Optional[str] = Header(None, alias="X-Actor-Id", description="Id of the acting user")
) -> Optional[str]:
    """Raw actor reference from the ``X-Actor-Id`` header."""
    return x_actor_id
