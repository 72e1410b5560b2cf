"""
SLA Infrastructure Layer
=========================

External service integrations for SLA tracking:
- EngineConfigManager: YAML engine configuration with hot-reload
- SlackNotificationSink / LoggingNotificationSink: notification delivery
- EngineScheduler / EngineJobs: periodic SLA and priority sweeps
"""

from helpdesk.sla.infrastructure.external import (
    CircuitBreaker,
    EngineConfig,
    EngineConfigManager,
    EngineJobs,
    EngineScheduler,
    LoggingNotificationSink,
    SlackNotificationSink,
)

__all__ = [
    "CircuitBreaker",
    "EngineConfig",
    "EngineConfigManager",
    "EngineJobs",
    "EngineScheduler",
    "LoggingNotificationSink",
    "SlackNotificationSink",
]
