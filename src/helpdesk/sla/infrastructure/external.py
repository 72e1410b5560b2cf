"""
SLA External Service Integrations
==================================

External services for the SLA & priority engine:
- YAML engine configuration with watchdog hot-reload
- Slack webhook notifications (retries + circuit breaker)
- APScheduler jobs for the SLA and priority sweeps
"""

import asyncio
import threading
import time
from contextlib import AbstractAsyncContextManager
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import httpx
import yaml
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from helpdesk.config import NotificationKind
from helpdesk.core.exceptions import ConfigurationException, NotificationException
from helpdesk.priority.application.services import PriorityBatchResult, PriorityService
from helpdesk.priority.domain.scorer import PriorityScorer
from helpdesk.priority.domain.value_objects import PriorityConfig
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.sla.application.services import SLAMonitorService, SweepResult
from helpdesk.sla.domain.calendar import BusinessCalendar
from helpdesk.sla.domain.clock import DEFAULT_AT_RISK_RATIO, SLAClock
from helpdesk.sla.domain.value_objects import BusinessHoursConfig, SLAMatrix
from helpdesk.tickets.application.services import INotificationSink, NotificationEvent
from helpdesk.tickets.domain.state_machine import TicketStateMachine
from helpdesk.tickets.infrastructure.repositories import (
    SQLAlchemyTicketRepository,
    SQLAlchemyUnitOfWork,
)

logger = get_logger(__name__)


# ========== Engine Configuration ==========

class EngineConfig(BaseModel):
    """
    Complete engine configuration loaded from YAML.

    Immutable: a reload builds a new instance.
    """

    model_config = ConfigDict(frozen=True)

    business_hours: BusinessHoursConfig = Field(default_factory=BusinessHoursConfig)
    use_business_hours: bool = Field(default=True, description="Business-hours SLA arithmetic")
    at_risk_ratio: float = Field(default=DEFAULT_AT_RISK_RATIO, gt=0, lt=1)
    sla_matrix: SLAMatrix = Field(default_factory=SLAMatrix)
    priority: PriorityConfig = Field(default_factory=PriorityConfig)

    def calendar(self) -> BusinessCalendar:
        """Business calendar for this configuration."""
        return BusinessCalendar(self.business_hours)

    def clock(self) -> SLAClock:
        """SLA clock for this configuration."""
        return SLAClock(
            self.calendar(),
            use_business_hours=self.use_business_hours,
            at_risk_ratio=self.at_risk_ratio,
        )

    def state_machine(self) -> TicketStateMachine:
        """Ticket state machine bound to this configuration's clock."""
        return TicketStateMachine(self.clock())

    def scorer(self) -> PriorityScorer:
        """Priority scorer for this configuration."""
        return PriorityScorer(self.priority)


class ConfigFileHandler(FileSystemEventHandler):
    """Watchdog event handler for engine config file changes."""

    def __init__(self, config_manager: "EngineConfigManager", config_path: Path):
        self.config_manager = config_manager
        self.config_path = config_path.resolve()
        super().__init__()

    def _handle(self, path: str) -> None:
        if Path(path).resolve() == self.config_path:
            logger.info("Engine config file changed", extra={"path": path})
            self.config_manager.reload()

    def on_modified(self, event):
        if not event.is_directory:
            self._handle(event.src_path)

    def on_created(self, event):
        if not event.is_directory:
            self._handle(event.src_path)

    def on_moved(self, event):
        # Editors that save via rename
        if not event.is_directory:
            self._handle(event.dest_path)


class EngineConfigManager:
    """
    Thread-safe engine configuration holder with hot-reload support.

    The watchdog thread swaps in a freshly validated ``EngineConfig``;
    readers always see either the old or the new value, never a mix.
    """

    def __init__(self):
        self._config: Optional[EngineConfig] = None
        self._lock = threading.Lock()
        self._path: Optional[Path] = None
        self._observer = None

    def load(self, path: Path) -> EngineConfig:
        """
        Initial configuration load.

        Raises:
            ConfigurationException: If the file exists but is invalid
        """
        self._path = Path(path)
        config = self._load_from_file(self._path)
        with self._lock:
            self._config = config
        logger.info(
            "Engine configuration loaded",
            extra={
                "path": str(self._path),
                "timezone": config.business_hours.timezone,
                "use_business_hours": config.use_business_hours,
            }
        )
        return config

    def _load_from_file(self, path: Path) -> EngineConfig:
        """Load and validate the YAML config file."""
        if not path.exists():
            logger.warning("Engine config file not found, using defaults", extra={"path": str(path)})
            return EngineConfig()

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ConfigurationException(
                    "Engine config must be a mapping",
                    {"path": str(path)}
                )
            return EngineConfig(**data)
        except yaml.YAMLError as e:
            raise ConfigurationException(
                "Engine config is not valid YAML",
                {"path": str(path), "error": str(e)}
            ) from e
        except ValidationError as e:
            raise ConfigurationException(
                "Engine config failed validation",
                {"path": str(path), "errors": e.errors(include_url=False)}
            ) from e

    def reload(self) -> bool:
        """
        Reload configuration from file.

        Returns:
            True if the new configuration was applied; on failure the
            previous configuration stays in effect
        """
        if self._path is None:
            return False

        try:
            new_config = self._load_from_file(self._path)
        except ConfigurationException as e:
            logger.error(
                "Engine config reload rejected, keeping previous configuration",
                extra={"error": e.message, "details": str(e.details)}
            )
            return False

        with self._lock:
            self._config = new_config
        logger.info("Engine configuration reloaded")
        return True

    def start_watching(self) -> None:
        """Start watching the configuration file's directory for changes."""
        if self._path is None:
            raise RuntimeError("Config not loaded. Call load() first.")

        if not self._path.parent.exists():
            logger.info(
                "Config directory doesn't exist, skipping file watch",
                extra={"path": str(self._path)}
            )
            return

        try:
            self._observer = Observer()
            self._observer.schedule(
                ConfigFileHandler(self, self._path),
                str(self._path.parent),
                recursive=False
            )
            self._observer.start()
            logger.info("Started watching engine config", extra={"path": str(self._path)})
        except OSError as e:
            logger.warning("File watching not available, using static config", extra={"error": str(e)})
            self._observer = None

    def stop_watching(self) -> None:
        """Stop watching configuration file (safe to call even if not watching)."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    @property
    def config(self) -> EngineConfig:
        """Get current configuration."""
        with self._lock:
            if self._config is None:
                raise RuntimeError("Engine configuration not loaded")
            return self._config


# ========== Notifications ==========

class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker for an unreliable downstream.

    States:
    - CLOSED: Normal operation, requests pass through
    - OPEN: After N consecutive failures, reject requests for M seconds
    - HALF_OPEN: After the timeout, let a trial request through
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: Optional[float] = None

    @property
    def state(self) -> str:
        """Get current circuit state."""
        if self._state == CircuitState.OPEN and self._opened_at is not None:
            if self._clock() - self._opened_at >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        """Check if request should be allowed."""
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        """Record successful request."""
        self._failure_count = 0
        self._opened_at = None
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        """Record failed request."""
        self._failure_count += 1
        if self._state == CircuitState.HALF_OPEN or self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            self._opened_at = self._clock()
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )


_HEADERS = {
    NotificationKind.BREACH: ":rotating_light: SLA Breached",
    NotificationKind.AT_RISK: ":warning: SLA At Risk",
    NotificationKind.PRIORITY_CHANGED: ":arrow_up_down: Priority Changed",
    NotificationKind.STATUS_CHANGED: ":arrows_counterclockwise: Status Changed",
    NotificationKind.SLA_STARTED: ":stopwatch: SLA Clock Started",
    NotificationKind.ESCALATION: ":arrow_double_up: Ticket Escalated",
}


class SlackNotificationSink(INotificationSink):
    """
    Slack webhook notification sink.

    Sends Block Kit messages with:
    - Exponential backoff retry on non-200 responses and transport errors
    - Circuit breaker to stop hammering a failing webhook
    """

    def __init__(
        self,
        webhook_url: Optional[str],
        channel: str = "#helpdesk-sla",
        timeout_seconds: float = 5.0,
        max_retries: int = 3,
        backoff_base: float = 1.0,
        circuit_breaker: Optional[CircuitBreaker] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self.webhook_url = webhook_url
        self.channel = channel
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self._circuit_breaker = circuit_breaker or CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        self._http_client = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout_seconds)
        return self._http_client

    def build_message(self, event: NotificationEvent) -> Dict[str, Any]:
        """Build a Slack Block Kit message for an event."""
        details = event.details
        fields = [{"type": "mrkdwn", "text": f"*Ticket:*\n{event.ticket_id}"}]
        if details.get("title"):
            fields.append({"type": "mrkdwn", "text": f"*Title:*\n{details['title']}"})

        if event.kind in (NotificationKind.BREACH, NotificationKind.AT_RISK):
            fields.append({"type": "mrkdwn", "text": f"*Priority:*\n{details.get('priority', '-')}"})
            fields.append({"type": "mrkdwn", "text": f"*Remaining:*\n{details.get('remaining_hours', 0)}h"})
            fields.append({"type": "mrkdwn", "text": f"*Deadline:*\n{details.get('deadline') or '-'}"})
        elif event.kind == NotificationKind.PRIORITY_CHANGED:
            fields.append({
                "type": "mrkdwn",
                "text": f"*Priority:*\n{details.get('previous_priority')} -> {details.get('priority')}"
            })
            fields.append({"type": "mrkdwn", "text": f"*Score:*\n{details.get('score')}"})
        elif event.kind == NotificationKind.STATUS_CHANGED:
            fields.append({
                "type": "mrkdwn",
                "text": f"*Status:*\n{details.get('from')} -> {details.get('to')}"
            })
        elif event.kind == NotificationKind.SLA_STARTED:
            fields.append({"type": "mrkdwn", "text": f"*Deadline:*\n{details.get('deadline')}"})
        elif event.kind == NotificationKind.ESCALATION:
            fields.append({"type": "mrkdwn", "text": f"*Level:*\n{details.get('level')}"})
            fields.append({"type": "mrkdwn", "text": f"*Reason:*\n{details.get('reason')}"})

        return {
            "channel": self.channel,
            "text": f"{_HEADERS[event.kind]}: {event.ticket_id}",
            "blocks": [
                {
                    "type": "header",
                    "text": {"type": "plain_text", "text": _HEADERS[event.kind], "emoji": True}
                },
                {"type": "section", "fields": fields},
                {
                    "type": "context",
                    "elements": [
                        {"type": "mrkdwn", "text": f"Event time: {event.occurred_at.isoformat()}"}
                    ]
                },
            ],
        }

    async def notify(self, event: NotificationEvent) -> None:
        """
        Post an event to Slack.

        Raises:
            NotificationException: If every attempt failed
        """
        if not self.webhook_url:
            logger.debug("Slack webhook URL not configured, skipping notification")
            return

        if not self._circuit_breaker.allow_request():
            logger.warning(
                "Circuit breaker open, skipping Slack notification",
                extra={"ticket_id": event.ticket_id, "kind": event.kind.value}
            )
            return

        message = self.build_message(event)
        last_error = None

        for attempt in range(self.max_retries):
            try:
                client = await self._get_client()
                response = await client.post(self.webhook_url, json=message)
                if response.status_code == 200:
                    self._circuit_breaker.record_success()
                    logger.info(
                        "Slack notification sent",
                        extra={"ticket_id": event.ticket_id, "kind": event.kind.value}
                    )
                    return
                last_error = f"HTTP {response.status_code}"
                logger.warning(
                    "Slack webhook returned non-200",
                    extra={"status_code": response.status_code, "attempt": attempt + 1}
                )
            except httpx.HTTPError as e:
                last_error = str(e)
                logger.warning(
                    "Slack request failed",
                    extra={"error": str(e), "attempt": attempt + 1, "ticket_id": event.ticket_id}
                )

            if attempt < self.max_retries - 1:
                await asyncio.sleep(self.backoff_base * 2 ** attempt)

        self._circuit_breaker.record_failure()
        raise NotificationException(
            "Slack notification failed",
            {"ticket_id": event.ticket_id, "kind": event.kind.value, "error": last_error}
        )

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None


class LoggingNotificationSink(INotificationSink):
    """Notification sink that only writes structured log lines; nothing is retained."""

    async def notify(self, event: NotificationEvent) -> None:
        logger.info(
            "Notification",
            extra={
                "kind": event.kind.value,
                "ticket_id": event.ticket_id,
                "details": event.details,
            }
        )

    async def close(self) -> None:
        return None


# ========== Scheduling ==========

SessionFactory = Callable[[], AbstractAsyncContextManager]


class EngineJobs:
    """
    Job bodies for the periodic sweeps.

    Each run opens its own database session and builds its services from
    the configuration current at that moment. The SLA sweep commits each
    ticket separately and shares one lock across runs, so an overrunning
    sweep makes the next tick a no-op.
    """

    def __init__(
        self,
        config_manager: EngineConfigManager,
        session_factory: SessionFactory,
        notification_sink: Optional[INotificationSink] = None
    ):
        self._config_manager = config_manager
        self._session_factory = session_factory
        self._sink = notification_sink
        self._monitor_lock = asyncio.Lock()

    async def run_sla_monitor(self) -> Optional[SweepResult]:
        """Run one SLA sweep."""
        config = self._config_manager.config
        async with self._session_factory() as session:
            monitor = SLAMonitorService(
                self._repository(session),
                config.clock(),
                self._sink,
                lock=self._monitor_lock,
                unit_of_work=SQLAlchemyUnitOfWork(session),
            )
            return await monitor.run_sweep()

    async def run_priority_sweep(self) -> PriorityBatchResult:
        """Run one priority recalculation sweep."""
        config = self._config_manager.config
        async with self._session_factory() as session:
            service = PriorityService(self._repository(session), config.scorer(), self._sink)
            return await service.update_all()

    @property
    def monitor_lock(self) -> asyncio.Lock:
        """Lock shared by every SLA sweep, scheduled or manual."""
        return self._monitor_lock

    @staticmethod
    def _repository(session: AsyncSession) -> SQLAlchemyTicketRepository:
        return SQLAlchemyTicketRepository(session)


class EngineScheduler:
    """
    Wrapper for APScheduler running the engine's interval jobs.

    Every job runs with ``max_instances=1`` and ``coalesce=True`` so ticks
    that pile up behind a slow run collapse into one.
    """

    def __init__(self, misfire_grace_seconds: int = 60):
        self.misfire_grace_seconds = misfire_grace_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._jobs: Dict[str, Dict[str, Any]] = {}
        self._running = False

    def add_interval_job(self, job_id: str, func: Callable, seconds: int, name: Optional[str] = None) -> None:
        """Register an interval job; a non-positive interval disables it."""
        if seconds <= 0:
            logger.info("Scheduled job disabled", extra={"job_id": job_id})
            return
        self._jobs[job_id] = {"func": func, "seconds": seconds, "name": name or job_id}

    async def start(self) -> None:
        """Start the scheduler with the registered jobs."""
        if self._running:
            logger.warning("Engine scheduler already running")
            return

        self._scheduler = AsyncIOScheduler()
        for job_id, job in self._jobs.items():
            self._scheduler.add_job(
                job["func"],
                "interval",
                seconds=job["seconds"],
                id=job_id,
                name=job["name"],
                misfire_grace_time=self.misfire_grace_seconds,
                max_instances=1,
                coalesce=True,
                replace_existing=True
            )

        self._scheduler.start()
        self._running = True
        logger.info(
            "Engine scheduler started",
            extra={"jobs": {job_id: job["seconds"] for job_id, job in self._jobs.items()}}
        )

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

        self._running = False
        logger.info("Engine scheduler stopped")

    @property
    def job_ids(self) -> List[str]:
        """Registered job ids."""
        return list(self._jobs)

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._running
