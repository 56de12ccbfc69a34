"""
Deadline External Service Integrations
======================================

External services for deadline tracking:
- YAML deadline policy with hot reload (watchdog)
- Slack webhook notifications for overdue records
- APScheduler for periodic and continuation sweeps
"""

import asyncio
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
import yaml
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from pydantic import ValidationError
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from asksync.config import MINUTE_MS, settings
from asksync.core import ConfigurationException, InvalidPolicyException, SlackDeliveryException
from asksync.core.clock import to_datetime
from asksync.deadlines.application.services import (
    IContinuationScheduler,
    IOverdueNotifier,
    IPolicyProvider,
)
from asksync.deadlines.domain import DeadlinePolicy, DeadlineRecord
from asksync.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class PolicyFileHandler(FileSystemEventHandler):
    """Watchdog event handler for deadline policy file changes."""

    def __init__(self, manager: "PolicyConfigManager", policy_path: Path):
        self.manager = manager
        self.policy_path = policy_path
        super().__init__()

    def on_modified(self, event):
        if event.is_directory:
            return
        if Path(event.src_path).resolve() == self.policy_path.resolve():
            logger.info("Deadline policy file changed", extra={"path": event.src_path})
            self.manager.reload()


class PolicyConfigManager(IPolicyProvider):
    """
    Thread-safe deadline policy holder with hot-reload support.

    A reload that fails validation keeps the previous policy.
    """

    def __init__(self):
        self._policy: Optional[DeadlinePolicy] = None
        self._lock = threading.Lock()
        self._path: Optional[Path] = None
        self._observer = None

    def load(self, path: Path) -> DeadlinePolicy:
        """Initial policy load; an invalid file is a startup error."""
        self._path = Path(path)
        try:
            policy = self._load_from_file(self._path)
        except (ValidationError, yaml.YAMLError) as e:
            raise InvalidPolicyException(str(self._path), str(e))
        with self._lock:
            self._policy = policy
        return policy

    def _load_from_file(self, path: Path) -> DeadlinePolicy:
        if not path.exists():
            logger.warning("Deadline policy file not found, using defaults", extra={"path": str(path)})
            return DeadlinePolicy()

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        return DeadlinePolicy(**data)

    def reload(self) -> bool:
        """Reload the policy from file."""
        if self._path is None:
            return False

        try:
            policy = self._load_from_file(self._path)
        except (ValidationError, yaml.YAMLError, OSError) as e:
            logger.error("Failed to reload deadline policy", extra={"error": str(e)})
            return False

        with self._lock:
            self._policy = policy
        logger.info("Deadline policy reloaded", extra={"policy": policy.model_dump()})
        return True

    def start_watching(self) -> None:
        """Watch the policy file; skipped when there is no file to watch."""
        if self._path is None:
            raise RuntimeError("Policy not loaded. Call load() first.")

        if not self._path.exists():
            logger.info("Policy file doesn't exist, skipping file watch", extra={"path": str(self._path)})
            return

        try:
            self._observer = Observer()
            self._observer.schedule(
                PolicyFileHandler(self, self._path),
                str(self._path.parent),
                recursive=False
            )
            self._observer.start()
            logger.info("Started watching deadline policy", extra={"path": str(self._path)})
        except OSError as e:
            # No inotify in some containers
            logger.warning("File watching not available, using static policy", extra={"error": str(e)})
            self._observer = None

    def stop_watching(self) -> None:
        """Stop watching (safe to call even if not watching)."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    def get_policy(self) -> DeadlinePolicy:
        with self._lock:
            if self._policy is None:
                raise RuntimeError("Deadline policy not loaded")
            return self._policy


class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Stops calling a failing service for a while.

    After ``failure_threshold`` consecutive failures requests are refused
    for ``recovery_timeout`` seconds, then one trial request is let through.
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
        if self._state == CircuitState.OPEN and self._opened_at is not None:
            if self._clock() - self._opened_at >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        self._failure_count = 0
        self._opened_at = None
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._failure_count += 1
        if self._state == CircuitState.HALF_OPEN or self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            self._opened_at = self._clock()
            logger.warning(
                "Circuit breaker opened",
                extra={"failure_count": self._failure_count, "recovery_timeout": self.recovery_timeout}
            )


@dataclass
class OverdueMessage:
    """Slack notification for an overdue record."""
    record_id: str
    kind: str
    org_id: str
    title: str
    expected_answer_time: int
    overdue_minutes: int
    responder_ids: list


class SlackClient:
    """
    Slack webhook client with circuit breaker and retry logic.

    Retries with exponential backoff; a run of failed sends opens the
    circuit so a Slack outage does not slow every sweep down.
    """

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        channel: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        backoff_base_seconds: float = 1.0
    ):
        self._webhook_url = webhook_url if webhook_url is not None else settings.slack_webhook_url
        self._channel = channel or settings.slack_channel
        self._timeout = timeout_seconds or settings.slack_timeout_seconds
        self._http_client = http_client
        self._circuit_breaker = circuit_breaker or CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        self._backoff_base = backoff_base_seconds

    @property
    def is_configured(self) -> bool:
        return bool(self._webhook_url)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    def _build_message(self, data: OverdueMessage) -> Dict[str, Any]:
        """Build Slack Block Kit message."""
        due = to_datetime(data.expected_answer_time).strftime("%Y-%m-%d %H:%M UTC")
        kind_label = data.kind.replace("_", " ").title()
        responders = ", ".join(data.responder_ids) or "unassigned"

        return {
            "channel": self._channel,
            "text": f"{kind_label} {data.record_id} is overdue",
            "blocks": [
                {
                    "type": "header",
                    "text": {"type": "plain_text", "text": f"Overdue {kind_label}"}
                },
                {
                    "type": "section",
                    "fields": [
                        {"type": "mrkdwn", "text": f"*Title:*\n{data.title or data.record_id}"},
                        {"type": "mrkdwn", "text": f"*Expected by:*\n{due}"},
                        {"type": "mrkdwn", "text": f"*Overdue for:*\n{data.overdue_minutes} min"},
                        {"type": "mrkdwn", "text": f"*Responders:*\n{responders}"},
                    ]
                },
                {
                    "type": "context",
                    "elements": [{"type": "mrkdwn", "text": f"Org: {data.org_id} | ID: {data.record_id}"}]
                },
            ],
        }

    async def send(self, data: OverdueMessage, max_retries: int = 3) -> bool:
        """
        Post a message to the webhook.

        Returns:
            True if sent successfully, False otherwise
        """
        if not self._webhook_url:
            logger.debug("Slack webhook URL not configured, skipping notification")
            return False

        if not self._circuit_breaker.allow_request():
            logger.warning("Circuit breaker open, skipping Slack notification",
                           extra={"record_id": data.record_id})
            return False

        message = self._build_message(data)

        for attempt in range(max_retries):
            try:
                client = await self._get_client()
                response = await client.post(self._webhook_url, json=message)

                if response.status_code != 200:
                    raise SlackDeliveryException(response.status_code)

                self._circuit_breaker.record_success()
                logger.info("Slack notification sent",
                            extra={"record_id": data.record_id, "kind": data.kind})
                return True
            except (httpx.HTTPError, SlackDeliveryException) as e:
                logger.error(
                    "Slack notification failed",
                    extra={"error": str(e), "attempt": attempt + 1, "record_id": data.record_id}
                )

            if attempt < max_retries - 1:
                await asyncio.sleep(self._backoff_base * 2 ** attempt)

        self._circuit_breaker.record_failure()
        return False

    async def close(self) -> None:
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None


class SlackOverdueNotifier(IOverdueNotifier):
    """Overdue notifier posting to Slack."""

    def __init__(self, slack_client: SlackClient):
        self._slack = slack_client

    async def notify_overdue(self, record: DeadlineRecord, now: int) -> bool:
        deadline = record.deadline
        if deadline is None:
            return False
        return await self._slack.send(OverdueMessage(
            record_id=record.id,
            kind=record.kind,
            org_id=record.org_id,
            title=record.title,
            expected_answer_time=deadline.expected_answer_time,
            overdue_minutes=deadline.overdue_for(now) // MINUTE_MS,
            responder_ids=list(record.responder_ids),
        ))


SweepJob = Callable[[str, Optional[str]], Awaitable[Any]]


class RecalculationScheduler(IContinuationScheduler):
    """
    Wrapper for APScheduler running deadline sweeps in the background.

    A periodic interval job starts a full sweep for every record kind;
    each sweep batch that finds more work schedules the next batch as an
    immediate one-shot job, so no single job runs unbounded.
    """

    PERIODIC_JOB_ID = "deadline_recalculation"

    def __init__(self, interval_seconds: int = 3600):
        self.interval_seconds = interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._sweep_job: Optional[SweepJob] = None
        self._running = False

    async def start(self, sweep_job: SweepJob, periodic_job: Optional[Callable[[], Any]] = None) -> None:
        """
        Start the scheduler.

        Args:
            sweep_job: Coroutine function running one batch, ``(kind, cursor)``
            periodic_job: Called every ``interval_seconds`` (0 disables it)
        """
        if self._running:
            logger.warning("Recalculation scheduler already running")
            return

        self._sweep_job = sweep_job
        self._scheduler = AsyncIOScheduler(timezone=timezone.utc)

        if periodic_job is not None and self.interval_seconds > 0:
            self._scheduler.add_job(
                periodic_job,
                "interval",
                seconds=self.interval_seconds,
                id=self.PERIODIC_JOB_ID,
                name="Deadline Recalculation Job",
                misfire_grace_time=60,
                max_instances=1,
                replace_existing=True
            )

        self._scheduler.start()
        self._running = True
        logger.info("Recalculation scheduler started", extra={"interval_seconds": self.interval_seconds})

    def schedule_continuation(self, kind: str, cursor: Optional[str]) -> None:
        if not self._running or self._sweep_job is None:
            raise ConfigurationException("Recalculation scheduler is not running")

        self._scheduler.add_job(
            self._sweep_job,
            "date",
            run_date=datetime.now(timezone.utc),
            args=[kind, cursor],
            id=f"deadline_sweep:{kind}:{cursor or 'start'}",
            name=f"Deadline sweep batch ({kind})",
            misfire_grace_time=300,
            replace_existing=True
        )
        logger.debug("Sweep batch scheduled", extra={"kind": kind, "has_cursor": cursor is not None})

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)

        self._running = False
        logger.info("Recalculation scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running
