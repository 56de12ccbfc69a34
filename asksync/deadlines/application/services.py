"""
Deadline Application Services
=============================

Application services orchestrate business logic and coordinate between
domain entities and repositories.

Following SOLID principles:
- Single Responsibility: Each service has one clear purpose
- Dependency Inversion: Depend on abstractions (repositories, schedulers,
  notifiers), not concrete implementations
"""

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from asksync.availability.application.services import (
    AvailabilityQueryService,
    IRecalculationTrigger,
    ITagRepository,
)
from asksync.availability.domain import AvailabilitySelector, RecurrenceExpander, Timeblock
from asksync.config import MINUTE_MS
from asksync.core import ConfigurationException, ResourceNotFoundException
from asksync.core.clock import now_ms
from asksync.deadlines.domain import (
    DeadlinePolicy,
    DeadlineRecord,
    ExpectedAnswer,
    OutcomeAction,
    Page,
    RecalculationOutcome,
    SweepResult,
)
from asksync.shared.infrastructure.logging import get_logger, log_latency

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class IDeadlineRecordRepository(ABC):
    """Interface for data access to one kind of deadline-bearing record."""

    kind: str

    @abstractmethod
    async def get(self, record_id: str) -> Optional[DeadlineRecord]:
        """Get record by ID."""

    @abstractmethod
    async def list_open_page(self, cursor: Optional[str], limit: int) -> Page[DeadlineRecord]:
        """Next page of non-terminal records after ``cursor``, in ID order."""

    @abstractmethod
    async def list_open_with_tags(self, org_id: str, tag_ids: List[str]) -> List[DeadlineRecord]:
        """Non-terminal records of the organization referencing any of the tags."""

    @abstractmethod
    async def list_open_with_tags_and_responder(
        self,
        org_id: str,
        tag_ids: List[str],
        responder_id: str
    ) -> List[DeadlineRecord]:
        """Non-terminal records of the organization referencing any of the tags and the responder."""

    @abstractmethod
    async def save_deadline(self, record: DeadlineRecord) -> None:
        """Persist expected_answer_time, is_overdue and updated_at."""

    @abstractmethod
    async def mark_overdue(self, record_id: str) -> None:
        """Set the stored overdue flag without touching the deadline."""

    @abstractmethod
    async def mark_notified(self, record_id: str, notified_at: int) -> None:
        """Record that the overdue notification was sent."""


class IContinuationScheduler(ABC):
    """Runs a full-sweep batch later, in its own transaction."""

    @abstractmethod
    def schedule_continuation(self, kind: str, cursor: Optional[str]) -> None:
        """Schedule the batch of ``kind`` records that follows ``cursor``."""


class IPolicyProvider(ABC):
    """Interface for deadline policy access."""

    @abstractmethod
    def get_policy(self) -> DeadlinePolicy:
        """Get current deadline policy."""


class IOverdueNotifier(ABC):
    """Interface for overdue notifications."""

    @abstractmethod
    async def notify_overdue(self, record: DeadlineRecord, now: int) -> bool:
        """Send a notification; returns True when it went out."""


class StaticPolicyProvider(IPolicyProvider):
    """Policy provider returning a fixed policy."""

    def __init__(self, policy: Optional[DeadlinePolicy] = None):
        self._policy = policy or DeadlinePolicy()

    def get_policy(self) -> DeadlinePolicy:
        return self._policy


# ========== Application Services ==========

class DeadlineCalculator:
    """
    Computes the expected answer time of a record.

    Each tag contributes a duration: on-demand tags their response time,
    scheduled tags the time until the next matching availability of any
    candidate responder. The most urgent tag wins. The calculator is read
    only; persisting the result is the caller's job.
    """

    def __init__(
        self,
        availability_service: AvailabilityQueryService,
        tag_repository: ITagRepository,
        policy_provider: IPolicyProvider
    ):
        self._availability = availability_service
        self._tag_repo = tag_repository
        self._policy_provider = policy_provider

    async def expected_answer_time(
        self,
        org_id: str,
        tag_ids: Iterable[str],
        responder_ids: Iterable[str],
        now: int,
        *,
        lookahead_ms: Optional[int] = None,
        default_minutes: Optional[int] = None
    ) -> int:
        """
        Calculate the expected answer time.

        Args:
            org_id: Organization ID
            tag_ids: Tags of the record; unknown IDs are ignored
            responder_ids: Candidate responders (assignees or mailbox owner)
            now: Evaluation instant (epoch ms)
            lookahead_ms: How far ahead to search availability
            default_minutes: Contribution when no tag yields one

        Returns:
            Expected answer time (epoch ms)
        """
        policy = self._policy_provider.get_policy()
        if lookahead_ms is None:
            lookahead_ms = policy.lookahead_ms
        default_ms = (default_minutes or policy.default_response_minutes) * MINUTE_MS

        unique_tag_ids = list(dict.fromkeys(tag_ids))
        tags = await self._tag_repo.get_many(unique_tag_ids)

        contributions: List[int] = []
        by_responder: Optional[Dict[str, List[Timeblock]]] = None

        for tag_id in unique_tag_ids:
            tag = tags.get(tag_id)
            if tag is None:
                continue

            if tag.is_scheduled:
                if by_responder is None:
                    by_responder = await self._upcoming_occurrences(
                        org_id, responder_ids, now, lookahead_ms, policy.lookback_ms
                    )
                until = self._until_earliest_responder(tag_id, by_responder, now)
                contributions.append(default_ms if until is None else until)
            elif tag.response_time_minutes:
                contributions.append(tag.response_time_minutes * MINUTE_MS)

        if not contributions:
            return now + default_ms
        return now + min(contributions)

    async def _upcoming_occurrences(
        self,
        org_id: str,
        responder_ids: Iterable[str],
        now: int,
        lookahead_ms: int,
        lookback_ms: int
    ) -> Dict[str, List[Timeblock]]:
        """Occurrences of each responder's timeblocks, sorted by start."""
        selector = AvailabilitySelector.between(now, now + lookahead_ms)
        by_responder: Dict[str, List[Timeblock]] = {}

        for responder_id in dict.fromkeys(responder_ids):
            timeblocks = await self._availability.timeblocks_for(
                org_id, responder_id, selector, check_permissions=False
            )
            occurrences = RecurrenceExpander.expand_all(timeblocks, now - lookback_ms, now + lookahead_ms)
            occurrences.sort(key=lambda occ: occ.start_time)
            by_responder[responder_id] = occurrences

        return by_responder

    @classmethod
    def _until_earliest_responder(
        cls,
        tag_id: str,
        by_responder: Dict[str, List[Timeblock]],
        now: int
    ) -> Optional[int]:
        """Soonest answer across responders, each judged on their own availability."""
        candidates = [
            until for until in (
                cls._until_next_occurrence(tag_id, occurrences, now)
                for occurrences in by_responder.values()
            )
            if until is not None
        ]
        return min(candidates) if candidates else None

    @staticmethod
    def _until_next_occurrence(tag_id: str, occurrences: List[Timeblock], now: int) -> Optional[int]:
        for occ in occurrences:
            if tag_id not in occ.tag_ids:
                continue
            if occ.start_time > now:
                return occ.start_time - now
            if occ.end_time > now:
                # In progress: answerable until it ends
                return occ.end_time - now
        return None


class RecalculationService(IRecalculationTrigger):
    """
    Keeps stored expected answer times fresh.

    Records overdue for less than the grace period keep their deadline so
    their status does not flap between overdue and on time. Full sweeps
    process one batch per invocation and schedule their own continuation.
    """

    def __init__(
        self,
        calculator: DeadlineCalculator,
        repositories: Dict[str, IDeadlineRecordRepository],
        policy_provider: IPolicyProvider,
        continuation_scheduler: Optional[IContinuationScheduler] = None,
        notifier: Optional[IOverdueNotifier] = None,
        clock: Callable[[], int] = now_ms
    ):
        self._calculator = calculator
        self._repositories = repositories
        self._policy_provider = policy_provider
        self._scheduler = continuation_scheduler
        self._notifier = notifier
        self._clock = clock

    @property
    def kinds(self) -> List[str]:
        return list(self._repositories)

    def _repository_for(self, kind: str) -> IDeadlineRecordRepository:
        try:
            return self._repositories[kind]
        except KeyError:
            raise ConfigurationException(f"No repository registered for record kind '{kind}'")

    async def recalculate_record(
        self,
        record: DeadlineRecord,
        now: int,
        policy: Optional[DeadlinePolicy] = None
    ) -> RecalculationOutcome:
        """
        Recalculate and persist the deadline of one record.

        Terminal records are left alone. Records overdue for less than the
        grace period keep their deadline; only the stored overdue flag is
        brought up to date.
        """
        policy = policy or self._policy_provider.get_policy()
        repo = self._repository_for(record.kind)
        previous = record.expected_answer_time

        if record.is_terminal:
            return RecalculationOutcome(record.id, record.kind, OutcomeAction.SKIPPED_TERMINAL, previous, previous)

        overdue_for = record.overdue_for(now)
        if 0 < overdue_for < policy.grace_period_ms:
            if not record.is_overdue:
                await repo.mark_overdue(record.id)
                record.is_overdue = True
            return RecalculationOutcome(record.id, record.kind, OutcomeAction.SKIPPED_GRACE, previous, previous)

        expected = await self._calculator.expected_answer_time(
            record.org_id,
            record.tag_ids,
            record.responder_ids,
            now,
            default_minutes=policy.default_minutes_for(record.kind),
        )
        record.apply_deadline(ExpectedAnswer(expected, now))
        await repo.save_deadline(record)

        return RecalculationOutcome(record.id, record.kind, OutcomeAction.UPDATED, previous, expected)

    async def _process(
        self,
        records: List[DeadlineRecord],
        now: int,
        policy: DeadlinePolicy,
        kind: Optional[str] = None,
        notify: bool = False
    ) -> SweepResult:
        result = SweepResult(kind=kind)
        for record in records:
            # Deadline as stored before recalculation moves it
            stored = record.deadline
            outcome = await self.recalculate_record(record, now, policy)
            result.record(outcome)

            if notify and stored is not None and await self._notify(record, stored, now, policy):
                result.notified += 1
        return result

    async def _notify(
        self,
        record: DeadlineRecord,
        stored: ExpectedAnswer,
        now: int,
        policy: DeadlinePolicy
    ) -> bool:
        if stored.overdue_for(now) == 0:
            return False
        if self._notifier is None or not policy.notify_overdue:
            return False
        if record.notified_at is not None or record.is_terminal:
            return False

        sent = await self._notifier.notify_overdue(record, now)
        if sent:
            await self._repository_for(record.kind).mark_notified(record.id, now)
            record.notified_at = now
            logger.info(
                "Overdue notification sent",
                extra={"record_id": record.id, "kind": record.kind, "overdue_ms": stored.overdue_for(now)}
            )
        return sent

    async def run_full_sweep(
        self,
        kind: str,
        cursor: Optional[str] = None,
        commit: Optional[Callable[[], Awaitable[None]]] = None
    ) -> SweepResult:
        """
        Process one batch of open records of a kind.

        When more records remain, the next batch is handed to the
        continuation scheduler and this call returns. ``commit`` makes the
        batch durable before that happens; if the batch or its commit
        fails, nothing is scheduled and the next periodic sweep starts over.
        """
        policy = self._policy_provider.get_policy()
        repo = self._repository_for(kind)
        now = self._clock()

        with log_latency(logger, "full_sweep_batch", kind=kind):
            page = await repo.list_open_page(cursor, policy.batch_size)
            if page.has_more and self._scheduler is None:
                raise ConfigurationException("No continuation scheduler configured")
            result = await self._process(page.items, now, policy, kind=kind, notify=True)
            if commit is not None:
                await commit()

        if page.has_more:
            self._scheduler.schedule_continuation(kind, page.next_cursor)
            result.next_cursor = page.next_cursor
            result.continuation_scheduled = True

        logger.info(
            "Full sweep batch complete",
            extra={
                "kind": kind,
                "processed": result.processed,
                "updated": result.updated,
                "skipped": result.skipped,
                "notified": result.notified,
                "has_more": page.has_more,
            }
        )
        return result

    @staticmethod
    def schedule_full_sweeps(scheduler: Optional[IContinuationScheduler], kinds: Iterable[str]) -> List[str]:
        """Hand the first batch of every kind to the scheduler; returns the kinds scheduled."""
        if scheduler is None:
            raise ConfigurationException("No continuation scheduler configured")

        kinds = list(kinds)
        for kind in kinds:
            scheduler.schedule_continuation(kind, None)

        logger.info("Full recalculation scheduled", extra={"kinds": kinds})
        return kinds

    def recalculate_all(self) -> List[str]:
        """Start a full sweep for every record kind; returns the kinds scheduled."""
        return self.schedule_full_sweeps(self._scheduler, self.kinds)

    async def recalculate_for_tags(self, org_id: str, tag_ids: List[str]) -> SweepResult:
        """Recalculate the organization's open records of every kind referencing any of the tags."""
        if not tag_ids:
            return SweepResult()

        policy = self._policy_provider.get_policy()
        now = self._clock()
        total = SweepResult()
        for kind, repo in self._repositories.items():
            records = await repo.list_open_with_tags(org_id, list(tag_ids))
            total = total.merge(await self._process(records, now, policy, kind=kind))

        logger.info(
            "Recalculated records for tags",
            extra={
                "org_id": org_id,
                "tag_ids": list(tag_ids),
                "processed": total.processed,
                "updated": total.updated,
            }
        )
        return total

    async def recalculate_for_responder(self, org_id: str, tag_ids: List[str], responder_id: str) -> SweepResult:
        """Recalculate the organization's open records referencing any of the tags and the responder."""
        if not tag_ids:
            return SweepResult()

        policy = self._policy_provider.get_policy()
        now = self._clock()
        total = SweepResult()
        for kind, repo in self._repositories.items():
            records = await repo.list_open_with_tags_and_responder(org_id, list(tag_ids), responder_id)
            total = total.merge(await self._process(records, now, policy, kind=kind))

        logger.info(
            "Recalculated records for responder",
            extra={
                "org_id": org_id,
                "tag_ids": list(tag_ids),
                "responder_id": responder_id,
                "processed": total.processed,
                "updated": total.updated,
            }
        )
        return total


class DeadlineReadService:
    """Deadline values for record creation and for display."""

    def __init__(
        self,
        calculator: DeadlineCalculator,
        repositories: Dict[str, IDeadlineRecordRepository],
        policy_provider: IPolicyProvider,
        clock: Callable[[], int] = now_ms
    ):
        self._calculator = calculator
        self._repositories = repositories
        self._policy_provider = policy_provider
        self._clock = clock

    async def initial_deadline(
        self,
        org_id: str,
        kind: str,
        tag_ids: List[str],
        responder_ids: List[str]
    ) -> ExpectedAnswer:
        """Deadline for a record about to be created."""
        now = self._clock()
        policy = self._policy_provider.get_policy()
        expected = await self._calculator.expected_answer_time(
            org_id, tag_ids, responder_ids, now,
            default_minutes=policy.default_minutes_for(kind),
        )
        return ExpectedAnswer(expected_answer_time=expected, computed_at=now)

    async def current_deadline(self, kind: str, record_id: str) -> Tuple[DeadlineRecord, ExpectedAnswer, bool]:
        """
        Deadline of a stored record as of now.

        Rows written before deadlines existed have none stored; theirs is
        computed on read and not persisted.

        Returns:
            (record, expected answer, whether it was computed on read)
        """
        repo = self._repositories.get(kind)
        if repo is None:
            raise ResourceNotFoundException("RecordKind", kind)

        record = await repo.get(record_id)
        if record is None:
            raise ResourceNotFoundException(kind, record_id)

        now = self._clock()
        if record.deadline is not None:
            return record, record.deadline.as_of(now), False

        policy = self._policy_provider.get_policy()
        expected = await self._calculator.expected_answer_time(
            record.org_id, record.tag_ids, record.responder_ids, now,
            default_minutes=policy.default_minutes_for(kind),
        )
        return record, ExpectedAnswer(expected, now), True
