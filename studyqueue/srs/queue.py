"""Study queue assembly.

Builds a ranked list of flashcards for a learner by joining BKT mastery,
FSRS scheduling state and the active card catalog, scoring every card with
NeedScore, and returning the most urgent ones first.

The reads are independent, so they run concurrently. Scoring and sorting
happen afterwards without any I/O.
"""

import asyncio
import logging
import re
import uuid
from collections.abc import Awaitable
from dataclasses import dataclass, field
from datetime import datetime
from typing import TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from studyqueue.config import settings, utcnow
from studyqueue.srs.need_score import (
    LifecycleState,
    NeedScoreConfig,
    calculate_need_score,
    calculate_retention,
    mastery_color,
)
from studyqueue.srs.readers import (
    DEFAULT_DIFFICULTY,
    DEFAULT_STABILITY,
    ConceptMastery,
    LearningItem,
    SchedulingState,
    fetch_active_items,
    fetch_concept_mastery,
    fetch_scheduling_states,
)
from studyqueue.srs.scope import ScopeResolution, resolve_course_scope

logger = logging.getLogger(__name__)

ALGORITHM_VERSION = "v4.2"

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)

T = TypeVar("T")


class StudyQueueError(Exception):
    """Base class for study queue failures."""


class InvalidScopeError(StudyQueueError):
    """The requested course scope is not a valid identifier."""


class QueueFetchError(StudyQueueError):
    """One of the input reads failed; no queue is produced."""

    def __init__(self, source: str, cause: BaseException) -> None:
        self.source = source
        super().__init__(f"Fetch {source} failed: {cause}")


@dataclass
class QueueEntry:
    """A scored card in the study queue."""

    flashcard_id: uuid.UUID
    summary_id: uuid.UUID
    keyword_id: uuid.UUID
    subtopic_id: uuid.UUID | None
    front: str
    back: str
    front_image_url: str | None
    back_image_url: str | None
    need_score: float      # [0, 1], 3 decimals
    retention: float       # [0, 1], 3 decimals
    mastery_color: str     # green, yellow, red, gray
    p_know: float
    lifecycle_state: str   # new, learning, review, relearning
    due_at: datetime | None
    stability: float
    difficulty: float
    is_new: bool           # No FSRS row existed

    def sort_key(self) -> tuple[float, float, bool]:
        """Most urgent first, then most forgotten, then reviewed before new."""
        return (-self.need_score, self.retention, self.is_new)


@dataclass
class QueueMeta:
    """Counters and echoed parameters for a built queue."""

    total_due: int
    total_new: int
    total_in_queue: int
    returned: int
    limit: int
    include_future: bool
    course_id: str | None
    generated_at: datetime
    weights: dict[str, float]
    algorithm: str = ALGORITHM_VERSION


@dataclass
class StudyQueue:
    entries: list[QueueEntry] = field(default_factory=list)
    meta: QueueMeta | None = None


def clamp_limit(limit: int | None) -> int:
    """Missing or non-positive limits fall back to the default; large ones are capped."""
    if limit is None or limit < 1:
        return settings.queue_default_limit
    return min(limit, settings.queue_max_limit)


def parse_course_id(course_id: str | None) -> uuid.UUID | None:
    """Validate an optional course id.

    Raises:
        InvalidScopeError: If the value is not an 8-4-4-4-12 hex UUID.
    """
    if course_id is None:
        return None
    if not UUID_PATTERN.match(course_id):
        raise InvalidScopeError("course_id must be a valid UUID")
    return uuid.UUID(course_id)


async def _fetch(source: str, fetch: Awaitable[T]) -> T:
    try:
        return await fetch
    except Exception as exc:
        raise QueueFetchError(source, exc) from exc


def score_items(
    items: list[LearningItem],
    mastery: dict[uuid.UUID, ConceptMastery],
    schedules: dict[uuid.UUID, SchedulingState],
    scope: ScopeResolution,
    include_future: bool,
    now: datetime,
    config: NeedScoreConfig,
) -> list[QueueEntry]:
    """Join, filter and score cards. Returns entries in catalog order."""
    entries: list[QueueEntry] = []

    for item in items:
        if not scope.allows(item.summary_id):
            continue

        schedule = schedules.get(item.id)
        is_new = schedule is None

        # Scheduled cards wait for their due date; new cards always qualify
        if (
            schedule is not None
            and not include_future
            and schedule.due_at is not None
            and schedule.due_at > now
        ):
            continue

        concept = mastery.get(item.subtopic_id) if item.subtopic_id is not None else None
        p_know = concept.p_know if concept is not None else 0.0

        if schedule is None:
            lifecycle = LifecycleState.NEW
            need = calculate_need_score(None, 0, 0, lifecycle, p_know, now, config)
            retention = 0.0
            due_at = None
            stability = DEFAULT_STABILITY
            difficulty = DEFAULT_DIFFICULTY
        else:
            lifecycle = schedule.lifecycle_state
            need = calculate_need_score(
                schedule.due_at,
                schedule.lapses,
                schedule.repetitions,
                lifecycle,
                p_know,
                now,
                config,
            )
            retention = calculate_retention(schedule.last_review_at, schedule.stability, now)
            due_at = schedule.due_at
            stability = schedule.stability
            difficulty = schedule.difficulty

        entries.append(
            QueueEntry(
                flashcard_id=item.id,
                summary_id=item.summary_id,
                keyword_id=item.keyword_id,
                subtopic_id=item.subtopic_id,
                front=item.front,
                back=item.back,
                front_image_url=item.front_image_url,
                back_image_url=item.back_image_url,
                need_score=round(need, 3),
                retention=round(retention, 3),
                mastery_color=mastery_color(p_know),
                p_know=round(p_know, 3),
                lifecycle_state=lifecycle.value,
                due_at=due_at,
                stability=stability,
                difficulty=difficulty,
                is_new=is_new,
            )
        )

    return entries


def rank_entries(entries: list[QueueEntry]) -> list[QueueEntry]:
    """Sort entries by urgency. The sort is stable, so full ties keep input order."""
    return sorted(entries, key=QueueEntry.sort_key)


async def build_study_queue(
    sessionmaker: async_sessionmaker[AsyncSession],
    learner_id: uuid.UUID,
    course_id: str | None = None,
    limit: int | None = None,
    include_future: bool = False,
    config: NeedScoreConfig | None = None,
    now: datetime | None = None,
) -> StudyQueue:
    """Build the ranked study queue for a learner.

    Args:
        sessionmaker: Session factory; each concurrent read gets its own session.
        learner_id: The learner to build the queue for.
        course_id: Optional course UUID to restrict cards to.
        limit: Page size (default 20, capped at 100).
        include_future: Include scheduled cards that are not yet due.
        config: NeedScore weights (defaults to the configured ones).
        now: Reference time (defaults to utcnow).

    Returns:
        A StudyQueue with the top entries and its counters.

    Raises:
        InvalidScopeError: If course_id is malformed. Raised before any I/O.
        QueueFetchError: If any read fails. The other reads are cancelled.
    """
    scope_id = parse_course_id(course_id)
    limit = clamp_limit(limit)
    config = config or NeedScoreConfig.from_settings()
    now = now or utcnow()

    # A failing read cancels its siblings; the first failure is reported
    try:
        async with asyncio.TaskGroup() as tg:
            mastery_task = tg.create_task(
                _fetch("bkt_states", fetch_concept_mastery(sessionmaker, learner_id))
            )
            schedule_task = tg.create_task(
                _fetch("fsrs_states", fetch_scheduling_states(sessionmaker, learner_id))
            )
            items_task = tg.create_task(_fetch("flashcards", fetch_active_items(sessionmaker)))
            scope_task = None
            if scope_id is not None:
                scope_task = tg.create_task(
                    _fetch("course_scope", resolve_course_scope(sessionmaker, scope_id))
                )
    except ExceptionGroup as group:
        raise group.exceptions[0]

    scope = scope_task.result() if scope_task is not None else ScopeResolution.unfiltered()
    if scope.is_empty:
        logger.debug("Course %s has no content, returning empty queue", course_id)
        return StudyQueue(
            entries=[],
            meta=QueueMeta(
                total_due=0,
                total_new=0,
                total_in_queue=0,
                returned=0,
                limit=limit,
                include_future=include_future,
                course_id=course_id,
                generated_at=now,
                weights=config.as_dict(),
            ),
        )

    entries = score_items(
        items_task.result(),
        mastery_task.result(),
        schedule_task.result(),
        scope,
        include_future,
        now,
        config,
    )
    total_new = sum(1 for entry in entries if entry.is_new)
    total_due = len(entries) - total_new

    ranked = rank_entries(entries)
    limited = ranked[:limit]

    logger.info(
        "Built study queue for learner %s: %d considered (%d due + %d new), %d returned",
        learner_id,
        len(ranked),
        total_due,
        total_new,
        len(limited),
    )

    return StudyQueue(
        entries=limited,
        meta=QueueMeta(
            total_due=total_due,
            total_new=total_new,
            total_in_queue=len(ranked),
            returned=len(limited),
            limit=limit,
            include_future=include_future,
            course_id=course_id,
            generated_at=now,
            weights=config.as_dict(),
        ),
    )
