"""Read-only accessors for the study queue inputs.

Each fetch opens its own session from the factory so the queue builder can
run them concurrently. Rows come back as frozen dataclasses detached from
the ORM, with nulls replaced by the defaults the scorer expects.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from studyqueue.models.flashcard import Flashcard
from studyqueue.models.learner_state import BktState, FsrsState
from studyqueue.srs.need_score import LifecycleState

logger = logging.getLogger(__name__)

# Defaults for cards with no FSRS row (or null columns)
DEFAULT_STABILITY = 1.0
DEFAULT_DIFFICULTY = 5.0


@dataclass(frozen=True)
class ConceptMastery:
    """BKT state of one subtopic for a learner."""

    subtopic_id: uuid.UUID
    p_know: float  # Clamped to [0, 1]
    total_attempts: int
    correct_attempts: int
    delta: float | None


@dataclass(frozen=True)
class SchedulingState:
    """FSRS state of one flashcard for a learner."""

    flashcard_id: uuid.UUID
    stability: float
    difficulty: float
    due_at: datetime | None
    last_review_at: datetime | None
    repetitions: int
    lapses: int
    lifecycle_state: LifecycleState


@dataclass(frozen=True)
class LearningItem:
    """An active flashcard with its content and associations."""

    id: uuid.UUID
    summary_id: uuid.UUID
    keyword_id: uuid.UUID
    subtopic_id: uuid.UUID | None
    front: str
    back: str
    front_image_url: str | None = None
    back_image_url: str | None = None


def _clamp_probability(value: float | None) -> float:
    if value is None:
        return 0.0
    return max(0.0, min(1.0, value))


async def fetch_concept_mastery(
    sessionmaker: async_sessionmaker[AsyncSession],
    learner_id: uuid.UUID,
) -> dict[uuid.UUID, ConceptMastery]:
    """Return the learner's BKT states keyed by subtopic id."""
    stmt = select(BktState).where(BktState.student_id == learner_id)
    async with sessionmaker() as db:
        rows = (await db.execute(stmt)).scalars().all()

    mastery = {
        row.subtopic_id: ConceptMastery(
            subtopic_id=row.subtopic_id,
            p_know=_clamp_probability(row.p_know),
            total_attempts=row.total_attempts or 0,
            correct_attempts=row.correct_attempts or 0,
            delta=row.delta,
        )
        for row in rows
    }
    logger.debug("Fetched %d BKT states for learner %s", len(mastery), learner_id)
    return mastery


async def fetch_scheduling_states(
    sessionmaker: async_sessionmaker[AsyncSession],
    learner_id: uuid.UUID,
) -> dict[uuid.UUID, SchedulingState]:
    """Return the learner's FSRS states keyed by flashcard id.

    Every row is returned, including cards due in the future: a card whose
    row was filtered out here would be indistinguishable from a new card.
    Due-ness is checked when the queue is assembled.
    """
    stmt = select(FsrsState).where(FsrsState.student_id == learner_id)
    async with sessionmaker() as db:
        rows = (await db.execute(stmt)).scalars().all()

    states = {
        row.flashcard_id: SchedulingState(
            flashcard_id=row.flashcard_id,
            stability=row.stability if row.stability is not None else DEFAULT_STABILITY,
            difficulty=row.difficulty if row.difficulty is not None else DEFAULT_DIFFICULTY,
            due_at=row.due_at,
            last_review_at=row.last_review_at,
            repetitions=row.reps or 0,
            lapses=row.lapses or 0,
            lifecycle_state=LifecycleState(row.state or LifecycleState.NEW.value),
        )
        for row in rows
    }
    logger.debug("Fetched %d FSRS states for learner %s", len(states), learner_id)
    return states


async def fetch_active_items(
    sessionmaker: async_sessionmaker[AsyncSession],
) -> list[LearningItem]:
    """Return all active, non-deleted flashcards in a stable order."""
    stmt = (
        select(Flashcard)
        .where(Flashcard.is_active.is_(True), Flashcard.deleted_at.is_(None))
        .order_by(Flashcard.created_at.asc(), Flashcard.id.asc())
    )
    async with sessionmaker() as db:
        rows = (await db.execute(stmt)).scalars().all()

    items = [
        LearningItem(
            id=row.id,
            summary_id=row.summary_id,
            keyword_id=row.keyword_id,
            subtopic_id=row.subtopic_id,
            front=row.front,
            back=row.back,
            front_image_url=row.front_image_url,
            back_image_url=row.back_image_url,
        )
        for row in rows
    ]
    logger.debug("Fetched %d active flashcards", len(items))
    return items
