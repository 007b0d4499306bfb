"""Course scope resolution.

A course scope becomes the set of summary ids it contains:
course -> semesters -> sections -> topics -> summaries. Only active,
non-deleted rows count at every level.

The single joined query is tried first. If the database rejects it, the
hierarchy is walked one level at a time, stopping as soon as a level comes
back empty.
"""

import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum

from sqlalchemy import and_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from studyqueue.models.hierarchy import Course, Section, Semester, Summary, Topic

logger = logging.getLogger(__name__)


class ScopeKind(Enum):
    UNFILTERED = "unfiltered"  # No course requested
    RESOLVED = "resolved"      # Non-empty set of summary ids
    EMPTY = "empty"            # Course requested, nothing inside it


@dataclass(frozen=True)
class ScopeResolution:
    """Outcome of resolving an optional course id."""

    kind: ScopeKind
    summary_ids: frozenset[uuid.UUID] = field(default_factory=frozenset)

    @classmethod
    def unfiltered(cls) -> "ScopeResolution":
        return cls(kind=ScopeKind.UNFILTERED)

    @classmethod
    def from_ids(cls, summary_ids: set[uuid.UUID]) -> "ScopeResolution":
        if not summary_ids:
            return cls(kind=ScopeKind.EMPTY)
        return cls(kind=ScopeKind.RESOLVED, summary_ids=frozenset(summary_ids))

    @property
    def is_empty(self) -> bool:
        return self.kind is ScopeKind.EMPTY

    def allows(self, summary_id: uuid.UUID) -> bool:
        """Return True if a card in this summary belongs to the scope."""
        if self.kind is ScopeKind.UNFILTERED:
            return True
        return summary_id in self.summary_ids


def _live(model: type) -> tuple:
    return (model.is_active.is_(True), model.deleted_at.is_(None))


async def resolve_summaries_batched(db: AsyncSession, course_id: uuid.UUID) -> set[uuid.UUID]:
    """Resolve summary ids with one four-way join."""
    stmt = (
        select(Summary.id)
        .distinct()
        .join(Topic, and_(Summary.topic_id == Topic.id, *_live(Topic)))
        .join(Section, and_(Topic.section_id == Section.id, *_live(Section)))
        .join(Semester, and_(Section.semester_id == Semester.id, *_live(Semester)))
        .join(Course, and_(Semester.course_id == Course.id, *_live(Course)))
        .where(Course.id == course_id, *_live(Summary))
    )
    result = await db.execute(stmt)
    return set(result.scalars().all())


async def resolve_summaries_sequential(db: AsyncSession, course_id: uuid.UUID) -> set[uuid.UUID]:
    """Resolve summary ids level by level.

    Returns an empty set as soon as any level is empty, so no query is ever
    issued with an empty IN list.
    """
    semester_stmt = (
        select(Semester.id)
        .join(Course, and_(Semester.course_id == Course.id, *_live(Course)))
        .where(Course.id == course_id, *_live(Semester))
    )
    ids = set((await db.execute(semester_stmt)).scalars().all())
    if not ids:
        logger.debug("Course %s has no live semesters", course_id)
        return set()

    for model, parent_column in (
        (Section, Section.semester_id),
        (Topic, Topic.section_id),
        (Summary, Summary.topic_id),
    ):
        stmt = select(model.id).where(parent_column.in_(ids), *_live(model))
        ids = set((await db.execute(stmt)).scalars().all())
        if not ids:
            logger.debug("Course %s has no live %s", course_id, model.__tablename__)
            return set()

    return ids


async def resolve_course_scope(
    sessionmaker: async_sessionmaker[AsyncSession],
    course_id: uuid.UUID | None,
) -> ScopeResolution:
    """Resolve an optional course id into a ScopeResolution.

    Args:
        sessionmaker: Factory for database sessions.
        course_id: The course to scope to, or None for no filtering.

    Returns:
        UNFILTERED when no course is given, EMPTY when the course holds no
        live summaries, otherwise RESOLVED with the summary ids.
    """
    if course_id is None:
        return ScopeResolution.unfiltered()

    try:
        async with sessionmaker() as db:
            summary_ids = await resolve_summaries_batched(db, course_id)
    except SQLAlchemyError as exc:
        logger.warning(
            "Batched scope query failed for course %s, walking hierarchy instead: %s",
            course_id,
            exc,
        )
        async with sessionmaker() as db:
            summary_ids = await resolve_summaries_sequential(db, course_id)

    resolution = ScopeResolution.from_ids(summary_ids)
    logger.debug("Course %s resolved to %d summaries", course_id, len(resolution.summary_ids))
    return resolution
