"""Per-learner BKT and FSRS state.

Both tables are written by the review-grading flow; the study queue only
reads them.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studyqueue.models.base import Base, TimestampMixin


class BktState(Base, TimestampMixin):
    """Bayesian Knowledge Tracing mastery for a student-subtopic pair."""

    __tablename__ = "bkt_states"
    __table_args__ = (UniqueConstraint("student_id", "subtopic_id"),)

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    student_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("students.id"), nullable=False, index=True)
    subtopic_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("subtopics.id"), nullable=False)
    p_know: Mapped[float | None] = mapped_column(Float, nullable=True, default=0.0)
    total_attempts: Mapped[int | None] = mapped_column(Integer, nullable=True, default=0)
    correct_attempts: Mapped[int | None] = mapped_column(Integer, nullable=True, default=0)
    delta: Mapped[float | None] = mapped_column(Float, nullable=True)  # p_know change on last update

    student: Mapped["Student"] = relationship(back_populates="bkt_states")  # type: ignore[name-defined] # noqa: F821


class FsrsState(Base, TimestampMixin):
    """FSRS scheduling state for a student-flashcard pair."""

    __tablename__ = "fsrs_states"
    __table_args__ = (UniqueConstraint("student_id", "flashcard_id"),)

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    student_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("students.id"), nullable=False, index=True)
    flashcard_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("flashcards.id"), nullable=False)
    stability: Mapped[float | None] = mapped_column(Float, nullable=True, default=1.0)  # Days
    difficulty: Mapped[float | None] = mapped_column(Float, nullable=True, default=5.0)  # 0-10
    due_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_review_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    reps: Mapped[int | None] = mapped_column(Integer, nullable=True, default=0)
    lapses: Mapped[int | None] = mapped_column(Integer, nullable=True, default=0)
    state: Mapped[str | None] = mapped_column(
        String(20), nullable=True, default="new"
    )  # new, learning, review, relearning

    student: Mapped["Student"] = relationship(back_populates="fsrs_states")  # type: ignore[name-defined] # noqa: F821
