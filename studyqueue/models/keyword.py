import uuid

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studyqueue.models.base import Base, SoftDeleteMixin, TimestampMixin


class Keyword(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "keywords"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    summary_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("summaries.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    definition: Mapped[str | None] = mapped_column(Text, nullable=True)

    subtopics: Mapped[list["Subtopic"]] = relationship(back_populates="keyword")


class Subtopic(Base, TimestampMixin, SoftDeleteMixin):
    """A concept tracked by BKT; flashcards optionally point at one."""

    __tablename__ = "subtopics"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    keyword_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("keywords.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    keyword: Mapped["Keyword"] = relationship(back_populates="subtopics")
