import uuid

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studyqueue.models.base import Base, SoftDeleteMixin, TimestampMixin


class Flashcard(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "flashcards"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    summary_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("summaries.id"), nullable=False, index=True)
    keyword_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("keywords.id"), nullable=False)
    subtopic_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("subtopics.id"), nullable=True)
    front: Mapped[str] = mapped_column(Text, nullable=False)
    back: Mapped[str] = mapped_column(Text, nullable=False)
    front_image_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    back_image_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    summary: Mapped["Summary"] = relationship(back_populates="flashcards")  # type: ignore[name-defined] # noqa: F821
