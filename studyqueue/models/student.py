import uuid

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studyqueue.models.base import Base, TimestampMixin


class Student(Base, TimestampMixin):
    __tablename__ = "students"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)

    bkt_states: Mapped[list["BktState"]] = relationship(back_populates="student")  # type: ignore[name-defined] # noqa: F821
    fsrs_states: Mapped[list["FsrsState"]] = relationship(back_populates="student")  # type: ignore[name-defined] # noqa: F821
