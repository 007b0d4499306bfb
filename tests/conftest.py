"""Shared fixtures: a throwaway SQLite database and content-tree builders."""

import os
import tempfile
import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

# Point the app-level engine at a scratch file before anything imports it
os.environ.setdefault(
    "STUDY_QUEUE_DATABASE_URL",
    f"sqlite+aiosqlite:///{Path(tempfile.mkdtemp()) / 'app.db'}",
)

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from studyqueue.models import (  # noqa: E402
    Base,
    Course,
    Keyword,
    Section,
    Semester,
    Student,
    Subtopic,
    Summary,
    Topic,
)


@dataclass
class CourseTree:
    """Ids of one course with a single chain down to a subtopic."""

    course_id: uuid.UUID
    semester_id: uuid.UUID
    section_id: uuid.UUID
    topic_id: uuid.UUID
    summary_id: uuid.UUID
    keyword_id: uuid.UUID
    subtopic_id: uuid.UUID


@pytest_asyncio.fixture
async def sessionmaker(tmp_path: Path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'queue.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def student_id(sessionmaker: async_sessionmaker[AsyncSession]) -> uuid.UUID:
    async with sessionmaker() as db:
        student = Student(name="Ana")
        db.add(student)
        await db.commit()
        return student.id


@pytest.fixture
def make_course_tree(
    sessionmaker: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[CourseTree]]:
    """Return a builder that inserts course -> ... -> subtopic and returns the ids."""

    async def _make(name: str = "Anatomy") -> CourseTree:
        async with sessionmaker() as db:
            course = Course(name=name)
            semester = Semester(course=course, name="Semester 1")
            section = Section(semester=semester, name="Section 1")
            topic = Topic(section=section, name="Topic 1")
            summary = Summary(topic=topic, title="Summary 1")
            db.add_all([course, semester, section, topic, summary])
            await db.flush()

            keyword = Keyword(summary_id=summary.id, name="Keyword 1")
            db.add(keyword)
            await db.flush()
            subtopic = Subtopic(keyword=keyword, name="Subtopic 1")
            db.add(subtopic)
            await db.commit()

            return CourseTree(
                course_id=course.id,
                semester_id=semester.id,
                section_id=section.id,
                topic_id=topic.id,
                summary_id=summary.id,
                keyword_id=keyword.id,
                subtopic_id=subtopic.id,
            )

    return _make
