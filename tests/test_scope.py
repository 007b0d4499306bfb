"""Tests for course scope resolution over the content hierarchy."""

import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from studyqueue.models import Course, Section, Semester, Summary, Topic
from studyqueue.srs import scope
from studyqueue.srs.scope import (
    ScopeKind,
    ScopeResolution,
    resolve_course_scope,
    resolve_summaries_batched,
    resolve_summaries_sequential,
)

MakeTree = Callable[..., Awaitable[Any]]


async def _both_paths(
    sessionmaker: async_sessionmaker[AsyncSession], course_id: uuid.UUID
) -> tuple[set[uuid.UUID], set[uuid.UUID]]:
    async with sessionmaker() as db:
        batched = await resolve_summaries_batched(db, course_id)
    async with sessionmaker() as db:
        sequential = await resolve_summaries_sequential(db, course_id)
    return batched, sequential


class TestScopeResolution:
    def test_unfiltered_allows_everything(self) -> None:
        resolution = ScopeResolution.unfiltered()
        assert resolution.kind is ScopeKind.UNFILTERED
        assert resolution.allows(uuid.uuid4())
        assert not resolution.is_empty

    def test_from_empty_ids(self) -> None:
        resolution = ScopeResolution.from_ids(set())
        assert resolution.is_empty
        assert not resolution.allows(uuid.uuid4())

    def test_resolved_allows_members_only(self) -> None:
        member = uuid.uuid4()
        resolution = ScopeResolution.from_ids({member})
        assert resolution.kind is ScopeKind.RESOLVED
        assert resolution.allows(member)
        assert not resolution.allows(uuid.uuid4())


class TestResolveCourseScope:
    @pytest.mark.asyncio
    async def test_no_course_is_unfiltered(
        self, sessionmaker: async_sessionmaker[AsyncSession]
    ) -> None:
        resolution = await resolve_course_scope(sessionmaker, None)
        assert resolution.kind is ScopeKind.UNFILTERED

    @pytest.mark.asyncio
    async def test_resolves_summaries(
        self, sessionmaker: async_sessionmaker[AsyncSession], make_course_tree: MakeTree
    ) -> None:
        tree = await make_course_tree()
        await make_course_tree("Other course")

        resolution = await resolve_course_scope(sessionmaker, tree.course_id)
        assert resolution.kind is ScopeKind.RESOLVED
        assert resolution.summary_ids == frozenset({tree.summary_id})

    @pytest.mark.asyncio
    async def test_unknown_course_is_empty(
        self, sessionmaker: async_sessionmaker[AsyncSession], make_course_tree: MakeTree
    ) -> None:
        await make_course_tree()
        resolution = await resolve_course_scope(sessionmaker, uuid.uuid4())
        assert resolution.is_empty

    @pytest.mark.asyncio
    async def test_course_without_topics_is_empty(
        self, sessionmaker: async_sessionmaker[AsyncSession]
    ) -> None:
        async with sessionmaker() as db:
            course = Course(name="Hollow")
            section = Section(semester=Semester(course=course, name="S1"), name="Sec")
            db.add_all([course, section])
            await db.commit()
            course_id = course.id

        batched, sequential = await _both_paths(sessionmaker, course_id)
        assert batched == sequential == set()
        assert (await resolve_course_scope(sessionmaker, course_id)).is_empty

    @pytest.mark.asyncio
    async def test_falls_back_when_batched_query_fails(
        self,
        sessionmaker: async_sessionmaker[AsyncSession],
        make_course_tree: MakeTree,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        tree = await make_course_tree()
        failing = AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("no such function")))
        monkeypatch.setattr(scope, "resolve_summaries_batched", failing)

        resolution = await resolve_course_scope(sessionmaker, tree.course_id)
        failing.assert_awaited_once()
        assert resolution.summary_ids == frozenset({tree.summary_id})

    @pytest.mark.asyncio
    async def test_fallback_failure_surfaces(
        self,
        sessionmaker: async_sessionmaker[AsyncSession],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        error = OperationalError("SELECT", {}, Exception("database is locked"))
        monkeypatch.setattr(scope, "resolve_summaries_batched", AsyncMock(side_effect=error))
        monkeypatch.setattr(scope, "resolve_summaries_sequential", AsyncMock(side_effect=error))

        with pytest.raises(OperationalError):
            await resolve_course_scope(sessionmaker, uuid.uuid4())


class TestPathParity:
    @pytest.mark.asyncio
    async def test_paths_agree_on_wide_tree(
        self, sessionmaker: async_sessionmaker[AsyncSession], make_course_tree: MakeTree
    ) -> None:
        tree = await make_course_tree()
        async with sessionmaker() as db:
            # A second branch at every level under the same course
            semester = Semester(course_id=tree.course_id, name="Semester 2")
            section = Section(semester=semester, name="Section 2")
            topic = Topic(section=section, name="Topic 2")
            extra = [Summary(topic=topic, title=f"Extra {i}") for i in range(3)]
            sibling = Summary(topic_id=tree.topic_id, title="Sibling")
            db.add_all([semester, section, topic, sibling, *extra])
            await db.commit()
            expected = {tree.summary_id, sibling.id, *(s.id for s in extra)}

        batched, sequential = await _both_paths(sessionmaker, tree.course_id)
        assert batched == sequential == expected

    @pytest.mark.asyncio
    @pytest.mark.parametrize("model", [Course, Semester, Section, Topic, Summary])
    @pytest.mark.parametrize("how", ["inactive", "deleted"])
    async def test_paths_skip_dead_rows_at_every_level(
        self,
        sessionmaker: async_sessionmaker[AsyncSession],
        make_course_tree: MakeTree,
        model: type,
        how: str,
    ) -> None:
        tree = await make_course_tree()
        row_id = {
            Course: tree.course_id,
            Semester: tree.semester_id,
            Section: tree.section_id,
            Topic: tree.topic_id,
            Summary: tree.summary_id,
        }[model]
        async with sessionmaker() as db:
            row = await db.get(model, row_id)
            if how == "inactive":
                row.is_active = False
            else:
                row.deleted_at = datetime(2026, 1, 1)
            await db.commit()

        batched, sequential = await _both_paths(sessionmaker, tree.course_id)
        assert batched == sequential == set()


class TestSequentialShortCircuit:
    @pytest.mark.asyncio
    async def test_stops_after_first_empty_level(self) -> None:
        empty_result = MagicMock()
        empty_result.scalars.return_value.all.return_value = []
        db = MagicMock()
        db.execute = AsyncMock(return_value=empty_result)

        ids = await resolve_summaries_sequential(db, uuid.uuid4())

        assert ids == set()
        assert db.execute.await_count == 1

    @pytest.mark.asyncio
    async def test_stops_when_a_middle_level_is_empty(self) -> None:
        semesters = MagicMock()
        semesters.scalars.return_value.all.return_value = [uuid.uuid4()]
        no_sections = MagicMock()
        no_sections.scalars.return_value.all.return_value = []
        db = MagicMock()
        db.execute = AsyncMock(side_effect=[semesters, no_sections])

        ids = await resolve_summaries_sequential(db, uuid.uuid4())

        assert ids == set()
        assert db.execute.await_count == 2
