"""API routes for the study queue."""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from studyqueue.api.schemas import QueueEntryResponse, QueueMetaResponse, StudyQueueResponse
from studyqueue.database import get_sessionmaker
from studyqueue.srs.queue import InvalidScopeError, QueueFetchError, StudyQueue, build_study_queue

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/study-queue", tags=["study-queue"])


def _parse_limit(raw: str | None) -> int | None:
    """Read the limit query value; anything that is not an integer means default."""
    if raw is None:
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return None


async def _build(
    sessionmaker: async_sessionmaker[AsyncSession],
    learner_id: uuid.UUID,
    course_id: str | None,
    limit: int | None,
    include_future: bool,
) -> StudyQueue:
    try:
        return await build_study_queue(
            sessionmaker,
            learner_id,
            course_id=course_id or None,  # An empty query value means no course
            limit=limit,
            include_future=include_future,
        )
    except InvalidScopeError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except QueueFetchError as exc:
        logger.exception("Study queue generation failed for learner %s", learner_id)
        raise HTTPException(
            status_code=500, detail=f"Study queue generation failed: {exc}"
        ) from exc


@router.get("/{learner_id}", response_model=StudyQueueResponse)
async def get_study_queue(
    learner_id: uuid.UUID,
    course_id: str | None = None,
    limit: str | None = None,
    include_future: bool = False,
    sessionmaker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> StudyQueueResponse:
    """Return the learner's flashcards ranked by NeedScore."""
    study_queue = await _build(
        sessionmaker, learner_id, course_id, _parse_limit(limit), include_future
    )
    return StudyQueueResponse(
        queue=[QueueEntryResponse.model_validate(entry) for entry in study_queue.entries],
        meta=QueueMetaResponse.model_validate(study_queue.meta),
    )


@router.get("/{learner_id}/summary", response_model=QueueMetaResponse)
async def get_study_queue_summary(
    learner_id: uuid.UUID,
    course_id: str | None = None,
    include_future: bool = False,
    sessionmaker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> QueueMetaResponse:
    """Return only the queue counters, for dashboards."""
    study_queue = await _build(sessionmaker, learner_id, course_id, None, include_future)
    return QueueMetaResponse.model_validate(study_queue.meta)
