"""Pydantic schemas for API request/response models."""

import uuid
from datetime import datetime

from pydantic import BaseModel

# --- Study queue ---


class QueueEntryResponse(BaseModel):
    """One flashcard in the study queue, with its urgency and memory state."""

    model_config = {"from_attributes": True}

    flashcard_id: uuid.UUID
    summary_id: uuid.UUID
    keyword_id: uuid.UUID
    subtopic_id: uuid.UUID | None
    front: str
    back: str
    front_image_url: str | None = None
    back_image_url: str | None = None
    need_score: float
    retention: float
    mastery_color: str  # green, yellow, red, gray
    p_know: float
    lifecycle_state: str  # new, learning, review, relearning
    due_at: datetime | None
    stability: float
    difficulty: float
    is_new: bool


class QueueMetaResponse(BaseModel):
    """Counters and echoed parameters for a study queue."""

    model_config = {"from_attributes": True}

    total_due: int
    total_new: int
    total_in_queue: int
    returned: int
    limit: int
    include_future: bool
    course_id: str | None
    generated_at: datetime
    algorithm: str
    weights: dict[str, float]


class StudyQueueResponse(BaseModel):
    """Ranked flashcards, most urgent first."""

    queue: list[QueueEntryResponse]
    meta: QueueMetaResponse
