"""SQLAlchemy ORM models for the study queue database."""

from studyqueue.models.base import Base
from studyqueue.models.flashcard import Flashcard
from studyqueue.models.hierarchy import Course, Section, Semester, Summary, Topic
from studyqueue.models.keyword import Keyword, Subtopic
from studyqueue.models.learner_state import BktState, FsrsState
from studyqueue.models.student import Student

__all__ = [
    "Base",
    "BktState",
    "Course",
    "Flashcard",
    "FsrsState",
    "Keyword",
    "Section",
    "Semester",
    "Student",
    "Subtopic",
    "Summary",
    "Topic",
]
