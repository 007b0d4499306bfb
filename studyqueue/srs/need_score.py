"""NeedScore: composite review urgency for a single flashcard.

Fuses card-level FSRS scheduling state with concept-level BKT mastery.
Four factors, each normalized to [0, 1]:

- Overdue (0.40): how far past due_at, exponential with a grace period.
  Never-scheduled cards count as fully overdue.
- Mastery deficit (0.30): 1 - p_know of the card's subtopic.
- Fragility (0.20): lapses relative to total practice.
- Novelty (0.10): boost for cards the learner has never seen.

Retention is computed separately for display and tie-breaking; it does not
feed into the score.
"""

import math
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum

from studyqueue.config import Settings, settings

SECONDS_PER_DAY = 86400

# Mastery color thresholds on p_know
GREEN_THRESHOLD = 0.80
YELLOW_THRESHOLD = 0.50


class LifecycleState(Enum):
    """FSRS phase of a card for one learner."""

    NEW = "new"                 # Never reviewed
    LEARNING = "learning"       # In initial short-interval steps
    REVIEW = "review"           # Graduated, long intervals
    RELEARNING = "relearning"   # Lapsed, back in short steps


@dataclass(frozen=True)
class NeedScoreConfig:
    """Weights and grace period for NeedScore. Weights must sum to 1.0."""

    overdue_weight: float = 0.40
    mastery_weight: float = 0.30
    fragility_weight: float = 0.20
    novelty_weight: float = 0.10
    grace_days: float = 1.0

    def __post_init__(self) -> None:
        weights = (
            self.overdue_weight,
            self.mastery_weight,
            self.fragility_weight,
            self.novelty_weight,
        )
        if any(w < 0 for w in weights):
            raise ValueError(f"NeedScore weights must be non-negative, got {weights}")
        if not math.isclose(sum(weights), 1.0, abs_tol=1e-9):
            raise ValueError(f"NeedScore weights must sum to 1.0, got {sum(weights):.6f}")
        if self.grace_days <= 0:
            raise ValueError(f"grace_days must be positive, got {self.grace_days}")

    @classmethod
    def from_settings(cls, source: Settings = settings) -> "NeedScoreConfig":
        return cls(
            overdue_weight=source.need_overdue_weight,
            mastery_weight=source.need_mastery_weight,
            fragility_weight=source.need_fragility_weight,
            novelty_weight=source.need_novelty_weight,
            grace_days=source.need_grace_days,
        )

    def as_dict(self) -> dict[str, float]:
        return asdict(self)


DEFAULT_CONFIG = NeedScoreConfig()


@dataclass(frozen=True)
class NeedScoreBreakdown:
    """The four normalized factors and the weighted composite."""

    overdue: float
    mastery_deficit: float
    fragility: float
    novelty: float
    score: float


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def _days_between(earlier: datetime, later: datetime) -> float:
    return (later - earlier).total_seconds() / SECONDS_PER_DAY


def overdue_factor(due_at: datetime | None, now: datetime, grace_days: float = 1.0) -> float:
    """Return 1 - e^(-days_overdue / grace_days), or 1.0 if never scheduled.

    Reaches ~0.63 at one grace period overdue and approaches 1.0 asymptotically.
    Cards not yet due score 0.
    """
    if due_at is None:
        return 1.0
    days_overdue = _days_between(due_at, now)
    if days_overdue <= 0:
        return 0.0
    return 1 - math.exp(-days_overdue / grace_days)


def mastery_deficit_factor(p_know: float) -> float:
    return _clamp(1 - p_know)


def fragility_factor(lapses: int, repetitions: int) -> float:
    return min(1.0, lapses / max(1, repetitions + lapses + 1))


def novelty_factor(lifecycle_state: LifecycleState) -> float:
    return 1.0 if lifecycle_state is LifecycleState.NEW else 0.0


def need_score_breakdown(
    due_at: datetime | None,
    lapses: int,
    repetitions: int,
    lifecycle_state: LifecycleState,
    p_know: float,
    now: datetime,
    config: NeedScoreConfig = DEFAULT_CONFIG,
) -> NeedScoreBreakdown:
    """Compute every NeedScore factor for one card.

    Args:
        due_at: When the card is next due (None if never scheduled).
        lapses: Times the card was forgotten.
        repetitions: Successful reviews.
        lifecycle_state: FSRS phase of the card.
        p_know: BKT mastery of the card's subtopic, in [0, 1].
        now: Reference instant.
        config: Weights and grace period.

    Returns:
        A NeedScoreBreakdown whose score is clamped to [0, 1].
    """
    overdue = overdue_factor(due_at, now, config.grace_days)
    deficit = mastery_deficit_factor(p_know)
    fragility = fragility_factor(lapses, repetitions)
    novelty = novelty_factor(lifecycle_state)

    score = (
        config.overdue_weight * overdue
        + config.mastery_weight * deficit
        + config.fragility_weight * fragility
        + config.novelty_weight * novelty
    )

    return NeedScoreBreakdown(
        overdue=overdue,
        mastery_deficit=deficit,
        fragility=fragility,
        novelty=novelty,
        score=_clamp(score),
    )


def calculate_need_score(
    due_at: datetime | None,
    lapses: int,
    repetitions: int,
    lifecycle_state: LifecycleState,
    p_know: float,
    now: datetime,
    config: NeedScoreConfig = DEFAULT_CONFIG,
) -> float:
    """Return the composite NeedScore in [0, 1]."""
    return need_score_breakdown(
        due_at, lapses, repetitions, lifecycle_state, p_know, now, config
    ).score


def calculate_retention(
    last_review_at: datetime | None,
    stability: float,
    now: datetime,
) -> float:
    """Estimate recall probability with the forgetting curve R = e^(-t/S).

    Returns 0 for cards never reviewed or with non-positive stability.
    """
    if last_review_at is None or stability <= 0:
        return 0.0
    days_since = _days_between(last_review_at, now)
    if days_since <= 0:
        return 1.0
    return _clamp(math.exp(-days_since / stability))


def mastery_color(p_know: float) -> str:
    """Map p_know to a traffic-light color.

    A negative p_know is the "no data" sentinel and maps to gray.
    """
    if p_know < 0:
        return "gray"
    if p_know >= GREEN_THRESHOLD:
        return "green"
    if p_know >= YELLOW_THRESHOLD:
        return "yellow"
    return "red"
