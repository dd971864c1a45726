"""
Grading input data models.

Raw tournament results arrive as lists of mappings from the evaluation
service; these helpers turn them into typed entries and reject malformed
input before any computation happens.
"""

import math
from dataclasses import dataclass
from numbers import Real
from typing import Any, List, Mapping, Optional, Sequence, Union

from arena.config import Config
from arena.utils.exceptions import ValidationFailure

# Largest value of a signed 64-bit INTEGER column
MAX_ID = 2 ** 63 - 1


@dataclass(frozen=True)
class GradingEntry:
    """One raw (submission, score) result of a tournament run."""
    submission_id: int
    score: float
    avg_execution_time: Optional[float] = None


@dataclass(frozen=True)
class DisqualificationEntry:
    """A submission excluded from a tournament run."""
    submission_id: int
    reason: str


def require_finite_number(value: Any, label: str) -> float:
    """Accept a finite real number (bool excluded) and return it as float."""
    # bool is a subclass of int and is never a valid measurement
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ValidationFailure(f"{label} must be a number")
    if not math.isfinite(value):
        raise ValidationFailure(f"{label} must be finite")
    return float(value)


def require_id(value: Any, label: str) -> int:
    """Accept an integer id that fits a signed 64-bit database column."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationFailure(f"{label} must be an integer id")
    if not 1 <= value <= MAX_ID:
        raise ValidationFailure(f"{label} must be between 1 and {MAX_ID}")
    return value


def _require_number(value: Any, field_name: str, index: int) -> float:
    return require_finite_number(value, f"entry {index}: '{field_name}'")


def _require_id(value: Any, field_name: str, index: int) -> int:
    return require_id(value, f"entry {index}: '{field_name}'")


def _parse_grading_entry(raw: Union[GradingEntry, Mapping], index: int) -> GradingEntry:
    if isinstance(raw, GradingEntry):
        submission_id, score, avg_time = raw.submission_id, raw.score, raw.avg_execution_time
    elif isinstance(raw, Mapping):
        for key in ('submission_id', 'score'):
            if key not in raw:
                raise ValidationFailure(f"entry {index}: missing required field '{key}'")
        submission_id, score, avg_time = raw['submission_id'], raw['score'], raw.get('avg_execution_time')
    else:
        raise ValidationFailure(f"entry {index}: expected a mapping, got {type(raw).__name__}")

    submission_id = _require_id(submission_id, 'submission_id', index)
    score = _require_number(score, 'score', index)
    if not Config.MIN_SCORE <= score <= Config.MAX_SCORE:
        raise ValidationFailure(
            f"entry {index}: score {score} outside [{Config.MIN_SCORE}, {Config.MAX_SCORE}]"
        )

    if avg_time is not None:
        avg_time = _require_number(avg_time, 'avg_execution_time', index)
        if avg_time < 0:
            raise ValidationFailure(f"entry {index}: avg_execution_time cannot be negative")

    return GradingEntry(submission_id, score, avg_time)


def _parse_disqualification_entry(raw: Union[DisqualificationEntry, Mapping], index: int) -> DisqualificationEntry:
    if isinstance(raw, DisqualificationEntry):
        submission_id, reason = raw.submission_id, raw.reason
    elif isinstance(raw, Mapping):
        for key in ('submission_id', 'reason'):
            if key not in raw:
                raise ValidationFailure(f"disqualification {index}: missing required field '{key}'")
        submission_id, reason = raw['submission_id'], raw['reason']
    else:
        raise ValidationFailure(f"disqualification {index}: expected a mapping, got {type(raw).__name__}")

    submission_id = _require_id(submission_id, 'submission_id', index)
    if not isinstance(reason, str) or not reason.strip():
        raise ValidationFailure(f"disqualification {index}: 'reason' must be a non-empty string")

    return DisqualificationEntry(submission_id, reason)


def parse_batch(batch: Any) -> List[GradingEntry]:
    """
    Validate and convert a raw grading batch.

    Args:
        batch: List of mappings with submission_id, score and optional
            avg_execution_time, or GradingEntry instances

    Returns:
        List of GradingEntry in input order

    Raises:
        ValidationFailure: If the batch is not a list, is empty, or holds a
            malformed entry
    """
    if not isinstance(batch, (list, tuple)):
        raise ValidationFailure("gradings must be an array")
    if len(batch) == 0:
        raise ValidationFailure("gradings must not be empty")
    return [_parse_grading_entry(raw, index) for index, raw in enumerate(batch)]


def parse_disqualifications(disqualified: Optional[Sequence]) -> List[DisqualificationEntry]:
    """Validate and convert a raw disqualification list (None means empty)."""
    if disqualified is None:
        return []
    if not isinstance(disqualified, (list, tuple)):
        raise ValidationFailure("disqualified must be an array")
    return [_parse_disqualification_entry(raw, index) for index, raw in enumerate(disqualified)]
