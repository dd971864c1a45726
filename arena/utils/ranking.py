"""
Shared ranking utilities for gradings and standings.

Placement is a dense rank over unique scores (ties share a placement, the
next distinct score takes the next integer). Percentile rank is the share of
the field scoring at or below a score, using cumulative frequencies.
"""

from collections import Counter
from enum import Enum
from typing import Dict, Optional, Sequence, Union
from sqlalchemy.orm import InstrumentedAttribute

from arena.constants import StandingsConstants
from arena.database.models import Grading
from arena.utils.exceptions import ValidationFailure


class SortField(str, Enum):
    """Grading fields a standings page may be sorted by."""
    SCORE = "score"
    PLACEMENT = "placement"
    PERCENTILE_RANK = "percentile_rank"
    Z_VALUE = "z_value"
    TOKEN_COUNT = "token_count"
    AVG_EXECUTION_TIME = "avg_execution_time"
    CREATED_AT = "created_at"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class RankingUtility:
    """Shared ranking logic for the grading pipeline and standings."""

    @staticmethod
    def placement_map(scores: Sequence[float]) -> Dict[float, int]:
        """
        Map each distinct score to its placement.

        For scores [90, 90, 80] the placements are {90: 1, 80: 2}.
        """
        unique_descending = sorted(set(scores), reverse=True)
        return {score: position for position, score in enumerate(unique_descending, start=1)}

    @staticmethod
    def cumulative_count_map(scores: Sequence[float]) -> Dict[float, int]:
        """Map each distinct score to the number of scores at or below it."""
        frequencies = Counter(scores)
        cumulative = {}
        running = 0
        for score in sorted(frequencies):
            running += frequencies[score]
            cumulative[score] = running
        return cumulative

    @staticmethod
    def percentile_rank(score: float, cumulative_counts: Dict[float, int], field_size: int) -> float:
        """Percentage of the field scoring at or below score."""
        if field_size == 0:
            return 0.0
        return cumulative_counts[score] / field_size * 100

    @staticmethod
    def get_sort_column_mapping() -> Dict[SortField, InstrumentedAttribute]:
        """Get the fixed sort column mapping used by standings queries."""
        return {
            SortField.SCORE: Grading.score,
            SortField.PLACEMENT: Grading.placement,
            SortField.PERCENTILE_RANK: Grading.percentile_rank,
            SortField.Z_VALUE: Grading.z_value,
            SortField.TOKEN_COUNT: Grading.token_count,
            SortField.AVG_EXECUTION_TIME: Grading.avg_execution_time,
            SortField.CREATED_AT: Grading.created_at,
        }

    @staticmethod
    def resolve_sort_field(sort_field: Union[SortField, str]) -> SortField:
        """Validate a sort field against the allowed values."""
        try:
            return SortField(sort_field)
        except ValueError:
            allowed = ', '.join(field.value for field in SortField)
            raise ValidationFailure(f"Invalid sort field '{sort_field}', expected one of: {allowed}")

    @staticmethod
    def resolve_sort_order(sort_order: Union[SortOrder, str]) -> SortOrder:
        """Validate a sort order ('asc' or 'desc')."""
        try:
            return SortOrder(sort_order)
        except ValueError:
            raise ValidationFailure(f"Invalid sort order '{sort_order}', expected 'asc' or 'desc'")

    @staticmethod
    def validate_paging(limit: Optional[int], skip: int):
        """Validate a page window: limit in 1..MAX_PAGE_SIZE or None, skip >= 0."""
        if limit is not None:
            if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
                raise ValidationFailure("limit must be a positive integer")
            if limit > StandingsConstants.MAX_PAGE_SIZE:
                raise ValidationFailure(f"limit must be at most {StandingsConstants.MAX_PAGE_SIZE}")
        if isinstance(skip, bool) or not isinstance(skip, int) or skip < 0:
            raise ValidationFailure("skip must be a non-negative integer")
