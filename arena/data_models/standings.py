"""
Standings data models for tournament leaderboards.

Provides immutable data transfer objects for standing rows, grading records
and tournament summaries.
"""

from dataclasses import dataclass, asdict, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from arena.constants import StandingsConstants


@dataclass(frozen=True)
class StandingStatistics:
    """Per-entry statistics relative to the whole tournament."""
    percentile_rank: float
    standard_score: float
    deviation_from_mean: float
    normalized_score: float


@dataclass(frozen=True)
class StandingRow:
    """Single display-ready leaderboard row."""
    user_id: int
    username: str
    submission_id: int
    submission_title: str
    grading_id: int
    score: float
    z_value: Optional[float]
    token_count: int
    avg_execution_time: Optional[float]
    placement: int
    statistics: StandingStatistics

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class GradingRecord:
    """Read-only view of a persisted grading."""
    id: int
    submission_id: int
    score: float
    z_value: Optional[float]
    placement: int
    percentile_rank: float
    token_count: int
    avg_execution_time: Optional[float]
    created_at: Optional[datetime]


@dataclass(frozen=True)
class DisqualificationRecord:
    submission_id: int
    reason: str
    score: Optional[float] = None
    avg_execution_time: Optional[float] = None


@dataclass(frozen=True)
class TournamentRecord:
    """Persisted tournament as returned by the grading pipeline."""
    id: int
    game_id: int
    grading_ids: List[int]
    disqualified: List[DisqualificationRecord]
    tournament_execution_time: float
    created_at: Optional[datetime]

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['created_at'] = self.created_at.isoformat() if self.created_at else None
        return data


@dataclass(frozen=True)
class TournamentSummary:
    """Tournament with its top standings attached."""
    tournament: TournamentRecord
    standings: List[StandingRow] = field(default_factory=list)

    @property
    def winners(self) -> List[StandingRow]:
        """Standings sharing the podium (placement within DEFAULT_PODIUM_SIZE)."""
        return [row for row in self.standings if row.placement <= StandingsConstants.DEFAULT_PODIUM_SIZE]
