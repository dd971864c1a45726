"""
Conversions from ORM rows to the read-only records handed out by services.
"""

from typing import Iterable, List

from arena.data_models.standings import DisqualificationRecord, GradingRecord, TournamentRecord
from arena.database.models import Disqualification, Grading, Tournament


def to_grading_record(grading: Grading) -> GradingRecord:
    return GradingRecord(
        id=grading.id,
        submission_id=grading.submission_id,
        score=grading.score,
        z_value=grading.z_value,
        placement=grading.placement,
        percentile_rank=grading.percentile_rank,
        token_count=grading.token_count,
        avg_execution_time=grading.avg_execution_time,
        created_at=grading.created_at,
    )


def to_disqualification_records(rows: Iterable[Disqualification]) -> List[DisqualificationRecord]:
    return [
        DisqualificationRecord(
            submission_id=row.submission_id,
            reason=row.reason,
            score=row.score,
            avg_execution_time=row.avg_execution_time,
        )
        for row in rows
    ]


def to_tournament_record(tournament: Tournament, grading_ids: List[int],
                         disqualifications: Iterable[Disqualification]) -> TournamentRecord:
    return TournamentRecord(
        id=tournament.id,
        game_id=tournament.game_id,
        grading_ids=list(grading_ids),
        disqualified=to_disqualification_records(disqualifications),
        tournament_execution_time=tournament.tournament_execution_time,
        created_at=tournament.created_at,
    )
