"""
Standings resolver for tournament leaderboards.

Joins a tournament's gradings with submission and user identity to produce
display-ready standing rows. Pagination and sorting run in SQL over the
grading rows; the join to submissions and users happens afterwards, so a
page never shifts when an entry cannot be resolved.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from arena.data_models.standings import StandingRow, StandingStatistics
from arena.database.models import Grading, Submission, Tournament, TournamentGrading, User
from arena.services.base import BaseService
from arena.utils.exceptions import TournamentNotFoundError
from arena.utils.ranking import RankingUtility, SortField, SortOrder
from arena.utils.statistics import ScoreStatistics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldSummary:
    """Aggregates of a tournament's full score set used for per-row statistics."""
    mean: float
    standard_deviation: float
    minimum: float
    maximum: float


class StandingsService(BaseService):
    """Service for tournament standings queries."""

    async def get_standings(
        self,
        tournament_id: int,
        limit: Optional[int] = None,
        skip: int = 0,
        sort_field: Union[SortField, str] = SortField.SCORE,
        sort_order: Union[SortOrder, str] = SortOrder.DESC
    ) -> List[StandingRow]:
        """
        Get a page of standings for a tournament.

        Args:
            tournament_id: Tournament to read
            limit: Maximum number of gradings on the page, None for all
            skip: Number of gradings to skip before the page starts
            sort_field: Grading field to sort by
            sort_order: 'asc' or 'desc'

        Returns:
            Standing rows in page order; gradings whose submission or user
            cannot be resolved are left out

        Raises:
            TournamentNotFoundError: If the tournament does not exist
            ValidationFailure: On an unknown sort field/order or bad paging
        """
        sort_field = RankingUtility.resolve_sort_field(sort_field)
        sort_order = RankingUtility.resolve_sort_order(sort_order)
        RankingUtility.validate_paging(limit, skip)

        async with self.get_session() as session:
            await self._require_tournament(session, tournament_id)
            field = await self._field_summary(session, tournament_id)
            if field is None:
                return []

            column = RankingUtility.get_sort_column_mapping()[sort_field]
            ordering = column.asc() if sort_order == SortOrder.ASC else column.desc()
            query = (
                self._tournament_gradings_query(tournament_id)
                .order_by(ordering.nulls_last(), Grading.id.asc())
                .offset(skip)
            )
            if limit is not None:
                query = query.limit(limit)

            result = await session.execute(query)
            gradings = result.scalars().all()
            return await self._build_rows(session, gradings, field)

    async def get_standing(self, tournament_id: int, user_id: int) -> Optional[StandingRow]:
        """
        Get the standing of one user within a tournament.

        Only the tournament's own gradings are considered, never the user's
        gradings from other tournaments.

        Returns:
            The user's standing row, or None if the user has no grading here
        """
        async with self.get_session() as session:
            await self._require_tournament(session, tournament_id)

            query = (
                self._tournament_gradings_query(tournament_id)
                .join(Submission, Submission.id == Grading.submission_id)
                .where(Submission.user_id == user_id)
                .order_by(Grading.id.asc())
                .limit(1)
            )
            grading = (await session.execute(query)).scalar_one_or_none()
            if grading is None:
                return None

            field = await self._field_summary(session, tournament_id)
            rows = await self._build_rows(session, [grading], field)
            return rows[0] if rows else None

    @staticmethod
    def _tournament_gradings_query(tournament_id: int):
        return (
            select(Grading)
            .join(TournamentGrading, TournamentGrading.grading_id == Grading.id)
            .where(TournamentGrading.tournament_id == tournament_id)
        )

    @staticmethod
    async def _require_tournament(session: AsyncSession, tournament_id: int) -> Tournament:
        tournament = await session.get(Tournament, tournament_id)
        if tournament is None:
            raise TournamentNotFoundError(tournament_id)
        return tournament

    @staticmethod
    async def _field_summary(session: AsyncSession, tournament_id: int) -> Optional[FieldSummary]:
        result = await session.execute(
            select(Grading.score)
            .join(TournamentGrading, TournamentGrading.grading_id == Grading.id)
            .where(TournamentGrading.tournament_id == tournament_id)
        )
        scores = ScoreStatistics.sort_scores(result.scalars().all())
        if not scores:
            return None
        return FieldSummary(
            mean=ScoreStatistics.mean(scores),
            standard_deviation=ScoreStatistics.standard_deviation(scores),
            minimum=scores[0],
            maximum=scores[-1],
        )

    @staticmethod
    async def _build_rows(session: AsyncSession, gradings: Sequence[Grading],
                          field: FieldSummary) -> List[StandingRow]:
        if not gradings:
            return []

        submission_result = await session.execute(
            select(Submission.id, Submission.user_id, Submission.title)
            .where(Submission.id.in_(sorted({grading.submission_id for grading in gradings})))
        )
        submissions = {row.id: row for row in submission_result}

        user_result = await session.execute(
            select(User.id, User.username)
            .where(User.id.in_(sorted({row.user_id for row in submissions.values()})))
        )
        usernames = {row.id: row.username for row in user_result}

        rows = []
        for grading in gradings:
            submission = submissions.get(grading.submission_id)
            if submission is None or submission.user_id not in usernames:
                logger.warning(f"Skipping grading {grading.id}: submission or user could not be resolved")
                continue

            rows.append(StandingRow(
                user_id=submission.user_id,
                username=usernames[submission.user_id],
                submission_id=submission.id,
                submission_title=submission.title,
                grading_id=grading.id,
                score=grading.score,
                z_value=grading.z_value,
                token_count=grading.token_count,
                avg_execution_time=grading.avg_execution_time,
                placement=grading.placement,
                statistics=StandingStatistics(
                    percentile_rank=grading.percentile_rank,
                    standard_score=ScoreStatistics.z_value(
                        grading.score, field.mean, field.standard_deviation
                    ),
                    deviation_from_mean=grading.score - field.mean,
                    normalized_score=ScoreStatistics.normalized_score(
                        grading.score, field.minimum, field.maximum
                    ),
                ),
            ))
        return rows
