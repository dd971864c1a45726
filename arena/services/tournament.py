"""
Tournament aggregate service.

Reads persisted tournaments and recomputes their statistics on demand.
Nothing is cached: every call reads the gradings from the database, so the
output only changes when the underlying rows do.
"""

import logging
from collections import Counter
from datetime import datetime
from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from arena.constants import StandingsConstants
from arena.data_models.standings import GradingRecord, TournamentRecord, TournamentSummary
from arena.data_models.statistics import TournamentStatistics
from arena.database.models import Grading, Submission, Tournament, TournamentGrading
from arena.services.base import BaseService
from arena.services.records import to_grading_record, to_tournament_record
from arena.services.standings import StandingsService
from arena.utils.exceptions import TournamentNotFoundError
from arena.utils.ranking import RankingUtility
from arena.utils.statistics import ScoreStatistics

logger = logging.getLogger(__name__)


class TournamentService(BaseService):
    """Service for tournament reads and statistics."""

    def __init__(self, session_factory, standings_service: Optional[StandingsService] = None):
        super().__init__(session_factory)
        self.standings_service = standings_service or StandingsService(session_factory)

    async def get_tournament_statistics(self, tournament_id: int) -> TournamentStatistics:
        """
        Compute full distribution statistics of a tournament's scores.

        Raises:
            TournamentNotFoundError: If the tournament does not exist
            ComputationFailure: If the tournament has no scores
        """
        async with self.get_session() as session:
            if await session.get(Tournament, tournament_id) is None:
                raise TournamentNotFoundError(tournament_id)

            result = await session.execute(
                select(Grading.score)
                .join(TournamentGrading, TournamentGrading.grading_id == Grading.id)
                .where(TournamentGrading.tournament_id == tournament_id)
                .order_by(TournamentGrading.position)
            )
            scores = result.scalars().all()

        logger.debug(f"Computing statistics for tournament {tournament_id} over {len(scores)} score(s)")
        return ScoreStatistics.summarize(scores)

    async def get_tournament(self, tournament_id: int,
                             limit_standings: int = StandingsConstants.DEFAULT_PODIUM_SIZE) -> TournamentSummary:
        """
        Get a tournament with its top standings.

        Raises:
            TournamentNotFoundError: If the tournament does not exist
        """
        async with self.get_session() as session:
            tournament = await self._load_tournament(session, tournament_id)
            if tournament is None:
                raise TournamentNotFoundError(tournament_id)
            record = await self._to_record(session, tournament)

        standings = await self.standings_service.get_standings(tournament_id, limit=limit_standings)
        return TournamentSummary(tournament=record, standings=standings)

    async def list_tournaments(
        self,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
        limit: Optional[int] = None,
        skip: int = 0,
        limit_standings: int = StandingsConstants.DEFAULT_PODIUM_SIZE,
        game_id: Optional[int] = None
    ) -> List[TournamentSummary]:
        """
        List tournaments newest first, each with its top standings.

        Args:
            from_date: Only tournaments created at or after this time
            to_date: Only tournaments created at or before this time
            limit: Maximum number of tournaments, None for all
            skip: Number of tournaments to skip
            limit_standings: Standings attached to each tournament
            game_id: Only tournaments of this game
        """
        RankingUtility.validate_paging(limit, skip)

        async with self.get_session() as session:
            query = select(Tournament).options(selectinload(Tournament.disqualifications))
            if from_date is not None:
                query = query.where(Tournament.created_at >= from_date)
            if to_date is not None:
                query = query.where(Tournament.created_at <= to_date)
            if game_id is not None:
                query = query.where(Tournament.game_id == game_id)
            query = query.order_by(Tournament.created_at.desc(), Tournament.id.desc()).offset(skip)
            if limit is not None:
                query = query.limit(limit)

            tournaments = (await session.execute(query)).scalars().all()
            records = [await self._to_record(session, tournament) for tournament in tournaments]

        summaries = []
        for record in records:
            standings = await self.standings_service.get_standings(record.id, limit=limit_standings)
            summaries.append(TournamentSummary(tournament=record, standings=standings))
        return summaries

    async def get_tournament_gradings(self, tournament_id: int) -> List[GradingRecord]:
        """Get the gradings of a tournament in tournament order."""
        async with self.get_session() as session:
            if await session.get(Tournament, tournament_id) is None:
                raise TournamentNotFoundError(tournament_id)
            result = await session.execute(
                select(Grading)
                .join(TournamentGrading, TournamentGrading.grading_id == Grading.id)
                .where(TournamentGrading.tournament_id == tournament_id)
                .order_by(TournamentGrading.position)
            )
            return [to_grading_record(grading) for grading in result.scalars()]

    async def validate_tournament(self, tournament_id: int) -> List[str]:
        """
        Check a persisted tournament against its invariants.

        Returns:
            Human-readable violations, empty when the tournament is sound
        """
        async with self.get_session() as session:
            tournament = await self._load_tournament(session, tournament_id)
            if tournament is None:
                raise TournamentNotFoundError(tournament_id)

            result = await session.execute(
                select(Grading.id, Submission.id.label('submission_id'), Submission.user_id)
                .join(TournamentGrading, TournamentGrading.grading_id == Grading.id)
                .outerjoin(Submission, Submission.id == Grading.submission_id)
                .where(TournamentGrading.tournament_id == tournament_id)
            )
            rows = result.all()
            disqualified_ids = {row.submission_id for row in tournament.disqualifications}

        violations = []
        if not rows:
            violations.append("tournament references no gradings")

        submission_counts = Counter(row.submission_id for row in rows if row.submission_id is not None)
        for submission_id, count in sorted(submission_counts.items()):
            if count > 1:
                violations.append(f"submission {submission_id} is graded {count} times")
            if submission_id in disqualified_ids:
                violations.append(f"submission {submission_id} is both graded and disqualified")

        user_counts = Counter(row.user_id for row in rows if row.user_id is not None)
        for user_id, count in sorted(user_counts.items()):
            if count > 1:
                violations.append(f"user {user_id} has {count} graded submissions")

        for row in rows:
            if row.submission_id is None:
                violations.append(f"grading {row.id} references a missing submission")

        if violations:
            logger.warning(f"Tournament {tournament_id} failed validation: {violations}")
        return violations

    @staticmethod
    async def _load_tournament(session: AsyncSession, tournament_id: int) -> Optional[Tournament]:
        result = await session.execute(
            select(Tournament)
            .options(selectinload(Tournament.disqualifications))
            .where(Tournament.id == tournament_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def _to_record(session: AsyncSession, tournament: Tournament) -> TournamentRecord:
        result = await session.execute(
            select(TournamentGrading.grading_id)
            .where(TournamentGrading.tournament_id == tournament.id)
            .order_by(TournamentGrading.position)
        )
        return to_tournament_record(tournament, result.scalars().all(), tournament.disqualifications)
