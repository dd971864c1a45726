"""
Grading record builder for tournament runs.

Turns the raw (submission, score) results of one tournament run into
immutable Grading rows enriched with z-value, placement and percentile rank,
and persists them together with the Tournament that references them.

Key guarantees:
- Disqualified submissions never receive a grading
- Placement is a dense rank over unique scores, ties share a placement
- Percentile rank uses cumulative frequencies (share of the field at or below)
- Gradings, tournament, memberships and disqualifications commit as one unit
- A "tournament created" event is published only after the commit
"""

import asyncio
from typing import Any, Dict, List, Optional, Sequence
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from arena.constants import EventNames
from arena.data_models.grading import (
    DisqualificationEntry, GradingEntry, parse_batch, parse_disqualifications,
    require_finite_number, require_id
)
from arena.data_models.standings import TournamentRecord
from arena.database.models import (
    Disqualification, Game, Grading, Submission, Tournament, TournamentGrading
)
from arena.services.base import BaseService
from arena.services.notifications import EventSink, NullEventSink
from arena.services.records import to_tournament_record
from arena.utils.exceptions import ArenaException, IntegrityFailure, ValidationFailure
from arena.utils.logger import setup_logger
from arena.utils.ranking import RankingUtility
from arena.utils.statistics import ScoreStatistics

logger = setup_logger(__name__)


class GradingService(BaseService):
    """Builds gradings and tournaments from raw tournament results."""

    def __init__(self, session_factory, event_sink: Optional[EventSink] = None):
        super().__init__(session_factory)
        self.event_sink = event_sink or NullEventSink()
        # Pending notification tasks
        self._background_tasks: set = set()

    async def build_gradings_and_tournament(
        self,
        batch: Any,
        disqualified: Any,
        total_execution_time_ms: Any,
        game_id: Any
    ) -> Optional[TournamentRecord]:
        """
        Persist the gradings and tournament of one run.

        Failures are logged and reported as None so callers can answer with a
        generic "invalid data" response. Nothing is persisted on failure.

        Returns:
            The created tournament, or None if the results were rejected
        """
        try:
            return await self.create_tournament(batch, disqualified, total_execution_time_ms, game_id)
        except ArenaException as e:
            logger.warning(f"Rejected tournament results for game {game_id}: {e}")
            return None
        except SQLAlchemyError as e:
            logger.error(f"Failed to persist tournament results for game {game_id}: {e}", exc_info=True)
            return None

    async def create_tournament(
        self,
        batch: Any,
        disqualified: Any,
        total_execution_time_ms: Any,
        game_id: Any
    ) -> TournamentRecord:
        """
        Strict variant of build_gradings_and_tournament.

        Raises:
            ValidationFailure: Malformed input
            IntegrityFailure: Unknown records or a broken tournament invariant
        """
        entries = parse_batch(batch)
        disqualifications = parse_disqualifications(disqualified)
        execution_time = self._validate_execution_time(total_execution_time_ms)
        game_id = require_id(game_id, "game_id")

        self._check_unique_submissions(entries, disqualifications)

        async with self.get_session() as session:
            if await session.get(Game, game_id) is None:
                raise IntegrityFailure(f"game {game_id} does not exist")

            disqualified_ids = {entry.submission_id for entry in disqualifications}
            graded = [entry for entry in entries if entry.submission_id not in disqualified_ids]
            excluded = len(entries) - len(graded)
            if excluded:
                logger.info(f"Excluded {excluded} disqualified result(s) from grading")

            submissions = await self._load_submissions(
                session, {entry.submission_id for entry in entries} | disqualified_ids
            )

            missing_disqualified = sorted(disqualified_ids - submissions.keys())
            if missing_disqualified:
                raise IntegrityFailure(f"disqualified submissions do not exist: {missing_disqualified}")

            resolved = [entry for entry in graded if entry.submission_id in submissions]
            if len(resolved) != len(graded):
                dropped = sorted({entry.submission_id for entry in graded} - submissions.keys())
                logger.warning(f"Dropping results for unknown submissions: {dropped}")
            if not resolved:
                raise IntegrityFailure("tournament must reference at least one grading")

            self._check_eligibility(resolved, submissions, game_id)

            gradings = self.enrich_entries(resolved, submissions)
            session.add_all(gradings)
            await session.flush()

            results_by_submission = {entry.submission_id: entry for entry in entries}
            tournament = Tournament(game_id=game_id, tournament_execution_time=execution_time)
            tournament.grading_links = [
                TournamentGrading(grading_id=grading.id, position=position)
                for position, grading in enumerate(gradings)
            ]
            tournament.disqualifications = [
                self._build_disqualification(entry, results_by_submission.get(entry.submission_id))
                for entry in disqualifications
            ]
            session.add(tournament)
            await session.flush()
            await session.refresh(tournament, ['created_at'])

            record = to_tournament_record(
                tournament, [grading.id for grading in gradings], tournament.disqualifications
            )

        logger.info(
            f"Created tournament {record.id} for game {game_id}: "
            f"{len(record.grading_ids)} grading(s), {len(record.disqualified)} disqualification(s)"
        )
        self._notify_tournament_created(record)
        return record

    @staticmethod
    def enrich_entries(entries: Sequence[GradingEntry], submissions: Dict[int, Submission]) -> List[Grading]:
        """
        Build unsaved Grading rows for a batch of results.

        z-value, placement and percentile rank are computed over the scores of
        this batch only.
        """
        scores = [entry.score for entry in entries]
        field_size = len(scores)
        mean = ScoreStatistics.mean(scores)
        stddev = ScoreStatistics.standard_deviation(scores)
        placements = RankingUtility.placement_map(scores)
        cumulative_counts = RankingUtility.cumulative_count_map(scores)

        return [
            Grading(
                submission_id=entry.submission_id,
                score=entry.score,
                z_value=ScoreStatistics.z_value(entry.score, mean, stddev),
                placement=placements[entry.score],
                percentile_rank=RankingUtility.percentile_rank(entry.score, cumulative_counts, field_size),
                token_count=submissions[entry.submission_id].token_count,
                avg_execution_time=entry.avg_execution_time,
            )
            for entry in entries
        ]

    @staticmethod
    def _validate_execution_time(total_execution_time_ms: Any) -> float:
        execution_time = require_finite_number(total_execution_time_ms, "total execution time")
        if execution_time < 0:
            raise ValidationFailure("total execution time cannot be negative")
        return execution_time

    @staticmethod
    def _check_unique_submissions(entries: Sequence[GradingEntry],
                                  disqualifications: Sequence[DisqualificationEntry]):
        graded_ids = [entry.submission_id for entry in entries]
        if len(graded_ids) != len(set(graded_ids)):
            raise IntegrityFailure("all gradings must be from different submissions")

        disqualified_ids = [entry.submission_id for entry in disqualifications]
        if len(disqualified_ids) != len(set(disqualified_ids)):
            raise IntegrityFailure("disqualified submissions must be unique")

    @staticmethod
    def _check_eligibility(entries: Sequence[GradingEntry], submissions: Dict[int, Submission], game_id: int):
        seen_users = {}
        for entry in entries:
            submission = submissions[entry.submission_id]
            if not submission.is_eligible:
                raise IntegrityFailure(
                    f"submission {submission.id} is not active with a passed evaluation"
                )
            if submission.game_id != game_id:
                raise IntegrityFailure(
                    f"submission {submission.id} belongs to game {submission.game_id}, not {game_id}"
                )
            if submission.user_id in seen_users:
                raise IntegrityFailure(
                    f"submissions {seen_users[submission.user_id]} and {submission.id} "
                    f"belong to the same user {submission.user_id}"
                )
            seen_users[submission.user_id] = submission.id

    @staticmethod
    def _build_disqualification(entry: DisqualificationEntry, result: Optional[GradingEntry]) -> Disqualification:
        return Disqualification(
            submission_id=entry.submission_id,
            reason=entry.reason,
            score=result.score if result else None,
            avg_execution_time=result.avg_execution_time if result else None,
        )

    @staticmethod
    async def _load_submissions(session: AsyncSession, submission_ids) -> Dict[int, Submission]:
        if not submission_ids:
            return {}
        result = await session.execute(select(Submission).where(Submission.id.in_(sorted(submission_ids))))
        return {submission.id: submission for submission in result.scalars()}

    def _notify_tournament_created(self, record: TournamentRecord):
        """Publish the event in the background, the caller never waits on it."""
        task = asyncio.create_task(
            self.event_sink.publish(EventNames.TOURNAMENT_CREATED, record.to_dict())
        )
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def cleanup(self):
        """Wait for pending notifications before shutdown."""
        if self._background_tasks:
            logger.info(f"Waiting for {len(self._background_tasks)} pending notification(s)...")
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
            self._background_tasks.clear()
