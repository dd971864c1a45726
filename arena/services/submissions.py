"""
Submission lifecycle service.

Handles creation, editing, deletion and evaluation of strategy submissions.
A submission takes part in tournaments only while it is active and has
passed its latest evaluation; a user has at most one active submission per
game.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from arena.config import Config
from arena.database.models import (
    Disqualification, Game, Grading, Submission, TournamentGrading, User
)
from arena.services.base import BaseService
from arena.services.evaluation import EvaluationClient, EvaluationResults
from arena.utils.exceptions import (
    ForbiddenError, IntegrityFailure, SubmissionNotFoundError, ValidationFailure
)

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 100
MAX_CODE_LENGTH = 10000


@dataclass(frozen=True)
class EvaluationOutcome:
    """Verdict of one evaluation request."""
    submission_id: int
    passed: bool
    results: Optional[EvaluationResults]
    execution_time_exceeded: bool = False
    loading_time_exceeded: bool = False

    @property
    def service_available(self) -> bool:
        return self.results is not None

    @property
    def disqualified(self) -> Optional[str]:
        return self.results.disqualified if self.results else None


class SubmissionService(BaseService):
    """Service for submission lifecycle and evaluation."""

    def __init__(self, session_factory, evaluation_client: Optional[EvaluationClient] = None):
        super().__init__(session_factory)
        self.evaluation_client = evaluation_client or EvaluationClient()

    async def create_submission(self, user_id: int, game_id: int, title: str, code: str) -> Submission:
        """Create an inactive submission with an unknown evaluation state."""
        self._validate_title(title)
        self._validate_code(code)

        async with self.get_session() as session:
            if await session.get(User, user_id) is None:
                raise IntegrityFailure(f"user {user_id} does not exist")
            if await session.get(Game, game_id) is None:
                raise IntegrityFailure(f"game {game_id} does not exist")

            submission = Submission(user_id=user_id, game_id=game_id, title=title, code=code, active=False)
            session.add(submission)
            await session.flush()
            await session.refresh(submission)

        logger.info(f"User {user_id} created submission {submission.id} for game {game_id}")
        return submission

    async def update_submission(
        self,
        submission_id: int,
        user_id: int,
        title: Optional[str] = None,
        code: Optional[str] = None,
        active: Optional[bool] = None
    ) -> Submission:
        """
        Update the owner's submission.

        Changing the code resets the evaluation state to unknown. Activating
        fails if the user already has another active submission for the game.
        """
        async with self.get_session() as session:
            submission = await self._get_owned_submission(session, submission_id, user_id)

            if title is not None:
                self._validate_title(title)
                submission.title = title
            if code is not None:
                self._validate_code(code)
                if code != submission.code:
                    submission.code = code
                    submission.passed_evaluation = None
                    submission.evaluation = None
            if active is not None:
                if active and not submission.active:
                    await self._ensure_no_other_active(session, submission)
                submission.active = bool(active)

            await session.flush()
            await session.refresh(submission)

        return submission

    async def delete_submission(self, submission_id: int, user_id: int) -> None:
        """
        Delete the owner's submission together with its gradings.

        Tournament memberships of the deleted gradings and disqualification
        rows naming the submission go with it.
        """
        async with self.get_session() as session:
            submission = await self._get_owned_submission(session, submission_id, user_id)

            grading_ids = select(Grading.id).where(Grading.submission_id == submission_id)
            await session.execute(
                delete(TournamentGrading).where(TournamentGrading.grading_id.in_(grading_ids))
            )
            deleted = await session.execute(delete(Grading).where(Grading.submission_id == submission_id))
            await session.execute(delete(Disqualification).where(Disqualification.submission_id == submission_id))
            await session.delete(submission)

        logger.info(f"Deleted submission {submission_id} and {deleted.rowcount} grading(s)")

    async def get_eligible_submissions(self, game_id: Optional[int] = None) -> List[Submission]:
        """Get submissions that are active and passed evaluation."""
        async with self.get_session() as session:
            query = select(Submission).where(
                Submission.active == True,
                Submission.passed_evaluation == True
            )
            if game_id is not None:
                query = query.where(Submission.game_id == game_id)
            result = await session.execute(query.order_by(Submission.id))
            return list(result.scalars().all())

    async def evaluate_submission(self, submission_id: int, user_id: int) -> EvaluationOutcome:
        """
        Evaluate the owner's submission with the external evaluation service.

        An unreachable or failing service counts as a failed evaluation. A
        submission that does not pass is deactivated.
        """
        async with self.get_session() as session:
            submission = await self._get_owned_submission(session, submission_id, user_id)
            candidate = self._serialize(submission)
            result = await session.execute(
                select(Submission).where(
                    Submission.game_id == submission.game_id,
                    Submission.id != submission.id,
                    Submission.active == True,
                    Submission.passed_evaluation == True
                ).order_by(Submission.id)
            )
            others = [self._serialize(other) for other in result.scalars()]

        # Network call happens outside any database transaction
        results = await self.evaluation_client.evaluate(candidate, others)
        outcome = self.classify(submission_id, results)

        async with self.get_session() as session:
            submission = await session.get(Submission, submission_id)
            if submission is None:
                raise SubmissionNotFoundError(submission_id)
            submission.passed_evaluation = outcome.passed
            submission.evaluation = {
                'passed': outcome.passed,
                'execution_time_exceeded': outcome.execution_time_exceeded,
                'loading_time_exceeded': outcome.loading_time_exceeded,
                'results': results.to_dict() if results else None,
            }
            if not outcome.passed and submission.active:
                submission.active = False
                logger.info(f"Deactivated submission {submission_id} after failed evaluation")

        logger.info(f"Submission {submission_id} evaluation: {'passed' if outcome.passed else 'failed'}")
        return outcome

    @staticmethod
    def classify(submission_id: int, results: Optional[EvaluationResults]) -> EvaluationOutcome:
        """
        Decide whether evaluation results pass.

        A submission passes when the service delivered results, it was not
        disqualified, loading time is within the loading timeout and the 99th
        percentile of execution timings is within the execution timeout.
        """
        if results is None:
            return EvaluationOutcome(submission_id=submission_id, passed=False, results=None)

        loading_time_exceeded = results.strategy_loading_timings > Config.STRATEGY_LOADING_TIMEOUT
        slowest = results.execution_time_percentile()
        execution_time_exceeded = slowest is not None and slowest > Config.STRATEGY_EXECUTION_TIMEOUT

        passed = (
            results.has_results
            and results.disqualified is None
            and not loading_time_exceeded
            and not execution_time_exceeded
        )
        return EvaluationOutcome(
            submission_id=submission_id,
            passed=passed,
            results=results,
            execution_time_exceeded=execution_time_exceeded,
            loading_time_exceeded=loading_time_exceeded,
        )

    @staticmethod
    def _serialize(submission: Submission) -> Dict[str, Any]:
        return {
            'id': submission.id,
            'user': submission.user_id,
            'title': submission.title,
            'code': submission.code,
        }

    @staticmethod
    def _validate_title(title: str):
        if not isinstance(title, str) or not title.strip():
            raise ValidationFailure("title is required")
        if len(title) > MAX_TITLE_LENGTH:
            raise ValidationFailure(f"title must be at most {MAX_TITLE_LENGTH} characters")

    @staticmethod
    def _validate_code(code: str):
        if not isinstance(code, str) or not code.strip():
            raise ValidationFailure("code is required")
        if len(code) > MAX_CODE_LENGTH:
            raise ValidationFailure(f"code must be at most {MAX_CODE_LENGTH} characters")

    @staticmethod
    async def _get_owned_submission(session: AsyncSession, submission_id: int, user_id: int) -> Submission:
        submission = await session.get(Submission, submission_id)
        if submission is None:
            raise SubmissionNotFoundError(submission_id)
        if submission.user_id != user_id:
            raise ForbiddenError(user_id, submission_id)
        return submission

    @staticmethod
    async def _ensure_no_other_active(session: AsyncSession, submission: Submission):
        result = await session.execute(
            select(Submission.id).where(
                Submission.user_id == submission.user_id,
                Submission.game_id == submission.game_id,
                Submission.active == True,
                Submission.id != submission.id
            )
        )
        other = result.scalars().first()
        if other is not None:
            raise IntegrityFailure(
                f"user {submission.user_id} already has active submission {other} for game {submission.game_id}"
            )
