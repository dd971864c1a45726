import itertools
import os

# Keep test runs from writing log files
os.environ.setdefault('LOG_TO_FILE', 'false')

import pytest
import pytest_asyncio

from arena.database.database import Database
from arena.services.grading import GradingService
from arena.services.notifications import EventSink
from arena.services.standings import StandingsService
from arena.services.tournament import TournamentService


class RecordingEventSink(EventSink):
    """Keeps published events in memory."""

    def __init__(self):
        self.events = []

    async def _deliver(self, event_name, payload):
        self.events.append((event_name, payload))


@pytest_asyncio.fixture
async def db(tmp_path):
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'arena_test.db'}")
    await database.initialize()
    yield database
    await database.close()


@pytest_asyncio.fixture
async def game(db):
    return await db.create_game("Rock Paper Scissors", summary="Best of 100 rounds")


@pytest.fixture
def make_entrant(db, game):
    """Factory creating a fresh user with one submission."""
    counter = itertools.count(1)

    async def _make(code="return 'rock';", active=True, passed=True, game_id=None, user_id=None):
        n = next(counter)
        if user_id is None:
            user = await db.create_user(f"player{n}", f"player{n}@example.com")
            user_id = user.id
        return await db.create_submission(
            user_id,
            game_id or game.id,
            f"Strategy {n}",
            code,
            active=active,
            passed_evaluation=passed
        )

    return _make


@pytest.fixture
def sink():
    return RecordingEventSink()


@pytest_asyncio.fixture
async def grading_service(db, sink):
    service = GradingService(db.session_factory, event_sink=sink)
    yield service
    await service.cleanup()


@pytest.fixture
def standings_service(db):
    return StandingsService(db.session_factory)


@pytest.fixture
def tournament_service(db):
    return TournamentService(db.session_factory)


@pytest.fixture
def run_tournament(grading_service, game):
    """Persist a tournament from (submission, score) pairs."""

    async def _run(results, disqualified=None, execution_time=1500, game_id=None):
        batch = [
            {'submission_id': submission.id, 'score': score}
            for submission, score in results
        ]
        return await grading_service.create_tournament(
            batch, disqualified, execution_time, game_id or game.id
        )

    return _run
