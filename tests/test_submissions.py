import pytest

from arena.services.submissions import SubmissionService
from arena.utils.exceptions import (
    ForbiddenError, IntegrityFailure, SubmissionNotFoundError, ValidationFailure
)

STRATEGY = "function play(history) {\n  // mirror the opponent\n  return history.at(-1) ?? 'rock';\n}\n"


@pytest.fixture
def submission_service(db):
    return SubmissionService(db.session_factory)


@pytest.fixture
async def user(db):
    return await db.create_user("alice", "Alice@Example.com")


async def test_create_submission_starts_inactive(submission_service, user, game):
    submission = await submission_service.create_submission(user.id, game.id, "Mirror", STRATEGY)

    assert submission.id is not None
    assert submission.active is False
    assert submission.passed_evaluation is None
    assert submission.is_eligible is False
    assert submission.lines_of_code == 3
    assert submission.token_count > 0


async def test_user_email_is_normalized(user):
    assert user.email == "alice@example.com"


@pytest.mark.parametrize("title,code", [
    ("", STRATEGY),
    ("x" * 101, STRATEGY),
    ("Mirror", "   "),
    ("Mirror", "x" * 10001),
])
async def test_create_submission_validates_fields(submission_service, user, game, title, code):
    with pytest.raises(ValidationFailure):
        await submission_service.create_submission(user.id, game.id, title, code)


async def test_create_submission_requires_user_and_game(submission_service, user, game):
    with pytest.raises(IntegrityFailure):
        await submission_service.create_submission(9999, game.id, "Mirror", STRATEGY)
    with pytest.raises(IntegrityFailure):
        await submission_service.create_submission(user.id, 9999, "Mirror", STRATEGY)


async def test_only_one_active_submission_per_game(db, submission_service, user, game):
    first = await submission_service.create_submission(user.id, game.id, "First", STRATEGY)
    second = await submission_service.create_submission(user.id, game.id, "Second", STRATEGY)

    await submission_service.update_submission(first.id, user.id, active=True)
    with pytest.raises(IntegrityFailure):
        await submission_service.update_submission(second.id, user.id, active=True)

    await submission_service.update_submission(first.id, user.id, active=False)
    updated = await submission_service.update_submission(second.id, user.id, active=True)
    assert updated.active is True

    # A different game does not count against the limit
    other_game = await db.create_game("Prisoner's Dilemma")
    third = await submission_service.create_submission(user.id, other_game.id, "Third", STRATEGY)
    assert (await submission_service.update_submission(third.id, user.id, active=True)).active is True


async def test_code_change_resets_evaluation(db, make_entrant, submission_service):
    submission = await make_entrant(active=True, passed=True)

    renamed = await submission_service.update_submission(submission.id, submission.user_id, title="Renamed")
    assert renamed.title == "Renamed"
    assert renamed.passed_evaluation is True

    unchanged = await submission_service.update_submission(submission.id, submission.user_id, code=submission.code)
    assert unchanged.passed_evaluation is True

    edited = await submission_service.update_submission(submission.id, submission.user_id, code="return 'scissors';")
    assert edited.passed_evaluation is None
    assert edited.is_eligible is False
    assert (await db.get_submission(submission.id)).code == "return 'scissors';"


async def test_update_checks_ownership(make_entrant, submission_service):
    submission = await make_entrant()

    with pytest.raises(ForbiddenError):
        await submission_service.update_submission(submission.id, submission.user_id + 1, title="Mine now")
    with pytest.raises(SubmissionNotFoundError):
        await submission_service.update_submission(9999, submission.user_id, title="Ghost")
    with pytest.raises(ValidationFailure):
        await submission_service.update_submission(submission.id, submission.user_id, title="x" * 101)


async def test_get_eligible_submissions(db, make_entrant, submission_service, game):
    eligible = await make_entrant()
    await make_entrant(active=False)
    await make_entrant(passed=False)
    other_game = await db.create_game("Go")
    elsewhere = await make_entrant(game_id=other_game.id)

    assert [s.id for s in await submission_service.get_eligible_submissions(game.id)] == [eligible.id]
    assert [s.id for s in await submission_service.get_eligible_submissions()] == [eligible.id, elsewhere.id]


async def test_delete_cascades_to_gradings(db, make_entrant, run_tournament, submission_service):
    doomed, survivor = await make_entrant(), await make_entrant()
    dropout = await make_entrant()
    await run_tournament(
        [(doomed, 80), (survivor, 40)],
        disqualified=[{'submission_id': dropout.id, 'reason': 'crash'}]
    )
    await run_tournament([(doomed, 10)])
    assert await db.count_gradings() == 3

    with pytest.raises(ForbiddenError):
        await submission_service.delete_submission(doomed.id, survivor.user_id)

    await submission_service.delete_submission(doomed.id, doomed.user_id)
    await submission_service.delete_submission(dropout.id, dropout.user_id)

    assert await db.get_submission(doomed.id) is None
    assert await db.count_gradings() == 1
    assert await db.count_tournaments() == 2

    with pytest.raises(SubmissionNotFoundError):
        await submission_service.delete_submission(doomed.id, doomed.user_id)
