"""
Evaluation client and classification tests.

The evaluation service is replaced by an httpx.MockTransport so requests
never leave the process.
"""
import json

import httpx
import pytest

from arena.config import Config
from arena.services.evaluation import EvaluationClient, EvaluationResults
from arena.services.submissions import SubmissionService

PASSING_PAYLOAD = {
    'results': {'candidate': 61.5, 'average': 50},
    'disqualified': None,
    'strategyLoadingTimings': 12,
    'strategyExecutionTimings': [1, 2, 3],
}


def make_client(handler):
    return EvaluationClient(
        host='runner.test', authorization='secret', timeout=5,
        transport=httpx.MockTransport(handler)
    )


async def test_evaluate_posts_candidate_and_opponents():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json=PASSING_PAYLOAD)

    results = await make_client(handler).evaluate({'id': 1, 'code': 'x'}, [{'id': 2, 'code': 'y'}])

    request, = requests
    assert request.method == 'POST'
    assert str(request.url) == 'http://runner.test/api/v1/evaluate-submission'
    assert request.headers['Authorization'] == 'Bearer secret'
    assert json.loads(request.content) == {
        'candidateSubmission': {'id': 1, 'code': 'x'},
        'otherSubmissions': [{'id': 2, 'code': 'y'}],
    }

    assert results.candidate_score == 61.5
    assert results.average_score == 50.0
    assert results.disqualified is None
    assert results.strategy_execution_timings == [1.0, 2.0, 3.0]
    assert results.average_execution_time == pytest.approx(2.0)


@pytest.mark.parametrize("handler", [
    lambda request: httpx.Response(500, text="internal error"),
    lambda request: httpx.Response(200, content=b"<html>not json</html>"),
    lambda request: httpx.Response(200, json={'error': 'sandbox crashed'}),
    lambda request: httpx.Response(200, json={'results': 'nope'}),
    lambda request: httpx.Response(200, json={'strategyExecutionTimings': ['slow']}),
])
async def test_unusable_responses_yield_none(handler):
    assert await make_client(handler).evaluate({'id': 1}, []) is None


async def test_timeout_yields_none():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    assert await make_client(handler).evaluate({'id': 1}, []) is None


async def test_connection_error_yields_none():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    assert await make_client(handler).evaluate({'id': 1}, []) is None


def test_execution_percentile_sorts_numerically():
    results = EvaluationResults(
        candidate_score=1, average_score=1, disqualified=None,
        strategy_loading_timings=0, strategy_execution_timings=[10, 9, 100]
    )
    assert results.execution_time_percentile() == 100

    timings = [float(t) for t in range(200, 0, -1)]
    results = EvaluationResults(
        candidate_score=1, average_score=1, disqualified=None,
        strategy_loading_timings=0, strategy_execution_timings=timings
    )
    assert results.execution_time_percentile() == 199.0
    assert results.execution_time_percentile(0.5) == 101.0


def test_missing_timings():
    results = EvaluationResults.from_payload({'results': {'candidate': 3}})
    assert results.execution_time_percentile() is None
    assert results.average_execution_time is None
    assert results.average_score is None
    assert results.strategy_loading_timings == 0.0


def results_with(**overrides):
    payload = dict(PASSING_PAYLOAD, **overrides)
    return EvaluationResults.from_payload(payload)


def test_classify_passing_results():
    outcome = SubmissionService.classify(1, results_with())
    assert outcome.passed
    assert outcome.service_available
    assert not outcome.loading_time_exceeded
    assert not outcome.execution_time_exceeded


def test_classify_failures():
    slow_loading = SubmissionService.classify(1, results_with(
        strategyLoadingTimings=Config.STRATEGY_LOADING_TIMEOUT + 1
    ))
    assert not slow_loading.passed
    assert slow_loading.loading_time_exceeded

    slow_execution = SubmissionService.classify(1, results_with(
        strategyExecutionTimings=[1] * 50 + [Config.STRATEGY_EXECUTION_TIMEOUT * 3] * 2
    ))
    assert not slow_execution.passed
    assert slow_execution.execution_time_exceeded

    disqualified = SubmissionService.classify(1, results_with(disqualified='threw an exception'))
    assert not disqualified.passed
    assert disqualified.disqualified == 'threw an exception'

    no_results = SubmissionService.classify(1, results_with(results=None))
    assert not no_results.passed

    unavailable = SubmissionService.classify(1, None)
    assert not unavailable.passed
    assert not unavailable.service_available


def test_classify_tolerates_rare_slow_runs():
    outcome = SubmissionService.classify(1, results_with(
        strategyExecutionTimings=[1] * 199 + [Config.STRATEGY_EXECUTION_TIMEOUT * 10]
    ))
    assert outcome.passed


async def test_evaluate_submission_stores_verdict(db, make_entrant, game):
    rival = await make_entrant(code="return 'paper';")
    candidate = await make_entrant(active=True, passed=None)
    requests = []

    def handler(request):
        requests.append(json.loads(request.content))
        return httpx.Response(200, json=PASSING_PAYLOAD)

    service = SubmissionService(db.session_factory, evaluation_client=make_client(handler))
    outcome = await service.evaluate_submission(candidate.id, candidate.user_id)

    assert outcome.passed
    body, = requests
    assert body['candidateSubmission']['id'] == candidate.id
    assert [other['id'] for other in body['otherSubmissions']] == [rival.id]

    stored = await db.get_submission(candidate.id)
    assert stored.passed_evaluation is True
    assert stored.active is True
    assert stored.evaluation['passed'] is True
    assert stored.evaluation['results']['candidate_score'] == 61.5


async def test_failed_evaluation_deactivates(db, make_entrant):
    candidate = await make_entrant(active=True, passed=True)

    def handler(request):
        return httpx.Response(200, json=dict(PASSING_PAYLOAD, disqualified='infinite loop'))

    service = SubmissionService(db.session_factory, evaluation_client=make_client(handler))
    outcome = await service.evaluate_submission(candidate.id, candidate.user_id)

    assert not outcome.passed
    stored = await db.get_submission(candidate.id)
    assert stored.passed_evaluation is False
    assert stored.active is False
    assert stored.evaluation['results']['disqualified'] == 'infinite loop'


async def test_unreachable_service_counts_as_failure(db, make_entrant):
    candidate = await make_entrant(active=True, passed=True)

    def handler(request):
        return httpx.Response(503)

    service = SubmissionService(db.session_factory, evaluation_client=make_client(handler))
    outcome = await service.evaluate_submission(candidate.id, candidate.user_id)

    assert not outcome.passed
    assert not outcome.service_available
    stored = await db.get_submission(candidate.id)
    assert stored.passed_evaluation is False
    assert stored.active is False
    assert stored.evaluation['results'] is None
