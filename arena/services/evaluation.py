"""
Client for the external code-evaluation service.

The evaluation service runs a candidate strategy against the other
submissions and reports timings and scores. Any failure to obtain a usable
report (timeout, connection error, HTTP error, malformed payload) is returned
as None and treated by callers as "did not pass", never raised.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from arena.config import Config
from arena.constants import StatisticsConstants

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EvaluationResults:
    """Report returned by the evaluation service for one candidate."""
    candidate_score: Optional[float]
    average_score: Optional[float]
    disqualified: Optional[str]
    strategy_loading_timings: float
    strategy_execution_timings: List[float] = field(default_factory=list)

    @property
    def has_results(self) -> bool:
        return self.candidate_score is not None

    @property
    def average_execution_time(self) -> Optional[float]:
        if not self.strategy_execution_timings:
            return None
        return math.fsum(self.strategy_execution_timings) / len(self.strategy_execution_timings)

    def execution_time_percentile(self, fraction: float = StatisticsConstants.EXECUTION_TIMING_PERCENTILE) -> Optional[float]:
        """Execution timing at the given fraction of the numerically sorted timings"""
        if not self.strategy_execution_timings:
            return None
        timings = sorted(self.strategy_execution_timings)
        return timings[min(math.floor(len(timings) * fraction), len(timings) - 1)]

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> 'EvaluationResults':
        """
        Build results from the service's JSON payload.

        Raises:
            ValueError: If the payload does not have the expected shape
        """
        if not isinstance(payload, dict):
            raise ValueError("evaluation payload must be an object")

        results = payload.get('results')
        if results is not None and not isinstance(results, dict):
            raise ValueError("'results' must be an object")

        timings = payload.get('strategyExecutionTimings') or []
        if not isinstance(timings, list):
            raise ValueError("'strategyExecutionTimings' must be an array")

        return cls(
            candidate_score=float(results['candidate']) if results and results.get('candidate') is not None else None,
            average_score=float(results['average']) if results and results.get('average') is not None else None,
            disqualified=payload.get('disqualified'),
            strategy_loading_timings=float(payload.get('strategyLoadingTimings') or 0),
            strategy_execution_timings=[float(timing) for timing in timings],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'candidate_score': self.candidate_score,
            'average_score': self.average_score,
            'disqualified': self.disqualified,
            'strategy_loading_timings': self.strategy_loading_timings,
            'strategy_execution_timings': list(self.strategy_execution_timings),
            'average_execution_time': self.average_execution_time,
        }


class EvaluationClient:
    """HTTP client for the evaluation microservice."""

    def __init__(self, host: Optional[str] = None, authorization: Optional[str] = None,
                 timeout: Optional[float] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.host = host or Config.CODE_RUNNER_HOST
        self.authorization = authorization if authorization is not None else Config.MICROSERVICE_AUTHORIZATION
        self.timeout = timeout or Config.EVALUATION_TIMEOUT
        self.transport = transport

    @property
    def endpoint(self) -> str:
        return f"http://{self.host}/api/v1/evaluate-submission"

    async def evaluate(self, candidate: Dict[str, Any], others: List[Dict[str, Any]]) -> Optional[EvaluationResults]:
        """
        Submit a candidate for evaluation.

        Args:
            candidate: Serialized candidate submission
            others: Serialized opponent submissions

        Returns:
            The evaluation results, or None if the service could not deliver them
        """
        headers = {'Authorization': f"Bearer {self.authorization}"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    self.endpoint,
                    json={'candidateSubmission': candidate, 'otherSubmissions': others},
                    headers=headers
                )
                response.raise_for_status()
                payload = response.json()
        except httpx.TimeoutException as e:
            logger.error(f"Evaluation of submission {candidate.get('id')} timed out after {self.timeout}s: {e}")
            return None
        except httpx.HTTPStatusError as e:
            logger.error(f"Evaluation service returned {e.response.status_code} for submission {candidate.get('id')}")
            return None
        except httpx.HTTPError as e:
            logger.error(f"Error submitting code for evaluation: {e}")
            return None
        except ValueError as e:
            logger.error(f"Evaluation service returned invalid JSON: {e}")
            return None

        if isinstance(payload, dict) and payload.get('error'):
            logger.error(f"Evaluation service reported an error: {payload['error']}")
            return None

        try:
            return EvaluationResults.from_payload(payload)
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Malformed evaluation payload for submission {candidate.get('id')}: {e}")
            return None
