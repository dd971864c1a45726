"""
Statistics data models for tournament score distributions.

Provides immutable data transfer objects for the full descriptive statistics
of a tournament's scores.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class CentralTendency:
    """Location of the score distribution."""
    arithmetic_mean: float
    harmonic_mean: Optional[float]
    mode: Tuple[float, ...]


@dataclass(frozen=True)
class Dispersion:
    """Spread of the score distribution."""
    variance: float
    standard_deviation: float
    interquartile_range: float


@dataclass(frozen=True)
class Distribution:
    """Shape of the score distribution."""
    skewness: Optional[float]
    kurtosis: Optional[float]


@dataclass(frozen=True)
class Percentiles:
    p10: float
    p25: float
    p50: float
    p75: float
    p90: float


@dataclass(frozen=True)
class Extrema:
    minimum: float
    maximum: float
    range: float


@dataclass(frozen=True)
class TukeyCriteria:
    lower_bound: float
    upper_bound: float


@dataclass(frozen=True)
class TournamentStatistics:
    """Full statistics for one tournament, recomputed on demand."""
    sample_size: int
    central_tendency: CentralTendency
    dispersion: Dispersion
    distribution: Distribution
    percentiles: Percentiles
    extrema: Extrema
    tukey_criteria: TukeyCriteria
    outlier_values: Tuple[float, ...]

    def to_dict(self) -> Dict[str, Any]:
        """Plain dict form with lists instead of tuples."""
        data = asdict(self)
        data['central_tendency']['mode'] = list(self.central_tendency.mode)
        data['outlier_values'] = list(self.outlier_values)
        return data
