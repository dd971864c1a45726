import math
from collections import Counter
from typing import Iterable, List, Optional, Sequence, Tuple

from arena.constants import StatisticsConstants
from arena.data_models.statistics import (
    CentralTendency, Dispersion, Distribution, Extrema, Percentiles,
    TournamentStatistics, TukeyCriteria
)
from arena.utils.exceptions import ComputationFailure, ValidationFailure

class ScoreStatistics:
    """Descriptive statistics over a sequence of raw scores (sample statistics)"""

    @staticmethod
    def sort_scores(scores: Iterable[float]) -> List[float]:
        """Numeric ascending sort (stable)"""
        return sorted((float(score) for score in scores))

    @staticmethod
    def mean(scores: Sequence[float]) -> float:
        """
        Arithmetic average of the scores

        Raises:
            ComputationFailure: If the sequence is empty
        """
        if len(scores) == 0:
            raise ComputationFailure("mean of an empty score set is undefined")
        return math.fsum(scores) / len(scores)

    @staticmethod
    def harmonic_mean(scores: Sequence[float]) -> Optional[float]:
        """
        Harmonic mean of the scores

        Returns:
            None if the sequence is empty or any score is zero
        """
        if len(scores) == 0 or any(score == 0 for score in scores):
            return None
        return len(scores) / math.fsum(1 / score for score in scores)

    @staticmethod
    def mode(scores: Sequence[float]) -> Tuple[float, ...]:
        """All values sharing the highest frequency, ascending"""
        if len(scores) == 0:
            return ()
        counts = Counter(scores)
        highest = max(counts.values())
        return tuple(sorted(value for value, count in counts.items() if count == highest))

    @staticmethod
    def variance(scores: Sequence[float]) -> float:
        """Bessel-corrected sample variance, 0 when there are fewer than two scores"""
        n = len(scores)
        if n <= 1:
            return 0.0
        mean = ScoreStatistics.mean(scores)
        return math.fsum((score - mean) ** 2 for score in scores) / (n - 1)

    @staticmethod
    def standard_deviation(scores: Sequence[float]) -> float:
        return math.sqrt(ScoreStatistics.variance(scores))

    @staticmethod
    def skewness(scores: Sequence[float]) -> Optional[float]:
        """
        Adjusted Fisher-Pearson standardized third moment

        Returns:
            None unless there are more than two scores with nonzero spread
        """
        n = len(scores)
        if n <= 2:
            return None
        stddev = ScoreStatistics.standard_deviation(scores)
        if stddev == 0:
            return None
        mean = ScoreStatistics.mean(scores)
        cubed = math.fsum(((score - mean) / stddev) ** 3 for score in scores)
        return n / ((n - 1) * (n - 2)) * cubed

    @staticmethod
    def kurtosis(scores: Sequence[float]) -> Optional[float]:
        """
        Sample excess kurtosis

        Returns:
            None unless there are more than three scores with nonzero spread
        """
        n = len(scores)
        if n <= 3:
            return None
        stddev = ScoreStatistics.standard_deviation(scores)
        if stddev == 0:
            return None
        mean = ScoreStatistics.mean(scores)
        fourth = math.fsum(((score - mean) / stddev) ** 4 for score in scores)
        correction = 3 * (n - 1) ** 2 / ((n - 2) * (n - 3))
        return n * (n + 1) / ((n - 1) * (n - 2) * (n - 3)) * fourth - correction

    @staticmethod
    def percentile(sorted_scores: Sequence[float], p: float) -> float:
        """
        Linear-interpolation percentile of ascending scores

        Args:
            sorted_scores: Scores sorted ascending
            p: Fraction between 0 and 1

        Returns:
            The element at rank p*(n-1), interpolated when the rank is fractional
        """
        if not 0 <= p <= 1:
            raise ValidationFailure(f"percentile fraction {p} outside [0, 1]")
        n = len(sorted_scores)
        if n == 0:
            raise ComputationFailure("percentile of an empty score set is undefined")

        rank = p * (n - 1)
        lower = math.floor(rank)
        upper = math.ceil(rank)
        if lower == upper:
            return float(sorted_scores[lower])
        weight = rank - lower
        return sorted_scores[lower] + (sorted_scores[upper] - sorted_scores[lower]) * weight

    @staticmethod
    def interquartile_range(sorted_scores: Sequence[float]) -> float:
        return (ScoreStatistics.percentile(sorted_scores, 0.75)
                - ScoreStatistics.percentile(sorted_scores, 0.25))

    @staticmethod
    def tukey_bounds(sorted_scores: Sequence[float]) -> Tuple[float, float]:
        """Outlier fences [Q1 - 1.5*IQR, Q3 + 1.5*IQR]"""
        q1 = ScoreStatistics.percentile(sorted_scores, 0.25)
        q3 = ScoreStatistics.percentile(sorted_scores, 0.75)
        fence = StatisticsConstants.TUKEY_FENCE * (q3 - q1)
        return q1 - fence, q3 + fence

    @staticmethod
    def outliers(sorted_scores: Sequence[float]) -> List[float]:
        """Scores strictly outside the Tukey bounds, ascending"""
        lower, upper = ScoreStatistics.tukey_bounds(sorted_scores)
        return [score for score in sorted_scores if score < lower or score > upper]

    @staticmethod
    def z_value(score: float, mean: float, stddev: float) -> float:
        """Standard score, 0 when the field has no spread"""
        if stddev == 0:
            return 0.0
        return (score - mean) / stddev

    @staticmethod
    def normalized_score(score: float, minimum: float, maximum: float) -> float:
        """Score scaled to [-1, 1] over the field's range, 0 when the range is empty"""
        if maximum == minimum:
            return 0.0
        return 2 * (score - minimum) / (maximum - minimum) - 1

    @staticmethod
    def summarize(scores: Iterable[float]) -> TournamentStatistics:
        """
        Compute the full statistics package for a score set

        Raises:
            ComputationFailure: If there are no scores
        """
        sorted_scores = ScoreStatistics.sort_scores(scores)
        if not sorted_scores:
            raise ComputationFailure("no scores to summarize")

        variance = ScoreStatistics.variance(sorted_scores)
        lower, upper = ScoreStatistics.tukey_bounds(sorted_scores)
        percentiles = {
            label: ScoreStatistics.percentile(sorted_scores, fraction)
            for label, fraction in StatisticsConstants.REPORTED_PERCENTILES
        }
        minimum, maximum = sorted_scores[0], sorted_scores[-1]

        return TournamentStatistics(
            sample_size=len(sorted_scores),
            central_tendency=CentralTendency(
                arithmetic_mean=ScoreStatistics.mean(sorted_scores),
                harmonic_mean=ScoreStatistics.harmonic_mean(sorted_scores),
                mode=ScoreStatistics.mode(sorted_scores),
            ),
            dispersion=Dispersion(
                variance=variance,
                standard_deviation=math.sqrt(variance),
                interquartile_range=ScoreStatistics.interquartile_range(sorted_scores),
            ),
            distribution=Distribution(
                skewness=ScoreStatistics.skewness(sorted_scores),
                kurtosis=ScoreStatistics.kurtosis(sorted_scores),
            ),
            percentiles=Percentiles(**percentiles),
            extrema=Extrema(minimum=minimum, maximum=maximum, range=maximum - minimum),
            tukey_criteria=TukeyCriteria(lower_bound=lower, upper_bound=upper),
            outlier_values=tuple(score for score in sorted_scores if score < lower or score > upper),
        )
