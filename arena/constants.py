"""
Arena-wide constants for the grading and standings engine.

This module contains the magic numbers used by the statistics and standings
code so the formulas read the same everywhere.
"""

class StatisticsConstants:
    """Constants related to score statistics."""

    # Tukey fence multiplier for outlier detection
    TUKEY_FENCE = 1.5

    # Percentiles reported in tournament statistics (label -> fraction)
    REPORTED_PERCENTILES = (
        ('p10', 0.10),
        ('p25', 0.25),
        ('p50', 0.50),
        ('p75', 0.75),
        ('p90', 0.90),
    )

    # Percentile of execution timings checked against the execution timeout
    EXECUTION_TIMING_PERCENTILE = 0.99

class StandingsConstants:
    """Constants for standings and tournament listings."""

    # Number of standings attached to a tournament summary
    DEFAULT_PODIUM_SIZE = 3

    # Upper bound for a single standings page
    MAX_PAGE_SIZE = 500

class EventNames:
    """Names of notification events published by the arena."""

    TOURNAMENT_CREATED = 'tournamentCreated'
