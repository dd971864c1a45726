"""
Services package for the strategy arena.

Each service owns one slice of the grading and standings engine and shares
the async session handling of BaseService.
"""

from .base import BaseService
from .grading import GradingService
from .standings import StandingsService
from .submissions import SubmissionService
from .tournament import TournamentService

__all__ = [
    'BaseService', 'GradingService', 'StandingsService',
    'SubmissionService', 'TournamentService',
]
