"""
Service layer helpers that orchestrate the store and domain logic.
"""

from .mutual_availability import MutualAvailabilityService
from .patterns import PatternAnalyzer
from .suggestions import SuggestionRequest, SuggestionService

__all__ = [
    "MutualAvailabilityService",
    "PatternAnalyzer",
    "SuggestionRequest",
    "SuggestionService",
]
