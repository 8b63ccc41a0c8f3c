"""
Modal screens for the query drafter.
"""
from .results_screen import ResultsScreen

__all__ = ["ResultsScreen"]
