"""Test fixtures for AllergyCare."""

from tests.fixtures.mocks import MockAdvisorySummarizer

__all__ = [
    "MockAdvisorySummarizer",
]
