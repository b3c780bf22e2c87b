"""Deterministic screening provider."""

from .provider import MockCalls, MockOutcome, MockScreeningProvider

__all__ = ["MockCalls", "MockOutcome", "MockScreeningProvider"]
