"""Submission validation package."""

from ledger_engine.validation.validator import CandidateValidator

__all__ = ["CandidateValidator"]
