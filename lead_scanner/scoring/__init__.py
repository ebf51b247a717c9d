"""Opportunity scoring."""

from .service import MAX_SCORE, OpportunityScorer, ScoreBreakdown

__all__ = ["OpportunityScorer", "ScoreBreakdown", "MAX_SCORE"]
