"""
Scoring Module.

Multi-factor ranking and rule-based explanations for feed candidates.

Quick start::

    from scoring import Ranker, RankingContext, ExplanationGenerator

    ranked = Ranker().rank_candidates(items, RankingContext(budget_max=150))
    explanation = ExplanationGenerator().generate(ranked[0], history)
"""

from scoring.explanations import ExplanationGenerator, top_user_tags
from scoring.ranker import Ranker, RankingContext

__all__ = [
    "ExplanationGenerator",
    "Ranker",
    "RankingContext",
    "top_user_tags",
]
