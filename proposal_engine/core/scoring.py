"""
Opportunity and combined scoring used to rank strategies in the final proposal.

The opportunity score weights impact (30%), complexity (15%, inverted), timeframe
(10%), pain point relevance (15%) and business challenge relevance (20%), and adds
a flat 10 point bonus for true quick wins. The result is not clamped, so a quick
win with strong relevance scores can exceed 100.
"""
from typing import List, Optional

from proposal_engine.core.models import RelevanceJudgment, Strategy

IMPACT_SCORES = {
    'High': 100,
    'Medium': 60,
    'Low': 20
}

# Lower complexity is better
COMPLEXITY_SCORES = {
    'High': 20,
    'Medium': 60,
    'Low': 100
}

# Shorter timeframe is better
TIMEFRAME_SCORES = {
    'Short-term': 100,
    'Medium-term': 60,
    'Long-term': 20
}

QUICK_WIN_BONUS = 10
QUICK_WIN_CUTOFF = 80


def relevance_score(relevances: Optional[List[RelevanceJudgment]]) -> float:
    """Mean of the top three relevance scores (0-10) on a 0-100 scale, or 0 if none."""
    if not relevances:
        return 0
    top_relevances = relevances[:3]
    return (sum(r.relevance_score for r in top_relevances) / len(top_relevances)) * 10


def calculate_opportunity_score(strategy: Strategy) -> float:
    impact_score = IMPACT_SCORES.get(strategy.impact, 0)
    complexity_score = COMPLEXITY_SCORES.get(strategy.complexity, 0)
    timeframe_score = TIMEFRAME_SCORES.get(strategy.timeframe, 0)

    pain_point_relevance_score = relevance_score(getattr(strategy, 'pain_point_relevances', None))
    business_challenge_relevance_score = relevance_score(getattr(strategy, 'business_challenge_relevances', None))

    quick_win_bonus = 0
    if impact_score > QUICK_WIN_CUTOFF and complexity_score > QUICK_WIN_CUTOFF and timeframe_score > QUICK_WIN_CUTOFF:
        quick_win_bonus = QUICK_WIN_BONUS

    return ((impact_score * 0.30) +
            (complexity_score * 0.15) +
            (timeframe_score * 0.10) +
            (pain_point_relevance_score * 0.15) +
            (business_challenge_relevance_score * 0.20) +
            quick_win_bonus)


def calculate_combined_score(strategy: Strategy) -> float:
    """60% feasibility, 40% opportunity. A missing feasibility score counts as 0."""
    opportunity_score = calculate_opportunity_score(strategy)
    feasibility_score = getattr(strategy, 'feasibility_score', None) or 0
    return (feasibility_score * 0.6) + (opportunity_score * 0.4)


def display_score(score: float) -> int:
    """Score rounded and capped at 100 for presentation; stored scores stay uncapped."""
    return int(round(min(100, max(0, score))))
