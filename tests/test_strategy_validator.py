import pytest

from proposal_engine.agents.strategy_validator import (StrategyValidator, normalize_validation_scores,
                                                       validate_strategies_before_implementation)
from proposal_engine.core.exceptions import ResponseShapeError
from proposal_engine.core.models import PainPoint, Strategy, ValidatedStrategy


def _strategies():
    return [
        Strategy(id="s1", title="Support assistant", description="LLM chatbot answering customer questions",
                 impact="High", complexity="Low", timeframe="Short-term", category="conversation"),
        Strategy(id="s2", title="Report drafting", description="Language model drafting weekly reports",
                 category="content generation"),
    ]


def _entry(strategy_id, criteria, score=95, **extra):
    return {"id": strategy_id, "validation_criteria": criteria, "validation_score": score, **extra}


def test_score_is_sum_of_criteria_not_reported_total() -> None:
    score, criteria = normalize_validation_scores(_entry("s1", {
        "business_alignment": 20, "market_potential": 20, "industry_relevance": 20, "clarity": 20}, score=95))

    assert score == 80
    assert criteria.total() == 80


def test_criteria_are_clamped_and_missing_clarity_defaults() -> None:
    score, criteria = normalize_validation_scores(_entry("s1", {
        "businessAlignment": 40, "marketPotential": -5, "industryRelevance": 10}))

    assert (criteria.business_alignment, criteria.market_potential, criteria.clarity) == (25, 0, 20)
    assert score == 55


def test_reported_score_used_when_criteria_incomplete() -> None:
    score, _ = normalize_validation_scores(_entry("s1", {"business_alignment": "high"}, score=150))

    assert score == 100


def test_validate_strategies_applies_criteria_sum_and_revisions(fake_service) -> None:
    service = fake_service([{"validated_strategies": [
        _entry("s1", {"business_alignment": 20, "market_potential": 20, "industry_relevance": 20, "clarity": 20},
               title="Customer support assistant", impact="Low"),
        _entry("s2", {"business_alignment": 10, "market_potential": 10, "industry_relevance": 10, "clarity": 10},
               score=90),
    ]}])

    result = StrategyValidator(service).validate_strategies(_strategies(), "context", "Retail")

    s1, s2 = result.strategies
    assert s1.validation_score == 80
    assert s1.title == "Customer support assistant"
    assert s1.impact == "High"
    assert s2.validation_score == 40
    assert result.average_score == 60
    assert result.requires_feedback is True


def test_missing_strategy_gets_default_score(fake_service) -> None:
    service = fake_service([{"validated_strategies": [
        _entry("s1", {"business_alignment": 25, "market_potential": 25, "industry_relevance": 25, "clarity": 25}),
    ]}])

    result = StrategyValidator(service).validate_strategies(_strategies(), "context", "Retail")

    assert [s.validation_score for s in result.strategies] == [100, 75]
    assert result.requires_feedback is False


def test_unparseable_response_falls_back_to_defaults(fake_service) -> None:
    result = StrategyValidator(fake_service(["garbage"])).validate_strategies(_strategies(), "context", "Retail")

    assert all(s.validation_score == 75 for s in result.strategies)
    assert result.average_score == 75


def test_relevances_are_attached_clamped_and_sorted(fake_service) -> None:
    pain_points = [PainPoint(id="pain_point_1", title="Slow support", description="d"),
                   PainPoint(id="pain_point_2", title="Manual reports", description="d")]
    service = fake_service([
        {"s1": {"pain_point_1": {"relevance_score": 4}, "pain_point_2": {"relevance_score": 14}}},
        {"s1": {"challenge_1": {"relevanceScore": 7, "explanation": "helps"}}},
        "not json",
    ])

    result = StrategyValidator(service).validate_strategies(
        _strategies(), "context", "Retail", pain_points=pain_points, business_challenges=["Backlog"])

    s1 = result.strategies[0]
    assert [(r.target_id, r.relevance_score) for r in s1.pain_point_relevances] == [
        ("pain_point_2", 10), ("pain_point_1", 4)]
    assert s1.pain_point_relevances[1].explanation == "Addresses common industry challenges."
    assert s1.business_challenge_relevances[0].explanation == "helps"
    assert result.strategies[1].pain_point_relevances == []


def test_normalize_relevance_map_rejects_non_objects() -> None:
    with pytest.raises(ResponseShapeError):
        StrategyValidator.normalize_relevance_map([], "e", "i")


def test_empty_batch() -> None:
    result = StrategyValidator(completion_service=None).validate_strategies([], "c", "i")

    assert result.strategies == []
    assert result.average_score == 0


def test_pre_implementation_warnings_and_enrichment() -> None:
    strategies = [
        ValidatedStrategy(id="good", title="Support assistant", category="conversation",
                          description="An LLM chatbot that answers customer questions using the knowledge base."),
        ValidatedStrategy(id="bad", title="Sensor forecasting", category="robotics",
                          description="Deep learning forecasting model with anomaly detection on real-time data"),
    ]

    report = validate_strategies_before_implementation(strategies)

    assert report.all_valid is False
    assert {w.strategy_id for w in report.warnings} == {"bad"}
    good, bad = report.strategies
    assert good.implementation_warnings == []
    assert bad.implementation_risk == 'high'
    assert len(bad.implementation_warnings) == 4


def test_pre_implementation_without_enrichment_keeps_strategies() -> None:
    strategies = [ValidatedStrategy(id="s", title="t", description="short", category="automation")]

    report = validate_strategies_before_implementation(strategies, log_warnings=False, enrich_with_warnings=False)

    assert report.strategies[0] is strategies[0]
    assert report.all_valid is False
