from proposal_engine.agents.business_challenges import FALLBACK_BUSINESS_CHALLENGES, BusinessChallengeGenerator
from proposal_engine.agents.context_analyzer import ContextAnalyzer
from proposal_engine.agents.industry_analyzer import (DEFAULT_PAIN_POINTS, FALLBACK_INDUSTRY_PAIN_POINTS,
                                                      IndustryAnalyzer)
from proposal_engine.core.exceptions import CompletionServiceError
from proposal_engine.core.models import ScrapedData

SCRAPED = ScrapedData(title="Acme Furniture", meta_description="Online furniture store.",
                      products=["Sofas", "Tables"], services=["Delivery"])


def test_context_analysis_accepts_camel_case(fake_service) -> None:
    service = fake_service(['```json\n{"businessContext": "Sells sofas.", "domainKnowledge": "Retail"}\n```'])

    context = ContextAnalyzer(service).analyze_context(SCRAPED, "Acme")

    assert context.business_context == "Sells sofas."
    assert context.domain_knowledge == "Retail"
    assert "Products: Sofas, Tables" in service.calls[0][0]


def test_context_analysis_falls_back_to_scraped_data(fake_service) -> None:
    context = ContextAnalyzer(fake_service([{"business_context": "only half"}])).analyze_context(SCRAPED, "Acme")

    assert context.business_context == "Acme is a company operating through its website Acme Furniture. " \
                                       "Online furniture store."
    assert context.domain_knowledge == "Acme offers: Sofas, Tables, Delivery."


def test_business_challenges_are_capped(fake_service) -> None:
    service = fake_service([[f"Challenge {i}" for i in range(7)] + [3]])

    challenges = BusinessChallengeGenerator(service).generate_business_challenges("context")

    assert challenges == [f"Challenge {i}" for i in range(5)]


def test_business_challenges_fallback(fake_service) -> None:
    for response in ({"challenges": []}, [], CompletionServiceError("down")):
        challenges = BusinessChallengeGenerator(fake_service([response])).generate_business_challenges("c")
        assert challenges == FALLBACK_BUSINESS_CHALLENGES


def test_industry_insights_with_pain_points(fake_service) -> None:
    service = fake_service([
        {"industry": "Retail", "industryInsights": ["Chat commerce", ""]},
        [{"id": "x", "title": "Returns", "typicalSeverity": 14, "commonManifestations": ["Refund backlog", None]},
         "junk",
         {"title": "Stockouts", "typical_severity": 0}],
    ])

    insights = IndustryAnalyzer(service).get_industry_insights("Online furniture retail")

    assert insights.industry == "Retail"
    assert insights.industry_insights == ["Chat commerce"]
    assert [p.id for p in insights.possible_pain_points] == ["pain_point_1", "pain_point_2"]
    assert insights.possible_pain_points[0].typical_severity == 10
    assert insights.possible_pain_points[0].common_manifestations == ["Refund backlog"]
    assert insights.possible_pain_points[1].typical_severity == 5
    assert service.calls[1][0].startswith("Based on the industry context")


def test_pain_point_failure_uses_defaults(fake_service) -> None:
    service = fake_service([{"industry": "Retail", "industry_insights": []}, "not json"])

    insights = IndustryAnalyzer(service).get_industry_insights("retail")

    assert insights.possible_pain_points == DEFAULT_PAIN_POINTS


def test_industry_failure_uses_technology_fallback(fake_service) -> None:
    insights = IndustryAnalyzer(fake_service([CompletionServiceError("down")])).get_industry_insights("x")

    assert insights.industry == "Technology"
    assert insights.possible_pain_points == FALLBACK_INDUSTRY_PAIN_POINTS
