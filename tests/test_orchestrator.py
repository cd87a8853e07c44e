import logging
from dataclasses import replace

import pytest
import requests

from proposal_engine.core.mock_proposal import generate_mock_proposal
from proposal_engine.core.models import Proposal, ScoredStrategy, ScrapedData
from proposal_engine.orchestrator import ProposalOrchestrator
from proposal_engine.utils import cache_manager as stages
from proposal_engine.utils.task_manager import TaskManager

URL = "https://acme.example"


class StubScraper:
    def __init__(self, error=None):
        self.error = error
        self.urls = []

    def scrape_company_website(self, url):
        self.urls.append(url)
        if self.error is not None:
            raise self.error
        return ScrapedData(page_content="Acme sells furniture online", title="Acme")


def _criteria(*values):
    keys = ("business_alignment", "market_potential", "industry_relevance", "clarity")
    return dict(zip(keys, values))


STRATEGIES = [
    {"id": "s1", "title": "Support assistant", "description": "LLM chatbot answering customer questions",
     "impact": "High", "complexity": "Low", "timeframe": "Short-term", "category": "conversation"},
    {"id": "s2", "title": "Report drafting", "description": "Language model drafting weekly sales reports",
     "impact": "Medium", "complexity": "Medium", "timeframe": "Medium-term", "category": "content generation"},
    {"id": "s3", "title": "Review insights", "description": "LLM analysis of product review text",
     "impact": "Medium", "complexity": "Low", "timeframe": "Short-term", "category": "text analysis"},
]


class ScriptedPipeline:
    """Answers each agent's prompt with a canned response."""

    def __init__(self, validation_scores=None):
        self.validation_scores = list(validation_scores or [{"s1": 88, "s2": 88, "s3": 88}])

    def __call__(self, prompt, params):
        if prompt.startswith("You are an AI business analyst"):
            return {"business_context": "Acme sells furniture online. It ships nationwide.",
                    "domain_knowledge": "Online furniture retail"}
        if prompt.startswith("You are an AI business consultant"):
            return ["Slow customer support", "Manual order entry"]
        if prompt.startswith("You are an AI industry analyst"):
            return {"industry": "Retail", "industry_insights": ["Shoppers expect instant answers"]}
        if prompt.startswith("Based on the industry context"):
            return [{"id": "pain_point_1", "title": "Support load", "description": "High ticket volume"}]
        if prompt.startswith("You are an AI transformation consultant"):
            if "Previous strategies that need improvement" in prompt:
                return {"strategies": [{"id": "new_1", "title": "Refined drafting",
                                        "description": "LLM drafting of weekly reports from sales notes",
                                        "impact": "High", "complexity": "Medium", "timeframe": "Short-term",
                                        "category": "content generation"}]}
            return {"strategies": STRATEGIES}
        if prompt.startswith("Evaluate how well"):
            return {}
        if prompt.startswith("You are an AI validation expert"):
            scores = self.validation_scores.pop(0)
            return {"validated_strategies": [
                {"id": strategy_id, "validation_criteria": _criteria(*self._split(score))}
                for strategy_id, score in scores.items()]}
        if prompt.startswith("You are an AI implementation expert"):
            return {"implementation_plans": [
                {"id": s["id"], "key_benefits": ["Faster work"], "implementation_steps": ["Pilot: one team"],
                 "feasibility_score": 80} for s in STRATEGIES]}
        if prompt.startswith("You are an AI feasibility expert"):
            return {"feasibility_analysis": [
                {"id": s["id"], "feasibility_criteria": {"technical_feasibility": 20, "resource_requirements": 20,
                                                         "risk_assessment": 20, "implementation_complexity": 20},
                 "mitigation_strategies": ["Human review"]} for s in STRATEGIES]}
        raise AssertionError(f"Unexpected prompt: {prompt[:60]}")

    @staticmethod
    def _split(score):
        quarter = score // 4
        return quarter, quarter, quarter, score - 3 * quarter


def _orchestrator(config, cache, service, scraper=None, **kwargs):
    return ProposalOrchestrator(config=config, completion_service=service, cache=cache,
                                scraper=scraper or StubScraper(), **kwargs)


def test_full_pipeline_caches_every_stage(pipeline_config, file_cache, fake_service) -> None:
    service = fake_service(handler=ScriptedPipeline())

    proposal = _orchestrator(pipeline_config, file_cache, service).generate_proposal(URL, "Acme Corp")

    assert proposal.is_mock is False
    assert proposal.id.startswith("acme-corp-")
    assert proposal.industry == "Retail"
    assert proposal.business_challenges == ["Slow customer support", "Manual order entry"]
    assert [o.id for o in proposal.ai_opportunities][0] == "s1"
    combined = [o.combined_score for o in proposal.ai_opportunities]
    assert combined == sorted(combined, reverse=True)
    assert all(o.feasibility_score == 80 for o in proposal.ai_opportunities)
    for stage in (stages.SCRAPED_DATA, stages.CONTEXT_ANALYSIS, stages.BUSINESS_CHALLENGES,
                  stages.INDUSTRY_INSIGHTS, stages.STRATEGIES, stages.INITIAL_VALIDATION,
                  stages.OPTIMIZED_STRATEGIES, stages.ENRICHED_STRATEGIES, stages.IMPLEMENTATION_STRATEGIES,
                  stages.INITIAL_FEASIBILITY, stages.FEASIBILITY_EVOLUTIONS, stages.FINAL_IMPLEMENTATIONS,
                  stages.FINAL_PROPOSAL):
        assert file_cache.read("acme-corp", stage) is not None, stage


def test_cached_proposal_is_returned_without_model_calls(pipeline_config, file_cache, fake_service) -> None:
    first = _orchestrator(pipeline_config, file_cache,
                          fake_service(handler=ScriptedPipeline())).generate_proposal(URL, "Acme Corp")
    idle = fake_service([])
    scraper = StubScraper()

    second = _orchestrator(pipeline_config, file_cache, idle, scraper).generate_proposal(URL, "acme corp")

    assert second.id == first.id
    assert second.is_mock is False
    assert idle.calls == []
    assert scraper.urls == []


def test_stage_cache_resumes_after_final_proposal_is_lost(pipeline_config, file_cache, fake_service) -> None:
    _orchestrator(pipeline_config, file_cache,
                  fake_service(handler=ScriptedPipeline())).generate_proposal(URL, "Acme Corp")
    file_cache.write("acme-corp", stages.FINAL_PROPOSAL, "")
    idle = fake_service([])

    proposal = _orchestrator(pipeline_config, file_cache, idle).generate_proposal(URL, "Acme Corp")

    assert proposal.is_mock is False
    assert idle.calls == []


def test_low_scorers_are_regenerated_and_revalidated(pipeline_config, file_cache, fake_service) -> None:
    pipeline = ScriptedPipeline([{"s1": 88, "s2": 50, "s3": 88}, {"s2": 80}])

    proposal = _orchestrator(pipeline_config, file_cache, fake_service(handler=pipeline)).generate_proposal(
        URL, "Acme Corp")

    titles = {o.id: o.title for o in proposal.ai_opportunities}
    assert titles["s2"] == "Refined drafting"
    optimized = file_cache.read("acme-corp", stages.OPTIMIZED_STRATEGIES)
    assert [s["validation_score"] for s in optimized] == [88, 88, 80]
    assert file_cache.read("acme-corp", stages.validation_iteration_stage(1))[0]["id"] == "s2"


def test_strategies_below_floor_are_dropped(pipeline_config, file_cache, fake_service) -> None:
    config = replace(pipeline_config, max_validation_iterations=1)
    pipeline = ScriptedPipeline([{"s1": 88, "s2": 40, "s3": 88}])

    _orchestrator(config, file_cache, fake_service(handler=pipeline)).generate_proposal(URL, "Acme Corp")

    optimized = file_cache.read("acme-corp", stages.OPTIMIZED_STRATEGIES)
    assert [s["id"] for s in optimized] == ["s1", "s3"]


def test_scrape_failure_uses_fallback_data(pipeline_config, file_cache, fake_service) -> None:
    scraper = StubScraper(requests.ConnectionError("unreachable"))

    proposal = _orchestrator(pipeline_config, file_cache, fake_service(handler=ScriptedPipeline()),
                             scraper).generate_proposal(URL, "Acme Corp")

    assert proposal.is_mock is False
    assert file_cache.read("acme-corp", stages.SCRAPED_DATA)["title"] == "Acme Corp - Innovative Solutions"


def test_unexpected_error_returns_mock_proposal(pipeline_config, file_cache, fake_service) -> None:
    scraper = StubScraper(RuntimeError("parser crashed"))

    proposal = _orchestrator(pipeline_config, file_cache, fake_service([]), scraper).generate_proposal(
        URL, "Acme Corp")

    assert proposal.is_mock is True
    assert proposal.company_name == "Acme Corp"
    assert len(proposal.ai_opportunities) == 3
    assert file_cache.read("acme-corp", stages.FINAL_PROPOSAL) is None


def test_cached_proposal_must_match_company(pipeline_config, file_cache, fake_service) -> None:
    cached = generate_mock_proposal("ACME Corp", URL)
    cached.is_mock = False
    file_cache.write("acme-corp", stages.FINAL_PROPOSAL, cached.to_dict())
    orchestrator = _orchestrator(pipeline_config, file_cache, fake_service([]))

    assert orchestrator.load_cached_proposal("Acme Corp", URL).id == cached.id
    assert orchestrator.load_cached_proposal("Acme Corp").id == cached.id
    assert orchestrator.load_cached_proposal("Acme Corp", "https://other.example") is None

    file_cache.write("acme-corp", stages.FINAL_PROPOSAL, generate_mock_proposal("Acme  Corp Ltd", URL).to_dict())
    assert orchestrator.load_cached_proposal("Acme Corp") is None


def _cache_scored_proposal(cache):
    proposal = Proposal(id="acme-corp-1", company_name="Acme Corp", company_url=URL, industry="Retail",
                        business_context="Acme sells furniture online.",
                        ai_opportunities=[ScoredStrategy(id="s1", title="Support assistant", description="LLM",
                                                         feasibility_score=90, opportunity_score=104.5,
                                                         combined_score=95.8)])
    cache.write("acme-corp", stages.FINAL_PROPOSAL, proposal.to_dict())
    return proposal


def test_analysis_view_caps_scores_for_display(pipeline_config, file_cache, fake_service) -> None:
    _cache_scored_proposal(file_cache)

    view = _orchestrator(pipeline_config, file_cache, fake_service([])).get_analysis("Acme Corp")

    opportunity = view["ai_opportunities"][0]
    assert opportunity["opportunity_score"] == 104.5
    assert opportunity["display_opportunity_score"] == 100
    assert opportunity["display_combined_score"] == 96


def test_process_request_routes_actions(pipeline_config, file_cache, fake_service) -> None:
    _cache_scored_proposal(file_cache)
    orchestrator = _orchestrator(pipeline_config, file_cache, fake_service(["plain answer"]))

    assert orchestrator.process_request({"prompt": "Say hi"})["response"] == "plain answer"
    assert orchestrator.process_request({"company_name": "Acme Corp"})["status"] == "invalid_request"
    assert orchestrator.process_request({"action": "explode"})["status"] == "invalid_request"
    assert orchestrator.process_request(
        {"action": "fetch", "company_name": "Acme Corp", "fetch_type": "pdf"})["status"] == "invalid_request"

    generated = orchestrator.process_request({"company_name": "Acme Corp", "company_url": URL})
    assert generated["status"] == "success"
    assert generated["is_mock"] is False
    assert generated["proposal"]["id"] == "acme-corp-1"

    analysis = orchestrator.process_request({"action": "fetch", "company_name": "Acme Corp"})
    assert analysis["analysis"]["company_name"] == "Acme Corp"

    missing = orchestrator.process_request({"action": "fetch", "company_name": "Acme Corp",
                                            "fetch_type": "llm_content"})
    assert missing["status"] == "not_found"

    status = orchestrator.process_request({"action": "fetch", "company_name": "Acme Corp",
                                           "fetch_type": "cache_status"})
    assert status["has_final_proposal"] is True
    assert status["has_llm_content"] is False
    assert status["opportunities"][0]["opportunity_score"] == 100


def test_clear_cache_covers_renamed_company(pipeline_config, file_cache, fake_service) -> None:
    file_cache.write("acme-corp", stages.STRATEGIES, [])
    file_cache.write("acme-inc", stages.STRATEGIES, [])
    orchestrator = _orchestrator(pipeline_config, file_cache, fake_service([]))

    result = orchestrator.process_request({"action": "clear_cache", "company_name": "Acme Corp",
                                           "new_company_name": "Acme Inc"})

    assert result["cleared"] is True
    assert file_cache.list_stages("acme-corp") == []
    assert file_cache.list_stages("acme-inc") == []
    assert orchestrator.clear_cache("Acme Corp") is False


def test_narrative_content_is_generated_in_background(pipeline_config, file_cache, fake_service) -> None:
    config = replace(pipeline_config, background_narrative=True)
    proposal = _cache_scored_proposal(file_cache)
    orchestrator = _orchestrator(config, file_cache, fake_service([{"problem_statement": "Acme is slow."}]),
                                 task_manager=TaskManager())

    thread = orchestrator.schedule_narrative_content(proposal)
    thread.join(5)

    content = orchestrator.get_llm_content("Acme Corp")
    assert content["executive_summary"]["problem_statement"] == "Acme is slow."
    assert orchestrator.schedule_narrative_content(proposal) is None


def test_mock_proposals_get_no_narrative(pipeline_config, file_cache, fake_service) -> None:
    config = replace(pipeline_config, background_narrative=True)
    orchestrator = _orchestrator(config, file_cache, fake_service([]))

    assert orchestrator.schedule_narrative_content(generate_mock_proposal("Acme Corp", URL)) is None


@pytest.mark.parametrize("use_cache", [True, False])
def test_use_cache_flag_controls_reads(pipeline_config, file_cache, fake_service, use_cache) -> None:
    config = replace(pipeline_config, use_cache=use_cache)
    _cache_scored_proposal(file_cache)
    service = fake_service(handler=ScriptedPipeline())

    proposal = _orchestrator(config, file_cache, service).generate_proposal(URL, "Acme Corp")

    assert (proposal.id == "acme-corp-1") is use_cache
    assert bool(service.calls) is not use_cache


def test_clear_cache_stays_inside_cache_dir(pipeline_config, file_cache, fake_service, tmp_path) -> None:
    victim = tmp_path / "victim"
    victim.mkdir()
    (victim / "important.txt").write_text("keep me")
    file_cache.write("acme-corp", stages.STRATEGIES, [])
    orchestrator = _orchestrator(pipeline_config, file_cache, fake_service([]))

    result = orchestrator.process_request({"action": "clear_cache", "company_name": "../victim"})

    assert result["company_id"] == "victim"
    assert result["cleared"] is False
    assert (victim / "important.txt").read_text() == "keep me"
    assert file_cache.list_stages("acme-corp") == [stages.STRATEGIES]


@pytest.mark.parametrize("name", ["..", "/", "***"])
def test_names_without_letters_or_digits_are_rejected(pipeline_config, file_cache, fake_service, name) -> None:
    orchestrator = _orchestrator(pipeline_config, file_cache, fake_service([]))

    for payload in ({"action": "clear_cache", "company_name": name},
                    {"action": "fetch", "company_name": name},
                    {"company_name": name, "company_url": URL}):
        assert orchestrator.process_request(payload)["status"] == "invalid_request"


def test_refinement_flags_are_logged(pipeline_config, file_cache, fake_service, caplog) -> None:
    caplog.set_level(logging.INFO, logger="proposal_engine.orchestrator")
    pipeline = ScriptedPipeline([{"s1": 88, "s2": 50, "s3": 88}, {"s2": 80}])

    _orchestrator(pipeline_config, file_cache, fake_service(handler=pipeline)).generate_proposal(URL, "Acme Corp")

    assert "Average validation score 75.3 is below the 80 target" in caplog.text
    assert "Average feasibility score 80.0 meets the 75 target" in caplog.text
