"""
Main orchestrator for the AI Proposal Engine.

Runs the nine pipeline stages in order (scrape, context, business challenges,
industry insights, strategy generation, validation refinement, implementation
planning, feasibility refinement, final scoring). Every stage is cache-or-compute
against the per-company stage cache, and any error that escapes the stages turns
into the canned mock proposal.
"""
import logging
import time
import traceback
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import requests

from proposal_engine.agents.business_challenges import BusinessChallengeGenerator
from proposal_engine.agents.context_analyzer import ContextAnalyzer
from proposal_engine.agents.feasibility_checker import FeasibilityChecker
from proposal_engine.agents.implementation_planner import (ImplementationPlanner, ImplementationPlanOptions,
                                                           fallback_implementation_plans)
from proposal_engine.agents.industry_analyzer import IndustryAnalyzer
from proposal_engine.agents.narrative_generator import NarrativeContentGenerator
from proposal_engine.agents.strategy_generator import StrategyGenerator
from proposal_engine.agents.strategy_validator import StrategyValidator, validate_strategies_before_implementation
from proposal_engine.core.bedrock_manager import CREATIVE_PARAMS, CompletionService, build_completion_service
from proposal_engine.core.config import PipelineConfig
from proposal_engine.core.exceptions import ImplementationPlanError, ParseError
from proposal_engine.core.mock_proposal import generate_mock_proposal
from proposal_engine.core.models import (ContextAnalysis, FeasibilityAnalysis, FeasibilityResult, ImplementationStrategy,
                                         IndustryInsights, Proposal, ScoredStrategy, ScrapedData, Strategy,
                                         StrategyFeedback, ValidatedStrategy, ValidationResult,
                                         build_implementation_strategy, build_scored_strategy, to_jsonable)
from proposal_engine.core.scoring import calculate_combined_score, calculate_opportunity_score, display_score
from proposal_engine.services.aws_clients import get_s3_client
from proposal_engine.services.web_scraper import WebScraper
from proposal_engine.utils import cache_manager as stages
from proposal_engine.utils.cache_manager import StageCache, build_stage_cache, get_company_id
from proposal_engine.utils.refinement import RefinementLoop
from proposal_engine.utils.task_manager import TaskManager

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

RECOMMENDED_APPROACH = "Implement highest-scoring opportunities first, focusing on quick wins with low complexity."
NEXT_STEPS = [
    "Conduct detailed technical assessment of selected opportunities",
    "Develop project plan with key stakeholders",
    "Allocate initial resources for first phase",
    "Set up measurement framework"
]
IMAGE_PROMPTS = [
    "AI transformation roadmap diagram",
    "Strategic opportunity matrix showing impact vs complexity",
    "Implementation timeline with key milestones"
]
VALIDATION_COACHING = [
    "Focus on improving alignment with business context and market potential",
    "Consider more specific implementation approaches in the description"
]
FETCH_TYPES = ('analysis', 'cache_status', 'llm_content')


class ProposalOrchestrator:
    """Sequence the pipeline stages and expose the entry points used by the Lambda handler."""

    def __init__(self, config: Optional[PipelineConfig] = None,
                 completion_service: Optional[CompletionService] = None,
                 cache: Optional[StageCache] = None,
                 scraper: Optional[WebScraper] = None,
                 narrative_generator: Optional[NarrativeContentGenerator] = None,
                 task_manager: Optional[TaskManager] = None):
        self.config = config or PipelineConfig.from_env()
        verbose = self.config.verbose_logging

        self.completion_service = completion_service or build_completion_service(self.config)
        if cache is None:
            s3_client = get_s3_client(self.config.aws_region) if self.config.cache_backend == 's3' else None
            cache = build_stage_cache(self.config, s3_client=s3_client)
        self.cache = cache
        self.scraper = scraper or WebScraper()
        self.task_manager = task_manager or TaskManager()

        self.context_analyzer = ContextAnalyzer(self.completion_service, verbose)
        self.challenge_generator = BusinessChallengeGenerator(self.completion_service, verbose)
        self.industry_analyzer = IndustryAnalyzer(self.completion_service, verbose)
        self.strategy_generator = StrategyGenerator(self.completion_service, verbose)
        self.strategy_validator = StrategyValidator(
            self.completion_service, verbose, requires_feedback_below=self.config.validation_average_threshold)
        self.implementation_planner = ImplementationPlanner(self.completion_service, verbose)
        self.feasibility_checker = FeasibilityChecker(
            self.completion_service, verbose, requires_refinement_below=self.config.feasibility_average_threshold)
        self.narrative_generator = narrative_generator or NarrativeContentGenerator(
            self.completion_service, self.cache, verbose)
        logger.info("✅ Proposal orchestrator initialized")

    # ------------------------------------------------------------------
    # Request routing
    # ------------------------------------------------------------------

    def process_request(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Route one API payload.

        Responses carry a 'status' of success, invalid_request or not_found;
        the Lambda handler maps the last two to 400 and 404.
        """
        action = payload.get('action', 'generate')
        company_name = (payload.get('company_name') or '').strip()
        company_url = (payload.get('company_url') or '').strip()

        if action == 'generate':
            prompt = (payload.get('prompt') or '').strip()
            if prompt and not company_name:
                return {
                    'status': 'success',
                    'response': self.complete_prompt(prompt),
                    'timestamp': datetime.now().isoformat()
                }
            if not get_company_id(company_name) or not company_url:
                return self._invalid('company_url and company_name are required (or a prompt)')
            proposal = self.generate_proposal(company_url, company_name)
            return {
                'status': 'success',
                'proposal': proposal.to_dict(),
                'is_mock': proposal.is_mock,
                'timestamp': datetime.now().isoformat()
            }

        if action == 'fetch':
            fetch_type = payload.get('fetch_type', 'analysis')
            if not get_company_id(company_name):
                return self._invalid('company_name must contain letters or digits')
            if fetch_type not in FETCH_TYPES:
                return self._invalid(f"Invalid fetch_type: {fetch_type}. Valid types: {', '.join(FETCH_TYPES)}")
            return self._handle_fetch(company_name, fetch_type)

        if action == 'clear_cache':
            if not get_company_id(company_name):
                return self._invalid('company_name must contain letters or digits')
            new_name = (payload.get('new_company_name') or '').strip() or None
            cleared = self.clear_cache(company_name, new_name)
            return {
                'status': 'success',
                'cleared': cleared,
                'company_id': get_company_id(company_name),
                'timestamp': datetime.now().isoformat()
            }

        return self._invalid(f"Invalid action: {action}. Valid actions: generate, fetch, clear_cache")

    @staticmethod
    def _invalid(message: str) -> Dict[str, Any]:
        return {'status': 'invalid_request', 'message': message, 'timestamp': datetime.now().isoformat()}

    def _handle_fetch(self, company_name: str, fetch_type: str) -> Dict[str, Any]:
        logger.info(f"Fetching {fetch_type} for {company_name}")
        if fetch_type == 'cache_status':
            return {'status': 'success', **self.cache_status(company_name)}

        data = self.get_analysis(company_name) if fetch_type == 'analysis' else self.get_llm_content(company_name)
        if data is None:
            return {
                'status': 'not_found',
                'message': f"No {fetch_type} found for {company_name}",
                'timestamp': datetime.now().isoformat()
            }
        return {'status': 'success', fetch_type: data, 'timestamp': datetime.now().isoformat()}

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    def generate_proposal(self, company_url: str, company_name: str) -> Proposal:
        """Run (or resume) the pipeline. Never raises; failures return the mock proposal."""
        try:
            logger.info(f"🚀 Generating proposal for {company_name} ({company_url})")
            if self.config.use_cache:
                cached = self.load_cached_proposal(company_name, company_url)
                if cached is not None:
                    logger.info("📦 Found cached final proposal")
                    self.schedule_narrative_content(cached)
                    return cached

            proposal = self._run_pipeline(company_url, company_name)
            self.schedule_narrative_content(proposal)
            return proposal
        except Exception as e:
            logger.error(f"❌ Error generating proposal: {e}")
            logger.error(traceback.format_exc())
            logger.warning("⚠️ Falling back to mock proposal due to pipeline error")
            return generate_mock_proposal(company_name, company_url)

    def load_cached_proposal(self, company_name: str, company_url: str = '') -> Optional[Proposal]:
        """Cached final proposal if it belongs to this company (name compared case-insensitively).

        An empty `company_url` matches any cached URL.
        """
        data = self.cache.read(get_company_id(company_name), stages.FINAL_PROPOSAL)
        if not data:
            return None
        try:
            proposal = Proposal.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"⚠️ Ignoring malformed cached proposal for {company_name}: {e}")
            return None

        if proposal.company_name.lower() == company_name.lower() and (
                not company_url or proposal.company_url == company_url):
            return proposal
        logger.info(f"Cached proposal does not match request. Cached: {proposal.company_name} "
                    f"({proposal.company_url}), requested: {company_name} ({company_url})")
        return None

    def complete_prompt(self, prompt: str) -> str:
        logger.info(f"💬 Raw prompt passthrough ({len(prompt)} characters)")
        return self.completion_service.generate(prompt, CREATIVE_PARAMS)

    def get_analysis(self, company_name: str) -> Optional[Dict[str, Any]]:
        """Proposal view with scores capped at 100 for display; stored scores are untouched."""
        proposal = self.load_cached_proposal(company_name)
        if proposal is None:
            return None
        view = proposal.to_dict()
        for opportunity in view['ai_opportunities']:
            opportunity['display_opportunity_score'] = display_score(opportunity.get('opportunity_score') or 0)
            opportunity['display_combined_score'] = display_score(opportunity.get('combined_score') or 0)
            opportunity['display_feasibility_score'] = display_score(opportunity.get('feasibility_score') or 0)
        return view

    def get_llm_content(self, company_name: str) -> Optional[Dict[str, Any]]:
        content = self.narrative_generator.load_narrative_content(company_name)
        return to_jsonable(content) if content is not None else None

    def cache_status(self, company_name: str) -> Dict[str, Any]:
        company_id = get_company_id(company_name)
        cached_stages = self.cache.list_stages(company_id)
        proposal = self.load_cached_proposal(company_name)
        return {
            'company_id': company_id,
            'cached_stages': cached_stages,
            'has_final_proposal': proposal is not None,
            'has_llm_content': stages.LLM_CONTENT in cached_stages,
            'narrative_in_progress': self.task_manager.is_task_active(self._narrative_task_key(company_id)),
            'opportunities': [{
                'id': o.id,
                'title': o.title,
                'opportunity_score': display_score(o.opportunity_score),
                'combined_score': display_score(o.combined_score),
                'feasibility_score': display_score(o.feasibility_score or 0)
            } for o in proposal.ai_opportunities] if proposal else []
        }

    def clear_cache(self, company_name: str, new_name: Optional[str] = None) -> bool:
        """Remove every cached stage for the company, and for its new name if renamed.

        Returns True if anything was removed.
        """
        company_ids = [get_company_id(company_name)]
        new_id = get_company_id(new_name) if new_name else ''
        if new_id and new_id not in company_ids:
            company_ids.append(new_id)
        cleared = False
        for company_id in company_ids:
            logger.info(f"🧹 Clearing cache for {company_id}")
            cleared = self.cache.clear(company_id) or cleared
        return cleared

    # ------------------------------------------------------------------
    # Background narrative content
    # ------------------------------------------------------------------

    @staticmethod
    def _narrative_task_key(company_id: str) -> str:
        return f"llm_content:{company_id}"

    def schedule_narrative_content(self, proposal: Proposal):
        """Start narrative pregeneration on a daemon thread unless it exists or is running."""
        if not self.config.background_narrative or proposal.is_mock:
            return None
        company_id = get_company_id(proposal.company_name)
        if self.cache.read(company_id, stages.LLM_CONTENT):
            logger.info(f"Narrative content already exists for {proposal.company_name}, skipping")
            return None
        return self.task_manager.run_in_background(
            self._narrative_task_key(company_id),
            self.narrative_generator.generate_narrative_content,
            proposal,
            description=f"Narrative content for {proposal.company_name}"
        )

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _cached_stage(self, company_id: str, stage: str, compute: Callable[[], Any],
                      decode: Callable[[Any], Any]) -> Any:
        """Cache-or-compute. Computed values, fallbacks included, are always written."""
        if self.config.use_cache:
            cached = self.cache.read(company_id, stage)
            if cached is not None:
                try:
                    value = decode(cached)
                    logger.info(f"📦 Using cached {stage}")
                    return value
                except (KeyError, TypeError, ValueError, AttributeError) as e:
                    logger.warning(f"⚠️ Cached {stage} is unusable, recomputing: {e}")
        value = compute()
        self.cache.write(company_id, stage, to_jsonable(value))
        return value

    def _scrape(self, company_url: str, company_name: str) -> ScrapedData:
        try:
            return self.scraper.scrape_company_website(company_url)
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"⚠️ Scraping failed, using minimal company data: {e}")
            return ScrapedData.fallback(company_name, company_url)

    def _run_pipeline(self, company_url: str, company_name: str) -> Proposal:
        company_id = get_company_id(company_name)

        logger.info("1. 🌐 Web scraping")
        scraped = self._cached_stage(
            company_id, stages.SCRAPED_DATA,
            lambda: self._scrape(company_url, company_name), ScrapedData.from_dict)

        logger.info("2. 🔍 Context analysis")
        context = self._cached_stage(
            company_id, stages.CONTEXT_ANALYSIS,
            lambda: self.context_analyzer.analyze_context(scraped, company_name), ContextAnalysis.from_dict)

        logger.info("3. 🧩 Business challenges")
        challenges = self._cached_stage(
            company_id, stages.BUSINESS_CHALLENGES,
            lambda: self.challenge_generator.generate_business_challenges(context.business_context), list)

        logger.info("4. 🏭 Industry insights")
        industry = self._cached_stage(
            company_id, stages.INDUSTRY_INSIGHTS,
            lambda: self.industry_analyzer.get_industry_insights(context.domain_knowledge), IndustryInsights.from_dict)

        logger.info("5. 💡 Strategy creation")
        strategies = self._cached_stage(
            company_id, stages.STRATEGIES,
            lambda: self.strategy_generator.create_strategies(challenges, industry.industry_insights),
            lambda data: [Strategy.from_dict(s) for s in data])

        logger.info("6. 🧪 Strategy validation loop")
        validated = self._cached_stage(
            company_id, stages.OPTIMIZED_STRATEGIES,
            lambda: self._run_validation_loop(company_id, strategies, context, industry, challenges),
            lambda data: [ValidatedStrategy.from_dict(s) for s in data])

        logger.info("6b. 🩺 Pre-implementation validation")
        report = validate_strategies_before_implementation(validated, log_warnings=True, enrich_with_warnings=True)
        enriched = report.strategies
        self.cache.write(company_id, stages.ENRICHED_STRATEGIES, to_jsonable(enriched))

        logger.info("7. 🛠️ Implementation planning")
        implementations = self._plan_implementations(company_id, enriched)

        logger.info("8. 🔬 Feasibility checking loop")
        scored = self._cached_stage(
            company_id, stages.FINAL_IMPLEMENTATIONS,
            lambda: self._run_feasibility_loop(company_id, implementations),
            lambda data: [ScoredStrategy.from_dict(s) for s in data])

        logger.info("9. 📋 Preparing final results")
        proposal = Proposal(
            id=f"{company_id}-{int(time.time() * 1000)}",
            company_name=company_name,
            company_url=company_url,
            industry=industry.industry,
            business_context=context.business_context,
            possible_pain_points=list(industry.possible_pain_points),
            ai_opportunities=scored,
            business_challenges=list(challenges),
            recommended_approach=RECOMMENDED_APPROACH,
            next_steps=list(NEXT_STEPS),
            image_prompts=list(IMAGE_PROMPTS),
            generated_at=datetime.now().isoformat()
        )
        self.cache.write(company_id, stages.FINAL_PROPOSAL, proposal.to_dict())
        logger.info(f"✅ Proposal generated with {len(scored)} opportunities")
        return proposal

    def _load_checkpoint(self, company_id: str, stage: str, decode: Callable[[Dict[str, Any]], Any]):
        if not self.config.use_cache:
            return None
        data = self.cache.read(company_id, stage)
        if not isinstance(data, list):
            return None
        try:
            return [decode(item) for item in data]
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"⚠️ Checkpoint {stage} is unusable, recomputing: {e}")
            return None

    def _run_validation_loop(self, company_id: str, strategies: List[Strategy], context: ContextAnalysis,
                             industry: IndustryInsights, challenges: List[str]) -> List[ValidatedStrategy]:
        config = self.config

        def validate(batch: List[Strategy]) -> ValidationResult:
            return self.strategy_validator.validate_strategies(
                batch, context.business_context, industry.industry, industry.possible_pain_points, challenges)

        initial = self._cached_stage(
            company_id, stages.INITIAL_VALIDATION, lambda: validate(strategies), ValidationResult.from_dict)
        logger.info(f"Initial validation average score: {initial.average_score:.1f}")
        if initial.requires_feedback:
            logger.info(f"⚠️ Average validation score {initial.average_score:.1f} is below the "
                        f"{config.validation_average_threshold:g} target, refining strategies")
        else:
            logger.info(f"✅ Average validation score {initial.average_score:.1f} meets the "
                        f"{config.validation_average_threshold:g} target")

        def refine(current: List[ValidatedStrategy], low_scoring: List[ValidatedStrategy],
                   iteration: int) -> List[ValidatedStrategy]:
            average = sum(s.validation_score for s in current) / len(current)
            feedback = StrategyFeedback(
                strategies=low_scoring,
                feedback_comments=[f"Overall validation score ({average:.1f}) is below target threshold "
                                   f"({config.validation_average_threshold})"] + VALIDATION_COACHING,
                industry_context='\n'.join(industry.industry_insights) or industry.industry
            )
            regenerated = self.strategy_generator.create_strategies(
                challenges, industry.industry_insights, feedback, strict=True)
            # Regenerated strategies line up with the low scorers by position
            renamed = [replace(new, id=old.id) for old, new in zip(low_scoring, regenerated)]
            if not renamed:
                logger.warning(f"⚠️ Iteration {iteration} produced no refined strategies")
                return []
            return validate(renamed).strategies

        loop = RefinementLoop(
            name="Strategy validation",
            score_of=lambda s: s.validation_score,
            refine=refine,
            threshold=config.strategy_individual_threshold,
            max_iterations=config.max_validation_iterations,
            load_checkpoint=lambda i: self._load_checkpoint(
                company_id, stages.validation_iteration_stage(i), ValidatedStrategy.from_dict),
            save_checkpoint=lambda i, refined: self.cache.write(
                company_id, stages.validation_iteration_stage(i), to_jsonable(refined))
        )
        outcome = loop.run(initial.strategies)

        best = sorted(outcome.strategies, key=lambda s: s.validation_score, reverse=True)
        kept = [s for s in best if s.validation_score >= config.min_strategy_score]
        if len(kept) < len(best):
            logger.warning(f"⚠️ Dropped {len(best) - len(kept)} strategies below {config.min_strategy_score}")
        return kept

    def _plan_implementations(self, company_id: str,
                              strategies: List[ValidatedStrategy]) -> List[ImplementationStrategy]:
        if self.config.use_cache:
            cached = self._load_checkpoint(company_id, stages.IMPLEMENTATION_STRATEGIES,
                                           ImplementationStrategy.from_dict)
            if cached is not None:
                logger.info(f"📦 Using cached {stages.IMPLEMENTATION_STRATEGIES}")
                return cached

        options = ImplementationPlanOptions(
            fail_on_error=self.config.fail_on_errors,
            require_minimum_strategies=True,
            minimum_strategies=self.config.minimum_strategies,
            allow_partial_success=True,
            validate_llm_feasibility=True,
            fallback_to_generic=True
        )
        try:
            plans = self.implementation_planner.create_implementation_plan(strategies, options)
        except (ImplementationPlanError, ParseError) as e:
            logger.error(f"❌ Implementation planning failed: {e}")
            if self.config.fail_on_errors:
                raise
            logger.warning("⚠️ Using fallback implementation plans")
            plans = fallback_implementation_plans(strategies)
            self.cache.write(company_id, stages.IMPLEMENTATION_STRATEGIES_FALLBACK, to_jsonable(plans))
            return plans

        self.cache.write(company_id, stages.IMPLEMENTATION_STRATEGIES, to_jsonable(plans))
        return plans

    def _run_feasibility_loop(self, company_id: str,
                              implementations: List[ImplementationStrategy]) -> List[ScoredStrategy]:
        config = self.config
        initial = self._cached_stage(
            company_id, stages.INITIAL_FEASIBILITY,
            lambda: self.feasibility_checker.check_feasibility(implementations), FeasibilityResult.from_dict)
        logger.info(f"Initial feasibility average score: {initial.average_score:.1f}")
        if initial.requires_refinement:
            logger.info(f"⚠️ Average feasibility score {initial.average_score:.1f} is below the "
                        f"{config.feasibility_average_threshold:g} target, refining implementations")
        else:
            logger.info(f"✅ Average feasibility score {initial.average_score:.1f} meets the "
                        f"{config.feasibility_average_threshold:g} target")

        def refine(current: List[FeasibilityAnalysis], low_scoring: List[FeasibilityAnalysis],
                   iteration: int) -> List[FeasibilityAnalysis]:
            if initial.technical_feedback and iteration == 1:
                logger.info(f"Technical feedback: {initial.technical_feedback}")
            # Mitigations become the benefits and resource requirements become the steps
            refined = [build_implementation_strategy(
                analysis,
                analysis.mitigation_strategies or analysis.key_benefits,
                (analysis.resource_requirements or analysis.implementation_steps)[:5],
                feasibility_score=analysis.feasibility_score
            ) for analysis in low_scoring]
            return self.feasibility_checker.check_feasibility(refined).strategies

        loop = RefinementLoop(
            name="Feasibility checking",
            score_of=lambda a: a.feasibility_score or 0,
            refine=refine,
            threshold=config.feasibility_score_threshold,
            max_iterations=config.max_feasibility_iterations,
            load_checkpoint=lambda i: self._load_checkpoint(
                company_id, stages.feasibility_iteration_stage(i), FeasibilityAnalysis.from_dict),
            save_checkpoint=lambda i, refined: self.cache.write(
                company_id, stages.feasibility_iteration_stage(i), to_jsonable(refined))
        )
        outcome = loop.run(initial.strategies)
        self.cache.write(company_id, stages.FEASIBILITY_EVOLUTIONS, to_jsonable(outcome.evolutions))

        scored = [build_scored_strategy(a, calculate_opportunity_score(a), calculate_combined_score(a))
                  for a in outcome.strategies]
        scored.sort(key=lambda s: s.combined_score, reverse=True)
        return scored
