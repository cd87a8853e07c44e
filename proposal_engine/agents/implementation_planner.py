"""
Implementation planning agent for the AI Proposal Engine.

The most failure-prone stage: responses are large and frequently contain broken
JSON, so parsing goes through the repair passes, plans are processed one by one
so a single bad plan does not sink the batch, and `ImplementationPlanOptions`
decides between raising typed errors and degrading to generic plans.
"""
import json
import logging
import random
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Set

from proposal_engine.agents.strategy_generator import normalize_category, normalize_level, validate_llm_feasibility
from proposal_engine.core.bedrock_manager import DETERMINISTIC_PARAMS, CompletionService
from proposal_engine.core.exceptions import (CompletionServiceError, ImplementationPlanError,
                                             NoValidStrategiesError, ParseError)
from proposal_engine.core.models import (COMPLEXITY_LEVELS, IMPACT_LEVELS, TIMEFRAMES, ImplementationStrategy,
                                         Strategy, build_implementation_strategy, clamp, truncate_list)
from proposal_engine.utils.response_parser import ResponseParser

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

GENERIC_BENEFITS = [
    "Improved user experience",
    "Reduced manual effort",
    "Enhanced information processing",
    "Greater scalability",
    "Faster response times"
]
GENERIC_STEPS = [
    "LLM Selection: Choose appropriate LLM model based on requirements",
    "Knowledge Base Setup: Gather and structure company data for LLM context",
    "Integration Development: Connect LLM APIs with existing systems",
    "Testing & Refinement: Evaluate LLM responses and refine prompts",
    "Deployment & Monitoring: Launch with continuous quality monitoring"
]
DEFAULT_PLAN_BENEFITS = ['Improved efficiency', 'Enhanced accuracy', 'Better user experience']
DEFAULT_PLAN_STEPS = ["LLM Selection", "Integration", "Testing", "Deployment", "Monitoring"]
DEFAULT_PLAN_FEASIBILITY = 75

# Used by the orchestrator when planning fails outright
FALLBACK_PLAN_BENEFITS = [
    "Increased operational efficiency",
    "Enhanced user experience",
    "Reduced manual workload"
]
FALLBACK_PLAN_STEPS = [
    "Strategy Assessment: Evaluate specific requirements and constraints",
    "Model Selection: Choose appropriate LLM based on use case",
    "Integration Planning: Design system architecture and data flows",
    "Prototype Development: Build initial proof of concept",
    "Deployment & Monitoring: Roll out solution with proper tracking"
]
FALLBACK_PLAN_FEASIBILITY = 75


@dataclass
class ImplementationPlanOptions:
    fail_on_error: bool = False
    require_minimum_strategies: bool = False
    minimum_strategies: int = 1
    allow_partial_success: bool = True
    validate_llm_feasibility: bool = True
    fallback_to_generic: bool = True


def generic_strategy(index: int) -> Strategy:
    """Placeholder strategy used to top up a batch to the required minimum."""
    return Strategy(
        id=f"generic_strategy_{index}",
        title=f"Generic AI Strategy {index}",
        description="A general-purpose AI strategy using LLMs for business process improvement.",
        impact="Medium",
        complexity="Medium",
        timeframe="Medium-term",
        category="automation"
    )


def fallback_implementation_plans(strategies: List[Strategy]) -> List[ImplementationStrategy]:
    """Fixed plans for every strategy, used when planning raised."""
    return [build_implementation_strategy(s, FALLBACK_PLAN_BENEFITS, FALLBACK_PLAN_STEPS, FALLBACK_PLAN_FEASIBILITY)
            for s in strategies]


class ImplementationPlanner:
    """Attach key benefits, implementation steps and an initial feasibility score to strategies."""

    def __init__(self, completion_service: CompletionService, verbose_logging: bool = False,
                 rng: Optional[random.Random] = None):
        self.completion_service = completion_service
        self.verbose_logging = verbose_logging
        self.rng = rng or random.Random()

    def create_generic_implementation_plan(self, strategy: Strategy) -> ImplementationStrategy:
        """Generic plan: 3-5 benefits and a feasibility score between 75 and 84."""
        benefit_count = self.rng.randint(3, 5)
        return build_implementation_strategy(
            strategy,
            GENERIC_BENEFITS[:benefit_count],
            GENERIC_STEPS,
            feasibility_score=self.rng.randint(75, 84)
        )

    def _generic_plans(self, strategies: List[Strategy]) -> List[ImplementationStrategy]:
        return [self.create_generic_implementation_plan(s) for s in strategies]

    @staticmethod
    def build_prompt(strategies: List[Strategy]) -> str:
        payload = json.dumps([{
            'id': s.id, 'title': s.title, 'description': s.description, 'impact': s.impact,
            'complexity': s.complexity, 'timeframe': s.timeframe, 'category': s.category
        } for s in strategies], indent=2)
        return f"""You are an AI implementation expert with deep knowledge of AI technologies and project management.
Analyze each strategy and provide detailed implementation insights. Focus EXCLUSIVELY on strategies
where Large Language Models (LLMs) are the PRIMARY technology component.

All implementations MUST be based on commercial foundation models where the LLM is the primary reasoning component.
Consider technical feasibility, resource requirements, and potential challenges specific to LLM implementations.

For each strategy, provide:
- Key benefits (3-5 bullet points) specifically related to the advantages of using LLMs for this application
- Implementation steps (MAXIMUM 5 KEY STEPS), each formatted as "Step Title: Brief description of the step"
  For example: "Knowledge Base Creation: Gather and structure relevant company data to integrate with the LLM through a RAG approach"
- A feasibility score (0-100)

For image-to-text strategies using multimodal LLMs, include steps for image preprocessing, input validation,
multimodal model selection and testing protocols for visual inputs.

VERY IMPORTANT FORMATTING INSTRUCTIONS:
1. Avoid using any special characters, control characters, or non-standard punctuation in your output.
2. Use only basic ASCII characters when possible.
3. Avoid using quotes within string values, use alternate punctuation if needed.
4. For bullet points, use simple hyphens (-) rather than special Unicode bullets.

Strategies:
{payload}

Return only a valid JSON object with no markdown formatting or other text:
{{
  "implementation_plans": [
    {{
      "id": "strategy_id",
      "title": "strategy title",
      "description": "strategy description",
      "impact": "impact level",
      "complexity": "complexity level",
      "timeframe": "implementation timeframe",
      "category": "category name",
      "key_benefits": ["benefit 1", "benefit 2", "benefit 3"],
      "implementation_steps": ["step 1", "step 2", "step 3", "step 4", "step 5"],
      "feasibility_score": 85
    }}
  ]
}}
"""

    @staticmethod
    def clean_plan(plan: Dict[str, Any], original: Strategy) -> ImplementationStrategy:
        """Merge one model plan onto its original strategy, keeping validation data.

        Levels and category go through the same normalization as generated strategies.
        """
        merged = replace(
            original,
            title=plan.get('title') or original.title,
            description=plan.get('description') or original.description,
            impact=normalize_level(plan.get('impact') or original.impact, IMPACT_LEVELS),
            complexity=normalize_level(plan.get('complexity') or original.complexity, COMPLEXITY_LEVELS),
            timeframe=normalize_level(plan.get('timeframe') or original.timeframe, TIMEFRAMES),
            category=normalize_category(plan.get('category') or original.category)
        )
        benefits = plan.get('key_benefits', plan.get('keyBenefits'))
        steps = plan.get('implementation_steps', plan.get('implementationSteps'))
        score = plan.get('feasibility_score', plan.get('feasibilityScore'))
        return build_implementation_strategy(
            merged,
            truncate_list(benefits) if isinstance(benefits, list) else list(DEFAULT_PLAN_BENEFITS),
            truncate_list(steps) if isinstance(steps, list) else list(DEFAULT_PLAN_STEPS),
            feasibility_score=clamp(score, 0, 100, DEFAULT_PLAN_FEASIBILITY)
        )

    def _fail_or_fallback(self, error: ImplementationPlanError, options: ImplementationPlanOptions,
                          strategies: List[Strategy]) -> List[ImplementationStrategy]:
        if options.fail_on_error:
            raise error
        logger.warning(f"⚠️ {error}")
        return self._generic_plans(strategies) if options.fallback_to_generic else []

    def _top_up(self, plans: List[ImplementationStrategy], failed: List[Strategy],
                minimum: int) -> List[ImplementationStrategy]:
        extra = self._generic_plans(failed)
        remaining = minimum - (len(plans) + len(extra))
        extra.extend(self.create_generic_implementation_plan(generic_strategy(i + 1)) for i in range(remaining))
        return plans + extra

    def _process_response(self, response: str, strategies: List[Strategy], valid_strategies: List[Strategy],
                          options: ImplementationPlanOptions) -> List[ImplementationStrategy]:
        data = ResponseParser.parse_json(response, repair=True)
        raw_plans = None
        if isinstance(data, dict):
            raw_plans = data.get('implementation_plans', data.get('implementationPlans'))
        if not isinstance(raw_plans, list):
            raise ImplementationPlanError('Invalid response structure: missing implementation_plans array')

        if not raw_plans:
            return self._fail_or_fallback(
                ImplementationPlanError('Model returned empty implementation plans array'),
                options, valid_strategies)

        strategies_by_id = {s.id: s for s in strategies}
        failed_ids: Set[str] = set()
        plans: List[ImplementationStrategy] = []
        for plan in raw_plans:
            plan_id = str(plan.get('id')) if isinstance(plan, dict) and plan.get('id') is not None else 'unknown'
            if plan_id not in strategies_by_id:
                logger.warning(f"⚠️ Plan has invalid or unknown id: {plan_id}")
                failed_ids.add(plan_id)
                continue
            try:
                plans.append(self.clean_plan(plan, strategies_by_id[plan_id]))
            except (TypeError, ValueError, AttributeError) as e:
                logger.error(f"❌ Error processing plan for strategy {plan_id}: {e}")
                failed_ids.add(plan_id)
                if not options.allow_partial_success and options.fail_on_error:
                    raise ImplementationPlanError('Failed to process an implementation plan', details=e) from e

        if not plans:
            return self._fail_or_fallback(
                ImplementationPlanError('No valid implementation plans could be processed'),
                options, valid_strategies)

        minimum = options.minimum_strategies or 1
        if options.require_minimum_strategies and len(plans) < minimum:
            error = ImplementationPlanError(f"Not enough valid plans. Required: {minimum}, Found: {len(plans)}")
            if options.fail_on_error:
                raise error
            logger.warning(f"⚠️ {error}")
            if options.fallback_to_generic:
                failed = [s for s in valid_strategies if s.id in failed_ids]
                return self._top_up(plans, failed, minimum)

        if options.fallback_to_generic:
            covered = {p.id for p in plans}
            missing = [s for s in valid_strategies if s.id not in covered]
            if missing:
                logger.warning(f"⚠️ Creating fallback plans for {len(missing)} strategies missing from the response")
                return plans + self._generic_plans(missing)

        return plans

    def create_implementation_plan(self, strategies: List[Strategy],
                                   options: Optional[ImplementationPlanOptions] = None) -> List[ImplementationStrategy]:
        """Plan every strategy.

        With `fail_on_error` the typed errors (NoValidStrategiesError, ParseError,
        ImplementationPlanError) are raised; otherwise the stage degrades to
        generic plans or an empty list according to `fallback_to_generic`.
        """
        options = options or ImplementationPlanOptions()
        logger.info(f"🛠️ Creating implementation plans for {len(strategies)} strategies")

        if not strategies:
            error = NoValidStrategiesError('No strategies provided to implementation planner')
            if options.fail_on_error:
                raise error
            logger.warning(f"⚠️ {error}")
            return []

        valid_strategies = list(strategies)
        if options.validate_llm_feasibility:
            valid_strategies = [s for s in strategies if validate_llm_feasibility(s)]
            if not valid_strategies:
                return self._fail_or_fallback(
                    NoValidStrategiesError('None of the provided strategies can be implemented with LLMs'),
                    options, strategies)
            if len(valid_strategies) < len(strategies):
                logger.warning(f"⚠️ Filtered out {len(strategies) - len(valid_strategies)} strategies "
                               f"that cannot be implemented with LLMs")

        minimum = options.minimum_strategies or 1
        if options.require_minimum_strategies and len(valid_strategies) < minimum:
            error = NoValidStrategiesError(
                f"Not enough valid strategies. Required: {minimum}, Found: {len(valid_strategies)}")
            if options.fail_on_error:
                raise error
            logger.warning(f"⚠️ {error}")
            if options.fallback_to_generic:
                return self._top_up([], valid_strategies, minimum)
            return self._generic_plans(valid_strategies)

        try:
            response = self.completion_service.generate(self.build_prompt(valid_strategies), DETERMINISTIC_PARAMS)
        except CompletionServiceError as e:
            logger.error(f"❌ Error calling model for implementation plans: {e}")
            if options.fail_on_error:
                raise ImplementationPlanError('AI model call failed', details=e) from e
            if options.fallback_to_generic:
                logger.warning("Using generic implementation plans due to model call failure")
                return self._generic_plans(valid_strategies)
            return []

        if self.verbose_logging:
            logger.info(f"Raw implementation response: {response}")
        try:
            plans = self._process_response(response, strategies, valid_strategies, options)
        except (ParseError, ImplementationPlanError) as e:
            logger.error(f"❌ Error parsing implementation plans: {e}")
            if not self.verbose_logging:
                logger.error("Enable verbose logging to see raw response")
            if isinstance(e, ParseError) and e.original_error is not None:
                logger.error(f"Error context: {ResponseParser.describe_error_position(e.original_error)}")
            if options.fail_on_error:
                raise
            if options.fallback_to_generic:
                logger.warning("Using generic implementation plans due to error")
                return self._generic_plans(valid_strategies)
            return []

        logger.info(f"✅ Created {len(plans)} implementation plans")
        return plans
