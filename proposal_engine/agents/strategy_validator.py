"""
Strategy validation agent for the AI Proposal Engine.

Scores each strategy on four 0-25 criteria (business alignment, market potential,
industry relevance, clarity) and attaches relevance judgments against the
industry pain points and the company's business challenges. The module also
holds the keyword-based pre-implementation checks run before planning.
"""
import json
import logging
from collections import Counter
from typing import Any, Dict, List, Optional

from proposal_engine.agents.strategy_generator import normalize_category
from proposal_engine.core.bedrock_manager import ANALYTICAL_PARAMS, CompletionService
from proposal_engine.core.exceptions import CompletionServiceError, ParseError, ResponseShapeError
from proposal_engine.core.models import (STRATEGY_CATEGORIES, PainPoint, PreImplementationReport,
                                         PreImplementationWarning, RelevanceJudgment, Strategy,
                                         ValidatedStrategy, ValidationCriteria, ValidationResult,
                                         build_validated_strategy, clamp, to_jsonable,
                                         with_implementation_warnings)
from proposal_engine.utils.response_parser import ResponseParser

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEFAULT_VALIDATION_SCORE = 75
DEFAULT_VALIDATION_CRITERIA = ValidationCriteria(
    business_alignment=20, market_potential=18, industry_relevance=22, clarity=15
)
DEFAULT_CLARITY = 20
REQUIRES_FEEDBACK_BELOW = 80

CRITERIA_KEYS = {
    'business_alignment': 'businessAlignment',
    'market_potential': 'marketPotential',
    'industry_relevance': 'industryRelevance',
    'clarity': 'clarity',
}

NON_LLM_KEYWORDS = [
    'neural network', 'deep learning', 'regression', 'classification algorithm',
    'decision tree', 'data mining', 'clustering', 'forecasting model',
    'recommender system', 'anomaly detection', 'computer vision', 'image generation',
    'image recognition', 'predictive analysis', 'statistical model', 'data warehousing'
]
LLM_KEYWORDS = [
    'llm', 'language model', 'gpt', 'claude', 'gemini', 'palm', 'text generation',
    'understanding', 'processing', 'conversation', 'chatbot', 'response generation',
    'content creation', 'analysis', 'summarization', 'knowledge extraction',
    'semantic search', 'embedding', 'question answering', 'rag', 'retrieval augmented'
]
UNSUITABLE_DOMAIN_KEYWORDS = [
    'real-time', 'latency-sensitive', 'safety-critical', 'control system',
    'autonomous vehicle', 'mission critical', 'embedded system'
]
MIN_DESCRIPTION_LENGTH = 50


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _field(raw: Dict[str, Any], snake: str, camel: str, default: Any = None) -> Any:
    if snake in raw:
        return raw[snake]
    return raw.get(camel, default)


def normalize_validation_scores(raw: Dict[str, Any]):
    """Return (validation_score, ValidationCriteria) from one model entry.

    Sub-criteria are clamped to [0, 25] and a missing or zero clarity defaults to
    20. When all four sub-criteria are numeric their sum replaces whatever total
    the model reported. The final score is clamped to [1, 100].
    """
    raw_criteria = _field(raw, 'validation_criteria', 'validationCriteria') or {}
    if not isinstance(raw_criteria, dict):
        raw_criteria = {}

    values = {}
    for snake, camel in CRITERIA_KEYS.items():
        value = _field(raw_criteria, snake, camel)
        values[snake] = clamp(value, 0, 25, 0) if _is_number(value) else None
    if not values['clarity']:
        values['clarity'] = DEFAULT_CLARITY

    criteria = ValidationCriteria(**{key: (value if value is not None else 0) for key, value in values.items()})
    if all(value is not None for value in values.values()):
        score = round(criteria.total())
    else:
        score = _field(raw, 'validation_score', 'validationScore', 0)
    return clamp(score, 1, 100, 1), criteria


def validate_strategies_before_implementation(strategies: List[ValidatedStrategy], log_warnings: bool = True,
                                              enrich_with_warnings: bool = True) -> PreImplementationReport:
    """Keyword checks flagging strategies that may not suit an LLM implementation.

    Never drops strategies. `all_valid` is False only when a high-severity
    warning was raised.
    """
    warnings: List[PreImplementationWarning] = []
    for strategy in strategies:
        content = f"{(strategy.title or '').lower()} {(strategy.description or '').lower()}"

        if not strategy.category or strategy.category.lower() not in STRATEGY_CATEGORIES:
            warnings.append(PreImplementationWarning(
                strategy.id, f'Strategy has invalid category: "{strategy.category or "undefined"}"', 'medium'))

        non_llm_matches = [k for k in NON_LLM_KEYWORDS if k in content]
        if non_llm_matches:
            warnings.append(PreImplementationWarning(
                strategy.id,
                f"Strategy contains non-LLM technology keywords: {', '.join(non_llm_matches)}",
                'high' if len(non_llm_matches) > 2 else 'medium'))

        if not any(k in content for k in LLM_KEYWORDS):
            warnings.append(PreImplementationWarning(
                strategy.id, 'Strategy does not mention any LLM-related technologies', 'high'))

        if strategy.description and len(strategy.description) < MIN_DESCRIPTION_LENGTH:
            warnings.append(PreImplementationWarning(
                strategy.id, 'Strategy description is too short to determine feasibility', 'low'))

        domain_matches = [k for k in UNSUITABLE_DOMAIN_KEYWORDS if k in content]
        if domain_matches:
            warnings.append(PreImplementationWarning(
                strategy.id,
                f"Strategy targets problem domains that may not be suitable for LLMs: {', '.join(domain_matches)}",
                'medium'))

    if log_warnings and warnings:
        logger.warning(f"⚠️ Found {len(warnings)} potential issues in {len(strategies)} strategies")
        for warning in warnings:
            logger.warning(f"[{warning.severity.upper()}] Strategy {warning.strategy_id}: {warning.message}")
        logger.warning(f"Warning counts: {dict(Counter(w.severity for w in warnings))}")

    enriched = list(strategies)
    if enrich_with_warnings:
        enriched = []
        for strategy in strategies:
            own = [w for w in warnings if w.strategy_id == strategy.id]
            if not own:
                enriched.append(strategy)
                continue
            severities = {w.severity for w in own}
            risk = 'high' if 'high' in severities else 'medium' if 'medium' in severities else 'low'
            enriched.append(with_implementation_warnings(strategy, [w.message for w in own], risk))

    return PreImplementationReport(
        strategies=enriched,
        warnings=warnings,
        all_valid=not any(w.severity == 'high' for w in warnings)
    )


class StrategyValidator:
    """Score strategies against the business context and attach relevance judgments."""

    def __init__(self, completion_service: CompletionService, verbose_logging: bool = False,
                 requires_feedback_below: float = REQUIRES_FEEDBACK_BELOW):
        self.completion_service = completion_service
        self.verbose_logging = verbose_logging
        self.requires_feedback_below = requires_feedback_below

    @staticmethod
    def _strategy_payload(strategies: List[Strategy]) -> str:
        return json.dumps([{
            'id': s.id, 'title': s.title, 'description': s.description, 'impact': s.impact,
            'complexity': s.complexity, 'timeframe': s.timeframe, 'category': s.category
        } for s in strategies], indent=2)

    @staticmethod
    def build_relevance_prompt(strategies: List[Strategy], targets: List[Dict[str, Any]], target_label: str) -> str:
        return f"""Evaluate how well each proposed AI strategy addresses the identified {target_label}.

{target_label.capitalize()}:
{json.dumps(targets, indent=2)}

AI Strategies:
{StrategyValidator._strategy_payload(strategies)}

For each strategy and each item above, assess:
1. Relevance score (0-10) where 0 means "not relevant at all" and 10 means "perfectly addresses this item"
2. Brief explanation of how this strategy helps address it
3. Expected improvement range based on industry benchmarks (e.g., "20-30% reduction in processing time")

Return only a valid JSON object with no markdown formatting, keyed by strategy id then item id:
{{
  "strategy_id": {{
    "item_id": {{
      "relevance_score": 8,
      "explanation": "This strategy addresses... by...",
      "expected_improvement": "70% reduction in X"
    }}
  }}
}}
"""

    @staticmethod
    def normalize_relevance_map(data: Any, default_explanation: str,
                                default_improvement: str) -> Dict[str, List[RelevanceJudgment]]:
        """Scores clamped to [0, 10]; each strategy's list sorted by score, highest first."""
        if not isinstance(data, dict):
            raise ResponseShapeError("Relevance response is not a JSON object")
        relevances: Dict[str, List[RelevanceJudgment]] = {}
        for strategy_id, target_map in data.items():
            if not isinstance(target_map, dict):
                continue
            judgments = []
            for target_id, relevance in target_map.items():
                if not isinstance(relevance, dict):
                    continue
                score = _field(relevance, 'relevance_score', 'relevanceScore', 0)
                judgments.append(RelevanceJudgment(
                    target_id=str(target_id),
                    relevance_score=clamp(score or 0, 0, 10, 0),
                    explanation=_field(relevance, 'explanation', 'explanation') or default_explanation,
                    expected_improvement=(_field(relevance, 'expected_improvement', 'expectedImprovement')
                                          or default_improvement)
                ))
            judgments.sort(key=lambda j: j.relevance_score, reverse=True)
            relevances[str(strategy_id)] = judgments
        return relevances

    def _assess_relevance(self, strategies: List[Strategy], targets: List[Dict[str, Any]], target_label: str,
                          default_explanation: str, default_improvement: str) -> Dict[str, List[RelevanceJudgment]]:
        if not targets or not strategies:
            return {}
        logger.info(f"🎯 Assessing strategy relevance to {target_label}")
        try:
            response = self.completion_service.generate(
                self.build_relevance_prompt(strategies, targets, target_label), ANALYTICAL_PARAMS)
            if self.verbose_logging:
                logger.info(f"Raw relevance response: {response}")
            return self.normalize_relevance_map(ResponseParser.parse_json(response),
                                                default_explanation, default_improvement)
        except (CompletionServiceError, ParseError, ResponseShapeError) as e:
            logger.error(f"❌ Relevance assessment for {target_label} failed: {e}")
            return {}

    def assess_pain_point_relevance(self, strategies: List[Strategy],
                                    pain_points: List[PainPoint]) -> Dict[str, List[RelevanceJudgment]]:
        return self._assess_relevance(
            strategies, to_jsonable(pain_points), 'possible industry pain points',
            "Addresses common industry challenges.", "Moderate improvement expected")

    def assess_business_challenge_relevance(self, strategies: List[Strategy],
                                            business_challenges: List[str]) -> Dict[str, List[RelevanceJudgment]]:
        targets = [{'id': f"challenge_{i + 1}", 'description': challenge}
                   for i, challenge in enumerate(business_challenges or [])]
        return self._assess_relevance(
            strategies, targets, 'company-specific business challenges',
            "Addresses key business challenge.", "Significant improvement expected")

    @staticmethod
    def build_validation_prompt(strategies: List[Strategy], business_context: str, industry: str) -> str:
        return f"""You are an AI validation expert who reviews AI transformation strategies.
Evaluate the following strategies based on how well they align with the business context and industry.

IMPORTANT: All strategies MUST leverage Large Language Models (LLMs) as their PRIMARY technology.
Strategies where an LLM is not the core reasoning/processing component should receive low scores.

For each strategy, assign points for these criteria (maximum shown in brackets):
1. Business Alignment [0-25]: fit with the business model and objectives, real business value
2. Market Potential [0-25]: demonstrated demand, market impact, competitive advantage
3. Industry Relevance [0-25]: relevance to industry trends and LLM opportunities in the industry
4. LLM Suitability and Clarity [0-25]: clearly articulated with the LLM as the primary intelligence

Total Validation Score = Sum of all criteria (maximum 100 points)
Keep each strategy's id unchanged.

Business Context:
{business_context}

Industry:
{industry}

Strategies:
{StrategyValidator._strategy_payload(strategies)}

Return only a valid JSON object with no markdown formatting or other text:
{{
  "validated_strategies": [
    {{
      "id": "strategy_id",
      "title": "potentially revised title",
      "description": "potentially revised description",
      "impact": "High/Medium/Low",
      "complexity": "High/Medium/Low",
      "timeframe": "Short-term/Medium-term/Long-term",
      "category": "category name",
      "validation_criteria": {{
        "business_alignment": 20,
        "market_potential": 18,
        "industry_relevance": 22,
        "clarity": 15
      }},
      "validation_score": 75
    }}
  ]
}}
"""

    def _default_result(self, strategies: List[Strategy], pain_rel: Dict[str, List[RelevanceJudgment]],
                        bc_rel: Dict[str, List[RelevanceJudgment]]) -> ValidationResult:
        validated = [build_validated_strategy(s, DEFAULT_VALIDATION_SCORE,
                                              ValidationCriteria(**vars(DEFAULT_VALIDATION_CRITERIA)),
                                              pain_rel.get(s.id), bc_rel.get(s.id))
                     for s in strategies]
        return ValidationResult(strategies=validated, requires_feedback=False,
                                average_score=DEFAULT_VALIDATION_SCORE)

    @staticmethod
    def _revised(strategy: Strategy, raw: Dict[str, Any]) -> Strategy:
        """The input strategy with any non-empty revisions the validator suggested."""
        return Strategy(
            id=strategy.id,
            title=raw.get('title') or strategy.title,
            description=raw.get('description') or strategy.description,
            impact=strategy.impact,
            complexity=strategy.complexity,
            timeframe=strategy.timeframe,
            category=normalize_category(raw['category']) if raw.get('category') else strategy.category
        )

    def validate_strategies(self, strategies: List[Strategy], business_context: str, industry: str,
                            pain_points: Optional[List[PainPoint]] = None,
                            business_challenges: Optional[List[str]] = None) -> ValidationResult:
        """Validate a batch. Strategies absent from the model's answer get the default score."""
        logger.info(f"🧪 Validating {len(strategies)} strategies")
        if not strategies:
            return ValidationResult(strategies=[], requires_feedback=False, average_score=0)

        pain_rel = self.assess_pain_point_relevance(strategies, pain_points or [])
        bc_rel = self.assess_business_challenge_relevance(strategies, business_challenges or [])

        try:
            response = self.completion_service.generate(
                self.build_validation_prompt(strategies, business_context, industry), ANALYTICAL_PARAMS)
            if self.verbose_logging:
                logger.info(f"Raw validation response: {response}")
            data = ResponseParser.parse_json(response)
            entries = _field(data, 'validated_strategies', 'validatedStrategies') if isinstance(data, dict) else None
            if not isinstance(entries, list):
                raise ResponseShapeError("Validation response has no validated_strategies array")
        except (CompletionServiceError, ParseError, ResponseShapeError) as e:
            logger.error(f"❌ Strategy validation failed, using default scores: {e}")
            if not self.verbose_logging:
                logger.error("Enable verbose logging to see raw response")
            return self._default_result(strategies, pain_rel, bc_rel)

        entries_by_id = {str(entry.get('id')): entry for entry in entries if isinstance(entry, dict)}
        validated = []
        for strategy in strategies:
            raw = entries_by_id.get(strategy.id)
            if raw is None:
                logger.warning(f"⚠️ Strategy {strategy.id} missing from validation response, using default score")
                validated.append(build_validated_strategy(
                    strategy, DEFAULT_VALIDATION_SCORE, ValidationCriteria(**vars(DEFAULT_VALIDATION_CRITERIA)),
                    pain_rel.get(strategy.id), bc_rel.get(strategy.id)))
                continue
            score, criteria = normalize_validation_scores(raw)
            validated.append(build_validated_strategy(
                self._revised(strategy, raw), score, criteria, pain_rel.get(strategy.id), bc_rel.get(strategy.id)))

        average_score = sum(s.validation_score for s in validated) / len(validated)
        logger.info(f"✅ Validation complete, average score {average_score:.1f}")
        return ValidationResult(
            strategies=validated,
            requires_feedback=average_score < self.requires_feedback_below,
            average_score=average_score
        )
