"""
Technical feasibility agent for the AI Proposal Engine.

Scores each implementation strategy on four 0-25 criteria. The feasibility score
is always the sum of the clamped criteria, whatever total the model reported.
"""
import json
import logging
from typing import Any, Dict, List, Optional

from proposal_engine.core.bedrock_manager import ANALYTICAL_PARAMS, CompletionService
from proposal_engine.core.exceptions import CompletionServiceError, ParseError, ResponseShapeError
from proposal_engine.core.models import (FeasibilityAnalysis, FeasibilityCriteria, FeasibilityResult,
                                         ImplementationStrategy, build_feasibility_analysis, clamp)
from proposal_engine.utils.response_parser import ResponseParser

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEFAULT_FEASIBILITY_SCORE = 75
DEFAULT_FEASIBILITY_CRITERIA = {
    'technical_feasibility': 20,
    'resource_requirements': 18,
    'risk_assessment': 19,
    'implementation_complexity': 18
}
DEFAULT_TECHNICAL_CHALLENGES = ["Integration complexity", "Data quality requirements"]
DEFAULT_RESOURCE_REQUIREMENTS = ["AI expertise", "Development team", "Infrastructure"]
DEFAULT_RISK_FACTORS = ["Technical risks", "Resource availability"]
DEFAULT_MITIGATION_STRATEGIES = ["Phased implementation", "Expert consultation"]
DEFAULT_RECOMMENDED_APPROACH = "Start with a pilot project to validate approach"
REQUIRES_REFINEMENT_BELOW = 75

CRITERIA_KEYS = {
    'technical_feasibility': 'technicalFeasibility',
    'resource_requirements': 'resourceRequirements',
    'risk_assessment': 'riskAssessment',
    'implementation_complexity': 'implementationComplexity',
}


def default_feasibility_analysis(strategy: ImplementationStrategy) -> FeasibilityAnalysis:
    return build_feasibility_analysis(
        strategy,
        DEFAULT_FEASIBILITY_SCORE,
        FeasibilityCriteria(**DEFAULT_FEASIBILITY_CRITERIA),
        DEFAULT_TECHNICAL_CHALLENGES,
        DEFAULT_RESOURCE_REQUIREMENTS,
        DEFAULT_RISK_FACTORS,
        DEFAULT_MITIGATION_STRATEGIES,
        DEFAULT_RECOMMENDED_APPROACH
    )


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item]


def _pick(raw: Dict[str, Any], snake: str, camel: str) -> Any:
    return raw.get(snake, raw.get(camel))


class FeasibilityChecker:
    """Assess technical feasibility, resources, risks and mitigations per strategy."""

    def __init__(self, completion_service: CompletionService, verbose_logging: bool = False,
                 requires_refinement_below: float = REQUIRES_REFINEMENT_BELOW):
        self.completion_service = completion_service
        self.verbose_logging = verbose_logging
        self.requires_refinement_below = requires_refinement_below

    @staticmethod
    def build_prompt(strategies: List[ImplementationStrategy]) -> str:
        payload = json.dumps([{
            'id': s.id, 'title': s.title, 'description': s.description, 'impact': s.impact,
            'complexity': s.complexity, 'timeframe': s.timeframe, 'category': s.category,
            'key_benefits': s.key_benefits, 'implementation_steps': s.implementation_steps
        } for s in strategies], indent=2)
        return f"""You are an AI feasibility expert who evaluates AI implementation opportunities. Focus EXCLUSIVELY on strategies
where Large Language Models (LLMs) are the PRIMARY technology component.

For each strategy, provide a detailed feasibility analysis with these criteria:

1. Technical Feasibility [0-25 points]: availability and maturity of the LLM capability, compatibility
   with existing systems, proven similar applications, well-defined scope.
2. Resource Requirements [0-25 points]: LLM skills in-house, reasonable timeline, API or fine-tuning cost
   proportional to benefits, ability to phase the rollout.
3. Risk Assessment [0-25 points]: predictability of outcomes, mitigations for hallucinations,
   containment of negative impacts, organizational resistance.
4. Implementation Complexity [0-25 points]: dependencies, stakeholders, process change,
   ease of testing and validating LLM outputs.

Total Feasibility Score = sum of all criteria (maximum 100 points). Higher means more feasible.

For each strategy also provide (MAXIMUM 5 items each, formatted "Title: Brief description"):
technical challenges, resource requirements, risk factors, mitigation strategies,
and a recommended implementation approach.

If a strategy does not have an LLM as its core intelligence, assign it a feasibility score below 40
and explain why in the technical feedback.

Strategies:
{payload}

Return only a valid JSON object with no markdown formatting or other text:
{{
  "feasibility_analysis": [
    {{
      "id": "strategy_id",
      "feasibility_criteria": {{
        "technical_feasibility": 20,
        "resource_requirements": 15,
        "risk_assessment": 18,
        "implementation_complexity": 16
      }},
      "feasibility_score": 69,
      "technical_challenges": ["challenge 1", "challenge 2"],
      "resource_requirements": ["requirement 1", "requirement 2"],
      "risk_factors": ["risk 1", "risk 2"],
      "mitigation_strategies": ["strategy 1", "strategy 2"],
      "recommended_approach": "detailed recommendation"
    }}
  ],
  "technical_feedback": "Technical feedback for the strategy engine, or null if no feedback needed"
}}
"""

    @staticmethod
    def normalize_criteria(raw: Any) -> Optional[FeasibilityCriteria]:
        """Each criterion clamped to [0, 25]; None when the model gave no criteria."""
        if not isinstance(raw, dict):
            return None
        return FeasibilityCriteria(**{
            key: clamp(raw.get(key, raw.get(camel)), 0, 25, 0) for key, camel in CRITERIA_KEYS.items()
        })

    def analyze(self, raw: Dict[str, Any], strategy: ImplementationStrategy) -> FeasibilityAnalysis:
        criteria = self.normalize_criteria(_pick(raw, 'feasibility_criteria', 'feasibilityCriteria'))
        if criteria is not None:
            score = criteria.total()
        else:
            score = clamp(_pick(raw, 'feasibility_score', 'feasibilityScore'), 0, 100, DEFAULT_FEASIBILITY_SCORE)
        return build_feasibility_analysis(
            strategy,
            score,
            criteria,
            _string_list(_pick(raw, 'technical_challenges', 'technicalChallenges')),
            _string_list(_pick(raw, 'resource_requirements', 'resourceRequirements')),
            _string_list(_pick(raw, 'risk_factors', 'riskFactors')),
            _string_list(_pick(raw, 'mitigation_strategies', 'mitigationStrategies')),
            str(_pick(raw, 'recommended_approach', 'recommendedApproach') or '')
        )

    def _result(self, analyses: List[FeasibilityAnalysis], technical_feedback: Optional[str]) -> FeasibilityResult:
        average = sum(a.feasibility_score for a in analyses) / len(analyses) if analyses else 0
        return FeasibilityResult(
            strategies=analyses,
            technical_feedback=technical_feedback,
            average_score=average,
            requires_refinement=bool(analyses) and average < self.requires_refinement_below
        )

    def check_feasibility(self, strategies: List[ImplementationStrategy]) -> FeasibilityResult:
        """Never raises; failures give every strategy the default analysis (score 75)."""
        logger.info(f"🔬 Analyzing feasibility of {len(strategies)} strategies")
        if not strategies:
            return FeasibilityResult(strategies=[], technical_feedback=None, average_score=0,
                                     requires_refinement=False)

        try:
            response = self.completion_service.generate(self.build_prompt(strategies), ANALYTICAL_PARAMS)
            if self.verbose_logging:
                logger.info(f"Raw feasibility response: {response}")
            data = ResponseParser.parse_json(response)
            raw_analyses = None
            if isinstance(data, dict):
                raw_analyses = _pick(data, 'feasibility_analysis', 'feasibilityAnalysis')
            if not isinstance(raw_analyses, list):
                raise ResponseShapeError("Feasibility response has no feasibility_analysis array")
        except (CompletionServiceError, ParseError, ResponseShapeError) as e:
            logger.error(f"❌ Feasibility analysis failed, using defaults: {e}")
            if not self.verbose_logging:
                logger.error("Enable verbose logging to see raw response")
            return self._result([default_feasibility_analysis(s) for s in strategies], None)

        by_id = {str(raw.get('id')): raw for raw in raw_analyses if isinstance(raw, dict) and raw.get('id')}
        analyses = []
        for index, strategy in enumerate(strategies):
            raw = by_id.get(strategy.id)
            if raw is None and index < len(raw_analyses) and isinstance(raw_analyses[index], dict):
                raw = raw_analyses[index]
            if raw is None:
                logger.warning(f"⚠️ No feasibility analysis returned for {strategy.id}, using default")
                analyses.append(default_feasibility_analysis(strategy))
            else:
                analyses.append(self.analyze(raw, strategy))

        feedback = _pick(data, 'technical_feedback', 'technicalFeedback')
        result = self._result(analyses, str(feedback) if feedback else None)
        logger.info(f"✅ Feasibility average score: {result.average_score:.1f}")
        return result
