"""
Dataclasses for the AI Proposal Engine.

Every entity transition (Strategy -> ValidatedStrategy -> ImplementationStrategy
-> FeasibilityAnalysis -> ScoredStrategy) goes through a builder function below so
that field defaults live in one place.
"""
from dataclasses import asdict, dataclass, field, is_dataclass
from typing import Any, Dict, List, Optional

STRATEGY_CATEGORIES = [
    'conversation', 'content generation', 'text analysis',
    'knowledge management', 'visual understanding', 'automation', 'other'
]
IMPACT_LEVELS = ['High', 'Medium', 'Low']
COMPLEXITY_LEVELS = ['High', 'Medium', 'Low']
TIMEFRAMES = ['Short-term', 'Medium-term', 'Long-term']

# Upper bound for every benefits/steps/challenges/risks list
MAX_LIST_ITEMS = 5


def truncate_list(values: Optional[List[Any]], limit: int = MAX_LIST_ITEMS) -> List[Any]:
    """Drop empty entries and keep at most `limit` items."""
    if not isinstance(values, list):
        return []
    return [value for value in values if value][:limit]


def clamp(value: Any, lower: float, upper: float, default: float) -> float:
    """Clamp a numeric value into [lower, upper]; non-numeric values become `default`."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        value = default
    return min(upper, max(lower, value))


def to_jsonable(obj: Any) -> Any:
    """Convert dataclasses (and lists/dicts of them) to plain JSON-compatible data."""
    if is_dataclass(obj) and not isinstance(obj, type):
        return asdict(obj)
    if isinstance(obj, list):
        return [to_jsonable(item) for item in obj]
    if isinstance(obj, dict):
        return {key: to_jsonable(value) for key, value in obj.items()}
    return obj


@dataclass
class ScrapedData:
    """Text extracted from a company website."""
    page_content: str = ""
    title: str = ""
    meta_description: str = ""
    links: List[str] = field(default_factory=list)
    images: List[str] = field(default_factory=list)
    products: List[str] = field(default_factory=list)
    services: List[str] = field(default_factory=list)
    about_text: str = ""
    team_info: List[str] = field(default_factory=list)

    @classmethod
    def fallback(cls, company_name: str, company_url: str) -> "ScrapedData":
        """Minimal record derived from the company name when scraping fails."""
        return cls(
            page_content=f"{company_name} website content",
            title=f"{company_name} - Innovative Solutions",
            meta_description=f"{company_name} provides innovative solutions for modern businesses.",
            links=[company_url] if company_url else [],
            images=[],
            products=["Products"],
            services=["Services"],
            about_text=f"{company_name} is a company focused on innovation.",
            team_info=[]
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScrapedData":
        return cls(
            page_content=data.get('page_content', ''),
            title=data.get('title', ''),
            meta_description=data.get('meta_description', ''),
            links=list(data.get('links', [])),
            images=list(data.get('images', [])),
            products=list(data.get('products', [])),
            services=list(data.get('services', [])),
            about_text=data.get('about_text', ''),
            team_info=list(data.get('team_info', []))
        )


@dataclass
class ContextAnalysis:
    business_context: str
    domain_knowledge: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContextAnalysis":
        return cls(business_context=data['business_context'], domain_knowledge=data['domain_knowledge'])


@dataclass
class PainPoint:
    """An industry-level challenge candidate strategies are scored against."""
    id: str
    title: str
    description: str
    typical_severity: int = 5
    common_manifestations: List[str] = field(default_factory=list)
    industry_relevance: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PainPoint":
        return cls(
            id=data['id'],
            title=data.get('title', ''),
            description=data.get('description', ''),
            typical_severity=data.get('typical_severity', 5),
            common_manifestations=list(data.get('common_manifestations', [])),
            industry_relevance=data.get('industry_relevance', '')
        )


@dataclass
class IndustryInsights:
    industry: str
    industry_insights: List[str] = field(default_factory=list)
    possible_pain_points: List[PainPoint] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IndustryInsights":
        return cls(
            industry=data['industry'],
            industry_insights=list(data.get('industry_insights', [])),
            possible_pain_points=[PainPoint.from_dict(p) for p in data.get('possible_pain_points', [])]
        )


@dataclass
class RelevanceJudgment:
    """How well a strategy addresses one pain point or business challenge (0-10)."""
    target_id: str
    relevance_score: float
    explanation: str = ""
    expected_improvement: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RelevanceJudgment":
        return cls(
            target_id=data['target_id'],
            relevance_score=data['relevance_score'],
            explanation=data.get('explanation', ''),
            expected_improvement=data.get('expected_improvement', '')
        )


@dataclass
class ValidationCriteria:
    """Four 0-25 sub-scores that add up to the validation score."""
    business_alignment: float = 0
    market_potential: float = 0
    industry_relevance: float = 0
    clarity: float = 0

    def total(self) -> float:
        return self.business_alignment + self.market_potential + self.industry_relevance + self.clarity

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ValidationCriteria":
        return cls(
            business_alignment=data.get('business_alignment', 0),
            market_potential=data.get('market_potential', 0),
            industry_relevance=data.get('industry_relevance', 0),
            clarity=data.get('clarity', 0)
        )


@dataclass
class FeasibilityCriteria:
    """Four 0-25 sub-scores that add up to the feasibility score."""
    technical_feasibility: float = 0
    resource_requirements: float = 0
    risk_assessment: float = 0
    implementation_complexity: float = 0

    def total(self) -> float:
        return (self.technical_feasibility + self.resource_requirements
                + self.risk_assessment + self.implementation_complexity)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FeasibilityCriteria":
        return cls(
            technical_feasibility=data.get('technical_feasibility', 0),
            resource_requirements=data.get('resource_requirements', 0),
            risk_assessment=data.get('risk_assessment', 0),
            implementation_complexity=data.get('implementation_complexity', 0)
        )


@dataclass
class Strategy:
    """A candidate AI-transformation initiative."""
    id: str
    title: str
    description: str
    impact: str = 'Medium'
    complexity: str = 'Medium'
    timeframe: str = 'Medium-term'
    category: str = 'other'

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        return cls(**cls._kwargs_from_dict(data))

    @classmethod
    def _kwargs_from_dict(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'id': str(data['id']),
            'title': data.get('title', ''),
            'description': data.get('description', ''),
            'impact': data.get('impact', 'Medium'),
            'complexity': data.get('complexity', 'Medium'),
            'timeframe': data.get('timeframe', 'Medium-term'),
            'category': data.get('category', 'other'),
        }


@dataclass
class ValidatedStrategy(Strategy):
    validation_score: float = 0
    validation_criteria: ValidationCriteria = field(default_factory=ValidationCriteria)
    pain_point_relevances: List[RelevanceJudgment] = field(default_factory=list)
    business_challenge_relevances: List[RelevanceJudgment] = field(default_factory=list)
    implementation_warnings: List[str] = field(default_factory=list)
    implementation_risk: Optional[str] = None

    @classmethod
    def _kwargs_from_dict(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        kwargs = super()._kwargs_from_dict(data)
        kwargs.update(
            validation_score=data.get('validation_score', 0),
            validation_criteria=ValidationCriteria.from_dict(data.get('validation_criteria') or {}),
            pain_point_relevances=[RelevanceJudgment.from_dict(r) for r in data.get('pain_point_relevances', [])],
            business_challenge_relevances=[
                RelevanceJudgment.from_dict(r) for r in data.get('business_challenge_relevances', [])
            ],
            implementation_warnings=list(data.get('implementation_warnings', [])),
            implementation_risk=data.get('implementation_risk')
        )
        return kwargs


@dataclass
class ImplementationStrategy(ValidatedStrategy):
    key_benefits: List[str] = field(default_factory=list)
    implementation_steps: List[str] = field(default_factory=list)
    feasibility_score: Optional[float] = None

    @classmethod
    def _kwargs_from_dict(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        kwargs = super()._kwargs_from_dict(data)
        kwargs.update(
            key_benefits=list(data.get('key_benefits', [])),
            implementation_steps=list(data.get('implementation_steps', [])),
            feasibility_score=data.get('feasibility_score')
        )
        return kwargs


@dataclass
class FeasibilityAnalysis(ImplementationStrategy):
    feasibility_criteria: Optional[FeasibilityCriteria] = None
    technical_challenges: List[str] = field(default_factory=list)
    resource_requirements: List[str] = field(default_factory=list)
    risk_factors: List[str] = field(default_factory=list)
    mitigation_strategies: List[str] = field(default_factory=list)
    recommended_approach: str = ""

    @classmethod
    def _kwargs_from_dict(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        kwargs = super()._kwargs_from_dict(data)
        criteria = data.get('feasibility_criteria')
        kwargs.update(
            feasibility_criteria=FeasibilityCriteria.from_dict(criteria) if criteria else None,
            technical_challenges=list(data.get('technical_challenges', [])),
            resource_requirements=list(data.get('resource_requirements', [])),
            risk_factors=list(data.get('risk_factors', [])),
            mitigation_strategies=list(data.get('mitigation_strategies', [])),
            recommended_approach=data.get('recommended_approach', '')
        )
        return kwargs


@dataclass
class ScoredStrategy(FeasibilityAnalysis):
    opportunity_score: float = 0
    combined_score: float = 0

    @classmethod
    def _kwargs_from_dict(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        kwargs = super()._kwargs_from_dict(data)
        kwargs.update(
            opportunity_score=data.get('opportunity_score', 0),
            combined_score=data.get('combined_score', 0)
        )
        return kwargs


def _strategy_fields(strategy: Strategy) -> Dict[str, Any]:
    return {
        'id': strategy.id,
        'title': strategy.title,
        'description': strategy.description,
        'impact': strategy.impact,
        'complexity': strategy.complexity,
        'timeframe': strategy.timeframe,
        'category': strategy.category,
    }


def _validation_fields(strategy: Strategy) -> Dict[str, Any]:
    return {
        'validation_score': getattr(strategy, 'validation_score', 0),
        'validation_criteria': getattr(strategy, 'validation_criteria', None) or ValidationCriteria(),
        'pain_point_relevances': list(getattr(strategy, 'pain_point_relevances', [])),
        'business_challenge_relevances': list(getattr(strategy, 'business_challenge_relevances', [])),
        'implementation_warnings': list(getattr(strategy, 'implementation_warnings', [])),
        'implementation_risk': getattr(strategy, 'implementation_risk', None),
    }


def _implementation_fields(strategy: Strategy) -> Dict[str, Any]:
    return {
        'key_benefits': truncate_list(getattr(strategy, 'key_benefits', [])),
        'implementation_steps': truncate_list(getattr(strategy, 'implementation_steps', [])),
        'feasibility_score': getattr(strategy, 'feasibility_score', None),
    }


def build_validated_strategy(strategy: Strategy, validation_score: float,
                             validation_criteria: ValidationCriteria,
                             pain_point_relevances: List[RelevanceJudgment] = None,
                             business_challenge_relevances: List[RelevanceJudgment] = None) -> ValidatedStrategy:
    """Strategy -> ValidatedStrategy."""
    return ValidatedStrategy(
        **_strategy_fields(strategy),
        validation_score=validation_score,
        validation_criteria=validation_criteria,
        pain_point_relevances=list(pain_point_relevances or []),
        business_challenge_relevances=list(business_challenge_relevances or []),
        implementation_warnings=list(getattr(strategy, 'implementation_warnings', [])),
        implementation_risk=getattr(strategy, 'implementation_risk', None)
    )


def with_implementation_warnings(strategy: ValidatedStrategy, warnings: List[str],
                                 risk: Optional[str]) -> ValidatedStrategy:
    """Copy of a validated strategy carrying pre-implementation warnings."""
    fields = _validation_fields(strategy)
    fields.update(implementation_warnings=list(warnings), implementation_risk=risk)
    return ValidatedStrategy(**_strategy_fields(strategy), **fields)


def build_implementation_strategy(strategy: Strategy, key_benefits: List[str],
                                  implementation_steps: List[str],
                                  feasibility_score: Optional[float] = None) -> ImplementationStrategy:
    """(Validated)Strategy -> ImplementationStrategy, lists capped at MAX_LIST_ITEMS."""
    return ImplementationStrategy(
        **_strategy_fields(strategy),
        **_validation_fields(strategy),
        key_benefits=truncate_list(key_benefits),
        implementation_steps=truncate_list(implementation_steps),
        feasibility_score=feasibility_score
    )


def build_feasibility_analysis(strategy: ImplementationStrategy, feasibility_score: float,
                               feasibility_criteria: Optional[FeasibilityCriteria],
                               technical_challenges: List[str], resource_requirements: List[str],
                               risk_factors: List[str], mitigation_strategies: List[str],
                               recommended_approach: str) -> FeasibilityAnalysis:
    """ImplementationStrategy -> FeasibilityAnalysis, lists capped at MAX_LIST_ITEMS."""
    fields = _implementation_fields(strategy)
    fields['feasibility_score'] = feasibility_score
    return FeasibilityAnalysis(
        **_strategy_fields(strategy),
        **_validation_fields(strategy),
        **fields,
        feasibility_criteria=feasibility_criteria,
        technical_challenges=truncate_list(technical_challenges),
        resource_requirements=truncate_list(resource_requirements),
        risk_factors=truncate_list(risk_factors),
        mitigation_strategies=truncate_list(mitigation_strategies),
        recommended_approach=recommended_approach or ""
    )


def as_implementation_strategy(analysis: FeasibilityAnalysis) -> ImplementationStrategy:
    """Strip the feasibility details off an analysis, keeping its score."""
    return ImplementationStrategy(
        **_strategy_fields(analysis),
        **_validation_fields(analysis),
        **_implementation_fields(analysis)
    )


def build_scored_strategy(analysis: FeasibilityAnalysis, opportunity_score: float,
                          combined_score: float) -> ScoredStrategy:
    """FeasibilityAnalysis -> ScoredStrategy."""
    return ScoredStrategy(
        **_strategy_fields(analysis),
        **_validation_fields(analysis),
        **_implementation_fields(analysis),
        feasibility_criteria=getattr(analysis, 'feasibility_criteria', None),
        technical_challenges=truncate_list(getattr(analysis, 'technical_challenges', [])),
        resource_requirements=truncate_list(getattr(analysis, 'resource_requirements', [])),
        risk_factors=truncate_list(getattr(analysis, 'risk_factors', [])),
        mitigation_strategies=truncate_list(getattr(analysis, 'mitigation_strategies', [])),
        recommended_approach=getattr(analysis, 'recommended_approach', ''),
        opportunity_score=opportunity_score,
        combined_score=combined_score
    )


@dataclass
class StrategyFeedback:
    """Feedback handed back to strategy generation during validation refinement."""
    strategies: List[ValidatedStrategy]
    feedback_comments: List[str]
    industry_context: str = ""


@dataclass
class ValidationResult:
    strategies: List[ValidatedStrategy]
    requires_feedback: bool
    average_score: float

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ValidationResult":
        return cls(
            strategies=[ValidatedStrategy.from_dict(s) for s in data['strategies']],
            requires_feedback=data.get('requires_feedback', False),
            average_score=data.get('average_score', 0)
        )


@dataclass
class FeasibilityResult:
    strategies: List[FeasibilityAnalysis]
    technical_feedback: Optional[str]
    average_score: float
    requires_refinement: bool

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FeasibilityResult":
        return cls(
            strategies=[FeasibilityAnalysis.from_dict(s) for s in data['strategies']],
            technical_feedback=data.get('technical_feedback'),
            average_score=data.get('average_score', 0),
            requires_refinement=data.get('requires_refinement', False)
        )


@dataclass
class PreImplementationWarning:
    strategy_id: str
    message: str
    severity: str


@dataclass
class PreImplementationReport:
    strategies: List[ValidatedStrategy]
    warnings: List[PreImplementationWarning]
    all_valid: bool


@dataclass
class Proposal:
    """The final artifact of one pipeline run."""
    id: str
    company_name: str
    company_url: str
    industry: str
    business_context: str
    possible_pain_points: List[PainPoint] = field(default_factory=list)
    ai_opportunities: List[ScoredStrategy] = field(default_factory=list)
    business_challenges: List[str] = field(default_factory=list)
    recommended_approach: str = ""
    next_steps: List[str] = field(default_factory=list)
    image_prompts: List[str] = field(default_factory=list)
    generated_at: str = ""
    is_mock: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Proposal":
        return cls(
            id=data['id'],
            company_name=data['company_name'],
            company_url=data.get('company_url', ''),
            industry=data.get('industry', ''),
            business_context=data.get('business_context', ''),
            possible_pain_points=[PainPoint.from_dict(p) for p in data.get('possible_pain_points', [])],
            ai_opportunities=[ScoredStrategy.from_dict(s) for s in data.get('ai_opportunities', [])],
            business_challenges=list(data.get('business_challenges', [])),
            recommended_approach=data.get('recommended_approach', ''),
            next_steps=list(data.get('next_steps', [])),
            image_prompts=list(data.get('image_prompts', [])),
            generated_at=data.get('generated_at', ''),
            is_mock=data.get('is_mock', False)
        )


@dataclass
class ExecutiveSummary:
    problem_statement: str
    partnership_proposals: List[str] = field(default_factory=list)
    timing_points: List[str] = field(default_factory=list)
    business_context_summary: str = ""
    prioritized_challenges: List[Dict[str, Any]] = field(default_factory=list)
    challenge_solutions: List[Dict[str, Any]] = field(default_factory=list)
    industry_terminology: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExecutiveSummary":
        return cls(
            problem_statement=data.get('problem_statement', ''),
            partnership_proposals=list(data.get('partnership_proposals', [])),
            timing_points=list(data.get('timing_points', [])),
            business_context_summary=data.get('business_context_summary', ''),
            prioritized_challenges=list(data.get('prioritized_challenges', [])),
            challenge_solutions=list(data.get('challenge_solutions', [])),
            industry_terminology=list(data.get('industry_terminology', []))
        )


@dataclass
class NarrativeContent:
    """Pre-generated narrative text used by the PDF proposal."""
    company_context: str
    key_business_challenges: List[str]
    strategic_opportunities: List[str]
    executive_summary: ExecutiveSummary
    generated_at: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NarrativeContent":
        return cls(
            company_context=data.get('company_context', ''),
            key_business_challenges=list(data.get('key_business_challenges', [])),
            strategic_opportunities=list(data.get('strategic_opportunities', [])),
            executive_summary=ExecutiveSummary.from_dict(data['executive_summary']),
            generated_at=data.get('generated_at', '')
        )
