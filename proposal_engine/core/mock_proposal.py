"""
Canned proposal returned when the pipeline fails outright.

The payload has the same shape as a computed proposal; `is_mock` is the only
field that tells the two apart.
"""
import time

from proposal_engine.core.models import ImplementationStrategy, Proposal, ScoredStrategy, build_scored_strategy
from proposal_engine.core.scoring import calculate_combined_score, calculate_opportunity_score
from proposal_engine.utils.cache_manager import get_company_id

MOCK_STRATEGIES = [
    ImplementationStrategy(
        id="strategy_1",
        title="AI-Powered Customer Service Automation",
        description="Implement AI chatbots and automated support systems to enhance customer service "
                    "efficiency and availability.",
        impact="High",
        complexity="Medium",
        timeframe="Short-term",
        category="conversation",
        key_benefits=[
            "24/7 customer support availability",
            "Reduced response time by 75%",
            "Cost reduction of 35% for support operations"
        ],
        implementation_steps=[
            "Select and customize NLP model",
            "Build knowledge base integration",
            "Develop conversation flows",
            "Test with subset of common queries",
            "Gradual rollout with human oversight"
        ]
    ),
    ImplementationStrategy(
        id="strategy_2",
        title="Predictive Analytics for Business Intelligence",
        description="Develop AI models to analyze business data and provide predictive insights for decision making.",
        impact="High",
        complexity="High",
        timeframe="Medium-term",
        category="text analysis",
        key_benefits=[
            "Data-driven decision making",
            "15% improvement in forecast accuracy",
            "Early identification of market trends"
        ],
        implementation_steps=[
            "Data collection and preparation",
            "Feature engineering",
            "Model selection and training",
            "Dashboard development",
            "Integration with existing systems"
        ]
    ),
    ImplementationStrategy(
        id="strategy_3",
        title="Automated Content Generation",
        description="Utilize AI to generate marketing content, reports, and documentation.",
        impact="Medium",
        complexity="Medium",
        timeframe="Short-term",
        category="content generation",
        key_benefits=[
            "50% reduction in content creation time",
            "Consistent messaging across channels",
            "Ability to scale content production"
        ],
        implementation_steps=[
            "Select AI model for content generation",
            "Fine-tune with company content",
            "Develop templates for different content types",
            "Create review workflow",
            "Integrate with content management systems"
        ]
    ),
]

MOCK_RECOMMENDED_APPROACH = ("Begin with customer service automation for quick wins, then expand to predictive "
                             "analytics and content generation.")
MOCK_NEXT_STEPS = [
    "Conduct detailed technical assessment",
    "Develop project plan with key stakeholders",
    "Allocate initial resources for first phase",
    "Set up measurement framework"
]
MOCK_IMAGE_PROMPTS = [
    "AI chatbot interface for customer support",
    "Dashboard showing predictive analytics for business metrics",
    "Automated content generation workflow diagram"
]


def _scored(strategy: ImplementationStrategy) -> ScoredStrategy:
    return build_scored_strategy(strategy, calculate_opportunity_score(strategy), calculate_combined_score(strategy))


def generate_mock_proposal(company_name: str, company_url: str) -> Proposal:
    """A complete, self-consistent proposal for `company_name`, flagged as mock."""
    return Proposal(
        id=f"{get_company_id(company_name)}-{int(time.time() * 1000)}",
        company_name=company_name,
        company_url=company_url,
        industry="Technology",
        business_context=f"{company_name} is a technology company focused on digital innovation.",
        possible_pain_points=[],
        ai_opportunities=[_scored(s) for s in MOCK_STRATEGIES],
        business_challenges=[],
        recommended_approach=MOCK_RECOMMENDED_APPROACH,
        next_steps=list(MOCK_NEXT_STEPS),
        image_prompts=list(MOCK_IMAGE_PROMPTS),
        generated_at=time.strftime('%Y-%m-%dT%H:%M:%S'),
        is_mock=True
    )
