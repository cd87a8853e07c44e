"""
Business challenge generation agent for the AI Proposal Engine.
"""
import logging
from typing import List

from proposal_engine.core.bedrock_manager import ANALYTICAL_PARAMS, CompletionService
from proposal_engine.core.exceptions import CompletionServiceError, ParseError, ResponseShapeError
from proposal_engine.core.models import MAX_LIST_ITEMS, truncate_list
from proposal_engine.utils.response_parser import ResponseParser

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

FALLBACK_BUSINESS_CHALLENGES = [
    "Manual, repetitive processes consume significant staff time, slowing operations and increasing error rates.",
    "Information is scattered across systems and documents, making it hard for teams to find answers quickly.",
    "Customer inquiries are handled inconsistently across channels, leading to slower responses and lower satisfaction.",
    "Producing reports, proposals and marketing content takes considerable effort and delays time to market.",
]


class BusinessChallengeGenerator:
    """Identify company-specific challenges an AI initiative could address."""

    def __init__(self, completion_service: CompletionService, verbose_logging: bool = False):
        self.completion_service = completion_service
        self.verbose_logging = verbose_logging

    @staticmethod
    def build_prompt(business_context: str) -> str:
        return f"""You are an AI business consultant specialized in identifying business challenges and opportunities.
Based on the following business context, identify 5-7 common business challenges or issues
that could be addressed or improved with AI solutions.

Business Context:
{business_context}

For each business challenge:
1. Clearly articulate the specific challenge or inefficiency
2. Provide sufficient detail to understand the business impact
3. Ensure each challenge is distinct from others
4. Focus on actual pain points, not just general improvements

Format your response as a valid JSON array of strings, each describing a single business challenge.
Keep each challenge description to 2-3 sentences.

Example:
[
  "High customer churn due to inconsistent service quality across channels and lack of personalization, resulting in revenue loss.",
  "Manual data processing consuming 30+ hours weekly, leading to reporting delays and decision-making based on outdated information."
]
"""

    def generate_business_challenges(self, business_context: str) -> List[str]:
        """At most five challenge descriptions; a generic list when generation fails."""
        logger.info("🧩 Generating business challenges")
        try:
            response = self.completion_service.generate(self.build_prompt(business_context), ANALYTICAL_PARAMS)
            if self.verbose_logging:
                logger.info(f"Raw business challenges response: {response}")
            data = ResponseParser.parse_json(response)
            if not isinstance(data, list):
                raise ResponseShapeError("Business challenges response is not a JSON array")
            challenges = truncate_list([str(c).strip() for c in data if isinstance(c, str)], MAX_LIST_ITEMS)
            if not challenges:
                raise ResponseShapeError("Business challenges response contained no challenges")
            logger.info(f"✅ Generated {len(challenges)} business challenges")
            return challenges
        except (CompletionServiceError, ParseError, ResponseShapeError) as e:
            logger.error(f"❌ Business challenge generation failed, using fallback: {e}")
            return list(FALLBACK_BUSINESS_CHALLENGES)
