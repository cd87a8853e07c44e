"""
Business context analysis agent for the AI Proposal Engine.
"""
import logging

from proposal_engine.core.bedrock_manager import ANALYTICAL_PARAMS, CompletionService
from proposal_engine.core.exceptions import CompletionServiceError, ParseError, ResponseShapeError
from proposal_engine.core.models import ContextAnalysis, ScrapedData
from proposal_engine.utils.response_parser import ResponseParser

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class ContextAnalyzer:
    """Turn scraped website text into a business context and domain knowledge summary."""

    def __init__(self, completion_service: CompletionService, verbose_logging: bool = False):
        self.completion_service = completion_service
        self.verbose_logging = verbose_logging

    @staticmethod
    def build_prompt(scraped_data: ScrapedData, company_name: str, description: str = None) -> str:
        combined_data = f"""
    Company Name: {company_name}
    Company Description: {description or 'N/A'}
    Website Title: {scraped_data.title}
    Meta Description: {scraped_data.meta_description}
    About Text: {scraped_data.about_text}
    Products: {', '.join(scraped_data.products)}
    Services: {', '.join(scraped_data.services)}
    Team Info: {', '.join(scraped_data.team_info)}
"""
        return f"""You are an AI business analyst specialized in technology transformation.
Analyze the following company information and provide:
1. A comprehensive business context analysis (what the company does, their target market, their business model)
2. Domain knowledge (their industry, specific terms or concepts relevant to their business)

Company Information:
{combined_data}

Return only a valid JSON object with these exact fields, no markdown formatting or other text:
{{
  "business_context": "detailed analysis of the company's business context",
  "domain_knowledge": "domain-specific knowledge relevant to their industry"
}}
"""

    @staticmethod
    def fallback(scraped_data: ScrapedData, company_name: str) -> ContextAnalysis:
        """Context assembled from the scraped record alone."""
        details = scraped_data.meta_description or scraped_data.about_text or ''
        business_context = f"{company_name} is a company operating through its website {scraped_data.title}.".strip()
        if details:
            business_context = f"{business_context} {details}"
        offerings = scraped_data.products + scraped_data.services
        domain_knowledge = (f"{company_name} offers: {', '.join(offerings[:10])}." if offerings
                            else f"{company_name} operates in a technology-enabled market.")
        return ContextAnalysis(business_context=business_context, domain_knowledge=domain_knowledge)

    def analyze_context(self, scraped_data: ScrapedData, company_name: str,
                        description: str = None) -> ContextAnalysis:
        logger.info(f"🔍 Analyzing company context for {company_name}")
        try:
            response = self.completion_service.generate(
                self.build_prompt(scraped_data, company_name, description), ANALYTICAL_PARAMS)
            if self.verbose_logging:
                logger.info(f"Raw context response: {response}")
            data = ResponseParser.parse_json(response)
            if not isinstance(data, dict):
                raise ResponseShapeError("Context analysis response is not a JSON object")
            business_context = data.get('business_context') or data.get('businessContext')
            domain_knowledge = data.get('domain_knowledge') or data.get('domainKnowledge')
            if not business_context or not domain_knowledge:
                raise ResponseShapeError("Context analysis response is missing required fields")
            logger.info("✅ Context analysis complete")
            return ContextAnalysis(business_context=str(business_context), domain_knowledge=str(domain_knowledge))
        except (CompletionServiceError, ParseError, ResponseShapeError) as e:
            logger.error(f"❌ Context analysis failed, using fallback: {e}")
            if not self.verbose_logging:
                logger.error("Enable verbose logging to see raw response")
            return self.fallback(scraped_data, company_name)
