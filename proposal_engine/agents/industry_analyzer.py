"""
Industry insight and pain point extraction agent for the AI Proposal Engine.
"""
import logging
from typing import Any, Dict, List

from proposal_engine.core.bedrock_manager import ANALYTICAL_PARAMS, CompletionService
from proposal_engine.core.exceptions import CompletionServiceError, ParseError, ResponseShapeError
from proposal_engine.core.models import IndustryInsights, PainPoint, clamp
from proposal_engine.utils.response_parser import ResponseParser

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEFAULT_PAIN_POINTS = [
    PainPoint(
        id="pain_point_1",
        title="Operational Inefficiency",
        description="Manual processes and legacy systems creating workflow bottlenecks.",
        typical_severity=7,
        common_manifestations=["Long processing times", "High error rates", "Customer complaints"],
        industry_relevance="Common across most industries as digital transformation accelerates."
    ),
    PainPoint(
        id="pain_point_2",
        title="Data Management Challenges",
        description="Difficulty integrating and utilizing data effectively across systems.",
        typical_severity=8,
        common_manifestations=["Incomplete reporting", "Inconsistent data", "Decision delays"],
        industry_relevance="Increasingly important as data volumes grow exponentially."
    ),
    PainPoint(
        id="pain_point_3",
        title="Customer Experience Gaps",
        description="Inability to meet modern customer expectations for personalization and responsiveness.",
        typical_severity=8,
        common_manifestations=["Declining satisfaction", "Lost customers", "Negative reviews"],
        industry_relevance="Critical factor in customer retention across all sectors."
    ),
]

FALLBACK_INDUSTRY = "Technology"
FALLBACK_INDUSTRY_INSIGHTS = [
    "AI adoption is rapidly increasing across the technology sector",
    "Companies are focusing on data-driven decision making",
    "Automation of routine tasks is a key trend",
]
FALLBACK_INDUSTRY_PAIN_POINTS = [
    PainPoint(
        id="pain_point_1",
        title="Talent Acquisition Challenges",
        description="Difficulty finding and retaining skilled technical personnel.",
        typical_severity=8,
        common_manifestations=["Extended hiring times", "High turnover", "Skill gaps"],
        industry_relevance="Technology companies face intense competition for limited talent."
    ),
    PainPoint(
        id="pain_point_2",
        title="Rapid Technology Evolution",
        description="Challenge of keeping systems and skills current with fast-changing technology.",
        typical_severity=7,
        common_manifestations=["Technical debt", "Compatibility issues", "Competitive disadvantage"],
        industry_relevance="Technology sector faces constant disruption from new innovations."
    ),
]


class IndustryAnalyzer:
    """Identify the company's industry, its AI-relevant trends and typical pain points."""

    def __init__(self, completion_service: CompletionService, verbose_logging: bool = False):
        self.completion_service = completion_service
        self.verbose_logging = verbose_logging

    @staticmethod
    def build_industry_prompt(domain_knowledge: str) -> str:
        return f"""You are an AI industry analyst with expertise across multiple sectors.
Based on the following domain knowledge, identify:
1. The specific industry the company belongs to
2. 5-7 industry-specific insights or trends that might influence AI adoption

Domain Knowledge:
{domain_knowledge}

Return only a valid JSON object with no markdown formatting or other text:
{{
  "industry": "specific industry name",
  "industry_insights": [
    "industry insight 1",
    "industry insight 2"
  ]
}}
"""

    @staticmethod
    def build_pain_point_prompt(industry_context: str) -> str:
        return f"""Based on the industry context provided, identify 5-7 POSSIBLE business pain points that companies in this sector commonly face.

Industry Context:
{industry_context}

For each possible pain point:
1. Provide a concise title (max 5 words)
2. Write a brief description of the issue (2-3 sentences)
3. Assign a typical severity score (1-10) based on industry benchmarks
4. List 2-3 examples of how this pain point typically manifests
5. Explain why companies in this industry often face this challenge (1-2 sentences)

Return only a valid JSON array with no markdown formatting:
[
  {{
    "title": "Possible pain point title",
    "description": "Description of this common industry challenge",
    "typical_severity": 8,
    "common_manifestations": ["symptom1", "symptom2"],
    "industry_relevance": "Companies in this industry often face this because..."
  }}
]
"""

    @staticmethod
    def normalize_pain_points(raw_points: List[Dict[str, Any]]) -> List[PainPoint]:
        """Sequential pain_point_<n> ids and severity clamped to [1, 10]."""
        pain_points = []
        for index, point in enumerate(raw_points):
            if not isinstance(point, dict):
                continue
            severity = point.get('typical_severity', point.get('typicalSeverity'))
            manifestations = point.get('common_manifestations', point.get('commonManifestations')) or []
            pain_points.append(PainPoint(
                id=f"pain_point_{len(pain_points) + 1}",
                title=str(point.get('title', '')),
                description=str(point.get('description', '')),
                typical_severity=clamp(severity or 5, 1, 10, 5),
                common_manifestations=[str(m) for m in manifestations if m] if isinstance(manifestations, list) else [],
                industry_relevance=str(point.get('industry_relevance', point.get('industryRelevance', '')))
            ))
        return pain_points

    def extract_possible_pain_points(self, industry_context: str) -> List[PainPoint]:
        logger.info("🩺 Extracting possible industry pain points")
        try:
            response = self.completion_service.generate(
                self.build_pain_point_prompt(industry_context), ANALYTICAL_PARAMS)
            if self.verbose_logging:
                logger.info(f"Raw pain point response: {response}")
            data = ResponseParser.parse_json(response)
            if not isinstance(data, list):
                raise ResponseShapeError("Pain point response is not a JSON array")
            pain_points = self.normalize_pain_points(data)
            if not pain_points:
                raise ResponseShapeError("Pain point response contained no pain points")
            return pain_points
        except (CompletionServiceError, ParseError, ResponseShapeError) as e:
            logger.error(f"❌ Pain point extraction failed, using defaults: {e}")
            return list(DEFAULT_PAIN_POINTS)

    def get_industry_insights(self, domain_knowledge: str) -> IndustryInsights:
        logger.info("🏭 Getting industry insights")
        try:
            response = self.completion_service.generate(
                self.build_industry_prompt(domain_knowledge), ANALYTICAL_PARAMS)
            if self.verbose_logging:
                logger.info(f"Raw industry response: {response}")
            data = ResponseParser.parse_json(response)
            if not isinstance(data, dict):
                raise ResponseShapeError("Industry response is not a JSON object")
        except (CompletionServiceError, ParseError, ResponseShapeError) as e:
            logger.error(f"❌ Industry analysis failed, using fallback: {e}")
            return IndustryInsights(
                industry=FALLBACK_INDUSTRY,
                industry_insights=list(FALLBACK_INDUSTRY_INSIGHTS),
                possible_pain_points=list(FALLBACK_INDUSTRY_PAIN_POINTS)
            )

        industry = str(data.get('industry') or FALLBACK_INDUSTRY)
        insights = data.get('industry_insights', data.get('industryInsights')) or []
        insights = [str(i) for i in insights if i] if isinstance(insights, list) else []
        pain_points = self.extract_possible_pain_points(industry + '\n' + '\n'.join(insights))
        logger.info(f"✅ Industry: {industry}, {len(insights)} insights, {len(pain_points)} pain points")
        return IndustryInsights(industry=industry, industry_insights=insights, possible_pain_points=pain_points)
