"""
Narrative content pregeneration for the AI Proposal Engine.

Runs after a proposal exists and prepares the prose the PDF proposal needs:
company context, key business challenges, strategic opportunities and an
executive summary. The executive summary is first derived from the proposal
itself, then enriched by one completion call. When that call fails the derived
content is kept.
"""
import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from proposal_engine.core.bedrock_manager import CREATIVE_PARAMS, CompletionService
from proposal_engine.core.exceptions import CompletionServiceError, ParseError, ResponseShapeError
from proposal_engine.core.models import ExecutiveSummary, NarrativeContent, Proposal, to_jsonable
from proposal_engine.utils.cache_manager import LLM_CONTENT, StageCache, get_company_id
from proposal_engine.utils.response_parser import ResponseParser

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

MAX_NARRATIVE_ITEMS = 5
MIN_CONTEXT_LENGTH = 20
EXPECTED_IMPACT_LABELS = ['High', 'Substantial', 'Significant', 'Moderate', 'Measurable']

BASE_TERMS = [
    "Predictive Analytics",
    "Machine Learning",
    "Workflow Automation",
    "Natural Language Processing",
    "Digital Transformation"
]
# Checked in order; the first matching keyword group wins
INDUSTRY_TERMS = [
    (('tech', 'software'), ["DevOps", "Agile Methodology", "Technical Debt", "Scalability", "Cloud Infrastructure"]),
    (('finance', 'bank'), ["Regulatory Compliance", "Risk Management", "Fraud Detection", "Customer Retention",
                           "Open Banking"]),
    (('health', 'medical'), ["Electronic Health Records", "Patient Engagement", "Precision Medicine",
                             "Regulatory Compliance", "Clinical Efficiency"]),
    (('retail', 'commerce'), ["Omnichannel", "Customer Journey", "Inventory Optimization", "Price Elasticity",
                              "Personalization"]),
    (('manufact',), ["Supply Chain Optimization", "Predictive Maintenance", "Quality Control", "Just-in-Time",
                     "IoT Sensors"]),
]

MANIFESTATIONS = [
    (('manual', 'workflow'), ["Excessive time spent on routine tasks", "High error rates in data processing"]),
    (('data', 'silo'), ["Incomplete customer views", "Duplicate data entry requirements"]),
    (('customer', 'experience'), ["Inconsistent service across channels", "Slow response times to inquiries"]),
    (('cost', 'expense'), ["Budget overruns on routine operations", "Difficulty forecasting operational costs"]),
]
DEFAULT_MANIFESTATIONS = ["Reduced operational efficiency", "Difficulty scaling with business growth"]


def industry_terminology(industry: str) -> List[str]:
    lowered = (industry or '').lower()
    for keywords, terms in INDUSTRY_TERMS:
        if any(keyword in lowered for keyword in keywords):
            return BASE_TERMS + terms
    return [
        f"{industry} Analytics",
        "Predictive Modeling",
        "Machine Learning",
        "Workflow Automation",
        "Natural Language Processing",
        "Customer Journey Mapping",
        "Operational Excellence",
        "Digital Transformation"
    ]


def extract_manifestations(challenge: str) -> List[str]:
    lowered = (challenge or '').lower()
    for keywords, manifestations in MANIFESTATIONS:
        if any(keyword in lowered for keyword in keywords):
            return list(manifestations)
    return list(DEFAULT_MANIFESTATIONS)


def format_challenge_description(challenge: str) -> str:
    """Strip leading bullets or numbering and end with a period."""
    cleaned = re.sub(r'^[-•*\d.]+\s*', '', challenge)
    return cleaned if cleaned.endswith('.') else cleaned + '.'


def sentences(text: str) -> List[str]:
    return [s.strip() for s in (text or '').split('.') if s.strip()]


def first_sentence(text: str) -> str:
    parts = sentences(text)
    return parts[0] if parts else (text or '')


class NarrativeContentGenerator:
    """Derive and cache the narrative text for a company's proposal."""

    def __init__(self, completion_service: CompletionService, cache: StageCache, verbose_logging: bool = False):
        self.completion_service = completion_service
        self.cache = cache
        self.verbose_logging = verbose_logging

    @staticmethod
    def key_business_challenges(proposal: Proposal) -> List[str]:
        industry = proposal.industry
        if proposal.business_challenges:
            return [c if isinstance(c, str) and c else f"Challenge in {industry}"
                    for c in proposal.business_challenges[:MAX_NARRATIVE_ITEMS]]
        if proposal.possible_pain_points:
            return [p.description or p.title or f"Challenge in {industry}"
                    for p in proposal.possible_pain_points[:MAX_NARRATIVE_ITEMS]]
        return [
            f"Manual processes in {industry} requiring significant time and resources",
            f"Data silos preventing comprehensive insights and decision-making in {industry}",
            "Customer experience inconsistencies impacting satisfaction and retention",
            "Inefficient resource allocation resulting in increased operational costs",
            "Legacy systems limiting adaptation to market changes"
        ]

    @staticmethod
    def strategic_opportunities(proposal: Proposal) -> List[str]:
        industry = proposal.industry
        if proposal.ai_opportunities:
            return [o.title or o.description or f"AI opportunity for {industry}"
                    for o in proposal.ai_opportunities[:MAX_NARRATIVE_ITEMS]]
        return [
            f"AI-powered workflow automation for {industry}",
            "Predictive analytics for data-driven decision making",
            "Intelligent customer engagement platforms",
            "Process optimization through machine learning",
            "Automated quality control and monitoring"
        ]

    @staticmethod
    def business_context_summary(proposal: Proposal, company_context: str) -> str:
        summary = proposal.business_context or ''
        if len(summary) < MIN_CONTEXT_LENGTH and len(company_context) >= MIN_CONTEXT_LENGTH:
            summary = company_context
        if len(summary) < MIN_CONTEXT_LENGTH:
            summary = (f"{proposal.company_name} operates in the {proposal.industry} industry, "
                       f"providing innovative solutions to address market challenges.")
        return summary

    def derive_executive_summary(self, proposal: Proposal, company_context: str, challenges: List[str],
                                 opportunities: List[str]) -> ExecutiveSummary:
        name = proposal.company_name
        industry = proposal.industry
        lead_challenge = challenges[0].lower() if challenges else 'key business challenges'
        lead_opportunity = opportunities[0].lower() if opportunities else 'strategic AI capabilities'

        summary = ExecutiveSummary(
            problem_statement=(f"{name} faces challenges in optimizing operations and maximizing efficiency, "
                               f"particularly with {lead_challenge}."),
            partnership_proposals=[
                f"Implementation of AI solutions to address {lead_challenge}",
                f"Development of {lead_opportunity} to enhance competitive advantage",
                "Deployment of automated workflows to reduce manual effort and improve accuracy"
            ],
            timing_points=[
                f"Increasing competitive pressure in the {industry} industry necessitates innovation",
                "Growing availability of AI technologies makes implementation more cost-effective",
                "Early adoption provides opportunity to establish market differentiation"
            ],
            business_context_summary=self.business_context_summary(proposal, company_context),
            prioritized_challenges=[{
                'title': challenge.split(':')[0] or challenge,
                'description': format_challenge_description(challenge),
                'severity': 9 - index,
                'manifestations': extract_manifestations(challenge),
                'industry_relevance': (f"Common in the {industry} industry, impacting operational efficiency "
                                       f"and competitive positioning.")
            } for index, challenge in enumerate(challenges)],
            challenge_solutions=[{
                'challenge': challenge,
                'solution': (f"Implement {(opportunities[index] if index < len(opportunities) else lead_opportunity).lower()} "
                             f"to address this challenge through automation and intelligence."),
                'relevance_score': 9 - index,
                'expected_impact': EXPECTED_IMPACT_LABELS[index % len(EXPECTED_IMPACT_LABELS)]
            } for index, challenge in enumerate(challenges)],
            industry_terminology=industry_terminology(industry)
        )

        opportunities_detail = proposal.ai_opportunities
        if opportunities_detail:
            lead = opportunities_detail[0]
            if lead.description:
                summary.problem_statement = (
                    f"{name} faces challenges that impact operational efficiency and competitive positioning. "
                    f"Specifically, {first_sentence(lead.description).lower()}.")
            summary.partnership_proposals = [
                f"Implementation of {o.title or 'AI solution'} to "
                f"{first_sentence(o.description).lower() if o.description else 'address business challenges'}"
                for o in opportunities_detail[:3]
            ]
            approach = sentences(proposal.recommended_approach)
            if len(approach) >= 3:
                summary.timing_points = approach[:3]
            summary.challenge_solutions = [{
                'challenge': challenges[index] if index < len(challenges) else (
                    f"Inefficiency in {' '.join((o.title or '').split(' ')[1:]) or industry} processes"),
                'solution': f"{o.title}: {o.description or 'AI-powered solution to enhance operations'}",
                'relevance_score': 10 - index,
                'expected_impact': o.impact or EXPECTED_IMPACT_LABELS[index % len(EXPECTED_IMPACT_LABELS)]
            } for index, o in enumerate(opportunities_detail[:MAX_NARRATIVE_ITEMS])]

        return summary

    @staticmethod
    def build_enrichment_prompt(proposal: Proposal, challenges: List[str], opportunities: List[str]) -> str:
        challenge_lines = '\n'.join(f"- {c}" for c in challenges)
        opportunity_lines = '\n'.join(f"- {o}" for o in opportunities)
        return f"""Generate an executive summary for {proposal.company_name}, a {proposal.industry} company.

Business Context:
{proposal.business_context}

Key Business Challenges:
{challenge_lines}

Strategic Opportunities:
{opportunity_lines}

Return only a valid JSON object with no markdown formatting or other text, with these fields:
1. problem_statement: a concise, powerful problem statement (2-3 sentences) describing their core challenge
2. partnership_proposals: array of 5 one-sentence proposals explaining how AI solutions could address challenges
3. timing_points: array of 4 one-sentence points explaining why now is the right time to implement AI
4. business_context_summary: a 2-3 sentence summary of their market position and business model
5. prioritized_challenges: array of 3 objects with title, description, severity, manifestations, industry_relevance
6. challenge_solutions: array of 3 objects with challenge, solution, relevance_score, expected_impact
7. industry_terminology: array of 8-10 industry-specific terms relevant to this business
"""

    @staticmethod
    def merge_enrichment(summary: ExecutiveSummary, data: Dict[str, Any]) -> ExecutiveSummary:
        """Overlay well-formed model fields onto the derived summary."""
        def text(key: str, current: str) -> str:
            value = data.get(key)
            return value.strip() if isinstance(value, str) and value.strip() else current

        def strings(key: str, current: List[str]) -> List[str]:
            value = data.get(key)
            if isinstance(value, list):
                items = [str(v) for v in value if isinstance(v, str) and v]
                if items:
                    return items
            return current

        def records(key: str, current: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
            value = data.get(key)
            if isinstance(value, list):
                items = [v for v in value if isinstance(v, dict)]
                if items:
                    return items
            return current

        return ExecutiveSummary(
            problem_statement=text('problem_statement', summary.problem_statement),
            partnership_proposals=strings('partnership_proposals', summary.partnership_proposals),
            timing_points=strings('timing_points', summary.timing_points),
            business_context_summary=text('business_context_summary', summary.business_context_summary),
            prioritized_challenges=records('prioritized_challenges', summary.prioritized_challenges),
            challenge_solutions=records('challenge_solutions', summary.challenge_solutions),
            industry_terminology=strings('industry_terminology', summary.industry_terminology)
        )

    def enrich_executive_summary(self, proposal: Proposal, summary: ExecutiveSummary, challenges: List[str],
                                 opportunities: List[str]) -> ExecutiveSummary:
        try:
            response = self.completion_service.generate(
                self.build_enrichment_prompt(proposal, challenges, opportunities), CREATIVE_PARAMS)
            if self.verbose_logging:
                logger.info(f"Raw executive summary response: {response}")
            data = ResponseParser.parse_json(response)
            if not isinstance(data, dict):
                raise ResponseShapeError("Executive summary response is not a JSON object")
        except (CompletionServiceError, ParseError, ResponseShapeError) as e:
            logger.warning(f"⚠️ Executive summary enrichment failed, keeping derived content: {e}")
            return summary
        return self.merge_enrichment(summary, data)

    def load_narrative_content(self, company_name: str) -> Optional[NarrativeContent]:
        cached = self.cache.read(get_company_id(company_name), LLM_CONTENT)
        if not cached:
            return None
        try:
            return NarrativeContent.from_dict(cached)
        except (KeyError, TypeError) as e:
            logger.warning(f"⚠️ Ignoring malformed narrative content for {company_name}: {e}")
            return None

    def generate_narrative_content(self, proposal: Proposal) -> NarrativeContent:
        """Existing cached content wins; otherwise derive, enrich and cache."""
        existing = self.load_narrative_content(proposal.company_name)
        if existing is not None:
            logger.info(f"📄 Narrative content already exists for {proposal.company_name}")
            return existing

        logger.info(f"✍️ Generating narrative content for {proposal.company_name}")
        parts = sentences(proposal.business_context)
        company_context = '. '.join(parts[:2]) + '.' if parts else ''
        challenges = self.key_business_challenges(proposal)
        opportunities = self.strategic_opportunities(proposal)

        summary = self.derive_executive_summary(proposal, company_context, challenges, opportunities)
        summary = self.enrich_executive_summary(proposal, summary, challenges, opportunities)

        content = NarrativeContent(
            company_context=company_context,
            key_business_challenges=challenges,
            strategic_opportunities=opportunities,
            executive_summary=summary,
            generated_at=datetime.now().isoformat()
        )
        self.cache.write(get_company_id(proposal.company_name), LLM_CONTENT, to_jsonable(content))
        logger.info(f"✅ Narrative content saved for {proposal.company_name}")
        return content
