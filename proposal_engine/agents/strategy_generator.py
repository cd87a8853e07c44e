"""
AI strategy generation agent for the AI Proposal Engine.

Also hosts the keyword heuristics used around strategy generation:
`determine_strategy_category` re-derives a category from title and description,
and `validate_llm_feasibility` decides whether a strategy is implementable with
an LLM as its core component.
"""
import json
import logging
from typing import Any, Dict, List, Optional

from proposal_engine.core.bedrock_manager import ANALYTICAL_PARAMS, CompletionService
from proposal_engine.core.exceptions import CompletionServiceError, ParseError, ResponseShapeError
from proposal_engine.core.models import (COMPLEXITY_LEVELS, IMPACT_LEVELS, STRATEGY_CATEGORIES, TIMEFRAMES,
                                         Strategy, StrategyFeedback, to_jsonable)
from proposal_engine.utils.response_parser import ResponseParser

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

VISUAL_KEYWORDS = [
    'image', 'photo', 'picture', 'scan', 'visual', 'document analysis', 'document processing',
    'ocr', 'optical character', 'vision', 'camera', 'image recognition',
    'document understanding', 'image input', 'image-based', 'multimodal'
]

# Insertion order breaks ties between equal keyword counts
CATEGORY_KEYWORDS = {
    'conversation': [
        'chat', 'conversation', 'dialogue', 'communication', 'interaction',
        'support', 'customer service', 'chatbot', 'virtual assistant',
        'interactive', 'conversational ai', 'chat interface', 'llm chat',
        'gpt', 'claude', 'gemini', 'llama', 'agent', 'conversational agent'
    ],
    'content generation': [
        'generate', 'creation', 'write', 'content', 'text', 'document',
        'report', 'article', 'blog', 'draft', 'create content',
        'writing assistant', 'copywriting', 'content creator', 'text generator',
        'automated writing', 'content creation', 'llm writing', 'generate text',
        'marketing copy', 'email drafting', 'blog generation'
    ],
    'text analysis': [
        'analyze', 'analysis', 'process', 'extract', 'classify', 'categorize',
        'sentiment', 'understanding', 'summarize', 'summarization', 'extraction',
        'semantic search', 'text understanding', 'text processing',
        'identify patterns', 'classify text', 'sentiment analysis',
        'text classification', 'information extraction'
    ],
    'knowledge management': [
        'knowledge', 'learning', 'training', 'documentation', 'organize',
        'manage', 'repository', 'wiki', 'faqs', 'knowledge base',
        'information retrieval', 'rag', 'retrieval augmented', 'vector database',
        'semantic search', 'knowledge search', 'document retrieval',
        'company knowledge', 'institutional knowledge', 'knowledge storage'
    ],
    'automation': [
        'automate', 'workflow', 'process', 'task', 'routine', 'scheduling',
        'optimization', 'streamline', 'efficiency', 'automated process',
        'workflow automation', 'business process', 'process improvement',
        'task management', 'automated workflow', 'email automation',
        'process automation', 'customer interaction automation'
    ],
}

# Categories an LLM can serve as the core of ('other' excluded)
LLM_CATEGORIES = [c for c in STRATEGY_CATEGORIES if c != 'other']
LLM_FEASIBILITY_KEYWORDS = [
    'llm', 'language model', 'ai model', 'gpt', 'claude', 'gemini',
    'text generation', 'understanding', 'analysis', 'processing'
]

FALLBACK_STRATEGIES = [
    Strategy(
        id='strategy_1',
        title='AI-Powered Process Automation',
        description='Implement AI to automate routine business processes',
        impact='Medium',
        complexity='Medium',
        timeframe='Medium-term',
        category='automation'
    )
]


def determine_strategy_category(strategy: Strategy) -> str:
    """Category from keyword matching over title and description.

    Any visual keyword wins outright; otherwise the category with the most
    keyword hits wins, and no hits at all gives 'other'.
    """
    content = f"{(strategy.title or '').lower()} {(strategy.description or '').lower()}"

    if any(keyword in content for keyword in VISUAL_KEYWORDS):
        return 'visual understanding'

    scores = [(category, sum(1 for keyword in keywords if keyword in content))
              for category, keywords in CATEGORY_KEYWORDS.items()]
    best_category, best_score = max(scores, key=lambda item: item[1])
    return best_category if best_score > 0 else 'other'


def validate_llm_feasibility(strategy: Strategy) -> bool:
    """True if the category is an LLM category or the description mentions LLM work."""
    category_valid = bool(strategy.category) and strategy.category.lower() in LLM_CATEGORIES
    description = (strategy.description or '').lower()
    description_valid = any(keyword in description for keyword in LLM_FEASIBILITY_KEYWORDS)
    return category_valid or description_valid


def normalize_level(value: Any, allowed: List[str]) -> str:
    """Match case- and separator-insensitively against `allowed`; unknown values pass through."""
    if not isinstance(value, str):
        return ''
    wanted = value.strip().lower().replace(' ', '-')
    for level in allowed:
        if level.lower() == wanted:
            return level
    return value.strip()


def normalize_category(value: Any) -> str:
    category = value.strip().lower() if isinstance(value, str) else ''
    return category if category in STRATEGY_CATEGORIES else 'other'


class StrategyGenerator:
    """Generate LLM-centred AI transformation strategies, optionally refining earlier ones."""

    def __init__(self, completion_service: CompletionService, verbose_logging: bool = False):
        self.completion_service = completion_service
        self.verbose_logging = verbose_logging

    @staticmethod
    def build_feedback_section(feedback: Optional[StrategyFeedback]) -> str:
        if not feedback or not feedback.strategies:
            return ''
        return f"""
Previous strategies that need improvement:
{json.dumps(to_jsonable(feedback.strategies), indent=2)}

Feedback comments:
{chr(10).join(feedback.feedback_comments)}

Additional industry context:
{feedback.industry_context or 'No additional context'}

Please refine these strategies by addressing the feedback. Keep what works well, and improve the areas with low scores.
Return exactly one refined strategy for each strategy listed above, in the same order.
"""

    def build_prompt(self, business_challenges: List[str], industry_insights: List[str],
                     feedback: Optional[StrategyFeedback] = None) -> str:
        challenges = '\n'.join(f"{i + 1}. {c}" for i, c in enumerate(business_challenges))
        insights = '\n'.join(f"{i + 1}. {insight}" for i, insight in enumerate(industry_insights))
        return f"""You are an AI transformation consultant specializing in creating strategic opportunities.
Based on the following business challenges and industry insights, generate
3-5 specific AI transformation opportunities that drive modernization, automation, or growth for this company.

IMPORTANT: Focus ONLY on strategies that leverage Large Language Models (LLMs) as the PRIMARY technology.
Each strategy must have the LLM as the core reasoning/processing component, with text as the primary output.

Acceptable LLM applications include:
- Text-to-text: both input and output are text
- Image-to-text: multimodal LLMs process images to produce text outputs
  (e.g., document analysis, visual content understanding, image-based Q&A)

DO NOT suggest strategies that use:
- Traditional machine learning or deep learning models with no LLM component
- Pure computer vision applications not utilizing LLMs
- Image generation or text-to-image models
- Audio processing, speech recognition, or speech synthesis as the primary focus
- Time series forecasting or prediction
- Recommendation or anomaly detection systems not powered by LLMs
- Tabular data analysis without LLM reasoning

Every strategy MUST be categorized into one of these categories:
conversation, content generation, text analysis, knowledge management, visual understanding, automation, other.
Use "other" ONLY when the strategy doesn't clearly fit any other category.

FOR EACH STRATEGY, EXPLICITLY MENTION:
- Which specific LLM capabilities are being leveraged (understanding, generation, etc.)
- How the LLM adds unique value beyond traditional approaches
- What type of LLM would be appropriate

Business Challenges:
{challenges}

Industry Insights:
{insights}
{self.build_feedback_section(feedback)}
Return only a valid JSON object with no markdown formatting or other text:
{{
  "strategies": [
    {{
      "id": "unique_id_1",
      "title": "strategy title",
      "description": "detailed description",
      "impact": "High/Medium/Low",
      "complexity": "High/Medium/Low",
      "timeframe": "Short-term/Medium-term/Long-term",
      "category": "one of: conversation, content generation, text analysis, knowledge management, visual understanding, automation, other"
    }}
  ]
}}
"""

    @staticmethod
    def normalize_strategies(raw_strategies: List[Dict[str, Any]]) -> List[Strategy]:
        """Ids are made unique: a repeated id gets a _2, _3 ... suffix."""
        strategies = []
        seen_ids = set()
        for index, raw in enumerate(raw_strategies):
            if not isinstance(raw, dict):
                continue
            strategy_id = base_id = str(raw.get('id') or f"strategy_{index + 1}")
            suffix = 2
            while strategy_id in seen_ids:
                strategy_id = f"{base_id}_{suffix}"
                suffix += 1
            seen_ids.add(strategy_id)
            strategies.append(Strategy(
                id=strategy_id,
                title=str(raw.get('title', '')),
                description=str(raw.get('description', '')),
                impact=normalize_level(raw.get('impact'), IMPACT_LEVELS),
                complexity=normalize_level(raw.get('complexity'), COMPLEXITY_LEVELS),
                timeframe=normalize_level(raw.get('timeframe'), TIMEFRAMES),
                category=normalize_category(raw.get('category'))
            ))
        return strategies

    def create_strategies(self, business_challenges: List[str], industry_insights: List[str],
                          feedback: Optional[StrategyFeedback] = None, strict: bool = False) -> List[Strategy]:
        """Generate strategies.

        Non-strict mode never raises and returns the fallback strategy on any
        failure. Strict mode, used for refinement, lets CompletionServiceError
        propagate and returns an empty list for unusable output.
        """
        logger.info(f"💡 Creating AI transformation strategies{' with feedback' if feedback else ''}")
        try:
            response = self.completion_service.generate(
                self.build_prompt(business_challenges, industry_insights, feedback), ANALYTICAL_PARAMS)
        except CompletionServiceError as e:
            if strict:
                raise
            logger.error(f"❌ Strategy generation failed, using fallback: {e}")
            return list(FALLBACK_STRATEGIES)

        if self.verbose_logging:
            logger.info(f"Raw strategy response: {response}")
        try:
            data = ResponseParser.parse_json(response)
            raw_strategies = data.get('strategies') if isinstance(data, dict) else data
            if not isinstance(raw_strategies, list):
                raise ResponseShapeError("Strategy response has no strategies array")
            strategies = self.normalize_strategies(raw_strategies)
            if not strategies:
                raise ResponseShapeError("Strategy response contained no strategies")
        except (ParseError, ResponseShapeError) as e:
            logger.error(f"❌ Could not parse strategies: {e}")
            if not self.verbose_logging:
                logger.error("Enable verbose logging to see raw response")
            return [] if strict else list(FALLBACK_STRATEGIES)

        logger.info(f"✅ Created {len(strategies)} strategies")
        return strategies
