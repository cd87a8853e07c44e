"""
Completion service for the AI Proposal Engine, backed by Bedrock through Strands.
"""
import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import boto3
from botocore.config import Config as BotocoreConfig
from strands import Agent
from strands.models import BedrockModel

from proposal_engine.core.config import DEFAULT_MODEL_ID, PipelineConfig
from proposal_engine.core.exceptions import CompletionServiceError, CompletionTimeoutError
from proposal_engine.services.aws_clients import get_session

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationParams:
    """Sampling parameters for one completion call."""
    temperature: float = 0.2
    top_k: int = 40
    top_p: float = 0.95
    max_output_tokens: int = 8192


# Factual / structured stages
ANALYTICAL_PARAMS = GenerationParams()
# Implementation planning wants the most deterministic output
DETERMINISTIC_PARAMS = GenerationParams(temperature=0.1, top_k=1, top_p=0.7)
# Free-form prompt passthrough
CREATIVE_PARAMS = GenerationParams(temperature=0.7, top_k=40, top_p=0.95, max_output_tokens=2048)


class CompletionService(ABC):
    """Given a prompt and sampling parameters, return raw model text."""

    @abstractmethod
    def generate(self, prompt: str, params: GenerationParams = ANALYTICAL_PARAMS) -> str:
        """Return the model text, raising CompletionServiceError on failure."""


class BedrockCompletionService(CompletionService):
    """Completion service running single-turn Strands agents on Bedrock models."""

    def __init__(self, model_id: str = DEFAULT_MODEL_ID, fallback_model_id: Optional[str] = None,
                 region_name: str = "us-east-1", timeout_seconds: float = 120.0,
                 boto_session: Optional[boto3.Session] = None):
        self.model_id = model_id
        self.fallback_model_id = fallback_model_id
        self.timeout_seconds = timeout_seconds
        self.boto_session = boto_session or boto3.Session(region_name=region_name)
        self.boto_config = BotocoreConfig(
            retries={"max_attempts": 3, "mode": "adaptive"},
            connect_timeout=10,
            read_timeout=max(60, int(timeout_seconds)),
            max_pool_connections=50
        )
        self._models: Dict[Tuple[str, GenerationParams], BedrockModel] = {}
        self._models_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="completion")

    def _get_model(self, model_id: str, params: GenerationParams) -> BedrockModel:
        """One BedrockModel per (model, sampling parameters) pair."""
        key = (model_id, params)
        with self._models_lock:
            model = self._models.get(key)
            if model is None:
                additional_fields = {"top_k": params.top_k} if "anthropic" in model_id else None
                model = BedrockModel(
                    model_id=model_id,
                    temperature=params.temperature,
                    top_p=params.top_p,
                    max_tokens=params.max_output_tokens,
                    additional_request_fields=additional_fields,
                    boto_session=self.boto_session,
                    boto_client_config=self.boto_config
                )
                self._models[key] = model
            return model

    def _invoke(self, model_id: str, prompt: str, params: GenerationParams) -> str:
        # A fresh agent per call keeps every completion single-turn
        agent = Agent(model=self._get_model(model_id, params), callback_handler=None)
        future = self._executor.submit(agent, prompt)
        try:
            response = future.result(timeout=self.timeout_seconds)
        except FuturesTimeoutError as e:
            future.cancel()
            raise CompletionTimeoutError(
                f"Completion with {model_id} exceeded {self.timeout_seconds}s") from e
        return str(response)

    def generate(self, prompt: str, params: GenerationParams = ANALYTICAL_PARAMS) -> str:
        try:
            return self._invoke(self.model_id, prompt, params)
        except CompletionTimeoutError:
            raise
        except Exception as e:
            if not self.fallback_model_id:
                raise CompletionServiceError(f"Completion failed: {e}") from e
            logger.warning(f"⚠️ Primary model failed ({e}), retrying with {self.fallback_model_id}")
            try:
                return self._invoke(self.fallback_model_id, prompt, params)
            except CompletionTimeoutError:
                raise
            except Exception as fallback_error:
                raise CompletionServiceError(f"Completion failed: {fallback_error}") from fallback_error


def build_completion_service(config: PipelineConfig) -> BedrockCompletionService:
    """Bedrock completion service for the configured models and region."""
    return BedrockCompletionService(
        model_id=config.model_id,
        fallback_model_id=config.fallback_model_id,
        region_name=config.aws_region,
        timeout_seconds=config.completion_timeout_seconds,
        boto_session=get_session(config.aws_region)
    )
