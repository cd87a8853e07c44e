"""
Pipeline configuration for the AI Proposal Engine.
"""
import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_MODEL_ID = "us.anthropic.claude-sonnet-4-20250514-v1:0"
DEFAULT_FALLBACK_MODEL_ID = "us.amazon.nova-lite-v1:0"


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class PipelineConfig:
    """Thresholds, cache settings and model settings for one orchestrator."""

    # Cache
    use_cache: bool = True
    cache_backend: str = "file"
    cache_dir: str = "cache"
    s3_bucket: Optional[str] = None
    s3_prefix: str = "proposal-cache"

    # Logging
    verbose_logging: bool = False

    # Model
    aws_region: str = "us-east-1"
    model_id: str = DEFAULT_MODEL_ID
    fallback_model_id: Optional[str] = DEFAULT_FALLBACK_MODEL_ID
    completion_timeout_seconds: float = 120.0

    # Validation refinement
    max_validation_iterations: int = 3
    validation_average_threshold: float = 80
    strategy_individual_threshold: float = 75
    min_strategy_score: float = 65

    # Feasibility refinement (0-100 scale)
    max_feasibility_iterations: int = 3
    feasibility_score_threshold: float = 70
    feasibility_average_threshold: float = 75

    # Implementation planning
    fail_on_errors: bool = False
    minimum_strategies: int = 3

    # Post-generation narrative content
    background_narrative: bool = True

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """Build a config from environment variables, keeping defaults for unset ones."""
        defaults = cls()
        timeout = os.environ.get("PROPOSAL_COMPLETION_TIMEOUT")
        return cls(
            use_cache=_env_flag("PROPOSAL_USE_CACHE", defaults.use_cache),
            cache_backend=os.environ.get("PROPOSAL_CACHE_BACKEND", defaults.cache_backend).strip().lower(),
            cache_dir=os.environ.get("PROPOSAL_CACHE_DIR", defaults.cache_dir),
            s3_bucket=os.environ.get("PROPOSAL_S3_BUCKET", defaults.s3_bucket),
            s3_prefix=os.environ.get("PROPOSAL_S3_PREFIX", defaults.s3_prefix),
            verbose_logging=_env_flag("PROPOSAL_VERBOSE_LOGGING", defaults.verbose_logging),
            aws_region=os.environ.get("AWS_REGION", defaults.aws_region),
            model_id=os.environ.get("PROPOSAL_MODEL_ID", defaults.model_id),
            fallback_model_id=os.environ.get("PROPOSAL_FALLBACK_MODEL_ID", defaults.fallback_model_id),
            completion_timeout_seconds=float(timeout) if timeout else defaults.completion_timeout_seconds,
            fail_on_errors=_env_flag("PROPOSAL_FAIL_ON_ERRORS", defaults.fail_on_errors),
            background_narrative=_env_flag("PROPOSAL_BACKGROUND_NARRATIVE", defaults.background_narrative),
        )
