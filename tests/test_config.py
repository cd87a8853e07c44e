from proposal_engine.core.config import PipelineConfig


def test_defaults() -> None:
    config = PipelineConfig()

    assert config.strategy_individual_threshold == 75
    assert config.feasibility_score_threshold == 70
    assert config.min_strategy_score == 65
    assert config.max_validation_iterations == 3


def test_from_env(monkeypatch) -> None:
    monkeypatch.setenv("PROPOSAL_USE_CACHE", "false")
    monkeypatch.setenv("PROPOSAL_CACHE_BACKEND", " S3 ")
    monkeypatch.setenv("PROPOSAL_S3_BUCKET", "proposals")
    monkeypatch.setenv("PROPOSAL_COMPLETION_TIMEOUT", "45")
    monkeypatch.setenv("PROPOSAL_BACKGROUND_NARRATIVE", "")

    config = PipelineConfig.from_env()

    assert config.use_cache is False
    assert config.cache_backend == "s3"
    assert config.s3_bucket == "proposals"
    assert config.completion_timeout_seconds == 45.0
    assert config.background_narrative is True
