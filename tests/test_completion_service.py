import pytest

from proposal_engine.core.bedrock_manager import (ANALYTICAL_PARAMS, BedrockCompletionService, CompletionService,
                                                  build_completion_service)
from proposal_engine.core.config import PipelineConfig
from proposal_engine.core.exceptions import CompletionServiceError, CompletionTimeoutError


def _service(monkeypatch, outcomes, fallback_model_id="fallback-model"):
    service = BedrockCompletionService(model_id="primary-model", fallback_model_id=fallback_model_id,
                                       boto_session=object())
    calls = []

    def invoke(model_id, prompt, params):
        calls.append(model_id)
        outcome = outcomes[model_id]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    monkeypatch.setattr(service, "_invoke", invoke)
    return service, calls


def test_primary_model_answers(monkeypatch) -> None:
    service, calls = _service(monkeypatch, {"primary-model": "ok"})

    assert service.generate("hi", ANALYTICAL_PARAMS) == "ok"
    assert calls == ["primary-model"]


def test_fallback_model_used_after_primary_failure(monkeypatch) -> None:
    service, calls = _service(monkeypatch, {"primary-model": RuntimeError("throttled"), "fallback-model": "ok"})

    assert service.generate("hi") == "ok"
    assert calls == ["primary-model", "fallback-model"]


def test_failures_become_completion_service_errors(monkeypatch) -> None:
    service, _ = _service(monkeypatch, {"primary-model": RuntimeError("throttled")}, fallback_model_id=None)

    with pytest.raises(CompletionServiceError):
        service.generate("hi")


def test_timeouts_are_not_retried(monkeypatch) -> None:
    service, calls = _service(monkeypatch, {"primary-model": CompletionTimeoutError("slow"),
                                            "fallback-model": "ok"})

    with pytest.raises(CompletionTimeoutError):
        service.generate("hi")
    assert calls == ["primary-model"]


def test_completion_service_requires_generate() -> None:
    class Silent(CompletionService):
        pass

    with pytest.raises(TypeError):
        Silent()


def test_build_completion_service_follows_config() -> None:
    config = PipelineConfig(aws_region="eu-west-1", model_id="primary-model", fallback_model_id=None,
                            completion_timeout_seconds=30.0)

    service = build_completion_service(config)

    assert service.model_id == "primary-model"
    assert service.fallback_model_id is None
    assert service.timeout_seconds == 30.0
    assert service.boto_session.region_name == "eu-west-1"
