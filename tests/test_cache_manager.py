import os

import pytest

from proposal_engine.core.config import PipelineConfig
from proposal_engine.core.models import PainPoint
from proposal_engine.utils.cache_manager import (CONTEXT_ANALYSIS, FileStageCache, S3StageCache, StageCache, STRATEGIES,
                                                 build_stage_cache, get_company_id, validation_iteration_stage)


@pytest.mark.parametrize("name, expected", [
    ("Acme Corp", "acme-corp"),
    ("  Big   Blue\tLabs ", "big-blue-labs"),
    ("", ""),
    ("../victim", "victim"),
    ("AT&T  Inc.", "at-t-inc"),
    ("/", ""),
])
def test_get_company_id(name, expected) -> None:
    assert get_company_id(name) == expected


def test_file_cache_round_trip(file_cache) -> None:
    data = {"strategies": [PainPoint(id="pain_point_1", title="Slow", description="d")]}

    assert file_cache.write("acme", STRATEGIES, data) is True

    assert file_cache.read("acme", STRATEGIES) == {"strategies": [{
        "id": "pain_point_1", "title": "Slow", "description": "d", "typical_severity": 5,
        "common_manifestations": [], "industry_relevance": ""}]}
    assert file_cache.read("acme", CONTEXT_ANALYSIS) is None


def test_corrupted_file_is_a_miss(file_cache) -> None:
    file_cache.write("acme", STRATEGIES, {"ok": True})
    with open(os.path.join(file_cache.base_dir, "acme", f"{STRATEGIES}.json"), "w") as f:
        f.write("{not json")

    assert file_cache.read("acme", STRATEGIES) is None


def test_file_cache_lists_and_clears(file_cache) -> None:
    file_cache.write("acme", STRATEGIES, [])
    file_cache.write("acme", validation_iteration_stage(1), [])

    assert file_cache.list_stages("acme") == [STRATEGIES, "validation_iteration_1"]
    assert file_cache.clear("acme") is True
    assert file_cache.list_stages("acme") == []
    assert file_cache.clear("acme") is False


def test_s3_cache_round_trip_and_clear(stub_s3) -> None:
    cache = S3StageCache("bucket", prefix="/cache/", s3_client=stub_s3)

    assert cache.read("acme", STRATEGIES) is None
    assert cache.write("acme", STRATEGIES, {"n": 1}) is True
    assert ("bucket", "cache/acme/strategies.json") in stub_s3.objects
    assert cache.read("acme", STRATEGIES) == {"n": 1}
    assert cache.list_stages("acme") == [STRATEGIES]
    assert cache.clear("acme") is True
    assert cache.clear("acme") is False


def test_s3_corrupted_object_is_a_miss(stub_s3) -> None:
    cache = S3StageCache("bucket", s3_client=stub_s3)
    stub_s3.objects[("bucket", "proposal-cache/acme/strategies.json")] = b"{broken"

    assert cache.read("acme", STRATEGIES) is None


def test_build_stage_cache(tmp_path, stub_s3) -> None:
    assert isinstance(build_stage_cache(PipelineConfig(cache_dir=str(tmp_path))), FileStageCache)
    s3_config = PipelineConfig(cache_backend='s3', s3_bucket='bucket')
    assert isinstance(build_stage_cache(s3_config, s3_client=stub_s3), S3StageCache)
    with pytest.raises(ValueError):
        build_stage_cache(PipelineConfig(cache_backend='s3', s3_bucket=None), s3_client=stub_s3)


@pytest.mark.parametrize("company_id", ["..", "../victim", "", "a/../../b"])
def test_file_cache_refuses_paths_outside_base_dir(file_cache, company_id) -> None:
    with pytest.raises(ValueError):
        file_cache.clear(company_id)
    with pytest.raises(ValueError):
        file_cache.write(company_id, STRATEGIES, [])


def test_stage_cache_requires_every_operation() -> None:
    class ReadOnlyCache(StageCache):
        def read(self, company_id, stage):
            return None

    with pytest.raises(TypeError):
        ReadOnlyCache()
