import json
from typing import Any, Callable, List, Optional, Tuple

import pytest

from proposal_engine.core.bedrock_manager import ANALYTICAL_PARAMS, CompletionService, GenerationParams
from proposal_engine.core.config import PipelineConfig
from proposal_engine.utils.cache_manager import FileStageCache


class FakeCompletionService(CompletionService):
    """Scripted completion service.

    Either pops queued responses in order or delegates to `handler(prompt, params)`.
    Queued or returned exceptions are raised.
    """

    def __init__(self, responses: Optional[List[Any]] = None,
                 handler: Optional[Callable[[str, GenerationParams], Any]] = None):
        self.responses = list(responses or [])
        self.handler = handler
        self.calls: List[Tuple[str, GenerationParams]] = []

    def generate(self, prompt: str, params: GenerationParams = ANALYTICAL_PARAMS) -> str:
        self.calls.append((prompt, params))
        if self.handler is not None:
            result = self.handler(prompt, params)
        elif self.responses:
            result = self.responses.pop(0)
        else:
            raise AssertionError("FakeCompletionService ran out of scripted responses")
        if isinstance(result, Exception):
            raise result
        if not isinstance(result, str):
            result = json.dumps(result)
        return result


class StubS3Client:
    """In-memory stand-in for the boto3 S3 client calls the stage cache makes."""

    def __init__(self):
        self.objects = {}

    def get_object(self, Bucket, Key):
        from botocore.exceptions import ClientError
        if (Bucket, Key) not in self.objects:
            raise ClientError({'Error': {'Code': 'NoSuchKey', 'Message': 'missing'}}, 'GetObject')
        return {'Body': _Body(self.objects[(Bucket, Key)])}

    def put_object(self, Bucket, Key, Body, **kwargs):
        self.objects[(Bucket, Key)] = Body if isinstance(Body, bytes) else Body.encode('utf-8')
        return {}

    def get_paginator(self, name):
        assert name == 'list_objects_v2'
        return _Paginator(self)

    def delete_objects(self, Bucket, Delete):
        for item in Delete['Objects']:
            self.objects.pop((Bucket, item['Key']), None)
        return {}


class _Body:
    def __init__(self, data: bytes):
        self.data = data

    def read(self):
        return self.data


class _Paginator:
    def __init__(self, client: StubS3Client):
        self.client = client

    def paginate(self, Bucket, Prefix):
        contents = [{'Key': key} for (bucket, key) in self.client.objects
                    if bucket == Bucket and key.startswith(Prefix)]
        return [{'Contents': contents}] if contents else [{}]


@pytest.fixture
def fake_service():
    return FakeCompletionService


@pytest.fixture
def stub_s3():
    return StubS3Client()


@pytest.fixture
def file_cache(tmp_path):
    return FileStageCache(str(tmp_path / "cache"))


@pytest.fixture
def pipeline_config(tmp_path):
    return PipelineConfig(cache_dir=str(tmp_path / "cache"), background_narrative=False, fallback_model_id=None)
