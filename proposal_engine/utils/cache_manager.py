"""
Per-company, per-stage cache for the AI Proposal Engine.

Every pipeline stage stores one JSON document under (company id, stage name).
Reads that fail to parse are treated as misses so a corrupted file only costs a
recomputation.
"""
import json
import logging
import os
import re
import shutil
import tempfile
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from botocore.exceptions import ClientError

from proposal_engine.core.config import PipelineConfig
from proposal_engine.core.models import to_jsonable

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Stage names
SCRAPED_DATA = 'scraped_data'
CONTEXT_ANALYSIS = 'context_analysis'
BUSINESS_CHALLENGES = 'business_challenges'
INDUSTRY_INSIGHTS = 'industry_insights'
STRATEGIES = 'strategies'
INITIAL_VALIDATION = 'initial_validation'
OPTIMIZED_STRATEGIES = 'optimized_strategies'
ENRICHED_STRATEGIES = 'enriched_strategies'
IMPLEMENTATION_STRATEGIES = 'implementation_strategies'
IMPLEMENTATION_STRATEGIES_FALLBACK = 'implementation_strategies_fallback'
INITIAL_FEASIBILITY = 'initial_feasibility'
FEASIBILITY_EVOLUTIONS = 'feasibility_evolutions'
FINAL_IMPLEMENTATIONS = 'final_implementations'
FINAL_PROPOSAL = 'final_proposal'
LLM_CONTENT = 'llm_content'


def validation_iteration_stage(iteration: int) -> str:
    return f'validation_iteration_{iteration}'


def feasibility_iteration_stage(iteration: int) -> str:
    return f'feasibility_iteration_{iteration}'


def get_company_id(company_name: str) -> str:
    """Lower-case slug of the name: runs of anything but a-z and 0-9 become a single '-'."""
    return re.sub(r'[^a-z0-9]+', '-', (company_name or '').lower()).strip('-')


class StageCache(ABC):
    """Key-value store of stage outputs keyed by (company id, stage name)."""

    @abstractmethod
    def read(self, company_id: str, stage: str) -> Optional[Any]:
        """Stored document, or None on a miss."""

    @abstractmethod
    def write(self, company_id: str, stage: str, data: Any) -> bool:
        """Store a document; False if it could not be saved."""

    @abstractmethod
    def clear(self, company_id: str) -> bool:
        """Remove every stage for a company; False if nothing was cached."""

    @abstractmethod
    def list_stages(self, company_id: str) -> List[str]:
        """Names of the cached stages for a company."""


class FileStageCache(StageCache):
    """One JSON file per stage under <base_dir>/<company_id>/."""

    def __init__(self, base_dir: str = "cache"):
        self.base_dir = base_dir

    def _company_dir(self, company_id: str) -> str:
        """Directory for one company. It must be a direct child of base_dir."""
        base = os.path.realpath(self.base_dir)
        company_dir = os.path.realpath(os.path.join(base, company_id or ''))
        if not company_id or os.path.dirname(company_dir) != base:
            raise ValueError(f"Unsafe company id for file cache: {company_id!r}")
        return company_dir

    def _stage_path(self, company_id: str, stage: str) -> str:
        return os.path.join(self._company_dir(company_id), f"{stage}.json")

    def read(self, company_id: str, stage: str) -> Optional[Any]:
        path = self._stage_path(company_id, stage)
        if not os.path.exists(path):
            return None
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            logger.info(f"📦 Cache hit: {company_id}/{stage}")
            return data
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"⚠️ Unreadable cache entry {path}, treating as miss: {e}")
            return None

    def write(self, company_id: str, stage: str, data: Any) -> bool:
        company_dir = self._company_dir(company_id)
        try:
            os.makedirs(company_dir, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=company_dir, prefix=f".{stage}.", suffix=".tmp")
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(to_jsonable(data), f, indent=2, default=str)
                os.replace(tmp_path, self._stage_path(company_id, stage))
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Error saving {company_id}/{stage} to cache: {e}")
            return False

    def clear(self, company_id: str) -> bool:
        company_dir = self._company_dir(company_id)
        if not os.path.isdir(company_dir):
            return False
        shutil.rmtree(company_dir)
        logger.info(f"🗑️ Cleared cache for {company_id}")
        return True

    def list_stages(self, company_id: str) -> List[str]:
        company_dir = self._company_dir(company_id)
        if not os.path.isdir(company_dir):
            return []
        return sorted(name[:-len('.json')] for name in os.listdir(company_dir)
                      if name.endswith('.json') and not name.startswith('.'))


class S3StageCache(StageCache):
    """Same layout as FileStageCache, stored as s3://<bucket>/<prefix>/<company_id>/<stage>.json."""

    def __init__(self, bucket: str, prefix: str = "proposal-cache", s3_client=None):
        if s3_client is None:
            from proposal_engine.services.aws_clients import get_s3_client
            s3_client = get_s3_client()
        self.bucket = bucket
        self.prefix = prefix.strip('/')
        self.s3_client = s3_client

    def _company_prefix(self, company_id: str) -> str:
        return f"{self.prefix}/{company_id}/" if self.prefix else f"{company_id}/"

    def _key(self, company_id: str, stage: str) -> str:
        return f"{self._company_prefix(company_id)}{stage}.json"

    def read(self, company_id: str, stage: str) -> Optional[Any]:
        key = self._key(company_id, stage)
        try:
            response = self.s3_client.get_object(Bucket=self.bucket, Key=key)
            data = json.loads(response['Body'].read().decode('utf-8'))
            logger.info(f"📦 Cache hit: s3://{self.bucket}/{key}")
            return data
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') in ('NoSuchKey', '404'):
                return None
            logger.error(f"Error reading s3://{self.bucket}/{key}: {e}")
            return None
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"⚠️ Unreadable cache entry s3://{self.bucket}/{key}, treating as miss: {e}")
            return None

    def write(self, company_id: str, stage: str, data: Any) -> bool:
        key = self._key(company_id, stage)
        try:
            body = json.dumps(to_jsonable(data), indent=2, default=str)
            self.s3_client.put_object(Bucket=self.bucket, Key=key, Body=body.encode('utf-8'),
                                      ContentType='application/json')
            return True
        except (ClientError, TypeError, ValueError) as e:
            logger.error(f"Error saving s3://{self.bucket}/{key}: {e}")
            return False

    def _list_keys(self, company_id: str) -> List[str]:
        keys = []
        paginator = self.s3_client.get_paginator('list_objects_v2')
        for page in paginator.paginate(Bucket=self.bucket, Prefix=self._company_prefix(company_id)):
            keys.extend(item['Key'] for item in page.get('Contents', []))
        return keys

    def clear(self, company_id: str) -> bool:
        keys = self._list_keys(company_id)
        if not keys:
            return False
        for start in range(0, len(keys), 1000):
            batch = keys[start:start + 1000]
            self.s3_client.delete_objects(
                Bucket=self.bucket,
                Delete={'Objects': [{'Key': key} for key in batch]}
            )
        logger.info(f"🗑️ Cleared {len(keys)} cached stages for {company_id}")
        return True

    def list_stages(self, company_id: str) -> List[str]:
        prefix = self._company_prefix(company_id)
        return sorted(key[len(prefix):-len('.json')] for key in self._list_keys(company_id)
                      if key.endswith('.json'))


def build_stage_cache(config: PipelineConfig, s3_client=None) -> StageCache:
    """Pick the cache backend named in the config."""
    if config.cache_backend == 's3':
        if not config.s3_bucket:
            raise ValueError("PROPOSAL_S3_BUCKET must be set for the s3 cache backend")
        return S3StageCache(config.s3_bucket, config.s3_prefix, s3_client=s3_client)
    return FileStageCache(config.cache_dir)
