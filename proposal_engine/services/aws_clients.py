"""
Centralized AWS session and client initialization.
"""
import logging
import os
import threading
from typing import Dict

import boto3
from botocore.config import Config as BotocoreConfig

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

LAMBDA_TMP_DIR = "/tmp"
DEFAULT_REGION = os.environ.get('AWS_REGION', 'us-east-1')

_sessions: Dict[str, boto3.Session] = {}
_s3_clients: Dict[str, object] = {}
_clients_lock = threading.Lock()


def get_session(region_name: str = DEFAULT_REGION) -> boto3.Session:
    """Shared boto3 session per region."""
    with _clients_lock:
        session = _sessions.get(region_name)
        if session is None:
            session = boto3.Session(region_name=region_name)
            _sessions[region_name] = session
            logger.info(f"✅ AWS session initialized for {region_name}")
        return session


def get_s3_client(region_name: str = DEFAULT_REGION):
    """Shared S3 client per region, used by the S3 stage cache."""
    session = get_session(region_name)
    with _clients_lock:
        client = _s3_clients.get(region_name)
        if client is None:
            client = session.client(
                "s3",
                config=BotocoreConfig(
                    retries={"max_attempts": 3, "mode": "adaptive"},
                    connect_timeout=10,
                    read_timeout=60
                )
            )
            _s3_clients[region_name] = client
        return client


def is_lambda_environment() -> bool:
    return bool(os.environ.get('AWS_LAMBDA_FUNCTION_NAME'))


def default_cache_dir() -> str:
    """Lambda only allows writes under /tmp."""
    if is_lambda_environment():
        return os.path.join(LAMBDA_TMP_DIR, "cache")
    return "cache"
