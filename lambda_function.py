"""
Lambda handler for the AI Proposal Engine.
"""
import json
import logging
import os
import traceback
from datetime import datetime

from proposal_engine.core.bedrock_manager import CompletionService, build_completion_service
from proposal_engine.core.config import PipelineConfig
from proposal_engine.orchestrator import ProposalOrchestrator
from proposal_engine.services.aws_clients import default_cache_dir, is_lambda_environment
from proposal_engine.utils.task_manager import TaskManager

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

CORS_HEADERS = {
    'Content-Type': 'application/json',
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Methods': 'POST, GET, OPTIONS',
    'Access-Control-Allow-Headers': 'Content-Type, Authorization'
}
STATUS_CODES = {
    'invalid_request': 400,
    'not_found': 404,
}

# Shared across warm invocations so background narrative tasks are de-duplicated
task_manager = TaskManager()

# Built on first use and reused while the container stays warm
_completion_service = None


def build_config() -> PipelineConfig:
    config = PipelineConfig.from_env()
    if is_lambda_environment() and not os.environ.get('PROPOSAL_CACHE_DIR'):
        config.cache_dir = default_cache_dir()
    return config


def get_completion_service(config: PipelineConfig) -> CompletionService:
    global _completion_service
    if _completion_service is None:
        _completion_service = build_completion_service(config)
        logger.info(f"✅ Completion service initialized for {config.model_id}")
    return _completion_service


def _response(status_code: int, body) -> dict:
    return {
        'statusCode': status_code,
        'headers': CORS_HEADERS,
        'body': json.dumps(body, default=str)
    }


def lambda_handler(event, context):
    """
    AWS Lambda handler for proposal generation, cached analysis fetches and cache clearing.
    """
    try:
        # Parse request body
        raw_body = event.get('body', event)
        if isinstance(raw_body, str):
            try:
                body = json.loads(raw_body)
            except json.JSONDecodeError as e:
                return _response(400, {
                    'status': 'invalid_request',
                    'message': f'Request body is not valid JSON: {e}',
                    'timestamp': datetime.now().isoformat()
                })
        else:
            body = raw_body
        if not isinstance(body, dict):
            return _response(400, {
                'status': 'invalid_request',
                'message': 'Request body must be a JSON object',
                'timestamp': datetime.now().isoformat()
            })

        if body.get('prompt'):
            logger.info(f"Custom prompt provided: {len(body['prompt'])} characters")

        config = build_config()
        orchestrator = ProposalOrchestrator(config=config, task_manager=task_manager,
                                            completion_service=get_completion_service(config))
        result = orchestrator.process_request(body)
        return _response(STATUS_CODES.get(result.get('status'), 200), result)

    except Exception as e:
        logger.error(f"Lambda handler error: {e}")
        logger.error(traceback.format_exc())

        return _response(500, {
            'status': 'error',
            'message': str(e),
            'error_type': type(e).__name__,
            'timestamp': datetime.now().isoformat()
        })
