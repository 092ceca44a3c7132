"""Base AWS client utilities for infrastructure clients.

Provides `get_boto3_client` and `execute_aws_api_call` with the
OperationResult pattern. This module avoids reading settings at import
time and accepts configuration via parameters.
"""

import threading
import time
from typing import Any, Dict, Optional, Tuple

import boto3  # type: ignore
from botocore.client import BaseClient  # type: ignore
from botocore.exceptions import BotoCoreError, ClientError  # type: ignore
import structlog

from infrastructure.operations.classifiers import classify_aws_error
from infrastructure.operations.result import OperationResult

logger = structlog.get_logger()

_client_cache: Dict[Tuple, BaseClient] = {}
_client_cache_lock = threading.Lock()


def get_boto3_client(
    service_name: str,
    session_config: Optional[Dict[str, Any]] = None,
    client_config: Optional[Dict[str, Any]] = None,
) -> BaseClient:
    """Return a boto3 client for the given service.

    Clients are thread-safe and reused per (service, config) combination;
    boto3 sessions are not, so each new client gets its own session.

    Args:
        service_name: AWS service name (e.g., 'dynamodb')
        session_config: Optional boto3 session kwargs (e.g., region_name)
        client_config: Optional client kwargs (e.g., endpoint_url)

    Returns:
        botocore client instance
    """
    session_config = session_config or {}
    client_config = client_config or {}
    key = (
        service_name,
        tuple(sorted(session_config.items())),
        tuple(sorted(client_config.items())),
    )
    with _client_cache_lock:
        client = _client_cache.get(key)
        if client is None:
            session = boto3.Session(**session_config)
            client = session.client(service_name, **client_config)
            _client_cache[key] = client
    return client


def reset_client_cache() -> None:
    """Drop cached boto3 clients."""
    with _client_cache_lock:
        _client_cache.clear()


def _calculate_retry_delay(attempt: int, backoff_factor: float = 0.5) -> float:
    return backoff_factor * (2**attempt)


def execute_aws_api_call(
    service_name: str,
    method: str,
    session_config: Optional[Dict[str, Any]] = None,
    client_config: Optional[Dict[str, Any]] = None,
    max_retries: int = 3,
    backoff_factor: float = 0.5,
    **kwargs,
) -> OperationResult:
    """Execute an AWS API call with retries and standardized results.

    Throttling and other transient errors are retried with exponential
    backoff. Conditional check failures are returned immediately with the
    CONDITION_FAILED error code so guarded writes can detect a lost race.

    Args mirror `boto3` call parameters; the function returns an
    `OperationResult` object for consistent downstream handling.
    """
    for attempt in range(max_retries + 1):
        try:
            client = get_boto3_client(
                service_name,
                session_config=session_config,
                client_config=client_config,
            )
            response = getattr(client, method)(**kwargs)
            return OperationResult.success(
                data=response, message=f"{service_name}.{method} succeeded"
            )

        except ClientError as e:
            mapped = classify_aws_error(e)

            if (
                mapped.status.is_retryable
                and attempt < max_retries
            ):
                delay = _calculate_retry_delay(attempt, backoff_factor)
                logger.warning(
                    "aws_api_retry",
                    service=service_name,
                    method=method,
                    attempt=attempt + 1,
                    error=str(e),
                    delay=delay,
                )
                time.sleep(delay)
                continue

            if mapped.error_code != "CONDITION_FAILED":
                logger.error(
                    "aws_api_error_final",
                    service=service_name,
                    method=method,
                    error=str(e),
                )
            return mapped

        except BotoCoreError as e:
            logger.error(
                "aws_api_connection_error",
                service=service_name,
                method=method,
                error=str(e),
            )
            if attempt < max_retries:
                time.sleep(_calculate_retry_delay(attempt, backoff_factor))
                continue
            return classify_aws_error(e)

    return OperationResult.transient_error(
        message=f"{service_name}.{method} exhausted retries",
        error_code="AWS_RETRIES_EXHAUSTED",
    )
