"""Error classifiers for provider exceptions.

Converts provider-specific exceptions (Slack SDK, AWS SDK) into standardized
OperationResult objects so the send worker and the stores only ever reason
about OperationStatus values.

Key Functions:
- classify_slack_error(): Slack Web API errors → OperationResult
- classify_aws_error(): AWS SDK errors → OperationResult

Usage:
    from infrastructure.operations.classifiers import classify_slack_error

    try:
        client.chat_postMessage(channel=channel_id, text=body)
    except SlackApiError as exc:
        return classify_slack_error(exc)
"""

from typing import Optional

from botocore.exceptions import ClientError
from slack_sdk.errors import SlackApiError

from infrastructure.operations.result import OperationResult
from infrastructure.operations.status import OperationStatus

DEFAULT_RETRY_AFTER = 60

# Slack error strings that describe a recipient that can never be reached
SLACK_PERMANENT_RECIPIENT_ERRORS = (
    "channel_not_found",
    "user_not_found",
    "is_archived",
    "not_in_channel",
    "user_disabled",
    "account_inactive",
    "cannot_dm_bot",
    "restricted_action",
)

AWS_THROTTLING_CODES = (
    "Throttling",
    "ThrottlingException",
    "RequestLimitExceeded",
    "ProvisionedThroughputExceededException",
)


def _parse_retry_after(value: Optional[object]) -> int:
    if value is None:
        return DEFAULT_RETRY_AFTER
    try:
        return max(0, int(float(str(value))))
    except (ValueError, TypeError):
        return DEFAULT_RETRY_AFTER


def classify_slack_error(exc: Exception) -> OperationResult:
    """Classify Slack Web API errors into OperationResult.

    Status Code Mapping:
    - 429: Rate limiting → TRANSIENT_ERROR, RATE_LIMITED, retry_after from header
    - 5xx: Server error → TRANSIENT_ERROR
    - recipient errors (channel_not_found, user_disabled, ...) → PERMANENT_ERROR
    - invalid_auth / not_authed / token_revoked → UNAUTHORIZED
    - Other: Unknown API error → PERMANENT_ERROR

    Non-Slack exceptions (connection resets, timeouts) are treated as
    transient.

    Args:
        exc: Exception raised by slack_sdk

    Returns:
        OperationResult with appropriate status, error_code and retry_after
    """
    if not isinstance(exc, SlackApiError):
        return OperationResult.transient_error(
            f"Slack connection error: {type(exc).__name__}: {str(exc)}",
            error_code="CONNECTION_ERROR",
        )

    response = exc.response
    status_code = getattr(response, "status_code", None)
    error = "unknown_error"
    try:
        error = response.get("error") or error
    except AttributeError:
        pass
    error_code = f"SLACK_{str(error).upper()}"

    if status_code == 429 or error == "ratelimited":
        headers = getattr(response, "headers", None) or {}
        return OperationResult.rate_limited(
            f"Slack API rate limited: {error}",
            retry_after=_parse_retry_after(headers.get("Retry-After")),
        )

    if status_code and 500 <= status_code < 600:
        return OperationResult.transient_error(
            f"Slack API server error ({status_code}): {error}",
            error_code=error_code,
        )

    if error in ("invalid_auth", "not_authed", "token_revoked"):
        return OperationResult.error(
            OperationStatus.UNAUTHORIZED,
            f"Slack API authentication failed: {error}",
            error_code=error_code,
        )

    if error in SLACK_PERMANENT_RECIPIENT_ERRORS:
        return OperationResult.permanent_error(
            f"Slack recipient unreachable: {error}",
            error_code=error_code,
        )

    return OperationResult.permanent_error(
        f"Slack API error: {error}",
        error_code=error_code,
    )


def classify_aws_error(exc: Exception) -> OperationResult:
    """Classify AWS SDK errors into OperationResult.

    Handles botocore.exceptions.ClientError exceptions by mapping AWS error
    codes to appropriate OperationStatus values. Follows AWS SDK convention
    of treating unknown errors as transient (retry by default).

    Error Code Mapping:
    - Throttling codes: Rate limiting → TRANSIENT_ERROR with retry_after
    - ConditionalCheckFailedException: guarded write lost → PERMANENT_ERROR
    - AccessDeniedException: Permission denied → PERMANENT_ERROR
    - ResourceNotFoundException: Not found → NOT_FOUND
    - ValidationException: Bad input → PERMANENT_ERROR
    - Other: Unknown error → TRANSIENT_ERROR (AWS convention)

    Args:
        exc: Exception raised by AWS SDK (boto3/botocore)

    Returns:
        OperationResult with appropriate status, message, error_code, and
        retry_after (if applicable)
    """
    if not isinstance(exc, ClientError):
        return OperationResult.transient_error(
            f"AWS connection error: {type(exc).__name__}: {str(exc)}",
            error_code="CONNECTION_ERROR",
        )

    error_code = "Unknown"
    if hasattr(exc, "response") and exc.response:
        error_info = exc.response.get("Error", {})
        error_code = error_info.get("Code", "Unknown")

    if error_code in AWS_THROTTLING_CODES:
        return OperationResult.rate_limited(
            "AWS API throttled", retry_after=DEFAULT_RETRY_AFTER
        )

    if error_code == "ConditionalCheckFailedException":
        return OperationResult.permanent_error(
            "AWS conditional check failed",
            error_code="CONDITION_FAILED",
        )

    if error_code == "AccessDeniedException":
        return OperationResult.permanent_error(
            "AWS API access denied",
            error_code="FORBIDDEN",
        )

    if error_code == "ResourceNotFoundException":
        return OperationResult.not_found("AWS resource not found")

    if error_code in (
        "ValidationException",
        "InvalidParameterException",
        "BadRequestException",
    ):
        return OperationResult.permanent_error(
            f"AWS validation error: {error_code}",
            error_code="INVALID_REQUEST",
        )

    # AWS SDK convention: unknown errors are transient
    return OperationResult.transient_error(
        f"AWS client error: {error_code}",
        error_code="AWS_CLIENT_ERROR",
    )
