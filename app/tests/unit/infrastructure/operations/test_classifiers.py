"""Unit tests for error classifiers.

Tests cover:
- Slack Web API error classification
- AWS SDK error classification
- Retry-After header extraction
"""

from unittest.mock import Mock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError
from slack_sdk.errors import SlackApiError

from infrastructure.operations.classifiers import (
    classify_aws_error,
    classify_slack_error,
)
from infrastructure.operations.status import OperationStatus

pytestmark = pytest.mark.unit


def make_slack_error(error, status_code=200, headers=None):
    response = Mock()
    response.status_code = status_code
    response.headers = headers if headers is not None else {}
    response.get = Mock(side_effect=lambda key, default=None: error)
    return SlackApiError("Slack API call failed", response)


def make_client_error(code):
    return ClientError({"Error": {"Code": code, "Message": code}}, "UpdateItem")


class TestClassifySlackError:
    """Tests for classify_slack_error() function."""

    def test_429_with_retry_after(self):
        result = classify_slack_error(
            make_slack_error("ratelimited", 429, {"Retry-After": "30"})
        )

        assert result.status == OperationStatus.TRANSIENT_ERROR
        assert result.error_code == "RATE_LIMITED"
        assert result.retry_after == 30

    def test_ratelimited_without_header_uses_default(self):
        result = classify_slack_error(make_slack_error("ratelimited"))

        assert result.is_rate_limited
        assert result.retry_after == 60

    def test_malformed_retry_after_uses_default(self):
        result = classify_slack_error(
            make_slack_error("ratelimited", 429, {"Retry-After": "soon"})
        )

        assert result.retry_after == 60

    def test_server_error_is_transient(self):
        result = classify_slack_error(make_slack_error("internal_error", 502))

        assert result.status == OperationStatus.TRANSIENT_ERROR
        assert result.error_code == "SLACK_INTERNAL_ERROR"

    def test_auth_errors(self):
        result = classify_slack_error(make_slack_error("invalid_auth"))

        assert result.status == OperationStatus.UNAUTHORIZED

    @pytest.mark.parametrize(
        "error", ["channel_not_found", "user_disabled", "is_archived"]
    )
    def test_recipient_errors_are_permanent(self, error):
        result = classify_slack_error(make_slack_error(error))

        assert result.status == OperationStatus.PERMANENT_ERROR
        assert result.error_code == f"SLACK_{error.upper()}"

    def test_unknown_error_is_permanent(self):
        result = classify_slack_error(make_slack_error("msg_too_long"))

        assert result.status == OperationStatus.PERMANENT_ERROR

    def test_connection_error_is_transient(self):
        result = classify_slack_error(ConnectionResetError("reset by peer"))

        assert result.status == OperationStatus.TRANSIENT_ERROR
        assert result.error_code == "CONNECTION_ERROR"


class TestClassifyAwsError:
    """Tests for classify_aws_error() function."""

    @pytest.mark.parametrize(
        "code", ["ThrottlingException", "ProvisionedThroughputExceededException"]
    )
    def test_throttling(self, code):
        result = classify_aws_error(make_client_error(code))

        assert result.is_rate_limited
        assert result.retry_after == 60

    def test_conditional_check_failed(self):
        result = classify_aws_error(
            make_client_error("ConditionalCheckFailedException")
        )

        assert result.status == OperationStatus.PERMANENT_ERROR
        assert result.error_code == "CONDITION_FAILED"

    def test_access_denied(self):
        result = classify_aws_error(make_client_error("AccessDeniedException"))

        assert result.error_code == "FORBIDDEN"

    def test_resource_not_found(self):
        result = classify_aws_error(make_client_error("ResourceNotFoundException"))

        assert result.status == OperationStatus.NOT_FOUND

    def test_validation(self):
        result = classify_aws_error(make_client_error("ValidationException"))

        assert result.error_code == "INVALID_REQUEST"

    def test_unknown_is_transient(self):
        result = classify_aws_error(make_client_error("InternalServerError"))

        assert result.status == OperationStatus.TRANSIENT_ERROR
        assert result.error_code == "AWS_CLIENT_ERROR"

    def test_non_client_error(self):
        result = classify_aws_error(
            EndpointConnectionError(endpoint_url="http://localhost:8000")
        )

        assert result.error_code == "CONNECTION_ERROR"
