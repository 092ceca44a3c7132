"""Unit tests for the AWS API executor."""

from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from infrastructure.clients.aws.executor import execute_aws_api_call
from infrastructure.operations.status import OperationStatus

pytestmark = pytest.mark.unit


def client_error(code):
    return ClientError({"Error": {"Code": code, "Message": code}}, "PutItem")


@pytest.fixture
def mock_boto3_client():
    client = MagicMock()
    with patch(
        "infrastructure.clients.aws.executor.get_boto3_client", return_value=client
    ):
        yield client


@pytest.fixture(autouse=True)
def no_sleep():
    with patch("infrastructure.clients.aws.executor.time.sleep") as mock_sleep:
        yield mock_sleep


class TestExecuteAwsApiCall:
    """Tests for execute_aws_api_call()."""

    def test_success(self, mock_boto3_client):
        mock_boto3_client.get_item.return_value = {"Item": {"id": {"S": "1"}}}

        result = execute_aws_api_call(
            "dynamodb", "get_item", TableName="t", Key={"id": {"S": "1"}}
        )

        assert result.is_success
        assert result.data["Item"] == {"id": {"S": "1"}}
        mock_boto3_client.get_item.assert_called_once_with(
            TableName="t", Key={"id": {"S": "1"}}
        )

    def test_throttling_is_retried(self, mock_boto3_client, no_sleep):
        mock_boto3_client.put_item.side_effect = [
            client_error("ThrottlingException"),
            {},
        ]

        result = execute_aws_api_call("dynamodb", "put_item", TableName="t", Item={})

        assert result.is_success
        assert mock_boto3_client.put_item.call_count == 2
        no_sleep.assert_called_once_with(0.5)

    def test_condition_failure_is_not_retried(self, mock_boto3_client):
        mock_boto3_client.update_item.side_effect = client_error(
            "ConditionalCheckFailedException"
        )

        result = execute_aws_api_call("dynamodb", "update_item", TableName="t")

        assert result.error_code == "CONDITION_FAILED"
        assert mock_boto3_client.update_item.call_count == 1

    def test_transient_errors_exhaust(self, mock_boto3_client):
        mock_boto3_client.query.side_effect = client_error("InternalServerError")

        result = execute_aws_api_call("dynamodb", "query", max_retries=2)

        assert result.status == OperationStatus.TRANSIENT_ERROR
        assert mock_boto3_client.query.call_count == 3

    def test_session_and_client_config_passed(self):
        with patch(
            "infrastructure.clients.aws.executor.get_boto3_client"
        ) as mock_get_client:
            mock_get_client.return_value.list_tables.return_value = {}

            execute_aws_api_call(
                "dynamodb",
                "list_tables",
                session_config={"region_name": "ca-central-1"},
                client_config={"endpoint_url": "http://localhost:8000"},
            )

        mock_get_client.assert_called_once_with(
            "dynamodb",
            session_config={"region_name": "ca-central-1"},
            client_config={"endpoint_url": "http://localhost:8000"},
        )
