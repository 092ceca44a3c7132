"""Unit tests for SessionProvider."""

import pytest

from infrastructure.clients.aws.session_provider import SessionProvider
from infrastructure.configuration.integrations.aws import AwsSettings

pytestmark = pytest.mark.unit


class TestSessionProvider:
    def test_region_and_endpoint(self):
        kwargs = SessionProvider(
            region="ca-central-1", endpoint_url="http://localhost:8000"
        ).build_client_kwargs()

        assert kwargs["session_config"] == {"region_name": "ca-central-1"}
        assert kwargs["client_config"] == {
            "region_name": "ca-central-1",
            "endpoint_url": "http://localhost:8000",
        }

    def test_empty_config(self):
        kwargs = SessionProvider().build_client_kwargs()

        assert kwargs == {"session_config": None, "client_config": None}

    def test_for_service_uses_service_endpoint(self):
        settings = AwsSettings(
            AWS_REGION="us-east-1",
            DYNAMODB_ENDPOINT_URL="http://localhost:8000",
            SQS_ENDPOINT_URL="http://localhost:9324",
        )

        dynamodb = SessionProvider.for_service("dynamodb", settings)
        sqs = SessionProvider.for_service("sqs", settings)

        assert dynamodb.endpoint_url == "http://localhost:8000"
        assert sqs.endpoint_url == "http://localhost:9324"
        assert sqs.region == "us-east-1"

    def test_for_unknown_service_has_no_endpoint(self):
        provider = SessionProvider.for_service("s3", AwsSettings(AWS_REGION="ca-central-1"))

        assert provider.endpoint_url is None
        assert provider.region == "ca-central-1"
