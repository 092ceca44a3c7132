"""Per-service boto3 session and client configuration."""

from typing import Any, Dict, Optional

import structlog

from infrastructure.configuration.integrations.aws import AwsSettings

logger = structlog.get_logger()

ENDPOINT_SETTINGS = {
    "dynamodb": "DYNAMODB_ENDPOINT_URL",
    "sqs": "SQS_ENDPOINT_URL",
}


class SessionProvider:
    """Region and endpoint configuration for one AWS service client.

    Args:
        region: AWS region (e.g., 'ca-central-1')
        endpoint_url: Endpoint override for local emulators
        service: Service name, used for logging only
    """

    def __init__(
        self,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        service: str = "aws",
    ) -> None:
        self.region = region
        self.endpoint_url = endpoint_url
        self.service = service

    @classmethod
    def for_service(cls, service: str, aws_settings: AwsSettings) -> "SessionProvider":
        """Build a provider using the endpoint override configured for ``service``."""
        endpoint_field = ENDPOINT_SETTINGS.get(service)
        endpoint_url = getattr(aws_settings, endpoint_field) if endpoint_field else None
        return cls(
            region=aws_settings.AWS_REGION,
            endpoint_url=endpoint_url,
            service=service,
        )

    def build_client_kwargs(self) -> Dict[str, Any]:
        """Return the session_config and client_config kwargs for execute_aws_api_call."""
        session_config: Dict[str, Any] = {}
        client_config: Dict[str, Any] = {}

        if self.region:
            session_config["region_name"] = self.region
            client_config["region_name"] = self.region
        if self.endpoint_url:
            client_config["endpoint_url"] = self.endpoint_url

        logger.debug(
            "aws_client_kwargs_built",
            service=self.service,
            region=self.region,
            endpoint_url=self.endpoint_url,
        )
        return {
            "session_config": session_config or None,
            "client_config": client_config or None,
        }
