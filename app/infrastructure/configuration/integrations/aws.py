"""AWS integration settings."""

from typing import Optional

from pydantic import Field

from infrastructure.configuration.base import IntegrationSettings


class AwsSettings(IntegrationSettings):
    """AWS configuration for the DynamoDB stores and the SQS work queue.

    Credentials come from the default boto3 chain and are never read here.

    Environment Variables:
        AWS_REGION: Region for DynamoDB and SQS (default: ca-central-1)
        DYNAMODB_ENDPOINT_URL: DynamoDB endpoint override (DynamoDB Local)
        SQS_ENDPOINT_URL: SQS endpoint override (LocalStack, ElasticMQ)

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()

        region = settings.aws.AWS_REGION
        ```
    """

    AWS_REGION: str = Field(default="ca-central-1", alias="AWS_REGION")
    DYNAMODB_ENDPOINT_URL: Optional[str] = Field(
        default=None, alias="DYNAMODB_ENDPOINT_URL"
    )
    SQS_ENDPOINT_URL: Optional[str] = Field(default=None, alias="SQS_ENDPOINT_URL")
