"""AWS clients used by the delivery engine.

One focused client per service, each with its own region and endpoint
configuration, grouped behind a small facade.
"""

import structlog

from infrastructure.clients.aws.dynamodb import DynamoDBClient
from infrastructure.clients.aws.session_provider import SessionProvider
from infrastructure.clients.aws.sqs import SqsClient
from infrastructure.configuration.integrations.aws import AwsSettings

logger = structlog.get_logger()


class AWSClients:
    """DynamoDB and SQS clients for the delivery stores and work queue.

    Usage:
        aws = get_aws_clients()
        result = aws.dynamodb.get_item(
            "notification_delivery_notifications",
            Key={"notification_id": {"S": notification_id}},
        )
        if result.is_success:
            item = result.data.get("Item")
    """

    def __init__(self, aws_settings: AwsSettings) -> None:
        self.dynamodb = DynamoDBClient(
            SessionProvider.for_service("dynamodb", aws_settings)
        )
        self.sqs = SqsClient(SessionProvider.for_service("sqs", aws_settings))
        logger.debug("aws_clients_initialized", region=aws_settings.AWS_REGION)
