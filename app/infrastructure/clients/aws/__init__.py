"""Infrastructure AWS clients public API.

The main facade is AWSClients, which composes per-service clients and
exposes them as attributes:

    from infrastructure.services import get_aws_clients

    aws = get_aws_clients()
    aws.sqs.send_message(queue_url, body)
"""

from infrastructure.clients.aws.dynamodb import DynamoDBClient
from infrastructure.clients.aws.facade import AWSClients
from infrastructure.clients.aws.session_provider import SessionProvider
from infrastructure.clients.aws.sqs import SqsClient

__all__ = [
    "AWSClients",
    "SessionProvider",
    "DynamoDBClient",
    "SqsClient",
]
