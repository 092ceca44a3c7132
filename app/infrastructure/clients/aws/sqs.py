"""SQS client for AWS operations.

Wraps the SQS calls the delivery queue needs (send, receive, delete) with
OperationResult return types.
"""

from typing import Optional

import structlog

from infrastructure.clients.aws.executor import execute_aws_api_call
from infrastructure.clients.aws.session_provider import SessionProvider
from infrastructure.operations.result import OperationResult

logger = structlog.get_logger()


class SqsClient:
    """Client for SQS operations.

    Args:
        session_provider: SessionProvider instance for region/endpoint config
    """

    def __init__(self, session_provider: SessionProvider) -> None:
        self._session_provider = session_provider
        self._service_name = "sqs"

    def send_message(
        self,
        queue_url: str,
        message_body: str,
        message_group_id: Optional[str] = None,
        deduplication_id: Optional[str] = None,
    ) -> OperationResult:
        """Send a message to an SQS queue.

        ``message_group_id`` and ``deduplication_id`` are only sent when
        given (FIFO queues).
        """
        kwargs = {"QueueUrl": queue_url, "MessageBody": message_body}
        if message_group_id:
            kwargs["MessageGroupId"] = message_group_id
        if deduplication_id:
            kwargs["MessageDeduplicationId"] = deduplication_id
        logger.debug("sending_message", service="sqs", queue_url=queue_url)
        return execute_aws_api_call(
            self._service_name,
            "send_message",
            **self._session_provider.build_client_kwargs(),
            **kwargs,
        )

    def receive_messages(
        self,
        queue_url: str,
        max_number_of_messages: int = 1,
        wait_time_seconds: int = 10,
    ) -> OperationResult:
        """Receive messages from an SQS queue.

        Returns:
            OperationResult whose data is the list of raw SQS messages
        """
        result = execute_aws_api_call(
            self._service_name,
            "receive_message",
            **self._session_provider.build_client_kwargs(),
            QueueUrl=queue_url,
            MaxNumberOfMessages=max_number_of_messages,
            WaitTimeSeconds=wait_time_seconds,
            AttributeNames=["ApproximateReceiveCount"],
        )
        if not result.is_success:
            return result
        return OperationResult.success(
            data=(result.data or {}).get("Messages", []),
            message="sqs.receive_message succeeded",
        )

    def delete_message(self, queue_url: str, receipt_handle: str) -> OperationResult:
        """Delete (acknowledge) a message from an SQS queue."""
        return execute_aws_api_call(
            self._service_name,
            "delete_message",
            **self._session_provider.build_client_kwargs(),
            QueueUrl=queue_url,
            ReceiptHandle=receipt_handle,
        )

    def get_queue_attributes(self, queue_url: str) -> OperationResult:
        """Fetch approximate message counts for a queue."""
        return execute_aws_api_call(
            self._service_name,
            "get_queue_attributes",
            **self._session_provider.build_client_kwargs(),
            QueueUrl=queue_url,
            AttributeNames=[
                "ApproximateNumberOfMessages",
                "ApproximateNumberOfMessagesNotVisible",
            ],
        )
