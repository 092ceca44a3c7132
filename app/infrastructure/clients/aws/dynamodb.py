"""DynamoDB client for AWS operations.

Provides access to the DynamoDB operations the delivery stores rely on
(get_item, put_item, update_item, query) with consistent error handling
and OperationResult return types.
"""

from typing import Any, Dict

import structlog

from infrastructure.clients.aws.executor import execute_aws_api_call
from infrastructure.clients.aws.session_provider import SessionProvider
from infrastructure.operations.result import OperationResult

logger = structlog.get_logger()


class DynamoDBClient:
    """Client for DynamoDB operations.

    All methods return OperationResult. A guarded write that loses its
    ConditionExpression returns a PERMANENT_ERROR with error_code
    ``CONDITION_FAILED``.

    Args:
        session_provider: SessionProvider instance for region/endpoint config
    """

    def __init__(self, session_provider: SessionProvider) -> None:
        self._session_provider = session_provider
        self._service_name = "dynamodb"
        self._logger = logger.bind(component="dynamodb_client")

    def _call(self, method: str, **kwargs) -> OperationResult:
        client_kwargs = self._session_provider.build_client_kwargs()
        return execute_aws_api_call(
            self._service_name,
            method,
            **client_kwargs,
            **kwargs,
        )

    def get_item(
        self, table_name: str, Key: Dict[str, Any], **kwargs
    ) -> OperationResult:
        """Get an item from DynamoDB.

        Args:
            table_name: Name of the DynamoDB table
            Key: Primary key of the item (e.g., {"id": {"S": "123"}})
            **kwargs: Additional DynamoDB get_item parameters

        Returns:
            OperationResult with the raw response (``Item`` key when found)
        """
        return self._call("get_item", TableName=table_name, Key=Key, **kwargs)

    def put_item(
        self, table_name: str, Item: Dict[str, Any], **kwargs
    ) -> OperationResult:
        """Put an item into DynamoDB.

        Args:
            table_name: Name of the DynamoDB table
            Item: Item to store (DynamoDB format with type descriptors)
            **kwargs: Additional put_item parameters (ConditionExpression, ...)
        """
        return self._call("put_item", TableName=table_name, Item=Item, **kwargs)

    def update_item(
        self, table_name: str, Key: Dict[str, Any], **kwargs
    ) -> OperationResult:
        """Update an item in DynamoDB.

        Args:
            table_name: Name of the DynamoDB table
            Key: Primary key of the item
            **kwargs: UpdateExpression, ConditionExpression, ReturnValues, ...
        """
        return self._call("update_item", TableName=table_name, Key=Key, **kwargs)

    def query(
        self, table_name: str, KeyConditionExpression: Any, **kwargs
    ) -> OperationResult:
        """Query items from DynamoDB using a key condition."""
        return self._call(
            "query",
            TableName=table_name,
            KeyConditionExpression=KeyConditionExpression,
            **kwargs,
        )

    def healthcheck(self) -> OperationResult:
        """Lightweight health check performing a cheap `list_tables` call."""
        client_kwargs = self._session_provider.build_client_kwargs()
        return execute_aws_api_call(
            self._service_name,
            "list_tables",
            max_retries=0,
            Limit=1,
            **client_kwargs,
        )
