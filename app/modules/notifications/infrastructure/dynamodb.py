"""DynamoDB-backed notification and delivery result stores.

Used when several processes share the delivery workload. Atomicity comes
from DynamoDB itself: guarded transitions are conditional updates and
counters are ``ADD`` updates, so no in-process locking is needed.

Table Schemas:
    Notifications table:
        PK: notification_id (String)
        Attributes: title, body (JSON), audience (JSON), state, author,
                    created_at, started_at, completed_at, resolved, sent,
                    failed, throttled, cancelled, cancelled_at, work_units
    Results table:
        PK: notification_id (String)
        SK: recipient_id (String)
        Attributes: recipient_kind, outcome, attempts, classification,
                    error_message, is_terminal, counted, updated_at
"""

import json
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from infrastructure.clients.aws.dynamodb import DynamoDBClient
from infrastructure.logging import get_module_logger
from infrastructure.operations.result import OperationResult
from modules.notifications.domain.errors import (
    DeliveryAlreadyStartedError,
    InvalidStateTransitionError,
    NotificationNotFoundError,
    StoreError,
)
from modules.notifications.domain.models import (
    AudienceSpec,
    DeliveryOutcome,
    DeliveryResult,
    ErrorClassification,
    Notification,
    NotificationState,
    RecipientKind,
)
from modules.notifications.infrastructure.stores import COUNTERS

logger = get_module_logger()

CONDITION_FAILED = "CONDITION_FAILED"


def _is_condition_failure(result: OperationResult) -> bool:
    return not result.is_success and result.error_code == CONDITION_FAILED


def _s(value: str) -> Dict[str, str]:
    return {"S": value}


def _n(value: int) -> Dict[str, str]:
    return {"N": str(value)}


def _get_s(item: Dict[str, Any], key: str) -> Optional[str]:
    attr = item.get(key)
    if isinstance(attr, dict) and "S" in attr:
        return attr["S"]
    return None


def _get_n(item: Dict[str, Any], key: str) -> int:
    attr = item.get(key)
    if isinstance(attr, dict) and "N" in attr:
        return int(attr["N"])
    return 0


def _get_dt(item: Dict[str, Any], key: str) -> Optional[datetime]:
    value = _get_s(item, key)
    return datetime.fromisoformat(value) if value else None


def notification_to_item(notification: Notification) -> Dict[str, Any]:
    """Convert a Notification to a DynamoDB item (type descriptors)."""
    item: Dict[str, Any] = {
        "notification_id": _s(notification.id),
        "title": _s(notification.title),
        "body": _s(json.dumps(notification.body)),
        "audience": _s(notification.audience.model_dump_json()),
        "state": _s(notification.state.value),
        "created_at": _s(notification.created_at.isoformat()),
        "resolved": _n(notification.resolved),
        "sent": _n(notification.sent),
        "failed": _n(notification.failed),
        "throttled": _n(notification.throttled),
        "work_units": _n(notification.work_units),
        "cancelled": {"BOOL": notification.cancelled},
    }
    if notification.author:
        item["author"] = _s(notification.author)
    for key in ("started_at", "completed_at", "cancelled_at"):
        value = getattr(notification, key)
        if value is not None:
            item[key] = _s(value.isoformat())
    return item


def item_to_notification(item: Dict[str, Any]) -> Notification:
    """Convert a DynamoDB item back into a Notification."""
    body = _get_s(item, "body")
    return Notification(
        id=_get_s(item, "notification_id"),
        title=_get_s(item, "title"),
        body=json.loads(body) if body is not None else None,
        audience=AudienceSpec.model_validate_json(_get_s(item, "audience")),
        state=NotificationState(_get_s(item, "state")),
        author=_get_s(item, "author"),
        created_at=_get_dt(item, "created_at"),
        started_at=_get_dt(item, "started_at"),
        completed_at=_get_dt(item, "completed_at"),
        resolved=_get_n(item, "resolved"),
        sent=_get_n(item, "sent"),
        failed=_get_n(item, "failed"),
        throttled=_get_n(item, "throttled"),
        work_units=_get_n(item, "work_units"),
        cancelled=bool(item.get("cancelled", {}).get("BOOL", False)),
        cancelled_at=_get_dt(item, "cancelled_at"),
    )


def result_to_item(result: DeliveryResult) -> Dict[str, Any]:
    item: Dict[str, Any] = {
        "notification_id": _s(result.notification_id),
        "recipient_id": _s(result.recipient_id),
        "recipient_kind": _s(result.recipient_kind.value),
        "outcome": _s(result.outcome.value),
        "attempts": _n(result.attempts),
        "classification": _s(result.classification.value),
        "is_terminal": {"BOOL": result.is_terminal},
        "counted": {"BOOL": result.counted},
        "updated_at": _s(result.updated_at.isoformat()),
    }
    if result.error_message:
        item["error_message"] = _s(result.error_message)
    return item


def item_to_result(item: Dict[str, Any]) -> DeliveryResult:
    return DeliveryResult(
        notification_id=_get_s(item, "notification_id"),
        recipient_id=_get_s(item, "recipient_id"),
        recipient_kind=RecipientKind(_get_s(item, "recipient_kind")),
        outcome=DeliveryOutcome(_get_s(item, "outcome")),
        attempts=_get_n(item, "attempts"),
        classification=ErrorClassification(_get_s(item, "classification")),
        error_message=_get_s(item, "error_message"),
        updated_at=_get_dt(item, "updated_at"),
        counted=bool(item.get("counted", {}).get("BOOL", False)),
    )


class DynamoDBNotificationStore:
    """NotificationStore backed by a DynamoDB table.

    Args:
        dynamodb: DynamoDBClient from the AWS clients facade
        table_name: Notifications table name
    """

    def __init__(self, dynamodb: DynamoDBClient, table_name: str):
        self._dynamodb = dynamodb
        self.table_name = table_name
        logger.info("dynamodb_notification_store_initialized", table_name=table_name)

    def _key(self, notification_id: str) -> Dict[str, Any]:
        return {"notification_id": _s(notification_id)}

    def _fail(self, operation: str, notification_id: str, result: OperationResult):
        logger.error(
            "dynamodb_notification_store_failed",
            operation=operation,
            notification_id=notification_id,
            error=result.message,
            error_code=result.error_code,
        )
        raise StoreError(
            f"{operation} failed for notification {notification_id}: {result.message}",
            response=result,
        )

    def create(self, notification: Notification) -> None:
        result = self._dynamodb.put_item(
            self.table_name,
            Item=notification_to_item(notification),
            ConditionExpression="attribute_not_exists(notification_id)",
        )
        if _is_condition_failure(result):
            raise StoreError(f"Notification {notification.id} already exists")
        if not result.is_success:
            self._fail("create", notification.id, result)

    def get(self, notification_id: str) -> Optional[Notification]:
        result = self._dynamodb.get_item(
            self.table_name, Key=self._key(notification_id), ConsistentRead=True
        )
        if not result.is_success:
            self._fail("get", notification_id, result)
        item = (result.data or {}).get("Item")
        return item_to_notification(item) if item else None

    def commit_queued(
        self,
        notification_id: str,
        resolved: int,
        work_units: int,
        started_at: datetime,
    ) -> Notification:
        result = self._dynamodb.update_item(
            self.table_name,
            Key=self._key(notification_id),
            UpdateExpression=(
                "SET #state = :queued, resolved = :resolved, "
                "work_units = :work_units, started_at = :started_at"
            ),
            ConditionExpression="attribute_exists(notification_id) AND #state = :draft",
            ExpressionAttributeNames={"#state": "state"},
            ExpressionAttributeValues={
                ":queued": _s(NotificationState.QUEUED.value),
                ":draft": _s(NotificationState.DRAFT.value),
                ":resolved": _n(resolved),
                ":work_units": _n(work_units),
                ":started_at": _s(started_at.isoformat()),
            },
            ReturnValues="ALL_NEW",
        )
        if _is_condition_failure(result):
            current = self.get(notification_id)
            if current is None:
                raise NotificationNotFoundError(notification_id)
            raise DeliveryAlreadyStartedError(notification_id, current.state)
        if not result.is_success:
            self._fail("commit_queued", notification_id, result)
        return item_to_notification(result.data["Attributes"])

    def transition(
        self,
        notification_id: str,
        from_states: Iterable[NotificationState],
        to_state: NotificationState,
        completed_at: Optional[datetime] = None,
    ) -> bool:
        from_states = tuple(from_states)
        for state in from_states:
            if not state.can_advance_to(to_state):
                raise InvalidStateTransitionError(f"{state.value} -> {to_state.value}")

        placeholders = [f":from{i}" for i in range(len(from_states))]
        values: Dict[str, Any] = {
            placeholder: _s(state.value)
            for placeholder, state in zip(placeholders, from_states)
        }
        values[":to"] = _s(to_state.value)
        update = "SET #state = :to"
        if to_state.is_terminal and completed_at is not None:
            update += ", completed_at = :completed_at"
            values[":completed_at"] = _s(completed_at.isoformat())

        result = self._dynamodb.update_item(
            self.table_name,
            Key=self._key(notification_id),
            UpdateExpression=update,
            ConditionExpression=f"#state IN ({', '.join(placeholders)})",
            ExpressionAttributeNames={"#state": "state"},
            ExpressionAttributeValues=values,
        )
        if _is_condition_failure(result):
            return False
        if not result.is_success:
            self._fail("transition", notification_id, result)
        return True

    def increment(
        self, notification_id: str, counter: str, amount: int = 1
    ) -> Notification:
        if counter not in COUNTERS:
            raise ValueError(f"Unknown counter: {counter}")
        result = self._dynamodb.update_item(
            self.table_name,
            Key=self._key(notification_id),
            UpdateExpression="ADD #counter :amount",
            ConditionExpression="attribute_exists(notification_id)",
            ExpressionAttributeNames={"#counter": counter},
            ExpressionAttributeValues={":amount": _n(amount)},
            ReturnValues="ALL_NEW",
        )
        if _is_condition_failure(result):
            raise NotificationNotFoundError(notification_id)
        if not result.is_success:
            self._fail("increment", notification_id, result)
        return item_to_notification(result.data["Attributes"])

    def mark_cancelled(self, notification_id: str, cancelled_at: datetime) -> bool:
        result = self._dynamodb.update_item(
            self.table_name,
            Key=self._key(notification_id),
            UpdateExpression="SET cancelled = :true, cancelled_at = :cancelled_at",
            ConditionExpression=(
                "#state IN (:queued, :sending) "
                "AND (attribute_not_exists(cancelled) OR cancelled = :false)"
            ),
            ExpressionAttributeNames={"#state": "state"},
            ExpressionAttributeValues={
                ":true": {"BOOL": True},
                ":false": {"BOOL": False},
                ":cancelled_at": _s(cancelled_at.isoformat()),
                ":queued": _s(NotificationState.QUEUED.value),
                ":sending": _s(NotificationState.SENDING.value),
            },
        )
        if _is_condition_failure(result):
            return False
        if not result.is_success:
            self._fail("mark_cancelled", notification_id, result)
        return True


class DynamoDBDeliveryResultStore:
    """DeliveryResultStore backed by a DynamoDB table.

    The put condition refuses to overwrite a terminal result, which keeps
    at most one terminal result per (notification, recipient) even when a
    work unit is delivered twice.

    Args:
        dynamodb: DynamoDBClient from the AWS clients facade
        table_name: Results table name
    """

    def __init__(self, dynamodb: DynamoDBClient, table_name: str):
        self._dynamodb = dynamodb
        self.table_name = table_name
        logger.info("dynamodb_result_store_initialized", table_name=table_name)

    def get(self, notification_id: str, recipient_id: str) -> Optional[DeliveryResult]:
        result = self._dynamodb.get_item(
            self.table_name,
            Key={
                "notification_id": _s(notification_id),
                "recipient_id": _s(recipient_id),
            },
            ConsistentRead=True,
        )
        if not result.is_success:
            raise StoreError(
                f"Failed to read result for {notification_id}/{recipient_id}: "
                f"{result.message}",
                response=result,
            )
        item = (result.data or {}).get("Item")
        return item_to_result(item) if item else None

    def put(self, result: DeliveryResult) -> bool:
        response = self._dynamodb.put_item(
            self.table_name,
            Item=result_to_item(result.model_copy(update={"counted": False})),
            ConditionExpression=(
                "attribute_not_exists(recipient_id) OR is_terminal = :false"
            ),
            ExpressionAttributeValues={":false": {"BOOL": False}},
        )
        if _is_condition_failure(response):
            logger.debug(
                "delivery_result_already_terminal",
                notification_id=result.notification_id,
                recipient_id=result.recipient_id,
            )
            return False
        if not response.is_success:
            logger.error(
                "dynamodb_result_put_failed",
                notification_id=result.notification_id,
                recipient_id=result.recipient_id,
                error=response.message,
            )
            raise StoreError(
                f"Failed to store result for {result.recipient_id}: "
                f"{response.message}",
                response=response,
            )
        return result.is_terminal

    def _set_counted(
        self, notification_id: str, recipient_id: str, counted: bool
    ) -> OperationResult:
        # DynamoDB rejects unused expression values
        if counted:
            update = "SET counted = :true"
            condition = (
                "is_terminal = :true "
                "AND (attribute_not_exists(counted) OR counted = :false)"
            )
        else:
            update = "SET counted = :false"
            condition = "counted = :true"
        return self._dynamodb.update_item(
            self.table_name,
            Key={
                "notification_id": _s(notification_id),
                "recipient_id": _s(recipient_id),
            },
            UpdateExpression=update,
            ConditionExpression=condition,
            ExpressionAttributeValues={
                ":true": {"BOOL": True},
                ":false": {"BOOL": False},
            },
        )

    def mark_counted(self, notification_id: str, recipient_id: str) -> bool:
        response = self._set_counted(notification_id, recipient_id, True)
        if _is_condition_failure(response):
            return False
        if not response.is_success:
            raise StoreError(
                f"Failed to mark result counted for {recipient_id}: "
                f"{response.message}",
                response=response,
            )
        return True

    def unmark_counted(self, notification_id: str, recipient_id: str) -> None:
        response = self._set_counted(notification_id, recipient_id, False)
        if not response.is_success and not _is_condition_failure(response):
            raise StoreError(
                f"Failed to reset counted for {recipient_id}: {response.message}",
                response=response,
            )

    def list_for_notification(self, notification_id: str) -> List[DeliveryResult]:
        results: List[DeliveryResult] = []
        start_key = None
        while True:
            kwargs: Dict[str, Any] = {
                "ExpressionAttributeValues": {":nid": _s(notification_id)},
                "ConsistentRead": True,
            }
            if start_key:
                kwargs["ExclusiveStartKey"] = start_key
            response = self._dynamodb.query(
                self.table_name,
                KeyConditionExpression="notification_id = :nid",
                **kwargs,
            )
            if not response.is_success:
                raise StoreError(
                    f"Failed to list results for {notification_id}: "
                    f"{response.message}",
                    response=response,
                )
            data = response.data or {}
            results.extend(item_to_result(item) for item in data.get("Items", []))
            start_key = data.get("LastEvaluatedKey")
            if not start_key:
                return results
