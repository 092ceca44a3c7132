"""Slack adapters for the delivery engine.

SlackMessenger implements the Messenger port on top of chat.postMessage;
SlackRosterSource implements the RosterSource port on top of users.list
(the whole workspace) and usergroups.users.list (a team).
"""

import threading
from typing import Any, Dict, List, Optional

from slack_sdk import WebClient
from slack_sdk.errors import SlackApiError

from infrastructure.logging import get_module_logger
from infrastructure.operations.classifiers import classify_slack_error
from infrastructure.operations.result import OperationResult
from modules.notifications.core.ports import TENANT_SCOPE
from modules.notifications.domain.models import RecipientDescriptor, RecipientKind

logger = get_module_logger()

SLACK_USER_PREFIXES = ("U", "W")
SLACKBOT_USER_ID = "USLACKBOT"


def is_user_ref(conversation_ref: str) -> bool:
    """True if the Slack id addresses a user rather than a conversation."""
    return conversation_ref.startswith(SLACK_USER_PREFIXES)


def message_kwargs(body: Any) -> Dict[str, Any]:
    """Translate an opaque notification body into chat.postMessage kwargs.

    A string becomes ``text``; a dict is passed through (``text``,
    ``blocks``, ``attachments``, ...); anything else is stringified.
    """
    if isinstance(body, dict):
        return dict(body)
    if isinstance(body, str):
        return {"text": body}
    return {"text": str(body)}


class SlackMessenger:
    """Sends notification bodies through the Slack Web API.

    Users receive a direct message: the DM channel is opened with
    conversations.open once and cached. Channels (and team conversations)
    are posted to directly.

    Args:
        client: Slack WebClient authenticated with the bot token
    """

    def __init__(self, client: WebClient):
        self._client = client
        self._dm_channels: Dict[str, str] = {}
        self._lock = threading.Lock()
        self._log = logger.bind(component="slack_messenger")

    def _open_dm(self, user_id: str) -> OperationResult:
        with self._lock:
            channel_id = self._dm_channels.get(user_id)
        if channel_id:
            return OperationResult.success(data=channel_id)

        response = self._client.conversations_open(users=user_id)
        if not response.get("ok"):
            error = response.get("error", "unknown_error")
            return OperationResult.permanent_error(
                f"Could not open DM with {user_id}: {error}",
                error_code=f"SLACK_{error.upper()}",
            )
        channel_id = response["channel"]["id"]
        with self._lock:
            self._dm_channels[user_id] = channel_id
        return OperationResult.success(data=channel_id)

    def send(self, conversation_ref: str, body: Any) -> OperationResult:
        """Post ``body`` to a Slack user or conversation."""
        log = self._log.bind(recipient_id=conversation_ref)
        try:
            channel_id = conversation_ref
            if is_user_ref(conversation_ref):
                opened = self._open_dm(conversation_ref)
                if not opened.is_success:
                    log.warning("slack_dm_open_failed", error=opened.message)
                    return opened
                channel_id = opened.data

            response = self._client.chat_postMessage(
                channel=channel_id, **message_kwargs(body)
            )
            if not response.get("ok"):
                error = response.get("error", "unknown_error")
                log.warning("slack_message_failed", error=error)
                return OperationResult.permanent_error(
                    message=f"Slack API error: {error}",
                    error_code=f"SLACK_{error.upper()}",
                )

            log.debug("slack_message_posted", ts=response.get("ts"))
            return OperationResult.success(
                data={"channel": channel_id, "ts": response.get("ts")},
                message="Message posted successfully",
            )

        except SlackApiError as e:
            result = classify_slack_error(e)
            log.warning(
                "slack_api_error",
                error=str(e),
                status=result.status.value,
                error_code=result.error_code,
                retry_after=result.retry_after,
            )
            return result


class SlackRosterSource:
    """Pages through Slack workspace members and user group members.

    Args:
        client: Slack WebClient authenticated with the bot token
        tenant_id: Tenant assigned to user group members (users.list
            members carry their own workspace id)
    """

    def __init__(self, client: WebClient, tenant_id: Optional[str] = None):
        self._client = client
        self._tenant_id = tenant_id
        self._log = logger.bind(component="slack_roster_source")

    def list_members(
        self, scope_id: str, cursor: Optional[str] = None, limit: int = 200
    ) -> OperationResult:
        try:
            if scope_id == TENANT_SCOPE:
                return self._list_workspace_users(cursor, limit)
            return self._list_usergroup_users(scope_id)
        except SlackApiError as e:
            self._log.warning("slack_roster_error", scope_id=scope_id, error=str(e))
            return classify_slack_error(e)

    def _list_workspace_users(
        self, cursor: Optional[str], limit: int
    ) -> OperationResult:
        response = self._client.users_list(cursor=cursor, limit=limit)
        if not response.get("ok"):
            error = response.get("error", "unknown_error")
            return OperationResult.permanent_error(
                f"Failed to get users list: {error}",
                error_code=f"SLACK_{error.upper()}",
            )

        members: List[RecipientDescriptor] = []
        for user in response.get("members", []):
            if user.get("deleted") or user.get("is_bot"):
                continue
            if user.get("id") == SLACKBOT_USER_ID:
                continue
            members.append(
                RecipientDescriptor(
                    conversation_ref=user["id"],
                    kind=RecipientKind.USER,
                    display_name=user.get("real_name") or user.get("name"),
                    tenant_id=user.get("team_id") or self._tenant_id,
                )
            )

        next_cursor = (response.get("response_metadata") or {}).get("next_cursor")
        return OperationResult.success(
            data={"members": members, "next_cursor": next_cursor or None}
        )

    def _list_usergroup_users(self, usergroup_id: str) -> OperationResult:
        # usergroups.users.list is not paginated; one page holds every member
        response = self._client.usergroups_users_list(usergroup=usergroup_id)
        if not response.get("ok"):
            error = response.get("error", "unknown_error")
            return OperationResult.permanent_error(
                f"Failed to list members of {usergroup_id}: {error}",
                error_code=f"SLACK_{error.upper()}",
            )
        members = [
            RecipientDescriptor(
                conversation_ref=user_id,
                kind=RecipientKind.USER,
                team_id=usergroup_id,
                tenant_id=self._tenant_id,
            )
            for user_id in response.get("users", [])
        ]
        return OperationResult.success(data={"members": members, "next_cursor": None})
