"""Recipient resolution.

Expands an AudienceSpec into the concrete, deduplicated set of recipients
a notification is delivered to.
"""

from typing import Iterator, List, Optional, Set

from infrastructure.logging import get_module_logger
from infrastructure.operations.result import OperationResult
from modules.notifications.core.filters import TenantFilter
from modules.notifications.core.ports import TENANT_SCOPE, RosterSource
from modules.notifications.domain.errors import (
    ResolutionError,
    RosterUnavailableError,
)
from modules.notifications.domain.models import (
    AudienceSpec,
    RecipientDescriptor,
    RecipientKind,
)

logger = get_module_logger()


class ResolvedAudience:
    """Lazy, finite, restartable sequence of recipients.

    Every iteration walks the roster again from the first page, so the
    sequence is never held in memory as a whole and can be re-read after a
    failure. Descriptors are deduplicated by ``conversation_ref`` within an
    iteration, direct users first, then channels, team members and finally
    the tenant roster.

    Iterating raises ResolutionError if the roster cannot be read.
    """

    def __init__(
        self,
        audience: AudienceSpec,
        roster: RosterSource,
        tenant_filter: TenantFilter,
        page_size: int,
    ):
        self.audience = audience
        self._roster = roster
        self._tenant_filter = tenant_filter
        self._page_size = page_size

    def __iter__(self) -> Iterator[RecipientDescriptor]:
        seen: Set[str] = set()
        dropped = 0
        for descriptor in self._candidates():
            if descriptor.conversation_ref in seen:
                continue
            seen.add(descriptor.conversation_ref)
            tenant_id = descriptor.tenant_id or self.audience.tenant_id
            if not self._tenant_filter.is_allowed(tenant_id):
                dropped += 1
                continue
            if descriptor.tenant_id is None and tenant_id is not None:
                descriptor = descriptor.model_copy(update={"tenant_id": tenant_id})
            yield descriptor
        if dropped:
            logger.info(
                "recipients_dropped_by_tenant_filter",
                dropped=dropped,
                tenant_id=self.audience.tenant_id,
            )

    def _candidates(self) -> Iterator[RecipientDescriptor]:
        audience = self.audience
        for user_id in audience.users:
            yield RecipientDescriptor(
                conversation_ref=user_id,
                kind=RecipientKind.USER,
                tenant_id=audience.tenant_id,
            )
        for channel_id in audience.channels:
            yield RecipientDescriptor(
                conversation_ref=channel_id,
                kind=RecipientKind.CHANNEL,
                tenant_id=audience.tenant_id,
            )
        for team_id in audience.teams:
            if audience.team_conversations:
                yield RecipientDescriptor(
                    conversation_ref=team_id,
                    kind=RecipientKind.TEAM,
                    team_id=team_id,
                    tenant_id=audience.tenant_id,
                )
                continue
            for member in self._walk_roster(team_id):
                if member.team_id is None:
                    member = member.model_copy(update={"team_id": team_id})
                yield member
        if audience.all_users:
            yield from self._walk_roster(TENANT_SCOPE)

    def _walk_roster(self, scope_id: str) -> Iterator[RecipientDescriptor]:
        cursor: Optional[str] = None
        pages = 0
        while True:
            page = self._fetch_page(scope_id, cursor)
            pages += 1
            data = page.data or {}
            for member in data.get("members", []):
                yield member
            cursor = data.get("next_cursor")
            if not cursor:
                break
        logger.debug("roster_scope_walked", scope_id=scope_id, pages=pages)

    def _fetch_page(self, scope_id: str, cursor: Optional[str]) -> OperationResult:
        try:
            page = self._roster.list_members(
                scope_id, cursor=cursor, limit=self._page_size
            )
        except RosterUnavailableError as e:
            logger.warning("roster_unavailable", scope_id=scope_id, error=str(e))
            raise ResolutionError(
                f"Roster unavailable for scope {scope_id}: {e}"
            ) from e
        if not page.is_success:
            logger.warning(
                "roster_page_failed",
                scope_id=scope_id,
                status=page.status.value,
                error_code=page.error_code,
                message=page.message,
            )
            raise ResolutionError(
                f"Failed to list members for scope {scope_id}: {page.message}",
                response=page,
            )
        return page


class RecipientResolver:
    """Expands audiences into ResolvedAudience sequences.

    Args:
        roster: Source of team and tenant membership
        tenant_filter: Gate dropping recipients of disallowed tenants
        page_size: Members requested per roster page
    """

    def __init__(
        self,
        roster: RosterSource,
        tenant_filter: TenantFilter,
        page_size: int = 200,
    ):
        self._roster = roster
        self._tenant_filter = tenant_filter
        self._page_size = page_size

    def resolve(self, audience: AudienceSpec) -> ResolvedAudience:
        """Return the lazy recipient sequence for ``audience``.

        No roster call happens until the result is iterated.
        """
        return ResolvedAudience(
            audience, self._roster, self._tenant_filter, self._page_size
        )

    def resolve_all(self, audience: AudienceSpec) -> List[RecipientDescriptor]:
        """Materialize the full recipient list (raises ResolutionError)."""
        return list(self.resolve(audience))
