"""Unit tests for recipient resolution."""

import pytest

from modules.notifications.core.filters import TenantFilter
from modules.notifications.core.resolver import RecipientResolver
from modules.notifications.domain.errors import ResolutionError
from modules.notifications.domain.models import AudienceSpec, RecipientKind

pytestmark = pytest.mark.unit


def refs(recipients):
    return [r.conversation_ref for r in recipients]


class TestRecipientResolver:
    """Tests for RecipientResolver.resolve()."""

    def test_users_channels_then_team_members(self, fake_roster_factory):
        roster = fake_roster_factory(scopes={"S1": ["U7", "U8"]})
        resolver = RecipientResolver(roster, TenantFilter.allow_all())

        recipients = resolver.resolve_all(
            AudienceSpec(users=["U1"], channels=["C1"], teams=["S1"])
        )

        assert refs(recipients) == ["U1", "C1", "U7", "U8"]
        assert recipients[1].kind == RecipientKind.CHANNEL
        assert recipients[2].team_id == "S1"

    def test_recipients_are_deduplicated(self, fake_roster_factory):
        """A user reached directly and through two teams is resolved once."""
        roster = fake_roster_factory(scopes={"S1": ["U1", "U2"], "S2": ["U2", "U3"]})
        resolver = RecipientResolver(roster, TenantFilter.allow_all())

        recipients = resolver.resolve_all(
            AudienceSpec(users=["U1"], teams=["S1", "S2"])
        )

        assert refs(recipients) == ["U1", "U2", "U3"]

    def test_roster_pages_are_walked(self, fake_roster_factory):
        roster = fake_roster_factory(scopes={"*": ["U1", "U2", "U3", "U4", "U5"]})
        resolver = RecipientResolver(roster, TenantFilter.allow_all(), page_size=2)

        recipients = resolver.resolve_all(AudienceSpec(all_users=True))

        assert refs(recipients) == ["U1", "U2", "U3", "U4", "U5"]
        assert [call[1] for call in roster.calls] == [None, "2", "4"]
        assert all(call[2] == 2 for call in roster.calls)

    def test_resolution_is_lazy(self, fake_roster_factory):
        roster = fake_roster_factory(scopes={"S1": ["U1"]})
        resolver = RecipientResolver(roster, TenantFilter.allow_all())

        resolved = resolver.resolve(AudienceSpec(teams=["S1"]))

        assert roster.calls == []
        assert refs(resolved) == ["U1"]

    def test_resolution_is_restartable(self, fake_roster_factory):
        roster = fake_roster_factory(scopes={"S1": ["U1", "U2"]})
        resolver = RecipientResolver(roster, TenantFilter.allow_all())
        resolved = resolver.resolve(AudienceSpec(teams=["S1"], users=["U0"]))

        assert refs(resolved) == refs(resolved) == ["U0", "U1", "U2"]

    def test_team_conversations_are_not_expanded(self, fake_roster_factory):
        roster = fake_roster_factory(scopes={"S1": ["U1"]})
        resolver = RecipientResolver(roster, TenantFilter.allow_all())

        recipients = resolver.resolve_all(
            AudienceSpec(teams=["19:team"], team_conversations=True)
        )

        assert refs(recipients) == ["19:team"]
        assert recipients[0].kind == RecipientKind.TEAM
        assert roster.calls == []

    def test_empty_team_resolves_to_nobody(self, fake_roster_factory):
        roster = fake_roster_factory(scopes={"S1": []})
        resolver = RecipientResolver(roster, TenantFilter.allow_all())

        assert resolver.resolve_all(AudienceSpec(teams=["S1"])) == []

    def test_tenant_filter_drops_other_tenants(self, fake_roster_factory):
        roster = fake_roster_factory(scopes={"S1": ["U1", "U2"]}, tenant_id="T9")
        resolver = RecipientResolver(roster, TenantFilter(allowed_tenants=["T1"]))

        recipients = resolver.resolve_all(
            AudienceSpec(teams=["S1"], users=["U5"], tenant_id="T1")
        )

        assert refs(recipients) == ["U5"]
        assert recipients[0].tenant_id == "T1"

    def test_descriptor_without_tenant_uses_audience_tenant(
        self, fake_roster_factory
    ):
        roster = fake_roster_factory(scopes={"S1": ["U1"]}, tenant_id=None)
        resolver = RecipientResolver(roster, TenantFilter(allowed_tenants=["T1"]))

        recipients = resolver.resolve_all(AudienceSpec(teams=["S1"], tenant_id="T1"))

        assert refs(recipients) == ["U1"]
        assert recipients[0].tenant_id == "T1"

    def test_unknown_tenant_dropped_when_filter_enabled(self, fake_roster_factory):
        roster = fake_roster_factory(tenant_id=None)
        resolver = RecipientResolver(roster, TenantFilter(allowed_tenants=["T1"]))

        assert resolver.resolve_all(AudienceSpec(users=["U1"])) == []

    def test_failed_roster_page_raises(self, fake_roster_factory):
        roster = fake_roster_factory(failing=["S1"])
        resolver = RecipientResolver(roster, TenantFilter.allow_all())

        with pytest.raises(ResolutionError) as exc_info:
            resolver.resolve_all(AudienceSpec(teams=["S1"]))

        assert exc_info.value.response.error_code == "CONNECTION_ERROR"

    def test_unavailable_roster_raises(self, fake_roster_factory):
        roster = fake_roster_factory(unavailable=True)
        resolver = RecipientResolver(roster, TenantFilter.allow_all())

        with pytest.raises(ResolutionError):
            resolver.resolve_all(AudienceSpec(all_users=True))
