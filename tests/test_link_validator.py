"""Tests for the magic link validator (pure decisions, no database)."""
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from app.exceptions import DenialReason, LinkDenied
from app.models.magic_link import LinkScope, MagicLink
from app.services.link_validator import (
    as_utc,
    check_assertions,
    evaluate,
    link_status,
    require_resource,
    require_scope,
    require_tenant_wide,
)

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
TENANT_ID = uuid.uuid4()


def make_link(**overrides) -> MagicLink:
    values = dict(
        id=uuid.uuid4(),
        tenant_id=TENANT_ID,
        client_id=7,
        quotation_id=None,
        token_hash="0" * 64,
        scopes=["view", "pay", "track"],
        expires_at=NOW + timedelta(days=1),
        revoked_at=None,
        max_uses=None,
        use_count=0,
        client_name_snapshot="Youssef",
    )
    values.update(overrides)
    return MagicLink(**values)


# ---------------------------------------------------------------------------
# evaluate
# ---------------------------------------------------------------------------

class TestEvaluate:
    def test_missing_link_is_not_found(self):
        decision = evaluate(None, NOW)
        assert not decision.allowed
        assert decision.reason == DenialReason.NOT_FOUND

    def test_valid_link_is_allowed(self):
        link = make_link()
        decision = evaluate(link, NOW)
        assert decision.allowed
        assert decision.raise_for_denial() is link

    def test_revoked(self):
        decision = evaluate(make_link(revoked_at=NOW - timedelta(hours=1)), NOW)
        assert decision.reason == DenialReason.REVOKED

    def test_expired_at_exact_boundary(self):
        decision = evaluate(make_link(expires_at=NOW), NOW)
        assert decision.reason == DenialReason.EXPIRED

    def test_one_microsecond_before_expiry_is_allowed(self):
        decision = evaluate(make_link(expires_at=NOW + timedelta(microseconds=1)), NOW)
        assert decision.allowed

    def test_exhausted(self):
        decision = evaluate(make_link(max_uses=1, use_count=1), NOW)
        assert decision.reason == DenialReason.EXHAUSTED

    def test_unlimited_uses(self):
        assert evaluate(make_link(max_uses=None, use_count=10_000), NOW).allowed

    def test_revoked_wins_over_expired_and_exhausted(self):
        link = make_link(
            revoked_at=NOW,
            expires_at=NOW - timedelta(days=1),
            max_uses=1,
            use_count=1,
        )
        assert evaluate(link, NOW).reason == DenialReason.REVOKED

    def test_expired_wins_over_exhausted(self):
        link = make_link(expires_at=NOW - timedelta(days=1), max_uses=1, use_count=1)
        assert evaluate(link, NOW).reason == DenialReason.EXPIRED

    def test_naive_expiry_is_read_as_utc(self):
        naive = (NOW + timedelta(hours=1)).replace(tzinfo=None)
        assert evaluate(make_link(expires_at=naive), NOW).allowed

    def test_raise_for_denial_carries_reason_and_link_id(self):
        link = make_link(revoked_at=NOW)
        with pytest.raises(LinkDenied) as exc_info:
            evaluate(link, NOW).raise_for_denial()
        assert exc_info.value.reason == DenialReason.REVOKED
        assert exc_info.value.link_id == link.id


class TestLinkStatus:
    @pytest.mark.parametrize(
        "overrides, expected",
        [
            ({}, "active"),
            ({"revoked_at": NOW}, "revoked"),
            ({"expires_at": NOW - timedelta(seconds=1)}, "expired"),
            ({"max_uses": 2, "use_count": 2}, "exhausted"),
        ],
    )
    def test_status(self, overrides, expected):
        assert link_status(make_link(**overrides), NOW) == expected


def test_as_utc_keeps_aware_values():
    assert as_utc(NOW) is NOW


# ---------------------------------------------------------------------------
# Scope and resource checks
# ---------------------------------------------------------------------------

class TestRequireScope:
    def test_present_scope_passes(self):
        require_scope(make_link(), LinkScope.VIEW)

    def test_scopes_are_independent(self):
        link = make_link(scopes=["create"])
        with pytest.raises(LinkDenied) as exc_info:
            require_scope(link, LinkScope.VIEW)
        assert exc_info.value.reason == DenialReason.INSUFFICIENT_SCOPE

    def test_view_does_not_grant_pay(self):
        with pytest.raises(LinkDenied):
            require_scope(make_link(scopes=["view"]), LinkScope.PAY)


class TestRequireResource:
    def test_tenant_wide_link_reaches_any_quotation(self):
        require_resource(make_link(quotation_id=None), 42)

    def test_bound_link_reaches_its_quotation(self):
        require_resource(make_link(quotation_id=42), 42)

    def test_bound_link_denied_elsewhere(self):
        with pytest.raises(LinkDenied) as exc_info:
            require_resource(make_link(quotation_id=42), 43)
        assert exc_info.value.reason == DenialReason.RESOURCE_MISMATCH

    def test_require_tenant_wide(self):
        require_tenant_wide(make_link(quotation_id=None))
        with pytest.raises(LinkDenied):
            require_tenant_wide(make_link(quotation_id=1))


class TestCheckAssertions:
    def test_no_assertions(self):
        check_assertions(make_link())

    def test_matching_assertions(self):
        check_assertions(make_link(), tenant_id=TENANT_ID, client_id=7)

    def test_foreign_tenant_is_denied(self):
        with pytest.raises(LinkDenied) as exc_info:
            check_assertions(make_link(), tenant_id=uuid.uuid4())
        assert exc_info.value.reason == DenialReason.RESOURCE_MISMATCH

    def test_foreign_client_is_denied(self):
        with pytest.raises(LinkDenied):
            check_assertions(make_link(), client_id=8)
