"""Tests for the client portal (/c/{token}/...) endpoints."""
import logging
import uuid

import pytest
from sqlalchemy import select

from app.main import LINK_DENIED_BODY
from app.models import MagicLink, Payment, Quotation
from app.services import link_tokens


async def _use_count(database, link_id: str) -> int:
    async with database.session_maker() as s:
        link = (await s.execute(
            select(MagicLink).where(MagicLink.id == uuid.UUID(link_id))
        )).scalar_one()
        return link.use_count


# ---------------------------------------------------------------------------
# Link lifecycle scenarios
# ---------------------------------------------------------------------------

class TestLifecycle:
    async def test_max_uses_two_allows_exactly_two(self, api, issue):
        issued = await issue(scopes=["view", "track"], max_uses=2, expires_in_days=1)
        token = issued["raw_token"]

        assert (await api.get(f"/c/{token}/validate")).status_code == 200
        assert (await api.get(f"/c/{token}/validate")).status_code == 200

        third = await api.get(f"/c/{token}/validate")
        assert third.status_code == 403
        assert third.json() == LINK_DENIED_BODY

    async def test_revoked_link_is_denied(self, api, owner_headers, issue, caplog):
        issued = await issue(expires_in_days=365)
        await api.post(f"/magic-links/{issued['link_id']}/revoke", headers=owner_headers)

        with caplog.at_level(logging.WARNING, logger="app.main"):
            response = await api.get(f"/c/{issued['raw_token']}/validate")
        assert response.status_code == 403
        assert response.json() == LINK_DENIED_BODY
        assert "reason=revoked" in caplog.text
        assert issued["raw_token"] not in caplog.text

    async def test_zero_day_link_is_expired_on_first_use(self, api, issue, caplog):
        issued = await issue(expires_in_days=0)
        with caplog.at_level(logging.WARNING, logger="app.main"):
            response = await api.get(f"/c/{issued['raw_token']}/validate")
        assert response.status_code == 403
        assert "reason=expired" in caplog.text

    async def test_never_issued_token_looks_like_revoked(self, api, owner_headers, issue):
        issued = await issue()
        await api.post(f"/magic-links/{issued['link_id']}/revoke", headers=owner_headers)
        revoked = await api.get(f"/c/{issued['raw_token']}/validate")

        unknown_token, _ = link_tokens.generate()
        unknown = await api.get(f"/c/{unknown_token}/validate")

        assert unknown.status_code == revoked.status_code == 403
        assert unknown.content == revoked.content

    async def test_quotation_link_cannot_reach_sibling_quotation(self, api, issue, world, database):
        issued = await issue(quotation_id=world.quotation_id)
        token = issued["raw_token"]

        ok = await api.get(f"/c/{token}/quotations/{world.quotation_id}")
        assert ok.status_code == 200

        sibling = await api.get(f"/c/{token}/quotations/{world.second_quotation_id}")
        assert sibling.status_code == 403
        assert sibling.json() == LINK_DENIED_BODY
        assert await _use_count(database, issued["link_id"]) == 1

    async def test_validate_summary(self, api, issue, world):
        issued = await issue()
        response = await api.get(f"/c/{issued['raw_token']}/validate")
        data = response.json()["data"]
        assert data["tenant_name"] == "Atlas Sourcing"
        assert data["client_name"] == "Youssef"
        assert data["scopes"] == ["view", "pay", "track"]
        assert data["quotation_id"] is None


# ---------------------------------------------------------------------------
# Uniform denial and scope isolation
# ---------------------------------------------------------------------------

class TestUniformDenial:
    async def test_all_denials_share_one_shape(self, api, owner_headers, issue):
        unknown_token, _ = link_tokens.generate()
        revoked = await issue()
        await api.post(f"/magic-links/{revoked['link_id']}/revoke", headers=owner_headers)
        expired = await issue(expires_in_days=0)
        exhausted = await issue(max_uses=1)
        await api.get(f"/c/{exhausted['raw_token']}/validate")
        view_only = await issue(scopes=["view"])

        responses = [
            await api.get(f"/c/{unknown_token}/validate"),
            await api.get(f"/c/{revoked['raw_token']}/validate"),
            await api.get(f"/c/{expired['raw_token']}/validate"),
            await api.get(f"/c/{exhausted['raw_token']}/validate"),
            await api.get(f"/c/{view_only['raw_token']}/payment-methods"),
        ]
        assert {r.status_code for r in responses} == {403}
        assert {r.content for r in responses} == {responses[0].content}

    @pytest.mark.parametrize(
        "method, path",
        [
            ("GET", "/payment-methods"),
            ("GET", "/payments"),
            ("GET", "/shipping"),
            ("POST", "/quotations"),
        ],
    )
    async def test_view_only_link_is_denied_elsewhere(self, api, issue, database, method, path):
        issued = await issue(scopes=["view"])
        body = {
            "product_name": "Widget",
            "destination_country": "Morocco",
            "destination_city": "Rabat",
        }
        response = await api.request(
            method,
            f"/c/{issued['raw_token']}{path}",
            json=body if method == "POST" else None,
        )
        assert response.status_code == 403
        assert response.json() == LINK_DENIED_BODY
        assert await _use_count(database, issued["link_id"]) == 0

    async def test_create_does_not_imply_view(self, api, issue):
        issued = await issue(scopes=["create"])
        response = await api.get(f"/c/{issued['raw_token']}/quotations")
        assert response.status_code == 403

    async def test_oversized_token_is_rejected(self, api):
        response = await api.get(f"/c/{'a' * 300}/validate")
        assert response.status_code == 422


# ---------------------------------------------------------------------------
# Tenant and client isolation
# ---------------------------------------------------------------------------

class TestIsolation:
    async def test_quotations_are_filtered_by_link(self, api, issue):
        issued = await issue()
        response = await api.get(f"/c/{issued['raw_token']}/quotations")
        references = {q["product_name"] for q in response.json()["quotations"]}
        assert references == {"LED panels", "Office chairs"}

    async def test_quotation_link_lists_only_its_quotation(self, api, issue, world):
        issued = await issue(quotation_id=world.quotation_id)
        response = await api.get(f"/c/{issued['raw_token']}/quotations")
        assert [q["id"] for q in response.json()["quotations"]] == [world.quotation_id]

    async def test_other_tenant_quotation_is_not_found(self, api, issue, world):
        issued = await issue()
        response = await api.get(f"/c/{issued['raw_token']}/quotations/{world.other_client_quotation_id}")
        assert response.status_code == 404
        assert "Secret product" not in response.text

    async def test_asserting_other_tenant_is_denied(self, api, issue, world, database):
        issued = await issue()
        response = await api.get(
            f"/c/{issued['raw_token']}/quotations",
            params={"tenant_id": str(world.other_tenant_id)},
        )
        assert response.status_code == 403
        assert "Secret product" not in response.text
        assert await _use_count(database, issued["link_id"]) == 0

    async def test_asserting_own_tenant_is_allowed(self, api, issue, world):
        issued = await issue()
        response = await api.get(
            f"/c/{issued['raw_token']}/quotations",
            params={"tenant_id": str(world.tenant_id), "client_id": world.client_id},
        )
        assert response.status_code == 200

    async def test_payment_methods_are_tenant_scoped(self, api, issue):
        issued = await issue()
        response = await api.get(f"/c/{issued['raw_token']}/payment-methods")
        body = response.json()
        assert [b["bank_name"] for b in body["bank_accounts"]] == ["Atlas Bank"]
        assert [w["network"] for w in body["crypto_wallets"]] == ["TRC20"]


# ---------------------------------------------------------------------------
# Portal operations
# ---------------------------------------------------------------------------

class TestOperations:
    async def test_select_option_and_approve(self, api, issue, world):
        issued = await issue()
        response = await api.patch(
            f"/c/{issued['raw_token']}/quotations/{world.quotation_id}",
            json={"status": "approved", "selected_option": 1},
        )
        assert response.status_code == 200
        quotation = response.json()["quotation"]
        assert quotation["status"] == "approved"
        assert quotation["selected_option"] == 1

    async def test_option_out_of_range(self, api, issue, world, database):
        issued = await issue()
        response = await api.patch(
            f"/c/{issued['raw_token']}/quotations/{world.quotation_id}",
            json={"selected_option": 5},
        )
        assert response.status_code == 400
        assert await _use_count(database, issued["link_id"]) == 0

    async def test_create_quotation(self, api, issue, world, database):
        issued = await issue(scopes=["view", "create"])
        response = await api.post(
            f"/c/{issued['raw_token']}/quotations",
            json={
                "product_name": "Solar panels",
                "quantity": 20,
                "destination_country": "Morocco",
                "destination_city": "Rabat",
                "tenant_id": str(world.tenant_id),
            },
        )
        assert response.status_code == 201
        created = response.json()["quotation"]
        assert created["status"] == "pending"
        assert created["reference"].startswith("QT-")

        async with database.session_maker() as s:
            row = (await s.execute(select(Quotation).where(Quotation.id == created["id"]))).scalar_one()
        assert row.tenant_id == world.tenant_id
        assert row.client_id == world.client_id

    async def test_create_with_foreign_tenant_assertion_writes_nothing(self, api, issue, world, database):
        issued = await issue(scopes=["create"])
        response = await api.post(
            f"/c/{issued['raw_token']}/quotations",
            json={
                "product_name": "Solar panels",
                "destination_country": "Morocco",
                "destination_city": "Rabat",
                "tenant_id": str(world.other_tenant_id),
            },
        )
        assert response.status_code == 403
        async with database.session_maker() as s:
            rows = (await s.execute(select(Quotation).where(Quotation.product_name == "Solar panels"))).all()
        assert rows == []

    async def test_declare_payment(self, api, issue, world, database):
        issued = await issue()
        token = issued["raw_token"]
        response = await api.post(
            f"/c/{token}/payments",
            json={"quotation_id": world.quotation_id, "amount": "600.00", "method": "bank_transfer"},
        )
        assert response.status_code == 201
        payment = response.json()["payment"]
        assert payment["status"] == "pending"
        assert payment["currency"] == "USD"

        listed = await api.get(f"/c/{token}/payments")
        assert [p["id"] for p in listed.json()["payments"]] == [payment["id"]]

        async with database.session_maker() as s:
            row = (await s.execute(select(Payment).where(Payment.id == payment["id"]))).scalar_one()
        assert row.client_id == world.client_id

    async def test_shipping(self, api, issue, world):
        issued = await issue()
        token = issued["raw_token"]
        listed = await api.get(f"/c/{token}/shipping")
        assert {s["id"] for s in listed.json()["shipments"]} == {world.shipment_id, world.second_shipment_id}

        detail = await api.get(f"/c/{token}/shipping/{world.shipment_id}")
        shipment = detail.json()["shipment"]
        assert shipment["tracking_number"] == "MAEU1"
        assert shipment["quotation_reference"] == "QT-2026-0001"

    async def test_quotation_link_cannot_track_sibling_shipment(self, api, issue, world):
        issued = await issue(quotation_id=world.quotation_id)
        response = await api.get(f"/c/{issued['raw_token']}/shipping/{world.second_shipment_id}")
        assert response.status_code == 403

    async def test_single_use_link_serves_one_operation(self, api, issue, world):
        issued = await issue(max_uses=1)
        token = issued["raw_token"]
        assert (await api.get(f"/c/{token}/quotations")).status_code == 200
        assert (await api.get(f"/c/{token}/shipping")).status_code == 403
