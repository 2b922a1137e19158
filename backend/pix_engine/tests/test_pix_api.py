"""Testes das rotas HTTP de políticas e PIX Automático.

Os serviços são substituídos via ``dependency_overrides``; a sessão do banco
é um ``AsyncMock`` que nunca é consultado diretamente.
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from pix_engine.config import get_settings
from pix_engine.db.base import get_db
from pix_engine.db.models.partner_policy import PartnerPolicyOverride
from pix_engine.db.models.pix_pricing_plan import PixPricingPlan
from pix_engine.main import app
from pix_engine.services.partner_policy_service import (
    EffectivePolicyView,
    PolicyOverrideNotFoundError,
    get_partner_policy_service,
)
from pix_engine.services.pix.errors import ConfigurationError, InconsistentPlanError, InvalidAmountError
from pix_engine.services.pix.policy_resolver import PlanValidationResult
from pix_engine.services.pix.types import (
    CredentialSelection,
    FeeBreakdown,
    POLICY_FIELDS,
    ResolvedRoute,
    RouteContext,
    RouteNotFound,
)
from pix_engine.services.pix_catalog_service import CatalogRecordNotFoundError, get_pix_catalog_service
from pix_engine.services.pix_credential_service import get_pix_credential_service
from pix_engine.services.pix_routing_service import PixQuote, get_pix_routing_service
from pix_engine.tests.factories import make_global_policy
from pix_engine.tests.http_test_client import make_sync_asgi_client

PARTNER_ID = uuid.UUID("6f1c7c5e-0000-4000-8000-000000000001")
PLAN_ID = uuid.UUID("00000000-0000-4000-8000-0000000000a1")
PROVIDER_ID = uuid.UUID("00000000-0000-4000-8000-0000000000b1")

FEE_90 = FeeBreakdown(
    merchant_fee_cents=90,
    platform_subsidy_cents=0,
    total_fee_cents=90,
    raw_fee_cents=Decimal("89.55"),
    source="pricing_plan",
)
TENANT_ROUTE = ResolvedRoute(
    rule_id="rule-tenant",
    scope="tenant",
    priority=5,
    provider_id=str(PROVIDER_ID),
    pricing_plan_id=str(PLAN_ID),
)


@pytest.fixture
def services():
    fakes = {
        "policy": MagicMock(),
        "routing": MagicMock(),
        "catalog": MagicMock(),
        "credentials": MagicMock(),
    }

    async def _fake_db():
        yield AsyncMock()

    app.dependency_overrides[get_db] = _fake_db
    app.dependency_overrides[get_partner_policy_service] = lambda: fakes["policy"]
    app.dependency_overrides[get_pix_routing_service] = lambda: fakes["routing"]
    app.dependency_overrides[get_pix_catalog_service] = lambda: fakes["catalog"]
    app.dependency_overrides[get_pix_credential_service] = lambda: fakes["credentials"]
    yield fakes
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    return make_sync_asgi_client(app)


def _override_row(**values):
    row = PartnerPolicyOverride(id=uuid.uuid4(), partner_id=PARTNER_ID, notes=None)
    for name in POLICY_FIELDS:
        setattr(row, name, values.get(name))
    return row


# =====================================================
# Políticas de parceiros
# =====================================================


class TestEffectivePolicyApi:
    def test_effective_policy(self, services, client):
        services["policy"].get_effective_policy = AsyncMock(
            return_value=EffectivePolicyView(
                partner_id=PARTNER_ID,
                policy=make_global_policy(allow_free_plan=True),
                overridden_fields=["allow_free_plan"],
                has_override=True,
            )
        )

        resp = client.get(f"/api/v1/partners/{PARTNER_ID}/effective-policy")

        assert resp.status_code == 200
        payload = resp.json()
        assert payload["policy"]["allow_free_plan"] is True
        assert payload["overridden_fields"] == ["allow_free_plan"]
        assert payload["has_override"] is True

    def test_missing_global_policy_is_503(self, services, client):
        services["policy"].get_effective_policy = AsyncMock(
            side_effect=ConfigurationError("Política global de parceiros não configurada")
        )

        resp = client.get(f"/api/v1/partners/{PARTNER_ID}/effective-policy")

        assert resp.status_code == 503

    def test_plan_validation(self, services, client):
        services["policy"].validate_plan = AsyncMock(
            return_value=PlanValidationResult(valid=False, errors=["Plano gratuito não permitido"])
        )

        resp = client.post(
            f"/api/v1/admin/partners/{PARTNER_ID}/plan-validation",
            json={"monthly_price": "0", "is_free": True, "existing_plans": 2},
        )

        assert resp.status_code == 200
        assert resp.json() == {"valid": False, "errors": ["Plano gratuito não permitido"]}
        draft = services["policy"].validate_plan.await_args.args[2]
        assert draft.is_free is True
        assert services["policy"].validate_plan.await_args.args[3] == 2
        assert services["policy"].validate_plan.await_args.kwargs["pricing_plan_id"] is None

    def test_plan_validation_forwards_pricing_plan(self, services, client):
        services["policy"].validate_plan = AsyncMock(
            return_value=PlanValidationResult(
                valid=False,
                errors=["Taxa percentual 6.99% acima do máximo de 5%"],
            )
        )

        resp = client.post(
            f"/api/v1/admin/partners/{PARTNER_ID}/plan-validation",
            json={"monthly_price": "99.90", "pricing_plan_id": str(PLAN_ID)},
        )

        assert resp.status_code == 200
        assert resp.json()["valid"] is False
        assert services["policy"].validate_plan.await_args.kwargs["pricing_plan_id"] == PLAN_ID

    def test_plan_validation_unknown_pricing_plan_is_404(self, services, client):
        services["policy"].validate_plan = AsyncMock(side_effect=CatalogRecordNotFoundError("x"))

        resp = client.post(
            f"/api/v1/admin/partners/{PARTNER_ID}/plan-validation",
            json={"monthly_price": "99.90", "pricing_plan_id": str(PLAN_ID)},
        )

        assert resp.status_code == 404


class TestPolicyAdminApi:
    def test_save_override_returns_overridden_fields(self, services, client):
        services["policy"].save_override = AsyncMock(return_value=_override_row(max_trial_days=0))

        resp = client.put(
            f"/api/v1/admin/partners/{PARTNER_ID}/policy-override",
            json={"max_trial_days": 0, "notes": "  "},
        )

        assert resp.status_code == 200
        payload = resp.json()
        assert payload["max_trial_days"] == 0
        assert payload["allow_free_plan"] is None
        assert payload["overridden_fields"] == ["max_trial_days"]
        _, _, values = services["policy"].save_override.await_args.args
        assert "notes" not in values
        assert services["policy"].save_override.await_args.kwargs["notes"] is None

    def test_get_missing_override_is_404(self, services, client):
        services["policy"].get_override_row = AsyncMock(return_value=None)

        resp = client.get(f"/api/v1/admin/partners/{PARTNER_ID}/policy-override")

        assert resp.status_code == 404

    def test_delete_override(self, services, client):
        services["policy"].delete_override = AsyncMock(return_value=None)

        resp = client.delete(f"/api/v1/admin/partners/{PARTNER_ID}/policy-override")

        assert resp.status_code == 204

    def test_delete_missing_override_is_404(self, services, client):
        services["policy"].delete_override = AsyncMock(side_effect=PolicyOverrideNotFoundError("x"))

        resp = client.delete(f"/api/v1/admin/partners/{PARTNER_ID}/policy-override")

        assert resp.status_code == 404

    def test_cycle_numeric_field_is_422(self, services, client):
        services["policy"].cycle_field = AsyncMock(side_effect=ValueError("Campo 'max_plans' não é booleano"))

        resp = client.post(f"/api/v1/admin/partners/{PARTNER_ID}/policy-override/max_plans/cycle")

        assert resp.status_code == 422

    def test_global_policy_schema_rejects_out_of_range(self, services, client):
        body = {
            "allow_free_plan": False,
            "allow_partner_gateway": False,
            "allow_offline_billing": False,
            "billing_owner": "platform",
            "max_plans": 5,
            "min_paid_price": "49.90",
            "max_modules_per_plan": 10,
            "max_features_per_plan": 20,
            "max_trial_days": 30,
            "tx_fee_max_percent": "150",
            "tx_fee_max_fixed_cents": 500,
        }

        resp = client.put("/api/v1/admin/partner-policy/global", json=body)

        assert resp.status_code == 422

    def test_admin_token_required_when_configured(self, services, client, monkeypatch):
        monkeypatch.setattr(get_settings(), "admin_api_token", "segredo")
        services["policy"].get_override_row = AsyncMock(return_value=_override_row())

        denied = client.get(f"/api/v1/admin/partners/{PARTNER_ID}/policy-override")
        allowed = client.get(
            f"/api/v1/admin/partners/{PARTNER_ID}/policy-override",
            headers={"X-Admin-Token": "segredo"},
        )

        assert denied.status_code == 401
        assert allowed.status_code == 200


# =====================================================
# Checkout PIX
# =====================================================


class TestRoutingApi:
    def test_route_resolved(self, services, client):
        services["routing"].resolve_route = AsyncMock(return_value=TENANT_ROUTE)

        resp = client.get("/api/v1/pix/route", params={"tenant_id": "tenant-t", "partner_id": "p-1"})

        assert resp.status_code == 200
        payload = resp.json()
        assert payload["available"] is True
        assert payload["rule_id"] == "rule-tenant"
        ctx = services["routing"].resolve_route.await_args.args[1]
        assert ctx == RouteContext(tenant_id="tenant-t", partner_id="p-1")

    def test_route_not_found_is_200_unavailable(self, services, client):
        services["routing"].resolve_route = AsyncMock(return_value=RouteNotFound(tenant_id="tenant-x"))

        resp = client.get("/api/v1/pix/route", params={"tenant_id": "tenant-x"})

        assert resp.status_code == 200
        assert resp.json()["available"] is False
        assert resp.json()["reason"] == "no_matching_rule"

    def test_route_requires_tenant(self, services, client):
        resp = client.get("/api/v1/pix/route")
        assert resp.status_code == 422

    def test_route_options(self, services, client):
        services["routing"].resolve_options = AsyncMock(return_value=[TENANT_ROUTE])

        resp = client.get("/api/v1/pix/route/options", params={"tenant_id": "tenant-t"})

        assert resp.status_code == 200
        assert [o["rule_id"] for o in resp.json()["options"]] == ["rule-tenant"]

    def test_fee(self, services, client):
        services["routing"].compute_fee = AsyncMock(return_value=FEE_90)

        resp = client.post(
            "/api/v1/pix/fees",
            json={"pricing_plan_id": str(PLAN_ID), "amount_cents": 4500},
        )

        assert resp.status_code == 200
        assert resp.json()["total_fee_cents"] == 90

    def test_fee_requires_single_reference(self, services, client):
        resp = client.post("/api/v1/pix/fees", json={"amount_cents": 4500})
        assert resp.status_code == 422

    def test_fee_invalid_amount_is_422(self, services, client):
        services["routing"].compute_fee = AsyncMock(side_effect=InvalidAmountError("negativo"))

        resp = client.post(
            "/api/v1/pix/fees",
            json={"pricing_plan_id": str(PLAN_ID), "amount_cents": -1},
        )

        assert resp.status_code == 422

    def test_fee_unknown_plan_is_404(self, services, client):
        services["routing"].compute_fee = AsyncMock(side_effect=ConfigurationError("Plano não encontrado"))

        resp = client.post(
            "/api/v1/pix/fees",
            json={"pricing_plan_id": str(PLAN_ID), "amount_cents": 4500},
        )

        assert resp.status_code == 404

    def test_quote(self, services, client):
        services["routing"].quote = AsyncMock(
            return_value=PixQuote(
                route=TENANT_ROUTE,
                fee=FEE_90,
                credential=CredentialSelection(source="none"),
            )
        )

        resp = client.post("/api/v1/pix/quote", json={"tenant_id": "tenant-t", "amount_cents": 4500})

        assert resp.status_code == 200
        payload = resp.json()
        assert payload["available"] is True
        assert payload["fee"]["total_fee_cents"] == 90
        assert payload["credential_source"] == "none"
        assert payload["connection_status"] is None

    def test_quote_unavailable(self, services, client):
        services["routing"].quote = AsyncMock(return_value=PixQuote(route=RouteNotFound(tenant_id="t")))

        resp = client.post("/api/v1/pix/quote", json={"tenant_id": "t", "amount_cents": 4500})

        assert resp.status_code == 200
        assert resp.json()["available"] is False
        assert resp.json()["fee"] is None

    def test_simulate_uses_defaults(self, services, client):
        services["routing"].simulate = AsyncMock(return_value=[])

        resp = client.post("/api/v1/pix/simulate", json={})

        assert resp.status_code == 200
        assert resp.json()["ticket_cents"] == 4500
        services["routing"].simulate.assert_awaited_once()
        assert services["routing"].simulate.await_args.args[1:] == (4500, 500)


# =====================================================
# Administração do catálogo
# =====================================================


class TestCatalogAdminApi:
    def test_create_inconsistent_plan_is_422(self, services, client):
        services["catalog"].create_plan = AsyncMock(side_effect=InconsistentPlanError("min_fee > max_fee"))

        resp = client.post(
            "/api/v1/admin/pix/pricing-plans",
            json={"name": "Ruim", "slug": "ruim", "min_fee": "2", "max_fee": "1"},
        )

        assert resp.status_code == 422

    def test_plan_slug_with_spaces_is_rejected(self, services, client):
        resp = client.post(
            "/api/v1/admin/pix/pricing-plans",
            json={"name": "Plano", "slug": "plano com espaco"},
        )
        assert resp.status_code == 422

    @pytest.mark.parametrize("field", ["min_fee", "percent_rate", "name", "is_active"])
    def test_patch_plan_rejects_null_on_required_field(self, services, client, field):
        services["catalog"].update_plan = AsyncMock()

        resp = client.patch(f"/api/v1/admin/pix/pricing-plans/{PLAN_ID}", json={field: None})

        assert resp.status_code == 422
        services["catalog"].update_plan.assert_not_awaited()

    def test_patch_plan_clears_max_fee(self, services, client):
        row = PixPricingPlan(
            id=PLAN_ID,
            name="PIX Padrão",
            slug="pix-padrao",
            pricing_type="percentual",
            percent_rate=Decimal("0.0199"),
            fixed_rate=Decimal("0"),
            min_fee=Decimal("0.01"),
            max_fee=None,
            is_subsidized=False,
            is_active=True,
            display_order=0,
        )
        services["catalog"].update_plan = AsyncMock(return_value=row)

        resp = client.patch(f"/api/v1/admin/pix/pricing-plans/{PLAN_ID}", json={"max_fee": None})

        assert resp.status_code == 200
        assert resp.json()["max_fee"] is None
        assert services["catalog"].update_plan.await_args.args[2] == {"max_fee": None}

    def test_patch_plan_service_value_error_is_422(self, services, client):
        services["catalog"].update_plan = AsyncMock(side_effect=ValueError("Campos não aceitam null: min_fee"))

        resp = client.patch(f"/api/v1/admin/pix/pricing-plans/{PLAN_ID}", json={"min_fee": "0.02"})

        assert resp.status_code == 422

    def test_patch_provider_rejects_null_fee(self, services, client):
        services["catalog"].update_provider = AsyncMock()

        resp = client.patch(f"/api/v1/admin/pix/providers/{PROVIDER_ID}", json={"default_percent_fee": None})

        assert resp.status_code == 422
        services["catalog"].update_provider.assert_not_awaited()

    def test_patch_rule_rejects_null_priority(self, services, client):
        services["catalog"].update_rule = AsyncMock()

        resp = client.patch(f"/api/v1/admin/pix/rules/{uuid.uuid4()}", json={"priority": None})

        assert resp.status_code == 422
        services["catalog"].update_rule.assert_not_awaited()

    def test_patch_rule_accepts_null_plan_reference(self, services, client):
        rule_id = uuid.uuid4()
        row = MagicMock(
            id=rule_id,
            scope="tenant",
            scope_id="tenant-t",
            psp_provider_id=PROVIDER_ID,
            pricing_plan_id=None,
            priority=5,
            is_enabled=True,
            notes=None,
            created_at=None,
        )
        services["catalog"].update_rule = AsyncMock(return_value=row)

        resp = client.patch(f"/api/v1/admin/pix/rules/{rule_id}", json={"pricing_plan_id": None})

        assert resp.status_code == 200
        assert resp.json()["pricing_plan_id"] is None

    def test_delete_plan_reports_disabled_rules(self, services, client):
        services["catalog"].delete_plan = AsyncMock(return_value=3)

        resp = client.delete(f"/api/v1/admin/pix/pricing-plans/{PLAN_ID}")

        assert resp.status_code == 200
        assert resp.json() == {"id": str(PLAN_ID), "rules_disabled": 3}

    def test_delete_missing_plan_is_404(self, services, client):
        services["catalog"].delete_plan = AsyncMock(side_effect=CatalogRecordNotFoundError("x"))

        resp = client.delete(f"/api/v1/admin/pix/pricing-plans/{PLAN_ID}")

        assert resp.status_code == 404

    def test_create_rule_requires_scope_id(self, services, client):
        resp = client.post(
            "/api/v1/admin/pix/rules",
            json={"scope": "tenant", "psp_provider_id": str(PROVIDER_ID)},
        )
        assert resp.status_code == 422

    def test_create_rule_with_dangling_reference_is_422(self, services, client):
        services["catalog"].create_rule = AsyncMock(side_effect=ConfigurationError("PSP não existe"))

        resp = client.post(
            "/api/v1/admin/pix/rules",
            json={"scope": "global", "psp_provider_id": str(PROVIDER_ID)},
        )

        assert resp.status_code == 422

    def test_credential_response_hides_secrets(self, services, client):
        row = MagicMock(
            id=uuid.uuid4(),
            scope="tenant",
            scope_id="tenant-t",
            psp_provider_id=PROVIDER_ID,
            connection_status="connected",
            use_platform_credentials=False,
            api_key="chave-secreta",
            webhook_secret=None,
        )
        services["credentials"].upsert = AsyncMock(return_value=row)

        resp = client.put(
            "/api/v1/admin/pix/credentials",
            json={
                "scope": "tenant",
                "scope_id": "tenant-t",
                "psp_provider_id": str(PROVIDER_ID),
                "api_key": "chave-secreta",
                "connection_status": "connected",
            },
        )

        assert resp.status_code == 200
        payload = resp.json()
        assert payload["has_api_key"] is True
        assert payload["has_webhook_secret"] is False
        assert "chave-secreta" not in resp.text
