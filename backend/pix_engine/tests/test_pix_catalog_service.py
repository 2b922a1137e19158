"""Testes do PixCatalogService (planos, PSPs e regras) com sessão fake."""

from __future__ import annotations

import asyncio
import uuid
from decimal import Decimal

import pytest

from pix_engine.db.models.pix_availability_rule import PixAvailabilityRule
from pix_engine.db.models.pix_pricing_plan import PixPricingPlan
from pix_engine.db.models.pix_psp_provider import PixPspProvider
from pix_engine.services.pix.errors import ConfigurationError, InconsistentPlanError
from pix_engine.services.pix_catalog_service import (
    CatalogRecordNotFoundError,
    PixCatalogService,
)
from pix_engine.tests.factories import make_session, scalar_result, scalars_result

PLAN_ID = uuid.UUID("00000000-0000-4000-8000-0000000000a1")
PROVIDER_ID = uuid.UUID("00000000-0000-4000-8000-0000000000b1")


def _plan_row(**overrides):
    values = {
        "id": PLAN_ID,
        "name": "PIX Padrão",
        "slug": "pix-padrao",
        "pricing_type": "percentual",
        "percent_rate": Decimal("0.0199"),
        "fixed_rate": Decimal("0"),
        "min_fee": Decimal("0.01"),
        "max_fee": None,
        "is_subsidized": False,
        "subsidy_percent": None,
        "is_active": True,
        "display_order": 0,
    }
    values.update(overrides)
    return PixPricingPlan(**values)


def _rule_row(scope="tenant", scope_id="tenant-t", **overrides):
    values = {
        "id": uuid.uuid4(),
        "scope": scope,
        "scope_id": scope_id,
        "psp_provider_id": None,
        "pricing_plan_id": PLAN_ID,
        "priority": 5,
        "is_enabled": True,
        "notes": None,
    }
    values.update(overrides)
    return PixAvailabilityRule(**values)


class TestPricingPlans:
    def test_create_plan_applies_defaults(self):
        service = PixCatalogService()
        db = make_session()

        plan = asyncio.run(
            service.create_plan(
                db,
                {"name": "Pro", "slug": "pro", "percent_rate": Decimal("0.015"), "min_fee": Decimal("0.05")},
            )
        )

        assert plan.pricing_type == "percentual"
        assert plan.fixed_rate == Decimal("0")
        assert plan.is_active is True
        db.add.assert_called_once_with(plan)
        db.commit.assert_awaited_once()

    def test_create_inconsistent_plan_is_rejected(self):
        service = PixCatalogService()
        db = make_session()

        with pytest.raises(InconsistentPlanError):
            asyncio.run(
                service.create_plan(
                    db,
                    {"name": "Ruim", "slug": "ruim", "min_fee": Decimal("2"), "max_fee": Decimal("1")},
                )
            )
        db.add.assert_not_called()

    def test_update_plan_revalidates(self):
        service = PixCatalogService()
        db = make_session(scalar_result(_plan_row()))

        with pytest.raises(InconsistentPlanError):
            asyncio.run(service.update_plan(db, PLAN_ID, {"fixed_rate": Decimal("0.10")}))
        db.commit.assert_not_awaited()

    @pytest.mark.parametrize("field", ["min_fee", "percent_rate", "fixed_rate", "name", "display_order"])
    def test_update_plan_rejects_null_on_required_field(self, field):
        service = PixCatalogService()
        db = make_session(scalar_result(_plan_row()))

        with pytest.raises(ValueError, match=field):
            asyncio.run(service.update_plan(db, PLAN_ID, {field: None}))
        db.execute.assert_not_awaited()
        db.commit.assert_not_awaited()

    def test_update_plan_clears_max_fee(self):
        service = PixCatalogService()
        plan = _plan_row(max_fee=Decimal("5.00"))
        db = make_session(scalar_result(plan))

        asyncio.run(service.update_plan(db, PLAN_ID, {"max_fee": None, "description": None}))

        assert plan.max_fee is None
        db.commit.assert_awaited_once()

    def test_get_missing_plan(self):
        service = PixCatalogService()
        db = make_session(scalar_result(None))

        with pytest.raises(CatalogRecordNotFoundError):
            asyncio.run(service.get_plan(db, PLAN_ID))

    def test_delete_plan_disables_dependent_rules(self):
        service = PixCatalogService()
        plan = _plan_row()
        enabled = _rule_row(notes="criada pelo comercial")
        already_disabled = _rule_row(scope="partner", scope_id="p-1", is_enabled=False)
        db = make_session(
            scalar_result(plan),
            scalars_result([enabled, already_disabled]),
            scalar_result(0),
        )

        disabled = asyncio.run(service.delete_plan(db, PLAN_ID))

        assert disabled == 2
        for rule in (enabled, already_disabled):
            assert rule.is_enabled is False
            assert rule.pricing_plan_id is None
            assert "plano 'pix-padrao' removido" in rule.notes
        assert enabled.notes.startswith("criada pelo comercial\n")
        db.delete.assert_awaited_once_with(plan)
        # Só o escopo antes habilitado é conferido quanto a cobertura.
        assert db.execute.await_count == 3


class TestProviders:
    def test_update_provider_rejects_invalid_rate(self):
        service = PixCatalogService()
        provider = PixPspProvider(
            id=PROVIDER_ID,
            name="asaas",
            default_percent_fee=Decimal("0.0099"),
            default_fixed_fee=Decimal("0"),
        )
        db = make_session(scalar_result(provider))

        with pytest.raises(ValueError):
            asyncio.run(service.update_provider(db, PROVIDER_ID, {"default_percent_fee": Decimal("2")}))

    def test_update_provider_rejects_null_fee(self):
        service = PixCatalogService()
        db = make_session()

        with pytest.raises(ValueError, match="default_percent_fee"):
            asyncio.run(service.update_provider(db, PROVIDER_ID, {"default_percent_fee": None}))
        db.commit.assert_not_awaited()

    def test_update_provider_ignores_name_changes(self):
        service = PixCatalogService()
        provider = PixPspProvider(
            id=PROVIDER_ID,
            name="asaas",
            default_percent_fee=Decimal("0.0099"),
            default_fixed_fee=Decimal("0"),
            is_active=True,
        )
        db = make_session(scalar_result(provider))

        asyncio.run(service.update_provider(db, PROVIDER_ID, {"name": "outro", "is_active": False}))

        assert provider.name == "asaas"
        assert provider.is_active is False


class TestRules:
    def test_create_rule_uses_scope_default_priority(self):
        service = PixCatalogService()
        db = make_session(scalar_result(PROVIDER_ID))

        rule = asyncio.run(
            service.create_rule(
                db,
                {"scope": "partner", "scope_id": "p-1", "psp_provider_id": PROVIDER_ID},
            )
        )

        assert rule.priority == 4
        assert rule.is_enabled is True

    def test_create_rule_keeps_explicit_priority(self):
        service = PixCatalogService()
        db = make_session(scalar_result(PLAN_ID))

        rule = asyncio.run(
            service.create_rule(db, {"scope": "global", "pricing_plan_id": PLAN_ID, "priority": 42})
        )

        assert rule.priority == 42
        assert rule.scope_id is None

    def test_create_rule_with_unknown_provider(self):
        service = PixCatalogService()
        db = make_session(scalar_result(None))

        with pytest.raises(ConfigurationError):
            asyncio.run(
                service.create_rule(db, {"scope": "tenant", "scope_id": "t-1", "psp_provider_id": PROVIDER_ID})
            )
        db.add.assert_not_called()

    @pytest.mark.parametrize(
        "values",
        [
            {"scope": "regional", "scope_id": "sp", "psp_provider_id": PROVIDER_ID},
            {"scope": "tenant", "psp_provider_id": PROVIDER_ID},
            {"scope": "global"},
        ],
    )
    def test_create_rule_validation(self, values):
        service = PixCatalogService()
        with pytest.raises(ValueError):
            asyncio.run(service.create_rule(make_session(), values))

    def test_disabling_last_rule_of_scope_still_saves(self):
        service = PixCatalogService()
        rule = _rule_row()
        db = make_session(scalar_result(rule), scalar_result(0))

        updated = asyncio.run(service.update_rule(db, rule.id, {"is_enabled": False}))

        assert updated.is_enabled is False
        db.commit.assert_awaited_once()
        assert db.execute.await_count == 2

    def test_update_rule_rejects_null_priority(self):
        service = PixCatalogService()
        db = make_session()

        with pytest.raises(ValueError, match="priority"):
            asyncio.run(service.update_rule(db, uuid.uuid4(), {"priority": None, "notes": None}))
        db.commit.assert_not_awaited()

    def test_delete_rule(self):
        service = PixCatalogService()
        rule = _rule_row(is_enabled=False)
        db = make_session(scalar_result(rule))

        asyncio.run(service.delete_rule(db, rule.id))

        db.delete.assert_awaited_once_with(rule)
        assert db.execute.await_count == 1
