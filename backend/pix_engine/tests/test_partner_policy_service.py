"""Testes do PartnerPolicyService com sessão fake."""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import asdict
from decimal import Decimal

import pytest

from pix_engine.db.models.partner_policy import GlobalPartnerPolicy, PartnerPolicyOverride
from pix_engine.db.models.pix_pricing_plan import PixPricingPlan
from pix_engine.services.partner_policy_service import (
    PartnerPolicyService,
    PolicyOverrideNotFoundError,
)
from pix_engine.services.pix.errors import ConfigurationError
from pix_engine.services.pix.policy_resolver import PartnerPlanDraft
from pix_engine.services.pix.types import POLICY_FIELDS
from pix_engine.services.pix_catalog_service import CatalogRecordNotFoundError
from pix_engine.tests.factories import make_global_policy, make_session, scalar_result

PARTNER_ID = uuid.UUID("6f1c7c5e-0000-4000-8000-000000000001")
PLAN_ID = uuid.UUID("00000000-0000-4000-8000-0000000000a1")


def _global_row(**overrides):
    return GlobalPartnerPolicy(id=1, **asdict(make_global_policy(**overrides)))


def _override_row(**values):
    row = PartnerPolicyOverride(id=uuid.uuid4(), partner_id=PARTNER_ID)
    for name in POLICY_FIELDS:
        setattr(row, name, values.get(name))
    return row


def _pricing_plan_row(**overrides):
    values = {
        "id": PLAN_ID,
        "name": "PIX Parceiro",
        "slug": "pix-parceiro",
        "pricing_type": "hibrido",
        "percent_rate": Decimal("0.0199"),
        "fixed_rate": Decimal("0"),
        "min_fee": Decimal("0"),
        "max_fee": None,
        "is_subsidized": False,
        "subsidy_percent": None,
        "is_active": True,
        "display_order": 0,
    }
    values.update(overrides)
    return PixPricingPlan(**values)


class TestEffectivePolicy:
    def test_without_override_returns_global(self):
        service = PartnerPolicyService()
        db = make_session(scalar_result(_global_row(allow_free_plan=False)), scalar_result(None))

        view = asyncio.run(service.get_effective_policy(db, PARTNER_ID))

        assert view.policy.allow_free_plan is False
        assert view.has_override is False
        assert view.overridden_fields == []

    def test_override_applies_field_by_field(self):
        service = PartnerPolicyService()
        db = make_session(
            scalar_result(_global_row(allow_free_plan=False, max_plans=5)),
            scalar_result(_override_row(allow_free_plan=True)),
        )

        view = asyncio.run(service.get_effective_policy(db, PARTNER_ID))

        assert view.policy.allow_free_plan is True
        assert view.policy.max_plans == 5
        assert view.overridden_fields == ["allow_free_plan"]

    def test_missing_global_policy_is_configuration_error(self):
        service = PartnerPolicyService()
        db = make_session(scalar_result(None))

        with pytest.raises(ConfigurationError):
            asyncio.run(service.get_effective_policy(db, PARTNER_ID))

    def test_validate_plan_uses_effective_policy(self):
        service = PartnerPolicyService()
        db = make_session(
            scalar_result(_global_row(allow_free_plan=False)),
            scalar_result(_override_row(allow_free_plan=True)),
        )
        draft = PartnerPlanDraft(monthly_price=Decimal("0"), is_free=True)

        result = asyncio.run(service.validate_plan(db, PARTNER_ID, draft))

        assert result.valid is True

    def test_opens_transaction_with_configured_isolation(self):
        service = PartnerPolicyService()
        db = make_session(scalar_result(_global_row()), scalar_result(None))

        asyncio.run(service.get_effective_policy(db, PARTNER_ID))

        db.connection.assert_awaited_once_with(execution_options={"isolation_level": "REPEATABLE READ"})

    def test_reuses_open_transaction(self):
        service = PartnerPolicyService()
        db = make_session(scalar_result(_global_row()), scalar_result(None), in_transaction=True)

        asyncio.run(service.get_effective_policy(db, PARTNER_ID))

        db.connection.assert_not_awaited()

    def test_validate_plan_reads_policy_in_snapshot(self):
        service = PartnerPolicyService()
        db = make_session(scalar_result(_global_row()), scalar_result(None))
        draft = PartnerPlanDraft(monthly_price=Decimal("99.90"))

        asyncio.run(service.validate_plan(db, PARTNER_ID, draft))

        db.connection.assert_awaited_once()

    def test_validate_plan_checks_fee_caps_of_pricing_plan(self):
        service = PartnerPolicyService()
        db = make_session(
            scalar_result(_global_row(tx_fee_max_percent=Decimal("5"), tx_fee_max_fixed_cents=500)),
            scalar_result(None),
            scalar_result(_pricing_plan_row(percent_rate=Decimal("0.0699"), fixed_rate=Decimal("6.00"))),
        )
        draft = PartnerPlanDraft(monthly_price=Decimal("99.90"))

        result = asyncio.run(service.validate_plan(db, PARTNER_ID, draft, pricing_plan_id=PLAN_ID))

        assert result.valid is False
        assert len(result.errors) == 2
        assert "Taxa percentual 6.99%" in result.errors[0]
        assert "600 centavos" in result.errors[1]

    def test_validate_plan_fee_caps_follow_override(self):
        service = PartnerPolicyService()
        db = make_session(
            scalar_result(_global_row(tx_fee_max_percent=Decimal("5"))),
            scalar_result(_override_row(tx_fee_max_percent=Decimal("8"))),
            scalar_result(_pricing_plan_row(percent_rate=Decimal("0.0699"))),
        )
        draft = PartnerPlanDraft(monthly_price=Decimal("99.90"))

        result = asyncio.run(service.validate_plan(db, PARTNER_ID, draft, pricing_plan_id=PLAN_ID))

        assert result.valid is True
        assert result.errors == []

    def test_validate_plan_with_unknown_pricing_plan(self):
        service = PartnerPolicyService()
        db = make_session(scalar_result(_global_row()), scalar_result(None), scalar_result(None))
        draft = PartnerPlanDraft(monthly_price=Decimal("99.90"))

        with pytest.raises(CatalogRecordNotFoundError):
            asyncio.run(service.validate_plan(db, PARTNER_ID, draft, pricing_plan_id=PLAN_ID))


class TestGlobalPolicy:
    def test_save_creates_row_when_missing(self):
        service = PartnerPolicyService()
        db = make_session(scalar_result(None))
        values = asdict(make_global_policy(max_plans=7))

        policy = asyncio.run(service.save_global_policy(db, values))

        assert policy.max_plans == 7
        db.add.assert_called_once()
        db.commit.assert_awaited_once()

    def test_save_requires_every_field(self):
        service = PartnerPolicyService()
        values = asdict(make_global_policy())
        values["max_plans"] = None

        with pytest.raises(ValueError):
            asyncio.run(service.save_global_policy(make_session(), values))

    def test_save_rejects_out_of_range_values(self):
        service = PartnerPolicyService()
        values = asdict(make_global_policy(tx_fee_max_percent=Decimal("150")))

        with pytest.raises(ValueError):
            asyncio.run(service.save_global_policy(make_session(), values))


class TestOverrides:
    def test_save_override_replaces_all_fields(self):
        service = PartnerPolicyService()
        existing = _override_row(max_plans=3, allow_free_plan=True)
        db = make_session(scalar_result(existing))

        row = asyncio.run(service.save_override(db, PARTNER_ID, {"max_trial_days": 0}, notes="acordo"))

        assert row is existing
        assert row.max_trial_days == 0
        assert row.max_plans is None
        assert row.allow_free_plan is None
        assert row.notes == "acordo"
        db.add.assert_not_called()

    def test_save_override_rejects_unknown_field(self):
        service = PartnerPolicyService()
        with pytest.raises(ValueError):
            asyncio.run(service.save_override(make_session(), PARTNER_ID, {"cor": "azul"}))

    def test_save_override_rejects_invalid_billing_owner(self):
        service = PartnerPolicyService()
        with pytest.raises(ValueError):
            asyncio.run(service.save_override(make_session(), PARTNER_ID, {"billing_owner": "banco"}))

    def test_delete_missing_override(self):
        service = PartnerPolicyService()
        db = make_session(scalar_result(None))

        with pytest.raises(PolicyOverrideNotFoundError):
            asyncio.run(service.delete_override(db, PARTNER_ID))

    def test_delete_existing_override(self):
        service = PartnerPolicyService()
        row = _override_row()
        db = make_session(scalar_result(row))

        asyncio.run(service.delete_override(db, PARTNER_ID))

        db.delete.assert_awaited_once_with(row)
        db.commit.assert_awaited_once()

    def test_cycle_creates_override_on_first_click(self):
        service = PartnerPolicyService()
        db = make_session(scalar_result(None))

        row = asyncio.run(service.cycle_field(db, PARTNER_ID, "allow_offline_billing"))

        assert row.allow_offline_billing is True
        assert row.max_plans is None
        db.add.assert_called_once()

    def test_cycle_goes_from_false_back_to_inherit(self):
        service = PartnerPolicyService()
        row = _override_row(allow_offline_billing=False)
        db = make_session(scalar_result(row))

        asyncio.run(service.cycle_field(db, PARTNER_ID, "allow_offline_billing"))

        assert row.allow_offline_billing is None

    def test_cycle_rejects_numeric_field(self):
        service = PartnerPolicyService()
        with pytest.raises(ValueError):
            asyncio.run(service.cycle_field(make_session(), PARTNER_ID, "max_trial_days"))
