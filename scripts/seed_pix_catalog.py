"""Semeia política global, PSP padrão, plano padrão e regra global do PIX Automático.

Uso (a partir da raiz do repositório, após ``alembic upgrade head``)::

    python scripts/seed_pix_catalog.py

Idempotente: registros existentes (por id da política, ``name`` do PSP e
``slug`` do plano) são mantidos.
"""

import asyncio
import os
import sys
import uuid
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker

# Add backend to path
sys.path.append(os.path.join(os.getcwd(), 'backend'))

from pix_engine.config import get_settings
from pix_engine.core.logging import configure_structlog, get_logger
from pix_engine.db.models import (
    GlobalPartnerPolicy,
    PixAvailabilityRule,
    PixPricingPlan,
    PixPspProvider,
)
from pix_engine.services.pix.rule_resolver import default_priority

logger = get_logger("seed_pix_catalog")

GLOBAL_POLICY_DEFAULTS = {
    "allow_free_plan": False,
    "allow_partner_gateway": False,
    "allow_offline_billing": False,
    "billing_owner": "platform",
    "max_plans": 5,
    "min_paid_price": Decimal("49.90"),
    "max_modules_per_plan": 20,
    "max_features_per_plan": 50,
    "max_trial_days": 30,
    "tx_fee_max_percent": Decimal("5"),
    "tx_fee_max_fixed_cents": 500,
}

DEFAULT_PROVIDER = {
    "name": "asaas",
    "display_name": "Asaas",
    "supports_txid": True,
    "supports_webhook": True,
    "supports_subaccount": True,
    "supports_split": True,
    "default_percent_fee": Decimal("0.0099"),
    "default_fixed_fee": Decimal("0"),
    "pricing_model": "percentual",
    "is_active": True,
}

DEFAULT_PLAN = {
    "name": "PIX Automático Padrão",
    "slug": "pix-automatico-padrao",
    "description": "1,99% por transação, mínimo de R$ 0,01",
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


async def seed_pix_catalog():
    settings = get_settings()
    engine = create_async_engine(settings.postgres_url)
    async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with async_session() as session:
        result = await session.execute(select(GlobalPartnerPolicy).where(GlobalPartnerPolicy.id == 1))
        if result.scalar_one_or_none() is None:
            session.add(GlobalPartnerPolicy(id=1, **GLOBAL_POLICY_DEFAULTS))
            logger.info("seed_global_policy_created")

        result = await session.execute(
            select(PixPspProvider).where(PixPspProvider.name == DEFAULT_PROVIDER["name"])
        )
        provider = result.scalar_one_or_none()
        if provider is None:
            provider = PixPspProvider(id=uuid.uuid4(), **DEFAULT_PROVIDER)
            session.add(provider)
            logger.info("seed_provider_created", name=provider.name)

        result = await session.execute(
            select(PixPricingPlan).where(PixPricingPlan.slug == DEFAULT_PLAN["slug"])
        )
        plan = result.scalar_one_or_none()
        if plan is None:
            plan = PixPricingPlan(id=uuid.uuid4(), **DEFAULT_PLAN)
            session.add(plan)
            logger.info("seed_pricing_plan_created", slug=plan.slug)

        result = await session.execute(
            select(PixAvailabilityRule).where(PixAvailabilityRule.scope == "global")
        )
        if not result.scalars().all():
            session.add(
                PixAvailabilityRule(
                    id=uuid.uuid4(),
                    scope="global",
                    scope_id=None,
                    psp_provider_id=provider.id,
                    pricing_plan_id=plan.id,
                    priority=default_priority("global"),
                    is_enabled=True,
                    notes="Regra global criada pelo seed",
                )
            )
            logger.info("seed_global_rule_created")

        await session.commit()

    await engine.dispose()

if __name__ == "__main__":
    configure_structlog()
    asyncio.run(seed_pix_catalog())
