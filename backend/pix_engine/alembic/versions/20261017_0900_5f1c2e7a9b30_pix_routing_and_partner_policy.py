"""Create partner policy and PIX Automático routing tables.

Revisão:
  - `global_partner_policy`: linha única (id = 1) com a política padrão
  - `partner_policy_overrides`: override anulável por parceiro (partner_id único)
  - `pix_psp_providers`: PSPs com capacidades e tarifa padrão
  - `pix_pricing_plans`: planos de tarifa com constraint min_fee <= max_fee
  - `pix_availability_rules`: regras por escopo; FKs com SET NULL
  - `pix_credentials`: credenciais por tenant/plataforma e PSP
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision: str = "5f1c2e7a9b30"
down_revision: str | None = None
branch_labels = None
depends_on = None


RULE_SCOPES = ("global", "category", "plan", "partner", "tenant")
PRICING_TYPES = ("percentual", "fixo", "hibrido")
BILLING_OWNERS = ("platform", "partner")
CREDENTIAL_SCOPES = ("tenant", "platform")
CONNECTION_STATUSES = ("pending", "connected", "error")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "global_partner_policy",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("allow_free_plan", sa.Boolean(), nullable=False),
        sa.Column("allow_partner_gateway", sa.Boolean(), nullable=False),
        sa.Column("allow_offline_billing", sa.Boolean(), nullable=False),
        sa.Column("billing_owner", sa.String(length=20), nullable=False),
        sa.Column("max_plans", sa.Integer(), nullable=False),
        sa.Column("min_paid_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("max_modules_per_plan", sa.Integer(), nullable=False),
        sa.Column("max_features_per_plan", sa.Integer(), nullable=False),
        sa.Column("max_trial_days", sa.Integer(), nullable=False),
        sa.Column("tx_fee_max_percent", sa.Numeric(6, 3), nullable=False),
        sa.Column("tx_fee_max_fixed_cents", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_global_partner_policy"),
        sa.CheckConstraint("id = 1", name="ck_global_partner_policy_singleton"),
        sa.CheckConstraint(
            f"billing_owner IN {BILLING_OWNERS}",
            name="ck_global_partner_policy_billing_owner",
        ),
    )

    op.create_table(
        "partner_policy_overrides",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("partner_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("allow_free_plan", sa.Boolean(), nullable=True),
        sa.Column("allow_partner_gateway", sa.Boolean(), nullable=True),
        sa.Column("allow_offline_billing", sa.Boolean(), nullable=True),
        sa.Column("billing_owner", sa.String(length=20), nullable=True),
        sa.Column("max_plans", sa.Integer(), nullable=True),
        sa.Column("min_paid_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("max_modules_per_plan", sa.Integer(), nullable=True),
        sa.Column("max_features_per_plan", sa.Integer(), nullable=True),
        sa.Column("max_trial_days", sa.Integer(), nullable=True),
        sa.Column("tx_fee_max_percent", sa.Numeric(6, 3), nullable=True),
        sa.Column("tx_fee_max_fixed_cents", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_partner_policy_overrides"),
        sa.UniqueConstraint("partner_id", name="uq_partner_policy_overrides_partner_id"),
        sa.CheckConstraint(
            f"billing_owner IS NULL OR billing_owner IN {BILLING_OWNERS}",
            name="ck_partner_policy_overrides_billing_owner",
        ),
    )
    op.create_index(
        op.f("ix_partner_policy_overrides_partner_id"),
        "partner_policy_overrides",
        ["partner_id"],
        unique=False,
    )

    op.create_table(
        "pix_psp_providers",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("display_name", sa.String(length=100), nullable=False),
        sa.Column("supports_txid", sa.Boolean(), nullable=False),
        sa.Column("supports_webhook", sa.Boolean(), nullable=False),
        sa.Column("supports_subaccount", sa.Boolean(), nullable=False),
        sa.Column("supports_split", sa.Boolean(), nullable=False),
        sa.Column("default_percent_fee", sa.Numeric(8, 6), nullable=False),
        sa.Column("default_fixed_fee", sa.Numeric(12, 2), nullable=False),
        sa.Column("pricing_model", sa.String(length=20), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_pix_psp_providers"),
        sa.UniqueConstraint("name", name="uq_pix_psp_providers_name"),
    )
    op.create_index(op.f("ix_pix_psp_providers_name"), "pix_psp_providers", ["name"], unique=False)

    op.create_table(
        "pix_pricing_plans",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("slug", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("pricing_type", sa.String(length=20), nullable=False),
        sa.Column("percent_rate", sa.Numeric(8, 6), nullable=False),
        sa.Column("fixed_rate", sa.Numeric(12, 2), nullable=False),
        sa.Column("min_fee", sa.Numeric(12, 2), nullable=False),
        sa.Column("max_fee", sa.Numeric(12, 2), nullable=True),
        sa.Column("is_subsidized", sa.Boolean(), nullable=False),
        sa.Column("subsidy_percent", sa.Numeric(5, 2), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("display_order", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_pix_pricing_plans"),
        sa.UniqueConstraint("slug", name="uq_pix_pricing_plans_slug"),
        sa.CheckConstraint(
            f"pricing_type IN {PRICING_TYPES}",
            name="ck_pix_pricing_plans_pricing_type",
        ),
        sa.CheckConstraint(
            "max_fee IS NULL OR min_fee <= max_fee",
            name="ck_pix_pricing_plans_fee_bounds",
        ),
        sa.CheckConstraint(
            "percent_rate >= 0 AND percent_rate <= 1",
            name="ck_pix_pricing_plans_percent_rate",
        ),
        sa.CheckConstraint(
            "subsidy_percent IS NULL OR (subsidy_percent >= 0 AND subsidy_percent <= 100)",
            name="ck_pix_pricing_plans_subsidy_percent",
        ),
    )
    op.create_index(op.f("ix_pix_pricing_plans_slug"), "pix_pricing_plans", ["slug"], unique=False)

    op.create_table(
        "pix_availability_rules",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("scope", sa.String(length=20), nullable=False),
        sa.Column("scope_id", sa.String(length=255), nullable=True),
        sa.Column("psp_provider_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("pricing_plan_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("priority", sa.Integer(), nullable=False),
        sa.Column("is_enabled", sa.Boolean(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_pix_availability_rules"),
        sa.ForeignKeyConstraint(
            ["psp_provider_id"],
            ["pix_psp_providers.id"],
            ondelete="SET NULL",
            name="fk_pix_availability_rules_psp_provider_id",
        ),
        sa.ForeignKeyConstraint(
            ["pricing_plan_id"],
            ["pix_pricing_plans.id"],
            ondelete="SET NULL",
            name="fk_pix_availability_rules_pricing_plan_id",
        ),
        sa.CheckConstraint(
            f"scope IN {RULE_SCOPES}",
            name="ck_pix_availability_rules_scope",
        ),
        sa.CheckConstraint(
            "(scope = 'global') = (scope_id IS NULL)",
            name="ck_pix_availability_rules_scope_id",
        ),
    )
    op.create_index(
        "ix_pix_availability_rules_scope_scope_id",
        "pix_availability_rules",
        ["scope", "scope_id"],
        unique=False,
    )

    op.create_table(
        "pix_credentials",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("scope", sa.String(length=20), nullable=False),
        sa.Column("scope_id", sa.String(length=255), nullable=True),
        sa.Column("psp_provider_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("api_key", sa.Text(), nullable=True),
        sa.Column("webhook_secret", sa.Text(), nullable=True),
        sa.Column("connection_status", sa.String(length=20), nullable=False),
        sa.Column("use_platform_credentials", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_pix_credentials"),
        sa.ForeignKeyConstraint(
            ["psp_provider_id"],
            ["pix_psp_providers.id"],
            ondelete="CASCADE",
            name="fk_pix_credentials_psp_provider_id",
        ),
        sa.UniqueConstraint(
            "scope",
            "scope_id",
            "psp_provider_id",
            name="uq_pix_credential_scope_provider",
        ),
        sa.CheckConstraint(
            f"scope IN {CREDENTIAL_SCOPES}",
            name="ck_pix_credentials_scope",
        ),
        sa.CheckConstraint(
            f"connection_status IN {CONNECTION_STATUSES}",
            name="ck_pix_credentials_connection_status",
        ),
    )
    op.create_index(
        op.f("ix_pix_credentials_psp_provider_id"),
        "pix_credentials",
        ["psp_provider_id"],
        unique=False,
    )
    op.create_index(
        "uq_pix_credentials_platform_provider",
        "pix_credentials",
        ["psp_provider_id"],
        unique=True,
        postgresql_where=sa.text("scope = 'platform'"),
    )


def downgrade() -> None:
    op.drop_index("uq_pix_credentials_platform_provider", table_name="pix_credentials")
    op.drop_index(op.f("ix_pix_credentials_psp_provider_id"), table_name="pix_credentials")
    op.drop_table("pix_credentials")
    op.drop_index("ix_pix_availability_rules_scope_scope_id", table_name="pix_availability_rules")
    op.drop_table("pix_availability_rules")
    op.drop_index(op.f("ix_pix_pricing_plans_slug"), table_name="pix_pricing_plans")
    op.drop_table("pix_pricing_plans")
    op.drop_index(op.f("ix_pix_psp_providers_name"), table_name="pix_psp_providers")
    op.drop_table("pix_psp_providers")
    op.drop_index(op.f("ix_partner_policy_overrides_partner_id"), table_name="partner_policy_overrides")
    op.drop_table("partner_policy_overrides")
    op.drop_table("global_partner_policy")
