"""Motor puro de política de parceiros, roteamento e tarifa PIX Automático."""

from .credentials import select_credential
from .errors import ConfigurationError, InconsistentPlanError, InvalidAmountError, PixEngineError
from .fee_calculator import compute_fee, validate_amount, validate_pricing_plan
from .policy_resolver import (
    PartnerPlanDraft,
    PlanValidationResult,
    check_tx_fee_caps,
    cycle_override_field,
    cycle_tri_state,
    overridden_fields,
    resolve_effective_policy,
    validate_partner_plan,
)
from .provider_registry import ProviderRegistry
from .rule_resolver import (
    DEFAULT_SCOPE_PRIORITY,
    default_priority,
    resolve_route,
    resolve_route_options,
)
from .simulator import PlanSimulation, simulate_plans
from .types import (
    INHERIT,
    AvailabilityRule,
    Credential,
    CredentialSelection,
    EffectivePolicy,
    FeeBreakdown,
    GlobalPolicy,
    Inherit,
    PolicyOverride,
    PricingPlan,
    ProviderDefault,
    PSPProvider,
    ResolvedRoute,
    RouteContext,
    RouteNotFound,
    Value,
)

__all__ = [
    "AvailabilityRule",
    "ConfigurationError",
    "Credential",
    "CredentialSelection",
    "DEFAULT_SCOPE_PRIORITY",
    "EffectivePolicy",
    "FeeBreakdown",
    "GlobalPolicy",
    "INHERIT",
    "InconsistentPlanError",
    "Inherit",
    "InvalidAmountError",
    "PSPProvider",
    "PartnerPlanDraft",
    "PixEngineError",
    "PlanSimulation",
    "PlanValidationResult",
    "PolicyOverride",
    "PricingPlan",
    "ProviderDefault",
    "ProviderRegistry",
    "ResolvedRoute",
    "RouteContext",
    "RouteNotFound",
    "Value",
    "check_tx_fee_caps",
    "compute_fee",
    "cycle_override_field",
    "cycle_tri_state",
    "default_priority",
    "overridden_fields",
    "resolve_effective_policy",
    "resolve_route",
    "resolve_route_options",
    "select_credential",
    "simulate_plans",
    "validate_amount",
    "validate_partner_plan",
    "validate_pricing_plan",
]
