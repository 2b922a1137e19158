from pix_engine.db.models.partner_policy import GlobalPartnerPolicy, PartnerPolicyOverride
from pix_engine.db.models.pix_psp_provider import PixPspProvider
from pix_engine.db.models.pix_pricing_plan import PixPricingPlan
from pix_engine.db.models.pix_availability_rule import PixAvailabilityRule
from pix_engine.db.models.pix_credential import PixCredential

__all__ = [
    "GlobalPartnerPolicy",
    "PartnerPolicyOverride",
    "PixPspProvider",
    "PixPricingPlan",
    "PixAvailabilityRule",
    "PixCredential",
]
