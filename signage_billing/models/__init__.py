from .admin_audit_log import AdminAuditLogEntry
from .organization import Display, Organization, SubscriptionStatus
from .plan import Plan
from .promotion import DiscountType, Promotion, PromotionRedemption, plan_promotions

__all__ = [
    "AdminAuditLogEntry",
    "DiscountType",
    "Display",
    "Organization",
    "Plan",
    "Promotion",
    "PromotionRedemption",
    "SubscriptionStatus",
    "plan_promotions",
]
