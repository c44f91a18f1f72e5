"""Aggregate model imports for Alembic auto-detection."""

from onboarding.models.registration_progress import (  # noqa: F401
    RegistrationProgress,
    RegistrationStatus,
)
from onboarding.models.merchant_store import ApprovalStatus, MerchantStore, StoreType  # noqa: F401
from onboarding.models.store_document import StoreDocument  # noqa: F401
from onboarding.models.store_payout_method import PayoutMethod, StorePayoutMethod  # noqa: F401
from onboarding.models.store_media_file import MediaScope, MediaSource, StoreMediaFile  # noqa: F401
from onboarding.models.store_operating_hours import StoreOperatingHours  # noqa: F401
