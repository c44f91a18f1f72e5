"""Merchant store catalog entry.

Created as a DRAFT as soon as step 1 carries a store name, then filled in
by later wizard steps. Promotion out of DRAFT is owned by the approval
workflow, not by onboarding.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum as SAEnum,
    Float,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from onboarding.database import Base


class ApprovalStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    UNDER_VERIFICATION = "UNDER_VERIFICATION"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class StoreStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class StoreType(str, enum.Enum):
    RESTAURANT = "RESTAURANT"
    CAFE = "CAFE"
    BAKERY = "BAKERY"
    CLOUD_KITCHEN = "CLOUD_KITCHEN"
    GROCERY = "GROCERY"
    PHARMA = "PHARMA"
    STATIONERY = "STATIONERY"
    ELECTRONICS_ECOMMERCE = "ELECTRONICS_ECOMMERCE"
    OTHERS = "OTHERS"


# Address placeholder used until step 2 provides the real one
PENDING = "Pending"


class MerchantStore(Base):
    __tablename__ = "merchant_stores"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    # Public, human-readable id (e.g. GMMC1042). Immutable once assigned.
    store_id: Mapped[str] = mapped_column(
        String(32), unique=True, nullable=False, index=True
    )
    owner_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    # Identity (step 1)
    store_name: Mapped[str] = mapped_column(String(255), nullable=False)
    store_display_name: Mapped[str | None] = mapped_column(String(255))
    store_description: Mapped[str | None] = mapped_column(Text)
    store_type: Mapped[StoreType] = mapped_column(
        SAEnum(StoreType), default=StoreType.RESTAURANT
    )
    custom_store_type: Mapped[str | None] = mapped_column(String(100))
    store_email: Mapped[str | None] = mapped_column(String(255))
    store_phones: Mapped[list] = mapped_column(JSON, default=list)

    # Address (step 2)
    full_address: Mapped[str] = mapped_column(Text, default=PENDING)
    landmark: Mapped[str | None] = mapped_column(String(255))
    city: Mapped[str] = mapped_column(String(100), default=PENDING)
    state: Mapped[str] = mapped_column(String(100), default=PENDING)
    postal_code: Mapped[str] = mapped_column(String(20), default=PENDING)
    country: Mapped[str] = mapped_column(String(10), default="IN")
    latitude: Mapped[float | None] = mapped_column(Float)
    longitude: Mapped[float | None] = mapped_column(Float)

    # Profile (step 5)
    cuisine_types: Mapped[list] = mapped_column(JSON, default=list)
    food_categories: Mapped[list] = mapped_column(JSON, default=list)
    avg_preparation_time_minutes: Mapped[int] = mapped_column(Integer, default=30)
    min_order_amount: Mapped[float] = mapped_column(Float, default=0)
    delivery_radius_km: Mapped[float | None] = mapped_column(Float)
    is_pure_veg: Mapped[bool] = mapped_column(Boolean, default=False)
    accepts_online_payment: Mapped[bool] = mapped_column(Boolean, default=True)
    accepts_cash: Mapped[bool] = mapped_column(Boolean, default=True)
    logo_url: Mapped[str | None] = mapped_column(Text)
    banner_url: Mapped[str | None] = mapped_column(Text)
    gallery_images: Mapped[list | None] = mapped_column(JSON)

    # Lifecycle
    approval_status: Mapped[ApprovalStatus] = mapped_column(
        SAEnum(ApprovalStatus), default=ApprovalStatus.DRAFT, index=True
    )
    status: Mapped[StoreStatus] = mapped_column(
        SAEnum(StoreStatus), default=StoreStatus.INACTIVE
    )
    operational_status: Mapped[str] = mapped_column(String(20), default="CLOSED")
    is_active: Mapped[bool] = mapped_column(Boolean, default=False)
    is_accepting_orders: Mapped[bool] = mapped_column(Boolean, default=False)
    is_available: Mapped[bool] = mapped_column(Boolean, default=False)
    onboarding_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    current_onboarding_step: Mapped[int] = mapped_column(Integer, default=1)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    @property
    def is_live(self) -> bool:
        """Approved and through onboarding; customer-facing pages may reference its media."""
        return self.onboarding_completed and self.approval_status == ApprovalStatus.APPROVED
