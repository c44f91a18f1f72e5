"""Payout destination for a store. At most one active row per store."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from onboarding.database import Base


class PayoutMethod(str, enum.Enum):
    BANK = "BANK"
    UPI = "UPI"


class StorePayoutMethod(Base):
    __tablename__ = "merchant_store_payout_methods"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    store_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("merchant_stores.id"), nullable=False, index=True
    )
    payout_method: Mapped[PayoutMethod] = mapped_column(SAEnum(PayoutMethod), nullable=False)

    # Bank transfer
    account_holder_name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_number: Mapped[str] = mapped_column(String(50), nullable=False)
    ifsc_code: Mapped[str] = mapped_column(String(20), nullable=False)
    bank_name: Mapped[str] = mapped_column(String(255), nullable=False)
    branch_name: Mapped[str | None] = mapped_column(String(255))
    account_type: Mapped[str | None] = mapped_column(String(50))
    bank_proof_type: Mapped[str | None] = mapped_column(String(50))
    bank_proof_file_url: Mapped[str | None] = mapped_column(Text)

    # UPI
    upi_id: Mapped[str | None] = mapped_column(String(100))
    upi_qr_screenshot_url: Mapped[str | None] = mapped_column(Text)

    is_primary: Mapped[bool] = mapped_column(Boolean, default=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
