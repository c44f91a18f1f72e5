"""Verification documents for a merchant store (one row per store).

Mirrors step4 of the onboarding document. Each document type keeps its
number, blob reference and original file name; some also carry an expiry.
"""

import uuid
from datetime import date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from onboarding.database import Base


class StoreDocument(Base):
    __tablename__ = "merchant_store_documents"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    store_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("merchant_stores.id"), unique=True, nullable=False
    )

    # PAN
    pan_document_number: Mapped[str | None] = mapped_column(String(20))
    pan_document_url: Mapped[str | None] = mapped_column(Text)
    pan_document_name: Mapped[str | None] = mapped_column(String(255))
    pan_holder_name: Mapped[str | None] = mapped_column(String(255))

    # Aadhaar (front + back)
    aadhaar_document_number: Mapped[str | None] = mapped_column(String(20))
    aadhaar_document_url: Mapped[str | None] = mapped_column(Text)
    aadhaar_back_document_url: Mapped[str | None] = mapped_column(Text)
    aadhaar_document_name: Mapped[str | None] = mapped_column(String(255))
    aadhaar_holder_name: Mapped[str | None] = mapped_column(String(255))

    # GST
    gst_document_number: Mapped[str | None] = mapped_column(String(20))
    gst_document_url: Mapped[str | None] = mapped_column(Text)
    gst_document_name: Mapped[str | None] = mapped_column(String(255))

    # FSSAI (food licence)
    fssai_document_number: Mapped[str | None] = mapped_column(String(20))
    fssai_document_url: Mapped[str | None] = mapped_column(Text)
    fssai_document_name: Mapped[str | None] = mapped_column(String(255))
    fssai_expiry_date: Mapped[date | None] = mapped_column(Date)

    # Pharmacy stores
    drug_license_document_number: Mapped[str | None] = mapped_column(String(50))
    drug_license_document_url: Mapped[str | None] = mapped_column(Text)
    drug_license_document_name: Mapped[str | None] = mapped_column(String(255))
    drug_license_expiry_date: Mapped[date | None] = mapped_column(Date)

    pharmacist_certificate_document_number: Mapped[str | None] = mapped_column(String(50))
    pharmacist_certificate_document_url: Mapped[str | None] = mapped_column(Text)
    pharmacist_certificate_document_name: Mapped[str | None] = mapped_column(String(255))
    pharmacist_certificate_expiry_date: Mapped[date | None] = mapped_column(Date)

    pharmacy_council_registration_document_url: Mapped[str | None] = mapped_column(Text)
    pharmacy_council_registration_document_name: Mapped[str | None] = mapped_column(String(255))

    # Anything else
    other_document_number: Mapped[str | None] = mapped_column(String(100))
    other_document_url: Mapped[str | None] = mapped_column(Text)
    other_document_name: Mapped[str | None] = mapped_column(String(255))
    other_document_type: Mapped[str | None] = mapped_column(String(100))
    other_expiry_date: Mapped[date | None] = mapped_column(Date)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
