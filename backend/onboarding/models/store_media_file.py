"""Media files attached to a store.

Onboarding only manages the MENU_REFERENCE scope: the menu photos and the
optional menu spreadsheet uploaded in step 3. Retired rows stay behind
with is_active = false once the store is live.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from onboarding.database import Base


class MediaScope(str, enum.Enum):
    MENU_REFERENCE = "MENU_REFERENCE"


class MediaSource(str, enum.Enum):
    SHEET = "SHEET"
    IMAGE = "IMAGE"


class StoreMediaFile(Base):
    __tablename__ = "merchant_store_media_files"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    store_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("merchant_stores.id"), nullable=False, index=True
    )
    media_scope: Mapped[MediaScope] = mapped_column(SAEnum(MediaScope), nullable=False)
    source: Mapped[MediaSource] = mapped_column(SAEnum(MediaSource), nullable=False)
    public_url: Mapped[str] = mapped_column(Text, nullable=False)
    blob_key: Mapped[str | None] = mapped_column(Text)
    mime_type: Mapped[str | None] = mapped_column(String(100))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
