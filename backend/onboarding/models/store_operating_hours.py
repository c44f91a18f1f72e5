"""Weekly opening hours for a store (one row per store, from step 5).

`schedule` holds one entry per weekday:
  {"open": bool, "closed": bool, "slot1_start": "HH:MM" | None,
   "slot1_end": ..., "slot2_start": ..., "slot2_end": ..., "duration": minutes}
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from onboarding.database import Base


class StoreOperatingHours(Base):
    __tablename__ = "merchant_store_operating_hours"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    store_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("merchant_stores.id"), unique=True, nullable=False
    )
    schedule: Mapped[dict] = mapped_column(JSON, default=dict)
    closed_days: Mapped[list] = mapped_column(JSON, default=list)
    same_for_all_days: Mapped[bool] = mapped_column(Boolean, default=False)
    is_24_hours: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
