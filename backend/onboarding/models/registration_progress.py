"""Tracks one onboarding attempt per merchant owner.

The accumulated wizard document lives in `form_data` and is the source of
truth for every side table (store draft, documents, payout, menu media).
Rows with registration_status COMPLETED, or that reached the last step,
are left in place and never matched again.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from onboarding.database import Base

TOTAL_STEPS = 9


class RegistrationStatus(str, enum.Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class RegistrationProgress(Base):
    __tablename__ = "merchant_store_registration_progress"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    owner_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    # Internal id of the linked merchant_stores draft, once one exists
    store_id: Mapped[str | None] = mapped_column(String(36))

    current_step: Mapped[int] = mapped_column(Integer, default=1)
    total_steps: Mapped[int] = mapped_column(Integer, default=TOTAL_STEPS)

    # Completion flags, only ever written from the flag reconciler
    step_1_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    step_2_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    step_3_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    step_4_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    step_5_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    step_6_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    completed_steps: Mapped[int] = mapped_column(Integer, default=0)

    # Accumulated document: step1..step5, final, step_store
    form_data: Mapped[dict] = mapped_column(JSON, default=dict)

    registration_status: Mapped[RegistrationStatus] = mapped_column(
        SAEnum(RegistrationStatus), default=RegistrationStatus.IN_PROGRESS
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
