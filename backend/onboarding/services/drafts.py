"""Store draft lifecycle during onboarding.

A merchant_stores row with approval_status DRAFT exists as soon as step 1
carries a store name, so search indexing and approval queues can refer to
it before the wizard finishes.

No locks are taken. Duplicate drafts are avoided by:
  - insert-or-fetch on the unique public id (retries land on the same row)
  - reusing the owner's most recently updated DRAFT for step 2+ saves
Two requests racing before either commits can still create two drafts.
"""

import logging
import re

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.middleware.exceptions import DraftPersistError
from onboarding.models.merchant_store import (
    PENDING,
    ApprovalStatus,
    MerchantStore,
    StoreStatus,
    StoreType,
)
from onboarding.services.public_id import SequenceService, allocate_public_id
from onboarding.services.results import DraftOutcome, DraftRef, FoundExisting, Inserted

logger = logging.getLogger(__name__)

ADDRESS_FIELDS = ("full_address", "city", "state", "postal_code")


class PublicIdConflictError(Exception):
    """The public id is already taken by another owner's store."""

    def __init__(self, public_id: str):
        self.public_id = public_id
        super().__init__(f"Public id {public_id} belongs to another owner")


def normalize_store_type(raw) -> StoreType | None:
    """Map free-text store type ("Cloud kitchen", "cafe") onto StoreType.

    Unknown values map to OTHERS; empty input returns None.
    """
    if not raw:
        return None
    normalized = re.sub(r"\s+", "_", str(raw).strip().upper())
    try:
        return StoreType(normalized)
    except ValueError:
        return StoreType.OTHERS


def has_store_name(step1) -> bool:
    return isinstance(step1, dict) and bool(str(step1.get("store_name") or "").strip())


def has_full_address(step2) -> bool:
    return isinstance(step2, dict) and all(step2.get(f) for f in ADDRESS_FIELDS)


def _step1_values(step1: dict) -> dict:
    store_type = normalize_store_type(step1.get("store_type"))
    custom_type = str(step1.get("custom_store_type") or "").strip() or None
    if store_type == StoreType.OTHERS and not custom_type and step1.get("store_type"):
        custom_type = str(step1["store_type"]).strip()
    phones = step1.get("store_phones")
    return {
        "store_name": str(step1["store_name"]).strip(),
        "store_display_name": step1.get("store_display_name") or None,
        "store_description": step1.get("store_description") or None,
        "store_type": store_type or StoreType.RESTAURANT,
        "custom_store_type": custom_type,
        "store_email": step1.get("store_email") or None,
        "store_phones": list(phones) if isinstance(phones, list) else [],
    }


def _step2_values(step2: dict) -> dict:
    return {
        "full_address": step2["full_address"],
        "landmark": step2.get("landmark") or None,
        "city": step2["city"],
        "state": step2["state"],
        "postal_code": step2["postal_code"],
        "country": step2.get("country") or "IN",
        "latitude": step2.get("latitude"),
        "longitude": step2.get("longitude"),
    }


def _ref(store: MerchantStore) -> DraftRef:
    return DraftRef(store_db_id=store.id, store_public_id=store.store_id)


async def _insert_or_fetch(
    db: AsyncSession,
    owner_id: str,
    public_id: str,
    insert_values: dict,
    update_values: dict,
) -> DraftOutcome:
    """Insert a new DRAFT store; on a public id conflict return the existing row.

    The insert runs in a savepoint so a conflict leaves the session usable.
    `update_values` are applied to a fetched row only while it is still a
    DRAFT; the onboarding step is always kept in sync.
    """
    store = MerchantStore(
        store_id=public_id,
        owner_id=owner_id,
        approval_status=ApprovalStatus.DRAFT,
        status=StoreStatus.INACTIVE,
        operational_status="CLOSED",
        is_active=False,
        is_accepting_orders=False,
        is_available=False,
        onboarding_completed=False,
        **insert_values,
    )
    try:
        async with db.begin_nested():
            db.add(store)
            await db.flush()
        logger.info(
            f"Created draft store {public_id}",
            extra={"owner_id": owner_id, "store_db_id": store.id},
        )
        return Inserted(_ref(store))
    except IntegrityError:
        logger.info(f"Public id {public_id} already inserted, fetching existing store")

    existing = (
        await db.execute(select(MerchantStore).where(MerchantStore.store_id == public_id))
    ).scalar_one_or_none()
    if existing is None:
        raise DraftPersistError(f"Failed to create store draft {public_id}")
    if existing.owner_id != owner_id:
        raise PublicIdConflictError(public_id)

    _apply(existing, update_values)
    await db.flush()
    return FoundExisting(_ref(existing))


def _apply(store: MerchantStore, values: dict) -> None:
    if store.approval_status == ApprovalStatus.DRAFT:
        for k, v in values.items():
            setattr(store, k, v)
    elif "current_onboarding_step" in values:
        store.current_onboarding_step = values["current_onboarding_step"]


async def ensure_draft_after_step1(
    db: AsyncSession,
    owner_id: str,
    step1: dict | None,
    desired_public_id: str,
    current_step: int = 1,
) -> DraftOutcome | None:
    """Create (or find) the owner's draft from step-1 data.

    Returns None when step 1 has no store name yet; that is "not creatable
    yet", not an error. Address columns get placeholders until step 2.
    """
    if not has_store_name(step1):
        logger.debug("Step 1 has no store name yet, skipping draft creation")
        return None

    values = {**_step1_values(step1), "current_onboarding_step": current_step}
    placeholders = {
        "full_address": PENDING,
        "city": PENDING,
        "state": PENDING,
        "postal_code": PENDING,
        "country": "IN",
    }
    try:
        return await _insert_or_fetch(
            db, owner_id, desired_public_id,
            insert_values={**values, **placeholders},
            update_values=values,
        )
    except SQLAlchemyError as e:
        raise DraftPersistError(f"Failed to create store draft: {e}") from e


async def _latest_owner_draft(db: AsyncSession, owner_id: str) -> MerchantStore | None:
    result = await db.execute(
        select(MerchantStore)
        .where(
            MerchantStore.owner_id == owner_id,
            MerchantStore.approval_status == ApprovalStatus.DRAFT,
        )
        .order_by(MerchantStore.updated_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def upsert_draft_at_step2_plus(
    db: AsyncSession,
    owner_id: str,
    step1: dict | None,
    step2: dict | None,
    existing_draft_id: str | None,
    next_step: int,
    sequence: SequenceService | None = None,
    desired_public_id: str | None = None,
) -> DraftOutcome | None:
    """Write step 1 + step 2 data onto the owner's draft.

    Target row, in order:
      1. `existing_draft_id`, if it still exists and belongs to the owner
      2. the owner's most recently updated DRAFT
      3. a new row, under `desired_public_id` or a freshly allocated id

    Returns None when the store name or any address field is missing.
    """
    if not has_store_name(step1) or not has_full_address(step2):
        return None

    values = {
        **_step1_values(step1),
        **_step2_values(step2),
        "current_onboarding_step": next_step,
    }

    try:
        if existing_draft_id:
            store = await db.get(MerchantStore, existing_draft_id)
            if store is not None and store.owner_id == owner_id:
                _apply(store, values)
                await db.flush()
                return FoundExisting(_ref(store))
            logger.warning(
                f"Linked draft {existing_draft_id} no longer exists, looking for another",
                extra={"owner_id": owner_id},
            )

        store = await _latest_owner_draft(db, owner_id)
        if store is not None:
            _apply(store, values)
            await db.flush()
            return FoundExisting(_ref(store))

        public_id = desired_public_id or await allocate_public_id(db, sequence)
        return await _insert_or_fetch(
            db, owner_id, public_id, insert_values=values, update_values=values
        )
    except SQLAlchemyError as e:
        raise DraftPersistError(f"Failed to save store draft: {e}") from e


async def set_onboarding_step(db: AsyncSession, store_db_id: str, step: int) -> None:
    """Keep the draft's current_onboarding_step equal to the wizard step."""
    store = await db.get(MerchantStore, store_db_id)
    if store is None:
        return
    store.current_onboarding_step = step
    try:
        await db.flush()
    except SQLAlchemyError as e:
        raise DraftPersistError(f"Failed to update onboarding step: {e}") from e


async def draft_exists(db: AsyncSession, store_db_id: str) -> bool:
    result = await db.execute(select(MerchantStore.id).where(MerchantStore.id == store_db_id))
    return result.scalar_one_or_none() is not None
