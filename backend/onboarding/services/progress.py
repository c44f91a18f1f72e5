"""Registration progress: read, patch, and stale-row cleanup.

Each request is a sequence of independent writes inside one session, with
no locking. Progress and the store draft are primary writes: a failure
raises and the request fails. Side tables (documents, payout, menu
media, store profile) are best-effort: a failure is logged and the save
still succeeds.

Progress rows that are COMPLETED, or that reached the last step, are
never matched again; they stay in the table as history.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import case, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.config import settings
from onboarding.middleware.exceptions import DraftPersistError, ProgressPersistError
from onboarding.models.merchant_store import ApprovalStatus, MerchantStore
from onboarding.models.registration_progress import (
    TOTAL_STEPS,
    RegistrationProgress,
    RegistrationStatus,
)
from onboarding.schemas.progress import ProgressUpdateRequest
from onboarding.services.documents import BLOB_COLUMNS, sync_documents
from onboarding.services.drafts import (
    PublicIdConflictError,
    draft_exists,
    ensure_draft_after_step1,
    has_full_address,
    has_store_name,
    set_onboarding_step,
    upsert_draft_at_step2_plus,
)
from onboarding.services.flags import reconcile_flags
from onboarding.services.menu_media import sync_menu_media
from onboarding.services.merge import deep_merge
from onboarding.services.payouts import sync_payout_method
from onboarding.services.public_id import SequenceService, allocate_public_id
from onboarding.services.results import DraftOutcome, DraftRef, SyncResult
from onboarding.services.store_profile import sync_store_profile
from onboarding.storage.blob_store import BlobStore, BlobStoreError, extract_blob_key
from onboarding.utils.cache import cached_signed_url

logger = logging.getLogger(__name__)

# Blob references re-signed on read, per document section
SIGNED_KEYS = {
    "step4": tuple(BLOB_COLUMNS),
    "step5": ("logo_url", "banner_url"),
}
SIGNED_BANK_KEYS = ("bank_proof_file_url", "upi_qr_screenshot_url")


@dataclass
class ProgressView:
    """A progress row plus the document as returned to the client."""
    row: RegistrationProgress
    form_data: dict


# ── Lookup ───────────────────────────────────────────────────

def _public_id_of(row: RegistrationProgress) -> str | None:
    step_store = (row.form_data or {}).get("step_store") if isinstance(row.form_data, dict) else None
    if isinstance(step_store, dict):
        return step_store.get("storePublicId")
    return None


async def find_active_progress(
    db: AsyncSession,
    owner_id: str,
    hint: str | None = None,
) -> RegistrationProgress | None:
    """Newest in-flight progress row for the owner.

    A row whose step_store matches `hint` wins over newer rows.
    """
    result = await db.execute(
        select(RegistrationProgress)
        .where(
            RegistrationProgress.owner_id == owner_id,
            RegistrationProgress.registration_status != RegistrationStatus.COMPLETED,
            RegistrationProgress.current_step < TOTAL_STEPS,
        )
        .order_by(RegistrationProgress.created_at.desc())
    )
    rows = list(result.scalars().all())
    if hint:
        for row in rows:
            if _public_id_of(row) == hint:
                return row
    return rows[0] if rows else None


def _linked_store_id(row: RegistrationProgress) -> str | None:
    ref = DraftRef.from_step_store((row.form_data or {}).get("step_store"))
    if ref is not None:
        return ref.store_db_id
    return row.store_id


# ── Read ─────────────────────────────────────────────────────

async def _fresh_url(blob_store: BlobStore, ref: Any) -> Any:
    key = extract_blob_key(ref) if isinstance(ref, str) else None
    if key is None:
        return ref
    try:
        return await cached_signed_url(blob_store, key, settings.signed_url_ttl_seconds)
    except BlobStoreError as e:
        logger.warning(f"Signing failed, returning proxy url instead: {e}", extra={"key": key})
        return blob_store.proxy_url(key)


def _proxy_url(blob_store: BlobStore, ref: Any) -> Any:
    key = extract_blob_key(ref) if isinstance(ref, str) else None
    return blob_store.proxy_url(key) if key else ref


async def present_document(form_data: dict | None, blob_store: BlobStore) -> dict:
    """Copy of the document with every blob reference made fetchable.

    Documents, payout proof / QR and step-5 images get fresh signed URLs;
    menu files get the non-expiring proxy URL. The stored document is not
    modified.
    """
    document = copy.deepcopy(form_data or {})

    for section, keys in SIGNED_KEYS.items():
        data = document.get(section)
        if not isinstance(data, dict):
            continue
        for key in keys:
            if data.get(key):
                data[key] = await _fresh_url(blob_store, data[key])

    step4 = document.get("step4")
    bank = step4.get("bank") if isinstance(step4, dict) else None
    if isinstance(bank, dict):
        for key in SIGNED_BANK_KEYS:
            if bank.get(key):
                bank[key] = await _fresh_url(blob_store, bank[key])

    step5 = document.get("step5")
    if isinstance(step5, dict) and isinstance(step5.get("gallery_image_urls"), list):
        step5["gallery_image_urls"] = [
            await _fresh_url(blob_store, url) for url in step5["gallery_image_urls"]
        ]

    step3 = document.get("step3")
    if isinstance(step3, dict):
        if isinstance(step3.get("menuImageUrls"), list):
            step3["menuImageUrls"] = [_proxy_url(blob_store, url) for url in step3["menuImageUrls"]]
        if step3.get("menuSpreadsheetUrl"):
            step3["menuSpreadsheetUrl"] = _proxy_url(blob_store, step3["menuSpreadsheetUrl"])

    return document


async def _heal_flags(db: AsyncSession, row: RegistrationProgress) -> None:
    flags = reconcile_flags(row, row.current_step, row.current_step or 1, row.form_data)
    if not flags.differs_from(row):
        return
    try:
        async with db.begin_nested():
            for key, value in flags.as_columns().items():
                setattr(row, key, value)
            await db.flush()
        logger.info(
            f"Healed completion flags on progress {row.id}",
            extra={"completed_steps": flags.count},
        )
    except SQLAlchemyError:
        logger.exception(f"Failed to persist healed flags on progress {row.id}")


async def read_progress(
    db: AsyncSession,
    owner_id: str,
    *,
    blob_store: BlobStore,
    store_public_id_hint: str | None = None,
    force_new: bool = False,
) -> ProgressView | None:
    """Current progress for the owner, or None when there is nothing to resume."""
    if force_new:
        return None

    row = await find_active_progress(db, owner_id, store_public_id_hint)
    if row is None:
        return None

    store_id = _linked_store_id(row)
    if store_id and not await draft_exists(db, store_id):
        logger.info(
            f"Progress {row.id} points at missing store {store_id}, treating as no progress",
            extra={"owner_id": owner_id},
        )
        return None

    await _heal_flags(db, row)
    return ProgressView(row=row, form_data=await present_document(row.form_data, blob_store))


# ── Patch ────────────────────────────────────────────────────

def _is_completion_ack(body: ProgressUpdateRequest) -> bool:
    return (
        body.registration_status == RegistrationStatus.COMPLETED
        or max(body.current_step, body.next_step) >= TOTAL_STEPS
    )


async def _ensure_step1_draft(
    db: AsyncSession,
    owner_id: str,
    step1: dict,
    known: DraftRef | None,
    current_step: int,
    sequence: SequenceService | None,
) -> DraftOutcome | None:
    public_id = known.store_public_id if known else await allocate_public_id(db, sequence)
    try:
        return await ensure_draft_after_step1(db, owner_id, step1, public_id, current_step)
    except PublicIdConflictError as e:
        logger.warning(f"{e}, allocating a new public id")

    public_id = await allocate_public_id(db, sequence)
    try:
        return await ensure_draft_after_step1(db, owner_id, step1, public_id, current_step)
    except PublicIdConflictError as e:
        raise DraftPersistError(f"Could not allocate a free store id: {e}") from e


async def _run_draft_lifecycle(
    db: AsyncSession,
    owner_id: str,
    merged: dict,
    known: DraftRef | None,
    next_step: int,
    sequence: SequenceService | None,
) -> DraftOutcome | None:
    step1 = merged.get("step1")
    step2 = merged.get("step2")

    if has_store_name(step1) and has_full_address(step2):
        try:
            return await upsert_draft_at_step2_plus(
                db, owner_id, step1, step2,
                existing_draft_id=known.store_db_id if known else None,
                next_step=next_step,
                sequence=sequence,
                desired_public_id=known.store_public_id if known else None,
            )
        except PublicIdConflictError as e:
            logger.warning(f"{e}, allocating a new public id")
            return await upsert_draft_at_step2_plus(
                db, owner_id, step1, step2,
                existing_draft_id=None,
                next_step=next_step,
                sequence=sequence,
            )

    if has_store_name(step1):
        return await _ensure_step1_draft(db, owner_id, step1, known, next_step, sequence)
    return None


def _log_sync(result: SyncResult, store_id: str) -> None:
    if not result.ok:
        logger.warning(
            f"{result.operation} sync failed for store {store_id}: {result.error.message}",
            extra={"store_id": store_id, "operation": result.operation},
        )
    if result.orphaned_blobs:
        logger.warning(
            f"{result.operation} sync left {len(result.orphaned_blobs)} orphaned blob(s)",
            extra={"store_id": store_id, "keys": list(result.orphaned_blobs)},
        )


async def _run_synchronizers(
    db: AsyncSession,
    blob_store: BlobStore,
    store_id: str,
    patch: dict,
    merged: dict,
    next_step: int,
) -> list[SyncResult]:
    """Sync only the side tables whose sections appear in this patch."""
    results = []

    if isinstance(patch.get("step3"), dict):
        results.append(await sync_menu_media(db, blob_store, store_id, merged.get("step3")))

    step4_patch = patch.get("step4")
    step4 = merged.get("step4")
    if isinstance(step4_patch, dict) and isinstance(step4, dict):
        results.append(await sync_documents(db, blob_store, store_id, step4))
        if "bank" in step4_patch:
            results.append(await sync_payout_method(db, blob_store, store_id, step4.get("bank")))

    if isinstance(patch.get("step5"), dict):
        results.append(await sync_store_profile(db, store_id, merged.get("step5"), next_step))

    for result in results:
        _log_sync(result, store_id)
    return results


async def apply_patch(
    db: AsyncSession,
    owner_id: str,
    body: ProgressUpdateRequest,
    *,
    blob_store: BlobStore,
    sequence: SequenceService | None = None,
) -> RegistrationProgress | None:
    """Merge a wizard save into the owner's progress and its store draft.

    Returns None only for a completion acknowledgment when there is no
    in-flight row to complete.

    Raises:
        DraftPersistError: the store draft could not be written
        ProgressPersistError: the progress row could not be written
    """
    current_step = body.current_step
    next_step = body.next_step
    patch = body.form_data_patch_dict()

    existing = await find_active_progress(db, owner_id, body.store_public_id_hint)
    if existing is None and _is_completion_ack(body):
        logger.info(
            "Completion acknowledged with no in-flight progress, nothing to update",
            extra={"owner_id": owner_id},
        )
        return None

    merged = deep_merge(existing.form_data if existing else {}, patch)
    flags = reconcile_flags(
        existing,
        existing.current_step if existing else None,
        current_step,
        merged,
        explicit_complete=body.mark_step_complete,
    )

    known = DraftRef.from_step_store(merged.get("step_store"))
    if known is not None and not await draft_exists(db, known.store_db_id):
        logger.warning(
            f"Linked store {known.store_db_id} no longer exists",
            extra={"owner_id": owner_id, "store_public_id": known.store_public_id},
        )
        merged.pop("step_store", None)
        stale = known
        known = None
    else:
        stale = None

    outcome = await _run_draft_lifecycle(db, owner_id, merged, known or stale, next_step, sequence)
    draft = outcome.draft if outcome is not None else known
    if draft is not None:
        merged["step_store"] = draft.as_step_store()
        await _run_synchronizers(db, blob_store, draft.store_db_id, patch, merged, next_step)
        await set_onboarding_step(db, draft.store_db_id, next_step)

    row = existing or RegistrationProgress(owner_id=owner_id)
    row.store_id = draft.store_db_id if draft else None
    row.current_step = next_step
    row.total_steps = TOTAL_STEPS
    for key, value in flags.as_columns().items():
        setattr(row, key, value)
    row.form_data = merged
    row.registration_status = body.registration_status

    try:
        if existing is None:
            db.add(row)
        await db.flush()
    except SQLAlchemyError as e:
        logger.exception(f"Failed to save registration progress for owner {owner_id}")
        raise ProgressPersistError() from e

    logger.info(
        f"Saved progress {row.id} at step {next_step} ({flags.count}/{len(flags.flags)} complete)",
        extra={"owner_id": owner_id, "store_db_id": row.store_id},
    )
    return row


# ── Cleanup ──────────────────────────────────────────────────

async def cleanup_stale_progress(db: AsyncSession) -> int:
    """Complete in-flight rows that never linked a store once the owner is done.

    A row is stale when it has no store_id and its owner has at least one
    store, none of which is still a DRAFT or short of the last step.
    Returns the number of rows marked COMPLETED.
    """
    result = await db.execute(
        select(RegistrationProgress).where(
            RegistrationProgress.store_id.is_(None),
            RegistrationProgress.registration_status != RegistrationStatus.COMPLETED,
        )
    )
    candidates = list(result.scalars().all())
    if not candidates:
        logger.info("Cleaned up 0 stale progress row(s)")
        return 0

    # Store totals per owner: how many stores, how many still onboarding
    owner_totals = await db.execute(
        select(
            MerchantStore.owner_id,
            func.count(MerchantStore.id).label("store_count"),
            func.coalesce(
                func.sum(
                    case(
                        (
                            or_(
                                MerchantStore.approval_status == ApprovalStatus.DRAFT,
                                func.coalesce(MerchantStore.current_onboarding_step, 0) < TOTAL_STEPS,
                            ),
                            1,
                        ),
                        else_=0,
                    )
                ),
                0,
            ).label("incomplete_count"),
        )
        .where(MerchantStore.owner_id.in_({p.owner_id for p in candidates}))
        .group_by(MerchantStore.owner_id)
    )
    finished_owners = {
        owner_id
        for owner_id, store_count, incomplete_count in owner_totals.all()
        if store_count and not incomplete_count
    }

    cleaned = 0
    for progress in candidates:
        if progress.owner_id in finished_owners:
            progress.registration_status = RegistrationStatus.COMPLETED
            cleaned += 1

    await db.flush()
    logger.info(f"Cleaned up {cleaned} stale progress row(s)")
    return cleaned
