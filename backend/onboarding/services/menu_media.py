"""Menu reference media sync (step3 -> merchant_store_media_files).

Two policies, chosen per call from the store's current state:

  onboarding  destructive replace. Current MENU_REFERENCE rows are deleted,
              fresh rows inserted, then the blobs behind the old rows removed.
  live        additive retire. Approved, fully onboarded stores may have
              customer-facing pages pointing at the old files, so active
              rows are only flagged inactive and no blob is ever deleted.

Keys that appear again in the new payload are never deleted.
"""

import logging

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.models.merchant_store import MerchantStore
from onboarding.models.store_media_file import MediaScope, MediaSource, StoreMediaFile
from onboarding.services.results import SyncResult
from onboarding.storage.blob_store import BlobStore, delete_blobs, extract_blob_key

logger = logging.getLogger(__name__)

OPERATION = "menu_media"


def menu_media_candidates(store_id: str, step3: dict) -> list[dict]:
    """One row per menu image plus one for the optional spreadsheet."""
    images = step3.get("menuImageUrls")
    image_urls = [u for u in images if isinstance(u, str) and u] if isinstance(images, list) else []
    sheet_url = step3.get("menuSpreadsheetUrl") or None

    rows = [
        {
            "store_id": store_id,
            "media_scope": MediaScope.MENU_REFERENCE,
            "source": MediaSource.IMAGE,
            "public_url": url,
            "blob_key": extract_blob_key(url),
            "mime_type": "image/*",
        }
        for url in dict.fromkeys(image_urls)
    ]
    if isinstance(sheet_url, str):
        rows.append({
            "store_id": store_id,
            "media_scope": MediaScope.MENU_REFERENCE,
            "source": MediaSource.SHEET,
            "public_url": sheet_url,
            "blob_key": extract_blob_key(sheet_url),
            "mime_type": "application/octet-stream",
        })
    return rows


async def _current_rows(db: AsyncSession, store_id: str) -> list[StoreMediaFile]:
    result = await db.execute(
        select(StoreMediaFile).where(
            StoreMediaFile.store_id == store_id,
            StoreMediaFile.media_scope == MediaScope.MENU_REFERENCE,
        )
    )
    return list(result.scalars().all())


async def _replace(db: AsyncSession, store_id: str, candidates: list[dict]) -> list[str]:
    """Delete the MENU_REFERENCE rows; return blob keys no candidate reuses."""
    existing = await _current_rows(db, store_id)
    keep = {row["blob_key"] for row in candidates}
    stale_keys = list(dict.fromkeys(
        row.blob_key or extract_blob_key(row.public_url)
        for row in existing
    ))
    stale_keys = [k for k in stale_keys if k and k not in keep]

    await db.execute(
        delete(StoreMediaFile).where(
            StoreMediaFile.store_id == store_id,
            StoreMediaFile.media_scope == MediaScope.MENU_REFERENCE,
        )
    )
    return stale_keys


async def _retire(db: AsyncSession, store_id: str) -> None:
    await db.execute(
        update(StoreMediaFile)
        .where(
            StoreMediaFile.store_id == store_id,
            StoreMediaFile.media_scope == MediaScope.MENU_REFERENCE,
            StoreMediaFile.is_active == True,  # noqa: E712
        )
        .values(is_active=False)
    )


async def sync_menu_media(
    db: AsyncSession,
    blob_store: BlobStore,
    store_id: str,
    step3: dict | None,
) -> SyncResult:
    """Reconcile the store's MENU_REFERENCE rows with step3. Never raises."""
    candidates = menu_media_candidates(store_id, step3 or {})
    try:
        async with db.begin_nested():
            # Re-read right before acting; approval may have happened meanwhile
            store = (
                await db.execute(
                    select(MerchantStore)
                    .where(MerchantStore.id == store_id)
                    .execution_options(populate_existing=True)
                )
            ).scalar_one_or_none()
            if store is None:
                logger.warning(f"Menu media sync skipped, store {store_id} not found")
                return SyncResult(operation=OPERATION)

            stale_keys: list[str] = []
            if store.is_live:
                await _retire(db, store_id)
                mode = "live"
            else:
                stale_keys = await _replace(db, store_id, candidates)
                mode = "onboarding"

            for row in candidates:
                db.add(StoreMediaFile(**row, is_active=True))
            await db.flush()

        failed = await delete_blobs(blob_store, stale_keys)
        logger.info(
            f"Menu media synced for store {store_id} ({mode}): {len(candidates)} file(s)",
            extra={"store_id": store_id, "mode": mode},
        )
        return SyncResult(operation=OPERATION, changed=True, orphaned_blobs=tuple(failed))
    except SQLAlchemyError as e:
        logger.exception(f"Menu media sync failed for store {store_id}")
        return SyncResult.failed(OPERATION, e)
