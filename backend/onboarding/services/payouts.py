"""Payout method sync (step4.bank -> merchant_store_payout_methods).

Only one payout method may be active per store. A change deletes every
existing row for the store and inserts exactly one primary, active row;
proof / QR blobs the new row no longer references are deleted afterwards.
"""

import logging

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.models.store_payout_method import PayoutMethod, StorePayoutMethod
from onboarding.services.results import SyncResult
from onboarding.storage.blob_store import BlobStore, delete_blobs, extract_blob_key

logger = logging.getLogger(__name__)

OPERATION = "payout"

BANK_REQUIRED = ("account_holder_name", "account_number", "ifsc_code", "bank_name")

# Columns compared to decide whether anything changed
COMPARED_COLUMNS = (
    "payout_method", "account_holder_name", "account_number", "ifsc_code",
    "bank_name", "branch_name", "account_type", "bank_proof_type",
    "bank_proof_file_url", "upi_id", "upi_qr_screenshot_url",
)


def derive_payout_method(bank: dict | None) -> PayoutMethod | None:
    """UPI when selected and complete, else BANK when complete, else None."""
    if not isinstance(bank, dict):
        return None
    if (
        bank.get("payout_method") == "upi"
        and bank.get("upi_id")
        and bank.get("upi_qr_screenshot_url")
    ):
        return PayoutMethod.UPI
    if all(bank.get(f) for f in BANK_REQUIRED):
        return PayoutMethod.BANK
    return None


def build_payout_row(store_id: str, method: PayoutMethod, bank: dict) -> dict:
    if method == PayoutMethod.UPI:
        return {
            "store_id": store_id,
            "payout_method": PayoutMethod.UPI,
            "account_holder_name": bank.get("account_holder_name") or bank["upi_id"],
            "account_number": "UPI",
            "ifsc_code": "UPI",
            "bank_name": "UPI",
            "branch_name": None,
            "account_type": None,
            "bank_proof_type": None,
            "bank_proof_file_url": None,
            "upi_id": bank["upi_id"],
            "upi_qr_screenshot_url": bank["upi_qr_screenshot_url"],
        }
    return {
        "store_id": store_id,
        "payout_method": PayoutMethod.BANK,
        "account_holder_name": bank["account_holder_name"],
        "account_number": bank["account_number"],
        "ifsc_code": bank["ifsc_code"],
        "bank_name": bank["bank_name"],
        "branch_name": bank.get("branch_name") or None,
        "account_type": bank.get("account_type") or None,
        "bank_proof_type": bank.get("bank_proof_type") or None,
        "bank_proof_file_url": bank.get("bank_proof_file_url") or None,
        "upi_id": None,
        "upi_qr_screenshot_url": None,
    }


def _same_as(existing: StorePayoutMethod, row: dict) -> bool:
    return existing.is_active and all(getattr(existing, c) == row[c] for c in COMPARED_COLUMNS)


def orphaned_blob_keys(existing_rows: list[StorePayoutMethod], row: dict) -> list[str]:
    """Proof / QR keys on old rows that the new row does not reference."""
    keep = {
        extract_blob_key(row.get("bank_proof_file_url")),
        extract_blob_key(row.get("upi_qr_screenshot_url")),
    }
    keys: list[str] = []
    for old in existing_rows:
        for ref in (old.bank_proof_file_url, old.upi_qr_screenshot_url):
            key = extract_blob_key(ref)
            if key and key not in keep and key not in keys:
                keys.append(key)
    return keys


async def sync_payout_method(
    db: AsyncSession,
    blob_store: BlobStore,
    store_id: str,
    bank: dict | None,
) -> SyncResult:
    """Reconcile the store's payout rows with step4.bank. Never raises."""
    method = derive_payout_method(bank)
    if method is None:
        logger.debug(f"Payout details incomplete for store {store_id}, nothing to sync")
        return SyncResult(operation=OPERATION)

    row = build_payout_row(store_id, method, bank)
    try:
        async with db.begin_nested():
            existing_rows = list(
                (
                    await db.execute(
                        select(StorePayoutMethod).where(StorePayoutMethod.store_id == store_id)
                    )
                ).scalars().all()
            )
            if len(existing_rows) == 1 and _same_as(existing_rows[0], row):
                return SyncResult(operation=OPERATION)

            stale_keys = orphaned_blob_keys(existing_rows, row)
            await db.execute(
                delete(StorePayoutMethod).where(StorePayoutMethod.store_id == store_id)
            )
            db.add(StorePayoutMethod(**row, is_primary=True, is_active=True))
            await db.flush()

        # Blobs go only once the rows that referenced them are gone
        failed = await delete_blobs(blob_store, stale_keys)

        logger.info(
            f"Payout method for store {store_id} set to {method.value}",
            extra={"store_id": store_id, "replaced": len(existing_rows)},
        )
        return SyncResult(operation=OPERATION, changed=True, orphaned_blobs=tuple(failed))
    except SQLAlchemyError as e:
        logger.exception(f"Payout sync failed for store {store_id}")
        return SyncResult.failed(OPERATION, e)
