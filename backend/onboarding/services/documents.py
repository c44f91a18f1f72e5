"""Verification document sync (step4 -> merchant_store_documents).

One row per store. For every blob-backed field, a reference that existed
before and is now empty gets its blob deleted. The row write is a direct
upsert on store_id; if that fails (conflict target resolution differs
between environments) it falls back to select, then update or insert.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.models.store_document import StoreDocument
from onboarding.services.results import SyncResult
from onboarding.storage.blob_store import BlobStore, delete_blobs, extract_blob_key

logger = logging.getLogger(__name__)

OPERATION = "documents"


@dataclass(frozen=True)
class DocumentField:
    """Maps one step4 key group onto StoreDocument columns."""
    prefix: str                      # column prefix, e.g. "pan"
    url_key: str                     # step4 key holding the blob reference
    file_key: str | None = None      # step4 key holding the uploaded file info ({"name": ...})
    number_key: str | None = None
    expiry_key: str | None = None
    expiry_column: str | None = None
    holder_key: str | None = None


DOCUMENT_FIELDS: tuple[DocumentField, ...] = (
    DocumentField("pan", "pan_image_url", "pan_image", "pan_number", holder_key="pan_holder_name"),
    DocumentField("aadhaar", "aadhar_front_url", "aadhar_front", "aadhar_number", holder_key="aadhar_holder_name"),
    DocumentField("gst", "gst_image_url", "gst_image", "gst_number"),
    DocumentField("fssai", "fssai_image_url", "fssai_image", "fssai_number",
                  "fssai_expiry_date", "fssai_expiry_date"),
    DocumentField("drug_license", "drug_license_image_url", "drug_license_image", "drug_license_number",
                  "drug_license_expiry_date", "drug_license_expiry_date"),
    DocumentField("pharmacist_certificate", "pharmacist_certificate_url", "pharmacist_certificate",
                  "pharmacist_registration_number", "pharmacist_expiry_date",
                  "pharmacist_certificate_expiry_date"),
    DocumentField("pharmacy_council_registration", "pharmacy_council_registration_url",
                  "pharmacy_council_registration"),
    DocumentField("other", "other_document_file_url", "other_document_file", "other_document_number",
                  "other_document_expiry_date", "other_expiry_date"),
)

# Blob-backed columns: step4 key -> column
BLOB_COLUMNS: dict[str, str] = {
    **{f.url_key: f"{f.prefix}_document_url" for f in DOCUMENT_FIELDS},
    "aadhar_back_url": "aadhaar_back_document_url",
}


def parse_date(value) -> date | None:
    """ISO date (or datetime) string -> date; anything unparseable -> None."""
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
        except ValueError:
            return None
    return None


def build_document_row(store_id: str, step4: dict) -> dict:
    """Column values for a StoreDocument row from the step4 section."""
    row: dict = {"store_id": store_id}
    for f in DOCUMENT_FIELDS:
        url = step4.get(f.url_key) or None
        row[f"{f.prefix}_document_url"] = url
        file_info = step4.get(f.file_key) if f.file_key else None
        name = file_info.get("name") if isinstance(file_info, dict) else None
        row[f"{f.prefix}_document_name"] = name or (f.prefix if url else None)
        if f.number_key:
            row[f"{f.prefix}_document_number"] = step4.get(f.number_key) or None
        if f.expiry_key:
            row[f.expiry_column] = parse_date(step4.get(f.expiry_key))
        if f.holder_key:
            row[f"{f.prefix}_holder_name"] = step4.get(f.holder_key) or None
    row["aadhaar_back_document_url"] = step4.get("aadhar_back_url") or None
    row["other_document_type"] = step4.get("other_document_type") or None
    return row


def cleared_blob_keys(previous: StoreDocument | None, row: dict) -> list[str]:
    """Keys of blobs whose reference existed before and is now empty."""
    if previous is None:
        return []
    keys = []
    for column in BLOB_COLUMNS.values():
        old_ref = getattr(previous, column)
        if old_ref and not row.get(column):
            key = extract_blob_key(old_ref)
            if key:
                keys.append(key)
    return keys


def _upsert_statement(dialect_name: str, row: dict):
    """INSERT .. ON CONFLICT (store_id) DO UPDATE, or None when the dialect has none."""
    if dialect_name == "postgresql":
        stmt = postgresql.insert(StoreDocument).values(**row)
    elif dialect_name == "sqlite":
        stmt = sqlite.insert(StoreDocument).values(**row)
    else:
        return None
    changes = {k: v for k, v in row.items() if k != "store_id"}
    changes["updated_at"] = datetime.utcnow()
    return stmt.on_conflict_do_update(index_elements=["store_id"], set_=changes)


async def _write_row(db: AsyncSession, store_id: str, row: dict) -> None:
    stmt = _upsert_statement(db.bind.dialect.name, row)
    if stmt is not None:
        try:
            async with db.begin_nested():
                await db.execute(stmt)
            return
        except SQLAlchemyError as e:
            logger.warning(f"Document upsert failed, falling back to update/insert: {e}")

    existing_id = (
        await db.execute(select(StoreDocument.id).where(StoreDocument.store_id == store_id))
    ).scalar_one_or_none()
    if existing_id:
        await db.execute(
            update(StoreDocument)
            .where(StoreDocument.store_id == store_id)
            .values(**{k: v for k, v in row.items() if k != "store_id"}, updated_at=datetime.utcnow())
        )
    else:
        db.add(StoreDocument(**row))
    await db.flush()


async def sync_documents(
    db: AsyncSession,
    blob_store: BlobStore,
    store_id: str,
    step4: dict,
) -> SyncResult:
    """Reconcile the store's document row with step4. Never raises."""
    try:
        async with db.begin_nested():
            previous = (
                await db.execute(
                    select(StoreDocument)
                    .where(StoreDocument.store_id == store_id)
                    .execution_options(populate_existing=True)
                )
            ).scalar_one_or_none()
            row = build_document_row(store_id, step4 or {})
            stale_keys = cleared_blob_keys(previous, row)

            await _write_row(db, store_id, row)

        failed = await delete_blobs(blob_store, stale_keys)
        return SyncResult(operation=OPERATION, changed=True, orphaned_blobs=tuple(failed))
    except SQLAlchemyError as e:
        logger.exception(f"Document sync failed for store {store_id}")
        return SyncResult.failed(OPERATION, e)
