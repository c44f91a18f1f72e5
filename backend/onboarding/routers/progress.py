"""Store registration progress, saved and resumed step by step.

Endpoints:
  GET /api/register-store/progress  → in-flight progress (or null) with fresh file URLs
  PUT /api/register-store/progress  → merge a step save into progress + store draft
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.auth.deps import get_current_owner
from onboarding.database import get_db
from onboarding.schemas.progress import ProgressOut, ProgressResponse, ProgressUpdateRequest
from onboarding.services.progress import apply_patch, read_progress
from onboarding.storage.blob_store import BlobStore, get_blob_store

router = APIRouter()


@router.get("/progress", response_model=ProgressResponse)
async def get_progress(
    store_public_id: str | None = Query(None, alias="storePublicId"),
    force_new: bool = Query(False, alias="forceNew"),
    db: AsyncSession = Depends(get_db),
    owner_id: str = Depends(get_current_owner),
    blob_store: BlobStore = Depends(get_blob_store),
):
    """Return the owner's in-flight progress; forceNew=true always returns null."""
    view = await read_progress(
        db,
        owner_id,
        blob_store=blob_store,
        store_public_id_hint=store_public_id,
        force_new=force_new,
    )
    if view is None:
        return ProgressResponse(progress=None)

    progress = ProgressOut.model_validate(view.row).model_copy(update={"form_data": view.form_data})
    return ProgressResponse(progress=progress)


@router.put("/progress", response_model=ProgressResponse)
async def save_progress(
    body: ProgressUpdateRequest,
    db: AsyncSession = Depends(get_db),
    owner_id: str = Depends(get_current_owner),
    blob_store: BlobStore = Depends(get_blob_store),
):
    row = await apply_patch(db, owner_id, body, blob_store=blob_store)
    if row is None:
        return ProgressResponse(progress=None)
    return ProgressResponse(progress=ProgressOut.model_validate(row))
