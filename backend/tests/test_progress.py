"""Tests for reading and patching registration progress."""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import delete, func, select

from onboarding.config import settings
from onboarding.middleware.exceptions import DraftPersistError
from onboarding.models.merchant_store import ApprovalStatus, MerchantStore
from onboarding.models.registration_progress import RegistrationProgress, RegistrationStatus
from onboarding.models.store_document import StoreDocument
from onboarding.models.store_media_file import StoreMediaFile
from onboarding.models.store_payout_method import StorePayoutMethod
from onboarding.schemas.progress import ProgressUpdateRequest
from onboarding.services import progress as progress_service
from onboarding.services.progress import (
    apply_patch,
    cleanup_stale_progress,
    find_active_progress,
    read_progress,
)
from onboarding.services.results import SyncResult

STEP1 = {"store_name": "Cafe X", "store_email": "a@b.com"}
STEP2 = {"full_address": "123 St", "city": "X", "state": "Y", "postal_code": "12345"}
PAN_URL = "https://blobs.test/docs/pan.png"
MENU_URL = "https://blobs.test/menu/a.jpg"


def _body(**kwargs) -> ProgressUpdateRequest:
    return ProgressUpdateRequest.model_validate(kwargs)


async def _count(db, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


@pytest.fixture
def save(db_session, owner_id, blob_store, sequence):
    """apply_patch for the default owner with camelCase body kwargs."""

    async def _save(**kwargs):
        return await apply_patch(
            db_session, owner_id, _body(**kwargs), blob_store=blob_store, sequence=sequence
        )

    return _save


@pytest.mark.integration
@pytest.mark.asyncio
class TestWizardScenarios:

    async def test_first_save_creates_progress_and_draft(self, db_session, save):
        row = await save(currentStep=1, formDataPatch={"step1": STEP1})

        assert row.step_1_completed is True
        assert row.completed_steps == 1
        assert row.current_step == 1
        assert row.registration_status == RegistrationStatus.IN_PROGRESS
        step_store = row.form_data["step_store"]
        assert step_store["storePublicId"] == "GMMC5001"
        store = await db_session.get(MerchantStore, step_store["storeDbId"])
        assert store.store_name == "Cafe X"
        assert store.approval_status == ApprovalStatus.DRAFT
        assert row.store_id == store.id

    async def test_address_save_updates_same_draft(self, db_session, save):
        first = await save(currentStep=1, formDataPatch={"step1": STEP1})
        draft_id = first.form_data["step_store"]["storeDbId"]

        row = await save(currentStep=2, nextStep=3, formDataPatch={"step2": STEP2})

        assert row.id == first.id
        assert row.step_1_completed and row.step_2_completed
        assert row.completed_steps == 2
        assert row.current_step == 3
        assert row.form_data["step_store"]["storeDbId"] == draft_id
        assert row.form_data["step1"] == STEP1
        assert await _count(db_session, MerchantStore) == 1
        store = await db_session.get(MerchantStore, draft_id)
        assert store.city == "X"
        assert store.current_onboarding_step == 3

    async def test_cleared_document_deletes_blob(self, db_session, save, blob_store):
        await save(currentStep=1, formDataPatch={"step1": STEP1})
        await save(currentStep=2, nextStep=3, formDataPatch={"step2": STEP2})
        row = await save(currentStep=4, formDataPatch={"step4": {"pan_number": "ABCDE1234F", "pan_image_url": PAN_URL}})
        assert blob_store.deleted == []

        row = await save(currentStep=4, formDataPatch={"step4": {"pan_image_url": None}})

        assert blob_store.deleted == ["docs/pan.png"]
        assert row.form_data["step4"] == {"pan_number": "ABCDE1234F", "pan_image_url": None}
        doc = (
            await db_session.execute(
                select(StoreDocument).execution_options(populate_existing=True)
            )
        ).scalar_one()
        assert doc.pan_document_url is None
        assert doc.pan_document_number == "ABCDE1234F"

    async def test_deleted_draft_reads_as_no_progress(self, db_session, save, owner_id, blob_store):
        await save(currentStep=1, formDataPatch={"step1": STEP1})
        await db_session.execute(delete(MerchantStore))

        view = await read_progress(db_session, owner_id, blob_store=blob_store)

        assert view is None


@pytest.mark.integration
@pytest.mark.asyncio
class TestApplyPatch:

    async def test_step_without_store_name_creates_no_draft(self, db_session, save):
        row = await save(currentStep=1, formDataPatch={"step1": {"store_email": "a@b.com"}})

        assert "step_store" not in row.form_data
        assert row.store_id is None
        assert await _count(db_session, MerchantStore) == 0

    async def test_completion_ack_without_progress_creates_nothing(self, db_session, save):
        assert await save(currentStep=9, registrationStatus="COMPLETED") is None
        assert await save(currentStep=9) is None
        assert await _count(db_session, RegistrationProgress) == 0

    async def test_completion_ack_completes_existing_row(self, db_session, save, owner_id):
        await save(currentStep=1, formDataPatch={"step1": STEP1})

        row = await save(currentStep=9, registrationStatus="COMPLETED", formDataPatch={"final": {"agreed": True}})

        assert row.registration_status == RegistrationStatus.COMPLETED
        assert row.step_6_completed is True
        assert row.completed_steps == 6
        assert await find_active_progress(db_session, owner_id) is None

    async def test_mark_step_complete(self, save):
        row = await save(currentStep=3, markStepComplete=True)
        assert row.step_3_completed is True
        assert row.completed_steps == 3

    async def test_menu_sync_only_when_step3_in_patch(self, db_session, save):
        await save(currentStep=1, formDataPatch={"step1": STEP1})
        await save(currentStep=2, formDataPatch={"step2": STEP2})
        await save(currentStep=3, formDataPatch={"step3": {"menuImageUrls": [MENU_URL]}})
        assert await _count(db_session, StoreMediaFile) == 1
        assert await _count(db_session, StoreDocument) == 0

        await save(currentStep=4, formDataPatch={"step4": {"pan_number": "ABCDE1234F"}})

        assert await _count(db_session, StoreMediaFile) == 1
        assert await _count(db_session, StoreDocument) == 1
        assert await _count(db_session, StorePayoutMethod) == 0

    async def test_payout_synced_when_bank_in_patch(self, db_session, save):
        await save(currentStep=1, formDataPatch={"step1": STEP1})
        bank = {
            "payout_method": "upi",
            "upi_id": "asha@upi",
            "upi_qr_screenshot_url": "https://blobs.test/bank/qr.png",
        }

        await save(currentStep=4, formDataPatch={"step4": {"bank": bank}})

        assert await _count(db_session, StorePayoutMethod) == 1

    async def test_profile_synced_from_step5(self, db_session, save):
        first = await save(currentStep=1, formDataPatch={"step1": STEP1})

        await save(currentStep=5, nextStep=6, formDataPatch={"step5": {"is_pure_veg": True}})

        store = await db_session.get(MerchantStore, first.store_id)
        assert store.is_pure_veg is True
        assert store.current_onboarding_step == 6

    async def test_side_table_failure_does_not_block_save(self, save, monkeypatch):
        async def failing_sync(db, blob_store, store_id, step4):
            return SyncResult.failed("documents", RuntimeError("disk full"))

        monkeypatch.setattr(progress_service, "sync_documents", failing_sync)
        await save(currentStep=1, formDataPatch={"step1": STEP1})

        row = await save(currentStep=4, formDataPatch={"step4": {"pan_number": "X"}})

        assert row.form_data["step4"] == {"pan_number": "X"}
        assert row.step_4_completed is True

    async def test_draft_failure_is_surfaced(self, save, monkeypatch):
        async def failing_upsert(*args, **kwargs):
            raise DraftPersistError("database is gone")

        monkeypatch.setattr(progress_service, "upsert_draft_at_step2_plus", failing_upsert)

        with pytest.raises(DraftPersistError):
            await save(currentStep=2, formDataPatch={"step1": STEP1, "step2": STEP2})

    async def test_public_id_taken_by_other_owner_is_reallocated(self, db_session, save):
        db_session.add(MerchantStore(store_id="GMMC5001", owner_id="someone-else", store_name="Other"))
        await db_session.flush()

        row = await save(currentStep=1, formDataPatch={"step1": STEP1})

        assert row.form_data["step_store"]["storePublicId"] == "GMMC5002"

    async def test_deleted_draft_recreated_with_same_public_id(self, db_session, save):
        first = await save(currentStep=1, formDataPatch={"step1": STEP1})
        old_id = first.store_id
        await db_session.execute(delete(MerchantStore))

        row = await save(currentStep=1, formDataPatch={"step1": {"store_name": "Cafe Z"}})

        assert row.form_data["step_store"]["storePublicId"] == "GMMC5001"
        assert row.store_id != old_id
        store = await db_session.get(MerchantStore, row.store_id)
        assert store.store_name == "Cafe Z"

    async def test_hint_selects_matching_row(self, db_session, save, owner_id):
        older = RegistrationProgress(
            owner_id=owner_id,
            form_data={"step_store": {"storeDbId": "a", "storePublicId": "GMMC1001"}},
            created_at=datetime.utcnow() - timedelta(days=1),
        )
        newer = RegistrationProgress(owner_id=owner_id, form_data={})
        db_session.add_all([older, newer])
        await db_session.flush()

        assert await find_active_progress(db_session, owner_id) is newer
        assert await find_active_progress(db_session, owner_id, "GMMC1001") is older
        assert await find_active_progress(db_session, owner_id, "GMMC9999") is newer


@pytest.mark.integration
@pytest.mark.asyncio
class TestReadProgress:

    async def test_force_new_returns_nothing(self, db_session, save, owner_id, blob_store):
        await save(currentStep=1, formDataPatch={"step1": STEP1})

        assert await read_progress(db_session, owner_id, blob_store=blob_store, force_new=True) is None

    async def test_no_progress(self, db_session, owner_id, blob_store):
        assert await read_progress(db_session, owner_id, blob_store=blob_store) is None

    async def test_heals_drifted_flags(self, db_session, owner_id, blob_store):
        row = RegistrationProgress(owner_id=owner_id, current_step=4, form_data={"step5": {}})
        db_session.add(row)
        await db_session.flush()

        view = await read_progress(db_session, owner_id, blob_store=blob_store)

        assert view.row is row
        assert row.step_1_completed and row.step_2_completed and row.step_3_completed
        assert row.step_4_completed is False
        assert row.step_5_completed is True
        assert row.completed_steps == 4

    async def test_blob_references_refreshed(self, db_session, owner_id, blob_store):
        form_data = {
            "step3": {"menuImageUrls": [MENU_URL], "menuSpreadsheetUrl": None},
            "step4": {"pan_image_url": PAN_URL, "bank": {"upi_qr_screenshot_url": "bank/qr.png"}},
            "step5": {"logo_url": "logos/l.png", "gallery_image_urls": ["gallery/1.jpg"]},
        }
        db_session.add(RegistrationProgress(owner_id=owner_id, current_step=5, form_data=form_data))
        await db_session.flush()

        view = await read_progress(db_session, owner_id, blob_store=blob_store)

        ttl = settings.signed_url_ttl_seconds
        assert view.form_data["step4"]["pan_image_url"] == f"https://signed.test/docs/pan.png?ttl={ttl}"
        assert view.form_data["step4"]["bank"]["upi_qr_screenshot_url"] == f"https://signed.test/bank/qr.png?ttl={ttl}"
        assert view.form_data["step5"]["logo_url"] == f"https://signed.test/logos/l.png?ttl={ttl}"
        assert view.form_data["step5"]["gallery_image_urls"] == [f"https://signed.test/gallery/1.jpg?ttl={ttl}"]
        assert view.form_data["step3"]["menuImageUrls"] == [f"{settings.media_proxy_path}?key=menu%2Fa.jpg"]
        assert view.form_data["step3"]["menuSpreadsheetUrl"] is None
        # Stored document untouched
        assert view.row.form_data["step4"]["pan_image_url"] == PAN_URL

    async def test_signing_failure_falls_back_to_proxy(self, db_session, owner_id, blob_store):
        blob_store.fail_signing = True
        db_session.add(RegistrationProgress(owner_id=owner_id, form_data={"step4": {"pan_image_url": PAN_URL}}))
        await db_session.flush()

        view = await read_progress(db_session, owner_id, blob_store=blob_store)

        assert view.form_data["step4"]["pan_image_url"] == f"{settings.media_proxy_path}?key=docs%2Fpan.png"

    async def test_finished_rows_are_not_resumed(self, db_session, owner_id, blob_store):
        db_session.add_all([
            RegistrationProgress(owner_id=owner_id, current_step=9),
            RegistrationProgress(owner_id=owner_id, registration_status=RegistrationStatus.COMPLETED),
        ])
        await db_session.flush()

        assert await read_progress(db_session, owner_id, blob_store=blob_store) is None


@pytest.mark.integration
@pytest.mark.asyncio
class TestCleanupStaleProgress:

    def _store(self, db, owner_id, approval, step):
        db.add(MerchantStore(
            store_id=f"GMMC{1000 + step}{owner_id[-1]}",
            owner_id=owner_id,
            store_name="S",
            approval_status=approval,
            current_onboarding_step=step,
        ))

    async def test_completes_rows_of_finished_owners(self, db_session):
        self._store(db_session, "owner-a", ApprovalStatus.APPROVED, 9)
        db_session.add(RegistrationProgress(owner_id="owner-a"))
        await db_session.flush()

        assert await cleanup_stale_progress(db_session) == 1
        row = (await db_session.execute(select(RegistrationProgress))).scalar_one()
        assert row.registration_status == RegistrationStatus.COMPLETED

    async def test_keeps_rows_while_a_store_is_incomplete(self, db_session):
        self._store(db_session, "owner-b", ApprovalStatus.APPROVED, 9)
        self._store(db_session, "owner-b", ApprovalStatus.DRAFT, 4)
        self._store(db_session, "owner-c", ApprovalStatus.SUBMITTED, 7)
        db_session.add_all([RegistrationProgress(owner_id="owner-b"), RegistrationProgress(owner_id="owner-c")])
        await db_session.flush()

        assert await cleanup_stale_progress(db_session) == 0

    async def test_skips_owners_without_stores_and_linked_rows(self, db_session):
        self._store(db_session, "owner-d", ApprovalStatus.APPROVED, 9)
        db_session.add_all([
            RegistrationProgress(owner_id="owner-e"),
            RegistrationProgress(owner_id="owner-d", store_id="linked"),
        ])
        await db_session.flush()

        assert await cleanup_stale_progress(db_session) == 0

    async def test_mixed_owners_in_one_pass(self, db_session):
        self._store(db_session, "owner-f", ApprovalStatus.APPROVED, 9)
        self._store(db_session, "owner-g", ApprovalStatus.APPROVED, 9)
        self._store(db_session, "owner-g", ApprovalStatus.APPROVED, 6)
        self._store(db_session, "owner-h", ApprovalStatus.SUBMITTED, 9)
        db_session.add_all([
            RegistrationProgress(owner_id="owner-f"),
            RegistrationProgress(owner_id="owner-f"),
            RegistrationProgress(owner_id="owner-g"),
            RegistrationProgress(owner_id="owner-h"),
        ])
        await db_session.flush()

        assert await cleanup_stale_progress(db_session) == 3
        rows = (await db_session.execute(select(RegistrationProgress))).scalars().all()
        completed = sorted(r.owner_id for r in rows if r.registration_status == RegistrationStatus.COMPLETED)
        assert completed == ["owner-f", "owner-f", "owner-h"]
