"""Pydantic schemas for registration progress.

Every step schema uses Optional fields so partial saves work, and allows
extra keys so newer client fields round-trip untouched. Explicit nulls
are kept (they clear a value); omitted fields are left out of the patch.
"""

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from onboarding.models.registration_progress import TOTAL_STEPS, RegistrationStatus

STEP_CONFIG = ConfigDict(extra="allow", populate_by_name=True, coerce_numbers_to_str=True)


# ── Step 1: Store identity ──────────────────────────────────

class Step1Data(BaseModel):
    model_config = STEP_CONFIG

    store_name: str | None = None
    store_display_name: str | None = None
    store_description: str | None = None
    store_type: str | None = None
    custom_store_type: str | None = None
    store_email: str | None = None
    store_phones: list[str] | None = None


# ── Step 2: Address ─────────────────────────────────────────

class Step2Data(BaseModel):
    model_config = STEP_CONFIG

    full_address: str | None = None
    landmark: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str | None = None
    latitude: float | None = None
    longitude: float | None = None


# ── Step 3: Menu reference files ────────────────────────────

class Step3Data(BaseModel):
    model_config = STEP_CONFIG

    menu_image_urls: list[str] | None = Field(None, alias="menuImageUrls")
    menu_spreadsheet_url: str | None = Field(None, alias="menuSpreadsheetUrl")


# ── Step 4: Documents + payout ──────────────────────────────

class BankDetails(BaseModel):
    model_config = STEP_CONFIG

    payout_method: str | None = None
    account_holder_name: str | None = None
    account_number: str | None = None
    ifsc_code: str | None = None
    bank_name: str | None = None
    branch_name: str | None = None
    account_type: str | None = None
    bank_proof_type: str | None = None
    bank_proof_file_url: str | None = None
    upi_id: str | None = None
    upi_qr_screenshot_url: str | None = None


class Step4Data(BaseModel):
    model_config = STEP_CONFIG

    pan_number: str | None = None
    pan_holder_name: str | None = None
    pan_image_url: str | None = None
    aadhar_number: str | None = None
    aadhar_holder_name: str | None = None
    aadhar_front_url: str | None = None
    aadhar_back_url: str | None = None
    gst_number: str | None = None
    gst_image_url: str | None = None
    fssai_number: str | None = None
    fssai_image_url: str | None = None
    fssai_expiry_date: str | None = None
    drug_license_number: str | None = None
    drug_license_image_url: str | None = None
    drug_license_expiry_date: str | None = None
    pharmacist_registration_number: str | None = None
    pharmacist_certificate_url: str | None = None
    pharmacist_expiry_date: str | None = None
    pharmacy_council_registration_url: str | None = None
    other_document_type: str | None = None
    other_document_number: str | None = None
    other_document_file_url: str | None = None
    other_document_expiry_date: str | None = None
    bank: BankDetails | None = None


# ── Step 5: Store profile + hours ───────────────────────────

class DayHours(BaseModel):
    model_config = STEP_CONFIG

    closed: bool | None = None
    slot1_open: str | None = None
    slot1_close: str | None = None
    slot2_open: str | None = None
    slot2_close: str | None = None


class Step5Data(BaseModel):
    model_config = STEP_CONFIG

    cuisine_types: list[str] | None = None
    food_categories: list[str] | None = None
    avg_preparation_time_minutes: int | None = None
    min_order_amount: float | None = None
    delivery_radius_km: float | None = None
    is_pure_veg: bool | None = None
    accepts_online_payment: bool | None = None
    accepts_cash: bool | None = None
    logo_url: str | None = None
    banner_url: str | None = None
    gallery_image_urls: list[str] | None = None
    store_hours: dict[str, DayHours] | None = None


class FinalData(BaseModel):
    model_config = STEP_CONFIG


class FormDataPatch(BaseModel):
    model_config = ConfigDict(extra="allow")

    step1: Step1Data | None = None
    step2: Step2Data | None = None
    step3: Step3Data | None = None
    step4: Step4Data | None = None
    step5: Step5Data | None = None
    final: FinalData | None = None


# ── Requests / responses ────────────────────────────────────

def clamp_step(value, default):
    """Coerce a step number into [1, TOTAL_STEPS]; non-numeric -> default."""
    if value is None or isinstance(value, bool):
        return default
    try:
        step = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default
    return min(max(step, 1), TOTAL_STEPS)


class ProgressUpdateRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    current_step: int = 1
    next_step: int | None = None
    mark_step_complete: bool = False
    form_data_patch: FormDataPatch = Field(default_factory=FormDataPatch)
    registration_status: RegistrationStatus = RegistrationStatus.IN_PROGRESS
    store_public_id_hint: str | None = Field(
        None,
        validation_alias=AliasChoices("storePublicIdHint", "storePublicId", "store_public_id_hint"),
    )

    @field_validator("current_step", mode="before")
    @classmethod
    def _clamp_current(cls, v):
        return clamp_step(v, 1)

    @field_validator("next_step", mode="before")
    @classmethod
    def _clamp_next(cls, v):
        return clamp_step(v, None)

    @field_validator("form_data_patch", mode="before")
    @classmethod
    def _null_patch(cls, v):
        return {} if v is None else v

    @model_validator(mode="after")
    def _default_next_step(self):
        if self.next_step is None:
            self.next_step = self.current_step
        return self

    def form_data_patch_dict(self) -> dict:
        """The patch as a plain dict, keyed the way the document stores it.

        step_store is owned by the server and never taken from the client.
        """
        patch = self.form_data_patch.model_dump(exclude_unset=True, by_alias=True)
        patch.pop("step_store", None)
        return patch


class ProgressOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    store_id: str | None = None
    current_step: int
    total_steps: int
    step_1_completed: bool
    step_2_completed: bool
    step_3_completed: bool
    step_4_completed: bool
    step_5_completed: bool
    step_6_completed: bool
    completed_steps: int
    form_data: dict
    registration_status: RegistrationStatus
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ProgressResponse(BaseModel):
    success: bool = True
    progress: ProgressOut | None = None
