"""Tests for the progress request schema."""

import pytest
from pydantic import ValidationError

from onboarding.models.registration_progress import RegistrationStatus
from onboarding.schemas.progress import ProgressUpdateRequest, clamp_step


@pytest.mark.unit
class TestStepClamping:

    @pytest.mark.parametrize("raw,expected", [
        (1, 1), (5, 5), (0, 1), (-3, 1), (12, 9), ("4", 4), ("abc", 1), (None, 1), (3.7, 3),
    ])
    def test_clamp_step(self, raw, expected):
        assert clamp_step(raw, 1) == expected

    def test_next_step_defaults_to_current(self):
        body = ProgressUpdateRequest.model_validate({"currentStep": 3})
        assert body.current_step == 3
        assert body.next_step == 3

    def test_non_numeric_next_step_defaults_to_current(self):
        body = ProgressUpdateRequest.model_validate({"currentStep": 2, "nextStep": "later"})
        assert body.next_step == 2

    def test_steps_clamped(self):
        body = ProgressUpdateRequest.model_validate({"currentStep": 0, "nextStep": 42})
        assert body.current_step == 1
        assert body.next_step == 9


@pytest.mark.unit
class TestProgressUpdateRequest:

    def test_camel_case_body(self):
        body = ProgressUpdateRequest.model_validate({
            "currentStep": 2,
            "markStepComplete": True,
            "registrationStatus": "COMPLETED",
            "storePublicIdHint": "GMMC1001",
            "formDataPatch": {"step1": {"store_name": "Cafe X"}},
        })
        assert body.mark_step_complete is True
        assert body.registration_status == RegistrationStatus.COMPLETED
        assert body.store_public_id_hint == "GMMC1001"

    def test_store_public_id_accepted_as_hint(self):
        body = ProgressUpdateRequest.model_validate({"storePublicId": "GMMC1002"})
        assert body.store_public_id_hint == "GMMC1002"

    def test_patch_keeps_explicit_nulls_and_drops_omitted(self):
        body = ProgressUpdateRequest.model_validate({
            "formDataPatch": {"step4": {"pan_image_url": None, "pan_number": "ABCDE1234F"}},
        })
        assert body.form_data_patch_dict() == {
            "step4": {"pan_image_url": None, "pan_number": "ABCDE1234F"},
        }

    def test_patch_menu_keys_keep_client_names(self):
        body = ProgressUpdateRequest.model_validate({
            "formDataPatch": {"step3": {"menuImageUrls": ["menu/a.jpg"], "menuSpreadsheetUrl": None}},
        })
        assert body.form_data_patch_dict() == {
            "step3": {"menuImageUrls": ["menu/a.jpg"], "menuSpreadsheetUrl": None},
        }

    def test_unknown_fields_round_trip(self):
        body = ProgressUpdateRequest.model_validate({
            "formDataPatch": {"step1": {"store_name": "A", "gstin_verified": True}, "step6": {"x": 1}},
        })
        patch = body.form_data_patch_dict()
        assert patch["step1"]["gstin_verified"] is True
        assert patch["step6"] == {"x": 1}

    def test_numbers_accepted_for_text_fields(self):
        body = ProgressUpdateRequest.model_validate({
            "formDataPatch": {"step2": {"postal_code": 411001}},
        })
        assert body.form_data_patch_dict()["step2"]["postal_code"] == "411001"

    def test_client_step_store_ignored(self):
        body = ProgressUpdateRequest.model_validate({
            "formDataPatch": {"step_store": {"storeDbId": "x", "storePublicId": "GMMC9999"}},
        })
        assert body.form_data_patch_dict() == {}

    def test_null_patch_is_empty(self):
        body = ProgressUpdateRequest.model_validate({"formDataPatch": None})
        assert body.form_data_patch_dict() == {}

    def test_malformed_step_rejected(self):
        with pytest.raises(ValidationError):
            ProgressUpdateRequest.model_validate({"formDataPatch": {"step1": "Cafe X"}})

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationError):
            ProgressUpdateRequest.model_validate({"registrationStatus": "DONE"})
