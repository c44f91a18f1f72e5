"""Tests for completion-flag reconciliation."""

import itertools

import pytest

from onboarding.services.flags import FLAG_COUNT, read_flags, reconcile_flags


@pytest.mark.unit
class TestReconcileFlags:

    def test_reaching_step_heals_earlier_steps(self):
        result = reconcile_flags(None, None, 4, {})

        assert result.flags == (True, True, True, False, False, False)
        assert result.count == 3

    def test_existing_step_counts_toward_max_reached(self):
        result = reconcile_flags(None, 5, 2, {})
        assert result.flags[:4] == (True, True, True, True)
        assert not result.flags[4]

    def test_document_section_marks_step(self):
        result = reconcile_flags(None, 1, 1, {"step2": {"city": "X"}})

        assert result.is_complete(2)
        assert not result.is_complete(1)

    def test_empty_section_still_counts(self):
        assert reconcile_flags(None, 1, 1, {"step3": {}}).is_complete(3)

    def test_null_section_does_not_count(self):
        assert not reconcile_flags(None, 1, 1, {"step3": None}).is_complete(3)

    def test_final_section_marks_sixth_flag(self):
        assert reconcile_flags(None, 1, 1, {"final": {"agreed": True}}).is_complete(6)

    def test_explicit_complete_marks_current_step(self):
        result = reconcile_flags(None, 1, 3, {}, explicit_complete=True)
        assert result.is_complete(3)
        assert result.count == 3

    def test_explicit_complete_beyond_tracked_steps_is_ignored(self):
        result = reconcile_flags(None, 1, 8, {}, explicit_complete=True)
        assert result.count == FLAG_COUNT

    def test_existing_true_flag_never_cleared(self):
        existing = {"step_5_completed": True}
        result = reconcile_flags(existing, 1, 1, {})
        assert result.is_complete(5)

    def test_flags_are_monotonic(self):
        documents = [{}, {"step1": {}}, {"step4": {"pan": "x"}, "final": {}}]
        for bits in itertools.product([False, True], repeat=FLAG_COUNT):
            existing = {f"step_{i + 1}_completed": bit for i, bit in enumerate(bits)}
            for step, doc, explicit in itertools.product(range(1, 10), documents, [False, True]):
                result = reconcile_flags(existing, step, step, doc, explicit)
                assert all(new or not old for old, new in zip(bits, result.flags))

    def test_as_columns(self):
        columns = reconcile_flags(None, 1, 3, {}).as_columns()
        assert columns["step_1_completed"] is True
        assert columns["step_3_completed"] is False
        assert columns["completed_steps"] == 2

    def test_differs_from_row(self):
        class Row:
            step_1_completed = True
            step_2_completed = False
            step_3_completed = False
            step_4_completed = False
            step_5_completed = False
            step_6_completed = False
            completed_steps = 1

        assert not reconcile_flags(Row, 1, 1, {}).differs_from(Row)
        assert reconcile_flags(Row, 3, 3, {}).differs_from(Row)

    def test_read_flags_missing_row(self):
        assert read_flags(None) == [False] * FLAG_COUNT
