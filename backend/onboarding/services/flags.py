"""Completion-flag reconciliation for the six tracked wizard steps.

Flags are derived, never trusted: reaching step K implies steps 1..K-1
are done, and a saved payload for a step implies that step is done.
Flags only move false -> true. The same function runs on every read (to
heal rows written by older code) and on every write.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

FLAG_COUNT = 6
STEP_FLAG_KEYS = tuple(f"step_{i}_completed" for i in range(1, FLAG_COUNT + 1))

# Document section whose presence marks each flag complete
DOCUMENT_SECTIONS = {
    1: "step1",
    2: "step2",
    3: "step3",
    4: "step4",
    5: "step5",
    6: "final",
}


@dataclass(frozen=True)
class ReconciledFlags:
    flags: tuple[bool, ...]

    @property
    def count(self) -> int:
        return sum(1 for f in self.flags if f)

    def is_complete(self, step: int) -> bool:
        return self.flags[step - 1]

    def as_columns(self) -> dict[str, Any]:
        """Column values for a RegistrationProgress row."""
        columns: dict[str, Any] = dict(zip(STEP_FLAG_KEYS, self.flags))
        columns["completed_steps"] = self.count
        return columns

    def differs_from(self, row: Any) -> bool:
        if getattr(row, "completed_steps", None) != self.count:
            return True
        return any(
            bool(getattr(row, key, False)) != value
            for key, value in zip(STEP_FLAG_KEYS, self.flags)
        )


def read_flags(row: Any) -> list[bool]:
    """Current flag vector of a row (or mapping); missing flags read as False."""
    if row is None:
        return [False] * FLAG_COUNT
    if isinstance(row, Mapping):
        return [bool(row.get(key)) for key in STEP_FLAG_KEYS]
    return [bool(getattr(row, key, False)) for key in STEP_FLAG_KEYS]


def _section_present(value: Any) -> bool:
    # An empty section still counts as saved
    return isinstance(value, dict) or bool(value)


def reconcile_flags(
    existing_flags: Any,
    existing_current_step: int | None,
    new_current_step: int,
    merged_document: Mapping[str, Any] | None,
    explicit_complete: bool = False,
) -> ReconciledFlags:
    flags = read_flags(existing_flags)

    max_reached = max(existing_current_step or 1, new_current_step)
    for step in range(1, min(max_reached, FLAG_COUNT + 1)):
        flags[step - 1] = True

    document = merged_document or {}
    for step, section in DOCUMENT_SECTIONS.items():
        if _section_present(document.get(section)):
            flags[step - 1] = True

    if explicit_complete and 1 <= new_current_step <= FLAG_COUNT:
        flags[new_current_step - 1] = True

    return ReconciledFlags(flags=tuple(flags))
