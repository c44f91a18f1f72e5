"""Result values shared by the onboarding services.

Draft creation reports whether it inserted a new row or found one that
already existed (insert-or-fetch). Side-table synchronizers report
recoverable failures as values; the orchestrator logs and discards them.
Fatal failures are exceptions (see onboarding.middleware.exceptions).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class DraftRef:
    """Pointer to a store draft, as stored in form_data.step_store."""
    store_db_id: str
    store_public_id: str

    def as_step_store(self) -> dict:
        return {"storeDbId": self.store_db_id, "storePublicId": self.store_public_id}

    @classmethod
    def from_step_store(cls, step_store) -> DraftRef | None:
        if not isinstance(step_store, dict):
            return None
        db_id = step_store.get("storeDbId")
        public_id = step_store.get("storePublicId")
        if not db_id or not public_id:
            return None
        return cls(store_db_id=str(db_id), store_public_id=str(public_id))


@dataclass(frozen=True)
class Inserted:
    draft: DraftRef


@dataclass(frozen=True)
class FoundExisting:
    draft: DraftRef


DraftOutcome = Union[Inserted, FoundExisting]


@dataclass(frozen=True)
class RecoverableError:
    operation: str
    message: str


@dataclass(frozen=True)
class SyncResult:
    """Outcome of one side-table sync. `error` is None on success."""
    operation: str
    changed: bool = False
    error: RecoverableError | None = None
    orphaned_blobs: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failed(cls, operation: str, exc: Exception) -> SyncResult:
        return cls(operation=operation, error=RecoverableError(operation, str(exc)))
