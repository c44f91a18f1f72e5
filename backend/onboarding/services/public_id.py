"""Store public id allocation (GMMC1001, GMMC1002, ...).

Primary path: an atomic database sequence.
Fallback (sequence missing or failing): scan every assigned public id,
both in merchant_stores and in the step_store section of in-flight
progress documents, and take max + 1.

The fallback is not safe under concurrency; two requests can compute the
same id. Draft creation is insert-or-fetch on the unique store_id column,
which is what actually prevents duplicate rows.
"""

from __future__ import annotations

import logging
import re
from typing import Protocol

from sqlalchemy import select, text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.config import settings
from onboarding.models.merchant_store import MerchantStore
from onboarding.models.registration_progress import RegistrationProgress

logger = logging.getLogger(__name__)


class SequenceUnavailableError(Exception):
    """The atomic sequence could not produce a value."""


class SequenceService(Protocol):
    async def next_value(self, name: str) -> int: ...


class PostgresSequence:
    """nextval() on a PostgreSQL sequence, isolated in a savepoint.

    A failing statement aborts the surrounding PostgreSQL transaction, so
    the call runs inside a SAVEPOINT that is rolled back on error.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def next_value(self, name: str) -> int:
        try:
            async with self.db.begin_nested():
                result = await self.db.execute(text("SELECT nextval(:name)"), {"name": name})
                return int(result.scalar_one())
        except DBAPIError as e:
            raise SequenceUnavailableError(f"nextval({name}) failed: {e}") from e


def default_sequence(db: AsyncSession) -> SequenceService | None:
    """The atomic sequence for this session's database, if it has one."""
    if db.bind is not None and db.bind.dialect.name == "postgresql":
        return PostgresSequence(db)
    return None


def format_public_id(number: int) -> str:
    return f"{settings.store_public_id_prefix}{number}"


def parse_public_id(public_id: object) -> int | None:
    """Numeric suffix of a public id, or None if it doesn't match the pattern."""
    if not isinstance(public_id, str):
        return None
    match = re.fullmatch(rf"{re.escape(settings.store_public_id_prefix)}(\d+)", public_id)
    return int(match.group(1)) if match else None


async def _scan_next_public_id(db: AsyncSession) -> str:
    max_num = settings.store_public_id_floor

    result = await db.execute(select(MerchantStore.store_id))
    for (public_id,) in result.all():
        num = parse_public_id(public_id)
        if num is not None:
            max_num = max(max_num, num)

    result = await db.execute(select(RegistrationProgress.form_data))
    for (form_data,) in result.all():
        step_store = (form_data or {}).get("step_store") if isinstance(form_data, dict) else None
        if isinstance(step_store, dict):
            num = parse_public_id(step_store.get("storePublicId"))
            if num is not None:
                max_num = max(max_num, num)

    return format_public_id(max_num + 1)


async def allocate_public_id(
    db: AsyncSession,
    sequence: SequenceService | None = None,
) -> str:
    """Allocate the next store public id.

    Args:
        db: Database session
        sequence: Atomic sequence; defaults to the database's own when it has one

    Returns:
        Public id string, e.g. "GMMC1042"
    """
    if sequence is None:
        sequence = default_sequence(db)

    if sequence is not None:
        try:
            value = await sequence.next_value(settings.store_public_id_sequence)
            return format_public_id(value)
        except SequenceUnavailableError as e:
            logger.warning(f"Public id sequence unavailable, scanning instead: {e}")

    public_id = await _scan_next_public_id(db)
    logger.info(f"Allocated public id {public_id} by scan")
    return public_id
