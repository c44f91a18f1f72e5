"""Step-5 store profile sync: profile columns on the draft plus opening hours."""

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.models.merchant_store import MerchantStore
from onboarding.models.store_operating_hours import StoreOperatingHours
from onboarding.services.results import SyncResult

logger = logging.getLogger(__name__)

OPERATION = "store_profile"

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


def profile_values(step5: dict) -> dict:
    gallery = step5.get("gallery_image_urls")
    prep_time = step5.get("avg_preparation_time_minutes")
    min_order = step5.get("min_order_amount")
    return {
        "cuisine_types": step5.get("cuisine_types") or [],
        "food_categories": step5.get("food_categories") or [],
        "avg_preparation_time_minutes": 30 if prep_time is None else prep_time,
        "min_order_amount": 0 if min_order is None else min_order,
        "delivery_radius_km": step5.get("delivery_radius_km"),
        "is_pure_veg": bool(step5.get("is_pure_veg")),
        "accepts_online_payment": step5.get("accepts_online_payment") is not False,
        "accepts_cash": step5.get("accepts_cash") is not False,
        "logo_url": step5.get("logo_url") or None,
        "banner_url": step5.get("banner_url") or None,
        "gallery_images": gallery if isinstance(gallery, list) else None,
    }


def parse_minutes(value) -> int | None:
    """"HH:MM" -> minutes since midnight."""
    if not value:
        return None
    parts = str(value).split(":")
    if len(parts) < 2:
        return None
    try:
        return int(parts[0]) * 60 + int(parts[1])
    except ValueError:
        return None


def _time_or_none(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _span(start, end) -> int:
    s, e = parse_minutes(start), parse_minutes(end)
    if s is None or e is None or e <= s:
        return 0
    return e - s


def day_schedule(day) -> dict:
    """Normalize one weekday; `open`/`close` are accepted for slot 1."""
    day = day if isinstance(day, dict) else {}
    closed = bool(day.get("closed"))
    slot1_open = day.get("slot1_open", day.get("open"))
    slot1_close = day.get("slot1_close", day.get("close"))
    slot2_open = day.get("slot2_open")
    slot2_close = day.get("slot2_close")

    if closed:
        slots = (None, None, None, None)
        duration = 0
    else:
        slots = tuple(_time_or_none(v) for v in (slot1_open, slot1_close, slot2_open, slot2_close))
        duration = _span(slot1_open, slot1_close) + _span(slot2_open, slot2_close)

    return {
        "open": bool(slots[0] and slots[1]),
        "closed": closed,
        "slot1_start": slots[0],
        "slot1_end": slots[1],
        "slot2_start": slots[2],
        "slot2_end": slots[3],
        "duration": duration,
    }


def build_operating_hours(store_id: str, store_hours) -> dict:
    hours = store_hours if isinstance(store_hours, dict) else {}
    schedule = {day: day_schedule(hours.get(day)) for day in WEEKDAYS}
    days = list(schedule.values())
    return {
        "store_id": store_id,
        "schedule": schedule,
        "closed_days": [day for day in WEEKDAYS if schedule[day]["closed"]],
        "same_for_all_days": all(d == days[0] for d in days[1:]),
        "is_24_hours": all(
            not d["closed"]
            and d["slot1_start"] == "00:00"
            and d["slot1_end"] == "23:59"
            and not d["slot2_start"]
            and not d["slot2_end"]
            for d in days
        ),
    }


async def sync_store_profile(
    db: AsyncSession,
    store_id: str,
    step5: dict | None,
    next_step: int,
) -> SyncResult:
    """Copy step 5 onto the store row and upsert its opening hours. Never raises."""
    step5 = step5 or {}
    hours_row = build_operating_hours(store_id, step5.get("store_hours"))
    try:
        async with db.begin_nested():
            store = await db.get(MerchantStore, store_id)
            if store is None:
                logger.warning(f"Store profile sync skipped, store {store_id} not found")
                return SyncResult(operation=OPERATION)

            for key, value in profile_values(step5).items():
                setattr(store, key, value)
            store.current_onboarding_step = next_step

            hours = (
                await db.execute(
                    select(StoreOperatingHours).where(StoreOperatingHours.store_id == store_id)
                )
            ).scalar_one_or_none()
            if hours is None:
                db.add(StoreOperatingHours(**hours_row))
            else:
                for key, value in hours_row.items():
                    setattr(hours, key, value)
            await db.flush()

        return SyncResult(operation=OPERATION, changed=True)
    except SQLAlchemyError as e:
        logger.exception(f"Store profile sync failed for store {store_id}")
        return SyncResult.failed(OPERATION, e)
