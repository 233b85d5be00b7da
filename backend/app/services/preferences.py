"""Per-user UI preferences, loaded once per session by the frontend."""
import uuid

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import RuleValidationError, translate_store_error
from app.models.user_preference import UserPreference
from app.schemas.preferences import UserPreferencesIn, UserPreferencesOut


def move_item(order: list[str], item: str, to_index: int) -> list[str]:
    """Return a copy of ``order`` with ``item`` moved to ``to_index``.

    Negative or oversized indexes are clamped to the ends of the list.
    Raises ValueError if the item is not in the list.
    """
    if item not in order:
        raise ValueError(f"'{item}' is not in the sidebar")
    remaining = [x for x in order if x != item]
    to_index = max(0, min(to_index, len(remaining)))
    return remaining[:to_index] + [item] + remaining[to_index:]


def _dedupe(items: list[str]) -> list[str]:
    return list(dict.fromkeys(items))


async def _get_row(db: AsyncSession, user_id: uuid.UUID) -> UserPreference | None:
    result = await db.execute(select(UserPreference).where(UserPreference.user_id == user_id))
    return result.scalar_one_or_none()


def _to_out(row: UserPreference | None) -> UserPreferencesOut:
    if row is None:
        return UserPreferencesOut()
    return UserPreferencesOut(
        sidebar_order=list(row.sidebar_order or []),
        hidden_widgets=list(row.hidden_widgets or []),
        widget_settings=dict(row.widget_settings or {}),
    )


async def get_preferences(db: AsyncSession, user_id: uuid.UUID) -> UserPreferencesOut:
    return _to_out(await _get_row(db, user_id))


async def save_preferences(db: AsyncSession, user_id: uuid.UUID, data: UserPreferencesIn) -> UserPreferencesOut:
    row = await _get_row(db, user_id)
    if row is None:
        row = UserPreference(user_id=user_id)
        db.add(row)
    row.sidebar_order = _dedupe(data.sidebar_order)
    row.hidden_widgets = _dedupe(data.hidden_widgets)
    row.widget_settings = data.widget_settings
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise translate_store_error(exc, "Preferences were saved concurrently; retry") from exc
    return _to_out(row)


async def move_sidebar_item(db: AsyncSession, user_id: uuid.UUID, item: str, to_index: int) -> UserPreferencesOut:
    current = await get_preferences(db, user_id)
    try:
        new_order = move_item(current.sidebar_order, item, to_index)
    except ValueError as exc:
        raise RuleValidationError(str(exc)) from exc
    current.sidebar_order = new_order
    return await save_preferences(db, user_id, UserPreferencesIn(**current.model_dump()))
