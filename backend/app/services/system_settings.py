"""Key/value system settings (support mailbox, default queue)."""
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from app.core.errors import RuleValidationError, translate_store_error
from app.models.operator_group import OperatorGroup
from app.models.system_setting import SETTING_KEYS, SystemSetting
from app.schemas.system_setting import SystemSettingsOut, SystemSettingsUpdate
from app.services import audit as audit_svc

logger = logging.getLogger(__name__)

DEFAULT_GROUP_KEY = "default_assignment_group_id"


def parse_group_id(value: str | None) -> uuid.UUID | None:
    """Stored group ids are plain strings; garbage is treated as unset."""
    if not value:
        return None
    try:
        return uuid.UUID(value)
    except ValueError:
        logger.warning("Ignoring malformed %s setting: %r", DEFAULT_GROUP_KEY, value)
        return None


def _settings_stmt():
    return select(SystemSetting).where(SystemSetting.key.in_(SETTING_KEYS))


def _to_out(rows) -> SystemSettingsOut:
    values = {row.key: row.value for row in rows}
    return SystemSettingsOut(
        support_mailbox=values.get("support_mailbox"),
        noreply_mailbox=values.get("noreply_mailbox"),
        default_assignment_group_id=parse_group_id(values.get(DEFAULT_GROUP_KEY)),
    )


def get_settings_sync(db: Session) -> SystemSettingsOut:
    return _to_out(db.execute(_settings_stmt()).scalars().all())


async def get_settings(db: AsyncSession) -> SystemSettingsOut:
    result = await db.execute(_settings_stmt())
    return _to_out(result.scalars().all())


# ─── Default queue ───

def _group_exists_stmt(group_id: uuid.UUID):
    return select(OperatorGroup.id).where(OperatorGroup.id == group_id)


async def live_default_group_id(db: AsyncSession) -> uuid.UUID | None:
    """The configured default queue, or None when unset or its group is gone."""
    group_id = (await get_settings(db)).default_assignment_group_id
    if group_id is None:
        return None
    if (await db.execute(_group_exists_stmt(group_id))).scalar_one_or_none() is None:
        logger.warning("Default assignment group %s no longer exists; treating as unset", group_id)
        return None
    return group_id


def live_default_group_id_sync(db: Session) -> uuid.UUID | None:
    group_id = get_settings_sync(db).default_assignment_group_id
    if group_id is None:
        return None
    if db.execute(_group_exists_stmt(group_id)).scalar_one_or_none() is None:
        logger.warning("Default assignment group %s no longer exists; treating as unset", group_id)
        return None
    return group_id


async def clear_default_group(db: AsyncSession, group_id: uuid.UUID) -> bool:
    """Unset the default queue if it names ``group_id``. Staged only; the caller commits."""
    result = await db.execute(select(SystemSetting).where(SystemSetting.key == DEFAULT_GROUP_KEY))
    row = result.scalar_one_or_none()
    if row is None or parse_group_id(row.value) != group_id:
        return False
    row.value = None
    return True


async def update_settings(db: AsyncSession, patch: SystemSettingsUpdate, actor) -> SystemSettingsOut:
    changes = patch.model_dump(exclude_unset=True)
    if not changes:
        return await get_settings(db)
    group_id = changes.get(DEFAULT_GROUP_KEY)
    if group_id is not None:
        found = await db.execute(_group_exists_stmt(group_id))
        if found.scalar_one_or_none() is None:
            raise RuleValidationError(f"Assignment group {group_id} does not exist")

    result = await db.execute(_settings_stmt())
    existing = {row.key: row for row in result.scalars().all()}
    before = {k: row.value for k, row in existing.items()}

    for key, value in changes.items():
        stored = str(value) if value is not None else None
        row = existing.get(key)
        if row is None:
            row = SystemSetting(key=key, value=stored)
            db.add(row)
            existing[key] = row
        else:
            row.value = stored

    audit_svc.log(
        db,
        action="system_settings.updated",
        entity_type="system_settings",
        actor_id=actor.id,
        actor_email=actor.email,
        before=before,
        after={k: row.value for k, row in existing.items()},
    )
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise translate_store_error(exc, "System settings were changed concurrently; retry") from exc
    return _to_out(existing.values())
