"""Operator group (queue) store and membership."""
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import RecordNotFoundError, translate_store_error
from app.models.operator_group import OperatorGroup, OperatorGroupMember
from app.models.user import User
from app.schemas.operator_group import OperatorGroupIn, OperatorGroupUpdate, normalize_group_key
from app.services import audit as audit_svc
from app.services import system_settings as settings_svc

logger = logging.getLogger(__name__)

GROUP_FIELDS = ("group_key", "name", "description", "is_active")


async def _commit(db: AsyncSession, conflict_message: str) -> None:
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise translate_store_error(exc, conflict_message) from exc


async def list_groups(db: AsyncSession, active_only: bool = False) -> list[OperatorGroup]:
    stmt = select(OperatorGroup)
    if active_only:
        stmt = stmt.where(OperatorGroup.is_active.is_(True))
    result = await db.execute(stmt.order_by(OperatorGroup.name))
    return list(result.scalars().all())


async def get_group(db: AsyncSession, group_id: uuid.UUID) -> OperatorGroup:
    result = await db.execute(select(OperatorGroup).where(OperatorGroup.id == group_id))
    group = result.scalar_one_or_none()
    if group is None:
        raise RecordNotFoundError("Operator group not found")
    return group


async def create_group(db: AsyncSession, data: OperatorGroupIn, actor) -> OperatorGroup:
    group = OperatorGroup(
        group_key=normalize_group_key(data.group_key),
        name=data.name,
        description=data.description,
        is_active=data.is_active,
    )
    db.add(group)
    conflict = f"An operator group with key '{group.group_key}' already exists"
    try:
        await db.flush()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise translate_store_error(exc, conflict) from exc

    audit_svc.log(
        db,
        action="operator_group.created",
        entity_type="operator_group",
        entity_id=group.id,
        actor_id=actor.id,
        actor_email=actor.email,
        after=audit_svc.snapshot(group, GROUP_FIELDS),
    )
    await _commit(db, conflict)
    await db.refresh(group)
    return group


async def update_group(db: AsyncSession, group_id: uuid.UUID, patch: OperatorGroupUpdate, actor) -> OperatorGroup:
    group = await get_group(db, group_id)
    before = audit_svc.snapshot(group, GROUP_FIELDS)

    if patch.group_key is not None:
        group.group_key = normalize_group_key(patch.group_key)
    if patch.name is not None:
        group.name = patch.name
    if "description" in patch.model_fields_set:
        group.description = patch.description
    if patch.is_active is not None:
        group.is_active = patch.is_active

    audit_svc.log(
        db,
        action="operator_group.updated",
        entity_type="operator_group",
        entity_id=group.id,
        actor_id=actor.id,
        actor_email=actor.email,
        before=before,
        after=audit_svc.snapshot(group, GROUP_FIELDS),
    )
    await _commit(db, f"An operator group with key '{group.group_key}' already exists")
    await db.refresh(group)
    return group


async def delete_group(db: AsyncSession, group_id: uuid.UUID, actor) -> None:
    """Rules and tickets pointing at the group fall back to unassigned (FK ON DELETE SET NULL).

    If the group is the default queue, that setting is cleared in the same
    transaction so unmatched tickets are left unassigned.
    """
    group = await get_group(db, group_id)
    before = audit_svc.snapshot(group, GROUP_FIELDS)
    was_default = await settings_svc.clear_default_group(db, group_id)
    await db.delete(group)
    audit_svc.log(
        db,
        action="operator_group.deleted",
        entity_type="operator_group",
        entity_id=group_id,
        actor_id=actor.id,
        actor_email=actor.email,
        before=before,
        notes="Default queue setting cleared" if was_default else None,
    )
    await _commit(db, "Operator group is still referenced")
    logger.info("Operator group %s deleted by %s", before["group_key"], actor.email)


# ─── Members ───

async def list_members(db: AsyncSession, group_id: uuid.UUID) -> list[OperatorGroupMember]:
    await get_group(db, group_id)
    result = await db.execute(
        select(OperatorGroupMember)
        .where(OperatorGroupMember.group_id == group_id)
        .order_by(OperatorGroupMember.created_at)
    )
    return list(result.scalars().all())


async def add_member(db: AsyncSession, group_id: uuid.UUID, user_id: uuid.UUID, actor) -> OperatorGroupMember:
    await get_group(db, group_id)
    found = await db.execute(select(User.id).where(User.id == user_id, User.deleted_at.is_(None)))
    if found.scalar_one_or_none() is None:
        raise RecordNotFoundError("User not found")

    member = OperatorGroupMember(group_id=group_id, user_id=user_id)
    db.add(member)
    audit_svc.log(
        db,
        action="operator_group.member_added",
        entity_type="operator_group",
        entity_id=group_id,
        actor_id=actor.id,
        actor_email=actor.email,
        after={"user_id": user_id},
    )
    await _commit(db, "User is already a member of this group")
    await db.refresh(member)
    return member


async def remove_member(db: AsyncSession, group_id: uuid.UUID, user_id: uuid.UUID, actor) -> None:
    result = await db.execute(
        select(OperatorGroupMember).where(
            OperatorGroupMember.group_id == group_id,
            OperatorGroupMember.user_id == user_id,
        )
    )
    member = result.scalar_one_or_none()
    if member is None:
        raise RecordNotFoundError("Membership not found")
    await db.delete(member)
    audit_svc.log(
        db,
        action="operator_group.member_removed",
        entity_type="operator_group",
        entity_id=group_id,
        actor_id=actor.id,
        actor_email=actor.email,
        before={"user_id": user_id},
    )
    await _commit(db, "Membership changed concurrently; retry")
