"""Desk account administration: requesters, operators and admins."""
import logging
import uuid

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import RecordConflictError, RecordNotFoundError, RuleValidationError, translate_store_error
from app.core.security import hash_password
from app.db.base import utcnow
from app.models.user import User
from app.schemas.admin_user import AdminUserCreate, AdminUserUpdate
from app.services import audit as audit_svc

logger = logging.getLogger(__name__)

USER_FIELDS = ("email", "name", "role", "is_active")


def _live_users():
    return select(User).where(User.deleted_at.is_(None))


async def list_users(
    db: AsyncSession,
    page: int,
    page_size: int,
    role: str | None = None,
    search: str | None = None,
) -> tuple[list[User], int]:
    stmt = _live_users()
    if role:
        stmt = stmt.where(User.role == role)
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(or_(User.email.ilike(pattern), User.name.ilike(pattern)))

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
    result = await db.execute(
        stmt.order_by(User.created_at.desc()).offset((page - 1) * page_size).limit(page_size)
    )
    return list(result.scalars().all()), total


async def get_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    result = await db.execute(_live_users().where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise RecordNotFoundError("User not found")
    return user


async def create_user(db: AsyncSession, data: AdminUserCreate, actor) -> User:
    email = data.email.lower()
    existing = await db.execute(_live_users().where(func.lower(User.email) == email))
    if existing.scalar_one_or_none() is not None:
        raise RecordConflictError("Email already exists")

    user = User(
        email=email,
        name=data.name,
        password_hash=hash_password(data.password),
        role=data.role,
        is_active=True,
    )
    db.add(user)
    try:
        await db.flush()
        audit_svc.log(
            db,
            action="user.created",
            entity_type="user",
            entity_id=user.id,
            actor_id=actor.id,
            actor_email=actor.email,
            after=audit_svc.snapshot(user, USER_FIELDS),
        )
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise translate_store_error(exc, "Email already exists") from exc
    await db.refresh(user)
    logger.info("user %s created with role %s", user.email, user.role)
    return user


def _guard_self_lockout(user: User, actor, role: str | None, is_active: bool | None) -> None:
    """An admin may not demote or disable their own account."""
    if user.id != actor.id:
        return
    if role is not None and role != "ADMIN":
        raise RuleValidationError("You cannot remove your own ADMIN role")
    if is_active is False:
        raise RuleValidationError("You cannot deactivate your own account")


async def update_user(db: AsyncSession, user_id: uuid.UUID, patch: AdminUserUpdate, actor) -> User:
    user = await get_user(db, user_id)
    _guard_self_lockout(user, actor, patch.role, patch.is_active)

    before = audit_svc.snapshot(user, USER_FIELDS)
    if patch.name is not None:
        user.name = patch.name
    if patch.role is not None:
        user.role = patch.role
    if patch.is_active is not None:
        user.is_active = patch.is_active
    if patch.password is not None:
        user.password_hash = hash_password(patch.password)

    after = audit_svc.snapshot(user, USER_FIELDS)
    if after == before and patch.password is None:
        return user

    audit_svc.log(
        db,
        action="user.updated",
        entity_type="user",
        entity_id=user.id,
        actor_id=actor.id,
        actor_email=actor.email,
        before=before,
        after=after,
        notes="Password reset" if patch.password is not None else None,
    )
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise translate_store_error(exc, "User could not be updated") from exc
    await db.refresh(user)
    return user


async def delete_user(db: AsyncSession, user_id: uuid.UUID, actor) -> None:
    """Soft delete: the row stays so audit entries and ticket history keep their actor."""
    user = await get_user(db, user_id)
    if user.id == actor.id:
        raise RuleValidationError("You cannot delete your own account")

    user.deleted_at = utcnow()
    user.is_active = False
    audit_svc.log(
        db,
        action="user.deleted",
        entity_type="user",
        entity_id=user.id,
        actor_id=actor.id,
        actor_email=actor.email,
        before={"email": user.email, "role": user.role},
    )
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise translate_store_error(exc, "User could not be deleted") from exc
