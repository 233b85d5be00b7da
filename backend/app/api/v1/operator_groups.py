"""Operator group (queue) management endpoints."""
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.deps import require_admin, require_operator
from app.db.session import get_session
from app.schemas.operator_group import (
    GroupMemberIn,
    GroupMemberOut,
    OperatorGroupIn,
    OperatorGroupOut,
    OperatorGroupUpdate,
)
from app.services import operator_groups as group_svc

router = APIRouter()


@router.get(
    "/operator-groups",
    response_model=list[OperatorGroupOut],
    summary="List operator groups",
    dependencies=[Depends(require_operator)],
)
async def list_operator_groups(
    db: Annotated[AsyncSession, Depends(get_session)],
    active_only: bool = Query(default=False),
):
    groups = await group_svc.list_groups(db, active_only=active_only)
    return [OperatorGroupOut.model_validate(g) for g in groups]


@router.post(
    "/operator-groups",
    response_model=OperatorGroupOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create an operator group (ADMIN only)",
)
async def create_operator_group(
    data: OperatorGroupIn,
    db: Annotated[AsyncSession, Depends(get_session)],
    current_user=Depends(require_admin),
):
    """group_key is normalised to lower-kebab-case with a '-queue' suffix."""
    group = await group_svc.create_group(db, data, current_user)
    return OperatorGroupOut.model_validate(group)


@router.patch(
    "/operator-groups/{group_id}",
    response_model=OperatorGroupOut,
    summary="Update an operator group (ADMIN only)",
)
async def update_operator_group(
    group_id: uuid.UUID,
    data: OperatorGroupUpdate,
    db: Annotated[AsyncSession, Depends(get_session)],
    current_user=Depends(require_admin),
):
    group = await group_svc.update_group(db, group_id, data, current_user)
    return OperatorGroupOut.model_validate(group)


@router.delete(
    "/operator-groups/{group_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an operator group (ADMIN only)",
)
async def delete_operator_group(
    group_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
    current_user=Depends(require_admin),
):
    await group_svc.delete_group(db, group_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ─── Members ───


@router.get(
    "/operator-groups/{group_id}/members",
    response_model=list[GroupMemberOut],
    summary="List members of an operator group",
    dependencies=[Depends(require_operator)],
)
async def list_group_members(
    group_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
):
    members = await group_svc.list_members(db, group_id)
    return [GroupMemberOut.model_validate(m) for m in members]


@router.post(
    "/operator-groups/{group_id}/members",
    response_model=GroupMemberOut,
    status_code=status.HTTP_201_CREATED,
    summary="Add a user to an operator group (ADMIN only)",
)
async def add_group_member(
    group_id: uuid.UUID,
    data: GroupMemberIn,
    db: Annotated[AsyncSession, Depends(get_session)],
    current_user=Depends(require_admin),
):
    member = await group_svc.add_member(db, group_id, data.user_id, current_user)
    return GroupMemberOut.model_validate(member)


@router.delete(
    "/operator-groups/{group_id}/members/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a user from an operator group (ADMIN only)",
)
async def remove_group_member(
    group_id: uuid.UUID,
    user_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
    current_user=Depends(require_admin),
):
    await group_svc.remove_member(db, group_id, user_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
