"""Admin endpoints: desk accounts and ticket routing rules.

Reads of the rule table are open to operators so they can see why a
ticket landed in their queue; every write is ADMIN only.
"""
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.deps import require_admin, require_operator
from app.db.session import get_session
from app.schemas.admin_user import (
    AdminUserCreate,
    AdminUserListResponse,
    AdminUserOut,
    AdminUserUpdate,
    Role,
)
from app.schemas.routing_rule import RoutingRuleIn, RoutingRuleOut, RoutingRuleUpdate
from app.services import routing as routing_svc
from app.services import users as user_svc

router = APIRouter()

Session = Annotated[AsyncSession, Depends(get_session)]


# ─── Users ───


@router.get(
    "/users",
    response_model=AdminUserListResponse,
    summary="List desk accounts",
    dependencies=[Depends(require_admin)],
)
async def list_users(
    db: Session,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    role: Role | None = Query(default=None),
    q: str | None = Query(default=None, max_length=100, description="Match on email or name"),
):
    users, total = await user_svc.list_users(db, page, page_size, role=role, search=q)
    return AdminUserListResponse(
        items=[AdminUserOut.model_validate(u) for u in users],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/users/{user_id}", response_model=AdminUserOut, dependencies=[Depends(require_admin)])
async def get_user(user_id: uuid.UUID, db: Session):
    return AdminUserOut.model_validate(await user_svc.get_user(db, user_id))


@router.post(
    "/users",
    response_model=AdminUserOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a desk account",
)
async def create_user(user_data: AdminUserCreate, db: Session, current_user=Depends(require_admin)):
    user = await user_svc.create_user(db, user_data, current_user)
    return AdminUserOut.model_validate(user)


@router.patch("/users/{user_id}", response_model=AdminUserOut, summary="Change role, status or password")
async def update_user(
    user_id: uuid.UUID,
    user_data: AdminUserUpdate,
    db: Session,
    current_user=Depends(require_admin),
):
    user = await user_svc.update_user(db, user_id, user_data, current_user)
    return AdminUserOut.model_validate(user)


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Soft-delete a desk account")
async def delete_user(user_id: uuid.UUID, db: Session, current_user=Depends(require_admin)):
    await user_svc.delete_user(db, user_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ─── Routing rules ───


@router.get(
    "/routing-rules",
    response_model=list[RoutingRuleOut],
    summary="List ticket routing rules",
    dependencies=[Depends(require_operator)],
)
async def list_routing_rules(db: Session, active_only: bool = Query(default=False)):
    """Rules in evaluation order (priority, then rule_key)."""
    rules = await routing_svc.list_rules(db, active_only=active_only)
    return [RoutingRuleOut.model_validate(r) for r in rules]


@router.post(
    "/routing-rules",
    response_model=RoutingRuleOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a ticket routing rule (ADMIN only)",
)
async def create_routing_rule(rule_data: RoutingRuleIn, db: Session, current_user=Depends(require_admin)):
    rule = await routing_svc.create_rule(db, rule_data, current_user)
    return RoutingRuleOut.model_validate(rule)


@router.patch(
    "/routing-rules/{rule_id}",
    response_model=RoutingRuleOut,
    summary="Update a ticket routing rule (ADMIN only)",
)
async def update_routing_rule(
    rule_id: uuid.UUID,
    rule_data: RoutingRuleUpdate,
    db: Session,
    current_user=Depends(require_admin),
):
    """Partial update; send a match field as null or "" to make it a wildcard."""
    rule = await routing_svc.update_rule(db, rule_id, rule_data, current_user)
    return RoutingRuleOut.model_validate(rule)


@router.delete(
    "/routing-rules/{rule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a ticket routing rule (ADMIN only)",
)
async def delete_routing_rule(rule_id: uuid.UUID, db: Session, current_user=Depends(require_admin)):
    await routing_svc.delete_rule(db, rule_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
