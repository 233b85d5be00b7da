"""System settings endpoints (support mailbox, default queue)."""
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.deps import require_admin, require_operator
from app.db.session import get_session
from app.schemas.system_setting import SystemSettingsOut, SystemSettingsUpdate
from app.services import system_settings as settings_svc

router = APIRouter()


@router.get(
    "/settings",
    response_model=SystemSettingsOut,
    summary="Read system settings",
    dependencies=[Depends(require_operator)],
)
async def read_settings(db: Annotated[AsyncSession, Depends(get_session)]):
    return await settings_svc.get_settings(db)


@router.patch(
    "/settings",
    response_model=SystemSettingsOut,
    summary="Update system settings (ADMIN only)",
)
async def patch_settings(
    data: SystemSettingsUpdate,
    db: Annotated[AsyncSession, Depends(get_session)],
    current_user=Depends(require_admin),
):
    """Only the keys present in the body are changed; null clears a key.

    default_assignment_group_id is the queue used when no routing rule matches.
    """
    return await settings_svc.update_settings(db, data, current_user)
