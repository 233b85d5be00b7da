"""Current-user endpoints: profile and UI preferences."""
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.deps import get_current_user
from app.db.session import get_session
from app.models.user import User
from app.schemas.auth import UserOut
from app.schemas.preferences import SidebarMoveIn, UserPreferencesIn, UserPreferencesOut
from app.services import preferences as prefs_svc

router = APIRouter()


@router.get(
    "/me",
    response_model=UserOut,
    summary="Get current authenticated user info",
)
async def get_current_user_info(
    current_user: Annotated[User, Depends(get_current_user)],
):
    """Return the authenticated user's profile information."""
    return current_user


@router.get(
    "/me/preferences",
    response_model=UserPreferencesOut,
    summary="Get the current user's UI preferences",
)
async def get_my_preferences(
    db: Annotated[AsyncSession, Depends(get_session)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    """Defaults are returned when nothing has been saved yet."""
    return await prefs_svc.get_preferences(db, current_user.id)


@router.put(
    "/me/preferences",
    response_model=UserPreferencesOut,
    summary="Replace the current user's UI preferences",
)
async def put_my_preferences(
    data: UserPreferencesIn,
    db: Annotated[AsyncSession, Depends(get_session)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    return await prefs_svc.save_preferences(db, current_user.id, data)


@router.post(
    "/me/preferences/sidebar/move",
    response_model=UserPreferencesOut,
    summary="Move one sidebar entry to a new position",
)
async def move_sidebar_item(
    data: SidebarMoveIn,
    db: Annotated[AsyncSession, Depends(get_session)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    return await prefs_svc.move_sidebar_item(db, current_user.id, data.item, data.to_index)
