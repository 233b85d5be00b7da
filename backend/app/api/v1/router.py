from fastapi import APIRouter

from app.api.v1 import admin, auth, operator_groups, routing, system_settings, tickets, users

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
api_router.include_router(operator_groups.router, prefix="/admin", tags=["admin"])
api_router.include_router(system_settings.router, prefix="/admin", tags=["admin"])
api_router.include_router(tickets.router, prefix="/tickets", tags=["tickets"])
api_router.include_router(routing.router, prefix="/routing", tags=["routing"])
