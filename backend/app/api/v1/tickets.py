"""Ticket intake, listing and manual re-routing."""
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.deps import get_current_user, require_operator
from app.db.session import get_session
from app.models.user import User
from app.schemas.ticket import TicketAssignmentUpdate, TicketCreate, TicketListResponse, TicketOut
from app.services import tickets as ticket_svc

router = APIRouter()


@router.post(
    "",
    response_model=TicketOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a ticket and route it to a queue",
)
async def create_ticket(
    data: TicketCreate,
    db: Annotated[AsyncSession, Depends(get_session)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    ticket = await ticket_svc.create_ticket(db, data, current_user)
    return TicketOut.model_validate(ticket)


@router.get(
    "",
    response_model=TicketListResponse,
    summary="List tickets (queue view)",
    dependencies=[Depends(require_operator)],
)
async def list_tickets(
    db: Annotated[AsyncSession, Depends(get_session)],
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=25, ge=1, le=100),
    assignment_group_id: uuid.UUID | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias="status"),
    unassigned: bool = Query(default=False),
):
    tickets, total = await ticket_svc.list_tickets(
        db,
        page,
        page_size,
        assignment_group_id=assignment_group_id,
        unassigned=unassigned,
        status=status_filter,
    )
    return TicketListResponse(
        items=[TicketOut.model_validate(t) for t in tickets],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get(
    "/{ticket_id}",
    response_model=TicketOut,
    summary="Get one ticket",
    dependencies=[Depends(require_operator)],
)
async def get_ticket(
    ticket_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
):
    return TicketOut.model_validate(await ticket_svc.get_ticket(db, ticket_id))


@router.patch(
    "/{ticket_id}/assignment",
    response_model=TicketOut,
    summary="Manually re-route a ticket to another queue",
)
async def reassign_ticket(
    ticket_id: uuid.UUID,
    data: TicketAssignmentUpdate,
    db: Annotated[AsyncSession, Depends(get_session)],
    current_user=Depends(require_operator),
):
    ticket = await ticket_svc.reassign_ticket(
        db, ticket_id, data.assignment_group_id, current_user, notes=data.notes
    )
    return TicketOut.model_validate(ticket)
