"""Routing dry run: which queue would a ticket with these attributes land in?"""
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.deps import require_operator
from app.db.session import get_session
from app.rules.routing_engine import TicketAttributes
from app.schemas.routing_rule import MatchedRule, RoutingDecisionOut, RoutingPreviewIn
from app.services import tickets as ticket_svc

router = APIRouter()


@router.post(
    "/preview",
    response_model=RoutingDecisionOut,
    summary="Preview routing for ticket attributes without creating a ticket",
    dependencies=[Depends(require_operator)],
)
async def preview_routing(
    data: RoutingPreviewIn,
    db: Annotated[AsyncSession, Depends(get_session)],
):
    decision = await ticket_svc.route_attributes(
        db, TicketAttributes(mailbox=data.mailbox, ticket_type=data.ticket_type, category=data.category)
    )
    matched = None
    if decision.rule is not None:
        matched = MatchedRule(
            id=decision.rule.id, rule_key=decision.rule.rule_key, priority=decision.rule.priority
        )
    return RoutingDecisionOut(
        matched_rule=matched,
        assignment_group_id=decision.assignment_group_id,
        routed_by=decision.routed_by,
        explanation=decision.explanation,
    )
