"""Seed default queues, routing rules and settings into the database."""
import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.db.session import AsyncSessionLocal
from app.models.operator_group import OperatorGroup
from app.models.routing_rule import TicketRoutingRule
from app.models.system_setting import SystemSetting

logger = logging.getLogger(__name__)

# (group_key, name)
DEFAULT_GROUPS = [
    ("service-desk-queue", "Service Desk"),
    ("customer-service-queue", "Customer Service"),
    ("facilities-queue", "Facilities"),
]

# (rule_key, priority, match_mailbox, match_ticket_type, match_category, group_key)
DEFAULT_ROUTING_RULES = [
    ("customer_service_email", 50, None, "customer_service", None, "customer-service-queue"),
    ("facilities_requests", 60, None, None, "Facilities", "facilities-queue"),
    ("catch_all", 1000, None, None, None, "service-desk-queue"),
]


async def seed_operator_groups(db: AsyncSession) -> dict[str, OperatorGroup]:
    """Insert default groups if missing (by group_key). Returns group_key -> group."""
    groups: dict[str, OperatorGroup] = {}
    for group_key, name in DEFAULT_GROUPS:
        existing = await db.execute(select(OperatorGroup).where(OperatorGroup.group_key == group_key))
        group = existing.scalars().first()
        if group is None:
            group = OperatorGroup(group_key=group_key, name=name, is_active=True)
            db.add(group)
            logger.info("Seeded operator group: %s", group_key)
        else:
            logger.info("Operator group already exists: %s, skipping", group_key)
        groups[group_key] = group
    await db.flush()
    return groups


async def seed_routing_rules(db: AsyncSession, groups: dict[str, OperatorGroup]) -> None:
    """Insert default routing rules if missing (by rule_key)."""
    for rule_key, priority, mailbox, ticket_type, category, group_key in DEFAULT_ROUTING_RULES:
        existing = await db.execute(select(TicketRoutingRule).where(TicketRoutingRule.rule_key == rule_key))
        if existing.scalars().first() is not None:
            logger.info("Routing rule already exists: %s, skipping", rule_key)
            continue
        db.add(TicketRoutingRule(
            rule_key=rule_key,
            priority=priority,
            is_active=True,
            match_mailbox=mailbox,
            match_ticket_type=ticket_type,
            match_category=category,
            assignment_group_id=groups[group_key].id,
        ))
        logger.info("Seeded routing rule: %s -> %s", rule_key, group_key)


async def seed_system_settings(db: AsyncSession) -> None:
    existing = await db.execute(select(SystemSetting).where(SystemSetting.key == "support_mailbox"))
    if existing.scalars().first() is None:
        db.add(SystemSetting(key="support_mailbox", value=settings.SUPPORT_MAILBOX))
        logger.info("Seeded support_mailbox=%s", settings.SUPPORT_MAILBOX)


async def run_seed() -> None:
    async with AsyncSessionLocal() as db:
        groups = await seed_operator_groups(db)
        await seed_routing_rules(db, groups)
        await seed_system_settings(db)
        await db.commit()
    logger.info("Seeding complete.")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(run_seed())
