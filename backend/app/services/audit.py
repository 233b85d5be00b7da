"""Audit log helper: append-only writes to audit_logs table."""
import json
import logging
import uuid
from typing import Any

from app.middleware.request_id import current_request_id
from app.models.audit import AuditLog

logger = logging.getLogger(__name__)


def log(
    db,
    action: str,
    entity_type: str,
    entity_id: uuid.UUID | str | None = None,
    actor_id: uuid.UUID | str | None = None,
    actor_email: str | None = None,
    before: Any | None = None,
    after: Any | None = None,
    notes: str | None = None,
) -> AuditLog:
    """Stage a single audit log entry on the session.

    Args:
        db: Sync Session (Celery tasks) or AsyncSession (API layer). The entry
            is only added; the caller's commit persists it together with the
            change it describes.
        action: Short verb, e.g. 'routing_rule.created', 'ticket.routed'.
        entity_type: Table/domain name, e.g. 'routing_rule', 'ticket'.
        entity_id: PK of the affected record.
        actor_id: User who performed the action (None for system actions).
        actor_email: Denormalised email (preserved if user is later deleted).
        before: Dict snapshot of state before the action (JSON-serialisable).
        after: Dict snapshot of state after the action.
        notes: Free-text annotation.

    The current request id (or Celery task id) is stamped on the entry so
    an audit row can be traced back to its log lines.
    """
    entry = AuditLog(
        actor_id=uuid.UUID(str(actor_id)) if actor_id else None,
        actor_email=actor_email,
        action=action,
        entity_type=entity_type,
        entity_id=uuid.UUID(str(entity_id)) if entity_id else None,
        before_state=json.dumps(before, default=str) if before is not None else None,
        after_state=json.dumps(after, default=str) if after is not None else None,
        notes=notes,
        request_id=current_request_id(),
    )
    db.add(entry)
    logger.debug("Audit: %s %s/%s", action, entity_type, entity_id)
    return entry


def snapshot(row: Any, fields: tuple[str, ...]) -> dict:
    """Pick the named attributes off an ORM row for before/after audit states."""
    return {f: getattr(row, f, None) for f in fields}
