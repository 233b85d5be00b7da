"""Celery tasks for inbound ticket intake."""
import logging

from sqlalchemy.exc import OperationalError

from app.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    name="app.workers.intake_tasks.ingest_inbound_email",
    max_retries=3,
    default_retry_delay=30,
)
def ingest_inbound_email(self, payload: dict) -> dict:
    """Create (or comment on) a ticket from one inbound mail message.

    payload: {message_id, subject, body, from_email, from_name, to, received_at}.
    Only a lost database connection is retried; the Message-ID dedupe makes
    a retry after a partial failure safe.
    """
    from app.db.session import get_sync_session
    from app.middleware.request_id import request_id_ctx
    from app.services.mail_intake import InboundMessage, ingest_message

    if not payload.get("message_id"):
        logger.warning("ingest_inbound_email: payload without message_id dropped")
        return {"status": "rejected", "reason": "missing_message_id"}

    msg = InboundMessage.from_payload(payload)
    rid_token = request_id_ctx.set(self.request.id or msg.message_id)
    db = get_sync_session()
    try:
        return ingest_message(db, msg)
    except OperationalError as exc:
        db.rollback()
        logger.warning("ingest_inbound_email: database unavailable for %s, retrying", msg.message_id)
        raise self.retry(exc=exc)
    except Exception:
        db.rollback()
        logger.exception("ingest_inbound_email: failed for %s", msg.message_id)
        raise
    finally:
        db.close()
        request_id_ctx.reset(rid_token)
