"""Webhook event logger: persists processing outcomes to PostgreSQL."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from cip_shopee.storage.models import WebhookEventRecord
from cip_shopee.utils.logging import get_logger


if TYPE_CHECKING:
    from cip_shopee.storage.database import Database
    from cip_shopee.webhooks.models import ParsedEvent, ProcessingOutcome

logger = get_logger(__name__)


class WebhookEventLogger:
    """Audit trail of processed and failed webhook events."""

    def __init__(self, database: Database) -> None:
        self._database = database

    async def log_outcome(
        self,
        event: ParsedEvent,
        outcome: ProcessingOutcome,
    ) -> None:
        """Persist one outcome. Database errors are logged, never raised."""
        try:
            async with self._database.session() as session:
                session.add(
                    WebhookEventRecord(
                        code=event.code,
                        shop_id=event.shop_id,
                        msg_id=event.msg_id,
                        status=outcome.status.value,
                        action=outcome.action,
                        error=outcome.error,
                        duration_ms=outcome.duration_ms,
                        event_timestamp=event.timestamp,
                        data=event.data,
                        processed_at=datetime.now(timezone.utc),
                    )
                )

            logger.debug(
                "Logged webhook event to DB",
                code=event.code,
                shop_id=event.shop_id,
                status=outcome.status.value,
            )
        except (SQLAlchemyError, OSError, RuntimeError) as e:
            logger.warning(
                "Failed to log webhook event to DB",
                shop_id=event.shop_id,
                error=str(e),
            )
