"""Persistence for the webhook event audit log."""

from cip_shopee.storage.database import Database
from cip_shopee.storage.event_logger import WebhookEventLogger
from cip_shopee.storage.models import Base, WebhookEventRecord


__all__ = ["Base", "Database", "WebhookEventLogger", "WebhookEventRecord"]
