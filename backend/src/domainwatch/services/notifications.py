"""
Notification log service.

Append-only per-account log of lifecycle and payment events. The only
mutations allowed after append are the read and email_sent flags, and
both only ever flip from False to True.
"""

import logging

from domainwatch.domain.errors import NotFoundError
from domainwatch.domain.models import NotificationRecord, NotificationType
from domainwatch.infrastructure.clock import Clock, SystemClock
from domainwatch.infrastructure.repository import Repository, new_id

logger = logging.getLogger(__name__)


class NotificationLog:
    """Writes and reads the notification log through the repository."""

    def __init__(self, repository: Repository, clock: Clock | None = None) -> None:
        self.repository = repository
        self.clock = clock or SystemClock()

    async def append(
        self,
        account_id: str,
        type: NotificationType,
        message: str,
        domain_id: str | None = None,
    ) -> NotificationRecord:
        """Append an unread, not-yet-emailed notification."""
        notification = NotificationRecord(
            id=new_id(),
            account_id=account_id,
            domain_id=domain_id,
            type=type,
            message=message,
            email_sent=False,
            read=False,
            created_at=self.clock.now(),
        )
        await self.repository.insert_notification(notification)
        logger.info(f"Notification {type.value} for account {account_id}: {message}")
        return notification

    async def list_for_account(self, account_id: str) -> list[NotificationRecord]:
        """All notifications of an account, newest first."""
        return await self.repository.list_notifications(account_id)

    async def mark_read(self, account_id: str, notification_id: str) -> NotificationRecord:
        """
        Mark a notification as read.

        Raises:
            NotFoundError: If absent or owned by another account
        """
        notification = await self.repository.get_notification(notification_id)
        if notification is None or notification.account_id != account_id:
            raise NotFoundError("Notification not found")

        if notification.read:
            return notification

        notification.read = True
        return await self.repository.update_notification(notification)

    async def mark_email_sent(self, notification_id: str) -> NotificationRecord:
        """Record that the reminder email went out."""
        notification = await self.repository.get_notification(notification_id)
        if notification is None:
            raise NotFoundError("Notification not found")

        if notification.email_sent:
            return notification

        notification.email_sent = True
        return await self.repository.update_notification(notification)
