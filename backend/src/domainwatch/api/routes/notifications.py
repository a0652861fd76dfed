"""
Notification log endpoints.
"""

from fastapi import APIRouter

from domainwatch.api.deps import ContainerDep, CurrentAccount
from domainwatch.api.schemas import NotificationResponse

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    account: CurrentAccount,
    container: ContainerDep,
) -> list[NotificationResponse]:
    """The caller's notifications, newest first."""
    notifications = await container.notifications.list_for_account(account.id)
    return [NotificationResponse.from_record(n) for n in notifications]


@router.put(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    responses={404: {"description": "Notification not found"}},
)
async def mark_read(
    notification_id: str,
    account: CurrentAccount,
    container: ContainerDep,
) -> NotificationResponse:
    notification = await container.notifications.mark_read(account.id, notification_id)
    return NotificationResponse.from_record(notification)
