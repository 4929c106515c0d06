"""Notification inbox endpoints for the current member."""

from typing import Optional

from fastapi import APIRouter, Query

from taskflow.api.deps import CurrentMemberId, InboxDep
from taskflow.schemas.notifications import (
    BadgeResponse,
    MarkReadResponse,
    NotificationListResponse,
    NotificationResponse,
)

router = APIRouter(
    prefix="/api/notifications",
    tags=["Notifications"],
)


@router.get(
    "",
    response_model=NotificationListResponse,
    summary="List notifications",
    description="Newest first, with total and unread counts.",
)
async def list_notifications(
    inbox: InboxDep,
    member_id: CurrentMemberId,
    unread_only: bool = Query(False, description="Only unread notifications"),
    notification_type: Optional[str] = Query(None, alias="type", description="Filter by type"),
    thread_id: Optional[int] = Query(None, description="Only notifications about this thread"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> NotificationListResponse:
    notifications, total, unread = await inbox.list_with_counts(
        member_id,
        unread_only=unread_only,
        notification_type=notification_type,
        limit=limit,
        offset=offset,
        thread_id=thread_id,
    )
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        total=total,
        unread_count=unread,
    )


@router.get("/unread-count", response_model=BadgeResponse, summary="Unread badge")
async def get_unread_count(inbox: InboxDep, member_id: CurrentMemberId) -> BadgeResponse:
    return await inbox.badge(member_id)


@router.post(
    "/read-all",
    response_model=MarkReadResponse,
    summary="Mark all notifications read",
)
async def mark_all_read(inbox: InboxDep, member_id: CurrentMemberId) -> MarkReadResponse:
    marked = await inbox.mark_all_read(member_id)
    return MarkReadResponse(marked_count=marked, unread_count=await inbox.unread_count(member_id))


@router.post(
    "/{notification_id}/read",
    response_model=MarkReadResponse,
    summary="Mark a notification read",
    description="Succeeds for already-read and unknown notifications too.",
)
async def mark_read(
    notification_id: int,
    inbox: InboxDep,
    member_id: CurrentMemberId,
) -> MarkReadResponse:
    changed = await inbox.mark_read(notification_id, recipient_id=member_id)
    return MarkReadResponse(
        marked_count=1 if changed else 0,
        unread_count=await inbox.unread_count(member_id),
    )
