"""
Shared FastAPI dependencies.

Authentication lives in the surrounding application; it forwards the viewer's
roster ID in the ``X-Member-Id`` header.
"""
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.database import get_db
from taskflow.services.comments import CommentStore
from taskflow.services.engine import CommentEngine
from taskflow.services.notification_inbox import NotificationInbox

# =============================================================================
# Database Dependency
# =============================================================================

AsyncSessionDep = Annotated[AsyncSession, Depends(get_db)]


# =============================================================================
# Viewer Dependency
# =============================================================================


async def get_current_member_id(
    x_member_id: Annotated[Optional[int], Header()] = None,
) -> int:
    """Roster ID of the viewer. Raises 401 when the header is missing."""
    if x_member_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Member-Id header",
        )
    return x_member_id


CurrentMemberId = Annotated[int, Depends(get_current_member_id)]


# =============================================================================
# Engine Dependencies
# =============================================================================


def get_engine(request: Request) -> CommentEngine:
    return request.app.state.comment_engine


EngineDep = Annotated[CommentEngine, Depends(get_engine)]


def get_comment_store(db: AsyncSessionDep, engine: EngineDep) -> CommentStore:
    return engine.comment_store(db)


def get_inbox(db: AsyncSessionDep, engine: EngineDep) -> NotificationInbox:
    return engine.inbox(db)


CommentStoreDep = Annotated[CommentStore, Depends(get_comment_store)]
InboxDep = Annotated[NotificationInbox, Depends(get_inbox)]
