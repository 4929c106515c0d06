"""Comment API endpoints: threads, edits, history and reactions."""

from typing import List, Optional

import structlog
from fastapi import APIRouter, Query, Response, status

from taskflow.api.deps import CommentStoreDep, CurrentMemberId
from taskflow.core.exceptions import NotAuthor
from taskflow.schemas.comments import (
    CommentCreate,
    CommentHistoryResponse,
    CommentListResponse,
    CommentResponse,
    CommentUpdate,
    EditStatus,
    ReactionGroup,
    ReactionToggle,
    ThreadStats,
)
from taskflow.services.comments import (
    build_comment_threads,
    group_threads_by_topic,
    reaction_summary,
)

logger = structlog.get_logger(__name__)

router = APIRouter(
    prefix="/api/comments",
    tags=["Comments"],
)


# =============================================================================
# Thread Endpoints
# =============================================================================


@router.get(
    "/threads/{thread_id}",
    response_model=CommentListResponse,
    summary="List a thread's comments",
    description="Comments nested by reply and grouped by topic, pinned first. Optional text search.",
)
async def list_thread_comments(
    thread_id: int,
    store: CommentStoreDep,
    q: Optional[str] = Query(None, description="Search comment text and author names"),
) -> CommentListResponse:
    if q:
        comments = await store.search(thread_id, q)
    else:
        comments = await store.list_thread(thread_id)
    threads = build_comment_threads(comments)
    return CommentListResponse(
        comments=threads,
        topics=group_threads_by_topic(threads),
        total=len(comments),
    )


@router.get(
    "/threads/{thread_id}/stats",
    response_model=ThreadStats,
    summary="Thread statistics",
)
async def get_thread_stats(thread_id: int, store: CommentStoreDep) -> ThreadStats:
    return await store.thread_stats(thread_id)


@router.get(
    "/threads/{thread_id}/topics",
    response_model=List[str],
    summary="Topics used in a thread",
)
async def list_thread_topics(thread_id: int, store: CommentStoreDep) -> List[str]:
    return await store.list_topics(thread_id)


@router.post(
    "/threads/{thread_id}",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Post a comment",
    description="Post a comment; @mentions are resolved and notified.",
)
async def create_comment(
    thread_id: int,
    data: CommentCreate,
    store: CommentStoreDep,
    member_id: CurrentMemberId,
) -> CommentResponse:
    comment = await store.create(
        thread_id=thread_id,
        author_id=member_id,
        content=data.content,
        parent_id=data.parent_id,
        mention_ids=data.mention_ids,
        topic=data.topic,
    )
    return CommentResponse.model_validate(comment)


# =============================================================================
# Comment Endpoints
# =============================================================================


@router.get("/{comment_id}", response_model=CommentResponse, summary="Get a comment")
async def get_comment(comment_id: int, store: CommentStoreDep) -> CommentResponse:
    return CommentResponse.model_validate(await store.get(comment_id))


@router.patch(
    "/{comment_id}",
    response_model=CommentResponse,
    summary="Edit a comment",
    description="Authors may edit within the edit window; each edit is kept in the history.",
)
async def edit_comment(
    comment_id: int,
    data: CommentUpdate,
    store: CommentStoreDep,
    member_id: CurrentMemberId,
) -> CommentResponse:
    comment = await store.edit(comment_id, member_id, data.content)
    return CommentResponse.model_validate(comment)


@router.delete(
    "/{comment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a comment",
)
async def remove_comment(
    comment_id: int,
    store: CommentStoreDep,
    member_id: CurrentMemberId,
) -> Response:
    comment = await store.get(comment_id)
    if comment.author_id != member_id:
        raise NotAuthor("You can only remove your own comments")
    await store.mark_removed(comment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/{comment_id}/history",
    response_model=CommentHistoryResponse,
    summary="Edit history",
    description="Current content first, then earlier versions newest first.",
)
async def get_comment_history(comment_id: int, store: CommentStoreDep) -> CommentHistoryResponse:
    versions = await store.get_history(comment_id)
    return CommentHistoryResponse(comment_id=comment_id, versions=versions)


@router.get(
    "/{comment_id}/edit-status",
    response_model=EditStatus,
    summary="Whether the viewer can still edit",
)
async def get_edit_status(
    comment_id: int,
    store: CommentStoreDep,
    member_id: CurrentMemberId,
) -> EditStatus:
    comment = await store.get(comment_id)
    return store.edit_status(comment, member_id)


@router.post("/{comment_id}/pin", response_model=CommentResponse, summary="Pin or unpin")
async def toggle_pin(comment_id: int, store: CommentStoreDep) -> CommentResponse:
    return CommentResponse.model_validate(await store.toggle_pin(comment_id))


@router.post("/{comment_id}/resolve", response_model=CommentResponse, summary="Resolve or reopen")
async def toggle_resolve(comment_id: int, store: CommentStoreDep) -> CommentResponse:
    return CommentResponse.model_validate(await store.toggle_resolve(comment_id))


# =============================================================================
# Reaction Endpoints
# =============================================================================


@router.post(
    "/{comment_id}/reactions",
    response_model=CommentResponse,
    summary="Toggle a reaction",
    description="Adds the reaction, or removes it if the viewer already reacted with that emoji.",
)
async def toggle_reaction(
    comment_id: int,
    data: ReactionToggle,
    store: CommentStoreDep,
    member_id: CurrentMemberId,
) -> CommentResponse:
    comment = await store.add_reaction(comment_id, member_id, data.user_name, data.emoji)
    return CommentResponse.model_validate(comment)


@router.get(
    "/{comment_id}/reactions",
    response_model=List[ReactionGroup],
    summary="Reactions grouped by emoji",
)
async def get_reactions(comment_id: int, store: CommentStoreDep) -> List[ReactionGroup]:
    return reaction_summary(await store.get(comment_id))
