"""Mention picker endpoint."""

from fastapi import APIRouter, Query

from taskflow.api.deps import EngineDep
from taskflow.schemas.members import MentionSuggestionResponse

router = APIRouter(
    prefix="/api/members",
    tags=["Members"],
)


@router.get(
    "/suggestions",
    response_model=MentionSuggestionResponse,
    summary="Suggest members for @mentions",
    description="Prefix matches first; an empty query lists the first members of the roster.",
)
async def suggest_members(
    engine: EngineDep,
    q: str = Query("", description="Text typed after @"),
) -> MentionSuggestionResponse:
    members = await engine.roster.resolve(q)
    return MentionSuggestionResponse(query=q, members=members)
