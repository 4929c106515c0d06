"""Roster member schemas."""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class MemberInfo(BaseModel):
    """Immutable roster entry as seen by the comment engine."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int = Field(..., description="Member ID")
    display_name: str = Field(..., description="Display name matched by @mentions")
    email: str = Field(..., description="Member email")
    avatar_ref: Optional[str] = Field(None, description="Avatar reference")


class MentionSuggestionResponse(BaseModel):
    """Members offered in the @mention picker."""

    query: str
    members: list[MemberInfo]
