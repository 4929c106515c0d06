"""
Roster resolution for @mentions.

Suggestions are fuzzy (substring, prefix ranked first) while write-time
resolution is exact. A roster that cannot be read yields no matches rather
than an error.
"""

from typing import Callable, Iterable, Optional, Protocol, Sequence

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.core.config import settings
from taskflow.core.exceptions import RosterUnavailable
from taskflow.models import Member
from taskflow.schemas.members import MemberInfo

logger = structlog.get_logger(__name__)


class RosterSource(Protocol):
    """Where team members come from."""

    async def list_members(self) -> Sequence[MemberInfo]:
        """Return the roster in its stable default order."""
        ...


class StaticRosterSource:
    """Fixed in-memory roster."""

    def __init__(self, members: Iterable[MemberInfo]):
        self._members = list(members)

    async def list_members(self) -> Sequence[MemberInfo]:
        return list(self._members)


class DatabaseRosterSource:
    """Roster read from the members table, in ID order."""

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        """
        Args:
            session_factory: Callable returning a new AsyncSession
                (typically an async_sessionmaker).
        """
        self._session_factory = session_factory

    async def list_members(self) -> Sequence[MemberInfo]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(Member).order_by(Member.id))
                return [MemberInfo.model_validate(m) for m in result.scalars().all()]
        except SQLAlchemyError as e:
            raise RosterUnavailable(f"Team roster is unavailable: {e.__class__.__name__}") from e


class RosterResolver:
    """Resolves query strings to roster members."""

    def __init__(self, source: RosterSource, limit: Optional[int] = None):
        self.source = source
        self.limit = settings.mention_suggestion_limit if limit is None else limit

    async def members(self) -> list[MemberInfo]:
        """Full roster, or an empty list when the source is unavailable."""
        try:
            return list(await self.source.list_members())
        except RosterUnavailable as e:
            logger.warning("roster_unavailable", error=e.detail)
            return []

    async def resolve(self, query: str) -> list[MemberInfo]:
        """
        Suggest members for the mention picker.

        Members whose display name or email contains ``query``
        (case-insensitive). Prefix matches come before substring matches,
        ties are ordered by display name. An empty query returns the first
        members in roster order.

        Args:
            query: Text typed after ``@``.

        Returns:
            At most ``limit`` members.
        """
        members = await self.members()
        needle = query.strip().casefold()
        if not needle:
            return members[: self.limit]

        ranked = []
        for member in members:
            name = member.display_name.casefold()
            email = member.email.casefold()
            if name.startswith(needle) or email.startswith(needle):
                rank = 0
            elif needle in name or needle in email:
                rank = 1
            else:
                continue
            ranked.append((rank, name, member.id, member))

        ranked.sort(key=lambda item: item[:3])
        return [item[3] for item in ranked[: self.limit]]

    async def find_exact(self, name: str) -> list[MemberInfo]:
        """All members whose display name equals ``name`` ignoring case."""
        needle = name.strip().casefold()
        if not needle:
            return []
        return [m for m in await self.members() if m.display_name.strip().casefold() == needle]

    async def get_member(self, member_id: int) -> Optional[MemberInfo]:
        for member in await self.members():
            if member.id == member_id:
                return member
        return None

    async def display_name(self, member_id: int) -> str:
        """Name to show for a member, with a placeholder for unknown IDs."""
        member = await self.get_member(member_id)
        return member.display_name if member else f"User {member_id}"
