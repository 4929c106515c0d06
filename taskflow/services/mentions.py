"""
Parser for @mentions in comment content.

A mention starts at ``@`` and covers up to two words separated by a single
space, so ``@Alice Smith`` can name a full display name. Resolution is exact
(case-insensitive) against the roster; a two-word token that names nobody
falls back to its first word. Tokens that match nobody, or more than one
member, are dropped.
"""

import re
from typing import Iterable, Set

import structlog

from taskflow.services.roster import RosterResolver

logger = structlog.get_logger(__name__)

# "@" not preceded by a word character or another "@", so e-mail addresses
# like bob@example.com are not mentions.
MENTION_PATTERN = re.compile(r"(?<![\w@])@(\w+(?: \w+)?)")


def extract_mentions(content: str) -> Set[str]:
    """Return the distinct mention tokens in ``content`` (without the ``@``)."""
    return {match.group(1) for match in MENTION_PATTERN.finditer(content or "")}


class MentionParser:
    """Extracts mention tokens and resolves them against an injected roster."""

    def __init__(self, roster: RosterResolver):
        self.roster = roster

    def extract_mentions(self, content: str) -> Set[str]:
        return extract_mentions(content)

    async def resolve_mentions(self, tokens: Iterable[str]) -> Set[int]:
        """
        Resolve tokens to member IDs.

        Args:
            tokens: Tokens from extract_mentions.

        Returns:
            IDs of members named unambiguously.
        """
        resolved: Set[int] = set()
        for token in sorted(set(tokens)):
            member_id = await self._resolve_token(token)
            if member_id is not None:
                resolved.add(member_id)
        return resolved

    async def parse(self, content: str) -> Set[int]:
        """Member IDs mentioned in ``content``."""
        return await self.resolve_mentions(self.extract_mentions(content))

    async def _resolve_token(self, token: str):
        candidates = [token]
        if " " in token:
            candidates.append(token.split(" ", 1)[0])

        for candidate in candidates:
            matches = await self.roster.find_exact(candidate)
            if len(matches) == 1:
                return matches[0].id
            if len(matches) > 1:
                logger.info("ambiguous_mention_dropped", token=candidate, match_count=len(matches))
                return None

        logger.debug("unresolved_mention_dropped", token=token)
        return None
