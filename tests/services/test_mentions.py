"""Tests for @mention extraction and resolution."""
import pytest

from taskflow.services.mentions import MentionParser, extract_mentions


class TestExtractMentions:
    """Tests for tokenization."""

    def test_single_mention_stops_at_punctuation(self):
        assert extract_mentions("Great work @Alice!") == {"Alice"}

    def test_two_word_mention(self):
        assert extract_mentions("ping @Sam Lee, please") == {"Sam Lee"}

    def test_token_is_at_most_two_words(self):
        assert extract_mentions("@Dana Scott reviewed it") == {"Dana Scott"}

    def test_newline_terminates_token(self):
        assert extract_mentions("thanks @Bob\nsee above") == {"Bob"}

    def test_double_space_does_not_join_words(self):
        assert extract_mentions("@Bob  and friends") == {"Bob"}

    def test_email_addresses_are_not_mentions(self):
        assert extract_mentions("mail bob@example.com") == set()

    def test_bare_at_sign_is_ignored(self):
        assert extract_mentions("meet @ 5pm") == set()

    def test_duplicates_collapse(self):
        assert extract_mentions("@Carol! and again @Carol.") == {"Carol"}

    def test_empty_content(self):
        assert extract_mentions("") == set()


class TestResolveMentions:
    """Tests for resolution against the roster."""

    @pytest.fixture
    def parser(self, roster):
        return MentionParser(roster)

    @pytest.mark.asyncio
    async def test_resolves_exact_display_name(self, parser):
        assert await parser.parse("Great work @Alice!") == {1}

    @pytest.mark.asyncio
    async def test_resolution_ignores_case(self, parser):
        assert await parser.parse("@alice look") == {1}

    @pytest.mark.asyncio
    async def test_two_word_name(self, parser):
        assert await parser.parse("cc @Sam Lee.") == {4}

    @pytest.mark.asyncio
    async def test_falls_back_to_first_word(self, parser):
        assert await parser.parse("@Alice please review") == {1}

    @pytest.mark.asyncio
    async def test_unknown_names_are_dropped(self, parser):
        assert await parser.parse("@Nobody here") == set()

    @pytest.mark.asyncio
    async def test_prefix_is_not_enough(self, parser):
        assert await parser.parse("@Ali") == set()

    @pytest.mark.asyncio
    async def test_ambiguous_names_are_dropped(self, parser):
        assert await parser.parse("@Chris, thoughts?") == set()

    @pytest.mark.asyncio
    async def test_multiple_mentions(self, parser):
        assert await parser.parse("@Alice and @Bob: see @Carol's note") == {1, 2, 3}

    @pytest.mark.asyncio
    async def test_parsing_is_repeatable(self, parser):
        content = "@Alice @Sam Lee @Chris @Nobody"

        first = await parser.parse(content)
        second = await parser.parse(content)

        assert first == second == {1, 4}
