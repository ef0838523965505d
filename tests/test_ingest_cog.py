"""Tests for the ingest cog."""

from unittest.mock import AsyncMock, MagicMock, patch

import discord
import pytest

import src.kcatbot_globals as kbg
from cogs.ingest import Ingest

BOT_ID = 42


def make_role(role_id: int, name: str) -> MagicMock:
	"""Create a guild role."""
	role = MagicMock()
	role.id = role_id
	role.name = name
	return role


def make_message(content: str = "", **kwargs: object) -> MagicMock:
	"""Create a guild message with no pings, reply or attachments."""
	message = MagicMock()
	message.id = 3
	message.content = content
	message.channel.id = 2
	message.guild.id = 1
	message.guild.roles = []
	message.guild.fetch_roles = AsyncMock(return_value=[])
	message.author.id = 7
	message.author.name = "alice"
	message.author.bot = False
	message.raw_role_mentions = []
	message.reference = None
	message.attachments = []
	for i, j in kwargs.items():
		setattr(message, i, j)
	return message


@pytest.fixture
def cog() -> Ingest:
	"""Provide the ingest cog for a bot with a known id."""
	bot = MagicMock()
	bot.user.id = BOT_ID
	return Ingest(bot)


class TestMentionsBot:
	"""Tests for detecting direct mentions."""

	@pytest.mark.parametrize("content", [f"<@{BOT_ID}> idol: a", f"hi <@!{BOT_ID}>"])
	def test_mention_in_text(self, cog: Ingest, content: str) -> None:
		"""Pinging the bot in the text counts."""
		assert cog.mentions_bot(make_message(content))

	def test_reply_ping_does_not_count(self, cog: Ingest) -> None:
		"""Replying to the bot with a ping isn't a mention in the text."""
		message = make_message("idol: a", reference=MagicMock(message_id=5))
		message.mentions = [MagicMock(id=BOT_ID)]

		assert not cog.mentions_bot(message)

	def test_other_user(self, cog: Ingest) -> None:
		"""Pinging someone else doesn't count."""
		assert not cog.mentions_bot(make_message("<@4242> idol: a"))


class TestRoleNames:
	"""Tests for looking up pinged role names."""

	@pytest.mark.asyncio
	async def test_no_role_pings(self, cog: Ingest) -> None:
		"""Messages without role pings have no role names."""
		assert await cog.get_role_names(make_message()) == []

	@pytest.mark.asyncio
	async def test_cached_roles(self, cog: Ingest) -> None:
		"""Roles known to the guild are named in ping order."""
		message = make_message(raw_role_mentions=[11, 10])
		message.guild.roles = [make_role(10, "Yujin [IVE]"), make_role(11, "Wonyoung [IVE]")]

		assert await cog.get_role_names(message) == ["Wonyoung [IVE]", "Yujin [IVE]"]
		message.guild.fetch_roles.assert_not_awaited()

	@pytest.mark.asyncio
	async def test_fetched_roles(self, cog: Ingest) -> None:
		"""Roles missing from the cache are fetched."""
		message = make_message(raw_role_mentions=[10])
		message.guild.fetch_roles.return_value = [make_role(10, "Yujin [IVE]")]

		assert await cog.get_role_names(message) == ["Yujin [IVE]"]

	@pytest.mark.asyncio
	async def test_unknown_role(self, cog: Ingest) -> None:
		"""A role that can't be found gives None."""
		message = make_message(raw_role_mentions=[10, 99])
		message.guild.roles = [make_role(10, "Yujin [IVE]")]
		message.guild.fetch_roles.return_value = [make_role(10, "Yujin [IVE]")]

		assert await cog.get_role_names(message) is None

	@pytest.mark.asyncio
	async def test_fetch_failure(self, cog: Ingest) -> None:
		"""Failing to fetch roles gives None."""
		message = make_message(raw_role_mentions=[10])
		message.guild.fetch_roles.side_effect = discord.HTTPException(
			MagicMock(status=500, reason="Internal Server Error"), "boom"
		)

		assert await cog.get_role_names(message) is None


class TestIncomingMessage:
	"""Tests for converting discord messages."""

	@pytest.mark.asyncio
	async def test_conversion(self, cog: Ingest) -> None:
		"""Ids become strings and attachments and replies are carried over."""
		attachment = MagicMock()
		attachment.url = "https://cdn.example/a.png"
		attachment.filename = "a.png"
		attachment.content_type = "image/png"
		message = make_message(
			f"<@{BOT_ID}> idol: a",
			reference=MagicMock(message_id=5),
			attachments=[attachment],
		)

		incoming = await cog.to_incoming_message(message)

		assert incoming.message_id == "3"
		assert incoming.guild_id == "1"
		assert incoming.mentions_bot
		assert incoming.referenced_message_id == "5"
		assert incoming.attachments[0].content_type == "image/png"
		assert incoming.permalink == "https://discord.com/channels/1/2/3"

	@pytest.mark.asyncio
	async def test_direct_message_link(self, cog: Ingest) -> None:
		"""Messages outside a guild link through @me."""
		message = make_message(f"<@{BOT_ID}> idol: a", guild=None)

		incoming = await cog.to_incoming_message(message)

		assert incoming.guild_id is None
		assert incoming.role_names == []
		assert incoming.permalink == "https://discord.com/channels/@me/2/3"


class TestIngest:
	"""Tests for handing messages to the ingestor."""

	@pytest.mark.asyncio
	async def test_failure_is_logged(self, cog: Ingest) -> None:
		"""Unexpected errors are logged, not raised."""
		ingestor = MagicMock()
		ingestor.process_message = AsyncMock(side_effect=RuntimeError("boom"))

		with (
			patch.object(kbg, "ingestor", ingestor),
			patch.object(cog.logger, "exception") as log,
		):
			await cog.ingest(make_message("hi"))

		log.assert_called_once()

	@pytest.mark.asyncio
	async def test_bot_messages_are_skipped(self, cog: Ingest) -> None:
		"""Messages by bots never start an ingest task."""
		message = make_message("hi")
		message.author.bot = True

		await Ingest.on_message(cog, message)

		assert cog.tasks == set()
