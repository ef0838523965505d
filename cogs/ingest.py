# Copyright (C) 2024 McAwesome (https://github.com/McAwesome123)
# This script is licensed under the GNU Affero General Public License version 3 or later.
# For more information, view the LICENSE file provided with this project
# or visit: https://www.gnu.org/licenses/agpl-3.0.en.html

"""Ingest cog for the bot."""

import asyncio
import logging

import discord

import src.kcatbot_globals as kbg
from src.kcat_dataclasses import IncomingMessage, MediaAttachment


class Ingest(discord.Cog):
	"""Class defining the ingest cog."""

	def __init__(self, bot: discord.Bot) -> "Ingest":
		"""Initialize the cog."""
		self.bot: discord.Bot = bot
		self.logger = logging.getLogger("kcatbot.cogs.ingest")
		self.tasks: set[asyncio.Task] = set()

	def mentions_bot(self, message: discord.Message) -> bool:
		"""Check whether the bot is pinged in the message text (reply pings don't count)."""
		bot_id = self.bot.user.id
		return f"<@{bot_id}>" in message.content or f"<@!{bot_id}>" in message.content

	async def get_role_names(self, message: discord.Message) -> list[str] | None:
		"""Get the names of the roles pinged in a message.

		Returns None if any of the roles can't be found in the guild.
		"""
		if message.guild is None or len(message.raw_role_mentions) < 1:
			return []

		roles = {i.id: i.name for i in message.guild.roles}
		if any(i not in roles for i in message.raw_role_mentions):
			try:
				roles = {i.id: i.name for i in await message.guild.fetch_roles()}
			except discord.HTTPException:
				self.logger.exception("Unable to get guild roles.")
				return None

		role_names = []
		for i in message.raw_role_mentions:
			if i not in roles:
				self.logger.info("Role %s not found.", i)
				return None
			role_names.append(roles[i])

		return role_names

	async def to_incoming_message(self, message: discord.Message) -> IncomingMessage:
		"""Convert a discord message into what the ingestor needs."""
		referenced_message_id = None
		if message.reference is not None and message.reference.message_id is not None:
			referenced_message_id = str(message.reference.message_id)

		return IncomingMessage(
			message_id=str(message.id),
			channel_id=str(message.channel.id),
			guild_id=str(message.guild.id) if message.guild is not None else None,
			author_id=str(message.author.id),
			author_name=message.author.name,
			content=message.content,
			author_is_bot=message.author.bot,
			mentions_bot=self.mentions_bot(message),
			mentioned_role_ids=[str(i) for i in message.raw_role_mentions],
			role_names=await self.get_role_names(message),
			referenced_message_id=referenced_message_id,
			attachments=[
				MediaAttachment(i.url, i.filename, i.content_type)
				for i in message.attachments
			],
		)

	async def ingest(self, message: discord.Message) -> None:
		"""Archive a message and log how it went."""
		try:
			incoming = await self.to_incoming_message(message)
			record_ids = await kbg.ingestor.process_message(kbg.session, incoming)
		except Exception:
			self.logger.exception("Failed to process message %s.", message.id)
			return

		if len(record_ids) > 0:
			self.logger.info(
				"Message %s archived as %s record(s): %s",
				message.id,
				len(record_ids),
				record_ids,
			)

	@discord.Cog.listener("on_message")
	async def on_message(self, message: discord.Message) -> None:
		"""Hand new messages to the ingestor without blocking the event handler."""
		if message.author.bot:
			return

		task = asyncio.create_task(self.ingest(message))
		self.tasks.add(task)
		task.add_done_callback(self.tasks.discard)


def setup(bot: discord.Bot) -> None:
	"""Set up the cog."""
	bot.add_cog(Ingest(bot))
