# Copyright (C) 2024 McAwesome (https://github.com/McAwesome123)
# This script is licensed under the GNU Affero General Public License version 3 or later.
# For more information, view the LICENSE file provided with this project
# or visit: https://www.gnu.org/licenses/agpl-3.0.en.html

"""Shared bot state: the bot itself, runtime settings, core services and reply helpers."""

import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path

import aiofiles
import aiofiles.os
import aiohttp
import aiohttp.client_exceptions as client_exc
import discord

from src.directory_cache import DirectoryCache
from src.ingestion import Ingestor
from src.kcatbot_config import json_list_from_env
from src.pagination import PaginationStore
from src.pocketbase_api import pocketbase_api
from src.set_correlation import SetCorrelation

intents = discord.Intents.default()
intents.message_content = True

command_guild_ids = [int(i) for i in json_list_from_env("COMMAND_GUILD_IDS")]

bot = discord.Bot(
	intents=intents,
	debug_guilds=command_guild_ids or None,
	default_command_integration_types=[discord.IntegrationType.guild_install],
)

MAX_MESSAGE_LENGTH = 1950
INTERACTION_TOO_MANY_FOLLOW_UP_MESSAGES_ERROR_CODE = 40094

kcatbot_logger = logging.getLogger("kcatbot")
session: aiohttp.ClientSession = None


@dataclass
class BotData:
	"""Settings changed at runtime and kept across restarts."""

	ingest_channels: list[str]
	status: str | None

	async def load(self, fp: str) -> None:
		"""Replace the settings with the ones saved in a file, if it exists."""
		if not Path(fp).exists():
			kcatbot_logger.info("No saved bot data at %s.", fp)
			return

		async with aiofiles.open(fp) as f:
			saved = json.loads(await f.read())

		for i in fields(self):
			if saved.get(i.name) is not None:
				setattr(self, i.name, saved[i.name])

		kcatbot_logger.info("Loaded bot data (%s).", ", ".join(saved))

	async def save(self, fp: str) -> None:
		"""Write the settings to a file, keeping the previous file as a .bak."""
		if Path(fp).exists():
			await aiofiles.os.replace(fp, f"{fp}.bak")

		async with aiofiles.open(fp, "w") as f:
			await f.write(json.dumps(asdict(self), indent=4))

		kcatbot_logger.info("Saved bot data to %s.", fp)


bot_data = BotData(json_list_from_env("INGEST_CHANNEL_IDS"), None)

BOT_DATA_PATH = "bot_data.json"

directory = DirectoryCache(pocketbase_api)
set_correlation = SetCorrelation(pocketbase_api, directory)
pagination_store = PaginationStore()
ingestor = Ingestor(
	pocketbase_api, directory, set_correlation, lambda: bot_data.ingest_channels
)


def database_error_response(exc: Exception) -> tuple[str, int]:
	"""Get the message shown to users for a database error and the level to log it at."""
	if isinstance(exc, client_exc.ClientResponseError):
		return f"Received non-OK status from the database: {exc.status}", logging.WARNING
	if isinstance(exc, TimeoutError):
		return "The database took too long to respond.", logging.ERROR
	if isinstance(exc, client_exc.ClientConnectionError):
		return "Could not contact the database.", logging.ERROR

	return "Could not query database.", logging.ERROR


async def standard_exception_handler(
	ctx: discord.ApplicationContext,
	logger: logging.Logger,
	exc: Exception,
	cmd: str,
	*,
	is_deferred: bool = False,
) -> None:
	"""Log a database error raised in a command and tell the user about it."""
	response, level = database_error_response(exc)
	logger.log(level, "A database error occurred in command %s", cmd, exc_info=exc)

	await send_message(ctx, response, is_deferred=is_deferred)


async def send_message(
	ctx: discord.ApplicationContext,
	message: str,
	*,
	ephemeral: bool = False,
	is_deferred: bool = False,
	view: discord.ui.View | None = None,
) -> discord.Interaction | discord.WebhookMessage | None:
	"""Send a message using respond, or send if responding is no longer possible.

	Returns whatever respond or send returned, or None if too many follow up
	messages have been sent.
	"""
	message = message.strip()[:MAX_MESSAGE_LENGTH]

	kwargs = {"ephemeral": ephemeral}
	if view is not None:
		kwargs["view"] = view

	try:
		if not ctx.response.is_done() or is_deferred:
			return await ctx.respond(message, **kwargs)

		return await ctx.followup.send(message, **kwargs)
	except discord.errors.HTTPException as exc:
		if exc.code == INTERACTION_TOO_MANY_FOLLOW_UP_MESSAGES_ERROR_CODE:
			kcatbot_logger.debug("Too many follow up messages have been sent.")
			return None
		raise
