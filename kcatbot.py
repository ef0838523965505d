# Copyright (C) 2024 McAwesome (https://github.com/McAwesome123)
# This script is licensed under the GNU Affero General Public License version 3 or later.
# For more information, view the LICENSE file provided with this project
# or visit: https://www.gnu.org/licenses/agpl-3.0.en.html

"""Module containing bot logic."""

import argparse
import asyncio
import contextlib
import datetime as dt
import logging
import logging.handlers
from collections.abc import Awaitable, Callable
from os import getenv

import aiohttp
import aiohttp.client_exceptions as client_exc
import discord

import src.kcat_exceptions as kce
import src.kcatbot_globals as kbg
from src.kcatbot_config import (
	CONTENTS_COLLECTION,
	KCATBOT_VERSION_FULL,
	SETS_COLLECTION,
	UPLOADERS_COLLECTION,
	json_list_from_env,
)
from src.kcatbot_globals import bot
from src.pocketbase_api import pocketbase_api

discord_logger = logging.getLogger("discord")
kcatbot_logger = logging.getLogger("kcatbot")
root_logger = logging.getLogger()


@bot.event
async def on_ready() -> None:  # noqa: RUF029
	"""Do stuff when the bot finishes logging in."""
	print(f"Logged in as {bot.user}")


@bot.listen("on_message")
async def private_commands(message: discord.Message) -> None:
	"""Run admin commands sent to the bot in DMs."""
	if message.author == bot.user:
		return

	if message.channel.type != discord.ChannelType.private:
		return

	name, _, argument = message.content.partition(" ")
	command = PRIVATE_COMMANDS.get(name)
	if command is None:
		return

	user_id = str(message.author.id)
	admins = json_list_from_env("BOT_ADMIN_USERS")
	if user_id not in admins:
		kcatbot_logger.info(
			"User %s tried to use %s, but is not part of %s", user_id, name, admins
		)
		return

	kcatbot_logger.debug("Received %s command (argument=%r).", name, argument)
	await command(message, argument.strip())


async def change_status_command(message: discord.Message, argument: str) -> None:  # noqa: ARG001
	"""Set the bot's custom status, or remove it with "clear".

	"\\clear" sets the status to the literal text "clear".
	"""
	if not argument:
		kcatbot_logger.debug("No status given.")
		return

	if argument.lower() == "clear":
		await bot.change_presence()
		kbg.bot_data.status = None
	else:
		if argument.lower() == "\\clear":
			argument = argument[1:]
		await bot.change_presence(activity=discord.CustomActivity(argument))
		kbg.bot_data.status = argument

	await kbg.bot_data.save(kbg.BOT_DATA_PATH)


async def bot_data_command(message: discord.Message, argument: str) -> None:  # noqa: ARG001
	"""Save the bot data to disk, or load it back."""
	match argument:
		case "save":
			await kbg.bot_data.save(kbg.BOT_DATA_PATH)
		case "load" | "reload":
			await kbg.bot_data.load(kbg.BOT_DATA_PATH)
		case _:
			kcatbot_logger.debug("Unknown -botdata action %r.", argument)


async def reload_directory_command(message: discord.Message, argument: str) -> None:  # noqa: ARG001
	"""Reload the group, idol and uploader directory from the database."""
	try:
		await kbg.directory.load(kbg.session)
	except (TimeoutError, client_exc.ClientError):
		kcatbot_logger.exception("Could not reload the directory.")
		await message.channel.send("could not reload the directory.")
		return

	await message.channel.send(
		f"reloaded: {len(kbg.directory.groups)} groups, "
		f"{len(kbg.directory.idols)} idols, "
		f"{len(kbg.directory.uploaders)} uploaders."
	)


PRIVATE_COMMANDS: dict[str, Callable[[discord.Message, str], Awaitable[None]]] = {
	"-status": change_status_command,
	"-botdata": bot_data_command,
	"-reload": reload_directory_command,
}


@bot.event
async def on_application_command_error(
	ctx: discord.ApplicationContext, error: Exception
) -> None:
	"""Do stuff when there's a command error."""
	response = "an unhandled exception occurred"
	await kbg.send_message(ctx, response, ephemeral=True)
	raise error


@bot.slash_command(description="Pong!")
async def ping(ctx: discord.ApplicationContext) -> None:
	"""Pong."""
	kcatbot_logger.info("Ping command used. Latency: %s ms", round(bot.latency * 1000))

	response = f"pong! latency: {round(bot.latency * 1000)!s}ms."
	await kbg.send_message(ctx, response)


bot_channel_group = bot.create_group(
	"channel",
	"Manage the channels media is archived from.",
	contexts={discord.InteractionContextType.guild},
	default_member_permissions=discord.Permissions(manage_guild=True),
)


def ingest_channel_id(
	ctx: discord.ApplicationContext,
	channel: discord.abc.GuildChannel | discord.abc.Messageable | None,
) -> str | None:
	"""Get the id of the chosen channel (or the current one). None if it can't hold messages."""
	if channel is None:
		return str(ctx.channel_id)

	if not isinstance(channel, discord.abc.Messageable):
		return None

	return str(channel.id)


@bot_channel_group.command(name="add")
@discord.option(
	"channel",
	discord.SlashCommandOptionType.channel,
	description="The channel to add (default: (current channel))",
)
@discord.option("hidden", bool, description="Only visible for you (default: No)")
async def add_ingest_channel(
	ctx: discord.ApplicationContext,
	channel: discord.abc.GuildChannel | discord.abc.Messageable | None = None,
	*,
	hidden: bool = False,
) -> None:
	"""Archive role pings and set replies in a channel (requires Manage Server permission)."""
	kcatbot_logger.info("Add ingest channel command used (channel=%s)", channel)

	channel_id = ingest_channel_id(ctx, channel)
	if channel_id is None:
		response = "not a valid channel"
	elif channel_id in kbg.bot_data.ingest_channels:
		response = f"channel is already an ingest channel ({channel_id})"
	else:
		kbg.bot_data.ingest_channels.append(channel_id)
		await kbg.bot_data.save(kbg.BOT_DATA_PATH)
		response = f"added ingest channel ({channel_id})"

	await ctx.respond(response, ephemeral=hidden)


@bot_channel_group.command(name="remove")
@discord.option(
	"channel",
	discord.SlashCommandOptionType.channel,
	description="The channel to remove (default: (current channel))",
)
@discord.option("hidden", bool, description="Only visible for you (default: No)")
async def remove_ingest_channel(
	ctx: discord.ApplicationContext,
	channel: discord.abc.GuildChannel | discord.abc.Messageable | None = None,
	*,
	hidden: bool = False,
) -> None:
	"""Stop archiving role pings and set replies in a channel (requires Manage Server permission)."""
	kcatbot_logger.info("Remove ingest channel command used (channel=%s)", channel)

	channel_id = ingest_channel_id(ctx, channel)
	if channel_id is None:
		response = "not a valid channel"
	elif channel_id not in kbg.bot_data.ingest_channels:
		response = f"channel is not an ingest channel ({channel_id})"
	else:
		kbg.bot_data.ingest_channels.remove(channel_id)
		await kbg.bot_data.save(kbg.BOT_DATA_PATH)
		response = f"removed ingest channel ({channel_id})"

	await ctx.respond(response, ephemeral=hidden)


@bot_channel_group.command(name="list")
async def list_ingest_channels(ctx: discord.ApplicationContext) -> None:
	"""List the channels media is archived from (requires Manage Server permission)."""
	kcatbot_logger.info("List ingest channels command used")

	if len(kbg.bot_data.ingest_channels) < 1:
		await ctx.respond("there are no ingest channels", ephemeral=True)
		return

	response = "\n".join(f"<#{i}>" for i in kbg.bot_data.ingest_channels)
	await ctx.respond(response, ephemeral=True)


LOG_LEVELS = ["none", "critical", "error", "warning", "info", "debug", "notset"]


def parse_arguments() -> None:
	"""Parse command line arguments and set up logging."""
	parser = argparse.ArgumentParser(
		prog="kcatbot", description="Discord bot that archives media to KpopCat"
	)
	parser.add_argument(
		"-V",
		"--version",
		action="version",
		version=f"%(prog)s {KCATBOT_VERSION_FULL}",
	)
	parser.add_argument(
		"-v",
		"--verbose",
		action="count",
		default=0,
		help="verbose logging for everything. -v for info, -vv for debug",
	)
	for name, what in (("discord", "discord operations"), ("bot", "the bot")):
		parser.add_argument(
			f"--{name}-log-level",
			choices=LOG_LEVELS,
			help=f"set a log level for {what}. if not set, uses root log level.",
			default=None,
		)
	parser.add_argument(
		"--log-level",
		choices=LOG_LEVELS,
		help="set a log level for everything (root). overrides --verbose. default: warning",
		default=None,
	)
	parser.add_argument(
		"--log-console",
		dest="log_to_console",
		action="store_true",
		help="output logs to console (stderr)",
	)
	parser.add_argument(
		"--no-log-file",
		dest="log_to_file",
		action="store_false",
		help="don't output logs to a file",
	)
	args = parser.parse_args()

	if args.verbose > 0:
		root_logger.setLevel(logging.INFO if args.verbose == 1 else logging.DEBUG)

	for logger, level in (
		(root_logger, args.log_level),
		(discord_logger, args.discord_log_level),
		(kcatbot_logger, args.bot_log_level),
	):
		if level is None:
			continue

		if level == "none":
			logger.setLevel(logging.CRITICAL + 10)
		else:
			logger.setLevel(level.upper())

	log_formatter = logging.Formatter(
		"[{asctime}] [{levelname:<8}] {name}: {message}", "%Y-%m-%d %H:%M:%S", style="{"
	)

	if args.log_to_file:
		at_time = getenv("LOG_FILE_AT_TIME", "00:00:00Z")

		log_file_handler = logging.handlers.TimedRotatingFileHandler(
			filename=getenv("LOG_FILE_NAME", "kcatbot.log"),
			when=getenv("LOG_FILE_WHEN", "midnight"),
			interval=int(getenv("LOG_FILE_INTERVAL", "1")),
			backupCount=int(getenv("LOG_FILE_BACKUP_COUNT", "7")),
			encoding="utf-8",
			utc="Z" in at_time,
			atTime=dt.time.fromisoformat(at_time),
		)
		log_file_handler.setFormatter(log_formatter)
		root_logger.addHandler(log_file_handler)

	if args.log_to_console:
		log_stream_handler = logging.StreamHandler()
		log_stream_handler.setFormatter(log_formatter)
		root_logger.addHandler(log_stream_handler)


async def check_collections(session: aiohttp.ClientSession) -> None:
	"""Warn about collections the bot writes to that don't exist."""
	for i in (CONTENTS_COLLECTION, SETS_COLLECTION, UPLOADERS_COLLECTION):
		try:
			await pocketbase_api.find_collection(session, i)
		except kce.RecordNotFoundError:
			kcatbot_logger.warning("Collection %s does not exist.", i)
		except client_exc.ClientResponseError as exc:
			kcatbot_logger.warning(
				"Could not check collection %s (%s %s).", i, exc.status, exc.message
			)


async def main() -> None:
	"""Do main."""
	parse_arguments()

	try:
		await kbg.bot_data.load(kbg.BOT_DATA_PATH)
	except Exception:
		kcatbot_logger.exception("Could not load bot data.")

	if kbg.bot_data.status is not None:
		bot.activity = discord.CustomActivity(kbg.bot_data.status)

	conn = aiohttp.TCPConnector(limit_per_host=6)

	async with aiohttp.ClientSession(connector=conn) as kbg.session:
		await kbg.directory.load(kbg.session)
		await check_collections(kbg.session)

		bot.load_extension("cogs.archive")
		bot.load_extension("cogs.ingest")

		token = getenv("DISCORD_BOT_TOKEN")
		async with bot:
			await bot.start(token)


if __name__ == "__main__":
	with contextlib.suppress(KeyboardInterrupt):
		asyncio.run(main())
