# Copyright (C) 2024 McAwesome (https://github.com/McAwesome123)
# This script is licensed under the GNU Affero General Public License version 3 or later.
# For more information, view the LICENSE file provided with this project
# or visit: https://www.gnu.org/licenses/agpl-3.0.en.html

"""Archive query cog for the bot."""

import logging

import aiohttp.client_exceptions as client_exc
import discord

import src.kcat_exceptions as kce
import src.kcatbot_globals as kbg
import src.metadata_extractor as mex
from src.kcat_dataclasses import ContentRecord
from src.kcatbot_config import (
	CONTENTS_COLLECTION,
	FILE_BASE_URL,
	MIRROR_LOOKUP_COLLECTION,
)
from src.pagination import (
	MAX_PER_PAGE,
	MIN_PER_PAGE,
	PageAction,
	PaginationStore,
	build_pages,
	render_page,
)
from src.pocketbase_api import pocketbase_api

SET_ITEM_LIMIT = 12
SET_EXPAND = "idol,group,tag,uploader"

NOT_FOUND_MIRROR = "No matching record found for that mirror link."
NOT_FOUND_PAGINATION = "Pagination state not found for this user."


def set_links(records: list[ContentRecord], *, raw: bool) -> list[str]:
	"""Get the link to show for each record in a set.

	Mirrors are preferred unless raw files are requested. Records without any
	link are skipped.
	"""
	links = []

	for i in records:
		link = i.mirror
		if raw or not link:
			link = i.kpfhd_file or i.file_url(FILE_BASE_URL, MIRROR_LOOKUP_COLLECTION)
		if link:
			links.append(link)

	return links


class PaginationView(discord.ui.View):
	"""A view with buttons for moving between pages."""

	def __init__(
		self, store: PaginationStore, logger: logging.Logger
	) -> "PaginationView":
		"""Create a pagination view."""
		super().__init__(
			timeout=store.retention.total_seconds(), disable_on_timeout=True
		)
		self.store = store
		self.logger = logger

	async def change_page(
		self, action: PageAction, interaction: discord.Interaction
	) -> None:
		"""Move to another page and show it."""
		state = await self.store.navigate(
			str(interaction.user.id), str(interaction.message.id), action
		)

		if state is None:
			self.logger.debug(
				"No pagination state for %s in %s.",
				interaction.user.id,
				interaction.message.id,
			)
			await interaction.response.send_message(
				NOT_FOUND_PAGINATION, ephemeral=True
			)
			return

		await interaction.response.edit_message(content=state.render(), view=self)

	@discord.ui.button(custom_id="first", emoji="⏮️", style=discord.ButtonStyle.primary)
	async def first_button_callback(
		self, _: discord.ui.Button, interaction: discord.Interaction
	) -> None:
		"""Go to the first page."""
		await self.change_page(PageAction.FIRST, interaction)

	@discord.ui.button(custom_id="prev", emoji="⬅️", style=discord.ButtonStyle.primary)
	async def prev_button_callback(
		self, _: discord.ui.Button, interaction: discord.Interaction
	) -> None:
		"""Go to the previous page."""
		await self.change_page(PageAction.PREV, interaction)

	@discord.ui.button(custom_id="next", emoji="➡️", style=discord.ButtonStyle.primary)
	async def next_button_callback(
		self, _: discord.ui.Button, interaction: discord.Interaction
	) -> None:
		"""Go to the next page."""
		await self.change_page(PageAction.NEXT, interaction)

	@discord.ui.button(custom_id="last", emoji="⏭️", style=discord.ButtonStyle.primary)
	async def last_button_callback(
		self, _: discord.ui.Button, interaction: discord.Interaction
	) -> None:
		"""Go to the last page."""
		await self.change_page(PageAction.LAST, interaction)


class Archive(discord.Cog):
	"""Class defining the archive cog."""

	def __init__(self, bot: discord.Bot) -> "Archive":
		"""Initialize the cog."""
		self.bot: discord.Bot = bot
		self.logger = logging.getLogger("kcatbot.cogs.archive")

	async def find_by_mirror(self, mirror_link: str) -> ContentRecord:
		"""Find the record stored with a mirror link.

		Raises
		------
		kcat_exceptions.RecordNotFoundError -- No record has that mirror
		aiohttp.client_exceptions.ClientError (from PocketBaseAPI.find_records_by_filter) -- A client error occurred
		"""
		mirror_link = mex.normalize_mirror_query(mirror_link)
		escaped = mirror_link.replace("\\", "\\\\").replace("'", "\\'")

		records = await pocketbase_api.find_records_by_filter(
			kbg.session, MIRROR_LOOKUP_COLLECTION, f"mirror='{escaped}'", per_page=1
		)

		if len(records) < 1:
			raise kce.RecordNotFoundError(mirror_link)

		return ContentRecord.from_obj(records[0])

	@discord.slash_command(name="revive")
	@discord.option(
		"mirror_link",
		str,
		description="The imgur link (e.g. 'https://i.imgur.com/abc123.mp4')",
	)
	async def revive(self, ctx: discord.ApplicationContext, mirror_link: str) -> None:
		"""Retrieve the archived file for an imgur link."""
		self.logger.info("Revive command used (mirror_link=%s)", mirror_link)

		try:
			record = await self.find_by_mirror(mirror_link)

		except kce.RecordNotFoundError:
			await kbg.send_message(ctx, NOT_FOUND_MIRROR, ephemeral=True)
			return

		except (TimeoutError, client_exc.ClientError) as exc:
			await kbg.standard_exception_handler(
				ctx, self.logger, exc, "Archive.revive"
			)
			return

		link = record.file_url(FILE_BASE_URL, MIRROR_LOOKUP_COLLECTION)
		if link is None:
			link = record.kpfhd_file or None

		if link is not None:
			response = f"Found copy in KpopCat: {link}"
		else:
			response = "No 'file' or 'kpfhdFile' was available for that record."

		await kbg.send_message(ctx, response)

	@discord.slash_command(name="source")
	@discord.option(
		"mirror_link",
		str,
		description="The link to the gif (e.g. 'https://i.imgur.com/abc123.mp4')",
	)
	async def source(self, ctx: discord.ApplicationContext, mirror_link: str) -> None:
		"""Get the video source (youtube link) of an imgur link."""
		self.logger.info("Source command used (mirror_link=%s)", mirror_link)

		try:
			record = await self.find_by_mirror(mirror_link)

		except kce.RecordNotFoundError:
			await kbg.send_message(ctx, NOT_FOUND_MIRROR)
			return

		except (TimeoutError, client_exc.ClientError) as exc:
			await kbg.standard_exception_handler(
				ctx, self.logger, exc, "Archive.source"
			)
			return

		if record.source:
			response = f"🔗 Found source in KpopCat: {record.source}"
		else:
			response = "No source was available for that gif."

		await kbg.send_message(ctx, response)

	@discord.slash_command(name="unwrap")
	@discord.option(
		"set_link",
		str,
		description="A link like 'https://kpopcat.pics/set/yv5dzbdxz04lap5'",
	)
	@discord.option(
		"raw", bool, description="Get raw files instead of imgur links (default: No)"
	)
	@discord.option(
		"perpage",
		int,
		description="How many links to show per page (1-5, default: 1)",
		min_value=MIN_PER_PAGE,
		max_value=MAX_PER_PAGE,
	)
	@discord.option(
		"show_metadata",
		bool,
		description="Show metadata (idol, group, etc) on the first page (default: No)",
	)
	async def unwrap(
		self,
		ctx: discord.ApplicationContext,
		set_link: str,
		*,
		raw: bool = False,
		perpage: int = MIN_PER_PAGE,
		show_metadata: bool = False,
	) -> None:
		"""Unwrap a KpopCat set link with interactive pagination."""
		self.logger.info(
			"Unwrap command used (set_link=%s, raw=%s, perpage=%s, show_metadata=%s)",
			set_link,
			raw,
			perpage,
			show_metadata,
		)

		try:
			filter_ = mex.set_link_filter(set_link)
		except kce.MalformedLinkError as exc:
			await kbg.send_message(ctx, str(exc), ephemeral=True)
			return

		await ctx.defer()

		try:
			records = await pocketbase_api.find_records_by_filter(
				kbg.session,
				CONTENTS_COLLECTION,
				filter_,
				sort="-created",
				per_page=SET_ITEM_LIMIT,
				expand=SET_EXPAND,
			)
		except (TimeoutError, client_exc.ClientError) as exc:
			await kbg.standard_exception_handler(
				ctx, self.logger, exc, "Archive.unwrap", is_deferred=True
			)
			return

		records = [ContentRecord.from_obj(i) for i in records]
		if len(records) < 1:
			await kbg.send_message(ctx, "No items found for that set.", is_deferred=True)
			return

		links = set_links(records, raw=raw)
		self.logger.debug("Found %s links", len(links))

		if len(links) < 1:
			await kbg.send_message(ctx, "No usable links found.", is_deferred=True)
			return

		header = records[0].format() if show_metadata else None
		pages = build_pages(links, perpage, header)

		view = PaginationView(kbg.pagination_store, self.logger)
		message = await ctx.interaction.edit_original_response(
			content=render_page(pages, 0), view=view
		)

		await kbg.pagination_store.insert(
			str(ctx.author.id), str(message.id), pages
		)


def setup(bot: discord.Bot) -> None:
	"""Set up the cog."""
	bot.add_cog(Archive(bot))
