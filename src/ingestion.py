# Copyright (C) 2024 McAwesome (https://github.com/McAwesome123)
# This script is licensed under the GNU Affero General Public License version 3 or later.
# For more information, view the LICENSE file provided with this project
# or visit: https://www.gnu.org/licenses/agpl-3.0.en.html

"""Archiving media posted in chat messages.

A message is archived when it:

1. mentions the bot directly (in any channel),
2. pings idol roles like "Yujin [IVE]" in an ingest channel, or
3. replies, in an ingest channel, to the author's own message that started a set.

Every attachment and media link becomes one content record. A message with
more than one item starts a set, and replies to it are added to the same set.
"""

import logging
import posixpath
from collections.abc import Callable, Collection
from urllib.parse import urlparse

import aiohttp
import aiohttp.client_exceptions as client_exc

import src.kcat_exceptions as kce
import src.metadata_extractor as mex
from src.directory_cache import DirectoryCache
from src.kcat_dataclasses import IncomingMessage, Metadata
from src.kcatbot_config import CONTENTS_COLLECTION, DOWNLOAD_USER_AGENT
from src.pocketbase_api import PocketBaseAPI
from src.set_correlation import SetCorrelation

DOWNLOAD_TIMEOUT = aiohttp.ClientTimeout(total=60.0)
OK_STATUS = 200


async def download_file(session: aiohttp.ClientSession, url: str) -> bytes:
	"""Download a file with a browser user agent.

	Raises
	------
	kcat_exceptions.DownloadError -- Non-200 status or empty body
	aiohttp.client_exceptions.ClientError (from aiohttp.ClientSession.get) -- A client error occurred
	TimeoutError -- The download took too long
	"""
	async with session.get(
		url, headers={"User-Agent": DOWNLOAD_USER_AGENT}, timeout=DOWNLOAD_TIMEOUT
	) as resp:
		if resp.status != OK_STATUS:
			raise kce.DownloadError(url, f"{resp.status} {resp.reason}", resp.status)

		data = await resp.read()

	if len(data) < 1:
		raise kce.DownloadError(url, "downloaded file is empty")

	return data


def filetype_for(content_type: str | None) -> str | None:
	"""Get the filetype for an attachment's content type, if it's an image or a video."""
	if content_type is None:
		return None
	if content_type.startswith("image/"):
		return "image"
	if content_type.startswith("video/"):
		return "video"
	return None


def filename_from_link(link: str) -> str:
	"""Get the last path segment of a link."""
	return posixpath.basename(urlparse(link).path)


class Ingestor:
	"""Decides which messages to archive and creates their records."""

	def __init__(
		self,
		store: PocketBaseAPI,
		directory: DirectoryCache,
		correlation: SetCorrelation,
		allowed_channels: Callable[[], Collection[str]],
	) -> "Ingestor":
		"""Create an ingestor.

		Arguments:
		---------
		store -- The store records are written to.
		directory -- The directory names are resolved against.
		correlation -- Tracks sets so replies can join them.
		allowed_channels -- Returns the ids of the channels where role pings and replies are archived.
		"""
		self.logger = logging.getLogger("kcatbot.ingestion")
		self.store = store
		self.directory = directory
		self.correlation = correlation
		self.allowed_channels = allowed_channels

	async def process_message(
		self, session: aiohttp.ClientSession, message: IncomingMessage
	) -> list[str]:
		"""Archive the media in a message, if the message should be archived.

		Returns the ids of the created content records. Items that fail are
		logged and skipped.
		"""
		if message.author_is_bot:
			return []

		media_links = mex.retrieve_media_links(message.content)
		if len(media_links) < 1 and len(message.attachments) < 1:
			return []

		try:
			metadata, is_reply = await self.__prepare_metadata(message)
		except kce.ValidationError as exc:
			self.logger.info("Not archiving message %s: %s", message.message_id, exc)
			return []
		except kce.RoleNotFoundError as exc:
			self.logger.warning(
				"Not archiving message %s, a pinged role was not found: %s",
				message.message_id,
				exc,
			)
			return []

		if metadata is None:
			return []

		metadata.uploader = message.author_name
		metadata.discord = message.permalink

		total_items = len(message.attachments) + len(media_links)
		if total_items > 1 and not is_reply:
			metadata.author_id = message.author_id
			metadata.message_id = message.message_id
			try:
				await self.correlation.begin_set(session, metadata)
			except kce.PersistenceError:
				self.logger.exception(
					"Could not create the set for message %s.", message.message_id
				)
				return []

		self.logger.info(
			"Archiving %s item(s) from message %s (set=%s, reply=%s).",
			total_items,
			message.message_id,
			metadata.set_id or None,
			is_reply,
		)

		record_ids = []

		for attachment in message.attachments:
			filetype = filetype_for(attachment.content_type)
			if filetype is not None:
				metadata.filetype = filetype

			record_id = await self.__process_item(
				session, attachment.url, attachment.filename, metadata
			)
			if record_id is not None:
				record_ids.append(record_id)

		for link in media_links:
			metadata.filetype = "video"
			metadata.mirror = link

			record_id = await self.__process_item(
				session, link, filename_from_link(link), metadata
			)
			if record_id is not None:
				record_ids.append(record_id)

		return record_ids

	async def create_content_record(
		self,
		session: aiohttp.ClientSession,
		url: str,
		filename: str,
		metadata: Metadata,
	) -> str:
		"""Download a file and store it as a content record with the metadata.

		Raises
		------
		kcat_exceptions.DownloadError (from download_file) -- Non-200 status or empty body
		kcat_exceptions.PersistenceError (from PocketBaseAPI.create_record) -- The record could not be created
		aiohttp.client_exceptions.ClientError (from download_file) -- A client error occurred
		TimeoutError (from download_file) -- The download took too long
		"""
		fields = await self.directory.resolve_fields(session, metadata)
		data = await download_file(session, url)

		record = await self.store.create_record(
			session, CONTENTS_COLLECTION, fields, {"file": (filename, data)}
		)

		return record["id"]

	async def __process_item(
		self,
		session: aiohttp.ClientSession,
		url: str,
		filename: str,
		metadata: Metadata,
	) -> str | None:
		"""Create a record for one item, logging instead of raising on failure."""
		try:
			record_id = await self.create_content_record(
				session, url, filename, metadata
			)
		except (
			kce.DownloadError,
			kce.PersistenceError,
			TimeoutError,
			client_exc.ClientError,
		):
			self.logger.warning("Unable to process media link %s.", url, exc_info=True)
			return None

		self.logger.info("Archived %s as %s.", url, record_id)

		return record_id

	async def __prepare_metadata(
		self, message: IncomingMessage
	) -> tuple[Metadata | None, bool]:
		"""Get the metadata for a message and whether it continues a set.

		Returns (None, False) if the message should be ignored.

		Raises
		------
		kcat_exceptions.MissingRequiredFieldError (from extract_metadata) -- No idol or no group
		kcat_exceptions.RoleNotFoundError -- A pinged role could not be found
		"""
		if message.mentions_bot:
			return mex.extract_metadata(message.content, Metadata()), False

		if message.channel_id not in self.allowed_channels():
			return None, False

		if len(message.mentioned_role_ids) > 0:
			if message.role_names is None:
				msg = f"one of {message.mentioned_role_ids}"
				raise kce.RoleNotFoundError(msg)

			metadata = mex.metadata_from_roles(message.role_names)
			if not metadata.idol:
				self.logger.info(
					"No idol roles among %s in message %s.",
					message.role_names,
					message.message_id,
				)
				return None, False

			return mex.extract_metadata(message.content, metadata), False

		if message.referenced_message_id is not None:
			metadata = await self.correlation.try_continue_set(
				message.author_id, message.referenced_message_id
			)
			if metadata is not None:
				return metadata, True

		return None, False
