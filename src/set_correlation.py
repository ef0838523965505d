# Copyright (C) 2024 McAwesome (https://github.com/McAwesome123)
# This script is licensed under the GNU Affero General Public License version 3 or later.
# For more information, view the LICENSE file provided with this project
# or visit: https://www.gnu.org/licenses/agpl-3.0.en.html

"""Grouping several media items into one set, including items sent later as replies."""

import asyncio
import datetime as dt
import logging
import secrets
import string
from collections.abc import Callable
from dataclasses import dataclass

import aiohttp

from src.directory_cache import DATE_FORMAT, DirectoryCache, parse_short_date
from src.kcat_dataclasses import Metadata
from src.kcatbot_config import SETS_COLLECTION
from src.pocketbase_api import PocketBaseAPI

SET_ID_LENGTH = 15
SET_ID_CHARSET = string.ascii_lowercase + string.digits
DEFAULT_RETENTION = dt.timedelta(hours=1)


def generate_set_id(length: int = SET_ID_LENGTH) -> str:
	"""Generate a random record id."""
	return "".join(secrets.choice(SET_ID_CHARSET) for _ in range(length))


def set_title(metadata: Metadata, now: dt.datetime) -> str:
	"""Get the title of a set: its YYMMDD date (or today's) followed by the metadata title."""
	date = parse_short_date(metadata.date) or now

	return f"{date.strftime(DATE_FORMAT)} {metadata.title}"


@dataclass
class SetCorrelationEntry:
	"""The metadata of a set, kept so replies to its message can join the set."""

	metadata: Metadata
	author_id: str
	message_id: str
	created_at: dt.datetime


class SetCorrelation:
	"""Creates sets and remembers them so later replies can be added to them.

	Entries are keyed by (author id, message id) of the message that started
	the set and expire after the retention period.
	"""

	def __init__(
		self,
		store: PocketBaseAPI,
		directory: DirectoryCache,
		retention: dt.timedelta = DEFAULT_RETENTION,
		clock: Callable[[], dt.datetime] | None = None,
	) -> "SetCorrelation":
		"""Create a set tracker."""
		self.logger = logging.getLogger("kcatbot.sets")
		self.store = store
		self.directory = directory
		self.retention = retention
		self.clock = clock or (lambda: dt.datetime.now(dt.UTC))
		self.lock = asyncio.Lock()
		self.entries: dict[tuple[str, str], SetCorrelationEntry] = {}

	async def begin_set(
		self, session: aiohttp.ClientSession, metadata: Metadata
	) -> str:
		"""Create a set record for the metadata and remember it.

		metadata.set_id is filled in. Nothing is remembered if the set record
		could not be created.

		Raises
		------
		kcat_exceptions.PersistenceError (from PocketBaseAPI.create_record) -- The set could not be created
		"""
		now = self.clock()
		metadata.set_id = generate_set_id()

		group_ids = self.directory.resolve_groups(metadata.group)
		fields = {
			"id": metadata.set_id,
			"title": set_title(metadata, now),
			"idol": self.directory.resolve_idols(metadata.idol, group_ids),
			"group": sorted(group_ids),
			"uploader": await self.directory.resolve_uploaders(
				session, metadata.uploader
			),
		}

		await self.store.create_record(session, SETS_COLLECTION, fields)

		async with self.lock:
			self.__evict_stale(now)
			self.entries[(metadata.author_id, metadata.message_id)] = (
				SetCorrelationEntry(
					metadata.copy(), metadata.author_id, metadata.message_id, now
				)
			)

		self.logger.info(
			"Started set %s for message %s by %s.",
			metadata.set_id,
			metadata.message_id,
			metadata.author_id,
		)

		return metadata.set_id

	async def try_continue_set(
		self, author_id: str, referenced_message_id: str
	) -> Metadata | None:
		"""Get a copy of the metadata of the set started by this author in the referenced message.

		Returns None if there is no such set (or it expired).
		"""
		async with self.lock:
			entry = self.entries.get((author_id, referenced_message_id))

			if entry is None:
				return None

			if self.clock() > entry.created_at + self.retention:
				del self.entries[(author_id, referenced_message_id)]
				return None

			return entry.metadata.copy()

	def __evict_stale(self, now: dt.datetime) -> None:
		"""Remove entries older than the retention period. Call with the lock held."""
		cutoff = now - self.retention
		for key in [i for i, j in self.entries.items() if j.created_at < cutoff]:
			del self.entries[key]
