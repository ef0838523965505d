# Copyright (C) 2024 McAwesome (https://github.com/McAwesome123)
# This script is licensed under the GNU Affero General Public License version 3 or later.
# For more information, view the LICENSE file provided with this project
# or visit: https://www.gnu.org/licenses/agpl-3.0.en.html

"""In-memory directory of groups, idols and uploaders, and name resolution against it."""

import asyncio
import datetime as dt
import logging

import aiohttp

from src.kcat_dataclasses import IdolEntry, Metadata
from src.kcatbot_config import GROUPS_COLLECTION, IDOLS_COLLECTION, UPLOADERS_COLLECTION
from src.pocketbase_api import PocketBaseAPI

DATE_FORMAT = "%y%m%d"
DATE_LENGTH = 6
RECORD_ORIGIN = "discord-kpf"


def split_names(raw: str) -> list[str]:
	"""Split a comma-separated list of names into trimmed, lowercase names.

	Empty names are dropped. Duplicates are kept.
	"""
	return [i.strip().lower() for i in raw.split(",") if i.strip()]


def split_tags(raw: str) -> list[str]:
	"""Split a comma-separated list of tags, keeping their case."""
	return [i.strip() for i in raw.split(",") if i.strip()]


def parse_short_date(value: str) -> dt.datetime | None:
	"""Parse a YYMMDD date, returning None if it isn't one."""
	if len(value) != DATE_LENGTH:
		return None

	try:
		return dt.datetime.strptime(value, DATE_FORMAT).replace(tzinfo=dt.UTC)
	except ValueError:
		return None


def normalize_date(value: str, now: dt.datetime | None = None) -> str:
	"""Turn the date users typed into what gets stored.

	"now" and "today" become the current time and YYMMDD becomes a full
	timestamp. Anything else is kept as it is.
	"""
	if value in {"now", "today"}:
		return (now or dt.datetime.now(dt.UTC)).isoformat()

	parsed = parse_short_date(value)
	if parsed is not None:
		return parsed.isoformat()

	return value


class DirectoryCache:
	"""Name to id mappings for groups, idols and uploaders, loaded from the store.

	Names are stored trimmed and lowercase. An idol name can belong to more
	than one group, so idols map to a list of entries.
	"""

	def __init__(self, store: PocketBaseAPI) -> "DirectoryCache":
		"""Create an empty directory backed by a store."""
		self.logger = logging.getLogger("kcatbot.directory")
		self.store = store
		self.lock = asyncio.Lock()

		self.groups: dict[str, str] = {}
		self.uploaders: dict[str, str] = {}
		self.idols: dict[str, list[IdolEntry]] = {}

	async def load(self, session: aiohttp.ClientSession) -> None:
		"""Rebuild every mapping from the store.

		Raises
		------
		aiohttp.client_exceptions.ClientError (from PocketBaseAPI.find_all_records) -- A client error occurred
		"""
		self.logger.info("Loading directory from the store.")

		group_records = await self.store.find_all_records(
			session, GROUPS_COLLECTION, sort="-created"
		)
		uploader_records = await self.store.find_all_records(
			session, UPLOADERS_COLLECTION, sort="-created"
		)
		idol_records = await self.store.find_all_records(
			session, IDOLS_COLLECTION, sort="-created"
		)

		groups = {
			i.get("name", "").strip().lower(): i["id"] for i in group_records
		}
		uploaders = {
			i.get("name", "").strip().lower(): i["id"] for i in uploader_records
		}
		idols: dict[str, list[IdolEntry]] = {}
		for i in idol_records:
			entry = IdolEntry.from_obj(i)
			idols.setdefault(entry.name.strip().lower(), []).append(entry)

		async with self.lock:
			self.groups = groups
			self.uploaders = uploaders
			self.idols = idols

		self.logger.info(
			"Directory loaded (groups=%s, uploaders=%s, idols=%s)",
			len(groups),
			len(uploaders),
			len(idols),
		)

	def resolve_groups(self, raw: str) -> set[str]:
		"""Get the ids of the known groups in a comma-separated list of group names."""
		return {self.groups[i] for i in split_names(raw) if i in self.groups}

	def resolve_idol(self, name: str, group_ids: set[str]) -> str | None:
		"""Get the id of an idol that belongs to one of the given groups.

		Returns the first matching entry, or None if the name is unknown or
		none of its entries are in the given groups.
		"""
		entries = self.idols.get(name.strip().lower())
		if entries is None:
			self.logger.debug("Unknown idol %r.", name)
			return None

		for i in entries:
			if i.group_id in group_ids:
				return i.id

		self.logger.debug("Idol %r is not in any of the groups %s.", name, group_ids)
		return None

	def resolve_idols(self, raw: str, group_ids: set[str]) -> list[str]:
		"""Get the ids of the idols in a comma-separated list, dropping any that don't resolve."""
		idol_ids = []

		for i in split_names(raw):
			idol_id = self.resolve_idol(i, group_ids)
			if idol_id is not None:
				idol_ids.append(idol_id)

		return idol_ids

	async def resolve_uploader(self, session: aiohttp.ClientSession, name: str) -> str:
		"""Get the id of an uploader, creating the uploader if it doesn't exist yet.

		Creation happens under the directory lock, so a name is only created once.

		Raises
		------
		kcat_exceptions.PersistenceError (from PocketBaseAPI.create_record) -- The uploader could not be created
		"""
		key = name.strip().lower()

		uploader_id = self.uploaders.get(key)
		if uploader_id is not None:
			return uploader_id

		async with self.lock:
			uploader_id = self.uploaders.get(key)
			if uploader_id is not None:
				return uploader_id

			record = await self.store.create_record(
				session, UPLOADERS_COLLECTION, {"name": key}
			)
			self.uploaders[key] = record["id"]

		self.logger.info("Created uploader %r (%s).", key, record["id"])

		return record["id"]

	async def resolve_uploaders(
		self, session: aiohttp.ClientSession, raw: str
	) -> list[str]:
		"""Get the ids of every uploader in a comma-separated list.

		Raises
		------
		kcat_exceptions.PersistenceError (from resolve_uploader) -- An uploader could not be created
		"""
		return [await self.resolve_uploader(session, i) for i in split_names(raw)]

	async def resolve_fields(
		self, session: aiohttp.ClientSession, metadata: Metadata
	) -> dict[str, str | bool | list[str]]:
		"""Map metadata onto the fields of a content record.

		Raises
		------
		kcat_exceptions.PersistenceError (from resolve_uploaders) -- An uploader could not be created
		"""
		group_ids = self.resolve_groups(metadata.group)

		return {
			"title": metadata.title,
			"idol": self.resolve_idols(metadata.idol, group_ids),
			"group": sorted(group_ids),
			"uploader": await self.resolve_uploaders(session, metadata.uploader),
			"tag": split_tags(metadata.tags),
			"filetype": metadata.filetype,
			"date": normalize_date(metadata.date),
			"source": metadata.source,
			"discord": metadata.discord,
			"mirror": metadata.mirror,
			"hqMirror": metadata.hq_mirror,
			"set": metadata.set_id,
			"origin": RECORD_ORIGIN,
			"isQuality": False,
		}
