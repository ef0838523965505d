"""Pytest configuration and shared fixtures."""

import itertools
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.directory_cache import DirectoryCache
from src.kcat_dataclasses import IdolEntry

GROUP_RECORDS = [
	{"id": "g_ive", "name": "IVE"},
	{"id": "g_kep", "name": "Kep1er"},
	{"id": "g_lsf", "name": " LE SSERAFIM "},
]
IDOL_RECORDS = [
	{"id": "i_yujin_kep", "name": "Yujin", "code": "kep-yujin", "group": "g_kep"},
	{"id": "i_yujin_ive", "name": "Yujin", "code": "ive-yujin", "group": "g_ive"},
	{"id": "i_wonyoung", "name": "Wonyoung", "code": "ive-wonyoung", "group": "g_ive"},
	{"id": "i_chaewon", "name": "Chaewon", "code": "lsf-chaewon", "group": "g_lsf"},
]
UPLOADER_RECORDS = [{"id": "u_alice", "name": "Alice"}]


def records_for(collection: str) -> list[dict]:
	"""Return the fake records of a directory collection."""
	return {
		"groups": GROUP_RECORDS,
		"groups_idols": IDOL_RECORDS,
		"uploaders": UPLOADER_RECORDS,
	}.get(collection, [])


@pytest.fixture
def session() -> MagicMock:
	"""Provide a stand-in aiohttp session."""
	return MagicMock(name="session")


@pytest.fixture
def store() -> MagicMock:
	"""Provide a fake store with the PocketBaseAPI methods the core uses."""
	counter = itertools.count(1)

	async def create_record(_session, collection, fields, files=None):  # noqa: ARG001
		return {"id": fields.get("id") or f"{collection}_{next(counter)}", **fields}

	async def find_all_records(_session, collection, filter_="", sort=""):  # noqa: ARG001
		return records_for(collection)

	fake = MagicMock(name="store")
	fake.create_record = AsyncMock(side_effect=create_record)
	fake.find_all_records = AsyncMock(side_effect=find_all_records)
	fake.find_records_by_filter = AsyncMock(return_value=[])
	return fake


@pytest.fixture
def directory(store: MagicMock) -> DirectoryCache:
	"""Provide a directory filled with the fake records."""
	directory = DirectoryCache(store)
	directory.groups = {i["name"].strip().lower(): i["id"] for i in GROUP_RECORDS}
	directory.uploaders = {i["name"].lower(): i["id"] for i in UPLOADER_RECORDS}
	for i in IDOL_RECORDS:
		directory.idols.setdefault(i["name"].lower(), []).append(IdolEntry.from_obj(i))
	return directory
