"""Tests for the directory cache."""

import asyncio
import datetime as dt
from unittest.mock import MagicMock

import pytest

import src.kcat_exceptions as kce
from src.directory_cache import (
	RECORD_ORIGIN,
	DirectoryCache,
	normalize_date,
	split_names,
)
from src.kcat_dataclasses import Metadata


class TestHelpers:
	"""Tests for name and date helpers."""

	def test_split_names(self) -> None:
		"""Names are trimmed and lowercased, empties dropped, duplicates kept."""
		assert split_names(" IVE, ,Kep1er,ive ") == ["ive", "kep1er", "ive"]

	def test_normalize_short_date(self) -> None:
		"""YYMMDD becomes a full timestamp."""
		assert normalize_date("240115") == "2024-01-15T00:00:00+00:00"

	def test_normalize_now(self) -> None:
		""""now" and "today" become the current time."""
		now = dt.datetime(2024, 5, 6, 7, 8, 9, tzinfo=dt.UTC)
		assert normalize_date("now", now) == now.isoformat()
		assert normalize_date("today", now) == now.isoformat()

	def test_normalize_other_dates(self) -> None:
		"""Anything else is kept as it is."""
		assert normalize_date("2024-01-15") == "2024-01-15"
		assert normalize_date("999999") == "999999"
		assert normalize_date("") == ""


class TestLoad:
	"""Tests for loading the directory from the store."""

	@pytest.mark.asyncio
	async def test_load(self, store: MagicMock, session: MagicMock) -> None:
		"""Every mapping is built from the store's records."""
		directory = DirectoryCache(store)
		await directory.load(session)

		assert directory.groups == {
			"ive": "g_ive",
			"kep1er": "g_kep",
			"le sserafim": "g_lsf",
		}
		assert directory.uploaders == {"alice": "u_alice"}
		assert [i.id for i in directory.idols["yujin"]] == ["i_yujin_kep", "i_yujin_ive"]
		assert store.find_all_records.await_count == 3


class TestResolve:
	"""Tests for resolving names to ids."""

	def test_resolve_groups(self, directory: DirectoryCache) -> None:
		"""Unknown groups are dropped."""
		assert directory.resolve_groups("IVE, le sserafim, nobody") == {"g_ive", "g_lsf"}

	def test_shared_idol_name_uses_group(self, directory: DirectoryCache) -> None:
		"""An idol name in several groups resolves within the given groups."""
		assert directory.resolve_idol("Yujin", {"g_ive"}) == "i_yujin_ive"
		assert directory.resolve_idol("yujin", {"g_kep"}) == "i_yujin_kep"

	def test_idol_outside_groups(self, directory: DirectoryCache) -> None:
		"""Idols that aren't in the given groups don't resolve."""
		assert directory.resolve_idol("Chaewon", {"g_ive"}) is None
		assert directory.resolve_idol("Nobody", {"g_ive"}) is None

	def test_resolve_idols(self, directory: DirectoryCache) -> None:
		"""Unresolved idols are dropped from the list."""
		ids = directory.resolve_idols("Yujin, Wonyoung, Chaewon", {"g_ive"})
		assert ids == ["i_yujin_ive", "i_wonyoung"]

	@pytest.mark.asyncio
	async def test_known_uploader(
		self, directory: DirectoryCache, store: MagicMock, session: MagicMock
	) -> None:
		"""Known uploaders are not created again."""
		assert await directory.resolve_uploader(session, " ALICE ") == "u_alice"
		store.create_record.assert_not_awaited()

	@pytest.mark.asyncio
	async def test_new_uploader_created_once(
		self, directory: DirectoryCache, store: MagicMock, session: MagicMock
	) -> None:
		"""Concurrent lookups of a new uploader create it only once."""
		results = await asyncio.gather(
			*(directory.resolve_uploader(session, "Bob") for _ in range(5))
		)

		assert len(set(results)) == 1
		assert directory.uploaders["bob"] == results[0]
		store.create_record.assert_awaited_once_with(
			session, "uploaders", {"name": "bob"}
		)

	@pytest.mark.asyncio
	async def test_uploader_creation_failure(
		self, directory: DirectoryCache, store: MagicMock, session: MagicMock
	) -> None:
		"""A failed creation propagates and nothing is cached."""
		store.create_record.side_effect = kce.PersistenceError("nope")

		with pytest.raises(kce.PersistenceError):
			await directory.resolve_uploader(session, "Bob")

		assert "bob" not in directory.uploaders


class TestResolveFields:
	"""Tests for mapping metadata onto record fields."""

	@pytest.mark.asyncio
	async def test_resolve_fields(
		self, directory: DirectoryCache, session: MagicMock
	) -> None:
		"""Every field is mapped to what the store expects."""
		metadata = Metadata(
			filetype="video",
			title="Yujin from IVE",
			idol="Yujin, Nobody",
			group="IVE, Kep1er",
			tags="Dance, fancam",
			uploader="alice",
			date="240115",
			source="https://youtu.be/dQw4w9WgXcQ",
			discord="https://discord.com/channels/1/2/3",
			mirror="https://i.imgur.com/abc.mp4",
			hq_mirror="https://pixeldrain.com/u/x",
			set_id="set123",
		)

		fields = await directory.resolve_fields(session, metadata)

		assert fields == {
			"title": "Yujin from IVE",
			"idol": ["i_yujin_kep"],
			"group": ["g_ive", "g_kep"],
			"uploader": ["u_alice"],
			"tag": ["Dance", "fancam"],
			"filetype": "video",
			"date": "2024-01-15T00:00:00+00:00",
			"source": "https://youtu.be/dQw4w9WgXcQ",
			"discord": "https://discord.com/channels/1/2/3",
			"mirror": "https://i.imgur.com/abc.mp4",
			"hqMirror": "https://pixeldrain.com/u/x",
			"set": "set123",
			"origin": RECORD_ORIGIN,
			"isQuality": False,
		}
