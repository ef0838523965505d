# Copyright (C) 2024 McAwesome (https://github.com/McAwesome123)
# This script is licensed under the GNU Affero General Public License version 3 or later.
# For more information, view the LICENSE file provided with this project
# or visit: https://www.gnu.org/licenses/agpl-3.0.en.html

"""Module for accessing the PocketBase API."""

import json
import logging
from enum import StrEnum
from typing import ClassVar

import aiohttp
import aiohttp.client_exceptions as client_exc

import src.kcat_exceptions as kce
from src.api_access import API, Request, RequestArgument
from src.kcatbot_config import KCATBOT_USER_AGENT, POCKETBASE_TOKEN, POCKETBASE_URL

type RecordType = dict[str, str | bool | int | list | dict | None]


class PocketBaseAPI(API):
	"""A class for accessing the PocketBase records API."""

	class ValidRequests(StrEnum):
		"""An enum containing all valid API endpoints."""

		LIST_RECORDS = "list_records"
		VIEW_RECORD = "view_record"
		CREATE_RECORD = "create_record"
		VIEW_COLLECTION = "view_collection"

	MAX_PER_PAGE = 500
	NOT_FOUND_STATUS = 404

	__DEFAULT_HEADERS: ClassVar[dict[str, str]] = {"User-Agent": KCATBOT_USER_AGENT}

	def __init__(self, base_url: str, token: str | None = None) -> None:
		"""Initialize the API handler.

		Arguments:
		---------
		base_url -- URL of the PocketBase instance
		token -- Auth token sent in the Authorization header (default None)
		"""
		self.logger = logging.getLogger("pocketbase_api")
		self.__token = token

		list_records = Request(
			"collections/{collection}/records",
			[
				RequestArgument("page", optional=True),
				RequestArgument("perPage", optional=True),
				RequestArgument("sort", optional=True),
				RequestArgument("filter", optional=True),
				RequestArgument("expand", optional=True),
				RequestArgument("skipTotal", optional=True),
			],
			"GET",
		)

		view_record = Request(
			"collections/{collection}/records/{record_id}",
			[RequestArgument("expand", optional=True)],
			"GET",
		)

		create_record = Request(
			"collections/{collection}/records",
			[RequestArgument("expand", optional=True)],
			"POST",
		)

		view_collection = Request("collections/{collection}", None, "GET")

		requests_list = {
			self.ValidRequests.LIST_RECORDS.value: list_records,
			self.ValidRequests.VIEW_RECORD.value: view_record,
			self.ValidRequests.CREATE_RECORD.value: create_record,
			self.ValidRequests.VIEW_COLLECTION.value: view_collection,
		}

		super().__init__(base_url.rstrip("/"), "/api/", requests_list)

	async def _make_request(
		self,
		session: aiohttp.ClientSession,
		endpoint: str,
		path_parameters: dict[str, str] | None,
		request_payload: dict[str, str] | None,
		*,
		strictly_match_request_arguments: bool = True,
		headers: dict[str, str] | None = None,
		body: dict | aiohttp.FormData | None = None,
	) -> aiohttp.client._RequestContextManager:
		"""Make a request at one of the predefined endpoints, adding the default and auth headers.

		Raises
		------
		kcat_exceptions.ParameterError (from Request.make_request) -- Missing or unexpected request argument
		aiohttp.client_exceptions.ClientError (from Request.make_request) -- A client error occurred
		"""
		request_headers = dict(self.__DEFAULT_HEADERS)
		if self.__token:
			request_headers["Authorization"] = self.__token

		if headers is not None:
			request_headers.update(headers)

		return await super()._make_request(
			session,
			endpoint,
			path_parameters,
			request_payload,
			strictly_match_request_arguments=strictly_match_request_arguments,
			headers=request_headers,
			body=body,
		)

	async def find_records_by_filter(
		self,
		session: aiohttp.ClientSession,
		collection: str,
		filter_: str = "",
		sort: str = "",
		per_page: int = 30,
		page: int = 1,
		expand: str | None = None,
	) -> list[RecordType]:
		"""Get one page of records matching a filter.

		Arguments:
		---------
		session -- The session to use.
		collection -- Name or id of the collection.
		filter_ -- PocketBase filter expression (default: no filter).
		sort -- Sort expression, e.g. "-created" (default: unsorted).
		per_page -- Page size (default: 30).
		page -- 1-based page number (default: 1).
		expand -- Comma-separated relation fields to expand (default: None).

		Raises:
		------
		aiohttp.client_exceptions.ClientError (from _make_request) -- A client error occurred
		aiohttp.client_exceptions.ClientResponseError (from aiohttp.ClientResponse.raise_for_status) -- A client error occurred
		"""
		result = await self.__list_records(
			session, collection, filter_, sort, per_page, page, expand
		)
		return result["items"]

	async def find_all_records(
		self,
		session: aiohttp.ClientSession,
		collection: str,
		filter_: str = "",
		sort: str = "",
	) -> list[RecordType]:
		"""Get every record matching a filter, walking through all pages.

		Raises
		------
		aiohttp.client_exceptions.ClientError (from _make_request) -- A client error occurred
		aiohttp.client_exceptions.ClientResponseError (from aiohttp.ClientResponse.raise_for_status) -- A client error occurred
		"""
		records = []
		page = 1

		while True:
			result = await self.__list_records(
				session, collection, filter_, sort, self.MAX_PER_PAGE, page, None
			)
			records.extend(result["items"])

			total_pages = result.get("totalPages", page)
			if page >= total_pages or len(result["items"]) < 1:
				break

			page += 1

		self.logger.debug("Loaded %s records from %s.", len(records), collection)

		return records

	async def find_record_by_id(
		self,
		session: aiohttp.ClientSession,
		collection: str,
		record_id: str,
		expand: str | None = None,
	) -> RecordType:
		"""Get a single record.

		Raises
		------
		kcat_exceptions.RecordNotFoundError -- No record with that id
		aiohttp.client_exceptions.ClientError (from _make_request) -- A client error occurred
		aiohttp.client_exceptions.ClientResponseError (from aiohttp.ClientResponse.raise_for_status) -- A client error occurred
		"""
		payload = {"expand": expand} if expand else None

		r = await self._make_request(
			session,
			self.ValidRequests.VIEW_RECORD.value,
			{"collection": collection, "record_id": record_id},
			payload,
		)
		async with r as resp:
			if resp.status == self.NOT_FOUND_STATUS:
				msg = f"{collection}/{record_id}"
				raise kce.RecordNotFoundError(msg)
			resp.raise_for_status()
			return json.loads(await resp.text())

	async def find_collection(
		self, session: aiohttp.ClientSession, name: str
	) -> RecordType:
		"""Get the schema of a collection by name or id.

		Raises
		------
		kcat_exceptions.RecordNotFoundError -- No such collection
		aiohttp.client_exceptions.ClientError (from _make_request) -- A client error occurred
		aiohttp.client_exceptions.ClientResponseError (from aiohttp.ClientResponse.raise_for_status) -- A client error occurred
		"""
		r = await self._make_request(
			session,
			self.ValidRequests.VIEW_COLLECTION.value,
			{"collection": name},
			None,
		)
		async with r as resp:
			if resp.status == self.NOT_FOUND_STATUS:
				msg = f"collection {name}"
				raise kce.RecordNotFoundError(msg)
			resp.raise_for_status()
			return json.loads(await resp.text())

	async def create_record(
		self,
		session: aiohttp.ClientSession,
		collection: str,
		fields: RecordType,
		files: dict[str, tuple[str, bytes]] | None = None,
	) -> RecordType:
		"""Create a record and return it.

		Arguments:
		---------
		session -- The session to use.
		collection -- Name or id of the collection.
		fields -- Field values. May include "id" to pick the record id.
		files -- Files to upload, as {field: (filename, data)} (default: None).

		Raises:
		------
		kcat_exceptions.PersistenceError -- The store rejected the record or could not be reached
		"""
		body: dict | aiohttp.FormData
		if files:
			body = aiohttp.FormData()
			body.add_field(
				"@jsonPayload", json.dumps(fields), content_type="application/json"
			)
			for field_name, (filename, data) in files.items():
				body.add_field(field_name, data, filename=filename)
		else:
			body = fields

		try:
			r = await self._make_request(
				session,
				self.ValidRequests.CREATE_RECORD.value,
				{"collection": collection},
				None,
				body=body,
			)
			async with r as resp:
				if not resp.ok:
					detail = await resp.text()
					msg = f"Could not create record in {collection}: {resp.status} {detail}"
					raise kce.PersistenceError(msg)

				record = json.loads(await resp.text())

		except (TimeoutError, client_exc.ClientError) as exc:
			msg = f"Could not create record in {collection}: {exc}"
			raise kce.PersistenceError(msg) from exc

		self.logger.info("Created record %s in %s.", record.get("id"), collection)

		return record

	async def __list_records(
		self,
		session: aiohttp.ClientSession,
		collection: str,
		filter_: str,
		sort: str,
		per_page: int,
		page: int,
		expand: str | None,
	) -> dict:
		"""Get a page of records with the listing metadata.

		Raises
		------
		aiohttp.client_exceptions.ClientError (from _make_request) -- A client error occurred
		aiohttp.client_exceptions.ClientResponseError (from aiohttp.ClientResponse.raise_for_status) -- A client error occurred
		"""
		payload = {"page": page, "perPage": per_page}
		if filter_:
			payload["filter"] = filter_
		if sort:
			payload["sort"] = sort
		if expand:
			payload["expand"] = expand

		self.logger.debug("Listing %s (%s).", collection, payload)

		r = await self._make_request(
			session,
			self.ValidRequests.LIST_RECORDS.value,
			{"collection": collection},
			payload,
		)
		async with r as resp:
			resp.raise_for_status()
			return json.loads(await resp.text())


pocketbase_api: PocketBaseAPI = PocketBaseAPI(POCKETBASE_URL, POCKETBASE_TOKEN)
