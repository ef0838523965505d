# Copyright (C) 2024 McAwesome (https://github.com/McAwesome123)
# This script is licensed under the GNU Affero General Public License version 3 or later.
# For more information, view the LICENSE file provided with this project
# or visit: https://www.gnu.org/licenses/agpl-3.0.en.html

"""Module for describing REST endpoints and making requests to them."""

from dataclasses import dataclass

import aiohttp

import src.kcat_exceptions as kce

REQUEST_TIMEOUT = aiohttp.ClientTimeout(total=30.0)

type Payload = dict[str, str | int | None]
type Body = dict | aiohttp.FormData


@dataclass(frozen=True)
class RequestArgument:
	"""A query argument an endpoint accepts."""

	name: str
	optional: bool


@dataclass(frozen=True)
class Request:
	"""An endpoint: its path template, accepted query arguments and HTTP method.

	__endpoint_url -- Path relative to the API root, with {placeholders} for path parameters
	__request_arguments -- Accepted query arguments (None if it takes none)
	__method -- The HTTP method
	"""

	__endpoint_url: str
	__request_arguments: list[RequestArgument] | None
	__method: str = "GET"

	def build_url(self, url: str, path_parameters: dict[str, str] | None) -> str:
		"""Fill in the path template and join it to the API root.

		Raises
		------
		kcat_exceptions.ParameterError -- A placeholder has no value
		"""
		try:
			endpoint = self.__endpoint_url.format(**(path_parameters or {}))
		except KeyError as exc:
			msg = f"Missing path parameter: {exc.args[0]}"
			raise kce.ParameterError(msg) from exc

		return f"{url}{endpoint}"

	def check_payload(self, request_payload: Payload | None, *, strict: bool) -> None:
		"""Check the query arguments against the ones the endpoint accepts.

		Raises
		------
		kcat_exceptions.ParameterError -- A required argument is missing, or (if strict) an unknown one was given
		"""
		given = set(request_payload or {})
		accepted = {i.name for i in self.__request_arguments or []}
		required = {i.name for i in self.__request_arguments or [] if not i.optional}

		if strict and not given <= accepted:
			msg = f"Unexpected request argument(s): {sorted(given - accepted)}"
			raise kce.ParameterError(msg)

		if not required <= given:
			msg = f"Missing required request argument(s): {sorted(required - given)}"
			raise kce.ParameterError(msg)

	def make_request(
		self,
		session: aiohttp.ClientSession,
		url: str,
		path_parameters: dict[str, str] | None,
		request_payload: Payload | None,
		*,
		strictly_match_request_arguments: bool = True,
		headers: dict[str, str] | None = None,
		body: Body | None = None,
	) -> aiohttp.client._RequestContextManager:
		"""Make a request to the endpoint and return the response context manager.

		Arguments:
		---------
		session -- An aiohttp client session to use
		url -- Full URL of the API root
		path_parameters -- Values substituted into the path template
		request_payload -- Query arguments. None values are left out

		Keyword Arguments:
		-----------------
		strictly_match_request_arguments -- Reject unknown query arguments (default True)
		headers -- Request headers (default {})
		body -- A JSON object, or a multipart form, sent as the request body (default None)

		Raises:
		------
		kcat_exceptions.ParameterError (from build_url, check_payload) -- Missing or unexpected argument
		aiohttp.client_exceptions.ClientError (from aiohttp.ClientSession.request) -- A client error occurred
		"""
		self.check_payload(request_payload, strict=strictly_match_request_arguments)
		final_url = self.build_url(url, path_parameters)

		params = None
		if request_payload is not None:
			params = {i: str(j) for i, j in request_payload.items() if j is not None}

		kwargs = {"params": params, "timeout": REQUEST_TIMEOUT, "headers": headers or {}}
		if isinstance(body, aiohttp.FormData):
			kwargs["data"] = body
		elif body is not None:
			kwargs["json"] = body

		return session.request(self.__method, final_url, **kwargs)


@dataclass(frozen=True)
class API:
	"""A REST API: where it lives and the endpoints it has.

	_base_url -- The URL of the server
	_api_url -- The path of the API root on the server
	_requests_list -- Endpoints by name
	"""

	_base_url: str
	_api_url: str
	_requests_list: dict[str, Request]

	async def _make_request(
		self,
		session: aiohttp.ClientSession,
		endpoint: str,
		path_parameters: dict[str, str] | None,
		request_payload: Payload | None,
		*,
		strictly_match_request_arguments: bool = True,
		headers: dict[str, str] | None = None,
		body: Body | None = None,
	) -> aiohttp.client._RequestContextManager:
		"""Make a request to a named endpoint.

		Raises
		------
		kcat_exceptions.ParameterError (from Request.make_request) -- Missing or unexpected argument
		aiohttp.client_exceptions.ClientError (from Request.make_request) -- A client error occurred
		"""
		return self._requests_list[endpoint].make_request(
			session,
			f"{self._base_url}{self._api_url}",
			path_parameters,
			request_payload,
			strictly_match_request_arguments=strictly_match_request_arguments,
			headers=headers,
			body=body,
		)
