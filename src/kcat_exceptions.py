# Copyright (C) 2024 McAwesome (https://github.com/McAwesome123)
# This script is licensed under the GNU Affero General Public License version 3 or later.
# For more information, view the LICENSE file provided with this project
# or visit: https://www.gnu.org/licenses/agpl-3.0.en.html

"""Module containing exceptions used by the ingestion pipeline and the PocketBase handler."""


class KcatError(Exception):
	"""General purpose bot exception."""


class APIError(KcatError):
	"""General purpose PocketBase API handler exception."""


class ParameterError(APIError):
	"""Missing or unexpected request argument."""


class ValidationError(KcatError):
	"""Input could not be turned into valid metadata."""


class MissingRequiredFieldError(ValidationError):
	"""A required metadata field is empty."""

	def __init__(self, *fields: str) -> "MissingRequiredFieldError":
		"""Create a missing required field error."""
		self.fields = fields
		super().__init__(f"Missing required field(s): {', '.join(fields)}")


class MalformedLinkError(ValidationError):
	"""The link is not in a recognized format."""


class RecordLookupError(KcatError):
	"""Something that was looked up does not exist."""


class RoleNotFoundError(RecordLookupError):
	"""A pinged role could not be found in the guild."""


class RecordNotFoundError(RecordLookupError):
	"""The requested record was not found."""


class DownloadError(KcatError):
	"""Remote media could not be downloaded."""

	def __init__(
		self, url: str, reason: str, status: int | None = None, /
	) -> "DownloadError":
		"""Create a download error."""
		self.url = url
		self.reason = reason
		self.status = status
		super().__init__(f"Failed to download {url}: {reason}")


class PersistenceError(KcatError):
	"""A record could not be written to the store."""
