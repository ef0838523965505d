# Copyright (C) 2024 McAwesome (https://github.com/McAwesome123)
# This script is licensed under the GNU Affero General Public License version 3 or later.
# For more information, view the LICENSE file provided with this project
# or visit: https://www.gnu.org/licenses/agpl-3.0.en.html

"""Module containing dataclasses used by the ingestion pipeline and the PocketBase handler."""

from dataclasses import dataclass, field, fields, replace


@dataclass
class Metadata:
	"""Data class containing the metadata staged for a content record.

	Values are kept as the raw strings users typed (comma-separated names for
	idol, group, uploader and tags). Canonical IDs are only produced when the
	metadata is resolved against the directory.
	"""

	file: str = ""
	filetype: str = ""
	title: str = ""
	idol: str = ""
	group: str = ""
	tags: str = ""
	uploader: str = ""
	date: str = ""
	source: str = ""
	discord: str = ""
	mirror: str = ""
	hq_mirror: str = ""
	set_id: str = ""
	author_id: str = ""
	message_id: str = ""

	# Keys users can write in a message, mapped to attribute names.
	TEXT_KEYS = {  # noqa: RUF012
		"file": "file",
		"filetype": "filetype",
		"title": "title",
		"idol": "idol",
		"group": "group",
		"tags": "tags",
		"uploader": "uploader",
		"date": "date",
		"source": "source",
		"discord": "discord",
		"mirror": "mirror",
		"hqMirror": "hq_mirror",
		"setId": "set_id",
	}

	def copy(self) -> "Metadata":
		"""Return a shallow copy of the metadata."""
		return replace(self)

	def __str__(self) -> str:
		"""Return the non-empty fields, separated by newlines."""
		str_list = [
			f"{i.name}: {getattr(self, i.name)}"
			for i in fields(self)
			if getattr(self, i.name)
		]

		return "\n".join(str_list)


@dataclass(frozen=True)
class IdolEntry:
	"""Data class containing an idol known to the directory."""

	id: str
	name: str
	code: str
	group_id: str

	type IdolEntryType = dict[str, str]

	@staticmethod
	def from_obj(obj: IdolEntryType) -> "IdolEntry":
		"""Create an IdolEntry from an object.

		Argument: obj -- The object to create an IdolEntry from.
		(Expected: an item from a groups_idols records listing.)
		"""
		return IdolEntry(
			obj["id"],
			obj.get("name", ""),
			obj.get("code", ""),
			obj.get("group", ""),
		)


@dataclass(frozen=True)
class MediaAttachment:
	"""Data class containing a file attached to a message."""

	url: str
	filename: str
	content_type: str | None


@dataclass
class IncomingMessage:
	"""Data class containing the parts of a chat message the ingestor looks at.

	role_names is None when a pinged role could not be resolved to a name.
	"""

	message_id: str
	channel_id: str
	guild_id: str | None
	author_id: str
	author_name: str
	content: str
	author_is_bot: bool = False
	mentions_bot: bool = False
	mentioned_role_ids: list[str] = field(default_factory=list)
	role_names: list[str] | None = field(default_factory=list)
	referenced_message_id: str | None = None
	attachments: list[MediaAttachment] = field(default_factory=list)

	@property
	def permalink(self) -> str:
		"""Link to the message. DMs use @me in place of the guild."""
		guild = self.guild_id if self.guild_id is not None else "@me"
		return f"https://discord.com/channels/{guild}/{self.channel_id}/{self.message_id}"


@dataclass
class ContentRecord:
	"""Data class containing an archived content record."""

	id: str
	file: str
	kpfhd_file: str
	mirror: str
	source: str
	title: str
	created: str
	groups: list[str]
	idols: list[str]
	uploaders: list[str]

	type ContentRecordType = dict[str, str | list[str] | dict[str, list[dict[str, str]]]]

	@staticmethod
	def from_obj(obj: ContentRecordType) -> "ContentRecord":
		"""Create a ContentRecord from an object.

		Argument: obj -- The object to create a ContentRecord from.
		(Expected: an item from a contents/v1 records listing,
		optionally with idol, group and uploader expanded.)
		"""
		expand = obj.get("expand") or {}

		def names(key: str) -> list[str]:
			expanded = expand.get(key) or []
			if isinstance(expanded, dict):
				expanded = [expanded]
			return [i.get("name", "") for i in expanded]

		return ContentRecord(
			obj["id"],
			obj.get("file") or "",
			obj.get("kpfhdFile") or "",
			obj.get("mirror") or "",
			obj.get("source") or "",
			obj.get("title") or "",
			obj.get("created") or "",
			names("group"),
			names("idol"),
			names("uploader"),
		)

	def file_url(self, base_url: str, collection: str) -> str | None:
		"""Return the public URL of the stored file, if there is one."""
		if not self.file:
			return None

		return f"{base_url}/{collection}/{self.id}/{self.file}"

	def format(self) -> str:
		"""Return the metadata header shown above a set's links."""
		return (
			f"**Title**: {self.title}\n"
			f"**Created**: {self.created}\n"
			f"**Groups**: {', '.join(self.groups)}\n"
			f"**Idols**: {', '.join(self.idols)}\n"
			f"**Uploader**: {', '.join(self.uploaders)}\n"
			"\n"
			"**Links**:"
		)
