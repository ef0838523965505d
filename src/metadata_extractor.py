# Copyright (C) 2024 McAwesome (https://github.com/McAwesome123)
# This script is licensed under the GNU Affero General Public License version 3 or later.
# For more information, view the LICENSE file provided with this project
# or visit: https://www.gnu.org/licenses/agpl-3.0.en.html

"""Turning message text, role names and links into metadata."""

import logging
import re
from dataclasses import dataclass

import src.kcat_exceptions as kce
from src.kcat_dataclasses import Metadata

extractor_logger = logging.getLogger("kcatbot.extractor")

MEDIA_LINK_REGEX = re.compile(
	r"https?://(i\.)?imgur\.com/([a-zA-Z0-9]+)(\.[a-zA-Z0-9]+)?"
)
ROLE_REGEX = re.compile(r"(\w+) \[([^\]]+)\]")
SOURCE_LINK_REGEX = re.compile(
	r"(?:https?://)?(?:www\.)?(?:youtube\.com/watch\?v=|youtu\.be/)[\w\-]{11}"
)
HQ_MIRROR_REGEX = re.compile(
	r"(?:https?://)?(?:www\.)?pixeldrain\.com/(?:u|l)/[a-zA-Z0-9]+"
)

CDN_HOST = "i.imgur.com"
CDN_PREFIX = "i."
CANONICAL_EXTENSION = ".mp4"
SHORT_MIRROR_PREFIX = "https://imgur.com/"


@dataclass(frozen=True)
class MediaLinkMatch:
	"""A recognized media link, split into its parts."""

	url: str
	has_cdn_host: bool
	media_id: str
	extension: str


def match_media_links(text: str) -> list[MediaLinkMatch]:
	"""Find every media link in the text, in order."""
	return [
		MediaLinkMatch(
			i.group(0),
			i.group(1) == CDN_PREFIX,
			i.group(2),
			i.group(3) or "",
		)
		for i in MEDIA_LINK_REGEX.finditer(text)
	]


def normalize_media_link(match: MediaLinkMatch) -> str:
	"""Rewrite a media link to the CDN video form unless it already has the CDN host and an extension."""
	if not match.has_cdn_host or not match.extension:
		return f"https://{CDN_HOST}/{match.media_id}{CANONICAL_EXTENSION}"

	return match.url


def retrieve_media_links(text: str) -> list[str]:
	"""Find every media link in the text and normalize it."""
	return [normalize_media_link(i) for i in match_media_links(text)]


def find_source_link(text: str) -> str | None:
	"""Return the first video platform link in the text."""
	match = SOURCE_LINK_REGEX.search(text)
	return match.group(0) if match is not None else None


def find_hq_mirror_link(text: str) -> str | None:
	"""Return the first file sharing link in the text."""
	match = HQ_MIRROR_REGEX.search(text)
	return match.group(0) if match is not None else None


def extract_metadata(text: str, metadata: Metadata) -> Metadata:
	"""Fill metadata from "key: value" lines in the text.

	The metadata is changed in place so values seeded beforehand (e.g. from
	pinged roles) survive unless the text overrides them.

	Arguments:
	---------
	text -- The message text.
	metadata -- The metadata to fill.

	Raises:
	------
	kcat_exceptions.MissingRequiredFieldError -- No idol or no group after parsing
	"""
	for line in text.split("\n"):
		key, separator, value = line.partition(":")
		if not separator:
			continue

		attribute = Metadata.TEXT_KEYS.get(key.strip())
		if attribute is not None:
			setattr(metadata, attribute, value.strip())

	missing = [i for i in ("idol", "group") if not getattr(metadata, i)]
	if missing:
		raise kce.MissingRequiredFieldError(*missing)

	if not metadata.title:
		metadata.title = f"{metadata.idol} from {metadata.group}"

	if not metadata.source:
		metadata.source = find_source_link(text) or ""

	if not metadata.hq_mirror:
		metadata.hq_mirror = find_hq_mirror_link(text) or ""

	extractor_logger.debug("Extracted metadata:\n%s", metadata)

	return metadata


def parse_role_names(role_names: list[str]) -> list[tuple[str, str]]:
	"""Get (idol, group) pairs from role names like "Yujin [IVE]".

	Roles that don't follow the pattern are skipped.
	"""
	result = []

	for i in role_names:
		match = ROLE_REGEX.search(i)
		if match is not None:
			result.append((match.group(1), match.group(2)))

	return result


def metadata_from_roles(role_names: list[str]) -> Metadata:
	"""Create metadata with idol and group seeded from pinged role names.

	Returns empty metadata if none of the roles name an idol.
	"""
	idols = []
	groups = []

	for idol, group in parse_role_names(role_names):
		if idol not in idols:
			idols.append(idol)
		if group not in groups:
			groups.append(group)

	return Metadata(idol=", ".join(idols), group=", ".join(groups))


def normalize_mirror_query(link: str) -> str:
	"""Turn an imgur page link into the CDN video link that mirrors are stored as."""
	link = link.strip()

	if link.startswith(SHORT_MIRROR_PREFIX):
		link = link.replace(SHORT_MIRROR_PREFIX, f"https://{CDN_HOST}/", 1)
		link += CANONICAL_EXTENSION

	return link


def set_link_filter(link: str) -> str:
	"""Build the record filter for a set or collection link.

	The id is the last path segment. /set/ links match the single "set"
	relation, /collection/ links match inside the "collections" list.

	Raises
	------
	kcat_exceptions.MalformedLinkError -- The link isn't a set or collection link
	"""
	link = link.strip()
	link_id = link.rstrip("/").rsplit("/", 1)[-1]

	if not link_id or not re.fullmatch(r"[a-zA-Z0-9]+", link_id):
		msg = f"No set id found in {link!r}"
		raise kce.MalformedLinkError(msg)

	if "/set/" in link:
		return f'(set="{link_id}")'
	if "/collection/" in link:
		return f'(collections~"{link_id}")'

	msg = "Link must contain either /set/ or /collection/ in the path."
	raise kce.MalformedLinkError(msg)
