# Copyright (C) 2024 McAwesome (https://github.com/McAwesome123)
# This script is licensed under the GNU Affero General Public License version 3 or later.
# For more information, view the LICENSE file provided with this project
# or visit: https://www.gnu.org/licenses/agpl-3.0.en.html

"""Splitting results into pages and remembering which page each user is on."""

import asyncio
import datetime as dt
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

MIN_PER_PAGE = 1
MAX_PER_PAGE = 5
DEFAULT_RETENTION = dt.timedelta(hours=1)


class PageAction(StrEnum):
	"""Pagination buttons. The values are the buttons' custom ids."""

	FIRST = "first"
	PREV = "prev"
	NEXT = "next"
	LAST = "last"


def clamp_per_page(per_page: int | None) -> int:
	"""Clamp the number of items per page to 1-5 (default 1)."""
	if per_page is None:
		return MIN_PER_PAGE

	return max(MIN_PER_PAGE, min(MAX_PER_PAGE, per_page))


def build_pages(
	links: list[str], per_page: int | None, header: str | None = None
) -> list[str]:
	"""Split links into pages of per_page links each, with an optional header on the first page."""
	per_page = clamp_per_page(per_page)

	pages = []
	for i in range(0, len(links), per_page):
		chunk = "\n".join(links[i : i + per_page])
		if i == 0 and header is not None:
			chunk = f"{header}\n{chunk}"
		pages.append(chunk)

	return pages


def render_page(pages: list[str], page: int) -> str:
	"""Get the message content for a page."""
	return f"**Page {page + 1} / {len(pages)}**\n\n{pages[page]}"


@dataclass
class PaginationState:
	"""The pages of a response and which one is shown."""

	pages: list[str]
	page: int
	created_at: dt.datetime

	def navigate(self, action: PageAction) -> None:
		"""Move to another page. Going past either end does nothing."""
		match action:
			case PageAction.FIRST:
				self.page = 0
			case PageAction.PREV:
				if self.page > 0:
					self.page -= 1
			case PageAction.NEXT:
				if self.page < len(self.pages) - 1:
					self.page += 1
			case PageAction.LAST:
				self.page = len(self.pages) - 1

	def render(self) -> str:
		"""Get the message content for the current page."""
		return render_page(self.pages, self.page)


class PaginationStore:
	"""Pagination states keyed by (user id, message id).

	States older than the retention period are removed whenever a new one is
	added.
	"""

	def __init__(
		self,
		retention: dt.timedelta = DEFAULT_RETENTION,
		clock: Callable[[], dt.datetime] | None = None,
	) -> "PaginationStore":
		"""Create an empty store."""
		self.logger = logging.getLogger("kcatbot.pagination")
		self.retention = retention
		self.clock = clock or (lambda: dt.datetime.now(dt.UTC))
		self.lock = asyncio.Lock()
		self.states: dict[tuple[str, str], PaginationState] = {}

	async def insert(
		self, user_id: str, message_id: str, pages: list[str], page: int = 0
	) -> PaginationState:
		"""Remember the pages shown to a user in a message."""
		now = self.clock()
		state = PaginationState(pages, page, now)

		async with self.lock:
			self.states[(user_id, message_id)] = state
			self.__evict_stale(now)

		return state

	async def navigate(
		self, user_id: str, message_id: str, action: PageAction
	) -> PaginationState | None:
		"""Apply a button press. Returns None if the user has no state for the message."""
		async with self.lock:
			state = self.states.get((user_id, message_id))
			if state is None:
				return None

			state.navigate(action)
			return state

	def __evict_stale(self, now: dt.datetime) -> None:
		"""Remove states older than the retention period. Call with the lock held."""
		cutoff = now - self.retention
		stale = [i for i, j in self.states.items() if j.created_at < cutoff]
		for key in stale:
			del self.states[key]

		if stale:
			self.logger.debug("Removed %s old pagination state(s).", len(stale))
