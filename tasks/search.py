"""Debounced project search.

``ProjectSearchDispatcher`` sits between a search box and navigation: rapid
keystrokes collapse into one navigation after a quiet period, clearing the
box navigates immediately, and repeating the current search does nothing.

Timers come from a scheduler, anything with
``call_later(delay, callback) -> handle`` where ``handle.cancel()`` works.
A running asyncio event loop fits; tests pass a virtual-time scheduler.
"""

import asyncio
import logging
from dataclasses import dataclass

from django.utils.http import urlencode

from . import queries
from .conf import TaskboardConfig
from .predicates import require_id

logger = logging.getLogger(__name__)

IDLE = "idle"
PENDING = "pending"
DISPATCHING = "dispatching"

PROJECTS_URL = "/tasks/projects/"


@dataclass(frozen=True)
class ProjectSearch:
    query: str
    url: str
    predicates: tuple


def build_search_url(base_url, value):
    if not value:
        return base_url
    return f"{base_url}?{urlencode({'q': value})}"


class ProjectSearchDispatcher:
    """Coalesce search input into project-list navigations.

    Args:
        user_id: Owner of the projects being searched.
        navigate: Called with a ``ProjectSearch`` for every dispatch.
        scheduler: Timer source; defaults to the running event loop.
        delay: Quiet period before a search is dispatched, in seconds.
        settle: How long ``is_settling`` stays up after a dispatch.
        base_url: Unfiltered project list URL.
        limit: Optional page size for the project query.
        initial: The search currently shown, e.g. from the ``q`` parameter.
    """

    def __init__(self, user_id, navigate, scheduler=None, delay=None, settle=None,
                 base_url=PROJECTS_URL, limit=None, initial=""):
        config = TaskboardConfig.from_settings()
        self.user_id = require_id(user_id, "user_id")
        self.navigate = navigate
        self.delay = config.search_delay if delay is None else delay
        self.settle = config.search_settle if settle is None else settle
        self.base_url = base_url
        self.limit = limit
        self.last_dispatched = (initial or "").strip()
        self._scheduler = scheduler
        self._pending_value = None
        self._timer = None
        self._settle_timer = None
        self._closed = False

    @property
    def is_pending(self):
        return self._timer is not None

    @property
    def is_settling(self):
        return self._settle_timer is not None

    @property
    def closed(self):
        return self._closed

    @property
    def state(self):
        if self.is_pending:
            return PENDING
        if self.is_settling:
            return DISPATCHING
        return IDLE

    def request(self, value):
        if self._closed:
            logger.debug("Ignoring search %r on a closed dispatcher", value)
            return
        value = (value or "").strip()

        # Checked before the pending timer, which is left running.
        if value == self.last_dispatched:
            return

        if self._timer is not None:
            if value == self._pending_value:
                return
            self._cancel_pending()

        if not value:
            # Clearing the search skips the quiet period.
            self._dispatch(value)
            return

        self._pending_value = value
        self._timer = self._call_later(self.delay, self._fire)

    def close(self):
        """Cancel outstanding timers; later requests are ignored."""
        self._cancel_pending()
        if self._settle_timer is not None:
            self._settle_timer.cancel()
            self._settle_timer = None
        self._closed = True

    def _call_later(self, delay, callback):
        scheduler = self._scheduler
        if scheduler is None:
            scheduler = asyncio.get_running_loop()
        return scheduler.call_later(delay, callback)

    def _cancel_pending(self):
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._pending_value = None

    def _fire(self):
        value = self._pending_value
        self._timer = None
        self._pending_value = None
        if self._closed or value is None:
            return

        if self._settle_timer is not None:
            self._settle_timer.cancel()
        self._settle_timer = self._call_later(self.settle, self._settled)
        self._dispatch(value)

    def _settled(self):
        self._settle_timer = None

    def _dispatch(self, value):
        self.last_dispatched = value
        search = ProjectSearch(
            query=value,
            url=build_search_url(self.base_url, value),
            predicates=queries.user_projects(self.user_id, search=value or None, limit=self.limit),
        )
        logger.debug("Dispatching project search %r", value)
        self.navigate(search)
