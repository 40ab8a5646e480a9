"""Async repositories over a synchronous document store.

Each store call runs through ``sync_to_async`` so several fetches can be
awaited together.  Store failures surface as ``UpstreamFetchError``.
"""

import logging

from asgiref.sync import sync_to_async

from . import queries
from .exceptions import UpstreamFetchError
from .store import ModelStore

logger = logging.getLogger(__name__)

DEFAULT_DATABASE = "default"
TASKS = "tasks"
PROJECTS = "projects"


class DocumentRepository:
    def __init__(self, store=None, database=DEFAULT_DATABASE):
        self.store = store if store is not None else ModelStore()
        self.database = database

    async def list_documents(self, collection, predicates, what):
        """Run *predicates* against *collection*; *what* names it in errors."""
        try:
            return await sync_to_async(self.store.list_documents)(
                self.database, collection, predicates,
            )
        except Exception as exc:
            logger.exception("Error fetching %s", what)
            raise UpstreamFetchError(f"Failed to fetch {what}") from exc

    async def count_documents(self, collection, predicates, what):
        result = await self.list_documents(collection, predicates, what)
        return result.total


class TaskRepository(DocumentRepository):
    async def find_today_tasks(self, user_id, window):
        return await self.list_documents(
            TASKS, queries.today_tasks(user_id, window), "today tasks",
        )

    async def find_inbox_tasks(self, user_id):
        return await self.list_documents(
            TASKS, queries.inbox_tasks(user_id), "inbox tasks",
        )

    async def find_upcoming_tasks(self, user_id, today_start):
        return await self.list_documents(
            TASKS, queries.upcoming_tasks(user_id, today_start), "upcoming tasks",
        )

    async def find_completed_tasks(self, user_id):
        return await self.list_documents(
            TASKS, queries.completed_tasks(user_id), "completed tasks",
        )

    async def count_today_tasks(self, user_id, window):
        return await self.count_documents(
            TASKS, queries.today_tasks_count(user_id, window), "today task count",
        )

    async def count_inbox_tasks(self, user_id):
        return await self.count_documents(
            TASKS, queries.inbox_tasks_count(user_id), "inbox task count",
        )


class ProjectRepository(DocumentRepository):
    async def list_projects(self, user_id, search=None, limit=None):
        return await self.list_documents(
            PROJECTS, queries.user_projects(user_id, search=search, limit=limit), "projects",
        )
