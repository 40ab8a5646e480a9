import asyncio
import dataclasses
from collections import defaultdict

from tasks.conf import TaskboardConfig
from tasks.repositories import DEFAULT_DATABASE, PROJECTS, TASKS, DocumentRepository

from . import queries


class AnalyticsRepository(DocumentRepository):
    """Fetches the raw collections and counts behind the dashboard."""

    def __init__(self, store=None, database=DEFAULT_DATABASE, config=None):
        super().__init__(store=store, database=database)
        self.config = config if config is not None else TaskboardConfig.from_settings()

    async def get_tasks(self, user_id, time_range, now):
        result = await self.list_documents(
            TASKS,
            queries.tasks_in_time_range(user_id, time_range, now, self.config.max_tasks),
            "tasks",
        )
        return result.documents

    async def get_projects(self, user_id):
        result = await self.list_documents(
            PROJECTS,
            queries.analytics_projects(user_id, self.config.max_projects),
            "projects",
        )
        return result.documents

    async def get_projects_with_tasks(self, user_id, now):
        """Return projects with ``tasks`` filled from the last year of tasks."""
        projects, tasks = await asyncio.gather(
            self.get_projects(user_id),
            self.get_tasks(user_id, "1y", now),
        )
        tasks_by_project = defaultdict(list)
        for task in tasks:
            if task.project_id:
                tasks_by_project[task.project_id].append(task)
        return [
            dataclasses.replace(project, tasks=tuple(tasks_by_project.get(project.id, ())))
            for project in projects
        ]

    async def count_tasks(self, user_id):
        return await self.count_documents(TASKS, queries.total_count(user_id), "task count")

    async def count_completed_tasks(self, user_id):
        return await self.count_documents(
            TASKS, queries.completed_count(user_id), "completed task count",
        )

    async def count_pending_tasks(self, user_id):
        return await self.count_documents(
            TASKS, queries.pending_count(user_id), "pending task count",
        )

    async def count_overdue_tasks(self, user_id, today_start):
        return await self.count_documents(
            TASKS, queries.overdue_count(user_id, today_start), "overdue task count",
        )
