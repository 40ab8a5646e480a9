"""Service helpers for the tasks app."""

import asyncio

from .calendar import SystemClock, day_window, due_date_label, start_of_day
from .classifier import classify, due_date_display_category
from .repositories import ProjectRepository, TaskRepository


def task_row(task, now):
    """Return a JSON-ready dict for *task* with its bucket and due styling."""
    due = task.due_date
    return {
        "id": task.id,
        "content": task.content,
        "completed": task.completed,
        "due_date": due.isoformat() if due is not None else None,
        "due_label": due_date_label(due, now) if due is not None else None,
        "due_category": due_date_display_category(due, task.completed, now).value,
        "status": classify(task, now).value,
        "project_id": task.project_id,
    }


def project_row(project):
    """Projects may come back as documents or as narrowed ``values()`` dicts."""
    if isinstance(project, dict):
        row = dict(project)
    else:
        row = {
            "id": project.id,
            "name": project.name,
            "color_name": project.color_name,
            "color_hex": project.color_hex,
            "created_at": project.created_at,
        }
    if row.get("created_at") is not None:
        row["created_at"] = row["created_at"].isoformat()
    return row


class TaskService:
    """Task views for one clock.

    Args:
        tasks: TaskRepository (defaults to the ORM-backed one).
        projects: ProjectRepository (defaults to the ORM-backed one).
        clock: Source of "now"; defaults to the system clock.
    """

    def __init__(self, tasks=None, projects=None, clock=None):
        self.tasks = tasks if tasks is not None else TaskRepository()
        self.projects = projects if projects is not None else ProjectRepository()
        self.clock = clock if clock is not None else SystemClock()

    async def find_today_tasks(self, user_id):
        return await self.tasks.find_today_tasks(user_id, day_window(self.clock.now()))

    async def find_inbox_tasks(self, user_id):
        return await self.tasks.find_inbox_tasks(user_id)

    async def find_upcoming_tasks(self, user_id):
        return await self.tasks.find_upcoming_tasks(user_id, start_of_day(self.clock.now()))

    async def find_completed_tasks(self, user_id):
        return await self.tasks.find_completed_tasks(user_id)

    async def count_badges(self, user_id):
        """Sidebar badge counts, fetched together."""
        inbox, today = await asyncio.gather(
            self.tasks.count_inbox_tasks(user_id),
            self.tasks.count_today_tasks(user_id, day_window(self.clock.now())),
        )
        return {"inbox": inbox, "today": today}

    async def list_projects(self, user_id, search=None, limit=None):
        return await self.projects.list_projects(user_id, search=search, limit=limit)
