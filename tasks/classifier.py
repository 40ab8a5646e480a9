"""Status buckets and due-date display categories for tasks."""

from django.db.models import TextChoices

from .calendar import is_due_today, is_due_tomorrow, is_overdue


class StatusBucket(TextChoices):
    COMPLETED = "completed", "Completed"
    OVERDUE = "overdue", "Overdue"
    PENDING = "pending", "Pending"


class DueCategory(TextChoices):
    OVERDUE = "overdue", "Overdue"
    DUE_TODAY = "due-today", "Due today"
    DUE_TOMORROW = "due-tomorrow", "Due tomorrow"
    NONE = "none", "None"


def classify(task, now):
    """Return the status bucket of *task* at *now*.

    A completed task is always COMPLETED, whatever its due date.
    """
    if task.completed:
        return StatusBucket.COMPLETED
    if task.due_date is not None and is_overdue(task.due_date, now):
        return StatusBucket.OVERDUE
    return StatusBucket.PENDING


def due_date_display_category(due_date, completed, now):
    """Return how a due date should be highlighted.

    Checks run overdue, then today, then tomorrow; the first match wins.
    Completed tasks are never shown as overdue or due tomorrow, but still
    show as due today.
    """
    if due_date is None:
        return DueCategory.NONE
    if not completed and is_overdue(due_date, now):
        return DueCategory.OVERDUE
    if is_due_today(due_date, now):
        return DueCategory.DUE_TODAY
    if not completed and is_due_tomorrow(due_date, now):
        return DueCategory.DUE_TOMORROW
    return DueCategory.NONE


def filter_tasks_by_project(tasks, value):
    """Narrow *tasks* for the project filter dropdown.

    ``None`` or ``"all"`` keeps everything, ``"inbox"`` keeps tasks without
    a project, any other value is matched against the task's project id.
    """
    if not value or value == "all":
        return list(tasks)
    if value == "inbox":
        return [task for task in tasks if not task.project_id]
    return [task for task in tasks if task.project_id == value]
