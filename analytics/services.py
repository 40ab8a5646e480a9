"""Analytics dashboard: pure transforms plus the fetch-and-aggregate service.

The transforms take in-memory collections and return fresh frozen records;
nothing here caches between calls.  ``AnalyticsService.dashboard`` is the
only part that touches a repository.
"""

import asyncio
import dataclasses
import logging
import math
import re
from collections import Counter
from dataclasses import dataclass

from django.utils import timezone

from tasks.calendar import (
    MONTH_LABELS,
    TIME_RANGE_LABELS,
    WEEKDAY_LABELS,
    SystemClock,
    range_start,
    start_of_day,
    to_datetime,
    trailing_months,
)
from tasks.classifier import StatusBucket, classify
from tasks.conf import TaskboardConfig
from tasks.exceptions import AggregationError
from tasks.predicates import require_id

from .repositories import AnalyticsRepository

logger = logging.getLogger(__name__)

# Number of --chart-N colours the frontend theme defines.
CHART_PALETTE_SIZE = 5


@dataclass(frozen=True)
class TaskCompletionPoint:
    month: str
    completed: int
    pending: int
    overdue: int


@dataclass(frozen=True)
class DistributionSlice:
    category: str
    label: str
    task_count: int
    fill_color: str


@dataclass(frozen=True)
class ProgressEntry:
    project_label: str
    progress_percent: int
    fill_color: str


@dataclass(frozen=True)
class ActivityPoint:
    weekday: str
    completed_count: int


@dataclass(frozen=True)
class StatMetric:
    title: str
    value: str
    change_text: str
    icon_key: str


@dataclass(frozen=True)
class TrendInfo:
    trend: int
    is_positive: bool
    date_range: str


@dataclass(frozen=True)
class DashboardData:
    metrics: tuple
    monthly_completion: tuple
    distribution: tuple
    progress: tuple
    activity: tuple

    def as_dict(self):
        return dataclasses.asdict(self)


def round_half_up(value):
    """Round .5 upwards, so 12.5% reads as 13% rather than 12%."""
    return int(math.floor(value + 0.5))


def create_category_key(name, max_length=20):
    return re.sub(r"\s+", "_", name.lower())[:max_length]


def chart_color(index, custom_color=None):
    if custom_color:
        return custom_color
    return f"hsl(var(--chart-{index % CHART_PALETTE_SIZE + 1}))"


def truncate_text(text, max_length, truncate_at):
    return f"{text[:truncate_at]}..." if len(text) > max_length else text


def _local(ts):
    return timezone.localtime(to_datetime(ts))


# --- Transforms ---

def monthly_completion(tasks, now, months=6):
    """Bucket tasks by creation month over the trailing *months* window.

    Always returns one point per month, oldest first, zero-filled.  Tasks
    created outside the window are ignored.
    """
    keys = trailing_months(now, months)
    counts = {key: Counter() for key in keys}

    for task in tasks:
        if task.created_at is None:
            continue
        created = _local(task.created_at)
        bucket = counts.get((created.year, created.month))
        if bucket is not None:
            bucket[classify(task, now)] += 1

    return tuple(
        TaskCompletionPoint(
            month=MONTH_LABELS[month - 1],
            completed=counts[(year, month)][StatusBucket.COMPLETED],
            pending=counts[(year, month)][StatusBucket.PENDING],
            overdue=counts[(year, month)][StatusBucket.OVERDUE],
        )
        for year, month in keys
    )


def project_distribution(tasks, projects, top_n=5, category_key_length=20):
    """Top projects by task count.

    Projects without tasks are dropped; ties keep the order of *projects*.
    """
    task_counts = Counter(task.project_id for task in tasks if task.project_id)

    ranked = [
        (project, task_counts.get(project.id, 0))
        for project in projects
    ]
    ranked = [item for item in ranked if item[1] > 0]
    # list.sort is stable, which is what keeps tied projects in input order.
    ranked.sort(key=lambda item: -item[1])

    return tuple(
        DistributionSlice(
            category=create_category_key(project.name, category_key_length),
            label=project.name,
            task_count=count,
            fill_color=chart_color(index, project.color_hex),
        )
        for index, (project, count) in enumerate(ranked[:top_n])
    )


def project_progress(projects, top_n=5, name_max_length=30, name_truncate_at=25):
    with_tasks = [project for project in projects if project.tasks]

    entries = []
    for index, project in enumerate(with_tasks[:top_n]):
        total = len(project.tasks)
        done = sum(1 for task in project.tasks if task.completed)
        percent = round_half_up(done / total * 100) if total else 0
        entries.append(ProgressEntry(
            project_label=truncate_text(project.name, name_max_length, name_truncate_at),
            progress_percent=percent,
            fill_color=chart_color(index, project.color_hex),
        ))
    return tuple(entries)


def weekday_activity(tasks, week_start=6):
    """Completed tasks per weekday of their last update.

    *week_start* uses Python weekday numbers (0 = Monday, 6 = Sunday).
    """
    order = [(week_start + offset) % 7 for offset in range(7)]
    counts = Counter()
    for task in tasks:
        if task.completed and task.updated_at is not None:
            counts[_local(task.updated_at).weekday()] += 1

    return tuple(
        ActivityPoint(weekday=WEEKDAY_LABELS[day], completed_count=counts[day])
        for day in order
    )


def summary_metrics(total, completed, pending, overdue, window):
    """The four headline cards.

    ``in progress`` is derived from the *pending* and *overdue* counts as
    given; it is not recomputed from any task list.  *window* is either a
    time-range key such as ``"30d"`` or a ready-made label.
    """
    label = TIME_RANGE_LABELS.get(window, window)
    completion_rate = round_half_up(completed / total * 100) if total > 0 else 0
    in_progress = pending - overdue

    return (
        StatMetric(
            title="Total Tasks",
            value=str(total),
            change_text=f"Created {label}",
            icon_key="ListTodo",
        ),
        StatMetric(
            title="Completed",
            value=str(completed),
            change_text=f"{completion_rate}% of all tasks",
            icon_key="CheckCircle2",
        ),
        StatMetric(
            title="In Progress",
            value=str(in_progress),
            change_text=f"{overdue} overdue" if overdue > 0 else "All on schedule",
            icon_key="Clock",
        ),
        StatMetric(
            title="Overdue",
            value=str(overdue),
            change_text="Need attention" if overdue > 0 else "Great work!",
            icon_key="AlertCircle",
        ),
    )


def completion_trend(points):
    """Month-over-month change in completed tasks for the chart caption."""
    if len(points) < 2:
        return TrendInfo(trend=0, is_positive=True, date_range="")

    previous, current = points[-2], points[-1]
    if previous.completed > 0:
        change = round_half_up((current.completed - previous.completed) / previous.completed * 100)
    else:
        change = 0

    return TrendInfo(
        trend=abs(change),
        is_positive=change >= 0,
        date_range=f"{points[0].month} - {points[-1].month}",
    )


# --- Orchestration ---

class AnalyticsService:
    def __init__(self, repository=None, clock=None, config=None):
        self.config = config if config is not None else TaskboardConfig.from_settings()
        self.repository = (
            repository if repository is not None
            else AnalyticsRepository(config=self.config)
        )
        self.clock = clock if clock is not None else SystemClock()

    async def dashboard(self, user_id, time_range="30d"):
        """Fetch everything the dashboard needs and run every transform.

        The fetches run concurrently.  If any of them fails, the rest are
        cancelled and the whole call raises ``AggregationError``; a partial
        dashboard is never returned.
        """
        require_id(user_id, "user_id")
        now = self.clock.now()
        # Rejects unknown ranges before anything is fetched.
        range_start(time_range, now)
        today_start = start_of_day(now)
        repo = self.repository

        fetches = [
            asyncio.ensure_future(coro) for coro in (
                repo.get_tasks(user_id, time_range, now),
                repo.get_projects_with_tasks(user_id, now),
                repo.count_tasks(user_id),
                repo.count_completed_tasks(user_id),
                repo.count_pending_tasks(user_id),
                repo.count_overdue_tasks(user_id, today_start),
            )
        ]
        try:
            tasks, projects, total, completed, pending, overdue = await asyncio.gather(*fetches)
        except Exception as exc:
            for fetch in fetches:
                fetch.cancel()
            logger.error("Error getting dashboard data for user %s: %s", user_id, exc)
            raise AggregationError() from exc

        config = self.config
        return DashboardData(
            metrics=summary_metrics(total, completed, pending, overdue, time_range),
            monthly_completion=monthly_completion(tasks, now, config.analytics_months),
            distribution=project_distribution(
                tasks, projects, config.analytics_top_n, config.category_key_max_length,
            ),
            progress=project_progress(
                projects,
                config.analytics_top_n,
                config.project_name_max_length,
                config.project_name_truncate_at,
            ),
            activity=weekday_activity(tasks, config.week_start),
        )
