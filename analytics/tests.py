import asyncio
import datetime
from io import StringIO
from unittest import mock

from asgiref.sync import async_to_sync
from django.contrib.auth.models import User
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import SimpleTestCase, TestCase, override_settings
from django.urls import reverse
from django.utils import timezone

from tasks.calendar import FixedClock, start_of_day
from tasks.conf import TaskboardConfig
from tasks.documents import ProjectDocument, TaskDocument
from tasks.exceptions import AggregationError, UpstreamFetchError, ValidationError
from tasks.models import Project, Task

from .repositories import AnalyticsRepository
from .services import (
    AnalyticsService,
    TaskCompletionPoint,
    completion_trend,
    create_category_key,
    monthly_completion,
    project_distribution,
    project_progress,
    round_half_up,
    summary_metrics,
    weekday_activity,
)


def _at(year, month, day, hour=12, minute=0):
    return timezone.make_aware(datetime.datetime(year, month, day, hour, minute))


# 2026-06-15 is a Monday.
NOW = _at(2026, 6, 15, 12)


def _task(id="t1", completed=False, due=None, created=None, updated=None, project_id=None):
    return TaskDocument(
        id=id,
        content=f"Task {id}",
        completed=completed,
        due_date=due,
        project_id=project_id,
        created_at=created,
        updated_at=updated,
        user_id="u1",
    )


def _project(id, name=None, color_hex="", tasks=()):
    return ProjectDocument(
        id=id, name=name or f"Project {id}", color_hex=color_hex, user_id="u1", tasks=tuple(tasks),
    )


class MonthlyCompletionTests(SimpleTestCase):
    def test_six_zero_filled_points_oldest_first(self):
        points = monthly_completion([], NOW)
        self.assertEqual([pt.month for pt in points], ["Jan", "Feb", "Mar", "Apr", "May", "Jun"])
        self.assertTrue(all(
            (pt.completed, pt.pending, pt.overdue) == (0, 0, 0) for pt in points
        ))

    def test_buckets_by_creation_month_and_status(self):
        tasks = [
            _task("1", completed=True, created=_at(2026, 6, 1)),
            _task("2", created=_at(2026, 6, 2)),
            _task("3", due=_at(2026, 6, 1), created=_at(2026, 5, 20)),
            _task("4", completed=True, created=_at(2026, 1, 3)),
        ]
        points = {pt.month: pt for pt in monthly_completion(tasks, NOW)}
        self.assertEqual((points["Jun"].completed, points["Jun"].pending), (1, 1))
        self.assertEqual(points["May"].overdue, 1)
        self.assertEqual(points["Jan"].completed, 1)

    def test_tasks_outside_window_are_ignored(self):
        tasks = [
            _task("old", created=_at(2025, 12, 31)),
            # Same month one year earlier must not land in this June.
            _task("last-year", created=_at(2025, 6, 15)),
            _task("undated", created=None),
        ]
        points = monthly_completion(tasks, NOW)
        self.assertEqual(sum(pt.completed + pt.pending + pt.overdue for pt in points), 0)

    def test_sum_matches_tasks_in_window(self):
        tasks = [
            _task(str(i), completed=i % 3 == 0, created=_at(2026, 1 + i % 6, 10))
            for i in range(20)
        ]
        points = monthly_completion(tasks, NOW)
        self.assertEqual(sum(pt.completed + pt.pending + pt.overdue for pt in points), 20)

    def test_window_crosses_year(self):
        points = monthly_completion([], _at(2026, 2, 10))
        self.assertEqual([pt.month for pt in points], ["Sep", "Oct", "Nov", "Dec", "Jan", "Feb"])


class ProjectDistributionTests(SimpleTestCase):
    def _tasks_for(self, counts):
        tasks = []
        for project_id, count in counts.items():
            tasks.extend(_task(f"{project_id}-{i}", project_id=project_id) for i in range(count))
        return tasks

    def test_top_five_with_stable_ties(self):
        projects = [_project(pid) for pid in ("a", "b", "c", "d", "e", "f")]
        tasks = self._tasks_for({"a": 9, "b": 7, "c": 7, "d": 5, "e": 3, "f": 1})
        slices = project_distribution(tasks, projects)
        self.assertEqual([s.task_count for s in slices], [9, 7, 7, 5, 3])
        self.assertEqual([s.label for s in slices][1:3], ["Project b", "Project c"])

    def test_ties_follow_input_order(self):
        projects = [_project("x"), _project("y")]
        tasks = self._tasks_for({"x": 2, "y": 2})
        self.assertEqual([s.label for s in project_distribution(tasks, projects)], ["Project x", "Project y"])
        self.assertEqual(
            [s.label for s in project_distribution(tasks, projects[::-1])], ["Project y", "Project x"],
        )

    def test_projects_without_tasks_are_dropped(self):
        projects = [_project("a"), _project("empty")]
        tasks = self._tasks_for({"a": 1}) + [_task("inbox")]
        slices = project_distribution(tasks, projects)
        self.assertEqual([s.label for s in slices], ["Project a"])

    def test_colours_and_category_keys(self):
        projects = [_project("a", name="Home Improvement Projects 2026", color_hex="#ff0000"), _project("b")]
        tasks = self._tasks_for({"a": 2, "b": 1})
        first, second = project_distribution(tasks, projects)
        self.assertEqual(first.fill_color, "#ff0000")
        self.assertEqual(first.category, "home_improvement_pro")
        self.assertEqual(second.fill_color, "hsl(var(--chart-2))")

    def test_category_key(self):
        self.assertEqual(create_category_key("Day  Job"), "day_job")
        self.assertEqual(len(create_category_key("x" * 50)), 20)


class ProjectProgressTests(SimpleTestCase):
    def test_percentages_round_half_up(self):
        tasks = [_task("1", completed=True)] + [_task(str(i)) for i in range(2, 9)]
        entry, = project_progress([_project("a", tasks=tasks)])
        # 1 of 8 is 12.5%.
        self.assertEqual(entry.progress_percent, 13)

    def test_zero_and_full_progress(self):
        entries = project_progress([
            _project("a", tasks=[_task("1")]),
            _project("b", tasks=[_task("2", completed=True)]),
        ])
        self.assertEqual([e.progress_percent for e in entries], [0, 100])

    def test_skips_projects_without_tasks_and_keeps_input_order(self):
        projects = [_project(str(i), tasks=[_task(str(i))] if i != 2 else []) for i in range(8)]
        entries = project_progress(projects)
        self.assertEqual(len(entries), 5)
        self.assertEqual([e.project_label for e in entries], [f"Project {i}" for i in (0, 1, 3, 4, 5)])

    def test_long_names_are_truncated(self):
        name = "A" * 31
        entry, = project_progress([_project("a", name=name, tasks=[_task("1")])])
        self.assertEqual(entry.project_label, "A" * 25 + "...")
        exact, = project_progress([_project("b", name="B" * 30, tasks=[_task("2")])])
        self.assertEqual(exact.project_label, "B" * 30)

    def test_round_half_up(self):
        self.assertEqual(round_half_up(12.5), 13)
        self.assertEqual(round_half_up(66.666), 67)
        self.assertEqual(round_half_up(0.4), 0)


class WeekdayActivityTests(SimpleTestCase):
    def test_sunday_first_with_completed_tasks_only(self):
        tasks = [
            _task("1", completed=True, updated=_at(2026, 6, 15)),   # Monday
            _task("2", completed=True, updated=_at(2026, 6, 14)),   # Sunday
            _task("3", completed=True, updated=_at(2026, 6, 21)),   # Sunday
            _task("4", completed=False, updated=_at(2026, 6, 16)),
            _task("5", completed=True, updated=None),
        ]
        points = weekday_activity(tasks)
        self.assertEqual(
            [pt.weekday for pt in points], ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"],
        )
        self.assertEqual([pt.completed_count for pt in points], [2, 1, 0, 0, 0, 0, 0])

    def test_week_start_is_configurable(self):
        points = weekday_activity([], week_start=0)
        self.assertEqual(points[0].weekday, "Mon")
        self.assertEqual(points[-1].weekday, "Sun")


class SummaryMetricsTests(SimpleTestCase):
    def test_headline_cards(self):
        total, completed, in_progress, overdue = summary_metrics(10, 4, 6, 2, "this month")
        self.assertEqual((total.value, total.change_text), ("10", "Created this month"))
        self.assertEqual((completed.value, completed.change_text), ("4", "40% of all tasks"))
        self.assertEqual((in_progress.value, in_progress.change_text), ("4", "2 overdue"))
        self.assertEqual((overdue.value, overdue.change_text), ("2", "Need attention"))
        self.assertEqual(
            [m.icon_key for m in (total, completed, in_progress, overdue)],
            ["ListTodo", "CheckCircle2", "Clock", "AlertCircle"],
        )

    def test_range_key_becomes_label(self):
        total = summary_metrics(1, 0, 1, 0, "30d")[0]
        self.assertEqual(total.change_text, "Created this month")

    def test_empty_and_on_schedule(self):
        _, completed, in_progress, overdue = summary_metrics(0, 0, 0, 0, "7d")
        self.assertEqual(completed.change_text, "0% of all tasks")
        self.assertEqual(in_progress.change_text, "All on schedule")
        self.assertEqual(overdue.change_text, "Great work!")


class CompletionTrendTests(SimpleTestCase):
    def _points(self, *completed):
        months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun"][-len(completed):]
        return tuple(TaskCompletionPoint(m, c, 0, 0) for m, c in zip(months, completed))

    def test_growth(self):
        trend = completion_trend(self._points(0, 0, 0, 0, 4, 5))
        self.assertEqual((trend.trend, trend.is_positive), (25, True))
        self.assertEqual(trend.date_range, "Jan - Jun")

    def test_drop(self):
        trend = completion_trend(self._points(4, 1))
        self.assertEqual((trend.trend, trend.is_positive), (75, False))

    def test_no_previous_completions(self):
        self.assertEqual(completion_trend(self._points(0, 3)).trend, 0)
        self.assertEqual(completion_trend(()).date_range, "")


class FakeRepository:
    """Returns canned data; optionally fails one named fetch."""

    def __init__(self, tasks=(), projects=(), counts=(0, 0, 0, 0), fail=None):
        self.tasks = list(tasks)
        self.projects = list(projects)
        self.counts = counts
        self.fail = fail
        self.calls = []

    async def _answer(self, name, value):
        self.calls.append(name)
        if name == self.fail:
            raise UpstreamFetchError(f"Failed to fetch {name}")
        return value

    async def get_tasks(self, user_id, time_range, now):
        return await self._answer("tasks", self.tasks)

    async def get_projects_with_tasks(self, user_id, now):
        return await self._answer("projects", self.projects)

    async def count_tasks(self, user_id):
        return await self._answer("total", self.counts[0])

    async def count_completed_tasks(self, user_id):
        return await self._answer("completed", self.counts[1])

    async def count_pending_tasks(self, user_id):
        return await self._answer("pending", self.counts[2])

    async def count_overdue_tasks(self, user_id, today_start):
        return await self._answer("overdue", self.counts[3])


class AnalyticsServiceTests(SimpleTestCase):
    def _service(self, repository, config=None):
        return AnalyticsService(repository=repository, clock=FixedClock(NOW), config=config)

    def test_dashboard_combines_every_transform(self):
        done = _task("1", completed=True, created=_at(2026, 6, 1), updated=_at(2026, 6, 14), project_id="p1")
        open_ = _task("2", created=_at(2026, 6, 2), project_id="p1")
        repo = FakeRepository(
            tasks=[done, open_],
            projects=[_project("p1", name="Home", tasks=[done, open_])],
            counts=(2, 1, 1, 0),
        )
        data = async_to_sync(self._service(repo).dashboard)("u1", "7d")

        self.assertEqual(data.metrics[0].change_text, "Created this week")
        self.assertEqual(data.metrics[1].change_text, "50% of all tasks")
        self.assertEqual(data.monthly_completion[-1].completed, 1)
        self.assertEqual(data.distribution[0].task_count, 2)
        self.assertEqual(data.progress[0].progress_percent, 50)
        self.assertEqual(data.activity[0].completed_count, 1)
        self.assertEqual(sorted(repo.calls), ["completed", "overdue", "pending", "projects", "tasks", "total"])

        payload = data.as_dict()
        self.assertEqual(set(payload), {"metrics", "monthly_completion", "distribution", "progress", "activity"})

    def test_any_failed_fetch_fails_the_whole_dashboard(self):
        for name in ("tasks", "projects", "total", "overdue"):
            with self.subTest(fail=name):
                service = self._service(FakeRepository(fail=name))
                with self.assertLogs("analytics.services", level="ERROR"):
                    with self.assertRaises(AggregationError) as ctx:
                        async_to_sync(service.dashboard)("u1")
                self.assertEqual(str(ctx.exception), "Failed to load analytics data")
                self.assertIsInstance(ctx.exception.__cause__, UpstreamFetchError)

    def test_unexpected_repository_errors_are_wrapped(self):
        class BrokenRepository(FakeRepository):
            async def count_tasks(self, user_id):
                raise ConnectionError("socket reset")

        service = self._service(BrokenRepository())
        with self.assertLogs("analytics.services", level="ERROR"):
            with self.assertRaises(AggregationError) as ctx:
                async_to_sync(service.dashboard)("u1", "30d")
        self.assertEqual(str(ctx.exception), "Failed to load analytics data")
        self.assertIsInstance(ctx.exception.__cause__, ConnectionError)

    def test_failure_cancels_outstanding_fetches(self):
        class SlowRepository(FakeRepository):
            async def get_tasks(self, user_id, time_range, now):
                try:
                    await asyncio.sleep(30)
                except asyncio.CancelledError:
                    self.cancelled.append("tasks")
                    raise
                return []

        repo = SlowRepository(fail="total")
        repo.cancelled = []
        service = self._service(repo)

        async def scenario():
            with self.assertRaises(AggregationError):
                await service.dashboard("u1")
            # Let the cancelled fetch observe its cancellation.
            await asyncio.sleep(0)

        with self.assertLogs("analytics.services", level="ERROR"):
            async_to_sync(scenario)()
        self.assertEqual(repo.cancelled, ["tasks"])

    def test_invalid_input_is_rejected_before_fetching(self):
        repo = FakeRepository()
        service = self._service(repo)
        with self.assertRaises(ValidationError):
            async_to_sync(service.dashboard)("u1", "2w")
        with self.assertRaises(ValidationError):
            async_to_sync(service.dashboard)("")
        self.assertEqual(repo.calls, [])

    @override_settings(TASKBOARD={"ANALYTICS_TOP_N": 2, "WEEK_START": 0})
    def test_settings_override_policy(self):
        projects = [_project(str(i), tasks=[_task(f"{i}-t", project_id=str(i))]) for i in range(4)]
        tasks = [t for project in projects for t in project.tasks]
        service = AnalyticsService(repository=FakeRepository(tasks=tasks, projects=projects), clock=FixedClock(NOW))
        data = async_to_sync(service.dashboard)("u1")
        self.assertEqual(len(data.distribution), 2)
        self.assertEqual(len(data.progress), 2)
        self.assertEqual(data.activity[0].weekday, "Mon")


class AnalyticsRepositoryTests(TestCase):
    def setUp(self):
        self.repo = AnalyticsRepository(config=TaskboardConfig(max_tasks=50))
        self.now = timezone.now()
        self.today = start_of_day(self.now)
        self.home = Project.objects.create(user_id="u1", name="Home")
        self.work = Project.objects.create(user_id="u1", name="Work")

    def _make(self, content, **kwargs):
        kwargs.setdefault("user_id", "u1")
        return Task.objects.create(content=content, **kwargs)

    def test_projects_are_joined_with_their_tasks(self):
        self._make("Sweep", project=self.home)
        self._make("Mop", project=self.home, completed=True)
        self._make("Loose")
        projects = async_to_sync(self.repo.get_projects_with_tasks)("u1", self.now)
        by_name = {project.name: project for project in projects}
        self.assertEqual(sorted(t.content for t in by_name["Home"].tasks), ["Mop", "Sweep"])
        self.assertEqual(by_name["Work"].tasks, ())

    def test_get_tasks_respects_time_range(self):
        recent = self._make("Recent")
        old = self._make("Old")
        Task.objects.filter(pk=old.pk).update(created_at=self.now - datetime.timedelta(days=40))
        tasks = async_to_sync(self.repo.get_tasks)("u1", "30d", self.now)
        self.assertEqual([t.id for t in tasks], [str(recent.pk)])

    def test_counts(self):
        self._make("Done", completed=True)
        self._make("Late", due_date=self.today - datetime.timedelta(hours=1))
        self._make("Earlier today", due_date=self.today)
        self._make("Done late", completed=True, due_date=self.today - datetime.timedelta(days=2))
        self._make("Someone else's", user_id="u2")

        self.assertEqual(async_to_sync(self.repo.count_tasks)("u1"), 4)
        self.assertEqual(async_to_sync(self.repo.count_completed_tasks)("u1"), 2)
        self.assertEqual(async_to_sync(self.repo.count_pending_tasks)("u1"), 2)
        self.assertEqual(async_to_sync(self.repo.count_overdue_tasks)("u1", self.today), 1)


async def _failing_count(self, user_id):
    raise UpstreamFetchError("Failed to fetch task count")


class DashboardViewTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="testuser", password="testpass")
        self.client.force_login(self.user)
        project = Project.objects.create(user_id=str(self.user.pk), name="Home")
        Task.objects.create(user_id=str(self.user.pk), content="Sweep", project=project)

    def test_requires_login(self):
        self.client.logout()
        self.assertEqual(self.client.get(reverse("analytics:dashboard")).status_code, 302)

    def test_dashboard_payload(self):
        response = self.client.get(reverse("analytics:dashboard"), {"range": "7d"})
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["range"], "7d")
        self.assertEqual(len(data["metrics"]), 4)
        self.assertEqual(data["metrics"][0]["value"], "1")
        self.assertEqual(len(data["monthly_completion"]), 6)
        self.assertEqual(len(data["activity"]), 7)
        self.assertEqual(data["distribution"][0]["label"], "Home")
        self.assertIn("trend", data)

    def test_unknown_range(self):
        response = self.client.get(reverse("analytics:dashboard"), {"range": "2w"})
        self.assertEqual(response.status_code, 400)

    def test_fetch_failure_returns_generic_error(self):
        with mock.patch.object(AnalyticsRepository, "count_tasks", _failing_count):
            with self.assertLogs("analytics.services", level="ERROR"):
                response = self.client.get(reverse("analytics:dashboard"))
        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.json(), {"error": "Failed to load analytics data"})


class AnalyticsReportCommandTests(TestCase):
    def test_report(self):
        call_command("seed_tasks", "u1", stdout=StringIO())
        out = StringIO()
        call_command("analytics_report", "u1", "--range", "1y", stdout=out)
        output = out.getvalue()
        self.assertIn("Total Tasks: 10", output)
        self.assertIn("Monthly completion", output)
        self.assertIn("Task distribution:", output)
        self.assertIn("Completed by weekday:", output)
        self.assertIn("Done.", output)

    def test_report_for_user_without_tasks(self):
        out = StringIO()
        call_command("analytics_report", "nobody", "--now", "2026-06-15T12:00:00", stdout=out)
        output = out.getvalue()
        self.assertIn("Jan - Jun", output)
        self.assertIn("No project tasks.", output)

    def test_bad_timestamp(self):
        with self.assertRaises(CommandError):
            call_command("analytics_report", "u1", "--now", "yesterday", stdout=StringIO())
