import asyncio
import dataclasses
import datetime
from io import StringIO

from asgiref.sync import async_to_sync
from django.contrib.auth.models import User
from django.core.management import call_command
from django.test import SimpleTestCase, TestCase
from django.urls import reverse
from django.utils import timezone, translation

from . import predicates as p
from . import queries
from .calendar import (
    FixedClock,
    day_window,
    due_date_label,
    is_due_today,
    is_due_tomorrow,
    is_overdue,
    month_label,
    range_start,
    start_of_day,
    start_of_today,
    to_datetime,
    trailing_months,
    weekday_label,
    weekday_name,
)
from .classifier import (
    DueCategory,
    StatusBucket,
    classify,
    due_date_display_category,
    filter_tasks_by_project,
)
from .documents import TaskDocument
from .exceptions import UpstreamFetchError, ValidationError
from .models import Project, Task
from .repositories import ProjectRepository, TaskRepository
from .search import DISPATCHING, IDLE, PENDING, ProjectSearchDispatcher, build_search_url
from .services import TaskService, task_row
from .store import ModelStore


def _at(year, month, day, hour=12, minute=0):
    """Aware datetime in the project's local timezone."""
    return timezone.make_aware(datetime.datetime(year, month, day, hour, minute))


# 2026-06-15 is a Monday.
NOW = _at(2026, 6, 15, 12)


def _task(completed=False, due=None, **kwargs):
    kwargs.setdefault("id", "t1")
    kwargs.setdefault("content", "Task")
    return TaskDocument(completed=completed, due_date=due, **kwargs)


class _ManualHandle:
    def __init__(self, when, callback):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Virtual-time scheduler: callbacks run only when advance() passes them."""

    def __init__(self):
        self.now = 0.0
        self._timers = []

    def call_later(self, delay, callback):
        handle = _ManualHandle(self.now + delay, callback)
        self._timers.append(handle)
        return handle

    def advance(self, seconds):
        target = self.now + seconds
        while True:
            due = [h for h in self._timers if not h.cancelled and h.when <= target]
            if not due:
                break
            handle = min(due, key=lambda h: h.when)
            self._timers.remove(handle)
            self.now = handle.when
            handle.callback()
        self.now = target

    @property
    def live_timers(self):
        return [h for h in self._timers if not h.cancelled]


class FailingStore:
    def list_documents(self, database, collection, predicates):
        raise RuntimeError("connection reset")


class CalendarRulesTests(SimpleTestCase):
    def test_start_of_day_is_local_midnight(self):
        self.assertEqual(start_of_day(NOW), _at(2026, 6, 15, 0))

    def test_start_of_today_uses_clock(self):
        self.assertEqual(start_of_today(FixedClock(NOW)), _at(2026, 6, 15, 0))

    def test_day_window_is_half_open(self):
        start, end = day_window(NOW)
        self.assertEqual(start, _at(2026, 6, 15, 0))
        self.assertEqual(end, _at(2026, 6, 16, 0))
        self.assertTrue(is_due_today(start, NOW))
        self.assertFalse(is_due_today(end, NOW))
        self.assertTrue(is_due_tomorrow(end, NOW))

    def test_day_window_across_dst_change(self):
        # US clocks spring forward on 2026-03-08.
        start, end = day_window(_at(2026, 3, 8, 12))
        self.assertEqual(start, _at(2026, 3, 8, 0))
        self.assertEqual(end, _at(2026, 3, 9, 0))

    def test_overdue_means_before_today(self):
        self.assertTrue(is_overdue(_at(2026, 6, 14, 23, 59), NOW))
        self.assertFalse(is_overdue(_at(2026, 6, 15, 0), NOW))
        # Earlier today is not overdue yet.
        self.assertFalse(is_overdue(_at(2026, 6, 15, 8), NOW))

    def test_due_tomorrow_window(self):
        self.assertTrue(is_due_tomorrow(_at(2026, 6, 16, 23, 59), NOW))
        self.assertFalse(is_due_tomorrow(_at(2026, 6, 17, 0), NOW))
        self.assertFalse(is_due_tomorrow(_at(2026, 6, 15, 23), NOW))

    def test_labels(self):
        self.assertEqual(month_label(NOW), "Jun")
        self.assertEqual(weekday_label(NOW), "Mon")
        self.assertEqual(weekday_name(NOW), "Monday")

    def test_labels_ignore_active_language(self):
        with translation.override("de"):
            self.assertEqual(month_label(_at(2026, 3, 2)), "Mar")
            self.assertEqual(weekday_label(_at(2026, 3, 2)), "Mon")

    def test_to_datetime_parses_iso_strings(self):
        parsed = to_datetime("2026-06-15T10:00:00Z")
        self.assertTrue(timezone.is_aware(parsed))
        self.assertEqual(parsed, datetime.datetime(2026, 6, 15, 10, tzinfo=datetime.timezone.utc))

    def test_to_datetime_date_is_local_midnight(self):
        self.assertEqual(to_datetime(datetime.date(2026, 6, 15)), _at(2026, 6, 15, 0))

    def test_to_datetime_naive_is_local(self):
        self.assertEqual(to_datetime(datetime.datetime(2026, 6, 15, 12)), NOW)

    def test_to_datetime_rejects_garbage(self):
        with self.assertRaises(ValueError):
            to_datetime("not a date")
        with self.assertRaises(TypeError):
            to_datetime(42)
        self.assertIsNone(to_datetime(None))

    def test_invalid_due_date_is_not_treated_as_now(self):
        with self.assertRaises(ValueError):
            is_overdue("2026-13-45", NOW)

    def test_range_start(self):
        self.assertEqual(range_start("7d", NOW), _at(2026, 6, 8, 12))
        self.assertEqual(range_start("30d", NOW), _at(2026, 5, 16, 12))
        self.assertEqual(range_start("1y", NOW), _at(2025, 6, 15, 12))
        # Month arithmetic clamps to the end of shorter months.
        self.assertEqual(range_start("6m", _at(2026, 8, 31)), _at(2026, 2, 28))

    def test_range_start_unknown_key(self):
        with self.assertRaises(ValidationError):
            range_start("2w", NOW)

    def test_trailing_months_cross_year(self):
        self.assertEqual(
            trailing_months(_at(2026, 2, 10), 6),
            [(2025, 9), (2025, 10), (2025, 11), (2025, 12), (2026, 1), (2026, 2)],
        )

    def test_due_date_label(self):
        self.assertEqual(due_date_label(_at(2026, 6, 18), NOW), "Thursday")
        self.assertEqual(due_date_label(_at(2026, 6, 16), NOW), "16 Jun")
        self.assertEqual(due_date_label(_at(2026, 6, 22), NOW), "22 Jun")
        self.assertEqual(due_date_label(_at(2027, 1, 5), NOW), "05 Jan 2027")


class AtomicPredicateTests(SimpleTestCase):
    def test_builders(self):
        self.assertEqual(p.equal("completed", False), p.Eq("completed", False))
        self.assertEqual(p.is_null("project_id"), p.IsNull("project_id"))
        self.assertEqual(p.is_not_null("due_date"), p.IsNotNull("due_date"))
        self.assertEqual(p.range_from("due_date", NOW), p.RangeFrom("due_date", NOW))
        self.assertEqual(p.range_before("due_date", NOW), p.RangeBefore("due_date", NOW))
        self.assertEqual(p.order_ascending("due_date"), p.OrderBy("due_date", descending=False))
        self.assertEqual(p.order_descending("updated_at"), p.OrderBy("updated_at", descending=True))
        self.assertEqual(p.select("id"), p.Select(("id",)))
        self.assertEqual(p.limit(10), p.Limit(10))

    def test_predicates_are_immutable(self):
        predicate = p.equal("user_id", "u1")
        with self.assertRaises(dataclasses.FrozenInstanceError):
            predicate.value = "u2"

    def test_limit_rejects_malformed_values(self):
        for bad in (0, -1, 1.5, float("nan"), float("inf"), True, "5", None):
            with self.subTest(bad=bad):
                with self.assertRaises(ValidationError):
                    p.limit(bad)

    def test_empty_field_rejected(self):
        with self.assertRaises(ValidationError):
            p.equal("", 1)
        with self.assertRaises(ValidationError):
            p.select()

    def test_require_id(self):
        self.assertEqual(p.require_id("u1"), "u1")
        for bad in ("", "   ", None, 7):
            with self.subTest(bad=bad):
                with self.assertRaises(ValidationError):
                    p.require_id(bad)

    def test_logical_and_only_combines_filters(self):
        combined = p.logical_and(p.is_null("a"), p.is_not_null("b"))
        self.assertEqual(combined, p.And((p.IsNull("a"), p.IsNotNull("b"))))
        with self.assertRaises(ValidationError):
            p.logical_and(p.order_ascending("a"))
        with self.assertRaises(ValidationError):
            p.logical_and()

    def test_range_needs_a_bound(self):
        with self.assertRaises(ValidationError):
            p.range_from("due_date", None)


class TaskQueriesTests(SimpleTestCase):
    def setUp(self):
        self.window = day_window(NOW)

    def test_today_tasks(self):
        start, end = self.window
        self.assertEqual(
            queries.today_tasks("u1", self.window),
            (
                p.Eq("user_id", "u1"),
                p.Eq("completed", False),
                p.And((p.RangeFrom("due_date", start), p.RangeBefore("due_date", end))),
            ),
        )

    def test_inbox_tasks(self):
        self.assertEqual(
            queries.inbox_tasks("u1"),
            (p.Eq("user_id", "u1"), p.Eq("completed", False), p.IsNull("project_id")),
        )

    def test_upcoming_tasks_sorted_by_due_date(self):
        start = start_of_day(NOW)
        predicate_set = queries.upcoming_tasks("u1", start)
        self.assertIn(p.IsNotNull("due_date"), predicate_set)
        self.assertIn(p.RangeFrom("due_date", start), predicate_set)
        self.assertEqual(predicate_set[-1], p.OrderBy("due_date"))

    def test_completed_tasks_newest_update_first(self):
        predicate_set = queries.completed_tasks("u1")
        self.assertEqual(predicate_set[1], p.Eq("completed", True))
        self.assertEqual(predicate_set[-1], p.OrderBy("updated_at", descending=True))

    def test_same_arguments_build_equal_sets(self):
        self.assertEqual(queries.today_tasks("u1", self.window), queries.today_tasks("u1", self.window))
        self.assertEqual(
            queries.user_projects("u1", search="home", limit=5),
            queries.user_projects("u1", search="home", limit=5),
        )

    def test_count_variants(self):
        pairs = [
            (queries.today_tasks("u1", self.window), queries.today_tasks_count("u1", self.window)),
            (queries.inbox_tasks("u1"), queries.inbox_tasks_count("u1")),
            (queries.upcoming_tasks("u1", NOW), queries.upcoming_tasks_count("u1", NOW)),
            (queries.completed_tasks("u1"), queries.completed_tasks_count("u1")),
        ]
        for listing, count in pairs:
            with self.subTest(listing=listing):
                self.assertEqual(count[0], p.Select(("id",)))
                self.assertEqual(count[-1], p.Limit(1))
                self.assertEqual(p.filters_of(count), p.filters_of(listing))
                self.assertNotIn(p.Limit(1), listing)
                self.assertFalse(any(isinstance(q, p.Select) for q in listing))
                self.assertFalse(any(isinstance(q, p.OrderBy) for q in count))
                self.assertTrue(p.is_count_view(count))
                self.assertFalse(p.is_count_view(listing))

    def test_user_projects_without_search_is_unfiltered(self):
        unfiltered = queries.user_projects("u1")
        self.assertEqual(queries.user_projects("u1", search=""), unfiltered)
        self.assertFalse(any(isinstance(q, p.Contains) for q in unfiltered))
        self.assertEqual(unfiltered[-1], p.OrderBy("created_at", descending=True))

    def test_user_projects_search_and_limit(self):
        predicate_set = queries.user_projects("u1", search="home", limit=5)
        self.assertEqual(predicate_set[0], p.Select(queries.PROJECT_LIST_FIELDS))
        self.assertEqual(predicate_set[2], p.Contains("name", "home"))
        self.assertEqual(predicate_set[-2], p.OrderBy("created_at", descending=True))
        self.assertEqual(predicate_set[-1], p.Limit(5))
        # A one-row project page still selects its list columns.
        self.assertFalse(p.is_count_view(queries.user_projects("u1", limit=1)))

    def test_user_projects_rejects_bad_limit(self):
        with self.assertRaises(ValidationError):
            queries.user_projects("u1", limit=0)

    def test_empty_user_rejected(self):
        with self.assertRaises(ValidationError):
            queries.inbox_tasks("")


class TaskClassifierTests(SimpleTestCase):
    yesterday = _at(2026, 6, 14, 9)

    def test_scenario_pending_overdue_completed(self):
        tasks = [
            _task(completed=False, due=None),
            _task(completed=False, due=self.yesterday),
            _task(completed=True, due=self.yesterday),
        ]
        self.assertEqual(
            [classify(t, NOW) for t in tasks],
            [StatusBucket.PENDING, StatusBucket.OVERDUE, StatusBucket.COMPLETED],
        )

    def test_completed_always_wins(self):
        for due in (None, self.yesterday, NOW, _at(2027, 1, 1)):
            with self.subTest(due=due):
                self.assertEqual(classify(_task(completed=True, due=due), NOW), StatusBucket.COMPLETED)

    def test_due_later_today_is_pending(self):
        self.assertEqual(classify(_task(due=_at(2026, 6, 15, 8)), NOW), StatusBucket.PENDING)

    def test_display_categories(self):
        cases = [
            (None, False, DueCategory.NONE),
            (self.yesterday, False, DueCategory.OVERDUE),
            (_at(2026, 6, 15, 18), False, DueCategory.DUE_TODAY),
            (_at(2026, 6, 16, 9), False, DueCategory.DUE_TOMORROW),
            (_at(2026, 6, 20, 9), False, DueCategory.NONE),
        ]
        for due, completed, expected in cases:
            with self.subTest(due=due):
                self.assertEqual(due_date_display_category(due, completed, NOW), expected)

    def test_completed_gates_overdue_and_tomorrow_but_not_today(self):
        self.assertEqual(due_date_display_category(self.yesterday, True, NOW), DueCategory.NONE)
        self.assertEqual(due_date_display_category(_at(2026, 6, 16, 9), True, NOW), DueCategory.NONE)
        self.assertEqual(
            due_date_display_category(_at(2026, 6, 15, 9), True, NOW), DueCategory.DUE_TODAY,
        )

    def test_exactly_one_category_per_due_date(self):
        for hours in range(-72, 73, 5):
            due = NOW + datetime.timedelta(hours=hours)
            with self.subTest(hours=hours):
                category = due_date_display_category(due, False, NOW)
                self.assertIn(category, list(DueCategory))
                if is_overdue(due, NOW):
                    self.assertEqual(category, DueCategory.OVERDUE)

    def test_filter_tasks_by_project(self):
        tasks = [
            _task(id="1", project_id=None),
            _task(id="2", project_id="p1"),
            _task(id="3", project_id="p2"),
        ]
        self.assertEqual(len(filter_tasks_by_project(tasks, None)), 3)
        self.assertEqual(len(filter_tasks_by_project(tasks, "all")), 3)
        self.assertEqual([t.id for t in filter_tasks_by_project(tasks, "inbox")], ["1"])
        self.assertEqual([t.id for t in filter_tasks_by_project(tasks, "p2")], ["3"])

    def test_task_row(self):
        row = task_row(_task(id="9", content="Pay rent", due=self.yesterday), NOW)
        self.assertEqual(row["status"], "overdue")
        self.assertEqual(row["due_category"], "overdue")
        self.assertEqual(row["due_label"], "14 Jun")
        self.assertIsNone(task_row(_task(), NOW)["due_label"])


class ModelStoreTests(TestCase):
    def setUp(self):
        self.store = ModelStore()
        self.project = Project.objects.create(user_id="u1", name="Home Chores")
        self.window = day_window(NOW)

    def _make(self, content, user_id="u1", **kwargs):
        return Task.objects.create(user_id=user_id, content=content, **kwargs)

    def _list(self, predicates, collection="tasks"):
        return self.store.list_documents("default", collection, predicates)

    def test_today_tasks(self):
        self._make("Start of day", due_date=_at(2026, 6, 15, 0))
        self._make("Noon", due_date=_at(2026, 6, 15, 12))
        self._make("Next midnight", due_date=_at(2026, 6, 16, 0))
        self._make("Done today", due_date=_at(2026, 6, 15, 9), completed=True)
        self._make("Other user", user_id="u2", due_date=_at(2026, 6, 15, 9))

        result = self._list(queries.today_tasks("u1", self.window))
        self.assertEqual(sorted(t.content for t in result.documents), ["Noon", "Start of day"])
        self.assertEqual(result.total, 2)

    def test_inbox_tasks(self):
        self._make("Loose")
        self._make("Filed", project=self.project)
        result = self._list(queries.inbox_tasks("u1"))
        self.assertEqual([t.content for t in result.documents], ["Loose"])

    def test_upcoming_tasks_ordered_by_due_date(self):
        self._make("Later", due_date=_at(2026, 6, 20))
        self._make("Sooner", due_date=_at(2026, 6, 16))
        self._make("Past", due_date=_at(2026, 6, 1))
        self._make("Undated")
        result = self._list(queries.upcoming_tasks("u1", start_of_day(NOW)))
        self.assertEqual([t.content for t in result.documents], ["Sooner", "Later"])

    def test_completed_tasks_newest_update_first(self):
        old = self._make("Old", completed=True)
        new = self._make("New", completed=True)
        Task.objects.filter(pk=old.pk).update(updated_at=_at(2026, 6, 1))
        Task.objects.filter(pk=new.pk).update(updated_at=_at(2026, 6, 10))
        result = self._list(queries.completed_tasks("u1"))
        self.assertEqual([t.content for t in result.documents], ["New", "Old"])

    def test_count_view_returns_ids_only(self):
        for i in range(3):
            self._make(f"T{i}")
        result = self._list(queries.inbox_tasks_count("u1"))
        self.assertEqual(result.total, 3)
        self.assertEqual(len(result.documents), 1)
        self.assertEqual(set(result.documents[0]), {"id"})
        self.assertIsInstance(result.documents[0]["id"], str)

    def test_limit_does_not_change_total(self):
        for name in ("Alpha", "Beta", "Gamma"):
            Project.objects.create(user_id="u1", name=name)
        result = self._list(queries.user_projects("u1", limit=2), collection="projects")
        self.assertEqual(len(result.documents), 2)
        self.assertEqual(result.total, 4)

    def test_project_search_is_case_insensitive(self):
        Project.objects.create(user_id="u1", name="Garden")
        result = self._list(queries.user_projects("u1", search="home"), collection="projects")
        self.assertEqual([row["name"] for row in result.documents], ["Home Chores"])

    def test_documents_carry_string_ids(self):
        task = self._make("Filed", project=self.project)
        document = self.store.get_document("default", "tasks", task.pk)
        self.assertEqual(document.id, str(task.pk))
        self.assertEqual(document.project_id, str(self.project.pk))

    def test_update_and_delete(self):
        task = self._make("Draft")
        updated = self.store.update_document("default", "tasks", task.pk, {"completed": True})
        self.assertTrue(updated.completed)
        self.store.delete_document("default", "tasks", task.pk)
        self.assertFalse(Task.objects.filter(pk=task.pk).exists())

    def test_create_document(self):
        document = self.store.create_document(
            "default", "tasks", {"user_id": "u1", "content": "Fresh", "project_id": self.project.pk},
        )
        self.assertEqual(document.content, "Fresh")
        self.assertEqual(document.project_id, str(self.project.pk))

    def test_unknown_collection(self):
        with self.assertRaises(LookupError):
            self._list((), collection="notes")


class RepositoryErrorTests(SimpleTestCase):
    def test_store_failure_is_wrapped(self):
        repo = TaskRepository(store=FailingStore())
        with self.assertLogs("tasks.repositories", level="ERROR"):
            with self.assertRaises(UpstreamFetchError) as ctx:
                async_to_sync(repo.find_inbox_tasks)("u1")
        self.assertIsInstance(ctx.exception.__cause__, RuntimeError)
        self.assertNotIn("connection reset", str(ctx.exception))

    def test_project_repository_failure_is_wrapped(self):
        repo = ProjectRepository(store=FailingStore())
        with self.assertLogs("tasks.repositories", level="ERROR"):
            with self.assertRaises(UpstreamFetchError):
                async_to_sync(repo.list_projects)("u1", search="x")


class TaskServiceTests(TestCase):
    def setUp(self):
        self.service = TaskService(clock=FixedClock(NOW))
        self.project = Project.objects.create(user_id="u1", name="Work")

    def test_count_badges(self):
        Task.objects.create(user_id="u1", content="Inbox today", due_date=_at(2026, 6, 15, 9))
        Task.objects.create(user_id="u1", content="Inbox undated")
        Task.objects.create(
            user_id="u1", content="Project today", project=self.project, due_date=_at(2026, 6, 15, 18),
        )
        Task.objects.create(user_id="u1", content="Tomorrow", due_date=_at(2026, 6, 16, 9))
        badges = async_to_sync(self.service.count_badges)("u1")
        self.assertEqual(badges, {"inbox": 3, "today": 2})

    def test_find_upcoming_uses_clock(self):
        Task.objects.create(user_id="u1", content="Earlier today", due_date=_at(2026, 6, 15, 1))
        Task.objects.create(user_id="u1", content="Yesterday", due_date=_at(2026, 6, 14, 23))
        result = async_to_sync(self.service.find_upcoming_tasks)("u1")
        self.assertEqual([t.content for t in result.documents], ["Earlier today"])


class SearchDispatcherTests(SimpleTestCase):
    def setUp(self):
        self.scheduler = ManualScheduler()
        self.calls = []
        self.dispatcher = ProjectSearchDispatcher(
            "u1", self.calls.append, scheduler=self.scheduler, delay=0.5, settle=0.1,
        )

    def _queries(self):
        return [call.query for call in self.calls]

    def test_search_waits_for_quiet_period(self):
        self.dispatcher.request("home")
        self.assertTrue(self.dispatcher.is_pending)
        self.assertEqual(self.dispatcher.state, PENDING)
        self.scheduler.advance(0.4)
        self.assertEqual(self.calls, [])
        self.scheduler.advance(0.1)
        self.assertEqual(self._queries(), ["home"])
        search = self.calls[0]
        self.assertEqual(search.url, "/tasks/projects/?q=home")
        self.assertEqual(search.predicates, queries.user_projects("u1", search="home"))

    def test_same_value_twice_dispatches_once(self):
        self.dispatcher.request("home")
        self.dispatcher.request("home")
        self.assertEqual(len(self.scheduler.live_timers), 1)
        self.scheduler.advance(1)
        self.assertEqual(self._queries(), ["home"])

    def test_last_write_wins(self):
        self.dispatcher.request("ho")
        self.scheduler.advance(0.2)
        self.dispatcher.request("home")
        self.scheduler.advance(0.4)
        self.assertEqual(self.calls, [])
        self.scheduler.advance(0.1)
        self.assertEqual(self._queries(), ["home"])

    def test_repeating_dispatched_value_is_noop(self):
        self.dispatcher.request("home")
        self.scheduler.advance(1)
        self.dispatcher.request("home")
        self.dispatcher.request("  home ")
        self.assertFalse(self.dispatcher.is_pending)
        self.scheduler.advance(1)
        self.assertEqual(self._queries(), ["home"])

    def test_clearing_dispatches_immediately(self):
        self.dispatcher.request("home")
        self.scheduler.advance(1)
        self.dispatcher.request("")
        self.assertEqual(self._queries(), ["home", ""])
        cleared = self.calls[-1]
        self.assertEqual(cleared.url, "/tasks/projects/")
        self.assertEqual(cleared.predicates, queries.user_projects("u1"))
        self.assertFalse(self.dispatcher.is_pending)

    def test_clearing_before_first_dispatch_keeps_pending_search(self):
        self.dispatcher.request("home")
        # The unfiltered list is what was last dispatched, so this is a no-op.
        self.dispatcher.request("")
        self.assertTrue(self.dispatcher.is_pending)
        self.scheduler.advance(1)
        self.assertEqual(self._queries(), ["home"])

    def test_returning_to_dispatched_value_keeps_pending_search(self):
        self.dispatcher.request("home")
        self.scheduler.advance(1)
        self.dispatcher.request("homework")
        self.dispatcher.request("home")
        self.assertTrue(self.dispatcher.is_pending)
        self.scheduler.advance(1)
        self.assertEqual(self._queries(), ["home", "homework"])

    def test_pending_and_settling_are_independent(self):
        self.dispatcher.request("home")
        self.scheduler.advance(0.5)
        self.assertTrue(self.dispatcher.is_settling)
        self.assertFalse(self.dispatcher.is_pending)
        self.assertEqual(self.dispatcher.state, DISPATCHING)

        self.dispatcher.request("garden")
        self.assertTrue(self.dispatcher.is_settling)
        self.assertTrue(self.dispatcher.is_pending)

        self.scheduler.advance(0.1)
        self.assertFalse(self.dispatcher.is_settling)
        self.assertTrue(self.dispatcher.is_pending)

        self.scheduler.advance(1)
        self.assertEqual(self.dispatcher.state, IDLE)
        self.assertEqual(self._queries(), ["home", "garden"])

    def test_close_cancels_timers_and_ignores_requests(self):
        self.dispatcher.request("home")
        self.dispatcher.close()
        self.assertTrue(self.dispatcher.closed)
        self.assertFalse(self.dispatcher.is_pending)
        self.scheduler.advance(1)
        self.dispatcher.request("garden")
        self.dispatcher.request("")
        self.scheduler.advance(1)
        self.assertEqual(self.calls, [])

    def test_initial_value_counts_as_dispatched(self):
        dispatcher = ProjectSearchDispatcher(
            "u1", self.calls.append, scheduler=self.scheduler, initial="home",
        )
        dispatcher.request("home")
        self.assertFalse(dispatcher.is_pending)
        dispatcher.request("")
        self.assertEqual(self._queries(), [""])

    def test_limit_is_passed_to_query(self):
        dispatcher = ProjectSearchDispatcher(
            "u1", self.calls.append, scheduler=self.scheduler, limit=10,
        )
        dispatcher.request("home")
        self.scheduler.advance(1)
        self.assertEqual(self.calls[0].predicates[-1], p.Limit(10))

    def test_build_search_url_encodes_value(self):
        self.assertEqual(build_search_url("/p/", "home & garden"), "/p/?q=home+%26+garden")
        self.assertEqual(build_search_url("/p/", ""), "/p/")

    def test_rejects_empty_user(self):
        with self.assertRaises(ValidationError):
            ProjectSearchDispatcher("", self.calls.append, scheduler=self.scheduler)

    def test_defaults_to_running_event_loop(self):
        calls = []

        async def scenario():
            dispatcher = ProjectSearchDispatcher("u1", calls.append, delay=0.01, settle=0.01)
            dispatcher.request("a")
            dispatcher.request("ab")
            await asyncio.sleep(0.1)
            return dispatcher.state

        state = async_to_sync(scenario)()
        self.assertEqual([c.query for c in calls], ["ab"])
        self.assertEqual(state, IDLE)


class TaskViewTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="testuser", password="testpass")
        self.user_id = str(self.user.pk)
        self.client.force_login(self.user)
        self.today = start_of_day(timezone.now())

    def test_requires_login(self):
        self.client.logout()
        response = self.client.get(reverse("tasks:today"))
        self.assertEqual(response.status_code, 302)

    def test_today_lists_tasks_with_styling(self):
        Task.objects.create(
            user_id=self.user_id, content="Water plants",
            due_date=self.today + datetime.timedelta(hours=1),
        )
        Task.objects.create(user_id="someone-else", content="Not mine", due_date=self.today)
        response = self.client.get(reverse("tasks:today"))
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["total"], 1)
        row = data["tasks"][0]
        self.assertEqual(row["content"], "Water plants")
        self.assertEqual(row["due_category"], "due-today")
        self.assertEqual(row["status"], "pending")

    def test_inbox_upcoming_completed(self):
        project = Project.objects.create(user_id=self.user_id, name="Work")
        Task.objects.create(user_id=self.user_id, content="Loose")
        Task.objects.create(
            user_id=self.user_id, content="Planned", project=project,
            due_date=self.today + datetime.timedelta(days=3),
        )
        Task.objects.create(user_id=self.user_id, content="Finished", completed=True)

        inbox = self.client.get(reverse("tasks:inbox")).json()
        self.assertEqual([t["content"] for t in inbox["tasks"]], ["Loose"])
        upcoming = self.client.get(reverse("tasks:upcoming")).json()
        self.assertEqual([t["content"] for t in upcoming["tasks"]], ["Planned"])
        completed = self.client.get(reverse("tasks:completed")).json()
        self.assertEqual([t["content"] for t in completed["tasks"]], ["Finished"])
        self.assertEqual(completed["tasks"][0]["status"], "completed")

    def test_counts(self):
        Task.objects.create(user_id=self.user_id, content="Loose", due_date=self.today)
        response = self.client.get(reverse("tasks:counts"))
        self.assertEqual(response.json(), {"inbox": 1, "today": 1})

    def test_projects_search(self):
        Project.objects.create(user_id=self.user_id, name="Home")
        Project.objects.create(user_id=self.user_id, name="Garden")
        response = self.client.get(reverse("tasks:projects"), {"q": "gar"})
        data = response.json()
        self.assertEqual(data["query"], "gar")
        self.assertEqual([row["name"] for row in data["projects"]], ["Garden"])

    def test_projects_limit(self):
        for name in ("A", "B", "C"):
            Project.objects.create(user_id=self.user_id, name=name)
        data = self.client.get(reverse("tasks:projects"), {"limit": "2"}).json()
        self.assertEqual(len(data["projects"]), 2)
        self.assertEqual(data["total"], 3)

    def test_projects_bad_limit(self):
        for bad in ("abc", "0", "-3"):
            with self.subTest(bad=bad):
                response = self.client.get(reverse("tasks:projects"), {"limit": bad})
                self.assertEqual(response.status_code, 400)


class SeedTasksCommandTests(TestCase):
    def test_seed_is_idempotent(self):
        call_command("seed_tasks", "u1", stdout=StringIO())
        call_command("seed_tasks", "u1", stdout=StringIO())
        self.assertEqual(Project.objects.filter(user_id="u1").count(), 5)
        self.assertEqual(Task.objects.filter(user_id="u1").count(), 10)
        self.assertEqual(Task.objects.filter(user_id="u1", project__isnull=True).count(), 2)
