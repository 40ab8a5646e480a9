"""Predicate sets for the task and project views.

These only describe what to fetch; ``tasks.repositories`` hands them to a
document store.
"""

from . import predicates as p

USER = "user_id"
COMPLETED = "completed"
DUE_DATE = "due_date"
PROJECT = "project_id"
CREATED_AT = "created_at"
UPDATED_AT = "updated_at"
NAME = "name"

PROJECT_LIST_FIELDS = ("id", "name", "color_name", "color_hex", "created_at")


def by_user(user_id):
    return p.equal(USER, p.require_id(user_id, "user_id"))


def by_completed(completed):
    return p.equal(COMPLETED, bool(completed))


def due_in_window(start, end):
    return p.logical_and(p.range_from(DUE_DATE, start), p.range_before(DUE_DATE, end))


def today_tasks(user_id, window):
    start, end = window
    return (
        by_user(user_id),
        by_completed(False),
        due_in_window(start, end),
    )


def inbox_tasks(user_id):
    return (
        by_user(user_id),
        by_completed(False),
        p.is_null(PROJECT),
    )


def upcoming_tasks(user_id, today_start):
    return (
        by_user(user_id),
        by_completed(False),
        p.is_not_null(DUE_DATE),
        p.range_from(DUE_DATE, today_start),
        p.order_ascending(DUE_DATE),
    )


def completed_tasks(user_id):
    return (
        by_user(user_id),
        by_completed(True),
        p.order_descending(UPDATED_AT),
    )


def today_tasks_count(user_id, window):
    return p.count_view(today_tasks(user_id, window))


def inbox_tasks_count(user_id):
    return p.count_view(inbox_tasks(user_id))


def upcoming_tasks_count(user_id, today_start):
    return p.count_view(upcoming_tasks(user_id, today_start))


def completed_tasks_count(user_id):
    return p.count_view(completed_tasks(user_id))


def user_projects(user_id, search=None, limit=None):
    """Projects for the sidebar and project page, newest first.

    An empty or missing *search* leaves the set unfiltered; *limit*, when
    given, is always the final predicate.
    """
    queries = [p.select(*PROJECT_LIST_FIELDS), by_user(user_id)]
    if search:
        queries.append(p.contains(NAME, search))
    queries.append(p.order_descending(CREATED_AT))
    if limit is not None:
        queries.append(p.limit(limit))
    return tuple(queries)
