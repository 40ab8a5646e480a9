"""Predicate sets behind the analytics dashboard."""

from tasks import predicates as p
from tasks.calendar import range_start
from tasks.queries import CREATED_AT, DUE_DATE, by_completed, by_user


def tasks_in_time_range(user_id, time_range, now, max_tasks=1000):
    return (
        by_user(user_id),
        p.range_from(CREATED_AT, range_start(time_range, now)),
        p.order_descending(CREATED_AT),
        p.limit(max_tasks),
    )


def analytics_projects(user_id, max_projects=100):
    return (
        by_user(user_id),
        p.order_descending(CREATED_AT),
        p.limit(max_projects),
    )


def total_count(user_id):
    return p.count_view((by_user(user_id),))


def completed_count(user_id):
    return p.count_view((by_user(user_id), by_completed(True)))


def pending_count(user_id):
    return p.count_view((by_user(user_id), by_completed(False)))


def overdue_count(user_id, today_start):
    return p.count_view((
        by_user(user_id),
        by_completed(False),
        p.is_not_null(DUE_DATE),
        p.range_before(DUE_DATE, today_start),
    ))
