from asgiref.sync import async_to_sync
from django.core.management.base import BaseCommand, CommandError

from analytics.services import AnalyticsService, completion_trend
from tasks.calendar import TIME_RANGES, FixedClock, SystemClock
from tasks.exceptions import AggregationError


class Command(BaseCommand):
    help = (
        "Print the analytics dashboard for one user: headline metrics, "
        "monthly completion, project distribution and progress, weekday activity."
    )

    def add_arguments(self, parser):
        parser.add_argument("user_id", help="Opaque user id whose tasks are reported.")
        parser.add_argument(
            "--range",
            dest="time_range",
            choices=sorted(TIME_RANGES),
            default="30d",
            help="Time range for the task sample. Defaults to 30d.",
        )
        parser.add_argument(
            "--now",
            default=None,
            help="Report as of this ISO timestamp instead of the current time.",
        )

    def handle(self, *args, **options):
        try:
            clock = FixedClock(options["now"]) if options["now"] else SystemClock()
        except ValueError as exc:
            raise CommandError(str(exc)) from exc
        service = AnalyticsService(clock=clock)
        try:
            data = async_to_sync(service.dashboard)(options["user_id"], options["time_range"])
        except AggregationError as exc:
            raise CommandError(str(exc)) from exc

        # 1. Headline metrics
        for metric in data.metrics:
            self.stdout.write(f"{metric.title}: {metric.value} ({metric.change_text})")

        # 2. Monthly completion
        trend = completion_trend(data.monthly_completion)
        direction = "up" if trend.is_positive else "down"
        self.stdout.write(f"\nMonthly completion {trend.date_range} ({direction} {trend.trend}%):")
        for point in data.monthly_completion:
            self.stdout.write(
                f"  {point.month}: {point.completed} completed, "
                f"{point.pending} pending, {point.overdue} overdue"
            )

        # 3. Projects
        self.stdout.write("\nTask distribution:")
        if not data.distribution:
            self.stdout.write("  No project tasks.")
        for entry in data.distribution:
            self.stdout.write(f"  {entry.label}: {entry.task_count}")

        self.stdout.write("\nProject progress:")
        if not data.progress:
            self.stdout.write("  No project tasks.")
        for entry in data.progress:
            self.stdout.write(f"  {entry.project_label}: {entry.progress_percent}%")

        # 4. Weekday activity
        self.stdout.write("\nCompleted by weekday:")
        self.stdout.write(
            "  " + "  ".join(f"{p.weekday} {p.completed_count}" for p in data.activity)
        )

        self.stdout.write(self.style.SUCCESS("Done."))
