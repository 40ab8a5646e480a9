import datetime

from django.core.management.base import BaseCommand
from django.utils import timezone

from tasks.models import Project, Task

PROJECTS = [
    {"name": "House – Exterior", "color_name": "Red", "color_hex": "#E74C3C"},
    {"name": "House – Interior", "color_name": "Blue", "color_hex": "#3498DB"},
    {"name": "Day Job", "color_name": "Green", "color_hex": "#2ECC71"},
    {"name": "Family", "color_name": "Orange", "color_hex": "#F39C12"},
    {"name": "Personal Learning", "color_name": "Purple", "color_hex": "#9B59B6"},
]

# (content, project index or None for the inbox, due offset in days or None, completed)
TASKS = [
    ("Clean the gutters", 0, -3, False),
    ("Paint the fence", 0, 5, False),
    ("Fix the squeaky door", 1, 0, False),
    ("Replace air filter", 1, -10, True),
    ("Quarterly report", 2, 1, False),
    ("Review pull requests", 2, 0, True),
    ("Plan the weekend trip", 3, 2, False),
    ("Read a chapter", 4, None, True),
    ("Buy stamps", None, None, False),
    ("Call the dentist", None, 0, False),
]


class Command(BaseCommand):
    help = "Seed demo projects and tasks for one user."

    def add_arguments(self, parser):
        parser.add_argument("user_id", help="Opaque user id that will own the data.")

    def handle(self, *args, **options):
        user_id = options["user_id"]
        now = timezone.now()

        projects = []
        for entry in PROJECTS:
            project, created = Project.objects.update_or_create(
                user_id=user_id,
                name=entry["name"],
                defaults={
                    "color_name": entry["color_name"],
                    "color_hex": entry["color_hex"],
                },
            )
            projects.append(project)
            status = "created" if created else "already exists"
            self.stdout.write(f"  {entry['name']} – {status}")

        for content, project_index, due_offset, completed in TASKS:
            due_date = None
            if due_offset is not None:
                due_date = now + datetime.timedelta(days=due_offset)
            _, created = Task.objects.get_or_create(
                user_id=user_id,
                content=content,
                defaults={
                    "project": projects[project_index] if project_index is not None else None,
                    "due_date": due_date,
                    "completed": completed,
                },
            )
            if created:
                self.stdout.write(f"  + {content}")

        self.stdout.write(self.style.SUCCESS("Done."))
