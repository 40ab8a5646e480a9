"""Product-policy knobs read from ``settings.TASKBOARD``."""

from dataclasses import dataclass, fields

from django.conf import settings


@dataclass(frozen=True)
class TaskboardConfig:
    analytics_top_n: int = 5
    analytics_months: int = 6
    # Python weekday numbering: 0 = Monday ... 6 = Sunday.
    week_start: int = 6
    project_name_max_length: int = 30
    project_name_truncate_at: int = 25
    category_key_max_length: int = 20
    max_tasks: int = 1000
    max_projects: int = 100
    search_delay: float = 0.5
    search_settle: float = 0.1

    @classmethod
    def from_settings(cls):
        """Build a config from ``settings.TASKBOARD``, ignoring unknown keys."""
        overrides = getattr(settings, "TASKBOARD", None) or {}
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in overrides.items():
            name = key.lower()
            if name in known:
                kwargs[name] = value
        return cls(**kwargs)
