"""Plain records handed out by document stores.

The classifier and the analytics transforms only read attributes, so
anything with the same attribute names works as input.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class TaskDocument:
    id: str
    content: str
    completed: bool = False
    due_date: object = None
    project_id: object = None
    created_at: object = None
    updated_at: object = None
    user_id: str = ""


@dataclass(frozen=True)
class ProjectDocument:
    id: str
    name: str
    color_name: str = ""
    color_hex: str = ""
    created_at: object = None
    user_id: str = ""
    # Only populated by fetch paths that join tasks in.
    tasks: tuple = field(default=(), compare=False)


@dataclass(frozen=True)
class DocumentList:
    documents: list
    total: int
