from django.db import models

from .documents import ProjectDocument, TaskDocument


class Project(models.Model):
    user_id = models.CharField(max_length=64)
    name = models.CharField(max_length=255)
    color_name = models.CharField(max_length=32, default="Slate")
    color_hex = models.CharField(max_length=7, default="#64748b")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["user_id", "created_at"], name="tasks_project_user_created"),
        ]

    def __str__(self):
        return self.name

    def as_document(self, tasks=()):
        return ProjectDocument(
            id=str(self.pk),
            name=self.name,
            color_name=self.color_name,
            color_hex=self.color_hex,
            created_at=self.created_at,
            user_id=self.user_id,
            tasks=tuple(tasks),
        )


class Task(models.Model):
    user_id = models.CharField(max_length=64)
    project = models.ForeignKey(
        Project, on_delete=models.CASCADE, related_name="tasks",
        null=True, blank=True,
    )
    content = models.CharField(max_length=250)
    completed = models.BooleanField(default=False)
    due_date = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(
                fields=["due_date"],
                condition=models.Q(due_date__isnull=False),
                name="tasks_task_due_date_notnull",
            ),
            models.Index(fields=["user_id", "completed"], name="tasks_task_user_completed"),
        ]

    def __str__(self):
        return self.content

    def as_document(self):
        return TaskDocument(
            id=str(self.pk),
            content=self.content,
            completed=self.completed,
            due_date=self.due_date,
            project_id=str(self.project_id) if self.project_id else None,
            created_at=self.created_at,
            updated_at=self.updated_at,
            user_id=self.user_id,
        )
