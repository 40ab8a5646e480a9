from django.contrib import admin

from .models import Project, Task


@admin.register(Project)
class ProjectAdmin(admin.ModelAdmin):
    list_display = ["name", "user_id", "color_name", "color_hex", "created_at"]
    search_fields = ["name"]


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ["content", "user_id", "project", "completed", "due_date", "updated_at"]
    list_filter = ["completed", "project"]
    date_hierarchy = "due_date"
    search_fields = ["content"]
