from django.urls import path

from . import views

app_name = "tasks"

urlpatterns = [
    path("today/", views.today, name="today"),
    path("inbox/", views.inbox, name="inbox"),
    path("upcoming/", views.upcoming, name="upcoming"),
    path("completed/", views.completed, name="completed"),
    path("counts/", views.counts, name="counts"),
    path("projects/", views.projects, name="projects"),
]
