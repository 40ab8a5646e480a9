from asgiref.sync import async_to_sync
from django.contrib.auth.decorators import login_required
from django.http import JsonResponse

from .exceptions import UpstreamFetchError, ValidationError
from .services import TaskService, project_row, task_row


def _user_id(request):
    return str(request.user.pk)


def _task_list(request, finder):
    service = TaskService()
    now = service.clock.now()
    try:
        result = async_to_sync(getattr(service, finder))(_user_id(request))
    except UpstreamFetchError as exc:
        return JsonResponse({"error": str(exc)}, status=502)
    return JsonResponse({
        "total": result.total,
        "tasks": [task_row(task, now) for task in result.documents],
    })


@login_required
def today(request):
    return _task_list(request, "find_today_tasks")


@login_required
def inbox(request):
    return _task_list(request, "find_inbox_tasks")


@login_required
def upcoming(request):
    return _task_list(request, "find_upcoming_tasks")


@login_required
def completed(request):
    return _task_list(request, "find_completed_tasks")


@login_required
def counts(request):
    try:
        badges = async_to_sync(TaskService().count_badges)(_user_id(request))
    except UpstreamFetchError as exc:
        return JsonResponse({"error": str(exc)}, status=502)
    return JsonResponse(badges)


@login_required
def projects(request):
    search = request.GET.get("q", "").strip() or None
    limit = request.GET.get("limit", "").strip()
    try:
        limit = int(limit) if limit else None
        result = async_to_sync(TaskService().list_projects)(
            _user_id(request), search=search, limit=limit,
        )
    except (ValueError, ValidationError) as exc:
        # ValidationError is a ValueError too; int() raises the plain kind.
        return JsonResponse({"error": f"Invalid limit: {exc}"}, status=400)
    except UpstreamFetchError as exc:
        return JsonResponse({"error": str(exc)}, status=502)
    return JsonResponse({
        "total": result.total,
        "query": search or "",
        "projects": [project_row(project) for project in result.documents],
    })
