import dataclasses

from asgiref.sync import async_to_sync
from django.contrib.auth.decorators import login_required
from django.http import JsonResponse

from tasks.exceptions import AggregationError, ValidationError

from .services import AnalyticsService, completion_trend


@login_required
def dashboard(request):
    time_range = request.GET.get("range", "30d")
    try:
        data = async_to_sync(AnalyticsService().dashboard)(str(request.user.pk), time_range)
    except ValidationError as exc:
        return JsonResponse({"error": str(exc)}, status=400)
    except AggregationError as exc:
        # Only the generic message leaves the server; the cause is logged.
        return JsonResponse({"error": str(exc)}, status=502)

    payload = data.as_dict()
    payload["range"] = time_range
    payload["trend"] = dataclasses.asdict(completion_trend(data.monthly_completion))
    return JsonResponse(payload)
