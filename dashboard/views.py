import json
import logging

from django.conf import settings
from django.http import JsonResponse, StreamingHttpResponse
from django.views.decorators.http import require_http_methods

from common.http import error_response
from projects.models import Project
from tickets.models import Ticket
from users.auth import get_current_user, role_required
from users.models import Role, User
from .broadcast import get_broadcaster
from .reports import group_by_status, project_reports, status_counts, ticket_summary, user_reports

logger = logging.getLogger(__name__)


def _project_row(project):
    return {
        "id": project.id,
        "name": project.name,
        "status": project.status,
        "created_by": project.created_by.username if project.created_by_id else None,
        "created_at": project.created_at,
    }


def _assigned_row(ticket):
    row = ticket_summary(ticket)
    row["project_id"] = ticket.project_id
    row["project_name"] = ticket.project.name
    return row


@require_http_methods(["GET"])
@role_required("dashboard.view")
def index(request):
    user = get_current_user(request)
    assigned = Ticket.objects.filter(assigned_to=user).select_related("project")
    all_tickets = Ticket.objects.select_related("project")
    projects = Project.objects.select_related("created_by")

    return JsonResponse({
        "user": {"id": user.id, "username": user.username, "email": user.email},
        "role": user.role_title,
        "assigned_tickets": [_assigned_row(t) for t in assigned],
        "tickets_by_status": group_by_status(all_tickets, _assigned_row),
        "projects": [_project_row(p) for p in projects],
    })


@require_http_methods(["GET"])
@role_required("dashboard.view")
def quick_insights(request):
    statuses = Ticket.objects.values_list("status", flat=True)
    return JsonResponse(status_counts(statuses))


@require_http_methods(["GET"])
@role_required("dashboard.view")
def assigned_tickets(request, user_id):
    if not User.objects.filter(id=user_id).exists():
        return error_response("User not found", status=404)

    tickets = Ticket.objects.filter(assigned_to_id=user_id).select_related("project")
    return JsonResponse({"user_id": user_id, "tickets": [_assigned_row(t) for t in tickets]})


@require_http_methods(["GET"])
@role_required("dashboard.view")
def projects_overview(request):
    projects = Project.objects.select_related("created_by")
    return JsonResponse({"projects": [_project_row(p) for p in projects]})


def _event_stream(broadcaster, subscription, heartbeat):
    try:
        yield ": connected\n\n"
        while not subscription.closed:
            event = subscription.get(timeout=heartbeat)
            if event is None:
                yield ": keep-alive\n\n"
                continue
            yield f"event: {event.method}\ndata: {json.dumps(event.as_message())}\n\n"
    finally:
        broadcaster.unsubscribe(subscription)
        logger.debug("Dashboard stream closed")


@require_http_methods(["GET"])
@role_required("dashboard.view")
def stream(request):
    broadcaster = get_broadcaster()
    if not hasattr(broadcaster, "subscribe"):
        return error_response("Live updates are not available on this server.", status=503)

    subscription = broadcaster.subscribe()
    response = StreamingHttpResponse(
        _event_stream(broadcaster, subscription, settings.DASHBOARD_STREAM_HEARTBEAT),
        content_type="text/event-stream",
    )
    response["Cache-Control"] = "no-cache"
    response["X-Accel-Buffering"] = "no"
    return response


@require_http_methods(["GET"])
@role_required("report.projects")
def projects_report(request):
    projects = Project.objects.prefetch_related("tickets")
    return JsonResponse({"projects": project_reports(projects)})


@require_http_methods(["GET"])
@role_required("report.users")
def users_report(request):
    users = User.objects.select_related("role").prefetch_related("assigned_tickets")
    return JsonResponse({
        "users": user_reports(users),
        "roles": list(Role.objects.values("id", "title")),
    })
