from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from common.http import BadPayload, error_response, read_payload, validation_response
from users.auth import get_current_user, role_required
from .models import Project
from . import services


def project_payload(project):
    return {
        "id": project.id,
        "name": project.name,
        "description": project.description,
        "start_date": project.start_date,
        "end_date": project.end_date,
        "status": project.status,
        "created_by_id": project.created_by_id,
        "created_by": project.created_by.username if project.created_by_id else None,
        "created_at": project.created_at,
        "version": project.version,
    }


@require_http_methods(["GET"])
@role_required("project.view")
def list_projects(request):
    projects = Project.objects.select_related("created_by")
    return JsonResponse({"projects": [project_payload(p) for p in projects]})


@csrf_exempt
@require_http_methods(["GET", "POST"])
@role_required("project.create")
def create_project(request):
    if request.method == "GET":
        return JsonResponse({"project": None, "choices": services.form_choices()})

    try:
        data = read_payload(request)
    except BadPayload as e:
        return error_response(str(e))

    try:
        project = services.create_project(get_current_user(request), data)
    except ValidationError as e:
        return validation_response(e, choices=services.form_choices())

    return JsonResponse({
        "message": f"Project '{project.name}' created successfully!",
        "project": project_payload(project),
    }, status=201)


@require_http_methods(["GET"])
@role_required("project.view")
def project_details(request, project_id):
    try:
        project = Project.objects.select_related("created_by").get(id=project_id)
    except Project.DoesNotExist:
        return error_response("Project not found", status=404)

    tickets = project.tickets.select_related("assigned_to").order_by("-created_at")
    return JsonResponse({
        "project": project_payload(project),
        "tickets": [{
            "id": t.id,
            "title": t.title,
            "status": t.status,
            "priority": t.priority,
            "assigned_to": t.assigned_to.username if t.assigned_to_id else None,
            "due_date": t.due_date,
        } for t in tickets],
    })


@csrf_exempt
@require_http_methods(["GET", "POST"])
@role_required("project.edit")
def edit_project(request, project_id):
    try:
        project = Project.objects.select_related("created_by").get(id=project_id)
    except Project.DoesNotExist:
        return error_response("Project not found", status=404)

    if request.method == "GET":
        return JsonResponse({"project": project_payload(project), "choices": services.form_choices()})

    try:
        data = read_payload(request)
    except BadPayload as e:
        return error_response(str(e))

    try:
        project = services.update_project(project, data, version=data.get("version"))
    except ValidationError as e:
        return validation_response(e, choices=services.form_choices())
    except services.StaleProjectError as e:
        return error_response(str(e), status=409, current_version=e.current_version)
    except Project.DoesNotExist:
        return error_response("Project not found", status=404)

    return JsonResponse({
        "message": f"Project '{project.name}' updated successfully!",
        "project": project_payload(project),
    })


@csrf_exempt
@require_http_methods(["POST", "DELETE"])
@role_required("project.delete")
def delete_project(request, project_id):
    try:
        project = Project.objects.get(id=project_id)
    except Project.DoesNotExist:
        return error_response("Project not found", status=404)

    name = project.name
    ticket_count = services.delete_project(project)
    return JsonResponse({
        "message": f"Project '{name}' and its {ticket_count} associated tickets deleted successfully.",
        "deleted_tickets": ticket_count,
    })
