from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from common.http import BadPayload, error_response, read_payload, validation_response
from users.auth import get_current_user, role_required
from .models import TICKET_STATUSES, STATUS_TODO, Ticket
from . import services


def ticket_payload(ticket):
    return {
        "id": ticket.id,
        "title": ticket.title,
        "description": ticket.description,
        "project_id": ticket.project_id,
        "project_name": ticket.project.name,
        "assigned_to_id": ticket.assigned_to_id,
        "assigned_to": ticket.assigned_to.username if ticket.assigned_to_id else None,
        "status": ticket.status,
        "priority": ticket.priority,
        "created_by_id": ticket.created_by_id,
        "created_by": ticket.created_by.username,
        "created_at": ticket.created_at,
        "due_date": ticket.due_date,
        "completed_at": ticket.completed_at,
        "version": ticket.version,
    }


def _load(ticket_id):
    return Ticket.objects.select_related("project", "assigned_to", "created_by").get(id=ticket_id)


def _conflict(exc):
    return error_response(str(exc), status=409, current_version=exc.current_version)


@csrf_exempt
@require_http_methods(["GET", "POST"])
@role_required("ticket.create")
def create_ticket(request):
    if request.method == "GET":
        return JsonResponse({"ticket": None, "choices": services.form_choices()})

    try:
        data = read_payload(request)
    except BadPayload as e:
        return error_response(str(e))

    try:
        ticket = services.create_ticket(get_current_user(request), data)
    except ValidationError as e:
        return validation_response(e, choices=services.form_choices())

    return JsonResponse({
        "message": f"Ticket '{ticket.title}' created successfully!",
        "ticket": ticket_payload(_load(ticket.id)),
    }, status=201)


@require_http_methods(["GET"])
@role_required("ticket.view")
def ticket_details(request, ticket_id):
    try:
        ticket = _load(ticket_id)
    except Ticket.DoesNotExist:
        return error_response("Ticket not found", status=404)

    comments = ticket.comments.select_related("author")
    return JsonResponse({
        "ticket": ticket_payload(ticket),
        "comments": [{
            "id": c.id,
            "author_id": c.author_id,
            "author": c.author.username if c.author_id else None,
            "text": c.text,
            "created_at": c.created_at,
        } for c in comments],
        "status_choices": list(TICKET_STATUSES),
        "selected_status": ticket.status or STATUS_TODO,
    })


@csrf_exempt
@require_http_methods(["GET", "POST"])
@role_required("ticket.edit")
def edit_ticket(request, ticket_id):
    try:
        ticket = _load(ticket_id)
    except Ticket.DoesNotExist:
        return error_response("Ticket not found", status=404)

    if request.method == "GET":
        return JsonResponse({"ticket": ticket_payload(ticket), "choices": services.form_choices()})

    try:
        data = read_payload(request)
    except BadPayload as e:
        return error_response(str(e))

    try:
        ticket = services.update_ticket(ticket, data, version=data.get("version"))
    except ValidationError as e:
        return validation_response(e, choices=services.form_choices())
    except services.StaleTicketError as e:
        return _conflict(e)
    except Ticket.DoesNotExist:
        return error_response("Ticket not found", status=404)

    return JsonResponse({
        "message": f"Ticket '{ticket.title}' updated successfully!",
        "ticket": ticket_payload(_load(ticket.id)),
    })


@csrf_exempt
@require_http_methods(["POST"])
@role_required("ticket.update_status")
def update_ticket_status(request, ticket_id):
    try:
        data = read_payload(request)
    except BadPayload as e:
        return error_response(str(e))

    try:
        ticket = _load(ticket_id)
    except Ticket.DoesNotExist:
        return error_response("Ticket not found", status=404)

    try:
        ticket = services.update_status(ticket, data.get("status"), version=data.get("version"))
    except ValidationError as e:
        return validation_response(e, choices={"statuses": list(TICKET_STATUSES)},
                                   message="Invalid ticket status.")
    except services.StaleTicketError as e:
        return _conflict(e)
    except Ticket.DoesNotExist:
        return error_response("Ticket not found", status=404)

    return JsonResponse({
        "message": f"Ticket '{ticket.title}' status updated to '{ticket.status}' successfully!",
        "ticket": ticket_payload(ticket),
    })


@csrf_exempt
@require_http_methods(["POST"])
@role_required("ticket.comment")
def add_comment(request, ticket_id):
    try:
        data = read_payload(request)
    except BadPayload as e:
        return error_response(str(e))

    try:
        ticket = Ticket.objects.get(id=ticket_id)
    except Ticket.DoesNotExist:
        return error_response("Ticket not found", status=404)

    try:
        comment = services.add_comment(ticket, get_current_user(request), data)
    except ValidationError as e:
        return validation_response(e, message="Comment cannot be empty.")

    return JsonResponse({
        "message": "Comment added successfully!",
        "comment": {
            "id": comment.id,
            "ticket_id": ticket.id,
            "author_id": comment.author_id,
            "text": comment.text,
            "created_at": comment.created_at,
        },
    }, status=201)


@csrf_exempt
@require_http_methods(["POST", "DELETE"])
@role_required("ticket.delete")
def delete_ticket(request, ticket_id):
    try:
        ticket = Ticket.objects.get(id=ticket_id)
    except Ticket.DoesNotExist:
        return error_response("Ticket not found", status=404)

    title = ticket.title
    services.delete_ticket(ticket)
    return JsonResponse({"message": f"Ticket '{title}' deleted successfully."})
