from django.core.exceptions import PermissionDenied
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from common.http import BadPayload, error_response, read_payload
from . import services
from .auth import get_current_user, role_required
from .models import Role, User


@require_http_methods(["GET"])
@role_required("dashboard.view")
def list_roles(request):
    roles = Role.objects.all().values("id", "title", "description")
    return JsonResponse(list(roles), safe=False)


@csrf_exempt
@require_http_methods(["POST"])
@role_required("user.change_role")
def update_user_role(request, user_id):
    try:
        data = read_payload(request)
    except BadPayload as e:
        return error_response(str(e))

    try:
        user = User.objects.select_related("role").get(id=user_id)
    except User.DoesNotExist:
        return error_response("User not found", status=404)

    try:
        role = Role.objects.get(id=int(data.get("role_id")))
    except (TypeError, ValueError):
        return error_response("role_id must be an integer", status=400)
    except Role.DoesNotExist:
        return error_response("New role not found", status=404)

    try:
        old_title = services.change_role(get_current_user(request), user, role)
    except PermissionDenied as e:
        return error_response(str(e), status=403)

    return JsonResponse({
        "message": f"User '{user.username}' role updated from '{old_title}' to '{role.title}' successfully.",
        "user_id": user.id,
        "role": role.title,
    })


@csrf_exempt
@require_http_methods(["POST", "DELETE"])
@role_required("user.delete")
def delete_user(request, user_id):
    try:
        user = User.objects.get(id=user_id)
    except User.DoesNotExist:
        return error_response("User not found", status=404)

    admin = get_current_user(request)
    username = user.username
    try:
        reassigned = services.delete_user(admin, user)
    except PermissionDenied as e:
        return error_response(str(e), status=403)

    return JsonResponse({
        "message": f"User '{username}' deleted and their tickets reassigned to {admin.username}.",
        "reassigned_tickets": reassigned,
    })
