import logging

from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from common.http import BadPayload, error_response, read_payload, validation_response
from . import services
from .auth import get_current_user, role_required, session_principal, sign_in, sign_out

logger = logging.getLogger(__name__)


def user_payload(user):
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "role": user.role_title,
        "created_at": user.created_at,
    }


#registration of user

@csrf_exempt
@require_http_methods(["POST"])
def register_user(request):
    try:
        data = read_payload(request)
    except BadPayload as e:
        return error_response(str(e))

    try:
        user = services.register(data)
    except ValidationError as e:
        logger.info("Registration rejected for %s", data.get("email"))
        return validation_response(e, message="Registration failed.")

    sign_in(request, user)
    return JsonResponse({
        "message": "User registered successfully",
        "user": user_payload(user),
        "redirect_url": "/dashboard/",
    }, status=201)


@csrf_exempt
@require_http_methods(["POST"])
def login_user(request):
    try:
        data = read_payload(request)
    except BadPayload as e:
        return error_response(str(e))

    try:
        user = services.authenticate(data)
    except ValidationError as e:
        return validation_response(e, message=services.INVALID_LOGIN)

    sign_in(request, user)
    return JsonResponse({
        "message": "Login successful",
        "user": user_payload(user),
        "redirect_url": "/dashboard/",
    })


@csrf_exempt
@require_http_methods(["POST"])
def logout_user(request):
    sign_out(request)
    return JsonResponse({"message": "Logged out", "redirect_url": "/users/login/"})


@require_http_methods(["GET"])
@role_required("dashboard.view")
def me(request):
    user = get_current_user(request)
    return JsonResponse({
        "principal": session_principal(request),
        "user": user_payload(user),
    })
