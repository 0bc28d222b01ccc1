from functools import wraps

from .models import User
from .policy import allowed_roles, is_allowed
from common.http import error_response

SESSION_USER_ID = "user_id"
SESSION_USERNAME = "username"
SESSION_EMAIL = "email"
SESSION_ROLE = "role"


def sign_in(request, user):
    """Start a fresh session whose principal carries id, name, email and role."""
    request.session.cycle_key()
    request.session[SESSION_USER_ID] = user.id
    request.session[SESSION_USERNAME] = user.username
    request.session[SESSION_EMAIL] = user.email
    request.session[SESSION_ROLE] = user.role_title
    request.current_user = user


def sign_out(request):
    request.session.flush()
    request.current_user = None


def session_principal(request):
    if SESSION_USER_ID not in request.session:
        return None
    return {
        "user_id": request.session[SESSION_USER_ID],
        "username": request.session.get(SESSION_USERNAME),
        "email": request.session.get(SESSION_EMAIL),
        "role": request.session.get(SESSION_ROLE),
    }


def get_current_user(request):
    """
    Load the signed-in user, or None.

    The role is read from the store rather than the cookie so that a role
    change applies on the very next request.
    """
    if hasattr(request, "current_user"):
        return request.current_user

    user = None
    user_id = request.session.get(SESSION_USER_ID)
    if user_id is not None:
        user = User.objects.select_related("role").filter(id=user_id).first()
        if user is None:
            # account deleted while the cookie was still alive
            request.session.flush()
        elif request.session.get(SESSION_ROLE) != user.role_title:
            request.session[SESSION_ROLE] = user.role_title

    request.current_user = user
    return user


def role_required(action):
    """Gate a view on a ``users.policy`` action: 401 without a session, 403 on role mismatch."""
    allowed_roles(action)

    def decorator(view):
        @wraps(view)
        def wrapper(request, *args, **kwargs):
            user = get_current_user(request)
            if user is None:
                return error_response("Authentication required", status=401)
            if not is_allowed(action, user.role_title):
                roles = ", ".join(sorted(allowed_roles(action)))
                return error_response(f"This action requires one of: {roles}", status=403)
            return view(request, *args, **kwargs)
        return wrapper
    return decorator
