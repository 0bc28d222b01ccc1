"""
Who may do what.

Every mutating endpoint names one action from ``POLICY``; the
``role_required`` decorator in ``users.auth`` looks the action up here
before the view body runs. ``None`` means any signed-in user.
"""
from .models import Role

ADMIN_ONLY = frozenset({Role.ADMIN})
MANAGERS = frozenset({Role.ADMIN, Role.PROJECT_MANAGER})
ANY_USER = None

POLICY = {
    "dashboard.view": ANY_USER,

    "ticket.view": ANY_USER,
    "ticket.create": MANAGERS,
    "ticket.edit": MANAGERS,
    "ticket.delete": MANAGERS,
    "ticket.update_status": ANY_USER,
    "ticket.comment": ANY_USER,

    "project.view": ANY_USER,
    "project.create": ADMIN_ONLY,
    "project.edit": ADMIN_ONLY,
    "project.delete": ADMIN_ONLY,

    "report.projects": ADMIN_ONLY,
    "report.users": ADMIN_ONLY,

    "user.change_role": ADMIN_ONLY,
    "user.delete": ADMIN_ONLY,
}


def allowed_roles(action):
    # KeyError on purpose: a view wired to an unknown action is a bug.
    return POLICY[action]


def is_allowed(action, role_title) -> bool:
    roles = allowed_roles(action)
    if roles is ANY_USER:
        return True
    return role_title in roles
