import logging

from django.conf import settings
from django.contrib.auth.hashers import check_password, make_password
from django.core.exceptions import PermissionDenied, ValidationError
from django.db import IntegrityError, transaction
from django.db.models import F

from dashboard.broadcast import DELETED, ROLE_UPDATED, broadcast_user
from .forms import LoginForm, RegistrationForm
from .models import Role, User

logger = logging.getLogger(__name__)

INVALID_LOGIN = "Invalid login attempt."
DUPLICATE_EMAIL = "An account with this email already exists."


def email_domain_allowed(email: str) -> bool:
    email = (email or "").strip().lower()
    return any(email.endswith("@" + domain) for domain in settings.ALLOWED_EMAIL_DOMAINS)


def _domain_error(verb):
    domains = " or ".join("@" + d for d in settings.ALLOWED_EMAIL_DOMAINS)
    return ValidationError(
        {"email": [f"Only company employees may {verb}. Please use your {domains} email."]}
    )


def _bound(form_class, data):
    form = form_class(data)
    if not form.is_valid():
        raise ValidationError(form.errors.as_data())
    return form.cleaned_data


def register(data) -> User:
    """
    Create a Developer account for an allowed-domain email.

    Raises ValidationError for a foreign domain, a taken email or a missing
    default role; nothing is written in those cases.
    """
    cleaned = _bound(RegistrationForm, data)
    email = cleaned["email"].strip()

    if not email_domain_allowed(email):
        raise _domain_error("register")

    if User.objects.filter(email__iexact=email).exists():
        raise ValidationError({"email": [DUPLICATE_EMAIL]})

    default_role = Role.objects.filter(title=settings.DEFAULT_ROLE).first()
    if default_role is None:
        logger.error("Default role %r is missing; registration refused", settings.DEFAULT_ROLE)
        raise ValidationError("Registration failed: default role not found. Please contact support.")

    try:
        with transaction.atomic():
            user = User.objects.create(
                username=cleaned["username"].strip(),
                email=email,
                password=make_password(cleaned["password"]),
                role=default_role,
            )
    except IntegrityError:
        # lost a race with a concurrent registration for the same address
        raise ValidationError({"email": [DUPLICATE_EMAIL]})
    logger.info("Registered user #%s (%s)", user.id, user.email)
    return user


def authenticate(data) -> User:
    cleaned = _bound(LoginForm, data)
    email = cleaned["email"].strip()

    if not email_domain_allowed(email):
        raise _domain_error("log in")

    user = User.objects.select_related("role").filter(email__iexact=email).first()
    if user is None or not check_password(cleaned["password"], user.password):
        logger.info("Failed login for %s", email)
        raise ValidationError(INVALID_LOGIN)
    return user


def change_role(actor: User, user: User, role: Role) -> str:
    """Move ``user`` to ``role``; returns the previous role title."""
    if actor.pk == user.pk:
        raise PermissionDenied("You cannot change your own role.")

    old_title = user.role_title or "Unknown"
    user.role = role
    user.save(update_fields=["role"])
    logger.info("User #%s role %s -> %s by #%s", user.id, old_title, role.title, actor.id)
    broadcast_user(ROLE_UPDATED, user.id)
    return old_title


def delete_user(actor: User, user: User) -> int:
    """
    Delete ``user`` after handing their work to ``actor``.

    Assigned tickets go to the acting admin (never to null), as do the tickets
    and projects the user created. Comments stay, without an author.
    Returns how many assigned tickets were reassigned.
    """
    from projects.models import Project
    from tickets.models import Ticket
    from tickets.services import queue_assignment_email

    if actor.pk == user.pk:
        raise PermissionDenied("You cannot delete your own account.")

    user_id = user.pk
    with transaction.atomic():
        # row lock holds off new tickets referencing this user until commit
        user = User.objects.select_for_update().get(pk=user_id)
        assigned = Ticket.objects.select_for_update().filter(assigned_to=user)
        reassigned_ids = list(assigned.values_list("id", flat=True))
        Ticket.objects.filter(assigned_to=user).update(assigned_to=actor, version=F("version") + 1)
        Ticket.objects.filter(created_by=user).update(created_by=actor)
        Project.objects.filter(created_by=user).update(created_by=actor)
        user.delete()

        broadcast_user(DELETED, user_id)
        for ticket_id in reassigned_ids:
            queue_assignment_email(ticket_id)

    logger.info(
        "User #%s deleted by #%s; %d ticket(s) reassigned", user_id, actor.id, len(reassigned_ids)
    )
    return len(reassigned_ids)
