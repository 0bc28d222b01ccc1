"""
Ticket lifecycle rules.

Status is one of the four fixed values, compared exactly after trimming
surrounding whitespace. ``completed_at`` is stamped the first time a ticket
reaches Done and cleared whenever it leaves Done. Edits are written with an
optimistic version check so a stale form never overwrites a newer change.
"""
import logging

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from common.versioning import StaleVersionError, expected_version, versioned_save
from dashboard.broadcast import COMMENTED, CREATED, DELETED, UPDATED, broadcast_ticket
from projects.models import Project
from users.models import User
from .forms import CommentForm, TicketForm
from .models import STATUS_DONE, TICKET_PRIORITIES, TICKET_STATUSES, Ticket, TicketComment

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ["title", "description", "project", "assigned_to", "status", "priority", "due_date"]


class StaleTicketError(StaleVersionError):
    """The ticket changed after the client loaded it."""
    label = "Ticket"


def form_choices():
    """Dropdown contents for the create/edit ticket forms."""
    return {
        "projects": list(Project.objects.order_by("name").values("id", "name")),
        "users": list(User.objects.order_by("username").values("id", "username")),
        "statuses": list(TICKET_STATUSES),
        "priorities": list(TICKET_PRIORITIES),
    }


def normalize_status(value):
    status = value.strip() if isinstance(value, str) else value
    if status not in TICKET_STATUSES:
        raise ValidationError({"status": [
            f"Invalid ticket status provided: '{status}'. Expected one of: {', '.join(TICKET_STATUSES)}."
        ]})
    return status


def apply_completion(ticket, now=None):
    if ticket.status == STATUS_DONE:
        if ticket.completed_at is None:
            ticket.completed_at = now or timezone.now()
    else:
        ticket.completed_at = None


def _bind(data, instance=None):
    data = dict(data)
    if isinstance(data.get("status"), str):
        data["status"] = data["status"].strip()
    form = TicketForm(data, instance=instance)
    if not form.is_valid():
        raise ValidationError(form.errors.as_data())
    return form


def queue_assignment_email(ticket_id):
    """Tell the assignee by mail once the current transaction commits. Best effort."""
    if not settings.TICKET_ASSIGNMENT_EMAILS:
        return
    transaction.on_commit(lambda: _enqueue_assignment_email(ticket_id))


def _enqueue_assignment_email(ticket_id):
    from .tasks import send_assignment_email

    try:
        send_assignment_email.delay(ticket_id)
    except Exception:
        logger.exception("Could not queue assignment email for ticket #%s", ticket_id)


def create_ticket(actor, data) -> Ticket:
    ticket = _bind(data).save(commit=False)
    ticket.created_by = actor
    ticket.created_at = timezone.now()
    apply_completion(ticket, ticket.created_at)
    ticket.save()

    logger.info("Ticket #%s '%s' created by #%s", ticket.id, ticket.title, actor.id)
    broadcast_ticket(CREATED, ticket.id)
    if ticket.assigned_to_id:
        queue_assignment_email(ticket.id)
    return ticket


def update_ticket(ticket, data, version=None) -> Ticket:
    """Apply an edit form. Creator and creation time are never taken from the form."""
    expected = expected_version(ticket, version)
    prior_status = ticket.status
    prior_assignee = ticket.assigned_to_id

    ticket = _bind(data, instance=ticket).save(commit=False)
    apply_completion(ticket)
    versioned_save(ticket, expected, EDITABLE_FIELDS + ["completed_at"], StaleTicketError)

    broadcast_ticket(UPDATED, ticket.id, prior_status)
    if ticket.assigned_to_id and ticket.assigned_to_id != prior_assignee:
        queue_assignment_email(ticket.id)
    return ticket


def update_status(ticket, value, version=None) -> Ticket:
    status = normalize_status(value)
    expected = expected_version(ticket, version)
    prior_status = ticket.status

    ticket.status = status
    apply_completion(ticket)
    versioned_save(ticket, expected, ["status", "completed_at"], StaleTicketError)

    logger.info("Ticket #%s status %s -> %s", ticket.id, prior_status, status)
    broadcast_ticket(UPDATED, ticket.id, prior_status)
    return ticket


def add_comment(ticket, author, data) -> TicketComment:
    form = CommentForm(data)
    if not form.is_valid():
        raise ValidationError(form.errors.as_data())

    comment = TicketComment.objects.create(
        ticket=ticket,
        author=author,
        text=form.cleaned_data["text"],
    )
    broadcast_ticket(COMMENTED, ticket.id)
    return comment


def delete_ticket(ticket):
    ticket_id, prior_status = ticket.pk, ticket.status
    ticket.delete()
    logger.info("Ticket #%s deleted", ticket_id)
    broadcast_ticket(DELETED, ticket_id, prior_status)
