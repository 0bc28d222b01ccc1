from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail

from .models import Ticket


@shared_task
def send_assignment_email(ticket_id):
    ticket = (
        Ticket.objects
        .select_related("assigned_to", "project")
        .filter(id=ticket_id)
        .first()
    )
    # deleted or unassigned again before the worker got to it
    if ticket is None or ticket.assigned_to is None:
        return f"Skipped ticket #{ticket_id}"

    due = f"\nDue: {ticket.due_date:%Y-%m-%d}" if ticket.due_date else ""
    send_mail(
        f"Ticket #{ticket.id} assigned to you",
        f"'{ticket.title}' in project {ticket.project.name} is now assigned to you.\n"
        f"Status: {ticket.status}\nPriority: {ticket.priority}{due}",
        settings.DEFAULT_FROM_EMAIL,
        [ticket.assigned_to.email],
    )
    return f"Notified {ticket.assigned_to.email} about ticket #{ticket.id}"
