"""
Read-only aggregations behind the dashboard and the admin reports.
"""
from tickets.models import STATUS_DONE, STATUS_IN_PROGRESS, STATUS_IN_REVIEW, STATUS_TODO, TICKET_STATUSES

STATUS_KEYS = {
    STATUS_TODO: "todo",
    STATUS_IN_PROGRESS: "in_progress",
    STATUS_IN_REVIEW: "in_review",
    STATUS_DONE: "done",
}


def status_counts(tickets):
    """Bucket an iterable of tickets (or status strings) into the four statuses."""
    counts = {key: 0 for key in STATUS_KEYS.values()}
    total = 0
    for ticket in tickets:
        status = getattr(ticket, "status", ticket)
        total += 1
        key = STATUS_KEYS.get(status)
        if key is not None:
            counts[key] += 1
    counts["total"] = total
    return counts


def group_by_status(tickets, render):
    grouped = {status: [] for status in TICKET_STATUSES}
    for ticket in tickets:
        grouped.setdefault(ticket.status, []).append(render(ticket))
    return grouped


def ticket_summary(ticket):
    return {
        "id": ticket.id,
        "title": ticket.title,
        "status": ticket.status,
        "priority": ticket.priority,
        "due_date": ticket.due_date,
    }


def project_reports(projects):
    rows = []
    for project in sorted(projects, key=lambda p: p.name):
        tickets = list(project.tickets.all())
        rows.append({
            "id": project.id,
            "name": project.name,
            "status": project.status,
            "start_date": project.start_date,
            "end_date": project.end_date,
            "counts": status_counts(tickets),
            "tickets": [ticket_summary(t) for t in tickets],
        })
    return rows


def user_reports(users):
    rows = []
    for user in sorted(users, key=lambda u: u.username):
        assigned = list(user.assigned_tickets.all())
        rows.append({
            "id": user.id,
            "username": user.username,
            "email": user.email,
            "role_id": user.role_id,
            "role": user.role_title,
            "counts": status_counts(assigned),
            "assigned_tickets": [ticket_summary(t) for t in assigned],
        })
    return rows
