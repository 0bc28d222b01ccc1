from datetime import timedelta

import pytest
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from tickets import services
from tickets.models import STATUS_DONE, STATUS_IN_REVIEW, STATUS_TODO, Ticket

pytestmark = pytest.mark.django_db


@pytest.fixture
def ticket(project, pm_user, dev_user):
    return services.create_ticket(pm_user, {
        "title": "Fix login",
        "project": project.id,
        "assigned_to": dev_user.id,
        "status": STATUS_TODO,
        "priority": "High",
    })


def test_normalize_status_trims_but_is_exact():
    assert services.normalize_status("  In Review ") == STATUS_IN_REVIEW
    for bad in ["done", "DONE", "Closed", "", None]:
        with pytest.raises(ValidationError):
            services.normalize_status(bad)


def test_apply_completion_keeps_first_stamp():
    ticket = Ticket(status=STATUS_DONE)
    first = timezone.now() - timedelta(days=2)
    services.apply_completion(ticket, first)
    services.apply_completion(ticket)
    assert ticket.completed_at == first

    ticket.status = STATUS_IN_REVIEW
    services.apply_completion(ticket)
    assert ticket.completed_at is None


def test_create_done_stamps_completed_at(project, pm_user):
    ticket = services.create_ticket(pm_user, {
        "title": "Already shipped",
        "project": project.id,
        "status": "Done",
        "priority": "Low",
    })
    assert ticket.completed_at is not None
    assert ticket.created_by_id == pm_user.id
    assert ticket.version == 1


def test_create_rejects_unknown_references(project, pm_user):
    with pytest.raises(ValidationError) as exc:
        services.create_ticket(pm_user, {
            "title": "Orphan",
            "project": 999,
            "assigned_to": 999,
            "status": STATUS_TODO,
            "priority": "Medium",
        })
    assert {"project", "assigned_to"} <= set(exc.value.error_dict)
    assert not Ticket.objects.exists()


def test_done_then_todo_clears_completed_at(ticket):
    ticket = services.update_status(ticket, "Done")
    assert ticket.completed_at is not None
    assert ticket.version == 2

    ticket = services.update_status(ticket, "To Do")
    ticket.refresh_from_db()
    assert ticket.completed_at is None
    assert ticket.version == 3


def test_lowercase_done_is_rejected(ticket):
    with pytest.raises(ValidationError):
        services.update_status(ticket, "done")
    ticket.refresh_from_db()
    assert (ticket.status, ticket.version) == (STATUS_TODO, 1)


def test_stale_edit_is_refused(ticket, pm_user):
    mine = Ticket.objects.get(id=ticket.id)
    theirs = Ticket.objects.get(id=ticket.id)

    services.update_status(theirs, "In Progress")
    with pytest.raises(services.StaleTicketError) as exc:
        services.update_status(mine, "Done")

    assert exc.value.current_version == 2
    ticket.refresh_from_db()
    assert ticket.status == "In Progress"
    assert ticket.completed_at is None


def test_edit_keeps_creator_and_creation_time(ticket, project, admin_user):
    created_at, creator = ticket.created_at, ticket.created_by_id
    updated = services.update_ticket(ticket, {
        "title": "Fix login for real",
        "project": project.id,
        "status": "In Progress",
        "priority": "Medium",
        "created_by": admin_user.id,
    })
    updated.refresh_from_db()
    assert updated.title == "Fix login for real"
    assert updated.created_at == created_at
    assert updated.created_by_id == creator
    assert updated.assigned_to_id is None


def test_database_refuses_done_without_completion(project, pm_user):
    with pytest.raises(IntegrityError), transaction.atomic():
        Ticket.objects.create(title="Bad", project=project, created_by=pm_user, status=STATUS_DONE)


def test_database_refuses_unknown_status(project, pm_user):
    with pytest.raises(IntegrityError), transaction.atomic():
        Ticket.objects.create(title="Bad", project=project, created_by=pm_user, status="done")


def test_add_comment_requires_text(ticket, dev_user):
    with pytest.raises(ValidationError) as exc:
        services.add_comment(ticket, dev_user, {"text": ""})
    assert exc.value.message_dict["text"] == ["Comment cannot be empty."]

    comment = services.add_comment(ticket, dev_user, {"text": "Looking into it"})
    assert comment.author_id == dev_user.id


def _edit(ticket, project, status):
    return services.update_ticket(ticket, {
        "title": ticket.title,
        "project": project.id,
        "status": status,
        "priority": ticket.priority,
    })


def test_edit_to_done_stamps_completed_at(ticket, project):
    ticket = _edit(ticket, project, "Done")
    ticket.refresh_from_db()
    assert ticket.status == STATUS_DONE
    assert ticket.completed_at is not None


def test_edit_done_to_done_keeps_first_stamp(ticket, project):
    ticket = _edit(ticket, project, "Done")
    ticket.refresh_from_db()
    first = ticket.completed_at

    ticket = _edit(ticket, project, "Done")
    ticket.refresh_from_db()
    assert ticket.completed_at == first
    assert ticket.version == 3


def test_edit_done_to_in_review_clears_completed_at(ticket, project):
    ticket = _edit(ticket, project, "Done")
    ticket = _edit(ticket, project, "In Review")
    ticket.refresh_from_db()
    assert ticket.status == STATUS_IN_REVIEW
    assert ticket.completed_at is None


def test_edit_rejects_lowercase_done(ticket, project):
    with pytest.raises(ValidationError) as exc:
        _edit(ticket, project, "done")

    assert "status" in exc.value.error_dict
    ticket.refresh_from_db()
    assert (ticket.status, ticket.completed_at, ticket.version) == (STATUS_TODO, None, 1)
