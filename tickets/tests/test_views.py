import pytest

from tickets.models import Ticket

pytestmark = pytest.mark.django_db


@pytest.fixture
def ticket(project, admin_user, dev_user):
    return Ticket.objects.create(
        title="Broken build",
        project=project,
        assigned_to=dev_user,
        created_by=admin_user,
    )


def test_create_form_carries_choices(pm_client, project, dev_user):
    body = pm_client.get("/tickets/create/").json()
    assert body["choices"]["statuses"] == ["To Do", "In Progress", "In Review", "Done"]
    assert body["choices"]["priorities"] == ["Low", "Medium", "High"]
    assert {"id": project.id, "name": project.name} in body["choices"]["projects"]


def test_project_manager_creates_ticket(pm_client, pm_user, project):
    resp = pm_client.post("/tickets/create/", {
        "title": "Add search",
        "project": project.id,
        "status": "To Do",
        "priority": "Medium",
    }, content_type="application/json")

    assert resp.status_code == 201
    body = resp.json()["ticket"]
    assert body["created_by_id"] == pm_user.id
    assert body["project_name"] == project.name
    assert body["version"] == 1


def test_developer_cannot_create_ticket(dev_client, project):
    resp = dev_client.post("/tickets/create/", {
        "title": "Sneaky", "project": project.id, "status": "To Do", "priority": "Low",
    })
    assert resp.status_code == 403
    assert "Admin, Project Manager" in resp.json()["error"]


def test_invalid_ticket_repopulates_choices(pm_client, project):
    resp = pm_client.post("/tickets/create/", {"title": "", "project": project.id, "status": "Closed"})
    body = resp.json()
    assert resp.status_code == 400
    assert {"title", "status", "priority"} <= set(body["errors"])
    assert "projects" in body["choices"]


def test_developer_moves_ticket_to_done(dev_client, ticket):
    resp = dev_client.post(f"/tickets/{ticket.id}/status/", {"status": " Done "})

    assert resp.status_code == 200
    assert resp.json()["ticket"]["status"] == "Done"
    ticket.refresh_from_db()
    assert ticket.completed_at is not None


def test_invalid_status_lists_allowed_values(dev_client, ticket):
    resp = dev_client.post(f"/tickets/{ticket.id}/status/", {"status": "done"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid ticket status."
    assert "To Do" in resp.json()["errors"]["status"][0]


def test_stale_version_is_409(dev_client, ticket):
    dev_client.post(f"/tickets/{ticket.id}/status/", {"status": "In Progress", "version": 1})
    resp = dev_client.post(f"/tickets/{ticket.id}/status/", {"status": "Done", "version": 1})

    assert resp.status_code == 409
    assert resp.json()["current_version"] == 2
    ticket.refresh_from_db()
    assert ticket.status == "In Progress"


def test_edit_ticket(pm_client, ticket, project):
    resp = pm_client.post(f"/tickets/{ticket.id}/edit/", {
        "title": "Broken build on main",
        "project": project.id,
        "status": "In Review",
        "priority": "High",
        "version": 1,
    })
    assert resp.status_code == 200
    assert resp.json()["ticket"]["version"] == 2
    assert resp.json()["ticket"]["assigned_to"] is None


def test_details_include_comments(dev_client, ticket, dev_user):
    dev_client.post(f"/tickets/{ticket.id}/comments/", {"text": "Reproduced locally"})
    body = dev_client.get(f"/tickets/{ticket.id}/").json()

    assert body["selected_status"] == "To Do"
    assert [c["text"] for c in body["comments"]] == ["Reproduced locally"]
    assert body["comments"][0]["author"] == dev_user.username


def test_empty_comment_is_rejected(dev_client, ticket):
    resp = dev_client.post(f"/tickets/{ticket.id}/comments/", {"text": ""})
    assert resp.status_code == 400
    assert not ticket.comments.exists()


def test_delete_ticket(pm_client, ticket):
    assert pm_client.delete(f"/tickets/{ticket.id}/delete/").status_code == 200
    assert not Ticket.objects.filter(id=ticket.id).exists()
    assert pm_client.get(f"/tickets/{ticket.id}/").status_code == 404


def test_assignment_sends_email_after_commit(
    pm_client, project, dev_user, mailoutbox, django_capture_on_commit_callbacks
):
    with django_capture_on_commit_callbacks(execute=True):
        resp = pm_client.post("/tickets/create/", {
            "title": "Rotate keys",
            "project": project.id,
            "assigned_to": dev_user.id,
            "status": "To Do",
            "priority": "High",
        })

    ticket_id = resp.json()["ticket"]["id"]
    assert len(mailoutbox) == 1
    assert mailoutbox[0].to == [dev_user.email]
    assert mailoutbox[0].subject == f"Ticket #{ticket_id} assigned to you"


def test_no_email_when_disabled(
    pm_client, project, dev_user, mailoutbox, settings, django_capture_on_commit_callbacks
):
    settings.TICKET_ASSIGNMENT_EMAILS = False
    with django_capture_on_commit_callbacks(execute=True):
        pm_client.post("/tickets/create/", {
            "title": "Quiet",
            "project": project.id,
            "assigned_to": dev_user.id,
            "status": "To Do",
            "priority": "Low",
        })
    assert mailoutbox == []


def test_assignment_task_skips_unassigned(project, admin_user):
    from tickets.tasks import send_assignment_email

    ticket = Ticket.objects.create(title="Nobody", project=project, created_by=admin_user)
    assert send_assignment_email(ticket.id) == f"Skipped ticket #{ticket.id}"
    assert send_assignment_email(987654) == "Skipped ticket #987654"


def test_assignment_task_mails_the_assignee(ticket, dev_user, mailoutbox, settings):
    from tickets.tasks import send_assignment_email

    result = send_assignment_email(ticket.id)

    assert result == f"Notified {dev_user.email} about ticket #{ticket.id}"
    message = mailoutbox[0]
    assert message.from_email == settings.DEFAULT_FROM_EMAIL
    assert message.to == [dev_user.email]
    assert "'Broken build' in project Apollo" in message.body
