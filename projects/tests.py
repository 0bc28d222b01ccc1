import pytest

from projects import services
from projects.models import Project
from tickets.models import Ticket, TicketComment

pytestmark = pytest.mark.django_db


def test_admin_creates_project(admin_client, admin_user):
    resp = admin_client.post("/projects/create/", {
        "name": "Hermes",
        "description": "Mail relay",
        "start_date": "2026-01-01",
        "end_date": "2026-06-30",
        "status": "Active",
    }, content_type="application/json")

    assert resp.status_code == 201
    project = Project.objects.get(name="Hermes")
    assert project.created_by_id == admin_user.id
    assert resp.json()["project"]["created_by"] == admin_user.username


def test_project_manager_cannot_create_project(pm_client):
    resp = pm_client.post("/projects/create/", {"name": "Hermes", "status": "Active"})
    assert resp.status_code == 403
    assert not Project.objects.exists()


def test_invalid_project_returns_errors_and_choices(admin_client):
    resp = admin_client.post("/projects/create/", {
        "name": "",
        "status": "Paused",
        "start_date": "2026-06-01",
        "end_date": "2026-01-01",
    })

    body = resp.json()
    assert resp.status_code == 400
    assert {"name", "status"} <= set(body["errors"])
    assert body["choices"]["statuses"] == ["Active", "Completed", "On Hold"]


def test_end_date_before_start_date(admin_client):
    resp = admin_client.post("/projects/create/", {
        "name": "Backwards",
        "status": "Active",
        "start_date": "2026-06-01",
        "end_date": "2026-01-01",
    })
    assert resp.status_code == 400


def test_edit_project(admin_client, project):
    resp = admin_client.post(f"/projects/{project.id}/edit/", {"name": "Apollo II", "status": "On Hold"})
    assert resp.status_code == 200
    project.refresh_from_db()
    assert (project.name, project.status) == ("Apollo II", "On Hold")


def test_stale_project_edit_is_refused(project):
    mine = Project.objects.get(id=project.id)
    theirs = Project.objects.get(id=project.id)

    services.update_project(theirs, {"name": "Apollo", "status": "On Hold"})
    with pytest.raises(services.StaleProjectError) as exc:
        services.update_project(mine, {"name": "Apollo Renamed", "status": "Active"})

    assert exc.value.current_version == 2
    project.refresh_from_db()
    assert (project.name, project.status, project.version) == ("Apollo", "On Hold", 2)


def test_stale_project_version_is_409(admin_client, project):
    first = admin_client.post(f"/projects/{project.id}/edit/", {"name": "Apollo", "status": "On Hold", "version": 1})
    assert first.json()["project"]["version"] == 2

    resp = admin_client.post(f"/projects/{project.id}/edit/", {
        "name": "Apollo Renamed", "status": "Active", "version": 1,
    })

    assert resp.status_code == 409
    assert resp.json()["current_version"] == 2
    project.refresh_from_db()
    assert (project.name, project.status) == ("Apollo", "On Hold")


def test_details_list_tickets(dev_client, project, admin_user):
    Ticket.objects.create(title="Wire it", project=project, created_by=admin_user)
    body = dev_client.get(f"/projects/{project.id}/").json()
    assert body["project"]["created_by"] == admin_user.username
    assert [t["title"] for t in body["tickets"]] == ["Wire it"]


def test_missing_project_is_404(dev_client):
    assert dev_client.get("/projects/424242/").status_code == 404


def test_delete_project_removes_exactly_its_tickets(admin_client, project, admin_user):
    other = Project.objects.create(name="Zeus", created_by=admin_user)
    for i in range(4):
        ticket = Ticket.objects.create(title=f"A{i}", project=project, created_by=admin_user)
        TicketComment.objects.create(ticket=ticket, author=admin_user, text="note")
    Ticket.objects.create(title="Z", project=other, created_by=admin_user)

    resp = admin_client.post(f"/projects/{project.id}/delete/")

    assert resp.status_code == 200
    assert resp.json()["deleted_tickets"] == 4
    assert "its 4 associated tickets" in resp.json()["message"]
    assert not Project.objects.filter(id=project.id).exists()
    assert list(Ticket.objects.values_list("title", flat=True)) == ["Z"]
    assert not TicketComment.objects.exists()
