from unittest import mock

import pytest
from django.core.management import call_command
from django.core.exceptions import ValidationError
from django.core.management.base import CommandError
from django.db.models.query import QuerySet
from django.test import TestCase

from conftest import PASSWORD, login, make_user
from tickets.models import Ticket, TicketComment
from projects.models import Project
from users import services
from users.models import Role, User
from users.policy import POLICY, is_allowed


class RegistrationTest(TestCase):

    def setUp(self):
        self.url = "/users/register/"

    def test_register_creates_developer_and_signs_in(self):
        resp = self.client.post(self.url, {
            "username": "newbie",
            "email": "newbie@omnitak.com",
            "password": "long-enough-password",
        }, content_type="application/json")

        self.assertEqual(resp.status_code, 201)
        user = User.objects.get(email="newbie@omnitak.com")
        self.assertEqual(user.role_title, Role.DEVELOPER)
        self.assertNotEqual(user.password, "long-enough-password")

        me = self.client.get("/users/me/")
        self.assertEqual(me.status_code, 200)
        self.assertEqual(me.json()["principal"]["role"], Role.DEVELOPER)

    def test_register_rejects_foreign_domain(self):
        with self.assertLogs("users.views", "INFO") as logs:
            resp = self.client.post(self.url, {
                "username": "outsider",
                "email": "outsider@gmail.com",
                "password": "long-enough-password",
            })

        self.assertIn("outsider@gmail.com", logs.output[0])

        self.assertEqual(resp.status_code, 400)
        self.assertIn("email", resp.json()["errors"])
        self.assertFalse(User.objects.exists())

    def test_register_rejects_duplicate_email_case_insensitively(self):
        make_user("first", Role.DEVELOPER, email="dup@omnitak.com")
        resp = self.client.post(self.url, {
            "username": "second",
            "email": "DUP@omnitak.com",
            "password": "long-enough-password",
        })

        self.assertEqual(resp.status_code, 400)
        self.assertEqual(
            resp.json()["errors"]["email"], ["An account with this email already exists."]
        )
        self.assertEqual(User.objects.count(), 1)

    def test_register_without_default_role_fails(self):
        Role.objects.filter(title=Role.DEVELOPER).delete()
        resp = self.client.post(self.url, {
            "username": "newbie",
            "email": "newbie@omnitak.com",
            "password": "long-enough-password",
        })

        self.assertEqual(resp.status_code, 400)
        self.assertFalse(User.objects.exists())


class LoginTest(TestCase):

    def setUp(self):
        self.user = make_user("dora", Role.DEVELOPER)

    def test_login_success(self):
        resp = self.client.post("/users/login/", {"email": self.user.email, "password": PASSWORD})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["user"]["role"], Role.DEVELOPER)

    def test_wrong_password_and_unknown_user_look_the_same(self):
        bad_pw = self.client.post("/users/login/", {"email": self.user.email, "password": "nope-nope"})
        unknown = self.client.post("/users/login/", {"email": "ghost@omnitak.com", "password": PASSWORD})

        self.assertEqual(bad_pw.status_code, 400)
        self.assertEqual(unknown.status_code, 400)
        self.assertEqual(bad_pw.json()["error"], unknown.json()["error"])

    def test_login_rejects_foreign_domain(self):
        resp = self.client.post("/users/login/", {"email": "dora@gmail.com", "password": PASSWORD})
        self.assertEqual(resp.status_code, 400)
        self.assertIn("email", resp.json()["errors"])

    def test_logout_ends_session(self):
        login(self.client, self.user)
        self.client.post("/users/logout/")
        self.assertEqual(self.client.get("/users/me/").status_code, 401)


def test_policy_gates():
    assert is_allowed("ticket.create", Role.PROJECT_MANAGER)
    assert not is_allowed("ticket.create", Role.DEVELOPER)
    assert is_allowed("ticket.update_status", Role.DEVELOPER)
    assert not is_allowed("project.create", Role.PROJECT_MANAGER)
    assert not is_allowed("user.delete", None)


def test_unknown_action_is_a_programming_error():
    from users.auth import role_required

    with pytest.raises(KeyError):
        role_required("ticket.teleport")
    assert "ticket.teleport" not in POLICY


def test_anonymous_gets_401(client, db):
    assert client.get("/dashboard/").status_code == 401


def test_developer_cannot_change_roles(dev_client, pm_user):
    dev_role = Role.objects.get(title=Role.DEVELOPER)
    resp = dev_client.post(f"/users/{pm_user.id}/role/", {"role_id": dev_role.id})
    assert resp.status_code == 403
    pm_user.refresh_from_db()
    assert pm_user.role_title == Role.PROJECT_MANAGER


def test_admin_changes_role_and_it_applies_next_request(admin_client, dev_user):
    from django.test import Client

    dev = login(Client(), dev_user)
    assert dev.post("/projects/create/", {"name": "Nope", "status": "Active"}).status_code == 403

    admin_role = Role.objects.get(title=Role.ADMIN)
    resp = admin_client.post(f"/users/{dev_user.id}/role/", {"role_id": admin_role.id})
    assert resp.status_code == 200
    assert "from 'Developer' to 'Admin'" in resp.json()["message"]

    assert dev.post("/projects/create/", {"name": "Now allowed", "status": "Active"}).status_code == 201


def test_admin_cannot_change_own_role(admin_client, admin_user):
    dev_role = Role.objects.get(title=Role.DEVELOPER)
    resp = admin_client.post(f"/users/{admin_user.id}/role/", {"role_id": dev_role.id})
    assert resp.status_code == 403
    admin_user.refresh_from_db()
    assert admin_user.role_title == Role.ADMIN


def test_change_role_unknown_user_or_role(admin_client, dev_user):
    dev_role = Role.objects.get(title=Role.DEVELOPER)
    assert admin_client.post("/users/9999/role/", {"role_id": dev_role.id}).status_code == 404
    assert admin_client.post(f"/users/{dev_user.id}/role/", {"role_id": 9999}).status_code == 404


def test_admin_cannot_delete_self(admin_client, admin_user):
    resp = admin_client.post(f"/users/{admin_user.id}/delete/")
    assert resp.status_code == 403
    assert User.objects.filter(id=admin_user.id).exists()


def test_delete_user_reassigns_everything_to_admin(admin_client, admin_user, dev_user, project):
    tickets = [
        Ticket.objects.create(
            title=f"T{i}", project=project, assigned_to=dev_user, created_by=dev_user
        )
        for i in range(3)
    ]
    TicketComment.objects.create(ticket=tickets[0], author=dev_user, text="on it")
    own_project = Project.objects.create(name="Dora's", created_by=dev_user)

    resp = admin_client.delete(f"/users/{dev_user.id}/delete/")

    assert resp.status_code == 200
    assert resp.json()["reassigned_tickets"] == 3
    assert not User.objects.filter(id=dev_user.id).exists()
    for ticket in tickets:
        ticket.refresh_from_db()
        assert ticket.assigned_to_id == admin_user.id
        assert ticket.created_by_id == admin_user.id
        assert ticket.version == 2
    own_project.refresh_from_db()
    assert own_project.created_by_id == admin_user.id
    assert TicketComment.objects.get().author_id is None


def test_deleted_user_session_is_dropped(dev_user, admin_user):
    from django.test import Client

    dev = login(Client(), dev_user)
    services.delete_user(admin_user, dev_user)
    assert dev.get("/users/me/").status_code == 401


def test_list_roles(dev_client):
    titles = [r["title"] for r in dev_client.get("/users/roles/").json()]
    assert titles == [Role.ADMIN, Role.PROJECT_MANAGER, Role.DEVELOPER]


def test_promote_user_command(dev_user):
    call_command("promote_user", dev_user.email, "--role", Role.PROJECT_MANAGER)
    dev_user.refresh_from_db()
    assert dev_user.role_title == Role.PROJECT_MANAGER

    with pytest.raises(CommandError):
        call_command("promote_user", "nobody@omnitak.com")
    with pytest.raises(CommandError):
        call_command("promote_user", dev_user.email, "--role", "Overlord")


def test_delete_user_locks_the_user_before_reassigning(admin_user, dev_user, project):
    Ticket.objects.create(title="Held", project=project, assigned_to=dev_user, created_by=admin_user)
    locked = []
    original = QuerySet.select_for_update

    def recording(qs, *args, **kwargs):
        locked.append(qs.model)
        return original(qs, *args, **kwargs)

    with mock.patch.object(QuerySet, "select_for_update", recording):
        assert services.delete_user(admin_user, dev_user) == 1

    assert locked[0] is User
    assert Ticket.objects.get().assigned_to_id == admin_user.id


def test_tickets_assigned_after_the_snapshot_still_go_to_admin(admin_user, dev_user, project):
    original = QuerySet.values_list
    late = []

    def assign_late(qs, *args, **kwargs):
        result = original(qs, *args, **kwargs)
        if qs.model is Ticket and not late:
            snapshot = list(result)
            late.append(Ticket.objects.create(
                title="Late", project=project, assigned_to=dev_user, created_by=admin_user
            ))
            return snapshot
        return result

    Ticket.objects.create(title="Early", project=project, assigned_to=dev_user, created_by=admin_user)
    with mock.patch.object(QuerySet, "values_list", assign_late):
        services.delete_user(admin_user, dev_user)

    assert not Ticket.objects.filter(assigned_to__isnull=True).exists()
    assert set(Ticket.objects.values_list("title", flat=True)) == {"Early", "Late"}


def test_concurrent_duplicate_registration_is_a_validation_error(dev_user):
    # the pre-check misses the row a concurrent request just committed
    with mock.patch.object(QuerySet, "exists", return_value=False):
        with pytest.raises(ValidationError) as exc:
            services.register({
                "username": "twin",
                "email": dev_user.email,
                "password": "long-enough-password",
            })

    assert exc.value.message_dict["email"] == [services.DUPLICATE_EMAIL]
    assert User.objects.filter(email=dev_user.email).count() == 1
