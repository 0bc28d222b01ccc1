import pytest
from django.contrib.auth.hashers import make_password

from dashboard.broadcast import reset_broadcaster
from projects.models import Project
from users.models import Role, User

PASSWORD = "correct-horse-battery"


def make_user(username, role_title, email=None):
    role, _ = Role.objects.get_or_create(title=role_title)
    return User.objects.create(
        username=username,
        email=email or f"{username}@omnitak.com",
        password=make_password(PASSWORD),
        role=role,
    )


def login(client, user):
    resp = client.post("/users/login/", {"email": user.email, "password": PASSWORD})
    assert resp.status_code == 200, resp.content
    return client


@pytest.fixture(autouse=True)
def fresh_broadcaster():
    reset_broadcaster()
    yield
    reset_broadcaster()


@pytest.fixture
def admin_user(db):
    return make_user("alice", Role.ADMIN)


@pytest.fixture
def pm_user(db):
    return make_user("paul", Role.PROJECT_MANAGER)


@pytest.fixture
def dev_user(db):
    return make_user("dora", Role.DEVELOPER)


@pytest.fixture
def project(admin_user):
    return Project.objects.create(name="Apollo", created_by=admin_user)


@pytest.fixture
def admin_client(client, admin_user):
    return login(client, admin_user)


@pytest.fixture
def pm_client(client, pm_user):
    return login(client, pm_user)


@pytest.fixture
def dev_client(client, dev_user):
    return login(client, dev_user)
