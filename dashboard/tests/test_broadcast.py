import queue

import pytest

from dashboard import broadcast
from dashboard.broadcast import (
    COMMENTED,
    CREATED,
    DELETED,
    PROJECT_UPDATE,
    ROLE_UPDATED,
    TICKET_UPDATE,
    UPDATED,
    USER_UPDATE,
    DashboardEvent,
    InMemoryBroadcaster,
    get_broadcaster,
)
from tickets import services


class RecordingBroadcaster:
    def __init__(self):
        self.events = []

    def publish(self, event):
        self.events.append(event)


class ExplodingBroadcaster:
    def publish(self, event):
        raise RuntimeError("hub is down")


def test_wire_message_shape():
    event = DashboardEvent(TICKET_UPDATE, UPDATED, 7, "To Do")
    assert event.as_message() == {"target": "ReceiveTicketUpdate", "arguments": ["updated", 7, "To Do"]}
    assert DashboardEvent(TICKET_UPDATE, CREATED, 7).arguments == ["created", 7]


def test_unknown_method_or_action_is_rejected():
    with pytest.raises(ValueError):
        DashboardEvent("ReceiveWeather", CREATED, 1)
    with pytest.raises(ValueError):
        DashboardEvent(TICKET_UPDATE, "exploded", 1)


def test_failing_subscriber_does_not_affect_others():
    hub = InMemoryBroadcaster(queue_size=5)
    healthy = hub.subscribe()
    broken = hub.subscribe()

    def boom(event):
        raise OSError("socket closed")

    broken.deliver = boom
    event = DashboardEvent(TICKET_UPDATE, CREATED, 1)
    hub.publish(event)

    assert healthy.get(timeout=0) == event
    assert broken.closed
    assert hub.connection_count == 1


def test_slow_subscriber_is_dropped_when_its_queue_fills():
    hub = InMemoryBroadcaster(queue_size=1)
    slow = hub.subscribe()
    fast = hub.subscribe()

    for entity_id in (1, 2):
        hub.publish(DashboardEvent(TICKET_UPDATE, CREATED, entity_id))
        fast.get(timeout=0)

    assert slow.closed
    assert hub.connection_count == 1
    assert slow.get(timeout=0).entity_id == 1


def test_subscription_get_times_out_with_none():
    sub = InMemoryBroadcaster(queue_size=1).subscribe()
    assert sub.get(timeout=0.01) is None


def test_broadcaster_comes_from_settings(settings):
    settings.DASHBOARD_BROADCASTER = "dashboard.tests.test_broadcast.RecordingBroadcaster"
    broadcast.reset_broadcaster()
    assert isinstance(get_broadcaster(), RecordingBroadcaster)
    assert get_broadcaster() is get_broadcaster()


@pytest.mark.django_db
def test_events_follow_commit_order(settings, django_capture_on_commit_callbacks, project, pm_user):
    settings.DASHBOARD_BROADCASTER = "dashboard.tests.test_broadcast.RecordingBroadcaster"
    broadcast.reset_broadcaster()

    with django_capture_on_commit_callbacks(execute=True):
        ticket = services.create_ticket(pm_user, {
            "title": "Ship it", "project": project.id, "status": "To Do", "priority": "Low",
        })
        ticket_id = ticket.id
        services.update_status(ticket, "Done")
        services.delete_ticket(ticket)

    messages = [e.as_message()["arguments"] for e in get_broadcaster().events]
    assert messages == [
        [CREATED, ticket_id],
        [UPDATED, ticket_id, "To Do"],
        [DELETED, ticket_id, "Done"],
    ]


@pytest.mark.django_db
def test_nothing_is_published_before_commit(settings, django_capture_on_commit_callbacks, project, pm_user):
    settings.DASHBOARD_BROADCASTER = "dashboard.tests.test_broadcast.RecordingBroadcaster"
    broadcast.reset_broadcaster()

    with django_capture_on_commit_callbacks() as callbacks:
        services.create_ticket(pm_user, {
            "title": "Pending", "project": project.id, "status": "To Do", "priority": "Low",
        })
        assert get_broadcaster().events == []

    assert len(callbacks) == 1


@pytest.mark.django_db
def test_publish_failure_never_undoes_the_write(settings, django_capture_on_commit_callbacks, project, pm_user):
    settings.DASHBOARD_BROADCASTER = "dashboard.tests.test_broadcast.ExplodingBroadcaster"
    settings.TICKET_ASSIGNMENT_EMAILS = False
    broadcast.reset_broadcaster()

    with django_capture_on_commit_callbacks(execute=True):
        ticket = services.create_ticket(pm_user, {
            "title": "Still saved", "project": project.id, "status": "To Do", "priority": "Low",
        })

    assert type(ticket).objects.filter(id=ticket.id).exists()


def test_queue_full_is_what_drops_subscribers():
    sub = InMemoryBroadcaster(queue_size=1).subscribe()
    sub.deliver(DashboardEvent(TICKET_UPDATE, CREATED, 1))
    with pytest.raises(queue.Full):
        sub.deliver(DashboardEvent(TICKET_UPDATE, CREATED, 2))


def _recorded(settings):
    settings.DASHBOARD_BROADCASTER = "dashboard.tests.test_broadcast.RecordingBroadcaster"
    broadcast.reset_broadcaster()
    return get_broadcaster()


@pytest.mark.django_db
def test_project_events(settings, django_capture_on_commit_callbacks, admin_user):
    from projects import services as projects

    hub = _recorded(settings)
    with django_capture_on_commit_callbacks(execute=True):
        project = projects.create_project(admin_user, {"name": "Atlas", "status": "Active"})
        project_id = project.id
        projects.update_project(project, {"name": "Atlas", "status": "On Hold"})
        projects.delete_project(project)

    assert [e.as_message() for e in hub.events] == [
        {"target": PROJECT_UPDATE, "arguments": [CREATED, project_id]},
        {"target": PROJECT_UPDATE, "arguments": [UPDATED, project_id]},
        {"target": PROJECT_UPDATE, "arguments": [DELETED, project_id]},
    ]


@pytest.mark.django_db
def test_user_events(settings, django_capture_on_commit_callbacks, admin_user, dev_user):
    from users import services as users
    from users.models import Role

    hub = _recorded(settings)
    dev_id = dev_user.id
    with django_capture_on_commit_callbacks(execute=True):
        users.change_role(admin_user, dev_user, Role.objects.get(title=Role.PROJECT_MANAGER))
        users.delete_user(admin_user, dev_user)

    assert [e.as_message() for e in hub.events] == [
        {"target": USER_UPDATE, "arguments": [ROLE_UPDATED, dev_id]},
        {"target": USER_UPDATE, "arguments": [DELETED, dev_id]},
    ]


@pytest.mark.django_db
def test_comment_event(settings, django_capture_on_commit_callbacks, project, pm_user, dev_user):
    ticket = services.create_ticket(pm_user, {
        "title": "Discuss", "project": project.id, "status": "To Do", "priority": "Low",
    })
    hub = _recorded(settings)

    with django_capture_on_commit_callbacks(execute=True):
        services.add_comment(ticket, dev_user, {"text": "Thoughts?"})

    assert [e.as_message() for e in hub.events] == [
        {"target": TICKET_UPDATE, "arguments": [COMMENTED, ticket.id]},
    ]
