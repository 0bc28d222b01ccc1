import logging

from django.core.exceptions import ValidationError
from django.db import transaction

from common.versioning import StaleVersionError, expected_version, versioned_save
from dashboard.broadcast import CREATED, DELETED, UPDATED, broadcast_project
from .forms import ProjectForm
from .models import Project

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ["name", "description", "start_date", "end_date", "status"]


class StaleProjectError(StaleVersionError):
    label = "Project"


def form_choices():
    return {"statuses": [value for value, _ in Project.STATUS_CHOICES]}


def _validated(data, instance=None):
    form = ProjectForm(data, instance=instance)
    if not form.is_valid():
        raise ValidationError(form.errors.as_data())
    return form


def create_project(actor, data) -> Project:
    form = _validated(data)
    project = form.save(commit=False)
    project.created_by = actor
    project.save()
    logger.info("Project #%s '%s' created by #%s", project.id, project.name, actor.id)
    broadcast_project(CREATED, project.id)
    return project


def update_project(project, data, version=None) -> Project:
    """Apply an edit form against the version the client loaded."""
    expected = expected_version(project, version)
    project = _validated(data, instance=project).save(commit=False)
    versioned_save(project, expected, EDITABLE_FIELDS, StaleProjectError)
    broadcast_project(UPDATED, project.id)
    return project


def delete_project(project) -> int:
    """Delete the project together with its tickets; returns the ticket count."""
    project_id = project.pk
    with transaction.atomic():
        ticket_count = project.tickets.count()
        project.delete()
        broadcast_project(DELETED, project_id)
    logger.info("Project #%s deleted with %d ticket(s)", project_id, ticket_count)
    return ticket_count
