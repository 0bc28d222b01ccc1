from django.db import models
from django.utils import timezone


class Project(models.Model):

    STATUS_ACTIVE = 'Active'
    STATUS_COMPLETED = 'Completed'
    STATUS_ON_HOLD = 'On Hold'

    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_ON_HOLD, 'On Hold'),
    ]

    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    start_date = models.DateField(null=True, blank=True)
    end_date = models.DateField(null=True, blank=True)
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_ACTIVE
    )
    # user deletion hands projects to the deleting admin, so never cascade
    created_by = models.ForeignKey(
        'users.User',
        on_delete=models.PROTECT,
        related_name='created_projects'
    )
    created_at = models.DateTimeField(default=timezone.now)

    # bumped on every edit, same scheme as Ticket.version
    version = models.PositiveIntegerField(default=1)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(status__in=['Active', 'Completed', 'On Hold']),
                name='project_status_valid',
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.status})"
