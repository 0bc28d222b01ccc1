from django.db import models
from django.utils import timezone

STATUS_TODO = 'To Do'
STATUS_IN_PROGRESS = 'In Progress'
STATUS_IN_REVIEW = 'In Review'
STATUS_DONE = 'Done'

TICKET_STATUSES = (STATUS_TODO, STATUS_IN_PROGRESS, STATUS_IN_REVIEW, STATUS_DONE)
TICKET_PRIORITIES = ('Low', 'Medium', 'High')


class Ticket(models.Model):

    STATUS_CHOICES = [(s, s) for s in TICKET_STATUSES]
    PRIORITY_CHOICES = [(p, p) for p in TICKET_PRIORITIES]

    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)

    project = models.ForeignKey(
        'projects.Project',
        on_delete=models.CASCADE,
        related_name='tickets'
    )
    assigned_to = models.ForeignKey(
        'users.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='assigned_tickets'
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_TODO)
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='Medium')

    created_by = models.ForeignKey(
        'users.User',
        on_delete=models.PROTECT,
        related_name='created_tickets'
    )
    created_at = models.DateTimeField(default=timezone.now)
    due_date = models.DateField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    # bumped on every write; edits carry the version they were made against
    version = models.PositiveIntegerField(default=1)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(status__in=TICKET_STATUSES),
                name='ticket_status_valid',
            ),
            models.CheckConstraint(
                condition=models.Q(priority__in=TICKET_PRIORITIES),
                name='ticket_priority_valid',
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(status=STATUS_DONE, completed_at__isnull=False)
                    | (~models.Q(status=STATUS_DONE) & models.Q(completed_at__isnull=True))
                ),
                name='ticket_completed_iff_done',
            ),
        ]

    def __str__(self):
        return f"#{self.id} {self.title} [{self.status}]"


class TicketComment(models.Model):

    ticket = models.ForeignKey(
        Ticket,
        on_delete=models.CASCADE,
        related_name='comments'
    )
    author = models.ForeignKey(
        'users.User',
        on_delete=models.SET_NULL,
        null=True,
        related_name='comments'
    )
    text = models.TextField()
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["created_at"]

    def __str__(self):
        return f"Comment #{self.id} on ticket #{self.ticket_id}"
