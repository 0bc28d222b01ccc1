from django.db import models
from django.utils import timezone


class Role(models.Model):

    ADMIN = "Admin"
    PROJECT_MANAGER = "Project Manager"
    DEVELOPER = "Developer"

    title = models.CharField(max_length=50, unique=True)
    description = models.CharField(max_length=255, blank=True)

    class Meta:
        ordering = ["id"]

    def __str__(self):
        return self.title


class User(models.Model):

    username = models.CharField(max_length=150)
    email = models.EmailField(max_length=255, unique=True)
    password = models.CharField(max_length=255)
    role = models.ForeignKey(
        Role,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='users'
    )
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["username"]

    @property
    def role_title(self):
        return self.role.title if self.role_id else None

    def __str__(self):
        return f"{self.email} - {self.role_title or 'no role'}"
