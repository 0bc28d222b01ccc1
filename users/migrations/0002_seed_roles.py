from django.db import migrations

ROLES = [
    ("Admin", "Full access: projects, reports and user administration."),
    ("Project Manager", "Creates, edits and deletes tickets."),
    ("Developer", "Works assigned tickets: status updates and comments."),
]


def seed_roles(apps, schema_editor):
    Role = apps.get_model("users", "Role")
    for title, description in ROLES:
        Role.objects.get_or_create(title=title, defaults={"description": description})


def remove_roles(apps, schema_editor):
    Role = apps.get_model("users", "Role")
    Role.objects.filter(title__in=[title for title, _ in ROLES]).delete()


class Migration(migrations.Migration):

    dependencies = [
        ('users', '0001_initial'),
    ]

    operations = [
        migrations.RunPython(seed_roles, remove_roles),
    ]
