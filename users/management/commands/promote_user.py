from django.core.management.base import BaseCommand, CommandError

from users.models import Role, User


class Command(BaseCommand):
    help = "Give an existing user a role (registration always grants Developer)"

    def add_arguments(self, parser):
        parser.add_argument("email")
        parser.add_argument("--role", default=Role.ADMIN)

    def handle(self, *args, **options):
        try:
            user = User.objects.select_related("role").get(email__iexact=options["email"])
        except User.DoesNotExist:
            raise CommandError(f"No user with email {options['email']}")

        try:
            role = Role.objects.get(title=options["role"])
        except Role.DoesNotExist:
            titles = ", ".join(Role.objects.values_list("title", flat=True))
            raise CommandError(f"Unknown role '{options['role']}'. Known roles: {titles}")

        old = user.role_title or "none"
        user.role = role
        user.save(update_fields=["role"])
        self.stdout.write(f"{user.email}: {old} -> {role.title}")
