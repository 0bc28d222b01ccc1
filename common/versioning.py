"""
Optimistic concurrency for models carrying a ``version`` column.

A write only lands if the row still has the version the client loaded;
otherwise the caller gets a ``StaleVersionError`` and nothing is written.
"""
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F


class StaleVersionError(Exception):
    label = "Record"

    def __init__(self, pk, current_version):
        self.pk = pk
        self.current_version = current_version
        super().__init__(
            f"{self.label} #{pk} was modified by someone else (now at version {current_version}). "
            "Reload it and apply your change again."
        )


def expected_version(instance, version):
    """The version an edit was made against; blank means the one just loaded."""
    if version in (None, ""):
        return instance.version
    try:
        return int(version)
    except (TypeError, ValueError):
        raise ValidationError({"version": ["Version must be an integer."]})


def versioned_save(instance, expected, fields, stale_error=StaleVersionError):
    model = type(instance)
    values = {name: getattr(instance, name) for name in fields}
    with transaction.atomic():
        rows = (
            model.objects
            .filter(pk=instance.pk, version=expected)
            .update(version=F("version") + 1, **values)
        )
        if not rows:
            current = model.objects.filter(pk=instance.pk).values_list("version", flat=True).first()
            if current is None:
                raise model.DoesNotExist(f"{model.__name__} #{instance.pk} no longer exists")
            raise stale_error(instance.pk, current)
    instance.version = expected + 1
