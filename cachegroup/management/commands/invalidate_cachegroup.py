from django.core.management.base import BaseCommand, CommandError

from cachegroup.config import configuration
from cachegroup.exceptions import ConfigurationError, MissingKeyError


class Command(BaseCommand):
    help = "Invalidate a registered cache group, dropping every value cached under it."

    def add_arguments(self, parser):
        parser.add_argument(
            "group",
            help="Full name of the cache group (e.g. organization/user).",
        )
        parser.add_argument(
            "--key",
            action="append",
            default=[],
            metavar="FIELD=VALUE",
            help="Parent key field; repeat for every ancestor field (e.g. --key organization_id=3).",
        )

    def _parse_key(self, pairs) -> dict:
        key = {}
        for pair in pairs:
            field, sep, value = str(pair).partition("=")
            field = field.strip()
            if not sep or not field:
                raise CommandError(f"Invalid key argument '{pair}', expected FIELD=VALUE.")
            key[field] = value.strip()
        return key

    def handle(self, *args, **options):
        group_name = str(options["group"]).strip()
        if not group_name:
            raise CommandError("group cannot be empty.")

        group = configuration.find_group(group_name)
        if group is None:
            raise CommandError(f"Cache group not found: {group_name}")

        parent_key = self._parse_key(options.get("key") or [])

        try:
            new_version = group.invalidate_cache_group(parent_key or None)
        except (ConfigurationError, MissingKeyError) as exc:
            raise CommandError(str(exc)) from exc

        self.stdout.write(
            self.style.SUCCESS(f"Invalidated cache group '{group.full_name}' (version {new_version}).")
        )
