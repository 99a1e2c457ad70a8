# countries/management/commands/refresh_countries.py
import random

from django.core.management.base import BaseCommand, CommandError

from countries.conf import RefreshConfig
from countries.exceptions import RefreshPersistenceError, UpstreamUnavailable
from countries.services import refresh_countries


class Command(BaseCommand):
    help = "Fetch countries and exchange rates and refresh the stored country data."

    def add_arguments(self, parser):
        parser.add_argument(
            '--seed',
            type=int,
            default=None,
            help='Seed the GDP multiplier so the estimates are reproducible'
        )

    def handle(self, *args, **opts):
        seed = opts.get('seed')
        rng = random.Random(seed) if seed is not None else None

        try:
            result = refresh_countries(RefreshConfig.from_settings(), rng=rng)
        except UpstreamUnavailable as e:
            raise CommandError(f"External data source unavailable: {e}")
        except RefreshPersistenceError as e:
            raise CommandError(str(e))

        summary = result.summary
        self.stdout.write(
            self.style.SUCCESS(
                f"Processed {result.processed} countries; "
                f"{summary.total_countries} stored, last refreshed {summary.last_refreshed_at}"
            )
        )
        for name, gdp in summary.top5:
            self.stdout.write(f"  {name}: {gdp:,.2f}")
        if not result.image_generated:
            self.stderr.write(self.style.WARNING("Summary image could not be generated"))
