from io import StringIO
from unittest.mock import patch

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase

from countries.models import Country

from .helpers import COUNTRIES_URL, UpstreamSettingsMixin, country_payload, fake_get


class RefreshCountriesCommandTestCase(UpstreamSettingsMixin, TestCase):

    def run_command(self, *args, **kwargs):
        out = StringIO()
        call_command("refresh_countries", *args, stdout=out, stderr=StringIO(), **kwargs)
        return out.getvalue()

    def test_seeded_refresh_is_reproducible(self):
        countries = [country_payload("France", currency="EUR"), country_payload("Japan", currency="JPY")]
        rates = {"EUR": 0.9, "JPY": 150.0}

        with patch("countries.utils.requests.get", side_effect=fake_get(countries, rates)):
            output = self.run_command("--seed", "42")
            first = dict(Country.objects.values_list("name", "estimated_gdp"))
            self.run_command("--seed", "42")
            second = dict(Country.objects.values_list("name", "estimated_gdp"))

        self.assertIn("Processed 2 countries", output)
        self.assertIn("France", output)
        self.assertEqual(first, second)

    def test_upstream_failure_raises_command_error(self):
        with patch("countries.utils.requests.get", side_effect=fake_get([], {}, fail=COUNTRIES_URL)):
            with self.assertRaises(CommandError):
                self.run_command()
        self.assertEqual(Country.objects.count(), 0)
