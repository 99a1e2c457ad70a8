import shutil
import tempfile
from unittest.mock import MagicMock

import requests

COUNTRIES_URL = "https://countries.test/v2/all"
RATES_URL = "https://rates.test/v6/latest/USD"


def country_payload(name, population=1_000_000, currency="EUR", region="Europe", capital="Capital"):
    entry = {
        "name": name,
        "capital": capital,
        "region": region,
        "population": population,
        "flag": f"https://flags.test/{name.lower()}.svg",
    }
    if currency is not None:
        entry["currencies"] = [{"code": currency, "name": currency, "symbol": "$"}]
    return entry


def fake_get(countries, rates, fail=None):
    """
    Build a stand-in for requests.get serving the two upstream payloads.

    ``fail`` is the URL that should time out instead of answering.
    """
    def _get(url, timeout=None):
        if fail is not None and url == fail:
            raise requests.Timeout(f"Read timed out. (read timeout={timeout})")
        resp = MagicMock()
        resp.raise_for_status.return_value = None
        if url == COUNTRIES_URL:
            resp.json.return_value = countries
        elif url == RATES_URL:
            resp.json.return_value = {"result": "success", "base_code": "USD", "rates": rates}
        else:
            raise AssertionError(f"unexpected url {url}")
        return resp
    return _get


class UpstreamSettingsMixin:
    """Point the refresh at fake URLs and a throwaway cache directory."""

    def setUp(self):
        super().setUp()
        self.cache_dir = tempfile.mkdtemp(prefix="countries-cache-")
        self.addCleanup(shutil.rmtree, self.cache_dir, ignore_errors=True)
        override = self.settings(
            COUNTRIES_API_URL=COUNTRIES_URL,
            EXCHANGE_RATES_API_URL=RATES_URL,
            REFRESH_TIMEOUT_MS=2000,
            CACHE_DIR=self.cache_dir,
        )
        override.enable()
        self.addCleanup(override.disable)
