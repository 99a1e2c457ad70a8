import logging
import os
import random
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone

import requests
from PIL import Image, ImageDraw, ImageFont
from requests.exceptions import RequestException

from .exceptions import UpstreamUnavailable

logger = logging.getLogger(__name__)

COUNTRIES_SOURCE = "Countries API"
RATES_SOURCE = "Exchange rates API"

MULTIPLIER_MIN = 1000
MULTIPLIER_MAX = 2000


def _get_json(url, source, timeout):
    try:
        resp = requests.get(url, timeout=timeout)
        resp.raise_for_status()
        return resp.json()
    except (RequestException, ValueError) as exc:
        raise UpstreamUnavailable(source, str(exc)) from exc


def fetch_countries(config):
    data = _get_json(config.countries_url, COUNTRIES_SOURCE, config.timeout)
    if not isinstance(data, list):
        raise UpstreamUnavailable(COUNTRIES_SOURCE, "expected a list of countries")
    return data


def fetch_exchange_rates(config):
    data = _get_json(config.rates_url, RATES_SOURCE, config.timeout)
    if not isinstance(data, dict):
        raise UpstreamUnavailable(RATES_SOURCE, "expected a JSON object")
    # API returns 'rates' mapping
    rates = data.get("rates")
    if rates is None:
        return {}
    if not isinstance(rates, dict):
        raise UpstreamUnavailable(RATES_SOURCE, "expected a rates mapping")
    return rates


def fetch_upstream(config):
    """
    Fetch the country catalog and the exchange rates concurrently.

    Returns ``(countries, rates)``. The first fetch to fail decides the
    UpstreamUnavailable that is raised; the other one is only allowed to run
    out its own timeout and its result is discarded.
    """
    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="refresh-fetch") as pool:
        countries_future = pool.submit(fetch_countries, config)
        rates_future = pool.submit(fetch_exchange_rates, config)
        for future in as_completed((countries_future, rates_future)):
            future.result()
        return countries_future.result(), rates_future.result()


def make_multiplier(rng=None):
    return (rng or random).randint(MULTIPLIER_MIN, MULTIPLIER_MAX)


def _load_fonts():
    try:
        return ImageFont.truetype("arial.ttf", 28), ImageFont.truetype("arial.ttf", 20)
    except OSError:
        return ImageFont.load_default(), ImageFont.load_default()


def _format_timestamp(value):
    if value is None:
        return "never"
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def generate_summary_image(summary, path):
    """
    Generate a summary PNG showing total countries, top 5 GDP countries,
    and last refresh timestamp. Overwrites any image already at ``path``.
    """
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    img = Image.new("RGB", (800, 500), color="white")
    draw = ImageDraw.Draw(img)
    font_title, font_body = _load_fonts()

    # Header
    draw.text((20, 20), "Country Summary Report", fill="black", font=font_title)
    draw.text((20, 70), f"Total Countries: {summary.total_countries}", fill="black", font=font_body)
    draw.text((20, 120), "Top 5 Countries by Estimated GDP:", fill="black", font=font_body)

    y = 160
    if not summary.top5:
        draw.text((40, y), "No GDP data available.", fill="gray", font=font_body)
    else:
        for position, (name, gdp) in enumerate(summary.top5, start=1):
            draw.text((40, y), f"{position}. {name}: {round(gdp or 0, 2):,}", fill="blue", font=font_body)
            y += 30

    # Timestamp
    draw.text(
        (20, 400),
        f"Last Refresh: {_format_timestamp(summary.last_refreshed_at)}",
        fill="black",
        font=font_body,
    )

    img.save(path, "PNG")
    return path


def render_summary_image_safely(summary, path):
    """Render the summary image; a failure is logged and reported as False."""
    try:
        generate_summary_image(summary, path)
    except Exception:
        logger.warning("Summary image generation failed for %s", path, exc_info=True)
        return False
    logger.info("Summary image written to %s", path)
    return True


def get_now():
    """Return current UTC datetime (aware)."""
    return datetime.now(timezone.utc)
