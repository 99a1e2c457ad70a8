"""
Refresh pipeline: fetch -> normalize -> estimate -> reconcile -> summarize -> render.

Nothing here reads Django settings; the caller passes a RefreshConfig and,
optionally, a random source so the GDP estimates can be pinned in tests.
"""
from __future__ import annotations

import logging
import math
import random
import time
from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Iterable, List, Optional, Tuple

from django.db import DatabaseError, transaction
from django.db.models import Count, Max

from . import utils
from .conf import RefreshConfig
from .exceptions import RefreshPersistenceError
from .models import Country

logger = logging.getLogger(__name__)

REFRESH_FIELDS = [
    "capital", "region", "population", "currency_code", "exchange_rate",
    "estimated_gdp", "flag_url", "last_refreshed_at", "updated_at",
]
BATCH_SIZE = 100
TOP_N = 5


@dataclass(frozen=True)
class CountryRecord:
    name: str
    capital: Optional[str] = None
    region: Optional[str] = None
    population: int = 0
    currency_code: Optional[str] = None
    flag_url: Optional[str] = None
    exchange_rate: Optional[float] = None
    estimated_gdp: Optional[float] = None


@dataclass(frozen=True)
class CountrySummary:
    total_countries: int
    last_refreshed_at: Optional[datetime]
    top5: List[Tuple[str, float]]


@dataclass(frozen=True)
class RefreshResult:
    processed: int
    summary: CountrySummary
    image_generated: bool


# --- Normalization --- #

def _text(value: Any) -> Optional[str]:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return None


def _first(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def _resolve_name(raw: Mapping) -> Optional[str]:
    name = raw.get("name")
    if isinstance(name, Mapping):
        return _text(name.get("common")) or _text(name.get("official"))
    return _text(name)


def _resolve_population(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    try:
        population = int(value)
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(population, 0)


def _resolve_currency_code(currencies: Any) -> Optional[str]:
    code = None
    if isinstance(currencies, (list, tuple)):
        first = currencies[0] if currencies else None
        if isinstance(first, Mapping):
            code = _text(first.get("code"))
    elif isinstance(currencies, Mapping) and currencies:
        # v3 shape: {"EUR": {"name": "Euro", "symbol": "€"}}
        first_key = next(iter(currencies))
        entry = currencies[first_key]
        if isinstance(entry, Mapping):
            code = _text(entry.get("code"))
        code = code or _text(first_key)
    return code.upper() if code else None


def _resolve_flag_url(raw: Mapping) -> Optional[str]:
    flags = raw.get("flags")
    if isinstance(flags, Mapping):
        url = _text(flags.get("png")) or _text(flags.get("svg"))
        if url:
            return url
    return _text(raw.get("flag"))


def normalize_country(raw: Any) -> Optional[CountryRecord]:
    """
    Map one upstream country entry onto a CountryRecord.

    Handles both the v2 (flat) and v3 (nested name, currencies keyed by
    code) restcountries shapes. Returns None when no name can be resolved;
    such entries are simply left out of the refresh.
    """
    if not isinstance(raw, Mapping):
        return None
    name = _resolve_name(raw)
    if not name:
        return None
    return CountryRecord(
        name=name,
        capital=_text(_first(raw.get("capital"))),
        region=_text(raw.get("region")),
        population=_resolve_population(raw.get("population")),
        currency_code=_resolve_currency_code(raw.get("currencies")),
        flag_url=_resolve_flag_url(raw),
    )


# --- Estimation --- #

def estimate_gdp(currency_code, population, rates, rng=None):
    """
    Return ``(exchange_rate, estimated_gdp)`` for one country.

    Both are None when there is no currency code, no rate for it, or the
    rate is not a finite number (NaN/Infinity parse fine from JSON). The
    multiplier is drawn fresh on every call, so repeated refreshes give
    different estimates for the same inputs.
    """
    if not currency_code:
        return None, None
    rate = rates.get(currency_code.upper())
    if isinstance(rate, bool) or not isinstance(rate, (int, float)) or not math.isfinite(rate):
        return None, None
    multiplier = utils.make_multiplier(rng)
    if rate == 0:
        return rate, 0.0
    return rate, (population * multiplier) / rate


def prepare_records(countries_data: Iterable[Any], rates: Mapping, rng=None) -> List[CountryRecord]:
    records = []
    for item in countries_data:
        record = normalize_country(item)
        if record is None:
            continue
        exchange_rate, estimated_gdp = estimate_gdp(record.currency_code, record.population, rates, rng)
        records.append(replace(record, exchange_rate=exchange_rate, estimated_gdp=estimated_gdp))
    return records


# --- Reconciliation --- #

def _apply(country: Country, record: CountryRecord, now: datetime) -> None:
    country.capital = record.capital
    country.region = record.region
    country.population = record.population
    country.currency_code = record.currency_code
    country.exchange_rate = record.exchange_rate
    country.estimated_gdp = record.estimated_gdp
    country.flag_url = record.flag_url
    country.last_refreshed_at = now
    country.updated_at = now


def reconcile_countries(records: Iterable[CountryRecord], now: datetime) -> int:
    """
    Upsert records by case-insensitive name in a single transaction.

    Existing rows keep their id, stored name and created_at. If any write
    fails the whole pass is rolled back and RefreshPersistenceError raised.
    Returns the number of records processed.
    """
    processed = 0
    try:
        with transaction.atomic():
            existing = {c.name_key: c for c in Country.objects.all()}
            to_update = {}
            to_create = {}

            for record in records:
                key = Country.key_for(record.name)
                country = existing.get(key)
                if country is not None:
                    to_update[key] = country
                else:
                    country = to_create.get(key)
                    if country is None:
                        country = Country(name=record.name, name_key=key, created_at=now)
                        to_create[key] = country
                _apply(country, record, now)
                processed += 1

            if to_update:
                Country.objects.bulk_update(list(to_update.values()), fields=REFRESH_FIELDS, batch_size=BATCH_SIZE)
            if to_create:
                Country.objects.bulk_create(list(to_create.values()), batch_size=BATCH_SIZE)
    except DatabaseError as exc:
        logger.exception("Refresh write failed, rolled back %d records", processed)
        raise RefreshPersistenceError("Could not persist refreshed countries") from exc

    logger.info("Reconciled %d countries (%d updated, %d created)", processed, len(to_update), len(to_create))
    return processed


# --- Aggregation --- #

def refresh_status() -> dict:
    """Total stored countries and the most recent last_refreshed_at (or None)."""
    totals = Country.objects.aggregate(total=Count("id"), last=Max("last_refreshed_at"))
    return {"total_countries": totals["total"] or 0, "last_refreshed_at": totals["last"]}


def top_countries_by_gdp(limit: int = TOP_N) -> List[Tuple[str, float]]:
    return list(
        Country.objects.filter(estimated_gdp__gt=0)
        .order_by("-estimated_gdp", "name")
        .values_list("name", "estimated_gdp")[:limit]
    )


def summarize_countries() -> CountrySummary:
    return CountrySummary(top5=top_countries_by_gdp(), **refresh_status())


# --- Orchestration --- #

def refresh_countries(config: RefreshConfig, rng=None, now: Optional[datetime] = None) -> RefreshResult:
    """
    Run one full refresh.

    Raises UpstreamUnavailable before anything is written when either source
    fails, or RefreshPersistenceError after a rollback. The summary image is
    rendered only after the data has been committed and its failure does not
    affect the result beyond ``image_generated=False``.
    """
    start_time = time.time()
    logger.info("Refresh started")

    countries_data, rates = utils.fetch_upstream(config)

    records = prepare_records(countries_data, rates, rng or random.Random())
    processed = reconcile_countries(records, now or utils.get_now())

    summary = summarize_countries()
    image_generated = utils.render_summary_image_safely(summary, config.summary_image_path)

    logger.info(
        "Refresh finished: %d processed, %d stored, %.2fs",
        processed, summary.total_countries, time.time() - start_time,
    )
    return RefreshResult(processed=processed, summary=summary, image_generated=image_generated)
