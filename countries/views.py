import logging
import os
import time

from django.db.models import F
from django.http import FileResponse
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from . import services
from .conf import RefreshConfig
from .exceptions import RefreshPersistenceError, UpstreamUnavailable
from .models import Country
from .serializers import CountryListQuerySerializer, CountrySerializer, StatusSerializer

logger = logging.getLogger(__name__)

INTERNAL_ERROR = {"error": "Internal server error"}
NOT_FOUND = {"error": "Country not found"}


def _internal_error(message):
    logger.exception(message)
    return Response(INTERNAL_ERROR, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET'])
def service_banner(request):
    return Response({"message": "Country Currency & Exchange API. See /countries"})


@api_view(['POST'])
def refresh_countries(request):
    """
    POST /countries/refresh
    Fetch countries and exchange rates, then update or create cached data
    and regenerate the summary image.
    """
    start_time = time.time()
    config = RefreshConfig.from_settings()

    try:
        result = services.refresh_countries(config)
    except UpstreamUnavailable as exc:
        logger.warning("External fetch error: %s", exc)
        return Response(
            {"error": "External data source unavailable", "details": str(exc)},
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
    except RefreshPersistenceError:
        # already logged with the underlying database error
        return Response(INTERNAL_ERROR, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
    except Exception:
        return _internal_error("Refresh failed unexpectedly")

    summary = StatusSerializer({
        "total_countries": result.summary.total_countries,
        "last_refreshed_at": result.summary.last_refreshed_at,
    }).data

    return Response(
        {
            "message": "Refresh successful",
            "total_countries": summary["total_countries"],
            "last_refreshed_at": summary["last_refreshed_at"],
            "processed": result.processed,
            "duration_seconds": round(time.time() - start_time, 2),
        },
        status=status.HTTP_200_OK,
    )


@api_view(['GET'])
def list_countries(request):
    """
    GET /countries
    Filters:
      - region, currency (case-insensitive exact match)
    Sorting:
      - ?sort=gdp_desc or ?sort=gdp_asc (countries without an estimate last)
    Pagination:
      - ?page=<n>&limit=<m>, page is 1-based
    Default:
      - Ordered by id ascending.
    """
    query = CountryListQuerySerializer(data=request.query_params)
    if not query.is_valid():
        return Response(
            {"error": "Validation failed", "details": query.errors},
            status=status.HTTP_400_BAD_REQUEST,
        )
    params = query.validated_data

    try:
        qs = Country.objects.all()
        if params.get("region"):
            qs = qs.filter(region__iexact=params["region"])
        if params.get("currency"):
            qs = qs.filter(currency_code__iexact=params["currency"])

        sort = params.get("sort")
        if sort == "gdp_desc":
            qs = qs.order_by(F("estimated_gdp").desc(nulls_last=True), "id")
        elif sort == "gdp_asc":
            qs = qs.order_by(F("estimated_gdp").asc(nulls_last=True), "id")
        else:
            qs = qs.order_by("id")

        offset = params["offset"]
        page = qs[offset:offset + params["limit"]]
        return Response(CountrySerializer(page, many=True).data)
    except Exception:
        return _internal_error("List countries failed")


@api_view(['GET', 'DELETE'])
def country_detail(request, name):
    """
    GET /countries/:name  -> the stored record, 404 JSON if not found
    DELETE /countries/:name -> delete, 200 with message or 404
    """
    try:
        if request.method == 'DELETE':
            deleted, _ = Country.objects.filter(name_key=Country.key_for(name)).delete()
            if not deleted:
                return Response(NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
            logger.info("Deleted country %s", name)
            return Response({"message": "Country deleted"})

        country = Country.objects.filter(name_key=Country.key_for(name)).first()
        if country is None:
            return Response(NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        return Response(CountrySerializer(country).data)
    except Exception:
        return _internal_error(f"{request.method} country {name!r} failed")


@api_view(['GET'])
def get_status(request):
    """
    GET /status -> { total_countries, last_refreshed_at }
    last_refreshed_at is the max(last_refreshed_at) across records (or null)
    """
    try:
        current = services.refresh_status()
    except Exception:
        return _internal_error("Status lookup failed")
    return Response(StatusSerializer(current).data)


@api_view(['GET'])
def get_summary_image(request):
    """
    GET /countries/image
    Serve the summary image rendered by the last successful refresh.
    """
    path = RefreshConfig.from_settings().summary_image_path
    if not os.path.exists(path):
        return Response({"error": "Summary image not found"}, status=status.HTTP_404_NOT_FOUND)
    try:
        return FileResponse(open(path, 'rb'), content_type='image/png')
    except OSError:
        return _internal_error("Could not read summary image")
