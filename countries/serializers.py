from rest_framework import serializers
from .models import Country

# keeps (page - 1) * limit well inside a 64-bit OFFSET
MAX_PAGE = 10 ** 6
MAX_LIMIT = 1000


class CountrySerializer(serializers.ModelSerializer):
    class Meta:
        model = Country
        fields = [
            'id', 'name', 'capital', 'region', 'population',
            'currency_code', 'exchange_rate', 'estimated_gdp',
            'flag_url', 'last_refreshed_at', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class CountryListQuerySerializer(serializers.Serializer):
    """
    Query parameters accepted by GET /countries.

    region and currency are matched case-insensitively; page is 1-based.
    """
    region = serializers.CharField(required=False, allow_blank=True)
    currency = serializers.CharField(required=False, allow_blank=True)
    sort = serializers.ChoiceField(choices=["gdp_desc", "gdp_asc"], required=False)
    page = serializers.IntegerField(required=False, min_value=1, max_value=MAX_PAGE, default=1)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=MAX_LIMIT, default=500)

    def validate(self, data):
        data["offset"] = (data["page"] - 1) * data["limit"]
        return data


class StatusSerializer(serializers.Serializer):
    total_countries = serializers.IntegerField()
    last_refreshed_at = serializers.DateTimeField(allow_null=True)
