from django.db import models
from django.utils import timezone


class Country(models.Model):
    # id — auto-generated
    # name — identity key as stored; lookups go through name_key
    name = models.CharField(max_length=200)
    # name_key — name.casefold(), unique; folds non-ASCII letters too
    name_key = models.CharField(max_length=255, unique=True, editable=False)
    capital = models.CharField(max_length=200, null=True, blank=True)
    region = models.CharField(max_length=100, null=True, blank=True)
    population = models.BigIntegerField(default=0)
    # currency_code — null when the upstream entry lists no currency
    currency_code = models.CharField(max_length=10, null=True, blank=True)
    # exchange_rate — null when there is no code or no rate for it
    exchange_rate = models.FloatField(null=True, blank=True)
    # estimated_gdp — population * random(1000..2000) / exchange_rate, or null
    estimated_gdp = models.FloatField(null=True, blank=True)
    flag_url = models.URLField(max_length=500, null=True, blank=True)
    # last_refreshed_at — set on every write made by a refresh
    last_refreshed_at = models.DateTimeField(null=True, blank=True)
    # refresh writes go through bulk_create/bulk_update, so both timestamps
    # are assigned explicitly there instead of relying on auto_now
    created_at = models.DateTimeField(default=timezone.now, editable=False)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'countries'
        ordering = ['id']
        verbose_name_plural = 'countries'

    def __str__(self):
        return self.name

    @staticmethod
    def key_for(name):
        return name.casefold()

    def save(self, *args, **kwargs):
        self.name_key = self.key_for(self.name)
        update_fields = kwargs.get('update_fields')
        if update_fields is not None and 'name' in update_fields:
            kwargs['update_fields'] = set(update_fields) | {'name_key'}
        super().save(*args, **kwargs)
