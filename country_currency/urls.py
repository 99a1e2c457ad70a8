"""
URL configuration for country_currency project.

Country endpoints live in ``countries.urls``; everything that matches
nothing falls through to the JSON 404 handler below.
"""
from django.contrib import admin
from django.urls import path, include
from django.http import JsonResponse

from countries import views

urlpatterns = [
    path('admin/', admin.site.urls),
    path('', views.service_banner, name='service_banner'),
    path('', include('countries.urls')),
]


def custom_404(request, exception):
    return JsonResponse({"error": "Route not found"}, status=404)


def custom_500(request):
    return JsonResponse({"error": "Internal server error"}, status=500)


handler404 = "country_currency.urls.custom_404"
handler500 = "country_currency.urls.custom_500"
