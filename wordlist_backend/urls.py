from django.urls import include, path

from words.views import HealthView

urlpatterns = [
    path("api/", include("words.urls")),
    path("health", HealthView.as_view(), name="health"),
]
