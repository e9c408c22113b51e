from django.urls import include, path

urlpatterns = [
    path("api/", include("services.coordinator.urls")),
]
