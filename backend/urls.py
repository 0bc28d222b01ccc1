from django.http import JsonResponse
from django.urls import include, path


def root(_request):
    return JsonResponse({
        "service": "stackflow",
        "dashboard": "/dashboard/",
        "login": "/users/login/",
    })


urlpatterns = [
    path("users/", include("users.urls")),
    path("projects/", include("projects.urls")),
    path("tickets/", include("tickets.urls")),
    path("dashboard/", include("dashboard.urls")),
    path("", root),
]
