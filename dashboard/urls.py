from django.urls import path
from . import views

urlpatterns = [
    path("", views.index, name="dashboard"),
    path("insights/", views.quick_insights, name="quick_insights"),
    path("assigned/<int:user_id>/", views.assigned_tickets, name="assigned_tickets"),
    path("projects/", views.projects_overview, name="projects_overview"),
    path("stream/", views.stream, name="dashboard_stream"),
    path("reports/projects/", views.projects_report, name="project_reports"),
    path("reports/users/", views.users_report, name="user_reports"),
]
