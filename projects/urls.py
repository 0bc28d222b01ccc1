from django.urls import path
from . import views

urlpatterns = [
    path('', views.list_projects, name='project_list'),
    path('create/', views.create_project, name='project_create'),
    path('<int:project_id>/', views.project_details, name='project_details'),
    path('<int:project_id>/edit/', views.edit_project, name='project_edit'),
    path('<int:project_id>/delete/', views.delete_project, name='project_delete'),
]
