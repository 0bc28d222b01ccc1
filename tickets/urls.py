from django.urls import path
from . import views

urlpatterns = [
    path('create/', views.create_ticket, name='ticket_create'),
    path('<int:ticket_id>/', views.ticket_details, name='ticket_details'),
    path('<int:ticket_id>/edit/', views.edit_ticket, name='ticket_edit'),
    path('<int:ticket_id>/status/', views.update_ticket_status, name='ticket_status'),
    path('<int:ticket_id>/comments/', views.add_comment, name='ticket_comment'),
    path('<int:ticket_id>/delete/', views.delete_ticket, name='ticket_delete'),
]
