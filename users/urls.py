from django.urls import path
from . import views, views_roles

urlpatterns = [
    path("register/", views.register_user, name="register"),
    path("login/", views.login_user, name="login"),
    path("logout/", views.logout_user, name="logout"),
    path("me/", views.me, name="me"),
    path("roles/", views_roles.list_roles, name="role_list"),
    path("<int:user_id>/role/", views_roles.update_user_role, name="user_role"),
    path("<int:user_id>/delete/", views_roles.delete_user, name="user_delete"),
]
