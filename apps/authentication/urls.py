from django.urls import path
from . import views

app_name = 'auth'

urlpatterns = [
    path("csrf/", views.csrf, name="csrf"),
    path("signup/", views.signup_view, name="signup"),
    path("admin-signup/", views.admin_signup_view, name="admin_signup"),
    path("ensure-admin-access/", views.ensure_admin_access_view, name="ensure_admin_access"),
    path("login/", views.login_view, name="login"),
    path("logout/", views.logout_view, name="logout"),
    path("me/", views.me_view, name="me"),
    path("password-reset/", views.password_reset_request, name="password_reset"),
    path("password-reset/<str:uidb64>/<str:token>/", views.password_reset_confirm, name="password_reset_confirm"),
]
