# accounts/urls.py
from django.urls import path
from rest_framework_simplejwt.views import TokenRefreshView

from .views import LoginView, MeView, SwitchCompanyView

app_name = "accounts"

urlpatterns = [
    path("login", LoginView.as_view(), name="login"),
    path("token/refresh", TokenRefreshView.as_view(), name="token-refresh"),
    path("me", MeView.as_view(), name="me"),
    path("switch-company", SwitchCompanyView.as_view(), name="switch-company"),
]
