from django.urls import path
from .views import (
    ForgotPasswordView,
    LoginView,
    LogoutView,
    MeView,
    RefreshView,
    RegisterView,
    RequestTwoFactorView,
    ResetPasswordView,
    VerifyTwoFactorView,
)

urlpatterns = [
    path('register', RegisterView.as_view(), name='auth-register'),
    path('login', LoginView.as_view(), name='auth-login'),
    path('refresh', RefreshView.as_view(), name='auth-refresh'),
    path('logout', LogoutView.as_view(), name='auth-logout'),
    path('me', MeView.as_view(), name='auth-me'),
    path('forgot-password', ForgotPasswordView.as_view(), name='auth-forgot-password'),
    path('reset-password', ResetPasswordView.as_view(), name='auth-reset-password'),
    path('request-2fa', RequestTwoFactorView.as_view(), name='auth-request-2fa'),
    path('verify-2fa', VerifyTwoFactorView.as_view(), name='auth-verify-2fa'),
]
