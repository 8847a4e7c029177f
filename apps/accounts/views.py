from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.storage import get_storage
from apps.utils.throttle import AuthRateThrottle

from .serializers import (
    ForgotPasswordSerializer,
    LoginSerializer,
    ProfileUpdateSerializer,
    RefreshSerializer,
    RegisterSerializer,
    ResetPasswordSerializer,
    TwoFactorRequestSerializer,
    TwoFactorVerifySerializer,
    UserSerializer,
)
from .services import AuthService


class RegisterView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [AuthRateThrottle]

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user = AuthService.register(get_storage(), **serializer.validated_data)
        return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)


class LoginView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [AuthRateThrottle]

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = AuthService.login(
            get_storage(),
            email_or_username=serializer.validated_data["email_or_username"],
            password=serializer.validated_data["password"],
        )
        return Response({
            "access": result["access"],
            "refresh": result["refresh"],
            "user": UserSerializer(result["user"]).data,
        })


class RefreshView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [AuthRateThrottle]

    def post(self, request):
        serializer = RefreshSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return Response(AuthService.refresh(serializer.validated_data["refresh"]))


class LogoutView(APIView):
    """
    Tokens are stateless; the client simply drops them.
    """
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        return Response(status=status.HTTP_204_NO_CONTENT)


class MeView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        user = get_storage().get_user(request.user.id)
        return Response(UserSerializer(user or request.user).data)

    def patch(self, request):
        serializer = ProfileUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        user = AuthService.update_profile(get_storage(), request.user.id, **serializer.validated_data)
        return Response(UserSerializer(user).data)


class ForgotPasswordView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [AuthRateThrottle]

    def post(self, request):
        serializer = ForgotPasswordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        AuthService.forgot_password(get_storage(), serializer.validated_data["email"])
        return Response({"message": "If the email exists, a reset link has been sent"})


class ResetPasswordView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [AuthRateThrottle]

    def post(self, request):
        serializer = ResetPasswordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        AuthService.reset_password(
            get_storage(),
            token=serializer.validated_data["token"],
            new_password=serializer.validated_data["new_password"],
        )
        return Response({"message": "Password reset successfully"})


class RequestTwoFactorView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_classes = [AuthRateThrottle]

    def post(self, request):
        serializer = TwoFactorRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        method = serializer.validated_data["method"]
        AuthService.request_two_factor(get_storage(), request.user.id, method)
        return Response({"message": f"Code sent via {method}"})


class VerifyTwoFactorView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_classes = [AuthRateThrottle]

    def post(self, request):
        serializer = TwoFactorVerifySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        AuthService.verify_two_factor(get_storage(), request.user.id, serializer.validated_data["code"])
        return Response({"message": "Code verified successfully"})
