from rest_framework import serializers

from apps.utils.validators import validate_phone


class RegisterSerializer(serializers.Serializer):
    username = serializers.CharField(max_length=150)
    email = serializers.EmailField()
    password = serializers.CharField(min_length=8, write_only=True)
    phone = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")

    def validate_phone(self, value):
        return validate_phone(value) if value else ""


class LoginSerializer(serializers.Serializer):
    email_or_username = serializers.CharField()
    password = serializers.CharField(write_only=True)


class RefreshSerializer(serializers.Serializer):
    refresh = serializers.CharField()


class ProfileUpdateSerializer(serializers.Serializer):
    username = serializers.CharField(max_length=150, required=False)
    email = serializers.EmailField(required=False)
    phone = serializers.CharField(max_length=32, required=False, allow_blank=True)
    current_password = serializers.CharField(required=False, allow_blank=True, write_only=True)
    new_password = serializers.CharField(required=False, allow_blank=True, write_only=True)

    def validate_phone(self, value):
        return validate_phone(value) if value else ""


class ForgotPasswordSerializer(serializers.Serializer):
    email = serializers.EmailField()


class ResetPasswordSerializer(serializers.Serializer):
    token = serializers.CharField()
    new_password = serializers.CharField(write_only=True)


class TwoFactorRequestSerializer(serializers.Serializer):
    method = serializers.ChoiceField(choices=["email", "sms"])


class TwoFactorVerifySerializer(serializers.Serializer):
    code = serializers.CharField(max_length=6)


class UserSerializer(serializers.Serializer):
    """
    Public view of a user record. Never exposes hashes or one-time secrets.
    """
    id = serializers.CharField()
    username = serializers.CharField()
    email = serializers.EmailField()
    phone = serializers.CharField()
    is_staff = serializers.BooleanField()
    created_at = serializers.DateTimeField(required=False)
