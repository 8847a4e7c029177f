import logging
import secrets
from datetime import timedelta

from django.conf import settings
from django.contrib.auth.hashers import check_password, make_password
from django.utils.crypto import constant_time_compare, salted_hmac
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken

from apps.notifications import services as notifications
from apps.utils.exceptions import (
    AuthenticationError,
    ConflictError,
    DeliveryError,
    ValidationError,
)
from apps.utils.utils import generate_numeric_code, now

from .authentication import AuthenticatedUser

logger = logging.getLogger(__name__)

RESET_TOKEN_SALT = "apps.accounts.password-reset"
TWO_FACTOR_SALT = "apps.accounts.two-factor"
TWO_FACTOR_METHODS = ("email", "sms")


def hash_secret(salt: str, value: str) -> str:
    """
    Keyed digest of a one-time secret. Only this digest is ever persisted.
    """
    return salted_hmac(salt, value, algorithm="sha256").hexdigest()


class AuthService:
    """
    Every method takes the storage backend explicitly.
    """

    MIN_PASSWORD_LENGTH = 8
    RESET_TOKEN_BYTES = 24  # 32 url-safe characters

    @staticmethod
    def issue_tokens(user) -> dict:
        refresh = RefreshToken.for_user(AuthenticatedUser.from_record(user))
        return {
            "access": str(refresh.access_token),
            "refresh": str(refresh),
        }

    @staticmethod
    def register(storage, username: str, email: str, password: str, phone: str = ""):
        if storage.get_user_by_email(email):
            raise ConflictError("Email already registered", code="email_taken")
        if storage.get_user_by_username(username):
            raise ConflictError("Username already taken", code="username_taken")

        user = storage.create_user(
            username=username,
            email=email,
            password=make_password(password),
            phone=phone or "",
        )
        logger.info(f"User registered: {user.id}", extra={"user_id": user.id})
        return user

    @staticmethod
    def login(storage, email_or_username: str, password: str) -> dict:
        user = storage.get_user_by_email(email_or_username)
        if user is None:
            user = storage.get_user_by_username(email_or_username)

        if user is None or not check_password(password, user.password):
            raise AuthenticationError("Invalid credentials", code="invalid_credentials")

        tokens = AuthService.issue_tokens(user)
        tokens["user"] = user
        return tokens

    @staticmethod
    def refresh(refresh_token: str) -> dict:
        """
        New access token from a refresh token. An access token is refused
        because its token_type claim does not match.
        """
        try:
            refresh = RefreshToken(refresh_token)
        except TokenError as e:
            raise AuthenticationError(str(e), code="token_not_valid")
        return {"access": str(refresh.access_token)}

    @staticmethod
    def update_profile(storage, user_id: str, current_password: str = "", new_password: str = "", **fields):
        user = storage.get_user(user_id)
        if user is None:
            raise AuthenticationError("User not found", code="user_not_found")

        updates = {k: v for k, v in fields.items() if v is not None}

        if "email" in updates and updates["email"] != user.email:
            if storage.get_user_by_email(updates["email"]):
                raise ConflictError("Email already registered", code="email_taken")
        if "username" in updates and updates["username"] != user.username:
            if storage.get_user_by_username(updates["username"]):
                raise ConflictError("Username already taken", code="username_taken")

        if new_password:
            if not current_password:
                raise ValidationError("Current password required to change password")
            if not check_password(current_password, user.password):
                raise AuthenticationError("Current password is incorrect", code="invalid_password")
            if len(new_password) < AuthService.MIN_PASSWORD_LENGTH:
                raise ValidationError("Password must be at least 8 characters")
            updates["password"] = make_password(new_password)

        if not updates:
            return user
        return storage.update_user(user_id, **updates)

    # ==========================================
    # PASSWORD RESET
    # ==========================================

    @staticmethod
    def forgot_password(storage, email: str) -> bool:
        """
        Returns False when no account matches; the caller answers the same way
        in both cases so the endpoint does not reveal registered addresses.
        """
        user = storage.get_user_by_email(email)
        if user is None:
            logger.info("Password reset requested for unknown email")
            return False

        token = secrets.token_urlsafe(AuthService.RESET_TOKEN_BYTES)
        storage.update_user(
            user.id,
            password_reset_token=hash_secret(RESET_TOKEN_SALT, token),
            password_reset_expires=now() + timedelta(minutes=settings.PASSWORD_RESET_TTL_MINUTES),
        )

        if not notifications.send_password_reset(user, token):
            raise DeliveryError("Failed to send email")
        return True

    @staticmethod
    def reset_password(storage, token: str, new_password: str) -> None:
        if len(new_password or "") < AuthService.MIN_PASSWORD_LENGTH:
            raise ValidationError("Password must be at least 8 characters")

        user = storage.get_user_by_reset_token(hash_secret(RESET_TOKEN_SALT, token), now())
        if user is None:
            raise AuthenticationError("Invalid or expired reset token", code="invalid_token")

        # Single use: the digest goes away with the password change.
        storage.update_user(
            user.id,
            password=make_password(new_password),
            password_reset_token=None,
            password_reset_expires=None,
        )
        logger.info(f"Password reset for user {user.id}", extra={"user_id": user.id})

    # ==========================================
    # TWO-FACTOR
    # ==========================================

    @staticmethod
    def request_two_factor(storage, user_id: str, method: str) -> None:
        if method not in TWO_FACTOR_METHODS:
            raise ValidationError("Method must be 'email' or 'sms'")

        user = storage.get_user(user_id)
        if user is None:
            raise AuthenticationError("User not found", code="user_not_found")
        if method == "sms" and not user.phone:
            raise ValidationError("Phone number not set")

        code = generate_numeric_code(6)
        storage.update_user(
            user.id,
            two_factor_code=hash_secret(TWO_FACTOR_SALT, code),
            two_factor_expires=now() + timedelta(minutes=settings.TWO_FACTOR_TTL_MINUTES),
        )

        if not notifications.send_two_factor_code(user, method, code):
            raise DeliveryError("Failed to send code")

    @staticmethod
    def verify_two_factor(storage, user_id: str, code: str) -> None:
        user = storage.get_user(user_id)
        if user is None or not user.two_factor_code:
            raise AuthenticationError("Invalid code", code="invalid_code")

        if not constant_time_compare(user.two_factor_code, hash_secret(TWO_FACTOR_SALT, code)):
            raise AuthenticationError("Invalid code", code="invalid_code")

        if user.two_factor_expires is None or user.two_factor_expires < now():
            raise AuthenticationError("Code expired", code="code_expired")

        storage.update_user(user.id, two_factor_code=None, two_factor_expires=None)
