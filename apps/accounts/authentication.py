import logging

from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import AuthenticationFailed, InvalidToken
from rest_framework_simplejwt.settings import api_settings

from apps.storage import get_storage

logger = logging.getLogger(__name__)


class AuthenticatedUser:
    """
    Request identity built from a storage user record.
    Carries no password hash and no verification secrets.
    """
    is_authenticated = True
    is_anonymous = False
    is_active = True

    def __init__(self, id, username, email, phone="", is_staff=False):
        self.id = str(id)
        self.username = username
        self.email = email
        self.phone = phone or ""
        self.is_staff = is_staff

    @property
    def pk(self):
        return self.id

    @classmethod
    def from_record(cls, record):
        return cls(
            id=record.id,
            username=record.username,
            email=record.email,
            phone=record.phone,
            is_staff=record.is_staff,
        )

    def __str__(self):
        return self.username

    def __eq__(self, other):
        return isinstance(other, AuthenticatedUser) and other.id == self.id

    def __hash__(self):
        return hash(self.id)


class StorageJWTAuthentication(JWTAuthentication):
    """
    Bearer access token -> user loaded through the active storage backend.
    Refresh tokens are rejected by the AccessToken type check.
    """

    def get_user(self, validated_token):
        try:
            user_id = validated_token[api_settings.USER_ID_CLAIM]
        except KeyError:
            raise InvalidToken("Token contained no recognizable user identification")

        record = get_storage().get_user(str(user_id))
        if record is None:
            raise AuthenticationFailed("User not found", code="user_not_found")

        return AuthenticatedUser.from_record(record)


class OptionalStorageJWTAuthentication(StorageJWTAuthentication):
    """
    Guest-friendly variant: a missing or broken token leaves the request anonymous.
    """

    def authenticate(self, request):
        try:
            return super().authenticate(request)
        except (InvalidToken, AuthenticationFailed) as exc:
            logger.debug(f"Ignoring bad credentials on optional-auth endpoint: {exc}")
            return None
