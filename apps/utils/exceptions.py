from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status
import logging

logger = logging.getLogger(__name__)


class BusinessLogicException(Exception):
    """
    Raised when a domain rule is violated (e.g. 'Stock not available').
    Subclasses pick the HTTP status the API answers with.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "business_error"

    def __init__(self, message, code=None):
        self.message = message
        self.code = code or self.default_code
        super().__init__(message)


class ValidationError(BusinessLogicException):
    default_code = "validation_error"


class AuthenticationError(BusinessLogicException):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "authentication_failed"


class PermissionDeniedError(BusinessLogicException):
    status_code = status.HTTP_403_FORBIDDEN
    default_code = "permission_denied"


class NotFoundError(BusinessLogicException):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "not_found"


class ConflictError(BusinessLogicException):
    # Duplicate email/username is answered with 400, not 409.
    default_code = "conflict"


class InsufficientStockError(BusinessLogicException):
    default_code = "insufficient_stock"


class SlotUnavailableError(BusinessLogicException):
    default_code = "slot_unavailable"


class DeliveryError(BusinessLogicException):
    # Email/SMS provider refused or is unreachable.
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = "delivery_failed"


def _first_message(detail):
    """
    Flatten DRF error details ({"field": ["msg"]}) into one readable line.
    """
    if isinstance(detail, dict):
        for field, value in detail.items():
            message = _first_message(value)
            if field in ("detail", "non_field_errors"):
                return message
            return f"{field}: {message}"
        return ""
    if isinstance(detail, (list, tuple)):
        return _first_message(detail[0]) if detail else ""
    return str(detail)


def _error_code(detail, fallback):
    code = getattr(detail, "code", None)
    if code:
        return code
    if isinstance(detail, dict) and detail:
        return _error_code(next(iter(detail.values())), fallback)
    if isinstance(detail, (list, tuple)) and detail:
        return _error_code(detail[0], fallback)
    return fallback


def custom_exception_handler(exc, context):
    # Handle domain exceptions first
    if isinstance(exc, BusinessLogicException):
        return Response(
            {"error": exc.message, "code": exc.code},
            status=exc.status_code,
        )

    # Call REST framework's default exception handler
    response = exception_handler(exc, context)

    # If response is None, it's an unhandled server error (500)
    if response is None:
        logger.error(f"Unhandled Exception: {exc}", exc_info=True)
        return Response(
            {"error": "Internal Server Error", "code": "server_error"},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    detail = getattr(exc, "detail", response.data)
    response.data = {
        "error": _first_message(detail),
        "code": _error_code(detail, "error"),
    }
    return response
