from rest_framework.views import exception_handler as drf_exception_handler
from rest_framework.response import Response
from rest_framework import status


def exception_handler(exc, context):
    """
    Custom exception handler for DRF that returns consistent error format.

    Domain errors (``SellMyImagesError``) are rendered with their own code and
    HTTP status; everything else goes through DRF's default handling first.
    """
    if isinstance(exc, SellMyImagesError):
        return Response(
            format_error(code=exc.code, message=exc.message, details=exc.details),
            status=exc.status_code,
        )

    response = drf_exception_handler(exc, context)

    if response:
        response.data = format_error(
            code=getattr(exc, "default_code", "error"),
            message=str(exc),
            details=(
                response.data
                if isinstance(response.data, dict)
                else {"detail": response.data}
            ),
        )

    return response


def format_error(code: str, message: str, details=None):
    return {
        "error": {
            "code": str(code).upper(),
            "message": message,
            "details": details if details is not None else {},
        }
    }


class SellMyImagesError(Exception):
    """Base class for errors surfaced to API callers"""

    code = "error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Something went wrong"

    def __init__(self, message=None, code=None, details=None):
        self.message = message or self.default_message
        if code:
            self.code = code
        self.details = details if details is not None else {}
        super().__init__(self.message)

    def to_response(self):
        return Response(
            format_error(code=self.code, message=self.message, details=self.details),
            status=self.status_code,
        )


class ValidationError(SellMyImagesError):
    """Bad or missing input; the caller must fix the request"""
    code = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class NotFoundError(SellMyImagesError):
    """Unknown job, token or image"""
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ConfigurationError(SellMyImagesError):
    """Payment provider is not set up"""
    code = "payment_not_configured"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Payment system not configured"


class ProviderError(SellMyImagesError):
    """Payment or upscaling provider rejected the call"""
    code = "provider_error"
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "The payment provider is unavailable, please try again later"


class ConflictError(SellMyImagesError):
    """A state guard did not match (duplicate request or re-delivery)"""
    code = "conflict"
    status_code = status.HTTP_409_CONFLICT
    default_message = "The job is not in a state that allows this action"


class ForbiddenError(SellMyImagesError):
    code = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Download not available"


class GoneError(SellMyImagesError):
    code = "gone"
    status_code = status.HTTP_410_GONE
    default_message = "This download link has expired"


class ServiceDisabledError(SellMyImagesError):
    code = "plugin_disabled"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Image sales are currently disabled"


class PriceUnavailableError(SellMyImagesError):
    """Raised when no price can be quoted for an image/resolution pair"""
    code = "price_unavailable"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Price unavailable"

    def __init__(self, reason=None):
        self.reason = reason or self.default_message
        super().__init__(self.reason)
