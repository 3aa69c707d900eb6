from .upsampler_client import UpsamplerClient, UpsamplerError, get_upsampler_client
from .exceptions import (
    exception_handler,
    format_error,
    SellMyImagesError,
    ValidationError,
    NotFoundError,
    ConfigurationError,
    ProviderError,
    ConflictError,
    ForbiddenError,
    GoneError,
    ServiceDisabledError,
    PriceUnavailableError,
)

__all__ = [
    "UpsamplerClient",
    "UpsamplerError",
    "get_upsampler_client",
    "exception_handler",
    "format_error",
    "SellMyImagesError",
    "ValidationError",
    "NotFoundError",
    "ConfigurationError",
    "ProviderError",
    "ConflictError",
    "ForbiddenError",
    "GoneError",
    "ServiceDisabledError",
    "PriceUnavailableError",
]
