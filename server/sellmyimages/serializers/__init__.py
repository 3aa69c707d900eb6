"""Serializer package for the `sellmyimages` Django app.

This package re-exports the public DRF serializer classes used by views.
"""

from .checkout import (
    AdminUpscaleSerializer,
    CheckoutRequestSerializer,
    JobStatusSerializer,
    PriceRequestSerializer,
    UploadCheckoutRequestSerializer,
)
from .upload import ImageUploadSerializer, UploadedImageSerializer
from .analytics import TrackClickSerializer

__all__ = [
    "AdminUpscaleSerializer",
    "CheckoutRequestSerializer",
    "JobStatusSerializer",
    "PriceRequestSerializer",
    "UploadCheckoutRequestSerializer",
    "ImageUploadSerializer",
    "UploadedImageSerializer",
    "TrackClickSerializer",
]
