"""Database models exposed by the `sellmyimages` Django app.

This package aggregates model classes to provide a convenient import surface
for other parts of the backend.
"""

from .analytics import ButtonClick
from .image import SiteImage, UploadedImage
from .job import JobStatus, PaymentStatus, SourceType, UpscaleJob

__all__ = [
    "ButtonClick",
    "JobStatus",
    "PaymentStatus",
    "SiteImage",
    "SourceType",
    "UploadedImage",
    "UpscaleJob",
]
