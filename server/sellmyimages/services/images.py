"""Resolution of image references into upscale sources."""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

import cloudinary.uploader

from sellmyimages.models import SiteImage, SourceType, UploadedImage
from sellmyimages.utils.exceptions import NotFoundError, ProviderError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageSource:
    """Where an upscale job's source image comes from.

    Exactly one of ``site_image`` and ``upload`` is set.
    """

    source_type: str
    image_url: str
    width: int
    height: int
    site_image: Optional[SiteImage] = None
    post_id: Optional[int] = None
    upload: Optional[UploadedImage] = None

    @property
    def reference(self):
        if self.source_type == SourceType.SITE:
            return f"site:{self.site_image.pk}"
        return f"upload:{self.upload.upload_id}"

    def lookup(self):
        """Filter kwargs selecting jobs with the same source."""
        if self.source_type == SourceType.SITE:
            return {"source_type": SourceType.SITE, "site_image": self.site_image}
        return {"source_type": SourceType.UPLOAD, "upload": self.upload}

    @classmethod
    def from_job(cls, job):
        if job.source_type == SourceType.SITE:
            if job.site_image is None:
                raise NotFoundError("Attachment not found", code="invalid_attachment")
            return site_image_source(job.site_image.pk, job.post_id)
        if job.upload is None:
            raise NotFoundError("Upload not found", code="upload_not_found")
        return upload_source(job.upload.upload_id)


def site_image_source(attachment_id, post_id=None) -> ImageSource:
    try:
        image = SiteImage.objects.get(pk=attachment_id)
    except (SiteImage.DoesNotExist, ValueError, TypeError):
        raise NotFoundError("Attachment not found", code="invalid_attachment")

    return ImageSource(
        source_type=SourceType.SITE,
        image_url=image.file_url,
        width=image.width,
        height=image.height,
        site_image=image,
        post_id=post_id,
    )


def upload_source(upload_id) -> ImageSource:
    try:
        upload = UploadedImage.objects.get(upload_id=uuid.UUID(str(upload_id)))
    except (UploadedImage.DoesNotExist, ValueError):
        raise NotFoundError("Upload not found", code="upload_not_found")

    return ImageSource(
        source_type=SourceType.UPLOAD,
        image_url=upload.file_url,
        width=upload.width,
        height=upload.height,
        upload=upload,
    )


def store_upload(image_file, width, height) -> UploadedImage:
    """Push a validated upload to Cloudinary and record it."""
    try:
        upload_result = cloudinary.uploader.upload(
            image_file,
            folder="sell-my-images/uploads",
            quality="auto:best",
        )
    except Exception as exc:
        logger.error(f"Cloudinary upload failed: {exc}")
        raise ProviderError("Failed to upload image", code="upload_failed")

    return UploadedImage.objects.create(
        file_url=upload_result["secure_url"],
        cloudinary_public_id=upload_result.get("public_id", ""),
        original_filename=getattr(image_file, "name", "")[:255],
        width=width,
        height=height,
    )


def destroy_upload(upload: UploadedImage) -> None:
    """Remove an uploaded source image from Cloudinary and the database."""
    if upload.cloudinary_public_id:
        cloudinary.uploader.destroy(upload.cloudinary_public_id)
    upload.delete()
