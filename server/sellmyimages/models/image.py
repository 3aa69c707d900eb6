"""Source images that can be sold as upscaled versions.

`SiteImage` is an entry of the site's media library (an attachment shown in a
post). `UploadedImage` is a file a visitor uploaded to have it upscaled.
"""

import uuid

from django.db import models


class SiteImage(models.Model):
    """Site-hosted image (media library attachment)"""

    title = models.CharField(max_length=255, blank=True)
    file_url = models.URLField(
        max_length=1000,
        help_text="Public URL of the original image file"
    )
    width = models.PositiveIntegerField(default=0)
    height = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'smi_site_images'
        ordering = ['-created_at']

    def __str__(self):
        return self.title or f"Image {self.id}"


class UploadedImage(models.Model):
    """Visitor-uploaded source image stored on Cloudinary"""

    upload_id = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
    file_url = models.URLField(
        max_length=1000,
        help_text="Cloudinary URL of the uploaded image"
    )
    cloudinary_public_id = models.CharField(max_length=255, blank=True)
    original_filename = models.CharField(max_length=255, blank=True)
    width = models.PositiveIntegerField(default=0)
    height = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'smi_uploads'
        ordering = ['-created_at']

    def __str__(self):
        return f"Upload {self.upload_id}"
