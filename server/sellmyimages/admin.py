from django.contrib import admin

from sellmyimages.models import ButtonClick, SiteImage, UploadedImage, UpscaleJob
from sellmyimages.services import downloads, upscaling
from sellmyimages.services.images import ImageSource
from sellmyimages.utils import SellMyImagesError


@admin.register(UpscaleJob)
class UpscaleJobAdmin(admin.ModelAdmin):
    """Admin for UpscaleJob model."""

    list_display = [
        "job_id",
        "source_type",
        "resolution",
        "status",
        "payment_status",
        "customer_price",
        "email",
        "created_at",
    ]
    list_filter = ["status", "payment_status", "resolution", "source_type", "created_at"]
    search_fields = ["job_id", "email", "checkout_session_id", "payment_intent_id", "provider_task_id"]
    date_hierarchy = "created_at"

    # Job state only changes through the services so every edge stays guarded.
    readonly_fields = [field.name for field in UpscaleJob._meta.fields]

    fieldsets = (
        (None, {"fields": ("job_id", "status", "payment_status", "resolution", "email")}),
        (
            "Source",
            {"fields": ("source_type", "site_image", "post_id", "upload", "image_url", "image_width", "image_height")},
        ),
        (
            "Pricing",
            {"fields": ("customer_price", "provider_cost", "output_width", "output_height", "credits_used", "cost_recorded_at")},
        ),
        ("Payment", {"fields": ("checkout_session_id", "payment_intent_id", "amount_charged", "paid_at")}),
        (
            "Processing",
            {"fields": ("provider_task_id", "failure_reason", "upscaled_file_path", "download_token", "download_expires_at", "download_count")},
        ),
        ("Timestamps", {"fields": ("created_at", "updated_at", "processing_started_at", "completed_at")}),
    )

    actions = ["rerun_as_admin_job", "reissue_download_link"]

    def has_add_permission(self, request):
        return False

    @admin.action(description="Re-run upscaling as a new admin job")
    def rerun_as_admin_job(self, request, queryset):
        started = 0
        for job in queryset.select_related("site_image", "upload"):
            try:
                source = ImageSource.from_job(job)
                new_job = upscaling.create_admin_job(source, job.resolution, email=job.email or None)
            except SellMyImagesError as exc:
                self.message_user(request, f"Job {job.job_id}: {exc.message}", level="error")
                continue
            started += 1
            self.message_user(request, f"Job {job.job_id} re-run as {new_job.job_id}")
        self.message_user(request, f"{started} admin jobs started")

    @admin.action(description="Reissue download link")
    def reissue_download_link(self, request, queryset):
        count = 0
        for job in queryset:
            try:
                downloads.issue_token(job.job_id)
            except SellMyImagesError as exc:
                self.message_user(request, f"Job {job.job_id}: {exc.message}", level="error")
                continue
            count += 1
        self.message_user(request, f"{count} download links reissued")


@admin.register(SiteImage)
class SiteImageAdmin(admin.ModelAdmin):
    """Admin for SiteImage model."""

    list_display = ["id", "title", "width", "height", "created_at"]
    search_fields = ["title", "file_url"]


@admin.register(UploadedImage)
class UploadedImageAdmin(admin.ModelAdmin):
    """Admin for UploadedImage model."""

    list_display = ["upload_id", "original_filename", "width", "height", "created_at"]
    search_fields = ["upload_id", "original_filename", "cloudinary_public_id"]
    readonly_fields = ["upload_id", "created_at"]
    date_hierarchy = "created_at"


@admin.register(ButtonClick)
class ButtonClickAdmin(admin.ModelAdmin):
    """Admin for ButtonClick model."""

    list_display = ["id", "post_id", "site_image", "created_at"]
    list_filter = ["created_at"]
    search_fields = ["post_id"]
    date_hierarchy = "created_at"
