from django.urls import path

from sellmyimages import views

urlpatterns = [
    path("", views.api_root, name="api_root"),
    path("health/", views.health_check, name="health_check"),
    path("checkout/prices/", views.calculate_prices, name="calculate_prices"),
    path("checkout/", views.create_checkout, name="create_checkout"),
    path("checkout/upload/", views.create_upload_checkout, name="create_upload_checkout"),
    path("uploads/", views.upload_image, name="upload_image"),
    path("jobs/<uuid:job_id>/status/", views.job_status, name="job_status"),
    path("track-click/", views.track_click, name="track_click"),
    path("payments/webhook/", views.stripe_webhook, name="stripe_webhook"),
    path("upscale/callback/", views.upscale_callback, name="upscale_callback"),
    path("admin/upscale/", views.admin_upscale, name="admin_upscale"),
    path("download/<str:token>/", views.download, name="download"),
]
