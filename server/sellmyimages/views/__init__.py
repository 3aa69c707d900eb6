from sellmyimages.views.api_root import api_root
from sellmyimages.views.checkout import calculate_prices, create_checkout, create_upload_checkout, job_status, track_click
from sellmyimages.views.download import download
from sellmyimages.views.health import health_check
from sellmyimages.views.payment import stripe_webhook
from sellmyimages.views.uploads import upload_image
from sellmyimages.views.upscaling import admin_upscale, upscale_callback

__all__ = [
    "api_root",
    "calculate_prices",
    "create_checkout",
    "create_upload_checkout",
    "job_status",
    "track_click",
    "download",
    "health_check",
    "stripe_webhook",
    "upload_image",
    "admin_upscale",
    "upscale_callback",
]
