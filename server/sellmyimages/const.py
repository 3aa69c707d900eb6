"""Constants shared by the checkout, payment and upscaling flows."""

# Tags checkout sessions created by this service. Stripe events whose metadata
# carries another source belong to other integrations on the same account.
PAYMENT_SOURCE = "sell-my-images"

RESOLUTION_2X = "2x"
RESOLUTION_4X = "4x"
RESOLUTION_8X = "8x"

VALID_RESOLUTIONS = (RESOLUTION_2X, RESOLUTION_4X, RESOLUTION_8X)

RESOLUTION_FACTORS = {
    RESOLUTION_2X: 2,
    RESOLUTION_4X: 4,
    RESOLUTION_8X: 8,
}

UPLOAD_MAX_BYTES = 10 * 1024 * 1024
UPLOAD_ALLOWED_FORMATS = ["JPEG", "PNG", "WEBP"]
UPLOAD_MIN_DIMENSION = 100
