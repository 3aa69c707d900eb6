"""Price quotes for upscaled images.

Upsampler bills in credits per started block of output megapixels. The
customer price is the provider cost plus the configured markup, rounded to
cents and never below the configured minimum.
"""

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings

from sellmyimages.const import RESOLUTION_FACTORS
from sellmyimages.utils.exceptions import PriceUnavailableError

CENTS = Decimal("0.01")


@dataclass(frozen=True)
class PriceQuote:
    customer_price: Decimal
    provider_cost: Decimal
    output_width: int
    output_height: int
    credits: int

    @property
    def output_dimensions(self):
        return {"width": self.output_width, "height": self.output_height}


def calculate(width, height, resolution) -> PriceQuote:
    """
    Quote the price of upscaling an image.

    Raises:
        PriceUnavailableError: unknown resolution, missing dimensions, or an
            output larger than the provider accepts.
    """
    factor = RESOLUTION_FACTORS.get(resolution)
    if factor is None:
        raise PriceUnavailableError(f"Unsupported resolution: {resolution}")

    if not width or not height:
        raise PriceUnavailableError("Image dimensions unavailable")

    output_width = int(width) * factor
    output_height = int(height) * factor
    output_megapixels = Decimal(output_width * output_height) / Decimal(1_000_000)

    if output_megapixels > settings.UPSAMPLER_MAX_OUTPUT_MEGAPIXELS:
        raise PriceUnavailableError(
            f"Output of {output_width}x{output_height} exceeds the maximum supported size"
        )

    credits = max(1, math.ceil(output_megapixels / settings.UPSAMPLER_MEGAPIXELS_PER_CREDIT))
    provider_cost = Decimal(credits) * settings.UPSAMPLER_CREDIT_PRICE

    markup = Decimal(1) + settings.SMI_MARKUP_PERCENTAGE / Decimal(100)
    customer_price = (provider_cost * markup).quantize(CENTS, rounding=ROUND_HALF_UP)
    customer_price = max(customer_price, settings.SMI_MINIMUM_PRICE)

    return PriceQuote(
        customer_price=customer_price,
        provider_cost=provider_cost,
        output_width=output_width,
        output_height=output_height,
        credits=credits,
    )
