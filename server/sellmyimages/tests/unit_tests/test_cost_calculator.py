from decimal import Decimal

from django.test import SimpleTestCase, override_settings

from sellmyimages.services.cost_calculator import calculate
from sellmyimages.utils import PriceUnavailableError


@override_settings(
    UPSAMPLER_CREDIT_PRICE=Decimal("0.04"),
    UPSAMPLER_MEGAPIXELS_PER_CREDIT=4,
    UPSAMPLER_MAX_OUTPUT_MEGAPIXELS=400,
    SMI_MARKUP_PERCENTAGE=Decimal("550"),
    SMI_MINIMUM_PRICE=Decimal("1.00"),
)
class CostCalculatorTest(SimpleTestCase):
    def test_small_output_hits_minimum_price(self):
        quote = calculate(1000, 800, "2x")

        self.assertEqual(quote.credits, 1)
        self.assertEqual(quote.provider_cost, Decimal("0.04"))
        self.assertEqual(quote.customer_price, Decimal("1.00"))
        self.assertEqual(quote.output_dimensions, {"width": 2000, "height": 1600})

    def test_credits_are_charged_per_started_block(self):
        quote = calculate(1000, 800, "8x")

        # 8000x6400 = 51.2 MP -> 13 credits
        self.assertEqual(quote.credits, 13)
        self.assertEqual(quote.provider_cost, Decimal("0.52"))
        self.assertEqual(quote.customer_price, Decimal("3.38"))

    def test_markup_is_rounded_to_cents(self):
        quote = calculate(1000, 800, "4x")

        self.assertEqual(quote.credits, 4)
        self.assertEqual(quote.customer_price, Decimal("1.04"))

    def test_unknown_resolution(self):
        with self.assertRaises(PriceUnavailableError):
            calculate(1000, 800, "3x")

    def test_missing_dimensions(self):
        with self.assertRaises(PriceUnavailableError) as ctx:
            calculate(0, 800, "2x")
        self.assertEqual(ctx.exception.reason, "Image dimensions unavailable")

    def test_output_too_large(self):
        with self.assertRaises(PriceUnavailableError):
            calculate(3000, 3000, "8x")
