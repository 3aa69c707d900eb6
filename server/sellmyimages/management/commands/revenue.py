"""Django management command printing sales reports.

Usage::

    python manage.py revenue report --days 90
    python manage.py revenue top-posts --limit 5
"""

from django.core.management.base import BaseCommand

from sellmyimages.services import analytics


class Command(BaseCommand):
    """Print sales summary, top-selling posts and the conversion funnel."""

    help = "Show revenue reports"

    def add_arguments(self, parser):
        parser.add_argument(
            "report",
            nargs="?",
            default="report",
            choices=["report", "summary", "top-posts", "funnel"],
        )
        parser.add_argument("--days", type=int, default=30, help="Number of days to include")
        parser.add_argument("--limit", type=int, default=10, help="Number of top posts to show")

    def handle(self, *args, **options):
        report = options["report"]
        days = options["days"]

        if report in ("report", "summary"):
            self.summary(days)
        if report in ("report", "top-posts"):
            if report == "report":
                self.stdout.write("")
            self.top_posts(days, options["limit"])
        if report in ("report", "funnel"):
            if report == "report":
                self.stdout.write("")
            self.funnel(days)

    def summary(self, days):
        data = analytics.sales_summary(days=days)
        self.stdout.write(self.style.HTTP_INFO(f"=== Sales Summary ({days} days) ==="))
        self.stdout.write(f"Total Jobs:    {data['total_jobs']}")
        self.stdout.write(f"Paid Jobs:     {data['paid_jobs']}")
        self.stdout.write(f"Total Revenue: ${data['total_revenue']}")
        self.stdout.write(f"Total Cost:    ${data['total_cost']}")
        self.stdout.write(f"Total Profit:  ${data['total_profit']}")
        self.stdout.write(f"Avg Price:     ${data['avg_price']}")

    def top_posts(self, days, limit):
        rows = analytics.top_selling_posts(days=days, limit=limit)
        self.stdout.write(self.style.HTTP_INFO(f"=== Top Selling Posts ({days} days) ==="))

        if not rows:
            self.stdout.write(self.style.WARNING("No sales data found."))
            return

        self.stdout.write(f"{'post_id':>8}  {'sales':>5}  {'revenue':>10}  {'clicks':>6}  {'conversion':>10}")
        for row in rows:
            self.stdout.write(
                f"{row['post_id']:>8}  {row['sales_count']:>5}  {'$' + str(row['revenue']):>10}  "
                f"{row['clicks']:>6}  {str(row['conversion_rate']) + '%':>10}"
            )

    def funnel(self, days):
        data = analytics.conversion_funnel(days=days)
        self.stdout.write(self.style.HTTP_INFO(f"=== Conversion Funnel ({days} days) ==="))
        self.stdout.write(f"Total Clicks:      {data['total_clicks']}")
        self.stdout.write(f"Total Sales:       {data['total_sales']}")
        self.stdout.write(f"Conversion Rate:   {data['conversion_rate']}%")
        self.stdout.write(f"Revenue/Click:     ${data['revenue_per_click']}")
