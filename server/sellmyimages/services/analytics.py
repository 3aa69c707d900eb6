"""Click tracking and sales reporting."""

import logging
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal

from django.db.models import Count, Sum
from django.utils import timezone

from sellmyimages.models import ButtonClick, PaymentStatus, SiteImage, UpscaleJob

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")
CENTS = Decimal("0.01")


def _money(value) -> Decimal:
    return Decimal(value or 0).quantize(CENTS, rounding=ROUND_HALF_UP)


def _rate(part, whole) -> float:
    if not whole:
        return 0.0
    return round(part * 100 / whole, 2)


def _since(days, now=None):
    return (now or timezone.now()) - timedelta(days=days)


def track_click(post_id, attachment_id=None) -> bool:
    """Record a buy-button click; bad references are dropped, never raised."""
    site_image = None
    if attachment_id is not None:
        site_image = SiteImage.objects.filter(pk=attachment_id).first()
    try:
        ButtonClick.objects.create(post_id=post_id, site_image=site_image)
    except Exception as exc:
        logger.warning(f"Could not record click for post {post_id}: {exc}")
        return False
    return True


def paid_sales(days=30, now=None):
    """Paid jobs with a price snapshot; admin jobs carry none and are left out."""
    return UpscaleJob.objects.filter(
        payment_status=PaymentStatus.PAID,
        customer_price__isnull=False,
        created_at__gte=_since(days, now),
    )


def sales_summary(days=30, now=None):
    total_jobs = UpscaleJob.objects.filter(created_at__gte=_since(days, now)).count()
    totals = paid_sales(days, now).aggregate(
        paid_jobs=Count("id"),
        revenue=Sum("customer_price"),
        cost=Sum("provider_cost"),
    )
    paid_jobs = totals["paid_jobs"]
    revenue = _money(totals["revenue"])
    cost = _money(totals["cost"])

    return {
        "total_jobs": total_jobs,
        "paid_jobs": paid_jobs,
        "total_revenue": revenue,
        "total_cost": cost,
        "total_profit": revenue - cost,
        "avg_price": _money(revenue / paid_jobs) if paid_jobs else ZERO,
    }


def top_selling_posts(days=30, limit=10, now=None):
    rows = (
        paid_sales(days, now)
        .filter(post_id__isnull=False)
        .values("post_id")
        .annotate(sales_count=Count("id"), revenue=Sum("customer_price"))
        .order_by("-revenue", "-sales_count", "post_id")[:limit]
    )
    rows = list(rows)

    clicks = dict(
        ButtonClick.objects.filter(
            post_id__in=[row["post_id"] for row in rows],
            created_at__gte=_since(days, now),
        )
        .values("post_id")
        .annotate(clicks=Count("id"))
        .values_list("post_id", "clicks")
    )

    return [
        {
            "post_id": row["post_id"],
            "sales_count": row["sales_count"],
            "revenue": _money(row["revenue"]),
            "clicks": clicks.get(row["post_id"], 0),
            "conversion_rate": _rate(row["sales_count"], clicks.get(row["post_id"], 0)),
        }
        for row in rows
    ]


def conversion_funnel(days=30, now=None):
    total_clicks = ButtonClick.objects.filter(created_at__gte=_since(days, now)).count()
    totals = paid_sales(days, now).aggregate(sales=Count("id"), revenue=Sum("customer_price"))
    total_sales = totals["sales"]
    revenue = _money(totals["revenue"])

    return {
        "total_clicks": total_clicks,
        "total_sales": total_sales,
        "conversion_rate": _rate(total_sales, total_clicks),
        "revenue_per_click": _money(revenue / total_clicks) if total_clicks else ZERO,
    }
