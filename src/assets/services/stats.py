"""Inventory counters for the home dashboard."""

from django.db.models import Count, Q

from ..models import Asset

NO_CATEGORY = "No category"


def inventory_stats():
    """Count assets by status and by category.

    ``total`` and the per-category counts cover assets in service only;
    retired assets are counted separately.
    """
    totals = Asset.objects.aggregate(
        total=Count("pk", filter=~Q(status="retired")),
        in_stock=Count("pk", filter=Q(status="in_stock")),
        assigned=Count("pk", filter=Q(status="assigned")),
        repair=Count("pk", filter=Q(status="repair")),
        retired=Count("pk", filter=Q(status="retired")),
    )

    rows = (
        Asset.objects.exclude(status="retired")
        .values("category__name")
        .annotate(count=Count("pk"))
    )
    by_category = [
        {"name": row["category__name"] or NO_CATEGORY, "count": row["count"]}
        for row in rows
    ]
    by_category.sort(key=lambda c: (-c["count"], c["name"].lower()))

    return {**totals, "by_category": by_category}
