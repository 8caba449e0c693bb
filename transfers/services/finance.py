"""
Revenue / driver cost / profit per completed order.

Driver cost is what was approved for the order's route segments. Fuel
receipts are money already advanced to the driver and are reported on their
own; they never reduce profit.
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from django.db.models import Sum
from django.db.models.functions import Coalesce, TruncDate
from django.utils import timezone

from transfers.models import ChecklistExpense, Order, OrderSegment
from transfers.policies.status_machine import COMPLETED_FAMILY

ZERO = Decimal("0.00")

BUCKETS = ("day", "week", "month", "year")


@dataclass(frozen=True)
class OrderProfitRow:
    order_id: int
    order_number: str
    report_date: date
    revenue: Decimal
    driver_cost: Decimal
    fuel_advance: Decimal

    @property
    def profit(self) -> Decimal:
        return self.revenue - self.driver_cost


@dataclass
class ProfitTotals:
    revenue: Decimal = ZERO
    driver_cost: Decimal = ZERO
    fuel_advance: Decimal = ZERO
    profit: Decimal = ZERO

    def add(self, row: OrderProfitRow):
        self.revenue += row.revenue
        self.driver_cost += row.driver_cost
        self.fuel_advance += row.fuel_advance
        self.profit += row.profit


@dataclass
class ProfitReport:
    date_from: date
    date_to: date
    rows: list = field(default_factory=list)
    totals: ProfitTotals = field(default_factory=ProfitTotals)
    buckets: "OrderedDict[date, ProfitTotals]" = field(default_factory=OrderedDict)


def report_date(order) -> date:
    """Dropoff date, else pickup date, else the day the order was created."""
    return (
        order.dropoff_date or order.pickup_date or timezone.localdate(order.created_at)
    )


def bucket_start(day: date, bucket: str) -> date:
    if bucket == "day":
        return day
    if bucket == "week":
        return day - timedelta(days=day.weekday())
    if bucket == "month":
        return day.replace(day=1)
    if bucket == "year":
        return day.replace(month=1, day=1)
    raise ValueError(f"Unknown bucket: {bucket!r}")


def _sum_by_order(queryset, order_field, amount_field):
    return {
        row[order_field]: row["total"] or ZERO
        for row in queryset.values(order_field).annotate(total=Sum(amount_field))
    }


def profit_report(company, date_from: date, date_to: date, bucket: Optional[str] = None):
    if date_from > date_to:
        date_from, date_to = date_to, date_from
    if bucket is not None and bucket not in BUCKETS:
        raise ValueError(f"Unknown bucket: {bucket!r}")

    # TruncDate uses the current time zone, matching timezone.localdate.
    orders = list(
        Order.objects.filter(company=company, status__in=COMPLETED_FAMILY)
        .annotate(
            report_day=Coalesce("dropoff_date", "pickup_date", TruncDate("created_at"))
        )
        .filter(report_day__gte=date_from, report_day__lte=date_to)
        .order_by("report_day", "pk")
    )
    order_ids = [order.pk for order in orders]

    driver_cost = _sum_by_order(
        OrderSegment.objects.filter(
            order_id__in=order_ids,
            price_status=OrderSegment.PriceStatus.APPROVED,
            price__isnull=False,
        ),
        "order_id",
        "price",
    )
    fuel = _sum_by_order(
        ChecklistExpense.objects.filter(
            checklist__order_id__in=order_ids,
            type=ChecklistExpense.ExpenseType.FUEL,
        ),
        "checklist__order_id",
        "amount",
    )

    report = ProfitReport(date_from=date_from, date_to=date_to)
    for order in orders:
        row = OrderProfitRow(
            order_id=order.pk,
            order_number=order.order_number,
            report_date=order.report_day,
            revenue=order.driver_price or ZERO,
            driver_cost=driver_cost.get(order.pk, ZERO),
            fuel_advance=fuel.get(order.pk, ZERO),
        )
        report.rows.append(row)
        report.totals.add(row)
        if bucket:
            key = bucket_start(row.report_date, bucket)
            report.buckets.setdefault(key, ProfitTotals()).add(row)
    return report
