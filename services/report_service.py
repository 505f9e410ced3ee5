"""
Report service: dashboard counters and date-range order reports.
"""

from typing import Optional
from datetime import date, datetime, time, timedelta, timezone
from collections import Counter
import structlog

from config.workflow import DASHBOARD_FETCH_LIMIT, DASHBOARD_LIST_SIZE
from models.order import OrderStatus, OrderResponse, Priority, total_quantity
from models.shipment import ShipmentResponse
from models.reports import (
    DashboardStats,
    ReportKPIs,
    DailyVolume,
    BreakdownEntry,
    ReportResponse,
)
from services.entity_store import EntityStore
from exceptions import ValidationError
from utils.time_utils import utcnow, as_utc, as_date, whole_days_between

logger = structlog.get_logger(__name__)

FULFILLED_STATUSES = {OrderStatus.SHIPPED.value, OrderStatus.DELIVERED.value}


def in_range(rows: list[dict], date_from: date, date_to: date) -> list[dict]:
    """Records created between the start of date_from and the end of date_to (UTC)."""
    start = datetime.combine(date_from, time.min, tzinfo=timezone.utc)
    end = datetime.combine(date_to, time.max, tzinfo=timezone.utc)
    result = []
    for row in rows:
        created = as_utc(row.get("created_date"))
        if created and start <= created <= end:
            result.append(row)
    return result


def fulfillment_days(order: dict) -> Optional[int]:
    """Whole days from creation to the last update of a fulfilled order."""
    created = as_utc(order.get("created_date"))
    updated = as_utc(order.get("updated_date"))
    if not created or not updated:
        return None
    return whole_days_between(created, updated)


def fulfilled_orders(orders: list[dict]) -> list[dict]:
    return [o for o in orders if o.get("status") in FULFILLED_STATUSES]


def average_fulfillment_days(orders: list[dict]) -> float:
    """Mean whole-day fulfillment time over fulfilled orders, 0 if none."""
    days = [d for d in (fulfillment_days(o) for o in fulfilled_orders(orders)) if d is not None]
    if not days:
        return 0.0
    return round(sum(days) / len(days), 1)


def breakdown(values: list[str]) -> list[BreakdownEntry]:
    """Counts per value, most common first, with capitalized names."""
    return [
        BreakdownEntry(name=name.capitalize(), value=count)
        for name, count in Counter(values).most_common()
    ]


class ReportService:
    """Dashboard and report calculations over orders and shipments."""

    def __init__(self):
        self.orders = EntityStore("orders")
        self.shipments = EntityStore("shipments")

    def get_dashboard(self, now: Optional[datetime] = None) -> DashboardStats:
        """
        Front-page counters over the most recent orders and shipments.

        Pending counts pending and processing orders; urgent counts rush
        and priority orders; today starts at UTC midnight.
        """
        now = now or utcnow()
        today = now.date()

        orders = self.orders.list(sort="-created_date", limit=DASHBOARD_FETCH_LIMIT)
        shipments = self.shipments.list(sort="-created_date", limit=DASHBOARD_FETCH_LIMIT)

        pending = [
            o for o in orders
            if o.get("status") in (OrderStatus.PENDING.value, OrderStatus.PROCESSING.value)
        ]
        urgent = [
            o for o in orders
            if o.get("priority") in (Priority.RUSH.value, Priority.PRIORITY.value)
        ]
        shipped_today = [s for s in shipments if as_date(s.get("created_date")) == today]

        return DashboardStats(
            pending_orders=len(pending),
            urgent_orders=len(urgent),
            shipments_today=len(shipped_today),
            spend_today=round(sum(s.get("shipping_cost") or 0 for s in shipped_today), 2),
            recent_orders=[OrderResponse.model_validate(o) for o in pending[:DASHBOARD_LIST_SIZE]],
            recent_shipments=[ShipmentResponse.model_validate(s) for s in shipments[:DASHBOARD_LIST_SIZE]],
        )

    def get_report(self, date_from: date, date_to: date) -> ReportResponse:
        """
        Orders and shipments created in a date range, inclusive.

        orders_per_day counts shipped and delivered orders only.

        Raises:
            ValidationError: date_from after date_to
        """
        if date_from > date_to:
            raise ValidationError(
                "date_from must be on or before date_to",
                code="INVALID_DATE_RANGE",
                details={"date_from": date_from.isoformat(), "date_to": date_to.isoformat()}
            )

        orders = in_range(self.orders.list(sort="-created_date"), date_from, date_to)
        shipments = in_range(self.shipments.list(sort="-created_date"), date_from, date_to)

        days = (date_to - date_from).days + 1
        fulfilled = fulfilled_orders(orders)

        kpis = ReportKPIs(
            orders_per_day=round(len(fulfilled) / days, 1),
            avg_fulfillment_days=average_fulfillment_days(orders),
            total_items=sum(total_quantity(o.get("items")) for o in orders),
            total_orders=len(orders),
            total_shipments=len(shipments),
        )

        order_days = Counter(as_date(o.get("created_date")) for o in orders)
        shipment_days = Counter(as_date(s.get("created_date")) for s in shipments)
        daily = []
        for offset in range(days):
            day = date_from + timedelta(days=offset)
            daily.append(DailyVolume(date=day, orders=order_days[day], shipments=shipment_days[day]))

        logger.info(
            "report_generated",
            date_from=date_from.isoformat(),
            date_to=date_to.isoformat(),
            orders=len(orders),
            shipments=len(shipments)
        )

        return ReportResponse(
            date_from=date_from,
            date_to=date_to,
            kpis=kpis,
            daily=daily,
            status_breakdown=breakdown([o.get("status") or OrderStatus.PENDING.value for o in orders]),
            priority_breakdown=breakdown([o.get("priority") or Priority.NORMAL.value for o in orders]),
        )


# Singleton instance
_report_service: Optional[ReportService] = None


def get_report_service() -> ReportService:
    """Get or create ReportService instance."""
    global _report_service
    if _report_service is None:
        _report_service = ReportService()
    return _report_service
