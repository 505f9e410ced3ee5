"""
Production service: task scheduling, the task state machine, workstations
and the daily production list.

Auto-scheduling places one task per unscheduled production order, back to
back on a single running cursor, with a workstation drawn from an
injectable random source.
"""

from typing import Optional
from datetime import datetime, timedelta
from html import escape
from math import ceil
import random
import structlog

from config.workflow import (
    HOURS_PER_ITEM,
    MIN_TASK_HOURS,
    HOURS_PER_WORKDAY,
    DEFAULT_WORKSTATION,
    DEFAULT_CAPACITY_HOURS_PER_DAY,
    TASK_FETCH_LIMIT,
)
from models.order import OrderStatus, priority_rank, total_quantity
from models.production import (
    TaskStatus,
    is_valid_task_transition,
    ProductionTaskCreate,
    ProductionTaskResponse,
    AutoScheduleResponse,
    WorkStationCreate,
    WorkStationUpdate,
    WorkStationResponse,
    WorkStationUtilization,
    ProductionKPIs,
    ProductionListItem,
)
from integrations.mailer import send_html_email
from services.entity_store import EntityStore
from services.settings_service import get_settings_service
from services.export_service import get_export_service
from exceptions import (
    ProductionTaskNotFoundError,
    WorkStationNotFoundError,
    InvalidStatusTransitionError,
    BlockedReasonRequiredError,
    ValidationError,
)
from utils.time_utils import utcnow, as_utc, as_date, whole_hours_between, start_of_week

logger = structlog.get_logger(__name__)


def estimate_task_hours(items: list) -> float:
    """
    Half an hour per unit, never under one hour.

    An order with no quantities counts as one unit.
    """
    count = total_quantity(items) or 1
    return max(MIN_TASK_HOURS, count * HOURS_PER_ITEM)


class ProductionService:
    """
    Production business logic.

    Handles tasks, workstations, KPIs and the production list.
    """

    def __init__(self):
        self.tasks = EntityStore("production_tasks")
        self.workstations = EntityStore("workstations")
        self.orders = EntityStore("orders")

    def _get_task_row(self, task_id: str) -> dict:
        row = self.tasks.get(task_id)
        if not row:
            raise ProductionTaskNotFoundError(task_id)
        return row

    def _get_station_row(self, station_id: str) -> dict:
        row = self.workstations.get(station_id)
        if not row:
            raise WorkStationNotFoundError(station_id)
        return row

    # ===================
    # TASKS
    # ===================

    def get_tasks(
        self,
        status: Optional[TaskStatus] = None,
        workstation: Optional[str] = None
    ) -> list[ProductionTaskResponse]:
        """Tasks by scheduled start, latest first."""
        criteria = {}
        if status:
            criteria["status"] = TaskStatus(status).value
        if workstation:
            criteria["workstation"] = workstation

        rows = self.tasks.filter(criteria, sort="-scheduled_start", limit=TASK_FETCH_LIMIT)
        return [ProductionTaskResponse.model_validate(row) for row in rows]

    def get_task(self, task_id: str) -> ProductionTaskResponse:
        return ProductionTaskResponse.model_validate(self._get_task_row(task_id))

    def create_task(self, data: ProductionTaskCreate) -> ProductionTaskResponse:
        """
        Schedule a task by hand.

        The task ends estimated_hours after it starts. order_number is
        copied from the order, or "N/A" without one.
        """
        order_number = "N/A"
        if data.order_id:
            order = self.orders.get(data.order_id)
            if order:
                order_number = order.get("order_number") or "N/A"

        start = as_utc(data.scheduled_start)
        record = data.model_dump(mode="json")
        record.update({
            "order_number": order_number,
            "status": TaskStatus.SCHEDULED.value,
            "scheduled_start": start.isoformat(),
            "scheduled_end": (start + timedelta(hours=data.estimated_hours)).isoformat(),
        })

        row = self.tasks.create(record)

        logger.info(
            "production_task_created",
            task_id=row.get("id"),
            order_number=order_number,
            workstation=data.workstation
        )

        return ProductionTaskResponse.model_validate(row)

    def _transition(self, task_id: str, new_status: TaskStatus, updates: dict) -> ProductionTaskResponse:
        row = self._get_task_row(task_id)
        current = TaskStatus(row.get("status") or TaskStatus.SCHEDULED.value)

        if not is_valid_task_transition(current, new_status):
            raise InvalidStatusTransitionError(current.value, new_status.value, entity="Task")

        updated = self.tasks.update(task_id, {"status": new_status.value, **updates})
        if updated is None:
            raise ProductionTaskNotFoundError(task_id)

        logger.info(
            "production_task_transitioned",
            task_id=task_id,
            from_status=current.value,
            to_status=new_status.value
        )

        return ProductionTaskResponse.model_validate(updated)

    def start_task(self, task_id: str, now: Optional[datetime] = None) -> ProductionTaskResponse:
        """scheduled -> in_progress, stamping actual_start."""
        now = now or utcnow()
        return self._transition(task_id, TaskStatus.IN_PROGRESS, {"actual_start": now.isoformat()})

    def complete_task(self, task_id: str, now: Optional[datetime] = None) -> ProductionTaskResponse:
        """
        in_progress -> completed.

        actual_hours is the whole hours since actual_start, or the estimate
        when the task was never started through start_task.
        """
        now = now or utcnow()
        row = self._get_task_row(task_id)

        if row.get("actual_start"):
            actual_hours = whole_hours_between(as_utc(row["actual_start"]), now)
        else:
            actual_hours = row.get("estimated_hours")

        return self._transition(task_id, TaskStatus.COMPLETED, {
            "actual_end": now.isoformat(),
            "actual_hours": actual_hours,
        })

    def block_task(self, task_id: str, reason: str) -> ProductionTaskResponse:
        """
        in_progress -> blocked.

        Raises:
            BlockedReasonRequiredError: Empty reason; nothing is read or written
        """
        reason = (reason or "").strip()
        if not reason:
            raise BlockedReasonRequiredError(task_id)
        return self._transition(task_id, TaskStatus.BLOCKED, {"blocked_reason": reason})

    def resume_task(self, task_id: str) -> ProductionTaskResponse:
        """blocked -> in_progress, clearing the reason."""
        return self._transition(task_id, TaskStatus.IN_PROGRESS, {"blocked_reason": None})

    # ===================
    # AUTO-SCHEDULE
    # ===================

    def auto_schedule(
        self,
        rng: Optional[random.Random] = None,
        now: Optional[datetime] = None
    ) -> AutoScheduleResponse:
        """
        Create tasks for production orders that have none.

        Orders go rush first, then priority, then normal, oldest first
        within a priority. Each task starts where the previous one ended
        and lasts ceil(hours / 8) days. All tasks are written in one bulk
        create.
        """
        rng = rng or random.Random()
        cursor = now or utcnow()

        orders = self.orders.filter({"status": OrderStatus.PRODUCTION.value}, sort="created_date")
        scheduled_ids = {row.get("order_id") for row in self.tasks.list() if row.get("order_id")}
        candidates = [o for o in orders if o["id"] not in scheduled_ids]

        if not candidates:
            logger.info("auto_schedule_nothing_to_do")
            return AutoScheduleResponse(count=0, message="No new orders to schedule")

        candidates.sort(key=lambda o: priority_rank(o.get("priority")))

        station_names = [row["name"] for row in self.workstations.filter({"is_active": True})]

        records = []
        for order in candidates:
            items = order.get("items") or []
            count = total_quantity(items) or 1
            hours = estimate_task_hours(items)
            end = cursor + timedelta(days=ceil(hours / HOURS_PER_WORKDAY))

            records.append({
                "order_id": order["id"],
                "order_number": order.get("order_number"),
                "task_name": f"{order.get('customer_name') or order.get('order_number')} - {count} items",
                "workstation": rng.choice(station_names) if station_names else DEFAULT_WORKSTATION,
                "status": TaskStatus.SCHEDULED.value,
                "priority": order.get("priority") or "normal",
                "scheduled_start": cursor.isoformat(),
                "scheduled_end": end.isoformat(),
                "estimated_hours": hours,
                "materials_ready": True,
            })
            cursor = end

        rows = self.tasks.bulk_create(records)

        logger.info(
            "auto_schedule_completed",
            count=len(rows),
            workstations=len(station_names),
            last_end=cursor.isoformat()
        )

        return AutoScheduleResponse(
            count=len(rows),
            message=f"Scheduled {len(rows)} new tasks",
            tasks=[ProductionTaskResponse.model_validate(row) for row in rows],
        )

    # ===================
    # WORKSTATIONS
    # ===================

    def list_workstations(self, active_only: bool = False) -> list[WorkStationResponse]:
        if active_only:
            rows = self.workstations.filter({"is_active": True}, sort="name")
        else:
            rows = self.workstations.list(sort="name")
        return [WorkStationResponse.model_validate(row) for row in rows]

    def create_workstation(self, data: WorkStationCreate) -> WorkStationResponse:
        row = self.workstations.create(data.model_dump(mode="json"))
        logger.info("workstation_created", name=data.name)
        return WorkStationResponse.model_validate(row)

    def update_workstation(self, station_id: str, data: WorkStationUpdate) -> WorkStationResponse:
        self._get_station_row(station_id)
        row = self.workstations.update(station_id, data.model_dump(mode="json", exclude_unset=True))
        if row is None:
            raise WorkStationNotFoundError(station_id)
        return WorkStationResponse.model_validate(row)

    def delete_workstation(self, station_id: str) -> bool:
        self._get_station_row(station_id)
        self.workstations.delete(station_id)
        logger.info("workstation_deleted", station_id=station_id)
        return True

    def get_utilization(self) -> list[WorkStationUtilization]:
        """In-progress load per active workstation, capped at 100%."""
        in_progress = self.tasks.filter({"status": TaskStatus.IN_PROGRESS.value})

        result = []
        for station in self.list_workstations(active_only=True):
            active = [t for t in in_progress if t.get("workstation") == station.name]
            hours_used = sum(t.get("estimated_hours") or 0 for t in active)
            capacity = station.capacity_hours_per_day or DEFAULT_CAPACITY_HOURS_PER_DAY
            result.append(WorkStationUtilization(
                workstation=station,
                active_tasks=len(active),
                hours_used=hours_used,
                capacity=capacity,
                utilization=round(min(100.0, hours_used / capacity * 100), 1),
            ))
        return result

    # ===================
    # KPIs
    # ===================

    def get_kpis(self, now: Optional[datetime] = None) -> ProductionKPIs:
        """Counters for the production page. Weeks start on Sunday."""
        today = (now or utcnow()).date()
        week_start = start_of_week(today)
        week_end = week_start + timedelta(days=6)

        tasks = [
            ProductionTaskResponse.model_validate(row)
            for row in self.tasks.list(sort="-scheduled_start", limit=TASK_FETCH_LIMIT)
        ]

        completed_this_week = 0
        for t in tasks:
            end_day = as_date(t.actual_end)
            if t.status == TaskStatus.COMPLETED and end_day and week_start <= end_day <= week_end:
                completed_this_week += 1

        return ProductionKPIs(
            scheduled_today=sum(
                1 for t in tasks
                if t.status == TaskStatus.SCHEDULED and as_date(t.scheduled_start) == today
            ),
            in_progress=sum(1 for t in tasks if t.status == TaskStatus.IN_PROGRESS),
            blocked=sum(1 for t in tasks if t.status == TaskStatus.BLOCKED),
            completed_this_week=completed_this_week,
        )

    # ===================
    # PRODUCTION LIST
    # ===================

    def build_production_list(self, order_ids: Optional[list[str]] = None) -> list[ProductionListItem]:
        """
        One line per item of the orders in production.

        Items show their SKU's shorthand where one exists, else the item
        name. An empty order_ids means every production order.
        """
        orders = self.orders.filter({"status": OrderStatus.PRODUCTION.value}, sort="created_date")
        if order_ids:
            wanted = set(order_ids)
            orders = [o for o in orders if o["id"] in wanted]

        shorthands = get_settings_service().get_shorthand_map()

        lines = []
        for order in orders:
            for item in order.get("items") or []:
                shorthand = shorthands.get((item.get("sku") or "").upper()) or {}
                lines.append(ProductionListItem(
                    order_number=order.get("order_number") or "",
                    item=shorthand.get("shorthand") or item.get("name") or item.get("sku") or "",
                    quantity=int(item.get("quantity") or 0),
                    special_options=shorthand.get("special_options"),
                    order_options=item.get("options"),
                ))

        logger.info("production_list_built", orders=len(orders), lines=len(lines))

        return lines

    def email_production_list(self, recipient: str, order_ids: Optional[list[str]] = None) -> int:
        """
        Email the production list as an HTML table with the workbook attached.

        Returns:
            Number of lines sent

        Raises:
            ValidationError: Nothing in production
        """
        items = self.build_production_list(order_ids)
        if not items:
            raise ValidationError(
                "No items to include in the production list",
                code="EMPTY_PRODUCTION_LIST"
            )

        today = utcnow().date()
        subject = f"Production List - {today.strftime('%m/%d/%Y')}"

        rows_html = "".join(
            "<tr>"
            f"<td>{escape(item.order_number)}</td>"
            f"<td>{escape(item.item)}</td>"
            f"<td>{item.quantity}</td>"
            f"<td>{escape(item.special_options or '')}</td>"
            f"<td>{escape(item.order_options or '')}</td>"
            "</tr>"
            for item in items
        )
        html_body = (
            f"<h2>{escape(subject)}</h2>"
            "<table border=\"1\" cellpadding=\"6\" cellspacing=\"0\">"
            "<thead><tr><th>Order #</th><th>Item Name</th><th>Qty</th>"
            "<th>Special Options</th><th>Order Options</th></tr></thead>"
            f"<tbody>{rows_html}</tbody></table>"
            f"<p><strong>Total items: {sum(i.quantity for i in items)}</strong></p>"
        )

        workbook = get_export_service().generate_production_list_excel(items, today)
        send_html_email(
            to=recipient,
            subject=subject,
            html_body=html_body,
            attachment=(
                f"production-list-{today.isoformat()}.xlsx",
                workbook.getvalue(),
                "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            ),
        )

        logger.info("production_list_emailed", recipient=recipient, lines=len(items))

        return len(items)


# Singleton instance
_production_service: Optional[ProductionService] = None


def get_production_service() -> ProductionService:
    """Get or create ProductionService instance."""
    global _production_service
    if _production_service is None:
        _production_service = ProductionService()
    return _production_service
