# Overview: Read-only order queries (listing, detail); never writes.

from __future__ import annotations

from sqlalchemy import String, cast, or_

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import Order
from backoffice.time_utils import parse_iso_date, parse_range_end
from .payment_service import get_payment_summary


SORTABLE_FIELDS = {
    "created_at": Order.created_at,
    "order_number": Order.order_number,
    "total_cents": Order.total_cents,
    "status": Order.status,
    "payment_status": Order.payment_status,
}


def _parse_date_filter(value: str | None, field: str, parser=parse_iso_date):
    try:
        return parser(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 date", details={"field": field})


def list_orders(
    *,
    status: str | None = None,
    payment_status: str | None = None,
    payment_method: str | None = None,
    customer_id: int | None = None,
    user_id: int | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    search: str | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Order], int]:
    """
    Filtered, paginated order listing.

    Date filters are whole days in UTC: start_date from 00:00, end_date
    through the end of that day.

    Returns (orders, total_matching).
    """
    if sort_by not in SORTABLE_FIELDS:
        raise ValidationError(f"Cannot sort by {sort_by}", details={"field": "sort_by"})
    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be positive")

    q = db.session.query(Order)

    if status:
        q = q.filter(Order.status == status)
    if payment_status:
        q = q.filter(Order.payment_status == payment_status)
    if payment_method:
        q = q.filter(Order.payment_method == payment_method)
    if customer_id is not None:
        q = q.filter(Order.customer_id == customer_id)
    if user_id is not None:
        q = q.filter(Order.user_id == user_id)

    start = _parse_date_filter(start_date, "start_date")
    if start is not None:
        q = q.filter(Order.created_at >= start)

    end, inclusive = _parse_date_filter(end_date, "end_date", parse_range_end)
    if end is not None:
        q = q.filter(Order.created_at <= end if inclusive else Order.created_at < end)

    if search:
        pattern = f"%{search}%"
        q = q.filter(or_(cast(Order.order_number, String).like(pattern), Order.notes.like(pattern)))

    total = q.count()

    column = SORTABLE_FIELDS[sort_by]
    ordering = column.asc() if sort_order.lower() == "asc" else column.desc()
    orders = (
        q.order_by(ordering, Order.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return orders, total


def get_order_detail(order_id: int) -> dict:
    """
    Order with items, payments, customer and staff user.

    payment_status and total paid are derived from the payment rows here,
    not read from the stored column.
    """
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError(f"Order with ID {order_id} not found", details={"order_id": order_id})

    summary = get_payment_summary(order)

    data = order.to_dict()
    data["payment_status"] = summary["payment_status"]
    data["total_paid_cents"] = summary["total_paid_cents"]
    data["remaining_cents"] = summary["remaining_cents"]
    data["items"] = [item.to_dict() for item in order.items]
    data["payments"] = summary["payments"]
    data["customer"] = order.customer.to_dict() if order.customer else None
    data["user"] = order.user.to_dict() if order.user else None
    return data
