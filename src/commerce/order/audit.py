"""Append-only audit trail of order status changes."""

import json
from datetime import UTC, datetime

from protean.fields import DateTime, Identifier, String, Text
from protean.utils.globals import current_domain

from commerce.domain import commerce
from commerce.order.order import StatusChange


@commerce.aggregate
class OrderAudit:
    """One row per successful transition. Rows are never updated or deleted."""

    order_id = Identifier(required=True)
    changed_by = String(max_length=255)
    action = String(required=True, max_length=100)
    previous_status = String(max_length=50)
    new_status = String(required=True, max_length=50)
    details = Text()  # JSON metadata
    created_at = DateTime(default=lambda: datetime.now(UTC))

    def to_dict(self) -> dict:
        return {
            "audit_id": str(self.id),
            "order_id": str(self.order_id),
            "changed_by": self.changed_by,
            "action": self.action,
            "previous_status": self.previous_status,
            "new_status": self.new_status,
            "metadata": json.loads(self.details) if self.details else {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


def status_change_action(change: StatusChange) -> str:
    return f"STATUS_CHANGE_{change.previous_status.value}_TO_{change.new_status.value}"


def record_transition(order, change: StatusChange, changed_by, action: str | None = None, **metadata) -> OrderAudit:
    """Append the audit row for ``change`` inside the current unit of work."""
    entry = OrderAudit(
        order_id=order.id,
        changed_by=changed_by,
        action=action or status_change_action(change),
        previous_status=change.previous_status.value,
        new_status=change.new_status.value,
        details=json.dumps(
            {"version": change.version, "timestamp": change.changed_at.isoformat(), **metadata},
            default=str,
        ),
        created_at=change.changed_at,
    )
    current_domain.repository_for(OrderAudit).add(entry)
    return entry


def _audit_sort_key(row: OrderAudit):
    # Rows of one order share a clock; the order version breaks ties
    return row.created_at, json.loads(row.details or "{}").get("version", 0)


def get_order_audit(order_id) -> list[dict]:
    """Audit rows for an order, newest first."""
    rows = current_domain.repository_for(OrderAudit)._dao.query.filter(order_id=str(order_id)).all().items
    rows = sorted(rows, key=_audit_sort_key, reverse=True)
    return [row.to_dict() for row in rows]
