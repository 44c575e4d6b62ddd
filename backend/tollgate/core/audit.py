"""Admin action audit trail.

Admin-directed status changes do not write CreditLog rows; they are
recorded here as structured log events instead. Storage of the events is
left to the log pipeline.
"""

import uuid
from typing import Any

import structlog

audit_logger = structlog.get_logger("tollgate.audit")


def record_admin_action(
    action: str,
    *,
    admin_id: uuid.UUID,
    entity_type: str,
    entity_id: uuid.UUID | str | None = None,
    **details: Any,
) -> None:
    """Emit one audit event for an admin-initiated change.

    Args:
        action: Action name (e.g. "user.status_changed").
        admin_id: Admin who performed the action.
        entity_type: Kind of entity affected ("user", "credit_batch", ...).
        entity_id: Affected entity, if a single one.
        **details: Action-specific fields (previous/new status, counts).
    """
    audit_logger.info(
        action,
        admin_id=str(admin_id),
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        **details,
    )
