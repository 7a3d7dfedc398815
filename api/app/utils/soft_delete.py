from datetime import datetime, timezone
from typing import Optional

from ..domain.errors import ValidationError


def filter_active(query):
    """Apply deleted_at IS NULL filter to SQLAlchemy query objects."""
    return query.filter_by(deleted_at=None)


def guard_not_deleted(resource, msg: str, code: str = "GONE_RESOURCE") -> None:
    """Ensure ``resource`` is not soft-deleted, else raise a validation error."""
    if resource and getattr(resource, "deleted_at", None) is not None:
        raise ValidationError(msg, {"reason": code})


def soft_delete(model_obj, now: Optional[datetime] = None) -> None:
    """Mark ``model_obj`` as deleted by setting ``deleted_at``."""
    model_obj.deleted_at = now or datetime.now(timezone.utc)
