from typing import Optional

from ..models import AuditLog, School


def log_action(
    *,
    action: str,
    instance,
    user=None,
    school: Optional[School] = None,
    changes: dict | None = None,
):
    """
    Central audit logger.
    Call inside the caller's transaction so the row commits with the change.
    """

    if not school:
        school = getattr(instance, "school", None)

    AuditLog.objects.create(
        school=school,
        user=user,
        action=action,
        object_type=instance.__class__.__name__,
        object_id=str(instance.pk),
        changes=changes,
    )
