# utils/activity.py
import logging
from typing import Optional

from db import EntityStore
from models.activity import Activity, ActivityDetails

logger = logging.getLogger(__name__)


def log_activity(
    store: EntityStore,
    *,
    actor_id: str,
    target_id: Optional[str],
    target_name: Optional[str],
    details: ActivityDetails,
    team_id: Optional[str] = None,
) -> Optional[Activity]:
    """Record an activity. Best-effort: a failing sink never aborts the caller."""
    try:
        activity = Activity(
            user_id=actor_id,
            type=details.target_type,
            action=details.kind,
            target_id=target_id,
            target_name=target_name,
            team_id=team_id,
            details=details.to_dict(),
        )
        store.add(activity)
        return activity
    except Exception:
        logger.exception("could not record %s activity for %s", details.kind, target_id)
        return None
