"""
Permission-Gated Field Filter

Decides which fields of an observation an updater may write. Runs before
coercion and scoring, so an updater without the threshold grant can never
influence a score through injected target or threshold values.

- No grant, or can_modify_thresholds is False: target_value, threshold_red and
  threshold_yellow are removed from the observation. They become unset, not
  None, so the upsert leaves stored thresholds untouched.
- can_modify_thresholds is True: every field passes through as supplied,
  including an explicit None, which clears a stored threshold.
"""

import logging
from typing import Optional

from scorecard_engine.models import RawObservation, THRESHOLD_FIELDS, UpdaterGrant

logger = logging.getLogger(__name__)


def is_registered_updater(
    grant: Optional[UpdaterGrant],
    kpi_id: str,
    user_id: str
) -> bool:
    """Whether the grant registers this user as an updater of this KPI."""
    if grant is None:
        return False
    return grant.kpi_id == kpi_id and grant.user_id == user_id


def can_modify_thresholds(grant: Optional[UpdaterGrant]) -> bool:
    return grant is not None and grant.can_modify_thresholds


def filter_writable_fields(
    observation: RawObservation,
    grant: Optional[UpdaterGrant]
) -> RawObservation:
    """
    Drop the fields the updater is not allowed to write.

    Args:
        observation: Observation as received
        grant: The updater's grant for the KPI, or None

    Returns:
        The observation itself when the updater holds the threshold grant,
        otherwise a copy with the threshold fields unset
    """
    if can_modify_thresholds(grant):
        return observation

    dropped = [name for name in THRESHOLD_FIELDS if observation.is_set(name)]
    if not dropped:
        return observation

    logger.info(
        f"Ignoring {', '.join(dropped)} for KPI {observation.kpi_id} from user "
        f"{observation.requested_by.user_id}: no threshold permission"
    )

    # Rebuild from the set fields only, so dropped thresholds stay unset
    data = observation.model_dump(exclude_unset=True, exclude=set(THRESHOLD_FIELDS))
    data['requested_by'] = observation.requested_by
    return RawObservation.model_validate(data)


__all__ = [
    'is_registered_updater',
    'can_modify_thresholds',
    'filter_writable_fields',
]
