import logging

from sqlalchemy.orm import Session

from booking.core.errors import ForbiddenError, NotFoundError
from booking.models.business import Business
from booking.models.specialist import Specialist, WeeklyAvailabilityRule
from booking.scheduling.schedule import validate_weekly_availability

logger = logging.getLogger(__name__)


def set_weekly_availability(
    db: Session,
    specialist_id: int,
    actor_id: int,
    actor_role: str,
    rules,
) -> Specialist:
    """Replace a specialist's whole weekly schedule; admins and the business owner only."""
    specialist = db.get(Specialist, specialist_id)
    if specialist is None:
        raise NotFoundError('Specialist not found.')

    business = db.get(Business, specialist.business_id)
    is_owner = business is not None and business.owner_id == actor_id
    if actor_role != 'admin' and not is_owner:
        raise ForbiddenError('You are not authorized to update this specialist.')

    validated = validate_weekly_availability(rules)

    specialist.availability_rules.clear()
    # Flush the deletes first so the (specialist, day) unique constraint never sees both rows.
    db.flush()
    for rule in validated:
        specialist.availability_rules.append(
            WeeklyAvailabilityRule(
                day_of_week=rule.day_of_week,
                start_time=rule.start_time,
                end_time=rule.end_time,
                is_available=rule.is_available,
            )
        )
    db.commit()
    db.refresh(specialist)

    logger.info('Specialist %s weekly availability replaced (%s rules)', specialist.id, len(validated))
    return specialist
