"""Booking workflows: date checks, conflict detection and persistence."""

import logging
from datetime import date
from typing import Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

import models_sqlalchemy as models
from errors import BookingConflict, Forbidden, InvalidDateRange

logger = logging.getLogger(__name__)


def _conflict_filter(start_date: date, end_date: date, mode: str):
    Booking = models.Booking
    if mode == "partial":
        # Only catches an existing booking whose start or end lands inside the
        # requested range, so a longer booking that surrounds it slips through.
        return or_(
            Booking.start_date.between(start_date, end_date),
            Booking.end_date.between(start_date, end_date),
        )
    if mode == "overlap":
        return and_(Booking.start_date <= end_date, Booking.end_date >= start_date)
    raise ValueError(f"Unknown booking conflict mode: {mode!r}")


def has_conflict(
    db: Session,
    spot_id: int,
    start_date: date,
    end_date: date,
    *,
    mode: str = "partial",
    exclude_booking_id: Optional[int] = None,
) -> bool:
    """Return True when the range collides with an existing booking of the spot.

    Both ends of the requested range are inclusive.
    """
    query = db.query(models.Booking.id).filter(
        models.Booking.spot_id == spot_id,
        _conflict_filter(start_date, end_date, mode),
    )
    if exclude_booking_id is not None:
        query = query.filter(models.Booking.id != exclude_booking_id)
    return bool(db.query(query.exists()).scalar())


def validate_date_range(start_date: date, end_date: date) -> None:
    if end_date <= start_date:
        raise InvalidDateRange()


def _lock_spot(db: Session, spot_id: int) -> None:
    """Hold the spot row until commit so concurrent bookings queue up.

    Backends without SELECT ... FOR UPDATE (SQLite) ignore the lock.
    """
    db.query(models.Spot.id).filter(models.Spot.id == spot_id).with_for_update().one()


def _ensure_available(db: Session, spot_id: int, start_date: date, end_date: date, mode: str,
                      exclude_booking_id: Optional[int] = None) -> None:
    _lock_spot(db, spot_id)
    if has_conflict(db, spot_id, start_date, end_date, mode=mode, exclude_booking_id=exclude_booking_id):
        logger.warning("Booking conflict on spot %s for %s..%s", spot_id, start_date, end_date)
        raise BookingConflict()


def create_booking(db: Session, spot: models.Spot, user: models.User, start_date: date, end_date: date,
                   *, mode: str = "partial") -> models.Booking:
    if spot.owner_id == user.id:
        logger.warning("User %s tried to book own spot %s", user.id, spot.id)
        raise Forbidden("Owners cannot book spots that belong to them")
    validate_date_range(start_date, end_date)
    _ensure_available(db, spot.id, start_date, end_date, mode)

    booking = models.Booking(spot_id=spot.id, user_id=user.id, start_date=start_date, end_date=end_date)
    db.add(booking)
    db.commit()
    db.refresh(booking)
    logger.info("Booking %s created for spot %s by user %s", booking.id, spot.id, user.id)
    return booking


def update_booking(db: Session, booking: models.Booking, user: models.User, start_date: date, end_date: date,
                   *, mode: str = "partial", today: Optional[date] = None) -> models.Booking:
    today = today or date.today()
    if booking.user_id != user.id:
        raise Forbidden("Booking must belong to the current user")
    if booking.end_date < today:
        raise Forbidden("Past bookings can't be modified")
    validate_date_range(start_date, end_date)
    _ensure_available(db, booking.spot_id, start_date, end_date, mode, exclude_booking_id=booking.id)

    booking.start_date = start_date
    booking.end_date = end_date
    db.commit()
    db.refresh(booking)
    logger.info("Booking %s moved to %s..%s", booking.id, start_date, end_date)
    return booking


def delete_booking(db: Session, booking: models.Booking, user: models.User, *, today: Optional[date] = None) -> None:
    today = today or date.today()
    if user.id not in (booking.user_id, booking.spot.owner_id):
        raise Forbidden("Booking must belong to the current user or the spot owner")
    if booking.start_date <= today:
        raise Forbidden("Bookings that have been started can't be deleted")
    booking_id = booking.id
    db.delete(booking)
    db.commit()
    logger.info("Booking %s deleted by user %s", booking_id, user.id)
