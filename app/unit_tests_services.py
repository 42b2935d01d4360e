from datetime import date

import pytest

import models_sqlalchemy as models
from bookings import create_booking, delete_booking, has_conflict, update_booking, validate_date_range
from errors import BookingConflict, Forbidden, InvalidDateRange, ValidationFailed
from ratings import average_rating, review_count
from validation import field_errors, parse_spot_filters

# ---------- TEST DATA HELPERS ----------

def add_user(db, username):
    user = models.User(
        first_name=username.title(), last_name="Tester", email=f"{username}@example.com",
        username=username, hashed_password="x",
    )
    db.add(user)
    db.commit()
    return user

def add_spot(db, owner):
    spot = models.Spot(
        owner_id=owner.id, address="1 Beach Rd", city="Malibu", state="CA", country="USA",
        lat=34.0259, lng=-118.7798, name="Beach House", description="Ocean views", price=250,
    )
    db.add(spot)
    db.commit()
    return spot

def add_booking(db, spot, user, start, end):
    booking = models.Booking(spot_id=spot.id, user_id=user.id, start_date=start, end_date=end)
    db.add(booking)
    db.commit()
    return booking

@pytest.fixture
def world(db_session):
    owner = add_user(db_session, "owner")
    guest = add_user(db_session, "guest")
    spot = add_spot(db_session, owner)
    existing = add_booking(db_session, spot, guest, date(2024, 6, 1), date(2024, 6, 5))
    return {"db": db_session, "owner": owner, "guest": guest, "spot": spot, "existing": existing}

# ---------- CONFLICT RESOLVER ----------

@pytest.mark.parametrize("start, end, expected", [
    (date(2024, 6, 4), date(2024, 6, 10), True),   # existing end inside
    (date(2024, 5, 25), date(2024, 6, 2), True),   # existing start inside
    (date(2024, 5, 25), date(2024, 6, 10), True),  # request covers existing
    (date(2024, 6, 5), date(2024, 6, 8), True),    # shares the end date
    (date(2024, 5, 28), date(2024, 6, 1), True),   # shares the start date
    (date(2024, 6, 6), date(2024, 6, 9), False),
    (date(2024, 5, 20), date(2024, 5, 31), False),
])
def test_partial_conflict(world, start, end, expected):
    assert has_conflict(world["db"], world["spot"].id, start, end) is expected

def test_partial_mode_misses_contained_range(world):
    db, spot = world["db"], world["spot"]
    assert has_conflict(db, spot.id, date(2024, 6, 2), date(2024, 6, 3), mode="partial") is False
    assert has_conflict(db, spot.id, date(2024, 6, 2), date(2024, 6, 3), mode="overlap") is True

def test_conflict_is_per_spot(world):
    db = world["db"]
    other_spot = add_spot(db, world["owner"])
    assert has_conflict(db, other_spot.id, date(2024, 6, 1), date(2024, 6, 5)) is False

def test_conflict_ignores_excluded_booking(world):
    db, spot, existing = world["db"], world["spot"], world["existing"]
    assert has_conflict(db, spot.id, date(2024, 6, 2), date(2024, 6, 6), exclude_booking_id=existing.id) is False

def test_unknown_conflict_mode(world):
    with pytest.raises(ValueError):
        has_conflict(world["db"], world["spot"].id, date(2024, 6, 1), date(2024, 6, 2), mode="fuzzy")

def test_validate_date_range():
    validate_date_range(date(2024, 6, 1), date(2024, 6, 2))
    with pytest.raises(InvalidDateRange):
        validate_date_range(date(2024, 6, 2), date(2024, 6, 2))

def test_create_booking_rejects_conflict_and_keeps_existing(world):
    db = world["db"]
    with pytest.raises(BookingConflict) as excinfo:
        create_booking(db, world["spot"], world["guest"], date(2024, 6, 4), date(2024, 6, 10))
    assert set(excinfo.value.errors) == {"startDate", "endDate"}
    assert db.query(models.Booking).count() == 1
    existing = db.get(models.Booking, world["existing"].id)
    assert (existing.start_date, existing.end_date) == (date(2024, 6, 1), date(2024, 6, 5))

def test_create_booking_checks_dates_before_conflicts(world):
    # overlaps the existing booking too, but the bad order is reported first
    with pytest.raises(InvalidDateRange):
        create_booking(world["db"], world["spot"], world["guest"], date(2024, 6, 4), date(2024, 6, 2))

def test_create_booking_by_owner(world):
    with pytest.raises(Forbidden) as excinfo:
        create_booking(world["db"], world["spot"], world["owner"], date(2024, 7, 1), date(2024, 7, 2))
    assert excinfo.value.message == "Owners cannot book spots that belong to them"

def test_create_booking_persists(world):
    db = world["db"]
    booking = create_booking(db, world["spot"], world["guest"], date(2024, 7, 1), date(2024, 7, 3))
    assert booking.id is not None
    assert db.query(models.Booking).count() == 2

def test_update_booking_rules(world):
    db, existing = world["db"], world["existing"]
    with pytest.raises(Forbidden):
        update_booking(db, existing, world["guest"], date(2024, 6, 2), date(2024, 6, 6), today=date(2024, 6, 10))
    moved = update_booking(db, existing, world["guest"], date(2024, 6, 2), date(2024, 6, 6), today=date(2024, 5, 1))
    assert moved.end_date == date(2024, 6, 6)
    with pytest.raises(Forbidden):
        update_booking(db, existing, world["owner"], date(2024, 6, 2), date(2024, 6, 7), today=date(2024, 5, 1))

def test_delete_booking_rules(world):
    db, existing = world["db"], world["existing"]
    stranger = add_user(db, "stranger")
    with pytest.raises(Forbidden):
        delete_booking(db, existing, stranger, today=date(2024, 5, 1))
    with pytest.raises(Forbidden):
        delete_booking(db, existing, world["guest"], today=date(2024, 6, 1))
    delete_booking(db, existing, world["owner"], today=date(2024, 5, 1))
    assert db.query(models.Booking).count() == 0

# ---------- RATINGS ----------

def test_ratings_without_reviews(world):
    db, spot = world["db"], world["spot"]
    assert average_rating(db, spot.id) is None
    assert review_count(db, spot.id) == 0

def test_ratings_mean_of_stars(world):
    db, spot = world["db"], world["spot"]
    stars = [5, 4, 4, 1]
    for i, s in enumerate(stars):
        user = add_user(db, f"reviewer{i}")
        db.add(models.Review(spot_id=spot.id, user_id=user.id, review="ok", stars=s))
    db.commit()
    assert review_count(db, spot.id) == 4
    assert average_rating(db, spot.id) == pytest.approx(sum(stars) / len(stars))

# ---------- VALIDATION ----------

def test_parse_spot_filters():
    parsed = parse_spot_filters({"minLat": "1.5", "maxPrice": "0", "minLng": "", "maxLng": None})
    assert parsed == {"minLat": 1.5, "maxPrice": 0.0}

def test_parse_spot_filters_collects_every_error():
    with pytest.raises(ValidationFailed) as excinfo:
        parse_spot_filters({"minLat": "north", "maxLat": "nan", "minPrice": "-5", "maxPrice": "cheap"})
    assert excinfo.value.errors == {
        "minLat": "Minimum latitude is invalid",
        "maxLat": "Maximum latitude is invalid",
        "minPrice": "Minimum price must be greater than or equal to 0",
        "maxPrice": "Maximum price must be greater than or equal to 0",
    }

def test_field_errors_keeps_first_message_per_field():
    errors = field_errors([
        {"loc": ("body", "stars"), "type": "less_than_equal", "msg": "Input should be less than or equal to 5"},
        {"loc": ("body", "stars"), "type": "int_type", "msg": "Input should be a valid integer"},
        {"loc": ("body", "nickname"), "type": "missing", "msg": "Field required"},
    ])
    assert errors == {"stars": "Stars must be an integer from 1 to 5", "nickname": "Field required"}
