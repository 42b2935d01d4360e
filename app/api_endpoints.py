import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Depends, Query, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

import models_sqlalchemy as models
import models_pydantic as schemas
import bookings
import ratings
from auth import (
    authenticate, clear_token_cookie, get_current_user, hash_password, require_auth, require_owner,
    set_token_cookie,
)
from database import engine, get_db
from errors import (
    ApiError, DuplicateReview, DuplicateUser, Forbidden, NotFound, api_error_handler, database_error_handler,
)
from logging_config import configure_logging
from settings import Settings, get_settings, settings as app_settings
from validation import parse_spot_filters, request_validation_handler

configure_logging(app_settings.log_level)
logger = logging.getLogger(__name__)

MAX_REVIEW_IMAGES = 10


@asynccontextmanager
async def lifespan(app: FastAPI):
    models.Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(title="Spotbnb API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=app_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(ApiError, api_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(SQLAlchemyError, database_error_handler)


# ---------- Utility Functions ----------
def get_spot_or_404(db: Session, spot_id: int) -> models.Spot:
    spot = db.get(models.Spot, spot_id)
    if not spot:
        raise NotFound("Spot couldn't be found")
    return spot


def get_review_or_404(db: Session, review_id: int) -> models.Review:
    review = db.get(models.Review, review_id)
    if not review:
        raise NotFound("Review couldn't be found")
    return review


def get_booking_or_404(db: Session, booking_id: int) -> models.Booking:
    booking = db.get(models.Booking, booking_id)
    if not booking:
        raise NotFound("Booking couldn't be found")
    return booking


def preview_image_url(spot: models.Spot) -> Optional[str]:
    return next((image.url for image in spot.images if image.preview), None)


def spot_fields(spot: models.Spot) -> dict:
    return schemas.SpotResponse.model_validate(spot).model_dump()


def spot_list_item(db: Session, spot: models.Spot) -> schemas.SpotListItem:
    return schemas.SpotListItem(
        **spot_fields(spot),
        avg_rating=ratings.average_rating(db, spot.id),
        preview_image=preview_image_url(spot),
    )


def spot_summary(spot: models.Spot) -> schemas.SpotSummary:
    summary = schemas.SpotSummary.model_validate(spot)
    return summary.model_copy(update={"preview_image": preview_image_url(spot)})


def review_detail(review: models.Review, with_spot: bool = False) -> schemas.ReviewDetail:
    return schemas.ReviewDetail(
        **schemas.ReviewResponse.model_validate(review).model_dump(),
        user=schemas.OwnerResponse.model_validate(review.user),
        review_images=[schemas.ReviewImageResponse.model_validate(i) for i in review.images],
        spot=spot_summary(review.spot) if with_spot else None,
    )


def session_response(user: Optional[models.User]) -> schemas.SessionResponse:
    return schemas.SessionResponse(user=schemas.UserResponse.model_validate(user) if user else None)


# ---------- Session Endpoints ----------
@app.get("/api/session", response_model=schemas.SessionResponse)
def restore_session(user: Optional[models.User] = Depends(get_current_user)):
    return session_response(user)


@app.post("/api/session", response_model=schemas.SessionResponse)
def login(credentials: schemas.LoginRequest, response: Response, db: Session = Depends(get_db),
          settings: Settings = Depends(get_settings)):
    user = authenticate(db, credentials.credential, credentials.password)
    set_token_cookie(response, user, settings)
    logger.info("User %s logged in", user.id)
    return session_response(user)


@app.delete("/api/session", response_model=schemas.MessageResponse)
def logout(response: Response):
    clear_token_cookie(response)
    return schemas.MessageResponse(message="success")


# ---------- User Endpoints ----------
@app.post("/api/users", response_model=schemas.SessionResponse, status_code=status.HTTP_201_CREATED)
def signup(user: schemas.SignupRequest, response: Response, db: Session = Depends(get_db),
           settings: Settings = Depends(get_settings)):
    errors = {}
    if db.query(models.User).filter(models.User.email == user.email).first():
        errors["email"] = "User with that email already exists"
    if db.query(models.User).filter(models.User.username == user.username).first():
        errors["username"] = "User with that username already exists"
    if errors:
        raise DuplicateUser(errors=errors, legacy=settings.legacy_status_codes)
    db_user = models.User(
        email=user.email,
        username=user.username,
        first_name=user.first_name,
        last_name=user.last_name,
        hashed_password=hash_password(user.password),
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    set_token_cookie(response, db_user, settings)
    logger.info("User %s signed up", db_user.id)
    return session_response(db_user)


# ---------- Spot Endpoints ----------
@app.get("/api/spots", response_model=schemas.SpotList)
def list_spots(
    min_lat: Optional[str] = Query(None, alias="minLat"),
    max_lat: Optional[str] = Query(None, alias="maxLat"),
    min_lng: Optional[str] = Query(None, alias="minLng"),
    max_lng: Optional[str] = Query(None, alias="maxLng"),
    min_price: Optional[str] = Query(None, alias="minPrice"),
    max_price: Optional[str] = Query(None, alias="maxPrice"),
    db: Session = Depends(get_db),
):
    filters = parse_spot_filters({
        "minLat": min_lat, "maxLat": max_lat,
        "minLng": min_lng, "maxLng": max_lng,
        "minPrice": min_price, "maxPrice": max_price,
    })
    query = db.query(models.Spot)
    if "minLat" in filters:
        query = query.filter(models.Spot.lat >= filters["minLat"])
    if "maxLat" in filters:
        query = query.filter(models.Spot.lat <= filters["maxLat"])
    if "minLng" in filters:
        query = query.filter(models.Spot.lng >= filters["minLng"])
    if "maxLng" in filters:
        query = query.filter(models.Spot.lng <= filters["maxLng"])
    if "minPrice" in filters:
        query = query.filter(models.Spot.price >= filters["minPrice"])
    if "maxPrice" in filters:
        query = query.filter(models.Spot.price <= filters["maxPrice"])
    spots = query.order_by(models.Spot.id).all()
    return schemas.SpotList(spots=[spot_list_item(db, s) for s in spots])


@app.get("/api/spots/current", response_model=schemas.SpotList)
def list_current_user_spots(user: models.User = Depends(require_auth), db: Session = Depends(get_db)):
    spots = db.query(models.Spot).filter(models.Spot.owner_id == user.id).order_by(models.Spot.id).all()
    return schemas.SpotList(spots=[spot_list_item(db, s) for s in spots])


@app.get("/api/spots/{spot_id}", response_model=schemas.SpotDetail)
def get_spot(spot_id: int, db: Session = Depends(get_db)):
    spot = get_spot_or_404(db, spot_id)
    return schemas.SpotDetail(
        **spot_fields(spot),
        num_reviews=ratings.review_count(db, spot.id),
        avg_rating=ratings.average_rating(db, spot.id),
        spot_images=[schemas.SpotImageResponse.model_validate(i) for i in spot.images],
        owner=schemas.OwnerResponse.model_validate(spot.owner),
    )


@app.post("/api/spots", response_model=schemas.SpotResponse, status_code=status.HTTP_201_CREATED)
def create_spot(spot: schemas.SpotCreate, user: models.User = Depends(require_auth), db: Session = Depends(get_db)):
    db_spot = models.Spot(owner_id=user.id, **spot.model_dump())
    db.add(db_spot)
    db.commit()
    db.refresh(db_spot)
    logger.info("Spot %s created by user %s", db_spot.id, user.id)
    return db_spot


@app.put("/api/spots/{spot_id}", response_model=schemas.SpotResponse)
def update_spot(spot_id: int, spot_update: schemas.SpotUpdate, user: models.User = Depends(require_auth),
                db: Session = Depends(get_db)):
    spot = get_spot_or_404(db, spot_id)
    require_owner(spot.owner_id, user)
    # the body was fully validated before we got here, so either every field applies or none does
    for field, value in spot_update.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(spot, field, value)
    db.commit()
    db.refresh(spot)
    return spot


@app.delete("/api/spots/{spot_id}", response_model=schemas.MessageResponse)
def delete_spot(spot_id: int, user: models.User = Depends(require_auth), db: Session = Depends(get_db)):
    spot = get_spot_or_404(db, spot_id)
    require_owner(spot.owner_id, user)
    db.delete(spot)
    db.commit()
    logger.info("Spot %s deleted by user %s", spot_id, user.id)
    return schemas.MessageResponse(message="Successfully deleted")


@app.post("/api/spots/{spot_id}/images", response_model=schemas.SpotImageResponse,
          status_code=status.HTTP_201_CREATED)
def add_spot_image(spot_id: int, image: schemas.SpotImageCreate, user: models.User = Depends(require_auth),
                   db: Session = Depends(get_db)):
    spot = get_spot_or_404(db, spot_id)
    require_owner(spot.owner_id, user)
    db_image = models.SpotImage(spot_id=spot.id, url=image.url, preview=image.preview)
    db.add(db_image)
    db.commit()
    db.refresh(db_image)
    return db_image


# ---------- Spot Review Endpoints ----------
@app.get("/api/spots/{spot_id}/reviews", response_model=schemas.ReviewList, response_model_exclude_none=True)
def list_spot_reviews(spot_id: int, db: Session = Depends(get_db)):
    spot = get_spot_or_404(db, spot_id)
    reviews = db.query(models.Review).filter(models.Review.spot_id == spot.id).order_by(models.Review.id).all()
    return schemas.ReviewList(reviews=[review_detail(r) for r in reviews])


@app.post("/api/spots/{spot_id}/reviews", response_model=schemas.ReviewResponse, status_code=status.HTTP_201_CREATED)
def create_review(spot_id: int, review: schemas.ReviewCreate, user: models.User = Depends(require_auth),
                  db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    spot = get_spot_or_404(db, spot_id)
    existing = db.query(models.Review).filter(
        models.Review.spot_id == spot.id, models.Review.user_id == user.id
    ).first()
    if existing:
        logger.warning("User %s already reviewed spot %s", user.id, spot.id)
        raise DuplicateReview(legacy=settings.legacy_status_codes)
    db_review = models.Review(spot_id=spot.id, user_id=user.id, review=review.review, stars=review.stars)
    db.add(db_review)
    try:
        db.commit()
    except IntegrityError:
        # lost a race against a concurrent review by the same user
        db.rollback()
        raise DuplicateReview(legacy=settings.legacy_status_codes)
    db.refresh(db_review)
    return db_review


# ---------- Spot Booking Endpoints ----------
@app.get("/api/spots/{spot_id}/bookings")
def list_spot_bookings(spot_id: int, user: models.User = Depends(require_auth), db: Session = Depends(get_db)):
    spot = get_spot_or_404(db, spot_id)
    if spot.owner_id == user.id:
        return schemas.SpotBookingsOwner(bookings=[
            schemas.BookingOwnerView(
                **schemas.BookingResponse.model_validate(b).model_dump(),
                user=schemas.OwnerResponse.model_validate(b.user),
            )
            for b in spot.bookings
        ])
    return schemas.SpotBookingsPublic(bookings=[schemas.BookingPublic.model_validate(b) for b in spot.bookings])


@app.post("/api/spots/{spot_id}/bookings", response_model=schemas.BookingResponse,
          status_code=status.HTTP_201_CREATED)
def create_booking(spot_id: int, booking: schemas.BookingCreate, user: models.User = Depends(require_auth),
                   db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    spot = get_spot_or_404(db, spot_id)
    return bookings.create_booking(
        db, spot, user, booking.start_date, booking.end_date, mode=settings.booking_conflict_mode
    )


# ---------- Review Endpoints ----------
@app.get("/api/reviews/current", response_model=schemas.ReviewList)
def list_current_user_reviews(user: models.User = Depends(require_auth), db: Session = Depends(get_db)):
    reviews = db.query(models.Review).filter(models.Review.user_id == user.id).order_by(models.Review.id).all()
    return schemas.ReviewList(reviews=[review_detail(r, with_spot=True) for r in reviews])


@app.put("/api/reviews/{review_id}", response_model=schemas.ReviewResponse)
def update_review(review_id: int, review_update: schemas.ReviewUpdate, user: models.User = Depends(require_auth),
                  db: Session = Depends(get_db)):
    review = get_review_or_404(db, review_id)
    require_owner(review.user_id, user, "Review must belong to the current user")
    review.review = review_update.review
    review.stars = review_update.stars
    db.commit()
    db.refresh(review)
    return review


@app.delete("/api/reviews/{review_id}", response_model=schemas.MessageResponse)
def delete_review(review_id: int, user: models.User = Depends(require_auth), db: Session = Depends(get_db)):
    review = get_review_or_404(db, review_id)
    require_owner(review.user_id, user, "Review must belong to the current user")
    db.delete(review)
    db.commit()
    return schemas.MessageResponse(message="Successfully deleted")


@app.post("/api/reviews/{review_id}/images", response_model=schemas.ReviewImageResponse,
          status_code=status.HTTP_201_CREATED)
def add_review_image(review_id: int, image: schemas.ReviewImageCreate, user: models.User = Depends(require_auth),
                     db: Session = Depends(get_db)):
    review = get_review_or_404(db, review_id)
    require_owner(review.user_id, user, "Review must belong to the current user")
    if len(review.images) >= MAX_REVIEW_IMAGES:
        raise Forbidden("Maximum number of images for this resource was reached")
    db_image = models.ReviewImage(review_id=review.id, url=image.url)
    db.add(db_image)
    db.commit()
    db.refresh(db_image)
    return db_image


# ---------- Booking Endpoints ----------
@app.get("/api/bookings/current", response_model=schemas.BookingList)
def list_current_user_bookings(user: models.User = Depends(require_auth), db: Session = Depends(get_db)):
    user_bookings = db.query(models.Booking).filter(models.Booking.user_id == user.id).order_by(
        models.Booking.start_date
    ).all()
    return schemas.BookingList(bookings=[
        schemas.BookingWithSpot(
            **schemas.BookingResponse.model_validate(b).model_dump(),
            spot=spot_summary(b.spot),
        )
        for b in user_bookings
    ])


@app.put("/api/bookings/{booking_id}", response_model=schemas.BookingResponse)
def update_booking(booking_id: int, booking_update: schemas.BookingUpdate, user: models.User = Depends(require_auth),
                   db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    booking = get_booking_or_404(db, booking_id)
    return bookings.update_booking(
        db, booking, user, booking_update.start_date, booking_update.end_date,
        mode=settings.booking_conflict_mode,
    )


@app.delete("/api/bookings/{booking_id}", response_model=schemas.MessageResponse)
def delete_booking(booking_id: int, user: models.User = Depends(require_auth), db: Session = Depends(get_db)):
    booking = get_booking_or_404(db, booking_id)
    bookings.delete_booking(db, booking, user)
    return schemas.MessageResponse(message="Successfully deleted")


# ---------- Image Endpoints ----------
@app.delete("/api/spot-images/{image_id}", response_model=schemas.MessageResponse)
def delete_spot_image(image_id: int, user: models.User = Depends(require_auth), db: Session = Depends(get_db)):
    image = db.get(models.SpotImage, image_id)
    if not image:
        raise NotFound("Spot Image couldn't be found")
    require_owner(image.spot.owner_id, user)
    db.delete(image)
    db.commit()
    return schemas.MessageResponse(message="Successfully deleted")


@app.delete("/api/review-images/{image_id}", response_model=schemas.MessageResponse)
def delete_review_image(image_id: int, user: models.User = Depends(require_auth), db: Session = Depends(get_db)):
    image = db.get(models.ReviewImage, image_id)
    if not image:
        raise NotFound("Review Image couldn't be found")
    require_owner(image.review.user_id, user, "Review must belong to the current user")
    db.delete(image)
    db.commit()
    return schemas.MessageResponse(message="Successfully deleted")
