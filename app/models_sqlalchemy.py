from sqlalchemy import (
    Boolean, CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text,
    UniqueConstraint, func
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class TimestampMixin:
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())


class User(TimestampMixin, Base):
    __tablename__ = "Users"
    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    username = Column(String(30), nullable=False, unique=True, index=True)
    hashed_password = Column(String(255), nullable=False)

    spots = relationship("Spot", back_populates="owner")
    reviews = relationship("Review", back_populates="user")
    bookings = relationship("Booking", back_populates="user")


class Spot(TimestampMixin, Base):
    __tablename__ = "Spots"
    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("Users.id"), nullable=False, index=True)
    address = Column(Text, nullable=False)
    city = Column(Text, nullable=False)
    state = Column(Text, nullable=False)
    country = Column(Text, nullable=False)
    lat = Column(Numeric(10, 7, asdecimal=False), nullable=False)
    lng = Column(Numeric(10, 7, asdecimal=False), nullable=False)
    name = Column(String(50), nullable=False)
    description = Column(Text, nullable=False)
    price = Column(Numeric(10, 2, asdecimal=False), nullable=False)

    owner = relationship("User", back_populates="spots")
    images = relationship("SpotImage", back_populates="spot", cascade="all, delete-orphan", order_by="SpotImage.id")
    reviews = relationship("Review", back_populates="spot", cascade="all, delete-orphan")
    bookings = relationship("Booking", back_populates="spot", cascade="all, delete-orphan", order_by="Booking.start_date")


class SpotImage(TimestampMixin, Base):
    __tablename__ = "SpotImages"
    id = Column(Integer, primary_key=True, index=True)
    spot_id = Column(Integer, ForeignKey("Spots.id"), nullable=False, index=True)
    url = Column(Text, nullable=False)
    preview = Column(Boolean, nullable=False, default=False)

    spot = relationship("Spot", back_populates="images")


class Review(TimestampMixin, Base):
    __tablename__ = "Reviews"
    __table_args__ = (
        UniqueConstraint("user_id", "spot_id", name="uq_reviews_user_spot"),
        CheckConstraint("stars BETWEEN 1 AND 5", name="ck_reviews_stars"),
    )
    id = Column(Integer, primary_key=True, index=True)
    spot_id = Column(Integer, ForeignKey("Spots.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("Users.id"), nullable=False, index=True)
    review = Column(Text, nullable=False)
    stars = Column(Integer, nullable=False)

    spot = relationship("Spot", back_populates="reviews")
    user = relationship("User", back_populates="reviews")
    images = relationship("ReviewImage", back_populates="review", cascade="all, delete-orphan", order_by="ReviewImage.id")


class ReviewImage(TimestampMixin, Base):
    __tablename__ = "ReviewImages"
    id = Column(Integer, primary_key=True, index=True)
    review_id = Column(Integer, ForeignKey("Reviews.id"), nullable=False, index=True)
    url = Column(Text, nullable=False)

    review = relationship("Review", back_populates="images")


class Booking(TimestampMixin, Base):
    __tablename__ = "Bookings"
    __table_args__ = (
        CheckConstraint("end_date > start_date", name="ck_bookings_date_order"),
    )
    id = Column(Integer, primary_key=True, index=True)
    spot_id = Column(Integer, ForeignKey("Spots.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("Users.id"), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)

    spot = relationship("Spot", back_populates="bookings")
    user = relationship("User", back_populates="bookings")
