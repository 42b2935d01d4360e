from typing import Optional, List
from datetime import date, datetime
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        str_strip_whitespace=True,
    )


# ---------- Users & session ----------
class OwnerResponse(CamelModel):
    id: int
    first_name: str
    last_name: str


class UserResponse(OwnerResponse):
    email: EmailStr
    username: str


class SessionResponse(CamelModel):
    user: Optional[UserResponse] = None


class SignupRequest(CamelModel):
    email: EmailStr
    username: str = Field(..., min_length=4, max_length=30)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    password: str

    @field_validator("username")
    @classmethod
    def username_is_not_email(cls, value):
        if "@" in value:
            raise ValueError("Username cannot be an email")
        return value

    @field_validator("password")
    @classmethod
    def password_is_long_enough(cls, value):
        if len(value) < 6:
            raise ValueError("Password must be 6 characters or more")
        return value


class LoginRequest(CamelModel):
    credential: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class MessageResponse(CamelModel):
    message: str


# ---------- Spots ----------
class SpotBase(CamelModel):
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    name: str = Field(..., min_length=1, max_length=50)
    description: str = Field(..., min_length=1)
    price: float = Field(..., gt=0)


class SpotCreate(SpotBase):
    pass


class SpotUpdate(CamelModel):
    address: Optional[str] = Field(None, min_length=1)
    city: Optional[str] = Field(None, min_length=1)
    state: Optional[str] = Field(None, min_length=1)
    country: Optional[str] = Field(None, min_length=1)
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = Field(None, min_length=1)
    price: Optional[float] = Field(None, gt=0)


class SpotResponse(SpotBase):
    id: int
    owner_id: int
    created_at: datetime
    updated_at: datetime


class SpotListItem(SpotResponse):
    avg_rating: Optional[float] = None
    preview_image: Optional[str] = None


class SpotList(CamelModel):
    spots: List[SpotListItem] = Field(..., alias="Spots")


class SpotSummary(CamelModel):
    id: int
    owner_id: int
    address: str
    city: str
    state: str
    country: str
    lat: float
    lng: float
    name: str
    price: float
    preview_image: Optional[str] = None


class SpotImageCreate(CamelModel):
    url: str = Field(..., min_length=1)
    preview: bool = False


class SpotImageResponse(CamelModel):
    id: int
    url: str
    preview: bool


class SpotDetail(SpotResponse):
    num_reviews: int
    avg_rating: Optional[float] = None
    spot_images: List[SpotImageResponse] = Field(..., alias="SpotImages")
    owner: OwnerResponse = Field(..., alias="Owner")


# ---------- Reviews ----------
class ReviewCreate(CamelModel):
    review: str = Field(..., min_length=1)
    stars: int = Field(..., ge=1, le=5)


class ReviewUpdate(ReviewCreate):
    pass


class ReviewResponse(CamelModel):
    id: int
    user_id: int
    spot_id: int
    review: str
    stars: int
    created_at: datetime
    updated_at: datetime


class ReviewImageCreate(CamelModel):
    url: str = Field(..., min_length=1)


class ReviewImageResponse(CamelModel):
    id: int
    url: str


class ReviewDetail(ReviewResponse):
    user: OwnerResponse = Field(..., alias="User")
    review_images: List[ReviewImageResponse] = Field(..., alias="ReviewImages")
    spot: Optional[SpotSummary] = Field(None, alias="Spot")


class ReviewList(CamelModel):
    reviews: List[ReviewDetail] = Field(..., alias="Reviews")


# ---------- Bookings ----------
class BookingCreate(CamelModel):
    start_date: date
    end_date: date


class BookingUpdate(BookingCreate):
    pass


class BookingPublic(CamelModel):
    spot_id: int
    start_date: date
    end_date: date


class BookingResponse(BookingPublic):
    id: int
    user_id: int
    created_at: datetime
    updated_at: datetime


class BookingOwnerView(BookingResponse):
    user: OwnerResponse = Field(..., alias="User")


class BookingWithSpot(BookingResponse):
    spot: SpotSummary = Field(..., alias="Spot")


class SpotBookingsPublic(CamelModel):
    bookings: List[BookingPublic] = Field(..., alias="Bookings")


class SpotBookingsOwner(CamelModel):
    bookings: List[BookingOwnerView] = Field(..., alias="Bookings")


class BookingList(CamelModel):
    bookings: List[BookingWithSpot] = Field(..., alias="Bookings")
