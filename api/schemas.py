"""
Request and response shapes of the HTTP API.

Every body is validated here before any handler runs. JSON keys are camelCase,
e.g. ``price_per_day`` travels as ``pricePerDay``.
"""

import re
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")


def _max_year() -> int:
    return date.today().year + 1


def _check_pair(latitude, longitude):
    if (latitude is None) != (longitude is None):
        raise ValueError("latitude and longitude must be given together")


# ===== Cars =====
class CarCreate(ApiModel):
    brand: str = Field(..., min_length=1, max_length=100, description="Manufacturer, e.g. Toyota")
    model: str = Field(..., min_length=1, max_length=100, description="Model, e.g. Camry")
    year: int = Field(..., ge=1900)
    price_per_day: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    description: Optional[str] = None
    image_url: Optional[str] = Field(None, max_length=500)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    available: Optional[bool] = Field(None, alias="isAvailable")

    @field_validator("year")
    @classmethod
    def year_not_in_future(cls, v):
        if v > _max_year():
            raise ValueError(f"year must be at most {_max_year()}")
        return v

    @field_validator("image_url")
    @classmethod
    def image_is_url(cls, v):
        if v is not None and not v.startswith(("http://", "https://")):
            raise ValueError("imageUrl must be an http(s) URL")
        return v

    @model_validator(mode="after")
    def location_pair(self):
        _check_pair(self.latitude, self.longitude)
        return self


class CarUpdate(CarCreate):
    brand: Optional[str] = Field(None, min_length=1, max_length=100)
    model: Optional[str] = Field(None, min_length=1, max_length=100)
    year: Optional[int] = Field(None, ge=1900)
    price_per_day: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)

    @field_validator("year")
    @classmethod
    def year_not_in_future(cls, v):
        if v is not None and v > _max_year():
            raise ValueError(f"year must be at most {_max_year()}")
        return v


class CarOut(ApiModel):
    id: int
    brand: str
    model: str
    year: int
    price_per_day: Decimal
    available: bool = Field(..., alias="isAvailable")
    description: Optional[str] = None
    image_url: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class NearbyCarOut(CarOut):
    distance_meters: float = Field(..., alias="distance_meters")


# ===== Users =====
class UserOut(ApiModel):
    id: int
    email: str
    first_name: str
    last_name: str
    role: str
    created_at: Optional[datetime] = None

    @field_validator("role", mode="before")
    @classmethod
    def role_value(cls, v):
        return getattr(v, "value", v)


# ===== Rentals =====
class RentalCreate(ApiModel):
    car_id: int = Field(..., gt=0)
    start_date: date = Field(..., description="YYYY-MM-DD")
    end_date: date = Field(..., description="YYYY-MM-DD")

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def iso_date_string(cls, v):
        if not isinstance(v, str) or not ISO_DATE.fullmatch(v):
            raise ValueError("dates must be YYYY-MM-DD strings")
        return v


class RentalOut(ApiModel):
    id: int
    user_id: int
    car_id: int
    start_date: date
    end_date: date
    daily_rate: Decimal
    total_cost: Decimal
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    car: Optional[CarOut] = None
    user: Optional[UserOut] = None

    @field_validator("status", mode="before")
    @classmethod
    def status_value(cls, v):
        return getattr(v, "value", v)


# ===== Auth =====
class RegisterIn(ApiModel):
    email: str = Field(..., max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(..., min_length=8)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)


class LoginIn(ApiModel):
    email: str
    password: str


class TokensOut(ApiModel):
    access_token: str
    refresh_token: str


class MessageOut(ApiModel):
    message: str
