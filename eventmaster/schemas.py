"""Request payload schemas."""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

EventStatus = Literal['draft', 'active', 'upcoming', 'completed', 'cancelled']
BookingStatus = Literal['pending', 'confirmed', 'cancelled', 'refunded']
ContactStatus = Literal['new', 'read', 'responded']


def naive_utc(value):
    """Store datetimes as naive UTC so every backend compares them the same way."""
    if value is not None and value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None


class LoginRequest(BaseModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None
    profile_image_url: Optional[str] = None


class RoleUpdate(BaseModel):
    is_admin: bool


class EventCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    category: str = Field(min_length=1, max_length=100)
    start_date: datetime
    end_date: datetime
    location: str = Field(min_length=1, max_length=255)
    ticket_price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    max_attendees: int = Field(ge=1)
    status: EventStatus = 'draft'
    image_url: Optional[str] = Field(default=None, max_length=500)

    @field_validator('start_date', 'end_date')
    @classmethod
    def normalize_dates(cls, value):
        return naive_utc(value)

    @model_validator(mode='after')
    def check_dates(self):
        if self.end_date < self.start_date:
            raise ValueError('end_date must not be before start_date')
        return self


class EventUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    location: Optional[str] = Field(default=None, min_length=1, max_length=255)
    ticket_price: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    max_attendees: Optional[int] = Field(default=None, ge=1)
    status: Optional[EventStatus] = None
    image_url: Optional[str] = Field(default=None, max_length=500)

    # omitted means "leave unchanged"; explicit null is not allowed on required columns
    @field_validator('name', 'category', 'start_date', 'end_date', 'location',
                     'ticket_price', 'max_attendees', 'status', mode='before')
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError('may not be null')
        return value

    @field_validator('start_date', 'end_date')
    @classmethod
    def normalize_dates(cls, value):
        return naive_utc(value)

    @model_validator(mode='after')
    def check_dates(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError('end_date must not be before start_date')
        return self


class BookingCreate(BaseModel):
    event_id: int
    quantity: int = Field(default=1, ge=1, le=100)
    attendee_name: Optional[str] = None
    attendee_email: Optional[EmailStr] = None


class BookingRef(BaseModel):
    booking_id: int


class ContactCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    subject: str = Field(min_length=1, max_length=255)
    message: str = Field(min_length=1)


class ContactStatusUpdate(BaseModel):
    status: ContactStatus


class BulkNotification(BaseModel):
    title: str = Field(min_length=1)
    message: str = Field(min_length=1)
    event_id: Optional[int] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
