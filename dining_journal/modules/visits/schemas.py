from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import date as CalendarDate, datetime


class DishInput(BaseModel):
    name: str = Field(..., max_length=200)
    rating: Optional[int] = Field(None, ge=1, le=5)
    price: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    notes: Optional[str] = None
    ordered_by: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Dish name is required")
        return v

    @field_validator("notes")
    @classmethod
    def blank_notes_to_none(cls, v: Optional[str]) -> Optional[str]:
        return (v.strip() or None) if v is not None else None


class VisitInput(BaseModel):
    """A visit with its dishes and attendees, submitted as one unit"""
    date: CalendarDate
    family_id: Optional[str] = None  # must match the restaurant's family when given
    overall_rating: Optional[int] = Field(None, ge=1, le=5)
    value_for_money: Optional[int] = Field(None, ge=1, le=5)
    total_bill: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    number_of_people: Optional[int] = Field(None, gt=0)
    would_recommend: Optional[bool] = None
    notes: Optional[str] = None
    dishes: List[DishInput] = []
    attendee_user_ids: List[str] = []

    @field_validator("notes")
    @classmethod
    def blank_notes_to_none(cls, v: Optional[str]) -> Optional[str]:
        return (v.strip() or None) if v is not None else None

    @field_validator("attendee_user_ids")
    @classmethod
    def dedupe_attendees(cls, v: List[str]) -> List[str]:
        seen = []
        for user_id in v:
            if user_id and user_id not in seen:
                seen.append(user_id)
        return seen


class DishResponse(BaseModel):
    id: str
    visit_id: str
    name: str
    rating: Optional[int] = None
    price: Optional[float] = None
    notes: Optional[str] = None
    ordered_by: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AttendeeResponse(BaseModel):
    user_id: str
    display_name: str
    personal_rating: Optional[int] = None
    personal_notes: Optional[str] = None


class VisitResponse(BaseModel):
    id: str
    restaurant_id: str
    family_id: str
    date: CalendarDate
    overall_rating: Optional[int] = None
    value_for_money: Optional[int] = None
    total_bill: Optional[float] = None
    number_of_people: Optional[int] = None
    price_per_person: Optional[float] = None
    would_recommend: Optional[bool] = None
    notes: Optional[str] = None
    created_by: str
    created_by_name: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    dishes: List[DishResponse] = []
    attendees: List[AttendeeResponse] = []

    class Config:
        from_attributes = True


class RestaurantStats(BaseModel):
    visit_count: int = 0
    avg_rating: Optional[float] = None
    avg_price: Optional[float] = None
    last_visit: Optional[CalendarDate] = None
