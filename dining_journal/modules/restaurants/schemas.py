from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Literal
from datetime import date, datetime
from dining_journal.modules.visits.schemas import VisitResponse


SortKey = Literal["recent", "rating", "visits", "name"]


def _blank_to_none(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    return v.strip() or None


class RestaurantCreate(BaseModel):
    family_id: str
    name: str = Field(..., max_length=200)
    cuisine: Optional[str] = None
    address: Optional[str] = None
    website: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Restaurant name is required")
        return v

    @field_validator("cuisine", "address", "website", "notes")
    @classmethod
    def optional_text(cls, v: Optional[str]) -> Optional[str]:
        return _blank_to_none(v)


class RestaurantUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=200)
    cuisine: Optional[str] = None
    address: Optional[str] = None
    website: Optional[str] = None
    notes: Optional[str] = None


class RestaurantResponse(BaseModel):
    id: str
    family_id: str
    name: str
    cuisine: Optional[str] = None
    address: Optional[str] = None
    website: Optional[str] = None
    notes: Optional[str] = None
    created_by: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RestaurantWithStatsResponse(RestaurantResponse):
    visit_count: int = 0
    avg_rating: Optional[float] = None
    avg_price: Optional[float] = None
    last_visit: Optional[date] = None


class RestaurantDetailResponse(RestaurantWithStatsResponse):
    visits: List[VisitResponse] = []
