from fastapi import APIRouter, Depends
from dining_journal.database.supabase_client import get_supabase
from dining_journal.modules.restaurants.schemas import (
    RestaurantCreate, RestaurantUpdate, RestaurantResponse,
    RestaurantWithStatsResponse, RestaurantDetailResponse, SortKey
)
from dining_journal.modules.restaurants.service import RestaurantService
from dining_journal.modules.restaurants.listing import apply_listing
from dining_journal.modules.restaurants.models import CUISINE_OPTIONS
from dining_journal.modules.visits.schemas import VisitInput, VisitResponse
from dining_journal.modules.visits.routes import get_visit_service
from dining_journal.modules.visits.service import VisitService
from dining_journal.core.dependencies import get_current_user_id, check_family_permission, check_restaurant_access
from supabase import Client
from typing import List, Optional, Dict

router = APIRouter(prefix="/restaurants", tags=["restaurants"])


def get_restaurant_service(supabase: Client = Depends(get_supabase)) -> RestaurantService:
    return RestaurantService(supabase)


@router.post("", response_model=RestaurantResponse, status_code=201)
async def create_restaurant(
    restaurant_data: RestaurantCreate,
    user_data: Dict = Depends(get_current_user_id),
    service: RestaurantService = Depends(get_restaurant_service)
):
    """Add a restaurant (family members only)"""
    return service.create_restaurant(restaurant_data, user_data["id"])


@router.get("", response_model=List[RestaurantWithStatsResponse])
async def list_restaurants(
    family_id: str,
    q: str = "",
    cuisine: Optional[str] = None,
    sort: SortKey = "recent",
    user_data: Dict = Depends(get_current_user_id),
    service: RestaurantService = Depends(get_restaurant_service),
    supabase: Client = Depends(get_supabase)
):
    """Family restaurants with stats; q searches name/cuisine/address, cuisine=All disables the filter"""
    check_family_permission(family_id, user_data, supabase, "journal:read")
    return apply_listing(service.list_restaurants(family_id), query=q, cuisine=cuisine, sort_by=sort)


@router.get("/cuisines", response_model=List[str])
async def list_cuisines():
    """Suggested cuisine values"""
    return CUISINE_OPTIONS


@router.get("/{restaurant_id}", response_model=RestaurantDetailResponse)
async def get_restaurant(
    restaurant_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: RestaurantService = Depends(get_restaurant_service),
    supabase: Client = Depends(get_supabase)
):
    """Restaurant with stats and all visits (family members only)"""
    check_restaurant_access(restaurant_id, user_data, supabase)
    return service.get_restaurant_detail(restaurant_id)


@router.put("/{restaurant_id}", response_model=RestaurantResponse)
async def update_restaurant(
    restaurant_id: str,
    restaurant_data: RestaurantUpdate,
    user_data: Dict = Depends(get_current_user_id),
    service: RestaurantService = Depends(get_restaurant_service),
    supabase: Client = Depends(get_supabase)
):
    """Update restaurant (family members only)"""
    check_restaurant_access(restaurant_id, user_data, supabase, permission="journal:write")
    return service.update_restaurant(restaurant_id, restaurant_data)


@router.delete("/{restaurant_id}", status_code=204)
async def delete_restaurant(
    restaurant_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: RestaurantService = Depends(get_restaurant_service),
    supabase: Client = Depends(get_supabase)
):
    """Delete restaurant and its visits (family members only)"""
    check_restaurant_access(restaurant_id, user_data, supabase, permission="journal:write")
    service.delete_restaurant(restaurant_id)
    return None


@router.post("/{restaurant_id}/visits", response_model=VisitResponse, status_code=201)
async def create_visit(
    restaurant_id: str,
    visit_data: VisitInput,
    user_data: Dict = Depends(get_current_user_id),
    service: VisitService = Depends(get_visit_service)
):
    """Log a visit with its dishes and attendees"""
    return service.create_visit(restaurant_id, visit_data, user_data["id"])


@router.get("/{restaurant_id}/visits", response_model=List[VisitResponse])
async def list_visits(
    restaurant_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: VisitService = Depends(get_visit_service),
    supabase: Client = Depends(get_supabase)
):
    """Visits of a restaurant, newest first (family members only)"""
    check_restaurant_access(restaurant_id, user_data, supabase)
    return service.list_visits(restaurant_id)
