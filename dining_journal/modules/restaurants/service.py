from datetime import datetime, timezone
import logging
from supabase import Client
from dining_journal.modules.restaurants.schemas import (
    RestaurantCreate, RestaurantUpdate, RestaurantResponse,
    RestaurantWithStatsResponse, RestaurantDetailResponse
)
from dining_journal.modules.visits.aggregator import aggregate_restaurant
from dining_journal.modules.visits.service import VisitService
from dining_journal.config.family_roles import role_can
from dining_journal.core.dependencies import get_family_membership
from dining_journal.core.exceptions import (
    NotFoundError, PermissionDeniedError, StoreError, translate_store_error
)
from typing import Dict, List
from fastapi import HTTPException

logger = logging.getLogger(__name__)


class RestaurantService:
    def __init__(self, supabase: Client):
        self.supabase = supabase
        self.visits = VisitService(supabase)

    def create_restaurant(self, restaurant_data: RestaurantCreate, user_id: str) -> RestaurantResponse:
        """Add a restaurant to the family journal"""
        membership = get_family_membership(restaurant_data.family_id, user_id, self.supabase)
        if not membership or not role_can(membership["role"], "journal:write"):
            raise PermissionDeniedError("You must be a member of this family to add restaurants")
        try:
            result = self.supabase.table("restaurants").insert({
                "family_id": restaurant_data.family_id,
                "name": restaurant_data.name,
                "cuisine": restaurant_data.cuisine,
                "address": restaurant_data.address,
                "website": restaurant_data.website,
                "notes": restaurant_data.notes,
                "created_by": user_id
            }).execute()

            if not result.data:
                raise StoreError("Failed to create restaurant")

            return RestaurantResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise translate_store_error(e)

    def get_restaurant_by_id(self, restaurant_id: str) -> RestaurantResponse:
        """Get restaurant by ID"""
        try:
            result = self.supabase.table("restaurants")\
                .select("*")\
                .eq("id", restaurant_id)\
                .limit(1)\
                .execute()

            if not result.data:
                raise NotFoundError("Restaurant not found")

            return RestaurantResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise translate_store_error(e)

    def get_restaurant_detail(self, restaurant_id: str) -> RestaurantDetailResponse:
        """Restaurant with its visits (newest first) and stats over them"""
        restaurant = self.get_restaurant_by_id(restaurant_id)
        visits = self.visits.list_visits(restaurant_id)
        stats = aggregate_restaurant(visits)
        return RestaurantDetailResponse(
            **restaurant.model_dump(),
            **stats.model_dump(),
            visits=visits
        )

    def list_restaurants(self, family_id: str) -> List[RestaurantWithStatsResponse]:
        """Family restaurants, most recently added first, each with visit stats"""
        try:
            result = self.supabase.table("restaurants")\
                .select("*")\
                .eq("family_id", family_id)\
                .order("created_at", desc=True)\
                .execute()
            restaurants = result.data or []
            if not restaurants:
                return []

            visits_result = self.supabase.table("visits")\
                .select("restaurant_id, overall_rating, total_bill, date")\
                .in_("restaurant_id", [r["id"] for r in restaurants])\
                .execute()
        except Exception as e:
            raise translate_store_error(e)

        visits_by_restaurant: Dict[str, List[dict]] = {}
        for visit in visits_result.data or []:
            visits_by_restaurant.setdefault(visit["restaurant_id"], []).append(visit)

        return [
            RestaurantWithStatsResponse(
                **restaurant,
                **aggregate_restaurant(visits_by_restaurant.get(restaurant["id"], [])).model_dump()
            )
            for restaurant in restaurants
        ]

    def update_restaurant(self, restaurant_id: str, restaurant_data: RestaurantUpdate) -> RestaurantResponse:
        """Update restaurant; blank optional fields are cleared"""
        try:
            update_data = {}
            if restaurant_data.name and restaurant_data.name.strip():
                update_data["name"] = restaurant_data.name.strip()
            for field in ("cuisine", "address", "website", "notes"):
                value = getattr(restaurant_data, field)
                if value is not None:
                    update_data[field] = value.strip() or None

            if not update_data:
                # No changes, return existing
                return self.get_restaurant_by_id(restaurant_id)

            update_data["updated_at"] = datetime.now(timezone.utc).isoformat()

            result = self.supabase.table("restaurants")\
                .update(update_data)\
                .eq("id", restaurant_id)\
                .execute()

            if not result.data:
                raise NotFoundError("Restaurant not found")

            return RestaurantResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise translate_store_error(e)

    def delete_restaurant(self, restaurant_id: str) -> bool:
        """Delete restaurant; visits, dishes and attendees cascade in the store"""
        try:
            result = self.supabase.table("restaurants")\
                .delete()\
                .eq("id", restaurant_id)\
                .execute()

            logger.info(f"Restaurant {restaurant_id} deleted")
            return len(result.data) > 0
        except Exception as e:
            raise translate_store_error(e)
