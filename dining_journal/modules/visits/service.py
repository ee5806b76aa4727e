from datetime import datetime, timezone
import logging
from supabase import Client
from dining_journal.modules.visits.schemas import (
    VisitInput, VisitResponse, DishResponse, AttendeeResponse
)
from dining_journal.modules.visits.aggregator import price_per_person
from dining_journal.modules.visits.models import EDITABLE_VISIT_FIELDS
from dining_journal.modules.profiles.service import ProfileService
from dining_journal.modules.profiles.schemas import display_name
from dining_journal.config.family_roles import role_can
from dining_journal.core.dependencies import get_family_membership
from dining_journal.core.exceptions import (
    NotFoundError, PermissionDeniedError, RecordValidationError,
    StoreError, VisitPartiallyRecordedError, translate_store_error
)
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

class VisitService:
    def __init__(self, supabase: Client):
        self.supabase = supabase
        self.profiles = ProfileService(supabase)

    # --- reads ---

    def _select_one(self, table: str, row_id: str, not_found: str) -> dict:
        try:
            result = self.supabase.table(table)\
                .select("*")\
                .eq("id", row_id)\
                .limit(1)\
                .execute()
        except Exception as e:
            raise translate_store_error(e)
        if not result.data:
            raise NotFoundError(not_found)
        return result.data[0]

    def _children(self, table: str, visit_ids: List[str]) -> List[dict]:
        if not visit_ids:
            return []
        try:
            result = self.supabase.table(table)\
                .select("*")\
                .in_("visit_id", visit_ids)\
                .execute()
            return result.data or []
        except Exception as e:
            raise translate_store_error(e)

    def _build_responses(self, visits: List[dict]) -> List[VisitResponse]:
        visit_ids = [v["id"] for v in visits]
        dishes = self._children("dishes", visit_ids)
        attendees = self._children("visit_attendees", visit_ids)
        profiles = self.profiles.get_profiles(
            [v["created_by"] for v in visits] + [a["user_id"] for a in attendees]
        )

        dishes_by_visit: Dict[str, List[dict]] = {}
        for dish in sorted(dishes, key=lambda d: d.get("created_at") or ""):
            dishes_by_visit.setdefault(dish["visit_id"], []).append(dish)
        attendees_by_visit: Dict[str, List[dict]] = {}
        for attendee in attendees:
            attendees_by_visit.setdefault(attendee["visit_id"], []).append(attendee)

        responses = []
        for visit in visits:
            responses.append(VisitResponse(
                **visit,
                price_per_person=price_per_person(visit.get("total_bill"), visit.get("number_of_people")),
                created_by_name=display_name(profiles.get(visit["created_by"])),
                dishes=[DishResponse(**d) for d in dishes_by_visit.get(visit["id"], [])],
                attendees=[
                    AttendeeResponse(
                        user_id=a["user_id"],
                        display_name=display_name(profiles.get(a["user_id"])),
                        personal_rating=a.get("personal_rating"),
                        personal_notes=a.get("personal_notes")
                    )
                    for a in attendees_by_visit.get(visit["id"], [])
                ]
            ))
        return responses

    def get_visit(self, visit_id: str) -> VisitResponse:
        """Visit with dishes, attendees and creator name"""
        visit = self._select_one("visits", visit_id, "Visit not found")
        return self._build_responses([visit])[0]

    def list_visits(self, restaurant_id: str) -> List[VisitResponse]:
        """All visits of a restaurant, newest first"""
        try:
            result = self.supabase.table("visits")\
                .select("*")\
                .eq("restaurant_id", restaurant_id)\
                .order("date", desc=True)\
                .execute()
        except Exception as e:
            raise translate_store_error(e)
        return self._build_responses(result.data or [])

    def delete_visit(self, visit_id: str) -> bool:
        """Delete a visit; dishes and attendees cascade in the store"""
        try:
            result = self.supabase.table("visits")\
                .delete()\
                .eq("id", visit_id)\
                .execute()
            return len(result.data) > 0
        except Exception as e:
            raise translate_store_error(e)

    # --- recording ---

    def _authorize(self, restaurant_id: str, visit_data: VisitInput, user_id: str) -> dict:
        """Every check that must pass before the first write. Returns the restaurant row."""
        restaurant = self._select_one("restaurants", restaurant_id, "Restaurant not found")
        family_id = restaurant["family_id"]
        if visit_data.family_id and visit_data.family_id != family_id:
            raise RecordValidationError("Restaurant does not belong to this family")

        membership = get_family_membership(family_id, user_id, self.supabase)
        if not membership or not role_can(membership["role"], "journal:write"):
            raise PermissionDeniedError("You must be a member of this family")

        people = set(visit_data.attendee_user_ids)
        people.update(d.ordered_by for d in visit_data.dishes if d.ordered_by)
        if people:
            try:
                result = self.supabase.table("family_members")\
                    .select("user_id")\
                    .eq("family_id", family_id)\
                    .in_("user_id", sorted(people))\
                    .execute()
            except Exception as e:
                raise translate_store_error(e)
            members = {m["user_id"] for m in (result.data or [])}
            if people - members:
                raise RecordValidationError("Attendees must be members of this family")
        return restaurant

    def _visit_row(self, visit_data: VisitInput) -> dict:
        return {
            "date": visit_data.date.isoformat(),
            "overall_rating": visit_data.overall_rating,
            "value_for_money": visit_data.value_for_money,
            "total_bill": visit_data.total_bill,
            "number_of_people": visit_data.number_of_people,
            "would_recommend": visit_data.would_recommend,
            "notes": visit_data.notes,
        }

    def _insert_children(self, visit_id: str, visit_data: VisitInput):
        if visit_data.dishes:
            self.supabase.table("dishes").insert([
                {
                    "visit_id": visit_id,
                    "name": dish.name,
                    "rating": dish.rating,
                    "price": dish.price,
                    "notes": dish.notes,
                    "ordered_by": dish.ordered_by,
                }
                for dish in visit_data.dishes
            ]).execute()
        if visit_data.attendee_user_ids:
            self.supabase.table("visit_attendees").insert([
                {"visit_id": visit_id, "user_id": user_id}
                for user_id in visit_data.attendee_user_ids
            ]).execute()

    def _delete_children(self, visit_id: str):
        self.supabase.table("dishes").delete().eq("visit_id", visit_id).execute()
        self.supabase.table("visit_attendees").delete().eq("visit_id", visit_id).execute()

    def record_visit(
        self,
        restaurant_id: str,
        visit_data: VisitInput,
        user_id: str,
        existing_visit_id: Optional[str] = None
    ) -> VisitResponse:
        """
        Write a visit with its dishes and attendees as one unit.

        Without existing_visit_id a new visit is inserted. With it, the visit is
        updated in place and its dishes and attendees are replaced by the
        submitted ones. If a later write fails, earlier writes are undone; when
        undoing fails too, VisitPartiallyRecordedError names the visit to fix.
        """
        restaurant = self._authorize(restaurant_id, visit_data, user_id)

        if existing_visit_id is None:
            visit_id = self._create_visit(restaurant, visit_data, user_id)
        else:
            existing = self._select_one("visits", existing_visit_id, "Visit not found")
            if existing["restaurant_id"] != restaurant_id:
                raise NotFoundError("Visit not found")
            visit_id = self._replace_visit(existing, visit_data)

        return self.get_visit(visit_id)

    def create_visit(self, restaurant_id: str, visit_data: VisitInput, user_id: str) -> VisitResponse:
        return self.record_visit(restaurant_id, visit_data, user_id)

    def update_visit(self, visit_id: str, visit_data: VisitInput, user_id: str) -> VisitResponse:
        existing = self._select_one("visits", visit_id, "Visit not found")
        return self.record_visit(existing["restaurant_id"], visit_data, user_id, existing_visit_id=visit_id)

    def _create_visit(self, restaurant: dict, visit_data: VisitInput, user_id: str) -> str:
        try:
            result = self.supabase.table("visits").insert({
                **self._visit_row(visit_data),
                "restaurant_id": restaurant["id"],
                "family_id": restaurant["family_id"],
                "created_by": user_id,
            }).execute()
        except Exception as e:
            raise translate_store_error(e)
        if not result.data:
            raise StoreError("Failed to record visit")
        visit_id = result.data[0]["id"]

        try:
            self._insert_children(visit_id, visit_data)
        except Exception as e:
            logger.warning(f"Child insert failed for new visit {visit_id}, rolling back: {e}")
            try:
                self._delete_children(visit_id)
                deleted = self.supabase.table("visits").delete().eq("id", visit_id).execute()
            except Exception as cleanup_error:
                logger.error(f"Rollback of visit {visit_id} failed: {cleanup_error}")
                raise VisitPartiallyRecordedError(visit_id)
            # row-level security can turn the delete into a no-op
            if not deleted.data:
                logger.error(f"Rollback of visit {visit_id} deleted no rows")
                raise VisitPartiallyRecordedError(visit_id)
            raise translate_store_error(e)

        logger.info(f"Visit {visit_id} recorded for restaurant {restaurant['id']}")
        return visit_id

    def _replace_visit(self, existing: dict, visit_data: VisitInput) -> str:
        visit_id = existing["id"]
        old_dishes = self._children("dishes", [visit_id])
        old_attendees = self._children("visit_attendees", [visit_id])

        try:
            result = self.supabase.table("visits")\
                .update({
                    **self._visit_row(visit_data),
                    "updated_at": datetime.now(timezone.utc).isoformat(),
                })\
                .eq("id", visit_id)\
                .execute()
        except Exception as e:
            raise translate_store_error(e)
        if not result.data:
            raise NotFoundError("Visit not found")

        try:
            self._delete_children(visit_id)
            self._insert_children(visit_id, visit_data)
        except Exception as e:
            logger.warning(f"Child replace failed for visit {visit_id}, restoring previous state: {e}")
            try:
                restored = self.supabase.table("visits")\
                    .update({field: existing.get(field) for field in EDITABLE_VISIT_FIELDS})\
                    .eq("id", visit_id)\
                    .execute()
                if not restored.data:
                    raise StoreError(f"Restore of visit {visit_id} updated no rows")
                self._delete_children(visit_id)
                if old_dishes:
                    self.supabase.table("dishes").insert(old_dishes).execute()
                if old_attendees:
                    self.supabase.table("visit_attendees").insert(old_attendees).execute()
            except Exception as restore_error:
                logger.error(f"Restore of visit {visit_id} failed: {restore_error}")
                raise VisitPartiallyRecordedError(visit_id)
            raise translate_store_error(e)

        logger.info(f"Visit {visit_id} updated")
        return visit_id
