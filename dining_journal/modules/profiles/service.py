from datetime import datetime, timezone
import logging
from supabase import Client
from dining_journal.modules.profiles.schemas import ProfileUpdate, ProfileResponse
from dining_journal.modules.profiles.models import PROFILE_SUMMARY_COLUMNS
from dining_journal.database.supabase_client import SupabaseClient
from dining_journal.core.exceptions import NotFoundError, translate_store_error
from typing import Dict, List
from fastapi import HTTPException

logger = logging.getLogger(__name__)


class ProfileService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_profile(self, user_id: str) -> ProfileResponse:
        """Get profile by user ID"""
        try:
            result = self.supabase.table("profiles")\
                .select("*")\
                .eq("id", user_id)\
                .limit(1)\
                .execute()

            if not result.data:
                raise NotFoundError("Profile not found")

            return ProfileResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise translate_store_error(e)

    def get_profiles(self, user_ids: List[str]) -> Dict[str, dict]:
        """Profiles keyed by id, for attaching names to members, visits and attendees"""
        ids = sorted({user_id for user_id in user_ids if user_id})
        if not ids:
            return {}
        try:
            result = self.supabase.table("profiles")\
                .select(PROFILE_SUMMARY_COLUMNS)\
                .in_("id", ids)\
                .execute()
            return {p["id"]: p for p in (result.data or [])}
        except Exception as e:
            raise translate_store_error(e)

    def update_profile(self, user_id: str, profile_data: ProfileUpdate) -> ProfileResponse:
        """Update the profile row, then mirror full_name into the auth user metadata"""
        try:
            update_data = {"updated_at": datetime.now(timezone.utc).isoformat()}
            if profile_data.full_name is not None:
                update_data["full_name"] = profile_data.full_name.strip() or None
            if profile_data.avatar_url is not None:
                update_data["avatar_url"] = profile_data.avatar_url or None

            result = self.supabase.table("profiles")\
                .update(update_data)\
                .eq("id", user_id)\
                .execute()

            if not result.data:
                raise NotFoundError("Profile not found")

            if profile_data.full_name is not None:
                self._sync_auth_metadata(user_id, {"full_name": update_data["full_name"]})

            return ProfileResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise translate_store_error(e)

    def _sync_auth_metadata(self, user_id: str, metadata: dict) -> bool:
        """Requires SUPABASE_SERVICE_ROLE_KEY; the profiles row stays the source of truth"""
        admin_client = SupabaseClient.get_service_client()
        try:
            admin_client.auth.admin.update_user_by_id(user_id, {"user_metadata": metadata})
            return True
        except Exception as e:
            logger.warning(f"Could not update auth metadata for {user_id}: {e}")
            return False
