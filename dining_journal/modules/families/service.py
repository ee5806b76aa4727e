from datetime import datetime, timezone
import logging
from supabase import Client
from dining_journal.modules.families.schemas import (
    FamilyCreate, FamilyUpdate, FamilyResponse, FamilyMemberResponse, MembershipResponse
)
from dining_journal.modules.families.invite_codes import generate_invite_code, normalize_invite_code
from dining_journal.modules.families.models import ROLE_LIST_ORDER
from dining_journal.modules.profiles.service import ProfileService
from dining_journal.modules.profiles.schemas import display_name
from dining_journal.config.settings import settings
from dining_journal.config.family_roles import OWNER, ADMIN, MEMBER
from dining_journal.core.dependencies import get_user_membership
from dining_journal.core.exceptions import (
    BusinessRuleError, ConstraintViolationError, InvalidInviteCodeError, NotFoundError,
    PermissionDeniedError, StoreError, is_unique_violation, translate_store_error
)
from typing import List, Optional
from fastapi import HTTPException

logger = logging.getLogger(__name__)


class FamilyService:
    def __init__(self, supabase: Client):
        self.supabase = supabase
        self.profiles = ProfileService(supabase)

    def _ensure_no_family(self, user_id: str):
        if get_user_membership(user_id, self.supabase):
            raise ConstraintViolationError("You already belong to a family")

    def create_family(self, family_data: FamilyCreate, user_id: str) -> FamilyResponse:
        """Create a family with a fresh invite code and make the creator its owner"""
        self._ensure_no_family(user_id)
        family_row = None
        for attempt in range(settings.invite_code_max_attempts):
            try:
                result = self.supabase.table("families").insert({
                    "name": family_data.name,
                    "invite_code": generate_invite_code(settings.invite_code_length),
                    "created_by": user_id
                }).execute()
            except Exception as e:
                if is_unique_violation(e):
                    logger.warning(f"Invite code collision on family create (attempt {attempt + 1})")
                    continue
                raise translate_store_error(e)
            if not result.data:
                raise StoreError("Failed to create family")
            family_row = result.data[0]
            break
        if family_row is None:
            raise ConstraintViolationError("Could not issue a unique invite code, please try again")

        try:
            self.supabase.table("family_members").insert({
                "family_id": family_row["id"],
                "user_id": user_id,
                "role": OWNER
            }).execute()
        except Exception as e:
            # Owner row failed: remove the family so no ownerless family remains
            logger.warning(f"Owner insert failed for family {family_row['id']}, removing it: {e}")
            try:
                self.supabase.table("families").delete().eq("id", family_row["id"]).execute()
            except Exception as cleanup_error:
                logger.error(f"Could not remove ownerless family {family_row['id']}: {cleanup_error}")
            raise translate_store_error(e)

        logger.info(f"Family {family_row['id']} created by {user_id}")
        return FamilyResponse(**family_row)

    def get_family_by_id(self, family_id: str) -> FamilyResponse:
        """Get family by ID"""
        try:
            result = self.supabase.table("families")\
                .select("*")\
                .eq("id", family_id)\
                .limit(1)\
                .execute()

            if not result.data:
                raise NotFoundError("Family not found")

            return FamilyResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise translate_store_error(e)

    def get_my_family(self, user_id: str) -> MembershipResponse:
        """The caller's family, their role and the member list"""
        membership = get_user_membership(user_id, self.supabase)
        if not membership:
            raise NotFoundError("You are not in a family yet")
        family = self.get_family_by_id(membership["family_id"])
        return MembershipResponse(
            family=family,
            role=membership["role"],
            members=self.list_members(family.id)
        )

    def update_family(self, family_id: str, family_data: FamilyUpdate) -> FamilyResponse:
        """Rename a family"""
        try:
            update_data = {}
            if family_data.name and family_data.name.strip():
                update_data["name"] = family_data.name.strip()

            if not update_data:
                # No changes, return existing
                return self.get_family_by_id(family_id)

            update_data["updated_at"] = datetime.now(timezone.utc).isoformat()

            result = self.supabase.table("families")\
                .update(update_data)\
                .eq("id", family_id)\
                .execute()

            if not result.data:
                raise NotFoundError("Family not found")

            return FamilyResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise translate_store_error(e)

    def delete_family(self, family_id: str) -> bool:
        """Delete family; the store cascades members, restaurants and visits"""
        try:
            result = self.supabase.table("families")\
                .delete()\
                .eq("id", family_id)\
                .execute()

            logger.info(f"Family {family_id} deleted")
            return len(result.data) > 0
        except Exception as e:
            raise translate_store_error(e)

    def list_members(self, family_id: str) -> List[FamilyMemberResponse]:
        """List all members of a family with their display names, owner first"""
        try:
            result = self.supabase.table("family_members")\
                .select("*")\
                .eq("family_id", family_id)\
                .order("joined_at")\
                .execute()
        except Exception as e:
            raise translate_store_error(e)

        rows = result.data or []
        profiles = self.profiles.get_profiles([m["user_id"] for m in rows])
        members = []
        for member in sorted(rows, key=lambda m: ROLE_LIST_ORDER.get(m["role"], len(ROLE_LIST_ORDER))):
            profile = profiles.get(member["user_id"])
            members.append(FamilyMemberResponse(
                **member,
                display_name=member.get("nickname") or display_name(profile),
                email=profile.get("email") if profile else None
            ))
        return members

    def _get_member(self, family_id: str, user_id: str) -> dict:
        try:
            result = self.supabase.table("family_members")\
                .select("*")\
                .eq("family_id", family_id)\
                .eq("user_id", user_id)\
                .limit(1)\
                .execute()
        except Exception as e:
            raise translate_store_error(e)
        if not result.data:
            raise NotFoundError("Member not found")
        return result.data[0]

    def _set_role(self, family_id: str, user_id: str, role: str):
        result = self.supabase.table("family_members")\
            .update({"role": role})\
            .eq("family_id", family_id)\
            .eq("user_id", user_id)\
            .execute()
        if not result.data:
            raise NotFoundError("Member not found")
        return result.data[0]

    def remove_member(self, family_id: str, target_user_id: str, acting_membership: dict) -> bool:
        """Remove a member. Owners cannot be removed; admins can only remove plain members."""
        if target_user_id == acting_membership["user_id"]:
            raise BusinessRuleError("Use leave to remove yourself from the family")
        target = self._get_member(family_id, target_user_id)
        if target["role"] == OWNER:
            raise PermissionDeniedError("The family owner cannot be removed")
        if target["role"] == ADMIN and acting_membership["role"] != OWNER:
            raise PermissionDeniedError("Only the owner can remove an admin")
        try:
            result = self.supabase.table("family_members")\
                .delete()\
                .eq("id", target["id"])\
                .execute()
            logger.info(f"User {target_user_id} removed from family {family_id}")
            return len(result.data) > 0
        except Exception as e:
            raise translate_store_error(e)

    def change_member_role(self, family_id: str, target_user_id: str, role: str) -> FamilyMemberResponse:
        """Promote to admin or demote to member; ownership moves only by transfer"""
        target = self._get_member(family_id, target_user_id)
        if target["role"] == OWNER:
            raise BusinessRuleError("Transfer ownership to change the owner's role")
        try:
            updated = self._set_role(family_id, target_user_id, role)
        except HTTPException:
            raise
        except Exception as e:
            raise translate_store_error(e)
        return FamilyMemberResponse(**updated)

    def leave_family(self, family_id: str, user_id: str) -> bool:
        membership = self._get_member(family_id, user_id)
        if membership["role"] == OWNER:
            raise BusinessRuleError("Transfer ownership to another member before leaving")
        try:
            self.supabase.table("family_members")\
                .delete()\
                .eq("id", membership["id"])\
                .execute()
        except Exception as e:
            raise translate_store_error(e)
        logger.info(f"User {user_id} left family {family_id}")
        return True

    def transfer_ownership(self, family_id: str, owner_id: str, new_owner_id: str) -> List[FamilyMemberResponse]:
        """Hand ownership to another member; the previous owner becomes an admin"""
        if new_owner_id == owner_id:
            raise BusinessRuleError("You already own this family")
        self._get_member(family_id, new_owner_id)

        # One owner per family: demote first, then promote, undoing the demotion on failure
        try:
            self._set_role(family_id, owner_id, ADMIN)
        except HTTPException:
            raise
        except Exception as e:
            raise translate_store_error(e)
        try:
            self._set_role(family_id, new_owner_id, OWNER)
        except Exception as e:
            logger.warning(f"Ownership transfer in family {family_id} failed, restoring owner: {e}")
            try:
                self._set_role(family_id, owner_id, OWNER)
            except Exception as restore_error:
                logger.error(f"Family {family_id} left without owner: {restore_error}")
            if isinstance(e, HTTPException):
                raise
            raise translate_store_error(e)

        logger.info(f"Family {family_id} ownership moved from {owner_id} to {new_owner_id}")
        return self.list_members(family_id)

    def regenerate_invite_code(self, family_id: str) -> FamilyResponse:
        """Replace the invite code in one row update; the old code stops matching immediately"""
        for attempt in range(settings.invite_code_max_attempts):
            try:
                result = self.supabase.table("families")\
                    .update({
                        "invite_code": generate_invite_code(settings.invite_code_length),
                        "updated_at": datetime.now(timezone.utc).isoformat()
                    })\
                    .eq("id", family_id)\
                    .execute()
            except Exception as e:
                if is_unique_violation(e):
                    logger.warning(f"Invite code collision on regenerate (attempt {attempt + 1})")
                    continue
                raise translate_store_error(e)
            if not result.data:
                raise NotFoundError("Family not found")
            logger.info(f"Invite code regenerated for family {family_id}")
            return FamilyResponse(**result.data[0])
        raise ConstraintViolationError("Could not issue a unique invite code, please try again")

    def find_family_by_code(self, invite_code: str) -> Optional[dict]:
        code = normalize_invite_code(invite_code)
        if not code:
            return None
        try:
            result = self.supabase.table("families")\
                .select("id, name")\
                .eq("invite_code", code)\
                .limit(1)\
                .execute()
        except Exception as e:
            raise translate_store_error(e)
        return result.data[0] if result.data else None

    def join_family(self, invite_code: str, user_id: str) -> FamilyResponse:
        """Join the family holding this code as a plain member"""
        family = self.find_family_by_code(invite_code)
        if not family:
            raise InvalidInviteCodeError()

        existing = get_user_membership(user_id, self.supabase)
        if existing:
            if existing["family_id"] == family["id"]:
                raise ConstraintViolationError("You are already a member of this family")
            raise ConstraintViolationError("You already belong to a family")

        try:
            self.supabase.table("family_members").insert({
                "family_id": family["id"],
                "user_id": user_id,
                "role": MEMBER
            }).execute()
        except Exception as e:
            raise translate_store_error(e)

        logger.info(f"User {user_id} joined family {family['id']}")
        return self.get_family_by_id(family["id"])
