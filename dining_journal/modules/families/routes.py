from fastapi import APIRouter, Depends
from dining_journal.database.supabase_client import get_supabase
from dining_journal.modules.families.schemas import (
    FamilyCreate, FamilyUpdate, FamilyResponse, FamilyJoin,
    FamilyMemberResponse, MembershipResponse, MemberRoleUpdate, OwnershipTransfer
)
from dining_journal.modules.families.service import FamilyService
from dining_journal.core.dependencies import get_current_user_id, require_family_permission
from dining_journal.config.family_roles import get_permission_matrix
from supabase import Client
from typing import List, Dict

router = APIRouter(prefix="/families", tags=["families"])


def get_family_service(supabase: Client = Depends(get_supabase)) -> FamilyService:
    return FamilyService(supabase)


@router.post("", response_model=FamilyResponse, status_code=201)
async def create_family(
    family_data: FamilyCreate,
    user_data: Dict = Depends(get_current_user_id),
    service: FamilyService = Depends(get_family_service)
):
    """Create a new family; the caller becomes its owner"""
    return service.create_family(family_data, user_data["id"])


@router.get("/me", response_model=MembershipResponse)
async def get_my_family(
    user_data: Dict = Depends(get_current_user_id),
    service: FamilyService = Depends(get_family_service)
):
    """The caller's family with members (404 when they have none)"""
    return service.get_my_family(user_data["id"])


@router.post("/join", response_model=FamilyResponse)
async def join_family(
    join_data: FamilyJoin,
    user_data: Dict = Depends(get_current_user_id),
    service: FamilyService = Depends(get_family_service)
):
    """Join a family by invite code (case-insensitive)"""
    return service.join_family(join_data.invite_code, user_data["id"])


@router.get("/roles")
async def get_roles(user_data: Dict = Depends(get_current_user_id)):
    """What each family role may do"""
    return get_permission_matrix()


@router.get("/{family_id}", response_model=FamilyResponse)
async def get_family(
    family_id: str,
    user_data: Dict = Depends(require_family_permission("families:read")),
    service: FamilyService = Depends(get_family_service)
):
    """Get family by ID (members only)"""
    return service.get_family_by_id(family_id)


@router.put("/{family_id}", response_model=FamilyResponse)
async def update_family(
    family_id: str,
    family_data: FamilyUpdate,
    user_data: Dict = Depends(require_family_permission("families:update")),
    service: FamilyService = Depends(get_family_service)
):
    """Rename family (owner or admin)"""
    return service.update_family(family_id, family_data)


@router.delete("/{family_id}", status_code=204)
async def delete_family(
    family_id: str,
    user_data: Dict = Depends(require_family_permission("families:delete")),
    service: FamilyService = Depends(get_family_service)
):
    """Delete family and everything in it (owner only)"""
    service.delete_family(family_id)
    return None


@router.get("/{family_id}/members", response_model=List[FamilyMemberResponse])
async def list_members(
    family_id: str,
    user_data: Dict = Depends(require_family_permission("members:read")),
    service: FamilyService = Depends(get_family_service)
):
    """List all members of a family (members only)"""
    return service.list_members(family_id)


@router.put("/{family_id}/members/{user_id}", response_model=FamilyMemberResponse)
async def change_member_role(
    family_id: str,
    user_id: str,
    role_data: MemberRoleUpdate,
    user_data: Dict = Depends(require_family_permission("members:change_role")),
    service: FamilyService = Depends(get_family_service)
):
    """Promote a member to admin or demote an admin (owner only)"""
    return service.change_member_role(family_id, user_id, role_data.role)


@router.delete("/{family_id}/members/{user_id}", status_code=204)
async def remove_member(
    family_id: str,
    user_id: str,
    user_data: Dict = Depends(require_family_permission("members:remove")),
    service: FamilyService = Depends(get_family_service)
):
    """Remove a member from the family (owner or admin)"""
    service.remove_member(family_id, user_id, user_data["membership"])
    return None


@router.post("/{family_id}/leave", status_code=204)
async def leave_family(
    family_id: str,
    user_data: Dict = Depends(require_family_permission("families:read")),
    service: FamilyService = Depends(get_family_service)
):
    """Leave the family (the owner must transfer ownership first)"""
    service.leave_family(family_id, user_data["id"])
    return None


@router.post("/{family_id}/transfer-ownership", response_model=List[FamilyMemberResponse])
async def transfer_ownership(
    family_id: str,
    transfer: OwnershipTransfer,
    user_data: Dict = Depends(require_family_permission("families:transfer")),
    service: FamilyService = Depends(get_family_service)
):
    """Make another member the owner; the caller becomes an admin"""
    return service.transfer_ownership(family_id, user_data["id"], transfer.new_owner_id)


@router.post("/{family_id}/invite-code", response_model=FamilyResponse)
async def regenerate_invite_code(
    family_id: str,
    user_data: Dict = Depends(require_family_permission("invite_code:regenerate")),
    service: FamilyService = Depends(get_family_service)
):
    """Issue a new invite code; the old one stops working immediately (owner only)"""
    return service.regenerate_invite_code(family_id)
