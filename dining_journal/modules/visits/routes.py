from fastapi import APIRouter, Depends
from dining_journal.database.supabase_client import get_supabase
from dining_journal.modules.visits.schemas import VisitInput, VisitResponse
from dining_journal.modules.visits.service import VisitService
from dining_journal.core.dependencies import get_current_user_id, check_visit_access
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/visits", tags=["visits"])


def get_visit_service(supabase: Client = Depends(get_supabase)) -> VisitService:
    return VisitService(supabase)


@router.get("/{visit_id}", response_model=VisitResponse)
async def get_visit(
    visit_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: VisitService = Depends(get_visit_service),
    supabase: Client = Depends(get_supabase)
):
    """Get a visit with dishes and attendees (family members only)"""
    check_visit_access(visit_id, user_data, supabase)
    return service.get_visit(visit_id)


@router.put("/{visit_id}", response_model=VisitResponse)
async def update_visit(
    visit_id: str,
    visit_data: VisitInput,
    user_data: Dict = Depends(get_current_user_id),
    service: VisitService = Depends(get_visit_service)
):
    """Edit a visit; its dishes and attendees are replaced by the submitted ones"""
    return service.update_visit(visit_id, visit_data, user_data["id"])


@router.delete("/{visit_id}", status_code=204)
async def delete_visit(
    visit_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: VisitService = Depends(get_visit_service),
    supabase: Client = Depends(get_supabase)
):
    """Delete a visit (family members only)"""
    check_visit_access(visit_id, user_data, supabase, permission="journal:write")
    service.delete_visit(visit_id)
    return None
