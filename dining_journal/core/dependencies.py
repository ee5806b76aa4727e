"""
Core dependencies for route protection and family membership checks
"""

from fastapi import Depends, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from dining_journal.database.supabase_client import get_supabase, get_auth_client
from dining_journal.modules.auth.service import AuthService
from dining_journal.config.family_roles import role_can
from dining_journal.core.exceptions import (
    AuthenticationRequiredError, PermissionDeniedError, NotFoundError, translate_store_error
)
from supabase import Client
from typing import Optional, Dict, Any
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_auth_service(supabase: Client = Depends(get_auth_client)) -> AuthService:
    return AuthService(supabase)


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> dict:
    """Extract current user info from JWT token"""
    if credentials is None or not credentials.credentials:
        raise AuthenticationRequiredError()
    return auth_service.get_current_user(credentials.credentials)


def get_user_membership(user_id: str, supabase: Client) -> Optional[Dict[str, Any]]:
    """Return the user's family_members row (one user, one family) or None."""
    try:
        result = supabase.table("family_members")\
            .select("*")\
            .eq("user_id", user_id)\
            .limit(1)\
            .execute()
        return result.data[0] if result.data else None
    except Exception as e:
        logger.error(f"Error getting membership for user {user_id}: {e}")
        raise translate_store_error(e)


def get_family_membership(family_id: str, user_id: str, supabase: Client) -> Optional[Dict[str, Any]]:
    try:
        result = supabase.table("family_members")\
            .select("*")\
            .eq("family_id", family_id)\
            .eq("user_id", user_id)\
            .limit(1)\
            .execute()
        return result.data[0] if result.data else None
    except Exception as e:
        logger.error(f"Error getting membership of {user_id} in family {family_id}: {e}")
        raise translate_store_error(e)


def check_family_member(family_id: str, user_data: dict, supabase: Client) -> Dict[str, Any]:
    """Return the caller's membership row; 403 if they are not in the family"""
    membership = get_family_membership(family_id, user_data["id"], supabase)
    if not membership:
        raise PermissionDeniedError("You must be a member of this family")
    return membership


def check_family_permission(family_id: str, user_data: dict, supabase: Client, permission: str) -> Dict[str, Any]:
    """Check membership and that the member's role grants the permission"""
    membership = check_family_member(family_id, user_data, supabase)
    if not role_can(membership["role"], permission):
        raise PermissionDeniedError(
            f"Your role ({membership['role']}) does not allow this action"
        )
    return membership


def check_restaurant_access(restaurant_id: str, user_data: dict, supabase: Client, permission: str = "journal:read") -> Dict[str, Any]:
    """Load a restaurant and verify the caller belongs to its family. Returns the restaurant row."""
    try:
        result = supabase.table("restaurants")\
            .select("*")\
            .eq("id", restaurant_id)\
            .limit(1)\
            .execute()
    except Exception as e:
        raise translate_store_error(e)
    if not result.data:
        raise NotFoundError("Restaurant not found")
    restaurant = result.data[0]
    check_family_permission(restaurant["family_id"], user_data, supabase, permission)
    return restaurant


def check_visit_access(visit_id: str, user_data: dict, supabase: Client, permission: str = "journal:read") -> Dict[str, Any]:
    """Load a visit and verify the caller belongs to its family. Returns the visit row."""
    try:
        result = supabase.table("visits")\
            .select("*")\
            .eq("id", visit_id)\
            .limit(1)\
            .execute()
    except Exception as e:
        raise translate_store_error(e)
    if not result.data:
        raise NotFoundError("Visit not found")
    visit = result.data[0]
    check_family_permission(visit["family_id"], user_data, supabase, permission)
    return visit


def require_family_permission(permission: str):
    """Factory function to create a family permission dependency for routes with a family_id path param"""
    def check_permission(
        family_id: str,
        user_data: dict = Depends(get_current_user_id),
        supabase: Client = Depends(get_supabase)
    ) -> dict:
        membership = check_family_permission(family_id, user_data, supabase, permission)
        return {**user_data, "membership": membership}
    return check_permission
