"""
Error taxonomy for the journal API.

Every class is an HTTPException so services can keep the
``except HTTPException: raise`` shape and routes need no translation.
The ``code`` attribute is rendered next to ``detail`` by the handler in main.py.
"""

import logging
from typing import Optional

import httpx
from fastapi import HTTPException
from postgrest.exceptions import APIError

logger = logging.getLogger(__name__)

# Postgres SQLSTATE codes surfaced by PostgREST
UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"
CHECK_VIOLATION = "23514"
INSUFFICIENT_PRIVILEGE = "42501"

CONSTRAINT_CODES = {UNIQUE_VIOLATION, FOREIGN_KEY_VIOLATION, CHECK_VIOLATION, INSUFFICIENT_PRIVILEGE}


class JournalError(HTTPException):
    status_code = 500
    code = "store_error"
    default_detail = "Something went wrong, please try again"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail)


class AuthenticationRequiredError(JournalError):
    status_code = 401
    code = "authentication_required"
    default_detail = "Authentication required"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail)
        self.headers = {"WWW-Authenticate": "Bearer"}


class PermissionDeniedError(JournalError):
    status_code = 403
    code = "forbidden"
    default_detail = "You do not have access to this family"


class NotFoundError(JournalError):
    status_code = 404
    code = "not_found"
    default_detail = "Not found"


class InvalidInviteCodeError(JournalError):
    status_code = 400
    code = "invalid_invite_code"
    default_detail = "Invalid invite code"


class BusinessRuleError(JournalError):
    status_code = 400
    code = "rejected"
    default_detail = "Request rejected"


class RecordValidationError(JournalError):
    status_code = 422
    code = "validation_error"
    default_detail = "Invalid input"


class ConstraintViolationError(JournalError):
    status_code = 409
    code = "constraint_violation"
    default_detail = "The change conflicts with existing data"


class StoreUnavailableError(JournalError):
    status_code = 503
    code = "store_unavailable"
    default_detail = "The journal is temporarily unreachable, please try again"


class StoreError(JournalError):
    pass


class VisitPartiallyRecordedError(JournalError):
    code = "incomplete_visit_record"
    default_detail = "Visit was recorded with missing details, please edit it"

    def __init__(self, visit_id: str, detail: Optional[str] = None):
        super().__init__(detail)
        self.visit_id = visit_id


def is_unique_violation(exc: Exception) -> bool:
    return isinstance(exc, APIError) and exc.code == UNIQUE_VIOLATION


def translate_store_error(exc: Exception) -> JournalError:
    """Classify an exception raised by a Supabase call."""
    if isinstance(exc, JournalError):
        return exc
    if isinstance(exc, APIError):
        logger.error(f"Store rejected request: code={exc.code} message={exc.message}")
        if exc.code in CONSTRAINT_CODES:
            return ConstraintViolationError()
        return StoreError()
    if isinstance(exc, httpx.HTTPError):
        logger.error(f"Store unreachable: {exc}")
        return StoreUnavailableError()
    logger.error(f"Unexpected store failure: {exc}")
    return StoreError()
