"""Supabase JWT validation dependencies for FastAPI."""

import logging
from typing import Optional

from fastapi import Header
from fastapi.concurrency import run_in_threadpool

from registry_exports.config import settings
from registry_exports.db.supabase_client import get_anon_supabase, get_supabase
from registry_exports.jobs.errors import PersistenceFailure, Unauthenticated
from registry_exports.jobs.models import Principal

logger = logging.getLogger(__name__)


def _bearer_token(authorization: Optional[str]) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        raise Unauthenticated("Missing or invalid token")
    token = authorization[len("Bearer "):].strip()
    if not token:
        raise Unauthenticated("Missing or invalid token")
    return token


def _load_profile(user_id: str) -> Optional[dict]:
    try:
        response = (
            get_supabase()
            .table(settings.profiles_table)
            .select("id, role, email")
            .eq("id", user_id)
            .limit(1)
            .execute()
        )
    except Exception as exc:
        logger.exception("Profile lookup failed for user %s", user_id)
        raise PersistenceFailure() from exc
    rows = response.data or []
    return rows[0] if rows else None


def lookup_vendor_id(profile_id: str) -> Optional[str]:
    """Most recently created vendor record owned by the profile."""
    try:
        response = (
            get_supabase()
            .table(settings.vendors_table)
            .select("id")
            .eq("profiles_id", profile_id)
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
    except Exception as exc:
        logger.exception("Vendor lookup failed for profile %s", profile_id)
        raise PersistenceFailure() from exc
    rows = response.data or []
    return str(rows[0]["id"]) if rows else None


async def get_current_principal(authorization: str = Header(None)) -> Principal:
    """Validate the Supabase JWT from the Authorization header and load the
    requester's profile.

    Returns the authenticated principal (profile id, role, email).
    """
    token = _bearer_token(authorization)
    try:
        user = (await run_in_threadpool(get_anon_supabase().auth.get_user, token)).user
    except Exception:
        raise Unauthenticated("Invalid token")
    if user is None:
        raise Unauthenticated("Invalid token")

    profile = await run_in_threadpool(_load_profile, user.id)
    if not profile or not profile.get("id"):
        raise Unauthenticated()

    return Principal(
        id=str(profile["id"]),
        role=profile.get("role"),
        email=profile.get("email") or getattr(user, "email", None),
    )


async def get_current_vendor_principal(authorization: str = Header(None)) -> Principal:
    """Like ``get_current_principal`` but also resolves the vendor record for
    vendor accounts."""
    principal = await get_current_principal(authorization)
    if principal.role == settings.vendor_role:
        vendor_id = await run_in_threadpool(lookup_vendor_id, principal.id)
        principal = principal.model_copy(update={"vendor_id": vendor_id})
    return principal
