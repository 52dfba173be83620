# auth/dependencies.py
"""Supabase bearer-token checks and the local profile kept beside each Supabase user."""
from typing import Annotated, Any
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer
from supabase import Client as SupabaseClient, AuthApiError

import database_supabase as db_supabase
from models_pydantic import UserPydantic
from routers.common import get_router_logger

log = get_router_logger('auth')

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")

REJECTED_TOKEN_HINTS = ("invalid", "expired", "malformed")


def get_supabase_client(request: Request) -> SupabaseClient:
    """The Supabase client stored on app.state by api_main."""
    supabase_client = getattr(request.app.state, 'supabase_client', None)
    if supabase_client is None:
        log.error("No Supabase client on app.state. Check SUPABASE_URL / SUPABASE_KEY.")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                            detail="Authentication service client not available.")
    return supabase_client


def unauthorized(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail,
                         headers={"WWW-Authenticate": "Bearer"})


def sync_profile(supabase_user: Any) -> UserPydantic:
    """Make sure the Supabase user has a user_profiles row with the current email.

    Raises HTTP 500 when the row cannot be read back or written; the caller has
    already proven the user exists in Supabase, so this is a server fault.
    """
    user_id, email = str(supabase_user.id), str(supabase_user.email)
    profile = db_supabase.get_user_profile_by_id(user_id)
    if profile is None or profile.email != email:
        log.info(f"Syncing local profile for Supabase user {user_id}.")
        profile = db_supabase.create_user_profile(user_id, email)
    if profile is None:
        log.error(f"Profile sync failed for Supabase user {user_id}.")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                            detail="User profile synchronization failed.")
    return UserPydantic(id=str(profile.id), email=profile.email, username=profile.username)


def _is_complete_user(supabase_user: Any) -> bool:
    return bool(supabase_user and supabase_user.id and supabase_user.email)


async def get_current_supabase_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    supabase: Annotated[SupabaseClient, Depends(get_supabase_client)]
) -> UserPydantic:
    try:
        auth_response = supabase.auth.get_user(token)
    except AuthApiError as e:
        log.warning(f"Token rejected by Supabase: {e.message} (status {e.status})")
        message = (e.message or '').lower()
        if e.status in (401, 403) or any(hint in message for hint in REJECTED_TOKEN_HINTS):
            raise unauthorized() from e
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY,
                            detail="Authentication service error.") from e
    except Exception as e:
        log.error(f"Unexpected error while validating a token: {e}", exc_info=True)
        raise unauthorized() from e

    supabase_user = auth_response.user if auth_response else None
    if not _is_complete_user(supabase_user):
        log.warning("Supabase returned no usable user for the presented token.")
        raise unauthorized()

    user = sync_profile(supabase_user)
    log.debug(f"User {user.id} authenticated.")
    return user


CurrentUser = Annotated[UserPydantic, Depends(get_current_supabase_user)]
