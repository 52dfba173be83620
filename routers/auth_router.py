# routers/auth_router.py
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from supabase import Client as SupabaseClient, AuthApiError

from models_pydantic import TokenPydantic, UserCreatePydantic, UserPydantic
from auth.dependencies import CurrentUser, get_supabase_client, sync_profile, unauthorized
from routers.common import get_router_logger

router = APIRouter(
    prefix="/api/v1/auth",
    tags=["Authentication"],
    responses={404: {"description": "Not found"}},
)

log = get_router_logger('auth_router')

# Supabase message fragment -> what the caller is told
SIGN_IN_REJECTIONS = {
    "invalid login credentials": "Invalid login credentials.",
    "email not confirmed": "Email not confirmed. Please check your inbox.",
}


def _sign_in_error(e: AuthApiError) -> HTTPException:
    message = (e.message or '').lower()
    for fragment, detail in SIGN_IN_REJECTIONS.items():
        if fragment in message:
            return unauthorized(detail)
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Authentication error: {e.message}")


def _sign_up_error(e: AuthApiError) -> HTTPException:
    message = (e.message or '').lower()
    if "already registered" in message or "already exists" in message:
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered.")
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Registration error: {e.message}")


@router.post("/token", response_model=TokenPydantic)
async def login_for_access_token(
        form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
        supabase: Annotated[SupabaseClient, Depends(get_supabase_client)]
):
    """Exchange email and password for a Supabase session; the form's username field carries the email."""
    log.info(f"Token request for {form_data.username}")
    try:
        res = supabase.auth.sign_in_with_password({"email": form_data.username, "password": form_data.password})
    except AuthApiError as e:
        log.warning(f"Sign-in failed for {form_data.username}: {e.message}")
        raise _sign_in_error(e) from e
    except Exception as e:
        log.error(f"Unexpected error during sign-in for {form_data.username}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                            detail="An internal error occurred during login.")

    session = res.session if res else None
    if not (session and session.access_token and res.user and res.user.id and res.user.email):
        log.error(f"Sign-in for {form_data.username} returned no session.")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                            detail="Login failed due to unexpected auth service response.")

    return TokenPydantic(access_token=session.access_token, token_type="bearer",
                         refresh_token=session.refresh_token, user=sync_profile(res.user))


@router.post("/register", response_model=UserPydantic, status_code=status.HTTP_201_CREATED)
async def register_user(
        user_create: UserCreatePydantic,
        supabase: Annotated[SupabaseClient, Depends(get_supabase_client)]
):
    log.info(f"Registration attempt for {user_create.email}")
    try:
        res = supabase.auth.sign_up({"email": user_create.email, "password": user_create.password})
    except AuthApiError as e:
        log.warning(f"Sign-up failed for {user_create.email}: {e.message}")
        raise _sign_up_error(e) from e
    except Exception as e:
        log.error(f"Unexpected error during sign-up for {user_create.email}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                            detail="An internal error occurred during registration.")

    if not (res and res.user and res.user.id and res.user.email):
        log.warning(f"Registration for {user_create.email} returned no user.")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail="Registration process yielded an unexpected result.")
    return sync_profile(res.user)


@router.get("/users/me", response_model=UserPydantic)
async def read_users_me(current_user: CurrentUser):
    return current_user
