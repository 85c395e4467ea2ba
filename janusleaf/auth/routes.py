import logging

from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.orm import Session

from janusleaf.auth.models import User
from janusleaf.auth.schemas import (
    ChangePasswordRequest,
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    TokenResponse,
    UserCreate,
    UserOut,
    UserUpdate,
)
from janusleaf.auth.service import (
    change_password,
    delete_user,
    get_current_user,
    handle_login,
    handle_logout,
    handle_logout_all,
    handle_signup,
    handle_token_refresh,
    update_profile,
)
from janusleaf.core.database import get_db
from janusleaf.core.errors import AppError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post(
    "/signup",
    response_model=TokenResponse,
    summary="Register a new user",
    responses={
        200: {"description": "User created successfully"},
        400: {"description": "User already exists or validation error"},
        500: {"description": "Signup failed"},
    },
)
def signup_route(
    user: UserCreate = Body(...),
    db: Session = Depends(get_db),
) -> TokenResponse:
    try:
        return handle_signup(user, db)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error(f"Signup failed: {e}")
        raise HTTPException(status_code=500, detail="Signup failed")


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Login and receive access/refresh tokens",
    responses={
        200: {"description": "Login successful"},
        401: {"description": "Invalid credentials"},
        500: {"description": "Server error"},
    },
)
def login_route(
    user: LoginRequest,
    db: Session = Depends(get_db),
) -> TokenResponse:
    try:
        return handle_login(user, db)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error(f"Login failed: {e}")
        raise HTTPException(status_code=500, detail="Login failed")


@router.post(
    "/refresh",
    response_model=TokenResponse,
    summary="Refresh access token using refresh token",
    responses={
        200: {"description": "Tokens refreshed"},
        401: {"description": "Invalid or expired refresh token"},
    },
)
def refresh_token_route(
    request: RefreshRequest,
    db: Session = Depends(get_db),
) -> TokenResponse:
    tokens, user_id = handle_token_refresh(request.refresh_token, db)
    logger.debug(f"Refreshed tokens for user {user_id}")
    return tokens


@router.get(
    "/me",
    response_model=UserOut,
    summary="Get current user profile",
    responses={
        200: {"description": "User profile returned"},
        401: {"description": "Unauthorized"},
    },
)
def get_profile_route(user: User = Depends(get_current_user)) -> UserOut:
    return UserOut.model_validate(user)


@router.put(
    "/me",
    response_model=UserOut,
    summary="Update current user profile",
    responses={
        200: {"description": "Profile updated"},
        401: {"description": "Unauthorized"},
    },
)
def update_profile_route(
    update: UserUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UserOut:
    return UserOut.model_validate(update_profile(user, update, db))


@router.post(
    "/change-password",
    summary="Change password and sign out everywhere",
    responses={
        200: {"description": "Password changed; all refresh tokens revoked"},
        401: {"description": "Unauthorized or wrong current password"},
    },
)
def change_password_route(
    request: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    change_password(user, request, db)
    return {"detail": "Password changed successfully. Please login again on all devices."}


@router.post("/logout", summary="Revoke a refresh token")
def logout_route(request: LogoutRequest, db: Session = Depends(get_db)) -> dict:
    handle_logout(request.refresh_token, db)
    return {"detail": "Logged out successfully"}


@router.post(
    "/logout-all",
    summary="Revoke every refresh token of the current user",
    responses={
        200: {"description": "All sessions revoked"},
        401: {"description": "Unauthorized"},
    },
)
def logout_all_route(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> dict:
    revoked = handle_logout_all(user, db)
    return {"detail": "Logged out from all devices", "revoked": revoked}


@router.delete("/delete", summary="Delete account")
def delete_account(
    user: User = Depends(get_current_user), db: Session = Depends(get_db)
) -> dict:
    delete_user(user, db)
    return {"detail": "Account deleted successfully"}
