"""
Authentication Endpoints.

Account registration and bearer-token login/logout.

Endpoints Provided:
- `/register`: Creates an account and returns it with an access token.
- `/login`: Verifies username and password and issues an access token.
- `/me`: The account behind the presented token.
- `/logout`: Revokes the presented token.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from core.auth import get_auth_service
from core.logging_config import get_logger, log_function_call
from core.models import PublicUser, User
from services.user_service import UserService
from .dependencies import get_bearer_token, get_current_user, get_user_service

logger = get_logger(__name__)
router = APIRouter(prefix="/auth", tags=["Authentication"])


class RegisterRequest(BaseModel):
    username: str
    password: str
    email: Optional[str] = None
    name: Optional[str] = None


class LoginRequest(BaseModel):
    username: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str
    expires_in: int
    user: PublicUser


def _token_response(user: User) -> Dict[str, Any]:
    tokens = get_auth_service().create_tokens(user.id, user.username)
    return {**tokens, "user": PublicUser.from_user(user)}


@router.post("/register", response_model=TokenResponse, status_code=201)
@log_function_call(logger)
async def register_user(
    request: RegisterRequest, users: UserService = Depends(get_user_service)
):
    user = await users.register(
        username=request.username,
        password=request.password,
        email=request.email,
        name=request.name,
    )
    logger.info(f"User registered successfully: {user.username}")
    return _token_response(user)


@router.post("/login", response_model=TokenResponse)
@log_function_call(logger)
async def login_user(request: LoginRequest, users: UserService = Depends(get_user_service)):
    user = await users.authenticate(request.username, request.password)
    logger.info(f"User logged in successfully: {user.username}")
    return _token_response(user)


@router.get("/me", response_model=PublicUser)
async def get_current_user_info(current_user: User = Depends(get_current_user)):
    return PublicUser.from_user(current_user)


@router.post("/logout")
@log_function_call(logger)
async def logout_user(
    current_user: User = Depends(get_current_user), token: str = Depends(get_bearer_token)
):
    get_auth_service().revoke_token(token)
    logger.info(f"User logged out: {current_user.username}")
    return {"message": "Logged out successfully"}
