"""Authentication API routes."""

from fastapi import APIRouter, Depends, status

from streamvault.container import AppServices
from streamvault.dependencies import get_current_user, get_services
from streamvault.entities import User
from streamvault.schemas.auth import LoginRequest, RegisterRequest, TokenResponse, UserResponse
from streamvault.schemas.common import MessageResponse

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest, services: AppServices = Depends(get_services)):
    user = await services.auth.register(
        email=payload.email,
        password=payload.password,
        username=payload.username,
    )
    return UserResponse.model_validate(user)


@router.post("/login", response_model=TokenResponse)
async def login(payload: LoginRequest, services: AppServices = Depends(get_services)):
    _, access = await services.auth.login(email=payload.email, password=payload.password)
    return TokenResponse(access_token=access)


@router.get("/verify", response_model=MessageResponse)
async def verify_email(token: str, services: AppServices = Depends(get_services)):
    await services.auth.verify_email(token)
    return MessageResponse(message="Email verified")


@router.get("/me", response_model=UserResponse)
async def get_me(user: User = Depends(get_current_user)):
    return UserResponse.model_validate(user)
