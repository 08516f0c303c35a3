import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from .. import crud
from ..auth import authenticate_user, get_current_user, token_for
from ..database import get_db
from ..errors import Unauthorized
from ..models import User
from ..schemas import (
    PasswordChange, ProfileUpdate, TokenResponse, UserCreate, UserLogin, UserProfile,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _token_response(user: User) -> TokenResponse:
    return TokenResponse(**token_for(user), user=UserProfile.model_validate(user))


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(form_data: UserCreate, db: AsyncSession = Depends(get_db)):
    user = await crud.create_user(db, form_data)
    return _token_response(user)


@router.post("/login", response_model=TokenResponse)
async def login(form_data: UserLogin, db: AsyncSession = Depends(get_db)):
    user = await authenticate_user(form_data.email, form_data.password, db)
    if not user:
        logger.info("Failed login for %s", form_data.email)
        raise Unauthorized("Incorrect email or password")
    return _token_response(user)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(current_user: User = Depends(get_current_user)):
    return _token_response(current_user)


@router.get("/profile", response_model=UserProfile)
async def read_profile(current_user: User = Depends(get_current_user)):
    return current_user


@router.put("/profile", response_model=UserProfile)
async def update_profile(
    data: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await crud.update_profile(db, current_user, data)


@router.delete("/profile")
async def deactivate_profile(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await crud.deactivate_user(db, current_user)
    return {"message": "Account deactivated"}


@router.post("/change-password")
async def change_password(
    data: PasswordChange,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await crud.change_password(db, current_user, data.current_password, data.new_password)
    return {"message": "Password updated"}
