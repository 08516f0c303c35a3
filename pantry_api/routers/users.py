from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from .. import crud
from ..auth import get_current_user
from ..database import get_db
from ..models import User
from ..schemas import (
    FollowResponse, Page, PreferencesSchema, PreferencesUpdate, PublicUser, UserStats,
)

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=Page[PublicUser])
async def search_users(
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    users, total = await crud.search_users(db, search, page, limit)
    return {
        "items": await crud.public_users(db, users),
        "pagination": crud.pagination(page, limit, total),
    }


@router.put("/preferences")
async def update_preferences(
    prefs: PreferencesUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await crud.update_preferences(db, current_user, prefs)
    return {
        "message": "Preferences updated",
        "preferences": PreferencesSchema.model_validate(user.preferences),
    }


@router.get("/{user_id}", response_model=PublicUser)
async def read_user(user_id: int, db: AsyncSession = Depends(get_db)):
    user = await crud.get_active_user(db, user_id)
    [public] = await crud.public_users(db, [user])
    return public


@router.post("/{user_id}/follow", response_model=FollowResponse)
async def follow_user(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    following, followers_count, following_count = await crud.toggle_follow(
        db, current_user.id, user_id
    )
    return {
        "following": following,
        "followers_count": followers_count,
        "following_count": following_count,
    }


@router.get("/{user_id}/followers", response_model=Page[PublicUser])
async def list_followers(
    user_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    users, total = await crud.list_followers(db, user_id, page, limit)
    return {
        "items": await crud.public_users(db, users),
        "pagination": crud.pagination(page, limit, total),
    }


@router.get("/{user_id}/following", response_model=Page[PublicUser])
async def list_following(
    user_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    users, total = await crud.list_following(db, user_id, page, limit)
    return {
        "items": await crud.public_users(db, users),
        "pagination": crud.pagination(page, limit, total),
    }


@router.get("/{user_id}/stats", response_model=UserStats)
async def read_user_stats(user_id: int, db: AsyncSession = Depends(get_db)):
    return await crud.user_stats(db, user_id)
