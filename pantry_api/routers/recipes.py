from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from .. import crud
from ..auth import get_current_user
from ..database import get_db
from ..models import Cuisine, Difficulty, RecipeCategory, User
from ..schemas import (
    LikeResponse, Page, RateResponse, RatingCreate, RecipeCreate, RecipeDetailSchema,
    RecipeSchema, RecipeUpdate, SaveResponse,
)

router = APIRouter(prefix="/recipes", tags=["recipes"])


@router.get("", response_model=Page[RecipeSchema])
async def list_recipes(
    search: Optional[str] = None,
    category: Optional[RecipeCategory] = None,
    cuisine: Optional[Cuisine] = None,
    difficulty: Optional[Difficulty] = None,
    max_time: Optional[int] = Query(None, ge=1),
    is_public: Optional[bool] = None,
    creator_id: Optional[int] = None,
    sort_by: str = "created_at",
    sort_order: Literal["asc", "desc"] = "desc",
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    recipes, total = await crud.list_recipes(
        db, current_user.id,
        search=search, category=category, cuisine=cuisine, difficulty=difficulty,
        max_time=max_time, is_public=is_public, creator_id=creator_id,
        sort_by=sort_by, sort_order=sort_order, page=page, limit=limit,
    )
    return {
        "items": await crud.serialize_recipes(db, recipes, current_user.id),
        "pagination": crud.pagination(page, limit, total),
    }


@router.get("/saved", response_model=Page[RecipeSchema])
async def list_saved_recipes(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    recipes, total = await crud.list_recipes(
        db, current_user.id, saved_only=True, page=page, limit=limit,
    )
    return {
        "items": await crud.serialize_recipes(db, recipes, current_user.id),
        "pagination": crud.pagination(page, limit, total),
    }


@router.get("/{recipe_id}", response_model=RecipeDetailSchema)
async def read_recipe(
    recipe_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    recipe = await crud.get_visible_recipe(db, recipe_id, current_user.id)
    return await crud.recipe_detail(db, recipe, current_user.id)


@router.post("", response_model=RecipeDetailSchema, status_code=status.HTTP_201_CREATED)
async def create_recipe(
    recipe: RecipeCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    db_recipe = await crud.create_recipe(db, current_user.id, recipe)
    return await crud.recipe_detail(db, db_recipe, current_user.id)


@router.put("/{recipe_id}", response_model=RecipeDetailSchema)
async def update_recipe(
    recipe_id: int,
    recipe: RecipeUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    db_recipe = await crud.update_recipe(db, recipe_id, current_user.id, recipe)
    return await crud.recipe_detail(db, db_recipe, current_user.id)


@router.delete("/{recipe_id}")
async def delete_recipe(
    recipe_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await crud.delete_recipe(db, recipe_id, current_user.id)
    return {"message": "Recipe deleted"}


@router.post("/{recipe_id}/like", response_model=LikeResponse)
async def like_recipe(
    recipe_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    liked, count = await crud.toggle_like(db, recipe_id, current_user.id)
    return {"liked": liked, "likes_count": count}


@router.post("/{recipe_id}/save", response_model=SaveResponse)
async def save_recipe(
    recipe_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    saved, count = await crud.toggle_save(db, recipe_id, current_user.id)
    return {"saved": saved, "saves_count": count}


@router.post("/{recipe_id}/rate", response_model=RateResponse)
async def rate_recipe(
    recipe_id: int,
    payload: RatingCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    average, count = await crud.rate_recipe(
        db, recipe_id, current_user.id, payload.rating, payload.comment
    )
    return {"rating": payload.rating, "average_rating": average, "ratings_count": count}
