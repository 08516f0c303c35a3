import logging
import random
from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from .. import crud, mock_ai
from ..auth import get_current_user
from ..database import get_db
from ..models import User
from ..schemas import (
    GenerateRecipeRequest, NutritionRequest, OptimizeRecipeRequest, SubstituteRequest,
)
from .deps import get_rng, get_today

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["ai"])


@router.post("/generate-recipe")
async def generate_recipe(
    payload: GenerateRecipeRequest,
    current_user: User = Depends(get_current_user),
    rng: random.Random = Depends(get_rng),
):
    recipe = mock_ai.generate_recipe(
        payload.ingredients, rng,
        servings=payload.servings,
        difficulty=payload.difficulty,
        cook_time=payload.cook_time,
    )
    logger.info("Generated placeholder recipe for user %s", current_user.id)
    return {
        "success": True,
        "recipe": recipe,
        "confidence": round(rng.uniform(0.8, 1.0), 2),
    }


@router.get("/recommendations")
async def get_recommendations(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    today: date = Depends(get_today),
):
    products = await crud.active_products(db, current_user.id)
    if not products:
        return {
            "recommendations": [],
            "message": "Add products to your pantry to get personalized recommendations",
        }
    recipes = await crud.public_recipes(db)
    return {
        "recommendations": mock_ai.recommend(products, recipes, today),
        "total_ingredients": len(products),
    }


@router.post("/analyze-nutrition")
async def analyze_nutrition(
    payload: NutritionRequest,
    current_user: User = Depends(get_current_user),
    rng: random.Random = Depends(get_rng),
):
    return mock_ai.analyze_nutrition(payload.ingredients, payload.servings, rng)


@router.post("/suggest-substitutes")
async def suggest_substitutes(
    payload: SubstituteRequest,
    current_user: User = Depends(get_current_user),
):
    return mock_ai.suggest_substitutes(payload.ingredient, payload.reason)


@router.post("/optimize-recipe")
async def optimize_recipe(
    payload: OptimizeRecipeRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    rng: random.Random = Depends(get_rng),
):
    title = None
    if payload.recipe_id is not None:
        recipe = await crud.get_visible_recipe(db, payload.recipe_id, current_user.id)
        title = recipe.title
    return mock_ai.optimize_recipe(payload.available_ingredients, rng, title=title)
