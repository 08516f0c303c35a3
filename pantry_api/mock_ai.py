"""Placeholder AI and OCR responses.

None of this is inference: recipe generation, nutrition analysis, waste
optimization and ticket scanning return randomized numbers shaped like the
real thing. Callers pass a ``random.Random`` so tests can seed it. The
recommendation ranking and image validation are the only deterministic
pieces.
"""
import random
import re
from datetime import date
from typing import Iterable, List, Optional

from .expiry import is_expiring_soon
from .models import Difficulty, Location, ProductCategory, RecipeCategory, Cuisine, Unit

INGREDIENT_UNITS = ["g", "ml", "unidad", "cucharada", "taza"]

SUBSTITUTES = {
    "huevo": ["1/4 taza de puré de manzana", "1 cucharada de linaza molida + 3 cucharadas de agua", "1/4 taza de yogur"],
    "leche": ["leche de almendras", "leche de avena", "leche de coco"],
    "mantequilla": ["aceite de coco", "puré de aguacate", "aceite de oliva"],
    "azúcar": ["miel", "jarabe de arce", "stevia", "azúcar de coco"],
    "harina": ["harina de almendras", "harina de avena", "harina de coco"],
}

FALLBACK_SUBSTITUTES = [
    "Consulta con un nutricionista",
    "Busca en tiendas especializadas",
    "Considera omitir este ingrediente",
]

SUPPORTED_IMAGE_FORMATS = {"jpeg", "jpg", "png", "webp"}
_DATA_URI = re.compile(r"^data:image/([^;]+);")


def _nutrition(rng: random.Random) -> dict:
    return {
        "calories": rng.randint(200, 599),
        "protein": rng.randint(10, 39),
        "carbs": rng.randint(20, 69),
        "fat": rng.randint(5, 24),
        "fiber": rng.randint(2, 11),
    }


def generate_recipe(
    ingredients: List[str],
    rng: random.Random,
    servings: int = 4,
    difficulty: Difficulty = Difficulty.medium,
    cook_time: int = 30,
) -> dict:
    """Build a recipe payload that ``POST /api/recipes`` accepts as-is."""
    main = " y ".join(ingredients[:2])
    title = f"Deliciosa receta con {main}"[:100]
    description = (
        f"Una receta perfecta que combina {', '.join(ingredients)} de manera deliciosa y nutritiva."
    )[:500]
    return {
        "title": title,
        "description": description,
        "ingredients": [
            {
                "name": name,
                "quantity": f"{rng.randint(100, 599)} {rng.choice(INGREDIENT_UNITS)}",
                "optional": False,
            }
            for name in ingredients
        ],
        "instructions": [
            "Preparar todos los ingredientes y tenerlos listos.",
            f"Comenzar cocinando los ingredientes principales: {ingredients[0]}.",
            f"Agregar {ingredients[1] if len(ingredients) > 1 else 'el resto de ingredientes'} y mezclar bien.",
            "Cocinar a fuego medio durante 15-20 minutos.",
            "Sazonar al gusto y servir caliente.",
        ],
        "prep_time": rng.randint(10, 29),
        "cook_time": cook_time,
        "servings": servings,
        "difficulty": Difficulty(difficulty).value,
        "category": RecipeCategory.almuerzo.value,
        "cuisine": Cuisine.other.value,
        "tags": ["ia generada", "rápida"],
        "nutrition": _nutrition(rng),
        "is_ai_generated": True,
        "ai_prompt": f"Ingredientes: {', '.join(ingredients)}",
        "is_public": True,
    }


def analyze_nutrition(ingredients: List[str], servings: int, rng: random.Random) -> dict:
    total = _nutrition(rng)
    total.update({
        "sugar": rng.randint(3, 17),
        "sodium": rng.randint(200, 999),
        "vitamins": {
            "vitamin_a": rng.randint(0, 99),
            "vitamin_c": rng.randint(0, 99),
            "calcium": rng.randint(0, 99),
            "iron": rng.randint(0, 99),
        },
    })
    per_serving = {
        key: (
            {k: round(v / servings) for k, v in value.items()}
            if isinstance(value, dict)
            else round(value / servings)
        )
        for key, value in total.items()
    }
    return {
        "success": True,
        "ingredients_count": len(ingredients),
        "nutrition": {"total": total, "per_serving": per_serving},
        "health_score": rng.randint(60, 99),
        "recommendations": [
            "Rica en proteínas",
            "Buena fuente de fibra",
            "Contiene vitaminas esenciales",
        ],
    }


def suggest_substitutes(ingredient: str, reason: str = "unavailable") -> dict:
    suggestions = SUBSTITUTES.get(ingredient.strip().lower(), FALLBACK_SUBSTITUTES)
    return {
        "ingredient": ingredient,
        "substitutes": [
            {"name": s, "ratio": "1:1", "notes": "Ajustar según el gusto"} for s in suggestions
        ],
        "reason": reason,
        "confidence": 0.85,
    }


def optimize_recipe(available_ingredients: List[str], rng: random.Random, title: Optional[str] = None) -> dict:
    return {
        "success": True,
        "optimization": {
            "recipe": title,
            "available_ingredients": len(available_ingredients),
            "waste_reduction": rng.randint(20, 49),
            "cost_savings": rng.randint(10, 24),
            "suggestions": [
                "Usar ingredientes próximos a vencer primero",
                "Ajustar porciones según disponibilidad",
                "Guardar sobras para otra receta",
            ],
            "alternative_recipes": [
                {
                    "title": "Versión optimizada",
                    "description": "Receta adaptada a tus ingredientes disponibles",
                    "waste_reduction": 35,
                }
            ],
        },
        "message": "Receta optimizada para reducir desperdicio",
    }


def _matches(pantry_name: str, ingredient_name: str) -> bool:
    return pantry_name in ingredient_name or ingredient_name in pantry_name


def recommend(products: Iterable, recipes: Iterable, today: date, limit: int = 5) -> List[dict]:
    """Rank recipes by how much of the pantry they use.

    Score is the share of a recipe's ingredients found in the pantry, plus a
    bonus for each match that is expiring soon, so those get cooked first.
    Recipes with no match are dropped.
    """
    pantry = {}
    for p in products:
        name = p.name.strip().lower()
        urgent = is_expiring_soon(p.expiry_date, today)
        pantry[name] = pantry.get(name, False) or urgent

    ranked = []
    for recipe in recipes:
        names = [i["name"] for i in recipe.ingredients or []]
        matching, missing, urgent = [], [], 0
        for name in names:
            hit = next((p for p in pantry if _matches(p, name.lower())), None)
            if hit is None:
                missing.append(name)
                continue
            matching.append(name)
            urgent += pantry[hit]
        if not matching:
            continue
        ratio = len(matching) / len(names)
        ranked.append({
            "id": recipe.id,
            "title": recipe.title,
            "description": recipe.description,
            "difficulty": recipe.difficulty,
            "total_time": recipe.total_time,
            "matching_ingredients": matching,
            "missing_ingredients": missing,
            "uses_expiring": urgent,
            "confidence": round(ratio, 2),
            "_score": ratio + 0.5 * urgent,
        })

    ranked.sort(key=lambda r: (-r["_score"], r["id"]))
    for r in ranked:
        del r["_score"]
    return ranked[:limit]


def process_ticket(rng: random.Random, store: str = "Supermercado Central") -> dict:
    """Mocked receipt scan; the products are valid ``POST /api/products/bulk`` items."""
    items = [
        ("Leche Entera", 1, Unit.l, ProductCategory.lacteos, Location.nevera),
        ("Pan Integral", 1, Unit.piezas, ProductCategory.cereales, Location.despensa),
        ("Manzanas", 1.5, Unit.kg, ProductCategory.frutas, Location.nevera),
        ("Pollo", 1, Unit.kg, ProductCategory.carnes, Location.congelador),
    ]
    products = [
        {
            "name": name,
            "quantity": quantity,
            "unit": unit.value,
            "category": category.value,
            "location": location.value,
            "price": round(rng.uniform(1, 10), 2),
            "store": store,
        }
        for name, quantity, unit, category, location in items
    ]
    return {
        "success": True,
        "products": products,
        "total_amount": round(sum(p["price"] for p in products), 2),
        "store": store,
        "confidence": 0.95,
    }


def validate_image(image: str) -> dict:
    match = _DATA_URI.match(image)
    fmt = match.group(1) if match else None
    is_valid = bool(fmt) and fmt.lower() in SUPPORTED_IMAGE_FORMATS
    return {
        "is_valid": is_valid,
        "format": fmt,
        "message": "Imagen válida" if is_valid else "Formato de imagen no soportado",
    }
