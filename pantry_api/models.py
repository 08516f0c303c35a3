# pantry_api/models.py

import enum
from datetime import datetime, date, timezone

from sqlalchemy import (
    Column, Integer, String, Float, Boolean, Date, DateTime, Text, JSON,
    ForeignKey, UniqueConstraint, Index, Enum as SAEnum,
)
from sqlalchemy.orm import relationship

from .database import Base


def utcnow() -> datetime:
    # naive UTC, the way every timestamp column is stored
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


class Unit(str, enum.Enum):
    kg = "kg"
    g = "g"
    l = "l"  # noqa: E741
    ml = "ml"
    piezas = "piezas"
    latas = "latas"
    paquetes = "paquetes"


class ProductCategory(str, enum.Enum):
    frutas = "frutas"
    verduras = "verduras"
    carnes = "carnes"
    pescados = "pescados"
    lacteos = "lacteos"
    cereales = "cereales"
    legumbres = "legumbres"
    especias = "especias"
    aceites = "aceites"
    otros = "otros"


class Location(str, enum.Enum):
    despensa = "despensa"
    nevera = "nevera"
    congelador = "congelador"


class Difficulty(str, enum.Enum):
    easy = "easy"
    medium = "medium"
    hard = "hard"


class RecipeCategory(str, enum.Enum):
    desayuno = "desayuno"
    almuerzo = "almuerzo"
    cena = "cena"
    postre = "postre"
    snack = "snack"
    bebida = "bebida"


class Cuisine(str, enum.Enum):
    mexican = "mexican"
    italian = "italian"
    asian = "asian"
    mediterranean = "mediterranean"
    american = "american"
    indian = "indian"
    french = "french"
    spanish = "spanish"
    other = "other"


class DietaryRestriction(str, enum.Enum):
    vegetarian = "vegetarian"
    vegan = "vegan"
    gluten_free = "gluten_free"
    dairy_free = "dairy_free"
    nut_free = "nut_free"
    low_carb = "low_carb"
    keto = "keto"


class CookingSkill(str, enum.Enum):
    beginner = "beginner"
    intermediate = "intermediate"
    advanced = "advanced"


def _enum(cls):
    return SAEnum(cls, native_enum=False, validate_strings=True, length=20)


class User(Base):
    __tablename__ = "users"
    id                   = Column(Integer, primary_key=True, index=True)
    email                = Column(String(254), unique=True, index=True, nullable=False)
    password_hash        = Column(String, nullable=False)
    name                 = Column(String(50), nullable=False)
    avatar               = Column(String, nullable=True)
    dietary_restrictions = Column(JSON, nullable=False, default=list)
    favorite_cuisines    = Column(JSON, nullable=False, default=list)
    cooking_skill        = Column(_enum(CookingSkill), nullable=False, default=CookingSkill.beginner)
    is_active            = Column(Boolean, nullable=False, default=True)
    created_at           = Column(DateTime, default=utcnow)
    updated_at           = Column(DateTime, default=utcnow, onupdate=utcnow)

    @property
    def preferences(self) -> dict:
        return {
            "dietary_restrictions": list(self.dietary_restrictions or []),
            "favorite_cuisines": list(self.favorite_cuisines or []),
            "cooking_skill": self.cooking_skill,
        }


class Follow(Base):
    """One directed edge of the follow-graph: follower -> followee."""
    __tablename__ = "follows"
    follower_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    followee_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True)
    created_at  = Column(DateTime, default=utcnow)


class Product(Base):
    __tablename__ = "products"
    id            = Column(Integer, primary_key=True, index=True)
    name          = Column(String(100), nullable=False)
    quantity      = Column(Float, nullable=False, default=1)
    unit          = Column(_enum(Unit), nullable=False, default=Unit.piezas)
    category      = Column(_enum(ProductCategory), nullable=False, default=ProductCategory.otros)
    location      = Column(_enum(Location), nullable=False, default=Location.despensa)
    expiry_date   = Column(Date, nullable=True)
    purchase_date = Column(Date, default=utc_today)
    price         = Column(Float, nullable=True)
    store         = Column(String(50), nullable=True)
    barcode       = Column(String, nullable=True)
    image_url     = Column(String, nullable=True)
    notes         = Column(String(500), nullable=True)
    created_by    = Column(Integer, ForeignKey("users.id"), nullable=False)
    is_consumed   = Column(Boolean, nullable=False, default=False)
    consumed_date = Column(DateTime, nullable=True)
    created_at    = Column(DateTime, default=utcnow)
    updated_at    = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_products_owner_category", "created_by", "category"),
        Index("ix_products_owner_expiry", "created_by", "expiry_date"),
        Index("ix_products_owner_consumed", "created_by", "is_consumed"),
    )


class Recipe(Base):
    __tablename__ = "recipes"
    id              = Column(Integer, primary_key=True, index=True)
    title           = Column(String(100), nullable=False)
    description     = Column(String(500), nullable=False)
    image_url       = Column(String, nullable=True)
    video_url       = Column(String, nullable=True)
    ingredients     = Column(JSON, nullable=False, default=list)
    instructions    = Column(JSON, nullable=False, default=list)
    prep_time       = Column(Integer, nullable=False)
    cook_time       = Column(Integer, nullable=False)
    servings        = Column(Integer, nullable=False)
    difficulty      = Column(_enum(Difficulty), nullable=False, default=Difficulty.medium)
    category        = Column(_enum(RecipeCategory), nullable=False)
    cuisine         = Column(_enum(Cuisine), nullable=False, default=Cuisine.other)
    tags            = Column(JSON, nullable=False, default=list)
    nutrition       = Column(JSON, nullable=True)
    created_by      = Column(Integer, ForeignKey("users.id"), nullable=False)
    is_ai_generated = Column(Boolean, nullable=False, default=False)
    ai_prompt       = Column(Text, nullable=True)
    is_public       = Column(Boolean, nullable=False, default=True)
    created_at      = Column(DateTime, default=utcnow)
    updated_at      = Column(DateTime, default=utcnow, onupdate=utcnow)

    creator = relationship("User", lazy="selectin")

    __table_args__ = (
        Index("ix_recipes_creator_public", "created_by", "is_public"),
        Index("ix_recipes_category_public", "category", "is_public"),
    )

    @property
    def total_time(self) -> int:
        return (self.prep_time or 0) + (self.cook_time or 0)


class RecipeLike(Base):
    __tablename__ = "recipe_likes"
    recipe_id  = Column(Integer, ForeignKey("recipes.id", ondelete="CASCADE"), primary_key=True)
    user_id    = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True)
    created_at = Column(DateTime, default=utcnow)


class RecipeSave(Base):
    __tablename__ = "recipe_saves"
    recipe_id  = Column(Integer, ForeignKey("recipes.id", ondelete="CASCADE"), primary_key=True)
    user_id    = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True)
    created_at = Column(DateTime, default=utcnow)


class RecipeRating(Base):
    __tablename__ = "recipe_ratings"
    id         = Column(Integer, primary_key=True, index=True)
    recipe_id  = Column(Integer, ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id    = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    rating     = Column(Integer, nullable=False)
    comment    = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        UniqueConstraint("recipe_id", "user_id", name="uq_recipe_ratings_recipe_user"),
    )
