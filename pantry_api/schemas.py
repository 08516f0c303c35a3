from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from datetime import date, datetime
from typing import Any, Dict, Generic, List, Literal, Optional, TypeVar

from .models import (
    Unit, ProductCategory, Location, Difficulty, RecipeCategory, Cuisine,
    DietaryRestriction, CookingSkill,
)

T = TypeVar("T")


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class Page(BaseModel, Generic[T]):
    items: List[T]
    pagination: Pagination


# --- users -----------------------------------------------------------------

class UserCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: EmailStr
    password: str = Field(min_length=6)
    name: str = Field(min_length=1, max_length=50)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()


class UserLogin(BaseModel):
    email: EmailStr
    password: str

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()


class PreferencesSchema(BaseModel):
    dietary_restrictions: List[DietaryRestriction] = []
    favorite_cuisines: List[Cuisine] = []
    cooking_skill: CookingSkill = CookingSkill.beginner

    model_config = ConfigDict(from_attributes=True)


class PreferencesUpdate(BaseModel):
    dietary_restrictions: Optional[List[DietaryRestriction]] = None
    favorite_cuisines: Optional[List[Cuisine]] = None
    cooking_skill: Optional[CookingSkill] = None

    @field_validator("dietary_restrictions", "favorite_cuisines")
    @classmethod
    def dedupe(cls, v):
        if v is None:
            return v
        return list(dict.fromkeys(v))

    @field_validator("favorite_cuisines")
    @classmethod
    def no_other_cuisine(cls, v):
        if v and Cuisine.other in v:
            raise ValueError("'other' is not a selectable favorite cuisine")
        return v


class ProfileUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    avatar: Optional[str] = None


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(min_length=6)


class UserProfile(BaseModel):
    id: int
    email: str
    name: str
    avatar: Optional[str] = None
    preferences: PreferencesSchema
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PublicUser(BaseModel):
    id: int
    name: str
    avatar: Optional[str] = None
    preferences: PreferencesSchema
    created_at: datetime
    followers_count: int = 0
    following_count: int = 0

    model_config = ConfigDict(from_attributes=True)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserProfile


class FollowResponse(BaseModel):
    following: bool
    followers_count: int
    following_count: int


class UserStats(BaseModel):
    followers_count: int
    following_count: int
    recipes_count: int
    public_recipes_count: int
    join_date: datetime
    is_active: bool


# --- products --------------------------------------------------------------

class ProductBase(BaseModel):
    name: str
    quantity: float
    unit: Unit
    category: ProductCategory
    location: Location
    expiry_date: Optional[date] = None


class ProductCreate(ProductBase):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=100)
    quantity: float = Field(default=1, ge=0)
    unit: Unit = Unit.piezas
    category: ProductCategory = ProductCategory.otros
    location: Location = Location.despensa
    purchase_date: Optional[date] = None
    price: Optional[float] = Field(default=None, ge=0)
    store: Optional[str] = Field(default=None, max_length=50)
    barcode: Optional[str] = None
    image_url: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=500)


class ProductBulkCreate(BaseModel):
    products: List[ProductCreate] = Field(min_length=1)


class ProductSchema(ProductBase):
    id: int
    purchase_date: Optional[date] = None
    price: Optional[float] = None
    store: Optional[str] = None
    barcode: Optional[str] = None
    image_url: Optional[str] = None
    notes: Optional[str] = None
    created_by: int
    is_consumed: bool
    consumed_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    days_until_expiry: Optional[int] = None
    is_expiring_soon: bool = False
    is_expired: bool = False

    model_config = ConfigDict(from_attributes=True)


class ProductBulkResponse(BaseModel):
    message: str
    items: List[ProductSchema]


class PantryStats(BaseModel):
    total_products: int
    expiring_soon: int
    expired: int
    by_category: Dict[str, int]
    by_location: Dict[str, int]


class PantryAlerts(BaseModel):
    as_of: date
    days: int
    expiring_soon: List[ProductSchema]
    expired: List[ProductSchema]


# --- recipes ---------------------------------------------------------------

class IngredientSchema(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1)
    quantity: str = Field(min_length=1)
    optional: bool = False


class NutritionSchema(BaseModel):
    calories: Optional[float] = Field(default=None, ge=0)
    protein: Optional[float] = Field(default=None, ge=0)
    carbs: Optional[float] = Field(default=None, ge=0)
    fat: Optional[float] = Field(default=None, ge=0)
    fiber: Optional[float] = Field(default=None, ge=0)
    sugar: Optional[float] = Field(default=None, ge=0)


def _normalize_tags(v: Optional[List[str]]) -> Optional[List[str]]:
    if v is None:
        return v
    tags = [t.strip().lower() for t in v]
    return list(dict.fromkeys(t for t in tags if t))


def _non_empty_steps(v: Optional[List[str]]) -> Optional[List[str]]:
    if v is None:
        return v
    steps = [s.strip() for s in v if s and s.strip()]
    if not steps:
        raise ValueError("At least one instruction is required")
    return steps


class RecipeCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1, max_length=500)
    image_url: Optional[str] = None
    video_url: Optional[str] = None
    ingredients: List[IngredientSchema] = Field(min_length=1)
    instructions: List[str] = Field(min_length=1)
    prep_time: int = Field(ge=1)
    cook_time: int = Field(ge=0)
    servings: int = Field(ge=1)
    difficulty: Difficulty = Difficulty.medium
    category: RecipeCategory
    cuisine: Cuisine = Cuisine.other
    tags: List[str] = []
    nutrition: Optional[NutritionSchema] = None
    is_ai_generated: bool = False
    ai_prompt: Optional[str] = None
    is_public: bool = True

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v):
        return _normalize_tags(v)

    @field_validator("instructions")
    @classmethod
    def non_empty_steps(cls, v):
        return _non_empty_steps(v)


# columns that may be omitted from an update but never cleared
_REQUIRED_RECIPE_FIELDS = (
    "title", "description", "ingredients", "instructions", "prep_time",
    "cook_time", "servings", "difficulty", "category", "cuisine", "tags",
    "is_public",
)


class RecipeUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, min_length=1, max_length=500)
    image_url: Optional[str] = None
    video_url: Optional[str] = None
    ingredients: Optional[List[IngredientSchema]] = Field(default=None, min_length=1)
    instructions: Optional[List[str]] = Field(default=None, min_length=1)
    prep_time: Optional[int] = Field(default=None, ge=1)
    cook_time: Optional[int] = Field(default=None, ge=0)
    servings: Optional[int] = Field(default=None, ge=1)
    difficulty: Optional[Difficulty] = None
    category: Optional[RecipeCategory] = None
    cuisine: Optional[Cuisine] = None
    tags: Optional[List[str]] = None
    nutrition: Optional[NutritionSchema] = None
    is_public: Optional[bool] = None

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v):
        return _normalize_tags(v)

    @field_validator("instructions")
    @classmethod
    def non_empty_steps(cls, v):
        return _non_empty_steps(v)

    @model_validator(mode="after")
    def required_fields_not_null(self):
        for name in _REQUIRED_RECIPE_FIELDS:
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class RatingCreate(BaseModel):
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=500)


class CreatorSchema(BaseModel):
    id: int
    name: str
    avatar: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class RatingSchema(BaseModel):
    user_id: int
    rating: int
    comment: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RecipeSchema(BaseModel):
    id: int
    title: str
    description: str
    image_url: Optional[str] = None
    video_url: Optional[str] = None
    ingredients: List[IngredientSchema]
    instructions: List[str]
    prep_time: int
    cook_time: int
    total_time: int
    servings: int
    difficulty: Difficulty
    category: RecipeCategory
    cuisine: Cuisine
    tags: List[str]
    nutrition: Optional[NutritionSchema] = None
    created_by: int
    creator: Optional[CreatorSchema] = None
    is_ai_generated: bool
    ai_prompt: Optional[str] = None
    is_public: bool
    created_at: datetime
    updated_at: datetime
    average_rating: float = 0
    ratings_count: int = 0
    likes_count: int = 0
    saves_count: int = 0
    is_liked: bool = False
    is_saved: bool = False

    model_config = ConfigDict(from_attributes=True)


class RecipeDetailSchema(RecipeSchema):
    ratings: List[RatingSchema] = []


class LikeResponse(BaseModel):
    liked: bool
    likes_count: int


class SaveResponse(BaseModel):
    saved: bool
    saves_count: int


class RateResponse(BaseModel):
    rating: int
    average_rating: float
    ratings_count: int


# --- mock AI / OCR ---------------------------------------------------------

class GenerateRecipeRequest(BaseModel):
    ingredients: List[str] = Field(min_length=1)
    preferences: Dict[str, Any] = {}
    servings: int = Field(default=4, ge=1, le=20)
    difficulty: Difficulty = Difficulty.medium
    cook_time: int = Field(default=30, ge=5, le=300)


class NutritionRequest(BaseModel):
    ingredients: List[str] = Field(min_length=1)
    servings: int = Field(default=1, ge=1)


class SubstituteRequest(BaseModel):
    ingredient: str = Field(min_length=1)
    reason: Literal["allergy", "unavailable", "preference"] = "unavailable"


class OptimizeRecipeRequest(BaseModel):
    recipe_id: Optional[int] = None
    available_ingredients: List[str]


class TicketRequest(BaseModel):
    image: str = Field(min_length=1)
    image_type: Literal["base64", "url"] = "base64"


class ImageValidationRequest(BaseModel):
    image: str = Field(min_length=1)
