import logging
import math
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import String, and_, case, cast, delete, false, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .auth import get_password_hash, verify_password
from .errors import Conflict, Forbidden, NotFound, ValidationError
from .models import (
    User, Follow, Product, Recipe, RecipeLike, RecipeSave, RecipeRating,
    Difficulty, utcnow,
)
from .schemas import (
    UserCreate, ProfileUpdate, PreferencesUpdate, ProductCreate, RecipeCreate,
    RecipeUpdate, RecipeSchema, RecipeDetailSchema, RatingSchema, PublicUser,
)
from .social import average_rating, validate_rating

logger = logging.getLogger(__name__)


def pagination(page: int, limit: int, total: int) -> dict:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
    }


async def _count(db: AsyncSession, stmt) -> int:
    result = await db.execute(select(func.count()).select_from(stmt.order_by(None).subquery()))
    return result.scalar_one()


_JSON_PUNCTUATION = str.maketrans("", "", "[]\",\\")


def _json_text_match(column, search: str):
    """Substring match against the elements of a JSON string array column.

    The array is compared as its serialized text, so brackets, quotes and
    separators are dropped from the term; a term made only of those matches
    nothing.
    """
    term = search.translate(_JSON_PUNCTUATION).strip()
    if not term:
        return false()
    return cast(column, String).icontains(term, autoescape=True)


# --- users -----------------------------------------------------------------

async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.email == email.lower()))
    return result.scalars().first()


async def create_user(db: AsyncSession, user: UserCreate) -> User:
    if await get_user_by_email(db, user.email):
        raise Conflict("Email already registered")
    db_user = User(
        email=user.email.lower(),
        password_hash=get_password_hash(user.password),
        name=user.name,
    )
    db.add(db_user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict("Email already registered")
    await db.refresh(db_user)
    logger.info("Registered user %s", db_user.id)
    return db_user


async def update_profile(db: AsyncSession, user: User, data: ProfileUpdate) -> User:
    for key, value in data.model_dump(exclude_unset=True).items():
        if key == "name" and value is None:
            continue
        setattr(user, key, value)
    await db.commit()
    await db.refresh(user)
    return user


async def change_password(db: AsyncSession, user: User, current_password: str, new_password: str) -> None:
    if not verify_password(current_password, user.password_hash):
        raise ValidationError.for_field("current_password", "Current password is incorrect")
    user.password_hash = get_password_hash(new_password)
    await db.commit()
    logger.info("Password changed for user %s", user.id)


async def deactivate_user(db: AsyncSession, user: User) -> None:
    user.is_active = False
    await db.commit()
    logger.info("Deactivated user %s", user.id)


async def update_preferences(db: AsyncSession, user: User, prefs: PreferencesUpdate) -> User:
    if prefs.dietary_restrictions is not None:
        user.dietary_restrictions = [d.value for d in prefs.dietary_restrictions]
    if prefs.favorite_cuisines is not None:
        user.favorite_cuisines = [c.value for c in prefs.favorite_cuisines]
    if prefs.cooking_skill is not None:
        user.cooking_skill = prefs.cooking_skill
    await db.commit()
    await db.refresh(user)
    return user


async def get_active_user(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        raise NotFound("User not found")
    return user


async def follow_counts(db: AsyncSession, user_ids: Iterable[int]) -> Dict[int, Tuple[int, int]]:
    """Map user id -> (followers_count, following_count), counting active users only."""
    user_ids = list(user_ids)
    counts = {uid: [0, 0] for uid in user_ids}
    if not user_ids:
        return {}

    followers = await db.execute(
        select(Follow.followee_id, func.count())
        .join(User, User.id == Follow.follower_id)
        .where(Follow.followee_id.in_(user_ids), User.is_active.is_(True))
        .group_by(Follow.followee_id)
    )
    for uid, n in followers.all():
        counts[uid][0] = n

    following = await db.execute(
        select(Follow.follower_id, func.count())
        .join(User, User.id == Follow.followee_id)
        .where(Follow.follower_id.in_(user_ids), User.is_active.is_(True))
        .group_by(Follow.follower_id)
    )
    for uid, n in following.all():
        counts[uid][1] = n

    return {uid: (c[0], c[1]) for uid, c in counts.items()}


async def public_users(db: AsyncSession, users: List[User]) -> List[PublicUser]:
    counts = await follow_counts(db, [u.id for u in users])
    out = []
    for u in users:
        public = PublicUser.model_validate(u)
        public.followers_count, public.following_count = counts.get(u.id, (0, 0))
        out.append(public)
    return out


async def search_users(db: AsyncSession, search: Optional[str], page: int, limit: int) -> Tuple[List[User], int]:
    stmt = select(User).where(User.is_active.is_(True))
    if search:
        stmt = stmt.where(or_(
            User.name.icontains(search, autoescape=True),
            _json_text_match(User.favorite_cuisines, search),
        ))
    total = await _count(db, stmt)
    result = await db.execute(
        stmt.order_by(User.name, User.id).offset((page - 1) * limit).limit(limit)
    )
    return list(result.scalars().all()), total


async def toggle_follow(db: AsyncSession, current_user_id: int, target_user_id: int) -> Tuple[bool, int, int]:
    """Flip the follow edge current -> target.

    The edge is a single row, so the follower and following views can never
    disagree; the insert or delete is committed as one transaction.
    Returns (following, target followers_count, current following_count).
    """
    if current_user_id == target_user_id:
        raise ValidationError.for_field("id", "You cannot follow yourself")

    edge = await db.get(Follow, (current_user_id, target_user_id))
    # an existing edge can always be removed, even if the target has since been deactivated
    if edge is None:
        await get_active_user(db, target_user_id)
    try:
        if edge is not None:
            await db.delete(edge)
            following = False
        else:
            db.add(Follow(follower_id=current_user_id, followee_id=target_user_id))
            following = True
        await db.commit()
    except IntegrityError:
        # a concurrent request created the same edge first
        await db.rollback()
        following = True
    logger.info(
        "User %s %s user %s", current_user_id,
        "followed" if following else "unfollowed", target_user_id,
    )

    counts = await follow_counts(db, [current_user_id, target_user_id])
    return following, counts[target_user_id][0], counts[current_user_id][1]


async def _list_follow_side(db: AsyncSession, user_id: int, page: int, limit: int, followers: bool):
    await get_active_user(db, user_id)
    if followers:
        stmt = (
            select(User)
            .join(Follow, Follow.follower_id == User.id)
            .where(Follow.followee_id == user_id)
        )
    else:
        stmt = (
            select(User)
            .join(Follow, Follow.followee_id == User.id)
            .where(Follow.follower_id == user_id)
        )
    stmt = stmt.where(User.is_active.is_(True))
    total = await _count(db, stmt)
    result = await db.execute(
        stmt.order_by(Follow.created_at.desc(), User.id).offset((page - 1) * limit).limit(limit)
    )
    return list(result.scalars().all()), total


async def list_followers(db: AsyncSession, user_id: int, page: int, limit: int):
    return await _list_follow_side(db, user_id, page, limit, followers=True)


async def list_following(db: AsyncSession, user_id: int, page: int, limit: int):
    return await _list_follow_side(db, user_id, page, limit, followers=False)


async def user_stats(db: AsyncSession, user_id: int) -> dict:
    user = await get_active_user(db, user_id)
    followers, following = (await follow_counts(db, [user_id]))[user_id]
    recipes = await _count(db, select(Recipe.id).where(Recipe.created_by == user_id))
    public = await _count(
        db, select(Recipe.id).where(Recipe.created_by == user_id, Recipe.is_public.is_(True))
    )
    return {
        "followers_count": followers,
        "following_count": following,
        "recipes_count": recipes,
        "public_recipes_count": public,
        "join_date": user.created_at,
        "is_active": user.is_active,
    }


# --- products --------------------------------------------------------------

def _owned_products(owner_id: int):
    return select(Product).where(Product.created_by == owner_id, Product.is_consumed.is_(False))


async def list_products(
    db: AsyncSession,
    owner_id: int,
    today: date,
    *,
    category=None,
    location=None,
    expiring_soon: bool = False,
    expired: bool = False,
    days: int = 3,
    page: int = 1,
    limit: int = 50,
) -> Tuple[List[Product], int]:
    stmt = _owned_products(owner_id)
    if category:
        stmt = stmt.where(Product.category == category)
    if location:
        stmt = stmt.where(Product.location == location)
    if expiring_soon:
        stmt = stmt.where(
            Product.expiry_date.is_not(None),
            Product.expiry_date >= today,
            Product.expiry_date <= today + timedelta(days=days),
        )
    if expired:
        stmt = stmt.where(Product.expiry_date.is_not(None), Product.expiry_date < today)

    total = await _count(db, stmt)
    result = await db.execute(
        stmt.order_by(
            Product.expiry_date.is_(None),
            Product.expiry_date.asc(),
            Product.created_at.desc(),
            Product.id.desc(),
        )
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def active_products(db: AsyncSession, owner_id: int) -> List[Product]:
    result = await db.execute(_owned_products(owner_id))
    return list(result.scalars().all())


async def get_product(db: AsyncSession, product_id: int, owner_id: int) -> Product:
    result = await db.execute(
        select(Product).where(Product.id == product_id, Product.created_by == owner_id)
    )
    product = result.scalars().first()
    if not product:
        raise NotFound("Product not found")
    return product


def _new_product(owner_id: int, product: ProductCreate, today: date) -> Product:
    data = product.model_dump()
    if data.get("purchase_date") is None:
        data["purchase_date"] = today
    return Product(**data, created_by=owner_id)


async def create_product(db: AsyncSession, owner_id: int, product: ProductCreate, today: date) -> Product:
    db_product = _new_product(owner_id, product, today)
    db.add(db_product)
    await db.commit()
    await db.refresh(db_product)
    logger.info("User %s created product %s", owner_id, db_product.id)
    return db_product


async def create_products_bulk(
    db: AsyncSession, owner_id: int, products: List[ProductCreate], today: date
) -> List[Product]:
    db_products = [_new_product(owner_id, p, today) for p in products]
    db.add_all(db_products)
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    for p in db_products:
        await db.refresh(p)
    logger.info("User %s created %d products in bulk", owner_id, len(db_products))
    return db_products


async def update_product(db: AsyncSession, product_id: int, owner_id: int, product: ProductCreate) -> Product:
    # consumed products are out of the pantry and keep quantity 0
    result = await db.execute(_owned_products(owner_id).where(Product.id == product_id))
    db_product = result.scalars().first()
    if not db_product:
        raise NotFound("Product not found")
    for key, value in product.model_dump(exclude_unset=True).items():
        setattr(db_product, key, value)
    await db.commit()
    await db.refresh(db_product)
    return db_product


async def consume_product(db: AsyncSession, product_id: int, owner_id: int) -> Product:
    db_product = await get_product(db, product_id, owner_id)
    # flag, date and quantity land in the same UPDATE
    db_product.is_consumed = True
    db_product.consumed_date = utcnow()
    db_product.quantity = 0
    await db.commit()
    await db.refresh(db_product)
    logger.info("User %s consumed product %s", owner_id, product_id)
    return db_product


async def delete_product(db: AsyncSession, product_id: int, owner_id: int) -> Product:
    db_product = await get_product(db, product_id, owner_id)
    await db.delete(db_product)
    await db.commit()
    logger.info("User %s deleted product %s", owner_id, product_id)
    return db_product


# --- recipes ---------------------------------------------------------------

SORTABLE_RECIPE_FIELDS = {"created_at", "title", "total_time", "difficulty", "average_rating"}


def _visible_to(user_id: int):
    return or_(Recipe.created_by == user_id, Recipe.is_public.is_(True))


async def social_summary(db: AsyncSession, recipe_ids: List[int], user_id: int) -> Dict[int, dict]:
    """Derived social fields per recipe, computed at read time."""
    summary = {
        rid: {
            "likes_count": 0, "saves_count": 0, "ratings_count": 0,
            "average_rating": 0, "is_liked": False, "is_saved": False,
        }
        for rid in recipe_ids
    }
    if not recipe_ids:
        return summary

    for model, key, flag in (
        (RecipeLike, "likes_count", "is_liked"),
        (RecipeSave, "saves_count", "is_saved"),
    ):
        rows = await db.execute(
            select(model.recipe_id, func.count())
            .where(model.recipe_id.in_(recipe_ids))
            .group_by(model.recipe_id)
        )
        for rid, n in rows.all():
            summary[rid][key] = n
        mine = await db.execute(
            select(model.recipe_id).where(model.recipe_id.in_(recipe_ids), model.user_id == user_id)
        )
        for rid in mine.scalars().all():
            summary[rid][flag] = True

    ratings: Dict[int, List[int]] = {}
    rows = await db.execute(
        select(RecipeRating.recipe_id, RecipeRating.rating).where(RecipeRating.recipe_id.in_(recipe_ids))
    )
    for rid, rating in rows.all():
        ratings.setdefault(rid, []).append(rating)
    for rid, values in ratings.items():
        summary[rid]["ratings_count"] = len(values)
        summary[rid]["average_rating"] = average_rating(values)
    return summary


async def serialize_recipes(db: AsyncSession, recipes: List[Recipe], user_id: int) -> List[RecipeSchema]:
    summary = await social_summary(db, [r.id for r in recipes], user_id)
    out = []
    for recipe in recipes:
        item = RecipeSchema.model_validate(recipe)
        for key, value in summary[recipe.id].items():
            setattr(item, key, value)
        out.append(item)
    return out


async def recipe_detail(db: AsyncSession, recipe: Recipe, user_id: int) -> RecipeDetailSchema:
    [base] = await serialize_recipes(db, [recipe], user_id)
    rows = await db.execute(
        select(RecipeRating)
        .where(RecipeRating.recipe_id == recipe.id)
        .order_by(RecipeRating.created_at.desc(), RecipeRating.id.desc())
    )
    ratings = [RatingSchema.model_validate(r) for r in rows.scalars().all()]
    return RecipeDetailSchema(**base.model_dump(), ratings=ratings)


def _rating_average_subquery():
    return (
        select(RecipeRating.recipe_id, func.avg(RecipeRating.rating).label("avg_rating"))
        .group_by(RecipeRating.recipe_id)
        .subquery()
    )


async def list_recipes(
    db: AsyncSession,
    user_id: int,
    *,
    search: Optional[str] = None,
    category=None,
    cuisine=None,
    difficulty=None,
    max_time: Optional[int] = None,
    is_public: Optional[bool] = None,
    creator_id: Optional[int] = None,
    saved_only: bool = False,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[Recipe], int]:
    if sort_by not in SORTABLE_RECIPE_FIELDS:
        raise ValidationError.for_field("sort_by", f"sort_by must be one of {sorted(SORTABLE_RECIPE_FIELDS)}")

    stmt = select(Recipe).where(_visible_to(user_id))
    if search:
        stmt = stmt.where(or_(
            Recipe.title.icontains(search, autoescape=True),
            Recipe.description.icontains(search, autoescape=True),
            _json_text_match(Recipe.tags, search),
        ))
    if category:
        stmt = stmt.where(Recipe.category == category)
    if cuisine:
        stmt = stmt.where(Recipe.cuisine == cuisine)
    if difficulty:
        stmt = stmt.where(Recipe.difficulty == difficulty)
    if max_time is not None:
        stmt = stmt.where(Recipe.prep_time + Recipe.cook_time <= max_time)
    if is_public is not None:
        stmt = stmt.where(Recipe.is_public.is_(is_public))
    if creator_id is not None:
        stmt = stmt.where(Recipe.created_by == creator_id)
    if saved_only:
        stmt = stmt.join(
            RecipeSave, and_(RecipeSave.recipe_id == Recipe.id, RecipeSave.user_id == user_id)
        )

    total = await _count(db, stmt)

    if sort_by == "average_rating":
        avg = _rating_average_subquery()
        stmt = stmt.outerjoin(avg, avg.c.recipe_id == Recipe.id)
        key = func.coalesce(avg.c.avg_rating, 0)
    elif sort_by == "total_time":
        key = Recipe.prep_time + Recipe.cook_time
    elif sort_by == "difficulty":
        key = case(
            {Difficulty.easy: 1, Difficulty.medium: 2, Difficulty.hard: 3},
            value=Recipe.difficulty,
        )
    else:
        key = getattr(Recipe, sort_by)
    order = key.asc() if sort_order == "asc" else key.desc()

    result = await db.execute(
        stmt.order_by(order, Recipe.id.desc()).offset((page - 1) * limit).limit(limit)
    )
    return list(result.scalars().all()), total


async def get_visible_recipe(db: AsyncSession, recipe_id: int, user_id: int) -> Recipe:
    result = await db.execute(
        select(Recipe).where(Recipe.id == recipe_id, _visible_to(user_id))
    )
    recipe = result.scalars().first()
    if not recipe:
        raise NotFound("Recipe not found")
    return recipe


async def _get_owned_recipe(db: AsyncSession, recipe_id: int, user_id: int) -> Recipe:
    recipe = await get_visible_recipe(db, recipe_id, user_id)
    if recipe.created_by != user_id:
        raise Forbidden("You do not have permission to modify this recipe")
    return recipe


async def create_recipe(db: AsyncSession, user_id: int, recipe: RecipeCreate) -> Recipe:
    data = recipe.model_dump(mode="json")
    db_recipe = Recipe(**data, created_by=user_id)
    db.add(db_recipe)
    await db.commit()
    await db.refresh(db_recipe)
    logger.info("User %s created recipe %s", user_id, db_recipe.id)
    return db_recipe


async def update_recipe(db: AsyncSession, recipe_id: int, user_id: int, recipe: RecipeUpdate) -> Recipe:
    db_recipe = await _get_owned_recipe(db, recipe_id, user_id)
    data = recipe.model_dump(mode="json", exclude_unset=True)
    for key, value in data.items():
        setattr(db_recipe, key, value)
    await db.commit()
    await db.refresh(db_recipe)
    return db_recipe


async def delete_recipe(db: AsyncSession, recipe_id: int, user_id: int) -> None:
    db_recipe = await _get_owned_recipe(db, recipe_id, user_id)
    for model in (RecipeLike, RecipeSave, RecipeRating):
        await db.execute(delete(model).where(model.recipe_id == recipe_id))
    await db.delete(db_recipe)
    await db.commit()
    logger.info("User %s deleted recipe %s", user_id, recipe_id)


async def _toggle_member(db: AsyncSession, model, recipe_id: int, user_id: int) -> Tuple[bool, int]:
    await get_visible_recipe(db, recipe_id, user_id)
    row = await db.get(model, (recipe_id, user_id))
    try:
        if row is not None:
            await db.delete(row)
            member = False
        else:
            db.add(model(recipe_id=recipe_id, user_id=user_id))
            member = True
        await db.commit()
    except IntegrityError:
        # same user toggled concurrently; the other request's insert wins
        await db.rollback()
        member = True
    count = await _count(db, select(model.user_id).where(model.recipe_id == recipe_id))
    return member, count


async def toggle_like(db: AsyncSession, recipe_id: int, user_id: int) -> Tuple[bool, int]:
    liked, count = await _toggle_member(db, RecipeLike, recipe_id, user_id)
    logger.info("User %s %s recipe %s", user_id, "liked" if liked else "unliked", recipe_id)
    return liked, count


async def toggle_save(db: AsyncSession, recipe_id: int, user_id: int) -> Tuple[bool, int]:
    saved, count = await _toggle_member(db, RecipeSave, recipe_id, user_id)
    logger.info("User %s %s recipe %s", user_id, "saved" if saved else "unsaved", recipe_id)
    return saved, count


async def _upsert_rating(
    db: AsyncSession, recipe_id: int, user_id: int, rating: int, comment: Optional[str]
) -> None:
    """One rating per user; last write wins and refreshes the timestamp."""
    result = await db.execute(
        select(RecipeRating).where(RecipeRating.recipe_id == recipe_id, RecipeRating.user_id == user_id)
    )
    existing = result.scalars().first()
    if existing is not None:
        existing.rating = rating
        existing.comment = comment
        existing.created_at = utcnow()
    else:
        db.add(RecipeRating(recipe_id=recipe_id, user_id=user_id, rating=rating, comment=comment))


async def rate_recipe(
    db: AsyncSession, recipe_id: int, user_id: int, rating: int, comment: Optional[str] = None
) -> Tuple[float, int]:
    rating = validate_rating(rating)
    await get_visible_recipe(db, recipe_id, user_id)

    await _upsert_rating(db, recipe_id, user_id, rating, comment)
    try:
        await db.commit()
    except IntegrityError:
        # a concurrent first rating by the same user won the insert; overwrite it
        await db.rollback()
        await _upsert_rating(db, recipe_id, user_id, rating, comment)
        await db.commit()
    logger.info("User %s rated recipe %s with %s", user_id, recipe_id, rating)

    rows = await db.execute(select(RecipeRating.rating).where(RecipeRating.recipe_id == recipe_id))
    values = list(rows.scalars().all())
    return average_rating(values), len(values)


async def public_recipes(db: AsyncSession) -> List[Recipe]:
    result = await db.execute(
        select(Recipe).where(Recipe.is_public.is_(True)).order_by(Recipe.id)
    )
    return list(result.scalars().all())
