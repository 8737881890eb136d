import logging
from datetime import datetime, timezone

from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from mindful_meals.exceptions import (
    NotFoundError, InsufficientQuantityError, translate_integrity_error,
)
from mindful_meals.models import (
    User, Ingredient, UserIngredient, IngredientUsage, Recipe, RecipeIngredient,
    RecipeInstruction, Restriction, RecipeRestriction, MealPlan, MealPlanRecipe,
)
from mindful_meals.schemas import (
    UserCreate, IngredientCreate, UserIngredientCreate, RecipeCreate,
    RecipeIngredientBase, RecipeInstructionBase, RestrictionCreate, MealPlanCreate,
)

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def utcnow() -> datetime:
    # naive UTC, seconds precision so TIMESTAMP keys survive a round trip
    return datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


async def _commit(db: AsyncSession):
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise translate_integrity_error(e) from e


async def create_user(db: AsyncSession, user: UserCreate):
    db_user = User(
        username=user.username,
        email=user.email,
        password_hash=get_password_hash(user.password),
    )
    db.add(db_user)
    await _commit(db)
    await db.refresh(db_user)
    logger.info(f"Created user {db_user.user_id} ({db_user.email})")
    return db_user


async def get_user(db: AsyncSession, user_id: int):
    result = await db.execute(select(User).where(User.user_id == user_id))
    return result.scalars().first()


async def get_user_by_email(db: AsyncSession, email: str):
    result = await db.execute(select(User).where(User.email == email))
    return result.scalars().first()


async def create_ingredient(db: AsyncSession, ingredient: IngredientCreate):
    db_ingredient = Ingredient(**ingredient.model_dump())
    db.add(db_ingredient)
    await _commit(db)
    await db.refresh(db_ingredient)
    return db_ingredient


async def get_ingredient(db: AsyncSession, ingredient_id: int):
    result = await db.execute(select(Ingredient).where(Ingredient.ingredient_id == ingredient_id))
    return result.scalars().first()


async def list_ingredients(db: AsyncSession, skip: int = 0, limit: int = 100):
    result = await db.execute(
        select(Ingredient).order_by(Ingredient.name).offset(skip).limit(limit)
    )
    return result.scalars().all()


async def add_user_ingredient(db: AsyncSession, user_id: int, stock: UserIngredientCreate):
    remaining = stock.quantity if stock.remaining_quantity is None else stock.remaining_quantity
    db_stock = UserIngredient(
        user_id=user_id,
        ingredient_id=stock.ingredient_id,
        quantity=stock.quantity,
        remaining_quantity=remaining,
        added_date=stock.added_date or utcnow(),
        expiration_date=stock.expiration_date,
    )
    db.add(db_stock)
    await _commit(db)
    await db.refresh(db_stock)
    logger.info(
        f"User {user_id} added {stock.quantity} of ingredient {stock.ingredient_id} "
        f"(user_ingredient {db_stock.user_ingredient_id})"
    )
    return db_stock


async def get_user_ingredient(db: AsyncSession, user_ingredient_id: int):
    result = await db.execute(
        select(UserIngredient).where(UserIngredient.user_ingredient_id == user_ingredient_id)
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def record_ingredient_usage(
    db: AsyncSession, user_ingredient_id: int, used_quantity: float, usage_date: datetime = None
):
    """Consume pantry stock and append a usage record.

    The new ``remaining_quantity_after_use`` is always derived from the
    current remainder, so the usage history of one user-ingredient never
    increases.
    """
    if used_quantity < 0:
        raise ValueError("used_quantity must be non-negative")
    # reload and lock the row, the cached remainder may be stale
    result = await db.execute(
        select(UserIngredient)
        .where(UserIngredient.user_ingredient_id == user_ingredient_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    db_stock = result.scalars().first()
    if not db_stock:
        raise NotFoundError(f"User ingredient {user_ingredient_id} not found")
    if used_quantity > db_stock.remaining_quantity:
        raise InsufficientQuantityError(
            f"Only {db_stock.remaining_quantity} left of user ingredient {user_ingredient_id}, "
            f"cannot use {used_quantity}"
        )
    db_stock.remaining_quantity -= used_quantity
    usage = IngredientUsage(
        user_ingredient_id=user_ingredient_id,
        used_quantity=used_quantity,
        remaining_quantity_after_use=db_stock.remaining_quantity,
        usage_date=usage_date or utcnow(),
    )
    db.add(usage)
    await _commit(db)
    await db.refresh(usage)
    logger.info(
        f"Used {used_quantity} of user ingredient {user_ingredient_id}, "
        f"{db_stock.remaining_quantity} remaining"
    )
    return usage


async def get_usage_history(db: AsyncSession, user_ingredient_id: int):
    result = await db.execute(
        select(IngredientUsage)
        .where(IngredientUsage.user_ingredient_id == user_ingredient_id)
        .order_by(IngredientUsage.usage_date, IngredientUsage.usage_id)
    )
    return result.scalars().all()


async def create_restriction(db: AsyncSession, restriction: RestrictionCreate):
    db_restriction = Restriction(name=restriction.name)
    db.add(db_restriction)
    await _commit(db)
    await db.refresh(db_restriction)
    return db_restriction


async def create_recipe(db: AsyncSession, recipe: RecipeCreate):
    db_recipe = Recipe(**recipe.model_dump(exclude={"ingredients", "instructions", "restriction_ids"}))
    db.add(db_recipe)
    # Flush to get ID, then attach children in the same transaction
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        raise translate_integrity_error(e) from e
    for ingredient in recipe.ingredients:
        db.add(RecipeIngredient(
            recipe_id=db_recipe.recipe_id,
            ingredient_id=ingredient.ingredient_id,
            quantity=ingredient.quantity,
        ))
    for step in recipe.instructions:
        db.add(RecipeInstruction(
            recipe_id=db_recipe.recipe_id,
            step_number=step.step_number,
            instruction=step.instruction,
        ))
    for tag_id in recipe.restriction_ids:
        db.add(RecipeRestriction(recipe_id=db_recipe.recipe_id, tag_id=tag_id))
    await _commit(db)
    logger.info(f"Created recipe {db_recipe.recipe_id} ({db_recipe.title})")
    return await get_recipe(db, db_recipe.recipe_id)


async def get_recipe(db: AsyncSession, recipe_id: int):
    result = await db.execute(
        select(Recipe)
        .where(Recipe.recipe_id == recipe_id)
        .options(
            selectinload(Recipe.ingredients),
            selectinload(Recipe.instructions),
            selectinload(Recipe.restrictions),
        )
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def add_recipe_ingredient(db: AsyncSession, recipe_id: int, ingredient: RecipeIngredientBase):
    db_line = RecipeIngredient(
        recipe_id=recipe_id,
        ingredient_id=ingredient.ingredient_id,
        quantity=ingredient.quantity,
    )
    db.add(db_line)
    await _commit(db)
    return db_line


async def add_recipe_instruction(db: AsyncSession, recipe_id: int, step: RecipeInstructionBase):
    db_step = RecipeInstruction(
        recipe_id=recipe_id,
        step_number=step.step_number,
        instruction=step.instruction,
    )
    db.add(db_step)
    await _commit(db)
    return db_step


async def tag_recipe(db: AsyncSession, recipe_id: int, tag_id: int):
    db_tag = RecipeRestriction(recipe_id=recipe_id, tag_id=tag_id)
    db.add(db_tag)
    await _commit(db)
    return db_tag


async def create_meal_plan(db: AsyncSession, user_id: int, plan: MealPlanCreate):
    created_at = plan.created_at or utcnow()
    db_plan = MealPlan(user_id=user_id, created_at=created_at, servings=plan.servings)
    db.add(db_plan)
    for recipe_id in plan.recipe_ids:
        db.add(MealPlanRecipe(
            user_id=user_id,
            created_at=created_at,
            recipe_id=recipe_id,
            cooked=False,
        ))
    await _commit(db)
    logger.info(f"Created meal plan for user {user_id} at {created_at} with {len(plan.recipe_ids)} recipes")
    return await get_meal_plan(db, user_id, created_at)


async def get_meal_plan(db: AsyncSession, user_id: int, created_at: datetime):
    result = await db.execute(
        select(MealPlan)
        .where(MealPlan.user_id == user_id, MealPlan.created_at == created_at)
        .options(selectinload(MealPlan.recipes))
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def get_meal_plans(db: AsyncSession, user_id: int):
    result = await db.execute(
        select(MealPlan)
        .where(MealPlan.user_id == user_id)
        .order_by(MealPlan.created_at.desc())
        .options(selectinload(MealPlan.recipes))
        .execution_options(populate_existing=True)
    )
    return result.scalars().all()


async def add_recipe_to_meal_plan(db: AsyncSession, user_id: int, created_at: datetime, recipe_id: int):
    db_entry = MealPlanRecipe(
        user_id=user_id,
        created_at=created_at,
        recipe_id=recipe_id,
        cooked=False,
    )
    db.add(db_entry)
    await _commit(db)
    return db_entry


async def mark_recipe_cooked(
    db: AsyncSession, user_id: int, created_at: datetime, recipe_id: int, cooked_on: datetime = None
):
    result = await db.execute(
        select(MealPlanRecipe).where(
            MealPlanRecipe.user_id == user_id,
            MealPlanRecipe.created_at == created_at,
            MealPlanRecipe.recipe_id == recipe_id,
        )
    )
    db_entry = result.scalars().first()
    if not db_entry:
        raise NotFoundError(f"Recipe {recipe_id} is not in meal plan {user_id}/{created_at}")
    db_entry.cooked = True
    db_entry.cooked_on = cooked_on or utcnow()
    await _commit(db)
    await db.refresh(db_entry)
    return db_entry
