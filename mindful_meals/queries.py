"""Derived, read-time queries over the meal-planning schema."""
import logging
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from mindful_meals.exceptions import NotFoundError
from mindful_meals.models import (
    Ingredient, UserIngredient, Recipe, RecipeIngredient, Restriction,
    RecipeRestriction, MealPlan, MealPlanRecipe,
)
from mindful_meals.schemas import ExpiringIngredient, PantryItem, ShoppingListItem

logger = logging.getLogger(__name__)


def estimate_expiration(added_date: Optional[datetime], expiration_approx: Optional[int]):
    if added_date is None or expiration_approx is None:
        return None
    return added_date + timedelta(days=expiration_approx)


def days_until(estimated_expiration: Optional[datetime], today: date):
    # calendar days only, time of day is ignored (DATEDIFF semantics)
    if estimated_expiration is None:
        return None
    return (estimated_expiration.date() - today).days


async def get_expiring_ingredients(
    db: AsyncSession,
    user_id: int,
    today: Optional[date] = None,
    include_unknown: bool = False,
) -> List[ExpiringIngredient]:
    """List a user's held ingredients, soonest-expiring first.

    Only rows with ``remaining_quantity > 0`` are considered. The estimated
    expiration is ``added_date + expiration_approx`` days; rows already past
    it are dropped. Ingredients without ``expiration_approx`` have no
    estimate and are dropped too unless ``include_unknown`` is set, in which
    case they are listed after every dated row.
    """
    # stored timestamps are naive UTC, so "today" is the UTC date too
    today = today or datetime.now(timezone.utc).date()
    result = await db.execute(
        select(
            UserIngredient.user_ingredient_id,
            Ingredient.name,
            UserIngredient.quantity,
            UserIngredient.added_date,
            Ingredient.expiration_approx,
        )
        .join(Ingredient, UserIngredient.ingredient_id == Ingredient.ingredient_id)
        .where(
            UserIngredient.user_id == user_id,
            UserIngredient.remaining_quantity > 0,
        )
        .order_by(UserIngredient.user_ingredient_id)
    )

    dated, unknown = [], []
    for row in result.all():
        estimated = estimate_expiration(row.added_date, row.expiration_approx)
        remaining_days = days_until(estimated, today)
        item = ExpiringIngredient(
            user_ingredient_id=row.user_ingredient_id,
            name=row.name,
            quantity=row.quantity,
            added_date=row.added_date,
            estimated_expiration=estimated,
            days_until_expiration=remaining_days,
        )
        if remaining_days is None:
            if include_unknown:
                unknown.append(item)
        elif remaining_days >= 0:
            dated.append(item)

    # sort is stable, ties keep user_ingredient_id order
    dated.sort(key=lambda item: item.days_until_expiration)
    logger.info(
        f"Expiration query for user {user_id} on {today}: {len(dated)} dated, {len(unknown)} unknown"
    )
    return dated + unknown


async def get_pantry(db: AsyncSession, user_id: int) -> List[PantryItem]:
    result = await db.execute(
        select(
            UserIngredient.user_ingredient_id,
            UserIngredient.ingredient_id,
            Ingredient.name,
            Ingredient.unit,
            Ingredient.storage_type,
            UserIngredient.remaining_quantity,
            UserIngredient.added_date,
        )
        .join(Ingredient, UserIngredient.ingredient_id == Ingredient.ingredient_id)
        .where(
            UserIngredient.user_id == user_id,
            UserIngredient.remaining_quantity > 0,
        )
        .order_by(Ingredient.name, UserIngredient.user_ingredient_id)
    )
    return [PantryItem(**row._mapping) for row in result.all()]


async def get_shopping_list(db: AsyncSession, user_id: int, created_at: datetime) -> List[ShoppingListItem]:
    """What is still missing from the pantry to cook a meal plan's uncooked recipes.

    Recipe quantities are summed per ingredient as listed on the recipe; they
    are not scaled by the plan's servings.
    """
    plan = await db.execute(
        select(MealPlan).where(MealPlan.user_id == user_id, MealPlan.created_at == created_at)
    )
    if not plan.scalars().first():
        raise NotFoundError(f"Meal plan {user_id}/{created_at} not found")

    needed = await db.execute(
        select(
            RecipeIngredient.ingredient_id,
            Ingredient.name,
            Ingredient.unit,
            RecipeIngredient.quantity,
        )
        .join(Ingredient, RecipeIngredient.ingredient_id == Ingredient.ingredient_id)
        .join(MealPlanRecipe, MealPlanRecipe.recipe_id == RecipeIngredient.recipe_id)
        .where(
            MealPlanRecipe.user_id == user_id,
            MealPlanRecipe.created_at == created_at,
            MealPlanRecipe.cooked.is_(False),
        )
    )
    required = defaultdict(float)
    names = {}
    for row in needed.all():
        required[row.ingredient_id] += row.quantity or 0
        names[row.ingredient_id] = (row.name, row.unit)
    if not required:
        return []

    stock = await db.execute(
        select(UserIngredient.ingredient_id, func.sum(UserIngredient.remaining_quantity))
        .where(
            UserIngredient.user_id == user_id,
            UserIngredient.ingredient_id.in_(required.keys()),
            UserIngredient.remaining_quantity > 0,
        )
        .group_by(UserIngredient.ingredient_id)
    )
    in_pantry = {ingredient_id: total for ingredient_id, total in stock.all()}

    items = []
    for ingredient_id, quantity in required.items():
        have = in_pantry.get(ingredient_id, 0.0)
        if quantity > have:
            name, unit = names[ingredient_id]
            items.append(ShoppingListItem(
                ingredient_id=ingredient_id,
                name=name,
                unit=unit,
                required=quantity,
                in_pantry=have,
                to_buy=quantity - have,
            ))
    items.sort(key=lambda item: (item.name, item.ingredient_id))
    return items


async def get_recipes_by_restriction(db: AsyncSession, name: str):
    result = await db.execute(
        select(Recipe)
        .join(RecipeRestriction, RecipeRestriction.recipe_id == Recipe.recipe_id)
        .join(Restriction, Restriction.tag_id == RecipeRestriction.tag_id)
        .where(func.lower(Restriction.name) == name.lower())
        .order_by(Recipe.title, Recipe.recipe_id)
    )
    return result.scalars().unique().all()
