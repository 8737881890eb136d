import pytest
from sqlalchemy import select, func
from datetime import datetime

from mindful_meals import crud
from mindful_meals.exceptions import NotFoundError, InsufficientQuantityError, ForeignKeyViolationError
from mindful_meals.models import Recipe
from mindful_meals.schemas import (
    UserCreate, UserSchema, IngredientCreate, UserIngredientCreate, RecipeCreate,
    RecipeIngredientBase, RecipeInstructionBase, RecipeSchema, RestrictionCreate,
    MealPlanCreate, MealPlanSchema,
)


@pytest.mark.asyncio
async def test_create_user_hashes_password(db_session):
    user = await crud.create_user(
        db_session, UserCreate(username="carol", email="carol@example.com", password="carolpass")
    )
    assert user.password_hash != "carolpass"
    assert crud.pwd_context.verify("carolpass", user.password_hash)
    assert user.created_at is not None

    schema = UserSchema.model_validate(user)
    assert "password_hash" not in schema.model_dump()

    found = await crud.get_user_by_email(db_session, "carol@example.com")
    assert found.user_id == user.user_id
    assert (await crud.get_user(db_session, user.user_id)).username == "carol"


@pytest.mark.asyncio
async def test_create_and_list_ingredients(db_session, seed):
    basil = await crud.create_ingredient(
        db_session, IngredientCreate(name="Basil", category="herb", unit="g",
                                     expiration_approx=5, storage_type="fridge", emoji="🌿")
    )
    assert basil.main_food is True
    assert (await crud.get_ingredient(db_session, basil.ingredient_id)).name == "Basil"

    names = [i.name for i in await crud.list_ingredients(db_session)]
    assert names == ["Basil", "Egg", "Milk", "Rice"]
    assert len(await crud.list_ingredients(db_session, skip=1, limit=2)) == 2


@pytest.mark.asyncio
async def test_add_user_ingredient_defaults_remaining_to_quantity(db_session, seed):
    stock = await crud.add_user_ingredient(
        db_session, seed["alice"].user_id,
        UserIngredientCreate(ingredient_id=seed["milk"].ingredient_id, quantity=1000),
    )
    assert stock.remaining_quantity == 1000
    assert stock.added_date is not None
    assert stock.expiration_date is None


@pytest.mark.asyncio
async def test_usage_history_never_increases(db_session, seed):
    stock = await crud.add_user_ingredient(
        db_session, seed["alice"].user_id,
        UserIngredientCreate(ingredient_id=seed["egg"].ingredient_id, quantity=12),
    )
    await crud.record_ingredient_usage(db_session, stock.user_ingredient_id, 2, datetime(2024, 1, 2, 8))
    await crud.record_ingredient_usage(db_session, stock.user_ingredient_id, 3.5, datetime(2024, 1, 3, 8))
    last = await crud.record_ingredient_usage(db_session, stock.user_ingredient_id, 6.5, datetime(2024, 1, 4, 8))

    assert last.remaining_quantity_after_use == 0
    history = await crud.get_usage_history(db_session, stock.user_ingredient_id)
    remaining = [u.remaining_quantity_after_use for u in history]
    assert remaining == [10, 6.5, 0]
    assert remaining == sorted(remaining, reverse=True)

    refreshed = await crud.get_user_ingredient(db_session, stock.user_ingredient_id)
    assert refreshed.remaining_quantity == 0


@pytest.mark.asyncio
async def test_usage_beyond_remaining_is_refused(db_session, seed):
    stock = await crud.add_user_ingredient(
        db_session, seed["alice"].user_id,
        UserIngredientCreate(ingredient_id=seed["egg"].ingredient_id, quantity=6),
    )
    with pytest.raises(InsufficientQuantityError):
        await crud.record_ingredient_usage(db_session, stock.user_ingredient_id, 7)
    assert (await crud.get_user_ingredient(db_session, stock.user_ingredient_id)).remaining_quantity == 6
    assert await crud.get_usage_history(db_session, stock.user_ingredient_id) == []


@pytest.mark.asyncio
async def test_usage_of_unknown_stock(db_session, seed):
    with pytest.raises(NotFoundError):
        await crud.record_ingredient_usage(db_session, 9999, 1)
    with pytest.raises(ValueError):
        await crud.record_ingredient_usage(db_session, 9999, -1)


@pytest.mark.asyncio
async def test_create_recipe_with_children(db_session, seed):
    gluten_free = await crud.create_restriction(db_session, RestrictionCreate(name="Gluten-Free"))
    recipe = await crud.create_recipe(db_session, RecipeCreate(
        title="Fried Rice",
        description="Day-old rice fried with egg",
        cuisine="Chinese",
        prep_time=10,
        cook_time=10,
        difficulty="easy",
        ingredients=[
            RecipeIngredientBase(ingredient_id=seed["rice"].ingredient_id, quantity=200),
            RecipeIngredientBase(ingredient_id=seed["egg"].ingredient_id, quantity=2),
        ],
        instructions=[
            RecipeInstructionBase(step_number=2, instruction="Add the rice"),
            RecipeInstructionBase(step_number=1, instruction="Scramble the eggs"),
        ],
        restriction_ids=[gluten_free.tag_id, seed["vegetarian"].tag_id],
    ))

    schema = RecipeSchema.model_validate(recipe)
    assert schema.title == "Fried Rice"
    assert [s.step_number for s in schema.instructions] == [1, 2]
    assert {i.ingredient_id for i in schema.ingredients} == {
        seed["rice"].ingredient_id, seed["egg"].ingredient_id,
    }
    assert [r.name for r in schema.restrictions] == ["Gluten-Free", "Vegetarian"]


@pytest.mark.asyncio
async def test_create_recipe_rolls_back_on_bad_ingredient(db_session, seed):
    with pytest.raises(ForeignKeyViolationError):
        await crud.create_recipe(db_session, RecipeCreate(
            title="Ghost Soup",
            description="Made of nothing",
            ingredients=[RecipeIngredientBase(ingredient_id=9999, quantity=1)],
        ))
    count = await db_session.execute(select(func.count()).select_from(Recipe))
    assert count.scalar() == 1


@pytest.mark.asyncio
async def test_get_recipe_missing(db_session, seed):
    assert await crud.get_recipe(db_session, 9999) is None


@pytest.mark.asyncio
async def test_meal_plan_lifecycle(db_session, seed):
    user_id = seed["alice"].user_id
    pudding_id = seed["pudding"].recipe_id
    first_at = datetime(2024, 1, 1, 12, 0, 0)
    second_at = datetime(2024, 1, 8, 12, 0, 0)

    plan = await crud.create_meal_plan(
        db_session, user_id, MealPlanCreate(servings=4, created_at=first_at, recipe_ids=[pudding_id])
    )
    schema = MealPlanSchema.model_validate(plan)
    assert schema.servings == 4
    assert [(r.recipe_id, r.cooked) for r in schema.recipes] == [(pudding_id, False)]

    await crud.create_meal_plan(db_session, user_id, MealPlanCreate(servings=2, created_at=second_at))

    cooked = await crud.mark_recipe_cooked(
        db_session, user_id, first_at, pudding_id, cooked_on=datetime(2024, 1, 2, 19, 0, 0)
    )
    assert cooked.cooked is True
    assert cooked.cooked_on == datetime(2024, 1, 2, 19, 0, 0)

    plans = await crud.get_meal_plans(db_session, user_id)
    assert [p.created_at for p in plans] == [second_at, first_at]
    assert plans[1].recipes[0].cooked is True
    assert await crud.get_meal_plans(db_session, seed["bob"].user_id) == []


@pytest.mark.asyncio
async def test_mark_cooked_for_recipe_not_in_plan(db_session, seed):
    with pytest.raises(NotFoundError):
        await crud.mark_recipe_cooked(
            db_session, seed["alice"].user_id, datetime(2024, 1, 1), seed["pudding"].recipe_id
        )


@pytest.mark.asyncio
async def test_meal_plan_default_timestamp(db_session, seed):
    plan = await crud.create_meal_plan(db_session, seed["bob"].user_id, MealPlanCreate(servings=1))
    assert plan.created_at.microsecond == 0
    assert plan.recipes == []


@pytest.mark.asyncio
async def test_usage_from_two_sessions_keeps_history_decreasing(db_session, session_factory, seed):
    stock = await crud.add_user_ingredient(
        db_session, seed["alice"].user_id,
        UserIngredientCreate(ingredient_id=seed["egg"].ingredient_id, quantity=10),
    )
    stock_id = stock.user_ingredient_id

    async with session_factory() as other:
        await crud.record_ingredient_usage(other, stock_id, 4, datetime(2024, 1, 2, 8))
    # db_session still holds the row with remaining_quantity == 10
    await crud.record_ingredient_usage(db_session, stock_id, 3, datetime(2024, 1, 3, 8))

    async with session_factory() as fresh:
        history = await crud.get_usage_history(fresh, stock_id)
        assert [u.remaining_quantity_after_use for u in history] == [6, 3]
        assert (await crud.get_user_ingredient(fresh, stock_id)).remaining_quantity == 3

    async with session_factory() as other:
        with pytest.raises(InsufficientQuantityError):
            await crud.record_ingredient_usage(other, stock_id, 5)
