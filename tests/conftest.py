import os

# must be set before mindful_meals.database is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from mindful_meals.database import Base, enable_sqlite_foreign_keys
from mindful_meals.crud import get_password_hash
from mindful_meals.models import (
    User, Ingredient, Recipe, RecipeIngredient, RecipeInstruction, Restriction,
    RecipeRestriction,
)


# --- 1) One SQLite file per test, foreign keys on ---
@pytest_asyncio.fixture
async def engine(tmp_path):
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    enable_sqlite_foreign_keys(test_engine)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


# --- 2) Seed a small household ---
@pytest_asyncio.fixture
async def seed(db_session: AsyncSession):
    alice = User(username="alice", email="alice@example.com", password_hash=get_password_hash("alicepass"))
    bob = User(username="bob", email="bob@example.com", password_hash=get_password_hash("bobpass"))
    milk = Ingredient(name="Milk", category="dairy", unit="ml", expiration_approx=7,
                      storage_type="fridge", emoji="🥛")
    rice = Ingredient(name="Rice", category="grain", unit="g", expiration_approx=None,
                      storage_type="pantry", main_food=True)
    egg = Ingredient(name="Egg", category="protein", unit="pcs", expiration_approx=21,
                     storage_type="fridge")
    vegan = Restriction(name="Vegan")
    vegetarian = Restriction(name="Vegetarian")
    db_session.add_all([alice, bob, milk, rice, egg, vegan, vegetarian])
    await db_session.commit()

    pudding = Recipe(title="Rice Pudding", description="Creamy rice cooked in milk",
                     cuisine="British", prep_time=5, cook_time=40, difficulty="easy")
    db_session.add(pudding)
    await db_session.commit()

    db_session.add_all([
        RecipeIngredient(recipe_id=pudding.recipe_id, ingredient_id=milk.ingredient_id, quantity=500.0),
        RecipeIngredient(recipe_id=pudding.recipe_id, ingredient_id=rice.ingredient_id, quantity=100.0),
        RecipeInstruction(recipe_id=pudding.recipe_id, step_number=1, instruction="Rinse the rice"),
        RecipeInstruction(recipe_id=pudding.recipe_id, step_number=2, instruction="Simmer in milk"),
        RecipeRestriction(recipe_id=pudding.recipe_id, tag_id=vegetarian.tag_id),
    ])
    await db_session.commit()

    return {
        "alice": alice,
        "bob": bob,
        "milk": milk,
        "rice": rice,
        "egg": egg,
        "vegan": vegan,
        "vegetarian": vegetarian,
        "pudding": pudding,
    }
