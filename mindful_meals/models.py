# mindful_meals/models.py

from sqlalchemy import (
    Column, Integer, String, Text, Float, Boolean, DateTime, ForeignKey,
    ForeignKeyConstraint, CheckConstraint, true,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from .database import Base

class User(Base):
    __tablename__ = "users"
    user_id       = Column(Integer, primary_key=True, autoincrement=True)
    username      = Column(String(100), nullable=False)
    email         = Column(String(100), unique=True, nullable=False)
    password_hash = Column(String(100), nullable=False)
    created_at    = Column(DateTime, server_default=func.now())

    ingredients = relationship("UserIngredient", back_populates="user")
    meal_plans  = relationship("MealPlan", back_populates="user")

class Ingredient(Base):
    __tablename__ = "ingredients"
    ingredient_id     = Column(Integer, primary_key=True, autoincrement=True)
    name              = Column(String(100), nullable=False)
    category          = Column(String(50))
    unit              = Column(String(50))
    expiration_approx = Column(Integer)  # days
    main_food         = Column(Boolean, default=True, server_default=true())
    storage_type      = Column(String(50), nullable=False)
    emoji             = Column(String(10))

class UserIngredient(Base):
    __tablename__ = "user_ingredients"
    user_ingredient_id = Column(Integer, primary_key=True, autoincrement=True)
    user_id            = Column(Integer, ForeignKey("users.user_id"), nullable=False)
    ingredient_id      = Column(Integer, ForeignKey("ingredients.ingredient_id"), nullable=False)
    quantity           = Column(Float, nullable=False)
    remaining_quantity = Column(Float, nullable=False)
    added_date         = Column(DateTime, server_default=func.now())
    expiration_date    = Column(DateTime)

    user       = relationship("User", back_populates="ingredients")
    ingredient = relationship("Ingredient")
    usages     = relationship("IngredientUsage", back_populates="user_ingredient",
                              order_by="IngredientUsage.usage_id")

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_user_ingredients_quantity_nonneg"),
        CheckConstraint("remaining_quantity >= 0", name="ck_user_ingredients_remaining_nonneg"),
        CheckConstraint("remaining_quantity <= quantity", name="ck_user_ingredients_remaining_le_quantity"),
    )

class Recipe(Base):
    __tablename__ = "recipes"
    recipe_id   = Column(Integer, primary_key=True, autoincrement=True)
    title       = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    cuisine     = Column(String(50))
    prep_time   = Column(Integer)  # minutes
    cook_time   = Column(Integer)  # minutes
    difficulty  = Column(String(50))

    ingredients  = relationship("RecipeIngredient", back_populates="recipe")
    instructions = relationship("RecipeInstruction", back_populates="recipe",
                                order_by="RecipeInstruction.step_number")
    restrictions = relationship("Restriction", secondary="recipe_restriction",
                                order_by="Restriction.name", viewonly=True)

class RecipeIngredient(Base):
    __tablename__ = "recipe_ingredients"
    recipe_id     = Column(Integer, ForeignKey("recipes.recipe_id"),         primary_key=True)
    ingredient_id = Column(Integer, ForeignKey("ingredients.ingredient_id"), primary_key=True)
    quantity      = Column(Float)

    recipe     = relationship("Recipe", back_populates="ingredients")
    ingredient = relationship("Ingredient")

class RecipeInstruction(Base):
    __tablename__ = "recipe_instruction"
    recipe_id   = Column(Integer, ForeignKey("recipes.recipe_id"), primary_key=True)
    step_number = Column(Integer, primary_key=True, autoincrement=False)
    instruction = Column(Text)

    recipe = relationship("Recipe", back_populates="instructions")

class IngredientUsage(Base):
    __tablename__ = "ingredients_usage"
    usage_id                     = Column(Integer, primary_key=True, autoincrement=True)
    user_ingredient_id           = Column(Integer, ForeignKey("user_ingredients.user_ingredient_id"), nullable=False)
    used_quantity                = Column(Float, nullable=False)
    remaining_quantity_after_use = Column(Float, nullable=False)
    usage_date                   = Column(DateTime, server_default=func.now())

    user_ingredient = relationship("UserIngredient", back_populates="usages")

    __table_args__ = (
        CheckConstraint("used_quantity >= 0", name="ck_ingredients_usage_used_nonneg"),
        CheckConstraint("remaining_quantity_after_use >= 0", name="ck_ingredients_usage_remaining_nonneg"),
    )

class Restriction(Base):
    __tablename__ = "restriction"
    tag_id = Column(Integer, primary_key=True, autoincrement=True)
    name   = Column(String(50), nullable=False)

class RecipeRestriction(Base):
    __tablename__ = "recipe_restriction"
    recipe_id = Column(Integer, ForeignKey("recipes.recipe_id"),  primary_key=True)
    tag_id    = Column(Integer, ForeignKey("restriction.tag_id"), primary_key=True)

class MealPlan(Base):
    __tablename__ = "meal_plan"
    user_id    = Column(Integer, ForeignKey("users.user_id"), primary_key=True)
    created_at = Column(DateTime, primary_key=True, nullable=False)
    servings   = Column(Integer, nullable=False)

    user    = relationship("User", back_populates="meal_plans")
    recipes = relationship("MealPlanRecipe", back_populates="meal_plan")

class MealPlanRecipe(Base):
    __tablename__ = "meal_plan_recipes"
    user_id    = Column(Integer, primary_key=True)
    created_at = Column(DateTime, primary_key=True)
    recipe_id  = Column(Integer, ForeignKey("recipes.recipe_id"), primary_key=True)
    cooked     = Column(Boolean, nullable=False, default=False)
    cooked_on  = Column(DateTime)

    meal_plan = relationship("MealPlan", back_populates="recipes")
    recipe    = relationship("Recipe")

    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id", "created_at"],
            ["meal_plan.user_id", "meal_plan.created_at"],
        ),
    )
