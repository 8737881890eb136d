"""initial schema

Revision ID: 0001
Revises:
Create Date: 2024-01-01 00:00:00

"""
from alembic import op
import sqlalchemy as sa


revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("user_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("email", sa.String(100), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(100), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_table(
        "ingredients",
        sa.Column("ingredient_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("category", sa.String(50)),
        sa.Column("unit", sa.String(50)),
        sa.Column("expiration_approx", sa.Integer()),
        sa.Column("main_food", sa.Boolean(), server_default=sa.true()),
        sa.Column("storage_type", sa.String(50), nullable=False),
        sa.Column("emoji", sa.String(10)),
    )
    op.create_table(
        "user_ingredients",
        sa.Column("user_ingredient_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("ingredient_id", sa.Integer(), sa.ForeignKey("ingredients.ingredient_id"), nullable=False),
        sa.Column("quantity", sa.Float(), nullable=False),
        sa.Column("remaining_quantity", sa.Float(), nullable=False),
        sa.Column("added_date", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("expiration_date", sa.DateTime()),
        sa.CheckConstraint("quantity >= 0", name="ck_user_ingredients_quantity_nonneg"),
        sa.CheckConstraint("remaining_quantity >= 0", name="ck_user_ingredients_remaining_nonneg"),
        sa.CheckConstraint("remaining_quantity <= quantity", name="ck_user_ingredients_remaining_le_quantity"),
    )
    op.create_table(
        "recipes",
        sa.Column("recipe_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("cuisine", sa.String(50)),
        sa.Column("prep_time", sa.Integer()),
        sa.Column("cook_time", sa.Integer()),
        sa.Column("difficulty", sa.String(50)),
    )
    op.create_table(
        "recipe_ingredients",
        sa.Column("recipe_id", sa.Integer(), sa.ForeignKey("recipes.recipe_id"), primary_key=True),
        sa.Column("ingredient_id", sa.Integer(), sa.ForeignKey("ingredients.ingredient_id"), primary_key=True),
        sa.Column("quantity", sa.Float()),
    )
    op.create_table(
        "recipe_instruction",
        sa.Column("recipe_id", sa.Integer(), sa.ForeignKey("recipes.recipe_id"), primary_key=True),
        sa.Column("step_number", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("instruction", sa.Text()),
    )
    op.create_table(
        "ingredients_usage",
        sa.Column("usage_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_ingredient_id", sa.Integer(),
            sa.ForeignKey("user_ingredients.user_ingredient_id"), nullable=False,
        ),
        sa.Column("used_quantity", sa.Float(), nullable=False),
        sa.Column("remaining_quantity_after_use", sa.Float(), nullable=False),
        sa.Column("usage_date", sa.DateTime(), server_default=sa.func.now()),
        sa.CheckConstraint("used_quantity >= 0", name="ck_ingredients_usage_used_nonneg"),
        sa.CheckConstraint("remaining_quantity_after_use >= 0", name="ck_ingredients_usage_remaining_nonneg"),
    )
    op.create_table(
        "restriction",
        sa.Column("tag_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(50), nullable=False),
    )
    op.create_table(
        "recipe_restriction",
        sa.Column("recipe_id", sa.Integer(), sa.ForeignKey("recipes.recipe_id"), primary_key=True),
        sa.Column("tag_id", sa.Integer(), sa.ForeignKey("restriction.tag_id"), primary_key=True),
    )
    op.create_table(
        "meal_plan",
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.user_id"), primary_key=True),
        sa.Column("created_at", sa.DateTime(), primary_key=True, nullable=False),
        sa.Column("servings", sa.Integer(), nullable=False),
    )
    op.create_table(
        "meal_plan_recipes",
        sa.Column("user_id", sa.Integer(), primary_key=True),
        sa.Column("created_at", sa.DateTime(), primary_key=True),
        sa.Column("recipe_id", sa.Integer(), sa.ForeignKey("recipes.recipe_id"), primary_key=True),
        sa.Column("cooked", sa.Boolean(), nullable=False),
        sa.Column("cooked_on", sa.DateTime()),
        sa.ForeignKeyConstraint(
            ["user_id", "created_at"],
            ["meal_plan.user_id", "meal_plan.created_at"],
        ),
    )


def downgrade() -> None:
    for table in (
        "meal_plan_recipes", "meal_plan", "recipe_restriction", "restriction",
        "ingredients_usage", "recipe_instruction", "recipe_ingredients",
        "recipes", "user_ingredients", "ingredients", "users",
    ):
        op.drop_table(table)
