from pydantic import BaseModel, ConfigDict, Field, model_validator
from datetime import datetime
from typing import Dict, List, Optional


class UserCreate(BaseModel):
    username: str = Field(min_length=1, max_length=100)
    email: str = Field(max_length=100, pattern=r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
    password: str = Field(min_length=6)

class UserSchema(BaseModel):
    user_id: int
    username: str
    email: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class IngredientBase(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    category: Optional[str] = Field(default=None, max_length=50)
    unit: Optional[str] = Field(default=None, max_length=50)
    expiration_approx: Optional[int] = Field(default=None, ge=0)
    main_food: bool = True
    storage_type: str = Field(min_length=1, max_length=50)
    emoji: Optional[str] = Field(default=None, max_length=10)

class IngredientCreate(IngredientBase):
    pass

class IngredientSchema(IngredientBase):
    ingredient_id: int

    model_config = ConfigDict(from_attributes=True)

class UserIngredientCreate(BaseModel):
    ingredient_id: int
    quantity: float = Field(ge=0)
    remaining_quantity: Optional[float] = Field(default=None, ge=0)
    added_date: Optional[datetime] = None
    expiration_date: Optional[datetime] = None

    @model_validator(mode="after")
    def remaining_within_quantity(self):
        if self.remaining_quantity is not None and self.remaining_quantity > self.quantity:
            raise ValueError("remaining_quantity cannot exceed quantity")
        return self

class UserIngredientSchema(BaseModel):
    user_ingredient_id: int
    user_id: int
    ingredient_id: int
    quantity: float
    remaining_quantity: float
    added_date: Optional[datetime] = None
    expiration_date: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class IngredientUsageSchema(BaseModel):
    usage_id: int
    user_ingredient_id: int
    used_quantity: float
    remaining_quantity_after_use: float
    usage_date: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class RecipeIngredientBase(BaseModel):
    ingredient_id: int
    quantity: Optional[float] = Field(default=None, ge=0)

class RecipeIngredientSchema(RecipeIngredientBase):
    recipe_id: int

    model_config = ConfigDict(from_attributes=True)

class RecipeInstructionBase(BaseModel):
    step_number: int = Field(ge=1)
    instruction: Optional[str] = None

class RecipeInstructionSchema(RecipeInstructionBase):
    recipe_id: int

    model_config = ConfigDict(from_attributes=True)

class RestrictionCreate(BaseModel):
    name: str = Field(min_length=1, max_length=50)

class RestrictionSchema(RestrictionCreate):
    tag_id: int

    model_config = ConfigDict(from_attributes=True)

class RecipeBase(BaseModel):
    title: str = Field(min_length=1, max_length=100)
    description: str
    cuisine: Optional[str] = Field(default=None, max_length=50)
    prep_time: Optional[int] = Field(default=None, ge=0)
    cook_time: Optional[int] = Field(default=None, ge=0)
    difficulty: Optional[str] = Field(default=None, max_length=50)

class RecipeCreate(RecipeBase):
    ingredients: List[RecipeIngredientBase] = []
    instructions: List[RecipeInstructionBase] = []
    restriction_ids: List[int] = []

class RecipeSchema(RecipeBase):
    recipe_id: int
    ingredients: List[RecipeIngredientSchema] = []
    instructions: List[RecipeInstructionSchema] = []
    restrictions: List[RestrictionSchema] = []

    model_config = ConfigDict(from_attributes=True)

class MealPlanCreate(BaseModel):
    servings: int = Field(ge=1)
    created_at: Optional[datetime] = None
    recipe_ids: List[int] = []

class MealPlanRecipeSchema(BaseModel):
    user_id: int
    created_at: datetime
    recipe_id: int
    cooked: bool
    cooked_on: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class MealPlanSchema(BaseModel):
    user_id: int
    created_at: datetime
    servings: int
    recipes: List[MealPlanRecipeSchema] = []

    model_config = ConfigDict(from_attributes=True)

class ExpiringIngredient(BaseModel):
    user_ingredient_id: int
    name: str
    quantity: float
    added_date: Optional[datetime] = None
    estimated_expiration: Optional[datetime] = None
    days_until_expiration: Optional[int] = None

class PantryItem(BaseModel):
    user_ingredient_id: int
    ingredient_id: int
    name: str
    unit: Optional[str] = None
    storage_type: str
    remaining_quantity: float
    added_date: Optional[datetime] = None

class ShoppingListItem(BaseModel):
    ingredient_id: int
    name: str
    unit: Optional[str] = None
    required: float
    in_pantry: float
    to_buy: float

class UsageReport(BaseModel):
    user_id: int
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    usage: Dict[str, float]
