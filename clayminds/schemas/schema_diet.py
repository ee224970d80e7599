# clayminds/schemas/schema_diet.py
from typing import List, Literal

from pydantic import BaseModel, Field, field_validator

MealCategory = Literal["breakfast", "snack", "lunch", "dinner", "other"]
MEAL_CATEGORIES = ("breakfast", "snack", "lunch", "dinner", "other")


class Meal(BaseModel):
    time: str
    dish: str
    description: str = ""
    ingredients: List[str] = Field(default_factory=list)
    category: MealCategory = "other"
    completed: bool = False

    @field_validator("category", mode="before")
    @classmethod
    def unknown_category_is_other(cls, v):
        if isinstance(v, str) and v.strip().lower() in MEAL_CATEGORIES:
            return v.strip().lower()
        return "other"

    @field_validator("completed", mode="before")
    @classmethod
    def missing_completed_is_false(cls, v):
        return bool(v) if v is not None else False


class DietPlan(BaseModel):
    name: str
    schedule: List[Meal] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class ParseDietRequest(BaseModel):
    text: str
