# clayminds_ai/core/diet_parser.py
"""
Diet text parser
- deterministic parser for the usual "DÍA n / Desayuno / ..." layout
- OpenAI fallback for free-form text
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from clayminds.schemas.schema_diet import DietPlan, Meal
from clayminds_ai.config.prompts import get_prompt
from clayminds_ai.utils.openai_client import OpenAIClient

logger = logging.getLogger(__name__)

MEAL_KEYWORDS = ["desayuno", "comida", "cena", "colación", "colacion", "snack", "almuerzo"]
DAY_PATTERN = re.compile(r"D[IÍ]A\s*\d+", re.IGNORECASE)
SEPARATOR_PATTERN = re.compile(r"^⚡|^🔥|^SEMANA", re.IGNORECASE)

# a structured parse with more meals than this is trusted without the model
STRUCTURED_MIN_MEALS = 5

PARSE_ERROR_MESSAGE = (
    "No pudimos procesar el texto de la dieta. Por favor, intenta pegarla "
    "con un formato más claro (ej: Desayuno: ...)"
)


class DietParseError(Exception):
    pass


def map_meal_category(label: str) -> str:
    v = label.lower()
    if "desayuno" in v:
        return "breakfast"
    if "colación" in v or "colacion" in v or "snack" in v:
        return "snack"
    if "comida" in v or "almuerzo" in v:
        return "lunch"
    if "cena" in v:
        return "dinner"
    return "other"


def _is_meal_header(line: str) -> bool:
    maybe_meal = line.replace(":", "", 1).strip().lower()
    return any(maybe_meal == k or maybe_meal.startswith(f"{k} ") for k in MEAL_KEYWORDS)


def parse_structured_text(text: str) -> Optional[DietPlan]:
    lines = [line.strip() for line in (text or "").split("\n")]
    lines = [line for line in lines if line]
    if not lines:
        return None

    schedule: List[Meal] = []
    current_day = ""
    current_label = ""
    current_lines: List[str] = []

    def flush_meal() -> None:
        nonlocal current_label, current_lines
        if not current_label or not current_lines:
            return
        description = re.sub(r"\s+", " ", " ".join(current_lines)).strip()
        ingredients = [part.strip() for part in re.split(r"[,+]", description) if part.strip()]
        day_prefix = f"{current_day} · " if current_day else ""
        schedule.append(
            Meal(
                time=f"{day_prefix}{current_label}",
                dish=current_lines[0] or description,
                description=description,
                category=map_meal_category(current_label),
                ingredients=ingredients or [description],
                completed=False,
            )
        )
        current_label = ""
        current_lines = []

    for line in lines:
        day_match = DAY_PATTERN.search(line)
        if day_match:
            flush_meal()
            current_day = day_match.group(0).upper()
            continue

        if _is_meal_header(line):
            flush_meal()
            current_label = line.replace(":", "", 1).strip()
            continue

        if SEPARATOR_PATTERN.search(line):
            flush_meal()
            continue

        if current_label:
            current_lines.append(line)

    flush_meal()

    if not schedule:
        return None

    return DietPlan(
        name="Plan nutricional personalizado",
        schedule=schedule,
        recommendations=[
            "Mantén buena hidratación durante el día.",
            "Ajusta porciones con tu especialista según evolución.",
        ],
    )


def _normalize_meal(meal: Any) -> Dict[str, Any]:
    meal = meal if isinstance(meal, dict) else {}
    dish = meal.get("dish") or "Comida sugerida"
    ingredients = meal.get("ingredients")
    if not isinstance(ingredients, list) or not ingredients:
        ingredients = [meal.get("dish") or "Ingrediente no especificado"]
    return {
        "time": meal.get("time") or "Sin horario",
        "dish": dish,
        "description": meal.get("description") or meal.get("dish") or "Sin descripción",
        "category": meal.get("category") or "other",
        "ingredients": [str(i) for i in ingredients],
        "completed": False,
    }


def plan_from_model_output(raw: str) -> DietPlan:
    try:
        parsed = json.loads(raw or "{}")
    except json.JSONDecodeError as e:
        logger.error(f"Diet JSON could not be decoded: {e}")
        raise DietParseError(PARSE_ERROR_MESSAGE) from e
    if not isinstance(parsed, dict):
        raise DietParseError(PARSE_ERROR_MESSAGE)

    schedule = parsed.get("schedule")
    recommendations = parsed.get("recommendations")
    try:
        return DietPlan(
            name=parsed.get("name") or "Plan nutricional generado",
            schedule=[_normalize_meal(m) for m in schedule] if isinstance(schedule, list) else [],
            recommendations=[str(r) for r in recommendations] if isinstance(recommendations, list) else [],
        )
    except ValidationError as e:
        logger.error(f"Diet JSON has an unexpected shape: {e}")
        raise DietParseError(PARSE_ERROR_MESSAGE) from e


class DietParser:
    """Turns prescribed diet text into a DietPlan"""

    def __init__(self, client: Optional[OpenAIClient] = None):
        self.client = client

    def parse_diet_from_text(self, text: str) -> DietPlan:
        if not text or not text.strip():
            raise DietParseError(PARSE_ERROR_MESSAGE)

        structured = parse_structured_text(text)
        if structured and len(structured.schedule) > STRUCTURED_MIN_MEALS:
            return structured

        if self.client is None:
            if structured:
                logger.info("No AI client configured, using the structured parse as is")
                return structured
            raise DietParseError(PARSE_ERROR_MESSAGE)

        raw = self.client.simple_chat(
            f"Text: {text}",
            get_prompt("diet_parse"),
            max_tokens=2000,
            temperature=0.4,
            response_format={"type": "json_object"},
        )
        plan = plan_from_model_output(raw)
        logger.info(f"Diet parsed by model: {len(plan.schedule)} meals")
        return plan
