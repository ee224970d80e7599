# clayminds/services/summary.py
from __future__ import annotations

import re
from collections import Counter
from datetime import date
from typing import Dict, List, Optional

from clayminds.schemas.schema_diary import DiaryEntry
from clayminds.schemas.schema_diet import MEAL_CATEGORIES, DietPlan

WEEK_DAYS = ["Dom", "Lun", "Mar", "Mie", "Jue", "Vie", "Sab"]


def emotion_counts(entries: List[DiaryEntry], limit: int = 5) -> List[Dict[str, object]]:
    counts: Counter = Counter()
    for entry in entries:
        if not entry.emotions:
            continue
        for word in re.split(r"[, ]+", entry.emotions):
            word = word.lower().strip()
            if len(word) > 2:
                counts[word] += 1
    # most_common keeps first-seen order among equal counts
    return [{"name": name, "value": value} for name, value in counts.most_common(limit)]


def _parse_entry_date(value: str) -> Optional[date]:
    try:
        return date.fromisoformat((value or "").strip()[:10])
    except ValueError:
        return None


def weekly_activity(entries: List[DiaryEntry]) -> List[Dict[str, object]]:
    week = [{"day": day, "entries": 0} for day in WEEK_DAYS]
    for entry in entries:
        parsed = _parse_entry_date(entry.date)
        if parsed is None:
            continue
        # isoweekday: Monday=1 .. Sunday=7, the week here starts on Sunday
        week[parsed.isoweekday() % 7]["entries"] += 1
    return week


def diet_progress(plan: Optional[DietPlan]) -> Dict[str, object]:
    if plan is None or not plan.schedule:
        return {"total": 0, "completed": 0, "percentage": 0.0, "by_category": {}}

    by_category: Dict[str, Dict[str, int]] = {}
    for meal in plan.schedule:
        bucket = by_category.setdefault(meal.category, {"total": 0, "completed": 0})
        bucket["total"] += 1
        if meal.completed:
            bucket["completed"] += 1

    total = len(plan.schedule)
    completed = sum(1 for meal in plan.schedule if meal.completed)
    ordered = {c: by_category[c] for c in MEAL_CATEGORIES if c in by_category}
    return {
        "total": total,
        "completed": completed,
        "percentage": round(completed * 100 / total, 1),
        "by_category": ordered,
    }


def build_summary(entries: List[DiaryEntry], plan: Optional[DietPlan]) -> Dict[str, object]:
    return {
        "diary_count": len(entries),
        "emotions": emotion_counts(entries),
        "activity": weekly_activity(entries),
        "diet": diet_progress(plan),
    }
