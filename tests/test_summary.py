from clayminds.schemas.schema_diary import DiaryEntry
from clayminds.schemas.schema_diet import DietPlan, Meal
from clayminds.services.summary import build_summary, diet_progress, emotion_counts, weekly_activity


def _entry(date="2024-05-01", emotions=""):
    return DiaryEntry(id=date + emotions, date=date, emotions=emotions)


def test_emotion_counts_rank_by_frequency():
    entries = [
        _entry(emotions="Tristeza, enojo"),
        _entry(emotions="tristeza miedo"),
        _entry(emotions="ya, tristeza"),
        _entry(emotions=""),
    ]
    assert emotion_counts(entries) == [
        {"name": "tristeza", "value": 3},
        {"name": "enojo", "value": 1},
        {"name": "miedo", "value": 1},
    ]


def test_emotion_counts_limit():
    entries = [_entry(emotions="uno dos tres cuatro cinco seis siete")]
    assert len(emotion_counts(entries, limit=5)) == 5


def test_weekly_activity_starts_on_sunday():
    entries = [
        _entry("2024-05-05"),
        _entry("2024-05-06"),
        _entry("2024-05-06T10:00:00"),
        _entry("fecha rara"),
    ]
    week = weekly_activity(entries)

    assert [d["day"] for d in week] == ["Dom", "Lun", "Mar", "Mie", "Jue", "Vie", "Sab"]
    assert week[0]["entries"] == 1
    assert week[1]["entries"] == 2
    assert sum(d["entries"] for d in week) == 3


def test_diet_progress():
    plan = DietPlan(
        name="p",
        schedule=[
            Meal(time="1", dish="a", category="breakfast", completed=True),
            Meal(time="2", dish="b", category="lunch"),
            Meal(time="3", dish="c", category="breakfast"),
        ],
    )
    progress = diet_progress(plan)

    assert progress["total"] == 3
    assert progress["completed"] == 1
    assert progress["percentage"] == 33.3
    assert progress["by_category"] == {
        "breakfast": {"total": 2, "completed": 1},
        "lunch": {"total": 1, "completed": 0},
    }
    assert diet_progress(None)["total"] == 0


def test_build_summary_shape():
    summary = build_summary([_entry(emotions="calma")], None)
    assert summary["diary_count"] == 1
    assert summary["emotions"] == [{"name": "calma", "value": 1}]
    assert set(summary) == {"diary_count", "emotions", "activity", "diet"}
