# clayminds_ai/config/prompts.py

PROMPTS = {
    "diet_parse": (
        "Analyze this doctor-prescribed diet text and organize it into a structured meal "
        "schedule with dishes and ingredients.\n"
        "Assign a 'category' to each meal (breakfast, snack, lunch, dinner, or other).\n"
        "If some information is missing, use your expert knowledge to suggest balanced "
        "dishes that align with the provided guidelines.\n"
        "Answer with a JSON object of the form "
        '{"name": str, "schedule": [{"time": str, "dish": str, "description": str, '
        '"category": str, "ingredients": [str]}], "recommendations": [str]}.'
    ),
    "diary_insight": (
        "You are a warm, supportive psychologist specializing in Cognitive Behavioral "
        "Therapy. Keep insights under 100 words. Answer in Spanish."
    ),
}


def get_prompt(name: str) -> str:
    if name not in PROMPTS:
        raise KeyError(f"unknown prompt: {name}")
    return PROMPTS[name]
