# clayminds_ai/core/insight_service.py
"""
Diary insight service
Short CBT-style reflection on a diary entry.
"""

import logging
from typing import Optional

from clayminds.schemas.schema_diary import DiaryEntry
from clayminds_ai.config.prompts import get_prompt
from clayminds_ai.utils.openai_client import FALLBACK_REPLY, OpenAIClient

logger = logging.getLogger(__name__)

DEFAULT_INSIGHT = "Gracias por compartir esto conmigo. Estoy aquí para escucharte."


class InsightService:
    """InsightGenerator backed by OpenAI"""

    def __init__(self, client: Optional[OpenAIClient] = None):
        self.client = client or OpenAIClient()

    def get_diary_insight(self, entry: DiaryEntry) -> str:
        user_message = (
            "As a supportive psychological companion, analyze this diary entry (in Spanish) "
            "and provide a brief, warm, and empathetic insight. Focus on helping the user "
            "identify cognitive distortions in their automatic thoughts.\n\n"
            f"Situación: {entry.situation}\n"
            f"Emociones: {entry.emotions}\n"
            f"Pensamientos: {entry.automatic_thoughts}"
        )
        reply = self.client.simple_chat(user_message, get_prompt("diary_insight"), max_tokens=250)
        if not reply or reply == FALLBACK_REPLY:
            logger.info(f"No insight generated for entry {entry.id}, using default text")
            return DEFAULT_INSIGHT
        return reply
