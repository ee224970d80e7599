# clayminds_ai/utils/openai_client.py
"""
OpenAI API client
Text generation for diet parsing and diary insights. Callers never see
API exceptions: every failure is logged and answered with FALLBACK_REPLY.
"""
import os
import logging
from typing import Optional, List, Dict
from openai import OpenAI, APIConnectionError, APIStatusError, AuthenticationError, RateLimitError
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

FALLBACK_REPLY = "Lo siento, no pude generar una respuesta en este momento."


class OpenAIClient:
    """Chat client shared by DietParser and InsightService"""

    DEFAULT_MODEL = "gpt-4o-mini"

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise ValueError("OPENAI_API_KEY is not configured.")

        self.client = OpenAI(api_key=api_key)
        self.model = model or os.getenv("OPENAI_MODEL") or self.DEFAULT_MODEL
        logger.info(f"OpenAI client ready (model: {self.model})")

    def chat_completion(
        self,
        messages: List[Dict[str, str]],
        max_tokens: int = 300,
        temperature: float = 0.7,
        response_format: Optional[Dict] = None
    ) -> str:
        """
        Args:
            messages: [{"role": "system" | "user", "content": "..."}]
            response_format: {"type": "json_object"} for diet parsing

        Returns the stripped message text, or FALLBACK_REPLY.
        """
        extra = {"response_format": response_format} if response_format else {}
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
                **extra,
            )
        except AuthenticationError:
            logger.error("OpenAI rejected the API key")
            return FALLBACK_REPLY
        except RateLimitError:
            logger.warning("OpenAI rate limit reached")
            return FALLBACK_REPLY
        except APIConnectionError:
            logger.error("Could not reach the OpenAI API")
            return FALLBACK_REPLY
        except APIStatusError as e:
            logger.error(f"OpenAI answered {e.status_code}: {e.message}")
            return FALLBACK_REPLY

        if not response.choices:
            logger.warning("OpenAI returned no choices")
            return FALLBACK_REPLY
        choice = response.choices[0]
        if choice.finish_reason == "length":
            logger.warning(f"Completion cut at max_tokens={max_tokens}")
        usage = response.usage.total_tokens if response.usage else "?"
        logger.debug(f"Completion ok (tokens: {usage})")
        return (choice.message.content or "").strip()

    def simple_chat(self, user_message: str, system_prompt: Optional[str] = None, **kwargs) -> str:
        """One-shot chat; kwargs go to chat_completion"""
        messages = [{"role": "system", "content": system_prompt}] if system_prompt else []
        messages.append({"role": "user", "content": user_message})
        return self.chat_completion(messages, **kwargs)
