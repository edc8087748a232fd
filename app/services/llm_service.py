"""
LLM service for off-topic turns.

Answers questions that are not part of the comparison flow with a short,
plain-text reply that steers the user back to the comparison.
"""
from typing import Optional
import os
import logging
from langchain_openai import ChatOpenAI
from langchain_core.messages import SystemMessage, HumanMessage

from app.prompts.wizard_prompts import GENERIC_RESPONDER_PROMPTS
from app.prompts.wizard_templates import get_templates, resolve_locale

logger = logging.getLogger(__name__)

LLM_TIMEOUT_SECONDS = float(os.getenv('LLM_TIMEOUT_SECONDS', '15'))


class LLMService:
    """Generic responder using OpenAI through langchain."""

    def __init__(self, chat_model: Optional[ChatOpenAI] = None):
        """Initialize LLM service."""
        self.api_key = os.getenv('OPENAI_API_KEY')
        self.model = os.getenv('OPENAI_MODEL', 'gpt-4.1-mini')
        self.temperature = float(os.getenv('LLM_TEMPERATURE', '0.7'))
        self._chat_model = chat_model

    def get_chat_model(self) -> ChatOpenAI:
        """Get OpenAI chat model instance."""
        if self._chat_model is None:
            self._chat_model = ChatOpenAI(
                model=self.model,
                temperature=self.temperature,
                api_key=self.api_key,
                timeout=LLM_TIMEOUT_SECONDS
            )
        return self._chat_model

    def is_available(self) -> bool:
        """Check if LLM service is available."""
        return self._chat_model is not None or bool(self.api_key and self.model)

    def answer(self, text: str, locale: Optional[str] = None) -> str:
        """
        Answer a free-text question.

        Errors from the model propagate to the caller.

        Args:
            text: The user's message
            locale: Reply language

        Returns:
            Plain-text reply without markdown asterisks
        """
        language = resolve_locale(locale)
        fallback = get_templates(language)["generic_unavailable"]

        if not self.is_available():
            logger.warning("Generic responder not configured (OPENAI_API_KEY missing)")
            return fallback

        messages = [
            SystemMessage(content=GENERIC_RESPONDER_PROMPTS[language]),
            HumanMessage(content=text)
        ]
        response = self.get_chat_model().invoke(messages)

        content = response.content if isinstance(response.content, str) else ""
        reply = content.replace("*", "").strip()
        return reply or fallback
