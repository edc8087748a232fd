"""
LLM-based Slot Extraction Service.

Delegates slot extraction and the turn decision to an OpenAI model.
The model must answer with {updatedSlots, action, userMessage}; the output
is validated against a strict schema before anything reaches the wizard.

Any timeout, API error, undecodable JSON or schema deviation yields the
safe default: need_more, no slot changes.
"""
import os
import json
import logging
from typing import Dict, Any, List, Optional
from openai import OpenAI, OpenAIError
from pydantic import ValidationError

from app.prompts.wizard_prompts import build_delegated_extraction_prompt
from app.prompts.wizard_templates import resolve_locale
from app.schemas.wizard import DelegatedDecision, SUPPORTED_COUNTRIES
from app.services.slot_extraction import ExtractionResult, SlotExtractionStrategy, TurnAction
from app.services.wizard_state import WizardState

logger = logging.getLogger(__name__)

LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "15"))

# Wire names used in the prompt and the JSON contract
SLOT_WIRE_NAMES = {
    "budget": "budget",
    "country_code": "countryCode",
    "duration_weeks": "durationWeeks",
    "goal": "goal",
    "city": "city",
}


def fallback_result() -> ExtractionResult:
    """Safe default when the delegated output cannot be used."""
    return ExtractionResult(
        deltas={},
        action=TurnAction.NEED_MORE,
        user_message=None,
        topic_relevant=True,
        fallback=True,
    )


class LLMSlotExtractor(SlotExtractionStrategy):
    """
    Extracts slot values and decides the next action using an LLM.

    Unlike the deterministic strategy, this one:
    - Handles corrections ("actually make it 12000")
    - Steers unsupported or fictitious destinations back to supported ones
    - Writes its own conversational follow-up
    """

    name = "delegated"
    allows_overwrite = True
    uses_goal_fallback = False

    def __init__(
        self,
        client: Optional[OpenAI] = None,
        model: Optional[str] = None,
        supported_countries: Optional[List[str]] = None
    ):
        self._client = client
        self.model = model or os.getenv("OPENAI_EXTRACTION_MODEL", "gpt-4.1-mini")
        self.supported_countries = supported_countries or SUPPORTED_COUNTRIES

    @property
    def client(self) -> OpenAI:
        # Created lazily so the deterministic deployment needs no API key
        if self._client is None:
            self._client = OpenAI(
                api_key=os.getenv("OPENAI_API_KEY"),
                timeout=LLM_TIMEOUT_SECONDS,
                max_retries=0,
            )
        return self._client

    def extract(self, text: str, slots: WizardState, locale: Optional[str] = None) -> ExtractionResult:
        """
        Ask the model for a turn decision.

        Args:
            text: The user's latest message
            slots: Current wizard record
            locale: Conversation language for userMessage

        Returns:
            ExtractionResult with validated deltas, or the fallback result
        """
        current_slots = {
            SLOT_WIRE_NAMES[name]: value for name, value in slots.to_dict().items()
        }
        system_prompt = build_delegated_extraction_prompt(
            current_slots=current_slots,
            supported_countries=self.supported_countries,
            locale=resolve_locale(locale),
        )

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": text},
                ],
                response_format={"type": "json_object"},
                temperature=0.1,  # Low temperature for consistent extraction
                max_tokens=600
            )
            content = response.choices[0].message.content
        except (OpenAIError, IndexError, AttributeError) as e:
            logger.warning(f"Delegated extraction call failed, using fallback: {e}")
            return fallback_result()

        decision = self._parse_decision(content)
        if decision is None:
            return fallback_result()

        action = TurnAction(decision.action)
        deltas = decision.updated_slots.to_deltas() if action != TurnAction.OFF_TOPIC else {}

        logger.info(
            f"Delegated extraction: action={action.value}, slots={sorted(deltas)}"
        )

        return ExtractionResult(
            deltas=deltas,
            action=action,
            user_message=decision.user_message.replace("*", ""),
            topic_relevant=action != TurnAction.OFF_TOPIC,
        )

    def _parse_decision(self, content: Optional[str]) -> Optional[DelegatedDecision]:
        """Decode and validate the model output; None if anything is off."""
        if not content:
            logger.warning("Delegated extraction returned empty content")
            return None

        try:
            data: Dict[str, Any] = json.loads(content)
        except json.JSONDecodeError as e:
            logger.warning(f"Delegated extraction returned invalid JSON: {e}")
            return None

        try:
            return DelegatedDecision.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Delegated extraction output rejected: {e.error_count()} schema errors")
            return None
