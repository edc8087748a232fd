"""
Dialogue Controller.

Processes one chat turn end to end: quota check, slot extraction, merge,
classification and, once every required slot is known, the comparison.

Turn outcomes:
- limit_reached: free-turn quota used up, nothing changes
- off_topic: nothing known yet and the message is not about programs
- ask_more: ask for the next missing slot
- results: comparison found programs; the wizard starts over
- no_results: comparison found nothing; the wizard is kept for adjustment

The session is saved only once the turn has completed. If a collaborator
raises, the error propagates and the stored session is left as it was.
"""
import os
import logging
from functools import lru_cache
from typing import Optional
from datetime import datetime
from dataclasses import dataclass
from enum import Enum

from app.prompts.wizard_templates import CTA_MARKER
from app.services.comparison_engine import ComparisonEngine, ComparisonRequest, ComparisonResult
from app.services.llm_service import LLMService
from app.services.llm_slot_extractor import LLMSlotExtractor
from app.services.response_renderer import ResponseRenderer
from app.services.session_store import SessionStore, build_session_store
from app.services.slot_extraction import (
    DeterministicSlotExtractor, ExtractionResult, SlotExtractionStrategy, TurnAction
)
from app.services.wizard_state import Session, Slot, WizardState
from app.utils.logging_config import LogContext

logger = logging.getLogger(__name__)

SLOT_EXTRACTION_STRATEGY = os.getenv("SLOT_EXTRACTION_STRATEGY", "deterministic").lower()

# A turn that yields any of these leaves the goal to the extractor
GOAL_BLOCKING_SLOTS = (Slot.BUDGET.value, Slot.COUNTRY_CODE.value, Slot.DURATION_WEEKS.value)


class TurnOutcome(str, Enum):
    LIMIT_REACHED = "limit_reached"
    OFF_TOPIC = "off_topic"
    ASK_MORE = "ask_more"
    RESULTS = "results"
    NO_RESULTS = "no_results"


@dataclass
class TurnResult:
    """Reply for the transport plus what happened."""
    outcome: TurnOutcome
    reply: str
    cta_marker: Optional[str] = None
    comparison: Optional[ComparisonResult] = None

    @property
    def response_type(self) -> str:
        return "limit_reached" if self.outcome == TurnOutcome.LIMIT_REACHED else "ok"


def build_slot_extractor(strategy: Optional[str] = None) -> SlotExtractionStrategy:
    """Create the configured extraction strategy."""
    strategy = (strategy or SLOT_EXTRACTION_STRATEGY).lower()
    if strategy == "delegated":
        return LLMSlotExtractor()
    if strategy != "deterministic":
        logger.warning(f"Unknown SLOT_EXTRACTION_STRATEGY '{strategy}', using deterministic")
    return DeterministicSlotExtractor()


class DialogueController:
    """Finite-state turn processor for the comparison wizard."""

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        extractor: Optional[SlotExtractionStrategy] = None,
        engine: Optional[ComparisonEngine] = None,
        responder: Optional[LLMService] = None
    ):
        self.store = store or build_session_store()
        self.extractor = extractor or build_slot_extractor()
        self.engine = engine or ComparisonEngine()
        self.responder = responder or LLMService()

    def handle_turn(self, session_id: str, text: str, locale: Optional[str] = None) -> TurnResult:
        """
        Process one user message.

        Args:
            session_id: Client session identifier
            text: Raw user message
            locale: Optional template locale for this and later turns

        Returns:
            TurnResult with the reply text
        """
        with LogContext(session_id=session_id):
            session = self.store.get(session_id) or Session(session_id=session_id)
            if locale:
                session.locale = locale

            renderer = ResponseRenderer(session.locale)

            if session.limit_reached:
                logger.info(f"Turn refused: quota of {session.quota_limit} turns used")
                return TurnResult(
                    outcome=TurnOutcome.LIMIT_REACHED,
                    reply=renderer.limit_reached(),
                    cta_marker=CTA_MARKER,
                )

            session.turn_count += 1
            text = text.strip()
            wizard = session.wizard

            extraction = self.extractor.extract(text, wizard, locale=session.locale)
            changed = wizard.merge(extraction.deltas, overwrite=self.extractor.allows_overwrite)
            if self._apply_goal_fallback(wizard, extraction, text):
                changed.append(Slot.GOAL.value)

            result = self._classify(session, extraction, renderer, text)

            session.updated_at = datetime.utcnow()
            self.store.save(session)

            logger.info(
                f"Turn {session.turn_count}/{session.quota_limit}: outcome={result.outcome.value}, "
                f"changed={changed}, strategy={self.extractor.name}"
            )
            return result

    def _apply_goal_fallback(self, wizard: WizardState, extraction: ExtractionResult, text: str) -> bool:
        """
        Take the whole message as the goal when it is the only thing left.

        Applies when budget, country and duration are known, the goal is not,
        and this message produced none of the other three.
        """
        if not self.extractor.uses_goal_fallback or not text:
            return False
        if wizard.goal is not None or wizard.next_missing() != Slot.GOAL:
            return False
        if any(extraction.deltas.get(name) is not None for name in GOAL_BLOCKING_SLOTS):
            return False

        wizard.goal = text
        return True

    def _classify(
        self,
        session: Session,
        extraction: ExtractionResult,
        renderer: ResponseRenderer,
        text: str
    ) -> TurnResult:
        wizard = session.wizard
        off_topic = extraction.action == TurnAction.OFF_TOPIC or not extraction.topic_relevant

        if wizard.is_empty() and off_topic:
            return TurnResult(
                outcome=TurnOutcome.OFF_TOPIC,
                reply=self.responder.answer(text, session.locale),
            )

        if not wizard.is_complete():
            return TurnResult(
                outcome=TurnOutcome.ASK_MORE,
                reply=self._ask_more_reply(wizard, extraction, renderer),
            )

        comparison = self.engine.compare(ComparisonRequest(
            budget=wizard.budget,
            country_code=wizard.country_code,
            duration_weeks=wizard.duration_weeks,
            goal=wizard.goal,
            city=wizard.city,
        ))

        if not comparison.has_results:
            # Keep the slots so the user can adjust one of them
            return TurnResult(
                outcome=TurnOutcome.NO_RESULTS,
                reply=renderer.no_results(),
                comparison=comparison,
            )

        reply = renderer.results(wizard, comparison)
        wizard.reset()
        return TurnResult(
            outcome=TurnOutcome.RESULTS,
            reply=reply,
            cta_marker=CTA_MARKER,
            comparison=comparison,
        )

    @staticmethod
    def _ask_more_reply(wizard: WizardState, extraction: ExtractionResult, renderer: ResponseRenderer) -> str:
        if extraction.fallback:
            return renderer.ask_more(wizard, reprompt=True)
        # "ready" with slots still missing gets the deterministic question
        if extraction.user_message and extraction.action != TurnAction.READY:
            return extraction.user_message
        return renderer.ask_more(wizard)


@lru_cache()
def get_dialogue_controller() -> DialogueController:
    """Dependency injection for DialogueController with caching."""
    return DialogueController()
