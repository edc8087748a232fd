"""
Unit tests for the dialogue controller.
Tests quota, slot accumulation across turns, off-topic handling,
comparison outcomes and the delegated strategy paths.
"""
import pytest
from unittest.mock import Mock, patch
import json
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.prompts.wizard_templates import CTA_MARKER, TEMPLATES
from app.services.comparison_engine import ComparisonEngine
from app.services.dialogue_controller import (
    DialogueController,
    TurnOutcome,
    build_slot_extractor,
)
from app.services.llm_slot_extractor import LLMSlotExtractor
from app.services.reference_data import PartnerRepository
from app.services.slot_extraction import (
    DeterministicSlotExtractor,
    ExtractionResult,
    SlotExtractionStrategy,
    TurnAction,
)
from app.services.wizard_state import Session, WizardState


class ScriptedExtractor(SlotExtractionStrategy):
    """Delegated-style strategy that replays canned results."""

    name = "scripted"
    allows_overwrite = True
    uses_goal_fallback = False

    def __init__(self, *results):
        self.results = list(results)

    def extract(self, text, slots, locale=None):
        return self.results.pop(0)


class TestQuota:
    """Tests for the free-turn limit."""

    def test_turn_counter_increments(self, controller, store):
        controller.handle_turn("s1", "Ho 9000 euro")
        controller.handle_turn("s1", "negli USA")

        assert store.get("s1").turn_count == 2

    def test_limit_reached_leaves_session_unchanged(self, controller, store):
        session = Session(session_id="s1", turn_count=20, quota_limit=20)
        session.wizard.merge({"budget": 9000})
        store.save(session)

        result = controller.handle_turn("s1", "Canada per un anno")

        assert result.outcome == TurnOutcome.LIMIT_REACHED
        assert result.response_type == "limit_reached"
        assert result.cta_marker == CTA_MARKER
        assert CTA_MARKER in result.reply
        stored = store.get("s1")
        assert stored.turn_count == 20
        assert stored.wizard == WizardState(budget=9000)

    def test_last_free_turn_is_accepted(self, controller, store):
        store.save(Session(session_id="s1", turn_count=19, quota_limit=20))

        assert controller.handle_turn("s1", "Ho 9000 euro").outcome == TurnOutcome.ASK_MORE
        assert controller.handle_turn("s1", "USA").outcome == TurnOutcome.LIMIT_REACHED


class TestDeterministicFlow:
    """Tests for slot filling across turns."""

    def test_first_turn_asks_next_slot(self, controller, store):
        result = controller.handle_turn("s1", "Ho 9000 euro per un anno negli USA")

        assert result.outcome == TurnOutcome.ASK_MORE
        assert result.reply.endswith(TEMPLATES["it"]["ask_goal"])
        assert store.get("s1").wizard == WizardState(budget=9000, country_code="us", duration_weeks=48)

    def test_first_write_wins_across_turns(self, controller, store):
        controller.handle_turn("s1", "Ho 9000 euro")
        controller.handle_turn("s1", "anzi 12000 euro, negli USA")

        wizard = store.get("s1").wizard
        assert wizard.budget == 9000
        assert wizard.country_code == "us"

    def test_goal_fallback_takes_whole_text(self, controller, store, partners_dir):
        controller.handle_turn("s1", "Ho 100000 euro per 24 settimane negli USA")
        result = controller.handle_turn("s1", "fare surf ogni giorno")

        assert result.outcome == TurnOutcome.RESULTS
        assert 'obiettivo "fare surf ogni giorno"' in result.reply

    def test_no_goal_fallback_when_other_slot_given(self, controller, store):
        controller.handle_turn("s1", "Ho 9000 euro negli USA")
        result = controller.handle_turn("s1", "per 6 mesi")

        assert result.outcome == TurnOutcome.ASK_MORE
        wizard = store.get("s1").wizard
        assert wizard.duration_weeks == 24
        assert wizard.goal is None

    def test_results_reset_wizard(self, controller, store):
        result = controller.handle_turn(
            "s1", "Ho 10000 euro per 24 settimane in USA per migliorare l'inglese"
        )

        assert result.outcome == TurnOutcome.RESULTS
        assert result.response_type == "ok"
        assert result.cta_marker == CTA_MARKER
        assert result.reply.endswith(CTA_MARKER)
        assert [e.program.name for e in result.comparison.entries] == ["Delta School", "Beta School", "Alpha School"]

        stored = store.get("s1")
        assert stored.wizard.is_empty()
        assert stored.turn_count == 1

    def test_no_results_keep_wizard(self, store, responder, tmp_path):
        empty_engine = ComparisonEngine(PartnerRepository(str(tmp_path)))
        controller = DialogueController(store, DeterministicSlotExtractor(), empty_engine, responder)

        result = controller.handle_turn(
            "s1", "Ho 10000 euro per 24 settimane in Canada per migliorare l'inglese"
        )

        assert result.outcome == TurnOutcome.NO_RESULTS
        assert result.reply == TEMPLATES["it"]["no_results"]
        assert result.cta_marker is None
        assert store.get("s1").wizard.is_complete()

    def test_city_hint_note(self, controller):
        result = controller.handle_turn(
            "s1", "Ho 10000 euro per 24 settimane a Vancouver per migliorare l'inglese"
        )

        assert result.outcome == TurnOutcome.RESULTS
        assert "Vancouver" in result.reply
        assert "Maple College" in result.reply

    def test_locale_persists(self, controller, store):
        controller.handle_turn("s1", "I have 9000 euro", locale="en")
        result = controller.handle_turn("s1", "USA")

        assert store.get("s1").locale == "en"
        assert result.reply.startswith("Ok, so far I understood")


class TestOffTopic:
    """Tests for messages unrelated to programs."""

    def test_generic_responder_answers(self, controller, store, responder):
        result = controller.handle_turn("s1", "ciao come stai", locale="it")

        assert result.outcome == TurnOutcome.OFF_TOPIC
        assert result.reply == responder.answer.return_value
        responder.answer.assert_called_once_with("ciao come stai", "it")
        assert store.get("s1").wizard.is_empty()

    def test_not_off_topic_once_wizard_started(self, controller, responder):
        controller.handle_turn("s1", "Ho 9000 euro")
        result = controller.handle_turn("s1", "ciao come stai")

        assert result.outcome == TurnOutcome.ASK_MORE
        responder.answer.assert_not_called()

    def test_failing_responder_leaves_session_unchanged(self, controller, store, responder):
        store.save(Session(session_id="s1", turn_count=3))
        responder.answer.side_effect = RuntimeError("LLM down")

        with pytest.raises(RuntimeError):
            controller.handle_turn("s1", "ciao come stai")

        assert store.get("s1").turn_count == 3

    def test_failing_responder_does_not_create_session(self, controller, store, responder):
        responder.answer.side_effect = RuntimeError("LLM down")

        with pytest.raises(RuntimeError):
            controller.handle_turn("s1", "ciao come stai")

        assert store.get("s1") is None


class TestDelegatedStrategy:
    """Tests for the delegated strategy paths."""

    def make_controller(self, store, engine, responder, *results):
        return DialogueController(store, ScriptedExtractor(*results), engine, responder)

    def test_user_message_is_reply(self, store, engine, responder):
        controller = self.make_controller(store, engine, responder, ExtractionResult(
            deltas={"budget": 12000},
            action=TurnAction.NEED_MORE,
            user_message="Perfetto! In quale Paese vorresti andare?",
        ))

        result = controller.handle_turn("s1", "12k")

        assert result.outcome == TurnOutcome.ASK_MORE
        assert result.reply == "Perfetto! In quale Paese vorresti andare?"

    def test_correction_overwrites(self, store, engine, responder):
        session = Session(session_id="s1")
        session.wizard.merge({"budget": 9000})
        store.save(session)
        controller = self.make_controller(store, engine, responder, ExtractionResult(
            deltas={"budget": 12000}, action=TurnAction.NEED_MORE, user_message="Ok, 12000."
        ))

        controller.handle_turn("s1", "anzi facciamo 12000")

        assert store.get("s1").wizard.budget == 12000

    def test_no_goal_fallback(self, store, engine, responder):
        session = Session(session_id="s1")
        session.wizard.merge({"budget": 9000, "country_code": "us", "duration_weeks": 24})
        store.save(session)
        controller = self.make_controller(store, engine, responder, ExtractionResult(
            deltas={}, action=TurnAction.NEED_MORE, user_message="Qual è il tuo obiettivo?"
        ))

        result = controller.handle_turn("s1", "boh")

        assert result.outcome == TurnOutcome.ASK_MORE
        assert store.get("s1").wizard.goal is None

    def test_ready_with_missing_slots_asks_deterministically(self, store, engine, responder):
        controller = self.make_controller(store, engine, responder, ExtractionResult(
            deltas={"budget": 9000}, action=TurnAction.READY, user_message="Ecco i risultati!"
        ))

        result = controller.handle_turn("s1", "9000")

        assert result.outcome == TurnOutcome.ASK_MORE
        assert result.reply.endswith(TEMPLATES["it"]["ask_country_code"])

    def test_off_topic_with_empty_wizard_uses_generic_responder(self, store, engine, responder):
        controller = self.make_controller(store, engine, responder, ExtractionResult(
            deltas={}, action=TurnAction.OFF_TOPIC, user_message="Torniamo ai programmi?", topic_relevant=False
        ))

        result = controller.handle_turn("s1", "chi ha vinto ieri?")

        assert result.outcome == TurnOutcome.OFF_TOPIC
        assert result.reply == responder.answer.return_value

    def test_off_topic_mid_wizard_uses_user_message(self, store, engine, responder):
        session = Session(session_id="s1")
        session.wizard.merge({"budget": 9000})
        store.save(session)
        controller = self.make_controller(store, engine, responder, ExtractionResult(
            deltas={}, action=TurnAction.OFF_TOPIC, user_message="Torniamo ai programmi?", topic_relevant=False
        ))

        result = controller.handle_turn("s1", "chi ha vinto ieri?")

        assert result.outcome == TurnOutcome.ASK_MORE
        assert result.reply == "Torniamo ai programmi?"
        responder.answer.assert_not_called()

    def test_all_slots_run_comparison(self, store, engine, responder):
        controller = self.make_controller(store, engine, responder, ExtractionResult(
            deltas={"budget": 10000, "country_code": "us", "duration_weeks": 24, "goal": "cultura"},
            action=TurnAction.NEED_MORE,
            user_message="Ti serve altro?",
        ))

        result = controller.handle_turn("s1", "tutto")

        assert result.outcome == TurnOutcome.RESULTS
        assert store.get("s1").wizard.is_empty()

    def test_invalid_output_leaves_slots_unchanged(self, store, engine, responder):
        session = Session(session_id="s1")
        session.wizard.merge({"budget": 9000})
        store.save(session)

        client = Mock()
        client.chat.completions.create.return_value = Mock(
            choices=[Mock(message=Mock(content=json.dumps({"updatedSlots": {"budget": "lots"}})))]
        )
        controller = DialogueController(store, LLMSlotExtractor(client=client), engine, responder)

        result = controller.handle_turn("s1", "ho tantissimi soldi")

        assert result.outcome == TurnOutcome.ASK_MORE
        assert result.reply.startswith(TEMPLATES["it"]["reprompt"])
        assert result.reply.endswith(TEMPLATES["it"]["ask_country_code"])
        stored = store.get("s1")
        assert stored.wizard == WizardState(budget=9000)
        assert stored.turn_count == 1


class TestBuildSlotExtractor:
    """Tests for strategy selection."""

    def test_deterministic(self):
        assert isinstance(build_slot_extractor("deterministic"), DeterministicSlotExtractor)

    def test_delegated(self):
        assert isinstance(build_slot_extractor("delegated"), LLMSlotExtractor)

    def test_unknown_falls_back(self):
        assert isinstance(build_slot_extractor("magic"), DeterministicSlotExtractor)
