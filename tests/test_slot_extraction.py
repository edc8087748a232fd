"""
Unit tests for deterministic slot extraction.
Tests budget, country, city, duration and goal parsing plus topic detection.
"""
import pytest
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.services.slot_extraction import (
    DeterministicSlotExtractor,
    parse_budget,
    parse_country,
    parse_city,
    parse_duration,
    parse_goal,
    is_topic_relevant,
)
from app.services.wizard_state import WizardState


class TestParseBudget:
    """Tests for budget detection."""

    def test_amount_with_euro_word(self):
        assert parse_budget("Ho 9000 euro per un anno negli USA") == 9000

    def test_months_alone_never_a_budget(self):
        """Small numbers followed by a duration unit are durations."""
        assert parse_budget("3 mesi") is None

    def test_weeks_alone_never_a_budget(self):
        assert parse_budget("24 settimane") is None

    def test_large_unmarked_number(self):
        assert parse_budget("budget di 8000") == 8000

    def test_small_unmarked_number_ignored(self):
        assert parse_budget("ne ho 50") is None

    def test_small_number_with_currency(self):
        assert parse_budget("50 euro") == 50

    def test_currency_prefix_with_separator(self):
        assert parse_budget("circa €10.000") == 10000

    def test_dollar_prefix(self):
        assert parse_budget("I have $12,000") == 12000

    def test_cents_with_thousand_separator(self):
        """Decimal cents are dropped, not folded into the amount."""
        assert parse_budget("ho un budget di 12.500,00 euro") == 12500

    def test_cents_with_currency_prefix(self):
        assert parse_budget("€9000.50") == 9000

    def test_cents_unmarked(self):
        assert parse_budget("budget di 8000,00") == 8000

    def test_thousand_suffix(self):
        assert parse_budget("10k") == 10000

    def test_mila_suffix(self):
        assert parse_budget("ho 10 mila da spendere") == 10000

    def test_decimal_thousand_suffix(self):
        assert parse_budget("12,5k") == 12500

    def test_duration_number_skipped_before_budget(self):
        assert parse_budget("per 6 mesi ho 7000 euro") == 7000

    def test_no_number(self):
        assert parse_budget("non lo so ancora") is None


class TestParseCountry:
    """Tests for destination detection."""

    def test_usa(self):
        assert parse_country("Ho 9000 euro per un anno negli USA") == "us"

    def test_italian_name(self):
        assert parse_country("Stati Uniti") == "us"

    def test_canada(self):
        assert parse_country("vorrei andare in Canada") == "canada"

    def test_city_maps_to_country(self):
        assert parse_country("mi piacerebbe Vancouver") == "canada"
        assert parse_country("San Diego sarebbe bello") == "us"

    def test_word_boundary(self):
        """'usa' inside another word is not a destination."""
        assert parse_country("a causa del lavoro") is None

    def test_unsupported_country(self):
        assert parse_country("Australia") is None


class TestParseCity:
    """Tests for the optional city hint."""

    def test_known_city(self):
        assert parse_city("Vorrei andare a Toronto") == "Toronto"

    def test_multi_word_city(self):
        assert parse_city("un corso a New York") == "New York"

    def test_no_city(self):
        assert parse_city("negli USA") is None


class TestParseDuration:
    """Tests for stay-length interpretation."""

    def test_year(self):
        assert parse_duration("un anno") == 48

    def test_semester(self):
        assert parse_duration("un semestre") == 24

    def test_summer(self):
        assert parse_duration("solo l'estate") == 12

    def test_months_times_four(self):
        assert parse_duration("3 mesi") == 12

    def test_weeks(self):
        assert parse_duration("6 settimane") == 6

    def test_english_units(self):
        assert parse_duration("2 weeks") == 2
        assert parse_duration("3 months") == 12

    def test_no_duration(self):
        assert parse_duration("ho 9000 euro") is None


class TestParseGoal:
    """Tests for motivational goal acceptance."""

    def test_goal_keyword_takes_whole_text(self):
        text = "  Voglio preparare lo IELTS  "
        assert parse_goal(text) == "Voglio preparare lo IELTS"

    def test_cultural_goal(self):
        assert parse_goal("esperienza culturale") == "esperienza culturale"

    def test_no_goal_keyword(self):
        assert parse_goal("Ho 9000 euro per un anno negli USA") is None


class TestTopicRelevance:
    """Tests for program intent detection."""

    def test_program_keyword(self):
        assert is_topic_relevant("Quanto costa un programma all'estero?")

    def test_country_is_relevant(self):
        assert is_topic_relevant("Canada")

    def test_budget_is_relevant(self):
        assert is_topic_relevant("ho 10k")

    def test_small_talk_not_relevant(self):
        assert not is_topic_relevant("ciao come stai")


class TestDeterministicSlotExtractor:
    """Tests for the strategy as a whole."""

    @pytest.fixture
    def extractor(self):
        return DeterministicSlotExtractor()

    def test_reference_sentence(self, extractor):
        """Budget, country and duration from one sentence; goal left unset."""
        result = extractor.extract("Ho 9000 euro per un anno negli USA", WizardState())

        assert result.deltas == {"budget": 9000, "country_code": "us", "duration_weeks": 48}
        assert "goal" not in result.deltas
        assert result.topic_relevant

    def test_idempotent(self, extractor):
        """Same text and slots always yield the same deltas."""
        text = "10k per un semestre a Toronto, voglio migliorare l'inglese"
        slots = WizardState(budget=5000)

        first = extractor.extract(text, slots)
        second = extractor.extract(text, slots)

        assert first.deltas == second.deltas
        assert first.deltas["budget"] == 10000
        assert first.deltas["duration_weeks"] == 24
        assert first.deltas["country_code"] == "canada"
        assert first.deltas["city"] == "Toronto"
        assert first.deltas["goal"] == text

    def test_does_not_mutate_slots(self, extractor):
        slots = WizardState()
        extractor.extract("Ho 9000 euro", slots)
        assert slots.is_empty()

    def test_strategy_flags(self, extractor):
        assert extractor.name == "deterministic"
        assert extractor.allows_overwrite is False
        assert extractor.uses_goal_fallback is True
