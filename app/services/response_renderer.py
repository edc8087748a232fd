"""
Response Renderer.

Turns wizard state and comparison results into the plain-text replies of the
chat. Pure: no I/O, same input gives the same text.
"""
import math
import logging
from typing import Dict, Any, List, Optional

from app.prompts.wizard_templates import (
    CTA_MARKER, SEPARATOR, COUNTRY_FLAGS, get_templates, resolve_locale
)
from app.services.comparison_engine import ComparisonEntry, ComparisonResult
from app.services.wizard_state import WizardState

logger = logging.getLogger(__name__)

STAR_FULL = "★"
STAR_EMPTY = "☆"
BAR_FULL = "▰"
BAR_EMPTY = "▱"
BAR_BLOCKS = 10
MAX_SCORE = 5


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def stars(score: float) -> str:
    """Five-star rating, whole stars only: 4.5 -> ★★★★☆."""
    full = min(MAX_SCORE, max(0, int(math.floor(score))))
    return STAR_FULL * full + STAR_EMPTY * (MAX_SCORE - full)


def bar(score: float) -> str:
    """Ten-block progress bar proportional to the score."""
    blocks = min(BAR_BLOCKS, max(0, round_half_up(score / MAX_SCORE * BAR_BLOCKS)))
    return BAR_FULL * blocks + BAR_EMPTY * (BAR_BLOCKS - blocks)


class ResponseRenderer:
    """Renders replies in one locale."""

    def __init__(self, locale: Optional[str] = None):
        self.locale = resolve_locale(locale)
        self.templates: Dict[str, Any] = get_templates(self.locale)

    def country_label(self, country_code: Optional[str]) -> str:
        if not country_code:
            return ""
        return self.templates["countries"].get(country_code, country_code.upper())

    def natural_join(self, parts: List[str]) -> str:
        """"a, b and c" in the locale's wording."""
        if not parts:
            return ""
        if len(parts) == 1:
            return parts[0]
        return f"{', '.join(parts[:-1])} {self.templates['and']} {parts[-1]}"

    def limit_reached(self) -> str:
        return self.templates["limit_reached"].format(cta=CTA_MARKER)

    def known_summary(self, wizard: WizardState) -> str:
        """Summary of the filled slots, or the intro when nothing is known."""
        t = self.templates
        parts = []
        if wizard.country_code:
            parts.append(t["known_country"].format(country=self.country_label(wizard.country_code)))
        if wizard.city:
            parts.append(t["known_city"].format(city=wizard.city))
        if wizard.duration_weeks:
            parts.append(t["known_duration"].format(weeks=wizard.duration_weeks))
        if wizard.budget:
            parts.append(t["known_budget"].format(budget=wizard.budget))
        if wizard.goal:
            parts.append(t["known_goal"].format(goal=wizard.goal))

        if parts:
            return t["known_prefix"].format(parts=self.natural_join(parts))
        return t["intro"]

    def ask_more(self, wizard: WizardState, reprompt: bool = False) -> str:
        """
        Ask for the next missing slot.

        Args:
            wizard: Current slot record (at least one required slot unset)
            reprompt: Prefix the "didn't get that" line (delegated fallback)
        """
        next_slot = wizard.next_missing()
        question = self.templates[f"ask_{next_slot.value}"] if next_slot else ""
        reply = self.known_summary(wizard) + question
        if reprompt:
            reply = self.templates["reprompt"] + reply
        return reply

    def render_card(self, entry: ComparisonEntry, index: int, wizard: WizardState) -> str:
        t = self.templates
        flag = COUNTRY_FLAGS.get(wizard.country_code, "")
        program = entry.program
        tag_labels = [t["tags"].get(tag.value, tag.value) for tag in entry.tags]

        lines = [
            f"{flag}  {t['card_option'].format(index=index)}".strip(),
            "",
            t["card_match"].format(stars=stars(entry.match_score), score=f"{entry.match_score:.1f}"),
            bar(entry.match_score),
            "",
            t["card_school"].format(name=program.name),
            t["card_city"].format(city=program.city),
            t["card_duration"].format(weeks=wizard.duration_weeks),
            "",
            t["card_total"].format(total=round_half_up(entry.total)),
            t["card_tuition"].format(tuition=round_half_up(entry.tuition_total)),
            t["card_housing"].format(housing=round_half_up(entry.housing_total)),
            t["card_fees"].format(fees=round_half_up(program.fees)),
            "",
            t["card_tags"].format(tags="  ".join(tag_labels)),
        ]
        if program.notes:
            lines.extend(["", t["card_notes"].format(notes=program.notes)])
        lines.extend(["", SEPARATOR])

        return "\n".join(lines)

    def results(self, wizard: WizardState, comparison: ComparisonResult) -> str:
        """Header, optional city note, one card per entry and the call to action."""
        t = self.templates
        country = self.country_label(wizard.country_code)

        reply = t["results_header"].format(
            goal=(wizard.goal or "").strip(),
            budget=wizard.budget,
            weeks=wizard.duration_weeks,
            country=country,
        )
        if comparison.requested_city_unmatched and comparison.requested_city:
            reply += t["city_note"].format(city=comparison.requested_city, country=country)

        cards = [
            self.render_card(entry, index, wizard)
            for index, entry in enumerate(comparison.entries, start=1)
        ]
        reply += SEPARATOR + "\n\n" + "\n\n".join(cards)
        reply += "\n\n" + t["cta"].format(cta=CTA_MARKER)
        return reply

    def no_results(self) -> str:
        return self.templates["no_results"]

    def generic_unavailable(self) -> str:
        return self.templates["generic_unavailable"]
