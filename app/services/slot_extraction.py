"""
Slot Extraction Service for the program comparison wizard.

Extracts trip parameters (slots) from free-form user messages.
Two strategies share one contract:

- DeterministicSlotExtractor: keyword and pattern tables, no I/O
- LLMSlotExtractor (llm_slot_extractor.py): delegated to an LLM under a
  strict output schema

Key features:
- Ordered, data-driven keyword tables (Italian and English)
- Budget detection that ignores short numbers used for durations
- Season/term keywords mapped to weeks
- Goal acceptance gated by motivational keywords
"""
import re
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Any, Optional, Tuple
from dataclasses import dataclass, field
from enum import Enum

from app.schemas.wizard import SUPPORTED_COUNTRIES
from app.services.wizard_state import WizardState

logger = logging.getLogger(__name__)


class TurnAction(str, Enum):
    """Decision returned by the delegated strategy."""
    NEED_MORE = "need_more"
    READY = "ready"
    OFF_TOPIC = "off_topic"


@dataclass
class ExtractionResult:
    """Outcome of running a strategy over one user message."""
    deltas: Dict[str, Any] = field(default_factory=dict)
    action: Optional[TurnAction] = None
    user_message: Optional[str] = None
    topic_relevant: bool = True
    fallback: bool = False


class SlotExtractionStrategy(ABC):
    """Contract shared by the deterministic and delegated strategies."""

    name = "base"
    # Delegated extraction may revise a slot the user corrects
    allows_overwrite = False
    # Treat the raw text as the goal once the other slots are known
    uses_goal_fallback = False

    @abstractmethod
    def extract(self, text: str, slots: WizardState, locale: Optional[str] = None) -> ExtractionResult:
        """Extract slot values from one user message."""


# ============================================================================
# Keyword tables
# ============================================================================

# (keyword, country code); first hit wins
COUNTRY_KEYWORDS: List[Tuple[str, str]] = [
    ("stati uniti", "us"),
    ("united states", "us"),
    ("usa", "us"),
    ("america", "us"),
    ("canada", "canada"),
    ("canadà", "canada"),
    ("boston", "us"),
    ("new york", "us"),
    ("los angeles", "us"),
    ("san diego", "us"),
    ("toronto", "canada"),
    ("vancouver", "canada"),
    ("montreal", "canada"),
    ("calgary", "canada"),
]

# (keyword, display name) for the optional city hint
CITY_KEYWORDS: List[Tuple[str, str]] = [
    ("boston", "Boston"),
    ("new york", "New York"),
    ("los angeles", "Los Angeles"),
    ("san diego", "San Diego"),
    ("toronto", "Toronto"),
    ("vancouver", "Vancouver"),
    ("montreal", "Montreal"),
    ("calgary", "Calgary"),
]

# (pattern, weeks); checked before numeric durations
DURATION_TERMS: List[Tuple[str, int]] = [
    (r"\bestat[ei]\b|\bsummer\b", 12),
    (r"\bsemestr[ei]\b|\bsemesters?\b", 24),
    (r"\banno\b|\byears?\b", 48),
]

DURATION_PATTERN = re.compile(
    r"(\d+)\s*(settiman[ae]|sett(?:\.|\b)|weeks?\b|mes[ei]\b|months?\b)"
)
MONTH_UNIT_PREFIXES = ("mes", "month")
WEEKS_PER_MONTH = 4

# Motivational keyword families; any hit accepts the whole message as goal
GOAL_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "academic": ("univers", "accadem", "academ", "college"),
    "cultural": ("cultur", "cresc", "personal", "inglese", "english"),
    "career": ("lavor", "carrier", "career", "professional"),
    "exam_prep": ("toefl", "ielts", "cambridge", "esam", "exam"),
    "relocation": ("trasfer", "relocat", "emigr"),
}

PROGRAM_KEYWORDS: Tuple[str, ...] = (
    "all'estero", "estero", "abroad", "exchange", "programm", "program",
)

NUMBER_PATTERN = re.compile(r"\d[\d.,'’]*\d|\d")
DECIMAL_PATTERN = re.compile(r"\d+[.,]\d{1,2}")
CENTS_SUFFIX = re.compile(r"[.,]\d{1,2}$")
CURRENCY_PREFIX = re.compile(r"[€$£]\s*$")
CURRENCY_SUFFIX = re.compile(r"\s*(?:€|\$|£|euros?\b|eur\b|dollar[io]?s?\b|usd\b)")
THOUSAND_SUFFIX = re.compile(r"\s*(?:k\b|mila\b|thousand\b)")
DURATION_SUFFIX = re.compile(r"\s*(?:settiman|sett(?:\.|\b)|weeks?\b|mes[ei]\b|months?\b|ann[oi]\b|years?\b)")

# Unmarked numbers below this are most likely durations ("3 mesi")
MIN_UNMARKED_BUDGET = 100


def _contains_keyword(text_lower: str, keyword: str) -> bool:
    """Whole-word keyword match."""
    return re.search(r"(?<!\w)" + re.escape(keyword) + r"(?!\w)", text_lower) is not None


# ============================================================================
# Parsers
# ============================================================================

def parse_budget(text: str) -> Optional[int]:
    """
    Find a budget amount in the text.

    A numeric token counts when it carries a currency marker (symbol, the
    word for money, a thousand-style suffix) or is at least 100. Tokens
    followed by a duration unit are never budgets.

    Returns:
        Budget as an integer amount, or None
    """
    text_lower = text.lower()
    unmarked_candidate = None

    for match in NUMBER_PATTERN.finditer(text_lower):
        raw = match.group(0)
        # "12.500,00" and "9000.50" carry cents
        digits = re.sub(r"\D", "", CENTS_SUFFIX.sub("", raw))
        if not digits:
            continue
        value = int(digits)
        if value <= 0:
            continue

        before = text_lower[max(0, match.start() - 3):match.start()]
        after = text_lower[match.end():match.end() + 12]

        if DURATION_SUFFIX.match(after):
            continue

        if THOUSAND_SUFFIX.match(after):
            # "12,5k" is twelve and a half thousand
            if DECIMAL_PATTERN.fullmatch(raw):
                return int(round(float(raw.replace(",", ".")) * 1000))
            return value * 1000
        if CURRENCY_PREFIX.search(before) or CURRENCY_SUFFIX.match(after):
            return value

        if unmarked_candidate is None and value >= MIN_UNMARKED_BUDGET:
            unmarked_candidate = value

    return unmarked_candidate


def parse_country(text: str) -> Optional[str]:
    """Map country names and characteristic cities to a country code."""
    text_lower = text.lower()
    for keyword, code in COUNTRY_KEYWORDS:
        if code not in SUPPORTED_COUNTRIES:
            continue
        if _contains_keyword(text_lower, keyword):
            return code
    return None


def parse_city(text: str) -> Optional[str]:
    """Return the city named in the text, if it is one we know."""
    text_lower = text.lower()
    for keyword, display_name in CITY_KEYWORDS:
        if _contains_keyword(text_lower, keyword):
            return display_name
    return None


def parse_duration(text: str) -> Optional[int]:
    """
    Interpret the stay length in weeks.

    Season/term keywords win (summer 12, semester 24, year 48); otherwise
    "<number> <unit>" with weeks or months (months x 4).
    """
    text_lower = text.lower()

    for pattern, weeks in DURATION_TERMS:
        if re.search(pattern, text_lower):
            return weeks

    match = DURATION_PATTERN.search(text_lower)
    if match:
        number = int(match.group(1))
        unit = match.group(2)
        weeks = number * WEEKS_PER_MONTH if unit.startswith(MONTH_UNIT_PREFIXES) else number
        return weeks if weeks > 0 else None

    return None


def parse_goal(text: str) -> Optional[str]:
    """Accept the whole message as the goal when it states a motivation."""
    text_lower = text.lower()
    for keywords in GOAL_KEYWORDS.values():
        if any(keyword in text_lower for keyword in keywords):
            stripped = text.strip()
            return stripped or None
    return None


def is_topic_relevant(text: str) -> bool:
    """Whether the message is about study-abroad programs at all."""
    text_lower = text.lower()
    if parse_country(text) is not None or parse_duration(text) is not None:
        return True
    if any(keyword in text_lower for keyword in PROGRAM_KEYWORDS):
        return True
    return parse_budget(text) is not None


class DeterministicSlotExtractor(SlotExtractionStrategy):
    """
    Extracts slot values with keyword tables and patterns.

    Stateless: the same text always produces the same deltas. Merging is
    first-write-wins, so prior slots are not consulted here.
    """

    name = "deterministic"
    allows_overwrite = False
    uses_goal_fallback = True

    def extract(self, text: str, slots: WizardState, locale: Optional[str] = None) -> ExtractionResult:
        candidates = {
            "budget": parse_budget(text),
            "country_code": parse_country(text),
            "duration_weeks": parse_duration(text),
            "goal": parse_goal(text),
            "city": parse_city(text),
        }
        deltas = {name: value for name, value in candidates.items() if value is not None}

        if deltas:
            logger.debug(f"Deterministic extraction found: {sorted(deltas)}")

        return ExtractionResult(
            deltas=deltas,
            topic_relevant=is_topic_relevant(text),
        )
