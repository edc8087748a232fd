"""
Comparison Engine.

Costs out every partner program for the requested stay, scores it against
the budget and returns the cheapest options with descriptive tags.

Scoring:
- total <= budget -> 5.0
- over budget by <10% -> 4.5, <20% -> 4.0, <30% -> 3.5, <50% -> 3.0
- otherwise -> 2.5

Results are ordered by total cost (cheapest first), not by score.
"""
import os
import logging
from typing import List, Optional, Tuple
from dataclasses import dataclass, field
from enum import Enum

from app.schemas.wizard import CandidateProgram
from app.services.reference_data import PartnerRepository

logger = logging.getLogger(__name__)

MAX_COMPARISON_RESULTS = int(os.getenv("MAX_COMPARISON_RESULTS", "3"))

# (upper bound on overspend ratio, score); first match wins
OVER_BUDGET_TIERS: List[Tuple[float, float]] = [
    (0.10, 4.5),
    (0.20, 4.0),
    (0.30, 3.5),
    (0.50, 3.0),
]
FLOOR_SCORE = 2.5
FULL_SCORE = 5.0


class Tag(str, Enum):
    """Tag codes; the renderer maps them to localized labels."""
    BUDGET_OK = "budget_ok"
    OVER_BUDGET = "over_budget"
    ACADEMIC_FOCUS = "academic_focus"
    LIFESTYLE_OUTDOOR = "lifestyle_outdoor"
    BIG_CITY = "big_city"
    MATCH_VERY_HIGH = "match_very_high"
    MATCH_GOOD = "match_good"
    MATCH_COMPROMISE = "match_compromise"
    MATCH_REFERENCE = "match_reference"


# (tag, city substrings), in tag order
CITY_TAG_KEYWORDS: List[Tuple[Tag, Tuple[str, ...]]] = [
    (Tag.ACADEMIC_FOCUS, ("boston", "new york")),
    (Tag.LIFESTYLE_OUTDOOR, ("los angeles", "san diego", "vancouver")),
    (Tag.BIG_CITY, ("toronto",)),
]

# (minimum score, tag)
MATCH_TIER_TAGS: List[Tuple[float, Tag]] = [
    (4.5, Tag.MATCH_VERY_HIGH),
    (4.0, Tag.MATCH_GOOD),
    (3.5, Tag.MATCH_COMPROMISE),
]


def match_score(total: float, budget: float) -> float:
    """Step score of a total cost against the budget."""
    diff = total - budget
    if diff <= 0:
        return FULL_SCORE
    ratio = diff / budget
    for bound, score in OVER_BUDGET_TIERS:
        if ratio < bound:
            return score
    return FLOOR_SCORE


def build_tags(city: str, fits_budget: bool, score: float) -> List[Tag]:
    """Budget tag, then city tags, then the match tier."""
    tags = [Tag.BUDGET_OK if fits_budget else Tag.OVER_BUDGET]

    city_lower = (city or "").lower()
    for tag, keywords in CITY_TAG_KEYWORDS:
        if any(keyword in city_lower for keyword in keywords):
            tags.append(tag)

    for minimum, tag in MATCH_TIER_TAGS:
        if score >= minimum:
            tags.append(tag)
            break
    else:
        tags.append(Tag.MATCH_REFERENCE)

    return tags


@dataclass
class ComparisonRequest:
    """Completed wizard parameters."""
    budget: int
    country_code: str
    duration_weeks: int
    goal: str = ""
    city: Optional[str] = None


@dataclass
class ComparisonEntry:
    """One costed and scored program."""
    program: CandidateProgram
    tuition_total: float
    housing_total: float
    total: float
    fits_budget: bool
    match_score: float
    tags: List[Tag] = field(default_factory=list)


@dataclass
class ComparisonResult:
    """Ranked entries plus the city-hint outcome."""
    entries: List[ComparisonEntry] = field(default_factory=list)
    requested_city: Optional[str] = None
    requested_city_unmatched: bool = False

    @property
    def has_results(self) -> bool:
        return len(self.entries) > 0


class ComparisonEngine:
    """Scores and ranks partner programs for a completed wizard."""

    def __init__(
        self,
        repository: Optional[PartnerRepository] = None,
        max_results: int = MAX_COMPARISON_RESULTS
    ):
        self.repository = repository or PartnerRepository()
        self.max_results = max_results

    def compare(self, request: ComparisonRequest) -> ComparisonResult:
        """
        Run a comparison.

        Never raises: unexpected failures are logged and reported as an
        empty result.
        """
        try:
            return self._compare(request)
        except Exception as e:
            logger.exception(f"Comparison failed for country '{request.country_code}': {e}")
            return ComparisonResult(requested_city=request.city)

    def _compare(self, request: ComparisonRequest) -> ComparisonResult:
        candidates = self.repository.load(request.country_code)
        weeks = request.duration_weeks

        entries = []
        for program in candidates:
            tuition_total = program.tuition_per_week * weeks
            housing_total = program.housing_per_week * weeks
            total = tuition_total + housing_total + program.fees
            fits_budget = total <= request.budget
            score = match_score(total, request.budget)

            entries.append(ComparisonEntry(
                program=program,
                tuition_total=tuition_total,
                housing_total=housing_total,
                total=total,
                fits_budget=fits_budget,
                match_score=score,
                tags=build_tags(program.city, fits_budget, score),
            ))

        # sorted() is stable: equal totals keep file order
        ranked = sorted(entries, key=lambda e: e.total)[:self.max_results]

        city_unmatched = False
        # The note is about the whole catalogue, not just the top N
        if request.city and entries:
            wanted = request.city.strip().lower()
            city_unmatched = not any(
                entry.program.city.strip().lower() == wanted for entry in entries
            )

        logger.info(
            f"Comparison for '{request.country_code}': {len(candidates)} candidates, "
            f"{len(ranked)} returned, city_unmatched={city_unmatched}"
        )

        return ComparisonResult(
            entries=ranked,
            requested_city=request.city,
            requested_city_unmatched=city_unmatched,
        )
