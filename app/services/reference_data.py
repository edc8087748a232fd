"""
Partner reference data.

One JSON file per country code under PARTNERS_DIR, each an ordered array of
{name, city, tuition_per_week, housing_per_week, fees, notes}. A missing or
corrupt file yields an empty candidate list.
"""
import os
import re
import json
import logging
from pathlib import Path
from typing import List, Optional
from pydantic import ValidationError

from app.schemas.wizard import CandidateProgram

logger = logging.getLogger(__name__)

DEFAULT_PARTNERS_DIR = Path(__file__).resolve().parent.parent / "data" / "partners"
PARTNERS_DIR = os.getenv("PARTNERS_DIR") or str(DEFAULT_PARTNERS_DIR)

COUNTRY_CODE_PATTERN = re.compile(r"^[a-z_]+$")


class PartnerRepository:
    """Loads candidate programs for a country."""

    def __init__(self, partners_dir: Optional[str] = None):
        self.partners_dir = Path(partners_dir or PARTNERS_DIR)

    def load(self, country_code: str) -> List[CandidateProgram]:
        """
        Read the candidates for a country.

        Args:
            country_code: e.g. "us", "canada"

        Returns:
            Programs in file order; empty on unknown country or bad data
        """
        if not country_code or not COUNTRY_CODE_PATTERN.match(country_code):
            logger.warning(f"Rejected country code for partner lookup: {country_code!r}")
            return []

        path = self.partners_dir / f"{country_code}.json"

        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except FileNotFoundError:
            logger.info(f"No partner file for country '{country_code}'")
            return []
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read partner file {path}: {e}")
            return []

        if not isinstance(raw, list):
            logger.error(f"Partner file {path} is not a list")
            return []

        try:
            programs = [CandidateProgram.model_validate(item) for item in raw]
        except ValidationError as e:
            logger.error(f"Invalid partner data in {path}: {e.error_count()} errors")
            return []

        logger.debug(f"Loaded {len(programs)} partners for '{country_code}'")
        return programs
