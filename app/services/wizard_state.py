"""
Wizard state for the program comparison chat.

Holds the per-session slot record (budget, destination, duration, goal,
optional city) and the session envelope with its free-turn quota.
"""
import os
import logging
from typing import Dict, Any, List, Optional
from datetime import datetime
from dataclasses import dataclass, field, fields
from enum import Enum

logger = logging.getLogger(__name__)

MAX_FREE_TURNS = int(os.getenv("MAX_FREE_TURNS", "20"))


class Slot(str, Enum):
    """Slots the wizard fills, in the order they are asked for."""
    BUDGET = "budget"
    COUNTRY_CODE = "country_code"
    DURATION_WEEKS = "duration_weeks"
    GOAL = "goal"


# Asking order: budget > country > duration > goal
REQUIRED_SLOTS: List[Slot] = [
    Slot.BUDGET,
    Slot.COUNTRY_CODE,
    Slot.DURATION_WEEKS,
    Slot.GOAL,
]

# City is a hint and never blocks the comparison
OPTIONAL_SLOTS = ["city"]


@dataclass
class WizardState:
    """Slot record for one round of the wizard."""
    budget: Optional[int] = None
    country_code: Optional[str] = None
    duration_weeks: Optional[int] = None
    goal: Optional[str] = None
    city: Optional[str] = None

    def is_empty(self) -> bool:
        """True when no required slot has been filled yet."""
        return all(getattr(self, slot.value) is None for slot in REQUIRED_SLOTS)

    def is_complete(self) -> bool:
        return all(getattr(self, slot.value) is not None for slot in REQUIRED_SLOTS)

    def missing_slots(self) -> List[Slot]:
        """Unfilled required slots in asking order."""
        return [slot for slot in REQUIRED_SLOTS if getattr(self, slot.value) is None]

    def next_missing(self) -> Optional[Slot]:
        missing = self.missing_slots()
        return missing[0] if missing else None

    def merge(self, deltas: Dict[str, Any], overwrite: bool = False) -> List[str]:
        """
        Apply extracted values to the record.

        Args:
            deltas: slot name -> value; None values are ignored
            overwrite: replace slots that are already set (delegated strategy)

        Returns:
            Names of the slots that changed
        """
        changed = []
        known = {f.name for f in fields(self)}

        for name, value in deltas.items():
            if name not in known or value is None:
                continue
            current = getattr(self, name)
            if current is not None and not overwrite:
                continue
            if current == value:
                continue
            setattr(self, name, value)
            changed.append(name)

        return changed

    def reset(self) -> None:
        """Clear every slot for a new round."""
        for f in fields(self):
            setattr(self, f.name, None)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'WizardState':
        data = data or {}
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class Session:
    """A chat session: quota counter, locale and the wizard record."""
    session_id: str
    turn_count: int = 0
    quota_limit: int = MAX_FREE_TURNS
    locale: Optional[str] = None
    wizard: WizardState = field(default_factory=WizardState)
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def limit_reached(self) -> bool:
        return self.turn_count >= self.quota_limit

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "session_id": self.session_id,
            "turn_count": self.turn_count,
            "quota_limit": self.quota_limit,
            "locale": self.locale,
            "wizard": self.wizard.to_dict(),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Session':
        """Create from dictionary."""
        now = datetime.utcnow()
        return cls(
            session_id=data["session_id"],
            turn_count=int(data.get("turn_count", 0)),
            quota_limit=int(data.get("quota_limit", MAX_FREE_TURNS)),
            locale=data.get("locale"),
            wizard=WizardState.from_dict(data.get("wizard")),
            created_at=datetime.fromisoformat(data["created_at"]) if data.get("created_at") else now,
            updated_at=datetime.fromisoformat(data["updated_at"]) if data.get("updated_at") else now,
        )
