"""
Agent Domain Entities
======================

Pure business objects with no infrastructure dependencies.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import FrozenSet, Iterable, Optional

from tierdesk.config import AgentStatus, TicketTier
from tierdesk.core import ValidationException


def normalize_specialties(values: Iterable[str]) -> FrozenSet[str]:
    """Lower-case, strip and de-duplicate specialty/tag labels."""
    return frozenset(v.strip().lower() for v in values if v and v.strip())


@dataclass
class Agent:
    """
    Support agent as seen by the engine.

    Name and email are opaque; the engine only writes `current_load`,
    `status` and `last_assigned_at`.

    Invariant: 0 <= current_load <= max_capacity
    """

    id: str
    name: str
    tier: TicketTier
    email: Optional[str] = None
    status: AgentStatus = AgentStatus.OFFLINE
    current_load: int = 0
    max_capacity: int = 5
    specialties: FrozenSet[str] = field(default_factory=frozenset)
    last_assigned_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.id:
            raise ValidationException("Agent id is required")
        if self.max_capacity < 0:
            raise ValidationException(
                "max_capacity must be non-negative",
                {"agent_id": self.id, "max_capacity": self.max_capacity}
            )
        if not 0 <= self.current_load <= self.max_capacity:
            raise ValidationException(
                "current_load must be between 0 and max_capacity",
                {"agent_id": self.id, "current_load": self.current_load, "max_capacity": self.max_capacity}
            )
        self.specialties = normalize_specialties(self.specialties)

    @property
    def has_capacity(self) -> bool:
        return self.current_load < self.max_capacity

    @property
    def load_ratio(self) -> float:
        if self.max_capacity == 0:
            return 1.0
        return self.current_load / self.max_capacity

    @property
    def is_available(self) -> bool:
        """Online with a free slot."""
        return self.status == AgentStatus.ONLINE and self.has_capacity

    def can_hold(self, tier: TicketTier) -> bool:
        """Agents hold tickets at or below their own tier."""
        return self.tier.level >= tier.level

    def specialty_overlap(self, tags: Iterable[str]) -> int:
        """
        Number of ticket tags matched by at least one specialty.

        A tag matches when either label contains the other, so "api" matches
        "api-integration" and "billing-disputes" matches "billing".
        """
        count = 0
        for tag in tags:
            if any(tag in specialty or specialty in tag for specialty in self.specialties):
                count += 1
        return count
