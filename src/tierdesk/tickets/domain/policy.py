"""
Escalation Policy
=================

Automatic escalation triggers evaluated for tier1 tickets:

- critical tags (the tier3 tags plus urgent and incident-response)
- mean AI suggestion confidence below the threshold
"""

from typing import FrozenSet, Iterable, Optional, Tuple

from tierdesk.config import CRITICAL_TAGS, EscalationReason, TicketTier
from tierdesk.tickets.domain.entities import Ticket


class EscalationPolicy:

    def __init__(
        self,
        confidence_threshold: float = 0.6,
        critical_tags: Iterable[str] = CRITICAL_TAGS,
    ):
        self.confidence_threshold = confidence_threshold
        self.critical_tags: FrozenSet[str] = frozenset(critical_tags)

    def evaluate(self, ticket: Ticket) -> Optional[Tuple[EscalationReason, str]]:
        """Reason and explanation when the ticket should leave tier1, else None."""
        if ticket.tier != TicketTier.TIER1 or ticket.is_terminal:
            return None

        critical = ticket.tags & self.critical_tags
        if critical:
            return (
                EscalationReason.CRITICAL_ISSUE,
                f"Critical tags: {', '.join(sorted(critical))}",
            )

        # Tickets without suggestions have not been classified yet
        if ticket.ai_suggestions and ticket.ai_confidence < self.confidence_threshold:
            return (
                EscalationReason.LOW_AI_CONFIDENCE,
                f"AI confidence {ticket.ai_confidence:.2f} below {self.confidence_threshold:.2f}",
            )

        return None
