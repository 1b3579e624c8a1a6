"""Deterministic counter-offer suggestions shown to the brand.

Suggestions are computed from the live deal and returned to the caller;
they are never applied to the deal.
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal

from pydantic import BaseModel, ConfigDict, Field

from dealflow.domain.models import Deal
from dealflow.domain.types import CollabType

LOW_BARTER_NOTE = "Suggesting an additional unit of the product due to low barter value."
USAGE_RIGHTS_NOTE = "Standard 3 months digital usage rights recommended."


class CounterSuggestion(BaseModel):
    """Suggested counter terms."""

    model_config = ConfigDict(frozen=True)

    budget: Decimal | None = None
    deliverables: list[str] = Field(default_factory=list)
    timeline: date
    notes: list[str] = Field(default_factory=list)

    @property
    def notes_text(self) -> str:
        """Notes joined into a single sentence block."""
        return " ".join(self.notes)


def compute_counter_suggestions(
    deal: Deal,
    today: date,
    *,
    uplift: Decimal = Decimal("1.2"),
    low_barter_threshold: Decimal = Decimal("1000"),
    min_lead_days: int = 10,
) -> CounterSuggestion:
    """Suggest counter terms for *deal* as of *today*.

    Rules:
    - Paid or hybrid deals priced below the creator's benchmark rate get
      ``budget * uplift``, rounded half-up to a whole unit.
    - Barter deals valued under *low_barter_threshold* get a note asking
      for an extra unit.
    - More than two deliverables: the last one is dropped.
    - A deadline that is unset or under *min_lead_days* away moves to
      ``today + min_lead_days``.
    - A usage-rights note is always appended.

    Args:
        deal: The deal as currently stored.
        today: Reference date for the timeline rule.
        uplift: Budget multiplier when under the benchmark rate.
        low_barter_threshold: Barter value below which an extra unit is suggested.
        min_lead_days: Minimum days between today and the deadline.

    Returns:
        The :class:`CounterSuggestion`.
    """
    notes: list[str] = []

    budget = deal.budget
    if deal.collab_type in (CollabType.PAID, CollabType.HYBRID):
        rate = deal.creator.benchmark_rate or Decimal(0)
        if budget is not None and budget > 0 and rate > 0 and budget < rate:
            budget = (budget * uplift).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    elif deal.collab_type == CollabType.BARTER:
        if (deal.barter_value or Decimal(0)) < low_barter_threshold:
            notes.append(LOW_BARTER_NOTE)

    deliverables = list(deal.deliverables)
    if len(deliverables) > 2:
        deliverables = deliverables[:-1]

    if deal.deadline is None or (deal.deadline - today).days < min_lead_days:
        timeline = today + timedelta(days=min_lead_days)
    else:
        timeline = deal.deadline

    notes.append(USAGE_RIGHTS_NOTE)

    return CounterSuggestion(
        budget=budget, deliverables=deliverables, timeline=timeline, notes=notes
    )
