"""StatusAxis class validating events against one transition table."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum
from typing import Generic, TypeVar

from dealflow.domain.errors import InvalidTransitionError
from dealflow.domain.types import BrandResponseStatus, DealStatus, ExecutionStatus
from dealflow.state_machine.transitions import (
    BRAND_RESPONSE_TERMINAL,
    BRAND_RESPONSE_TRANSITIONS,
    DEAL_STATUS_TERMINAL,
    DEAL_STATUS_TRANSITIONS,
    EXECUTION_TERMINAL,
    EXECUTION_TRANSITIONS,
)

S = TypeVar("S", bound=StrEnum)


class StatusAxis(Generic[S]):
    """Finite state machine for a single status field on a deal.

    Axes are stateless: the current state lives on the persisted deal and
    is passed in, and the caller commits the returned state with a
    conditional update keyed on the state it read.

    Usage::

        BRAND_RESPONSE_AXIS.apply(BrandResponseStatus.PENDING, "accept")
        # -> BrandResponseStatus.ACCEPTED_VERIFIED
    """

    def __init__(
        self,
        name: str,
        transitions: Mapping[tuple[S, str], S],
        terminal: frozenset[S],
    ) -> None:
        self.name = name
        self._transitions = dict(transitions)
        self._terminal = terminal

    def is_terminal(self, state: S) -> bool:
        """Return True if *state* accepts no further events on this axis."""
        return state in self._terminal

    def can_apply(self, state: S, event: str) -> bool:
        """Return True if *event* is valid from *state*."""
        return not self.is_terminal(state) and (state, event) in self._transitions

    def apply(self, state: S, event: str) -> S:
        """Return the state reached by applying *event* to *state*.

        Args:
            state: The current state read from the deal.
            event: The event string (e.g. ``"accept"``).

        Returns:
            The next state.

        Raises:
            InvalidTransitionError: If the transition is not allowed from
                *state*, or if *state* is terminal.
        """
        if not self.can_apply(state, event):
            raise InvalidTransitionError(self.name, str(state), event)
        return self._transitions[(state, event)]

    def get_valid_events(self, state: S) -> list[str]:
        """Return a sorted list of events valid from *state*.

        Returns an empty list if *state* is terminal.
        """
        if self.is_terminal(state):
            return []
        return sorted(event for current, event in self._transitions if current == state)


BRAND_RESPONSE_AXIS: StatusAxis[BrandResponseStatus] = StatusAxis(
    "brand_response_status", BRAND_RESPONSE_TRANSITIONS, BRAND_RESPONSE_TERMINAL
)
DEAL_STATUS_AXIS: StatusAxis[DealStatus] = StatusAxis(
    "status", DEAL_STATUS_TRANSITIONS, DEAL_STATUS_TERMINAL
)
EXECUTION_AXIS: StatusAxis[ExecutionStatus] = StatusAxis(
    "deal_execution_status", EXECUTION_TRANSITIONS, EXECUTION_TERMINAL
)
