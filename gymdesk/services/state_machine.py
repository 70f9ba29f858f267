"""
Entity Status State Machine.

Provides:
- Valid status transitions per entity type
- Transition validation before any request is issued
- Available actions for a given status

A machine is built from a flat list of Transition definitions; the member
and reorder lifecycles each declare their own list.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, Sequence, TypeVar

from gymdesk.core.enums import enum_value
from gymdesk.utils.errors import InvalidTransitionError

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=Enum)
E = TypeVar("E", bound=Enum)


@dataclass(frozen=True)
class Transition(Generic[S, E]):
    """Represents a valid state transition."""

    from_status: S
    to_status: S
    event: E
    requires_reason: bool = False
    requires_confirmation: bool = False
    requires_admin_verification: bool = False


@dataclass
class TransitionResult(Generic[S, E]):
    """Result of a transition check."""

    success: bool
    from_status: S
    to_status: Optional[S] = None
    error: Optional[str] = None
    transition: Optional[Transition[S, E]] = None


class StateMachine(Generic[S, E]):
    """
    State machine over one entity type's status enum.

    Example:
        >>> machine = StateMachine(REORDER_TRANSITIONS, "reorder request")
        >>> machine.get_valid_events(ReorderStatus.PENDING)
        [<ReorderEvent.APPROVE: 'approve'>, <ReorderEvent.REJECT: 'reject'>]
    """

    def __init__(self, transitions: Sequence[Transition[S, E]], entity_name: str = "entity"):
        self.entity_name = entity_name
        self._transitions: dict[tuple[S, E], Transition[S, E]] = {}
        self._from_status_map: dict[S, list[Transition[S, E]]] = {}

        for transition in transitions:
            key = (transition.from_status, transition.event)
            if key in self._transitions:
                raise ValueError(
                    f"Duplicate transition for {transition.from_status.value} + {transition.event.value}"
                )
            self._transitions[key] = transition
            self._from_status_map.setdefault(transition.from_status, []).append(transition)

    def get_valid_transitions(self, status: S) -> list[Transition[S, E]]:
        """Get all valid transitions from a given status."""
        return list(self._from_status_map.get(status, []))

    def get_valid_events(self, status: S) -> list[E]:
        return [t.event for t in self.get_valid_transitions(status)]

    def get_next_statuses(self, status: S) -> list[S]:
        return [t.to_status for t in self.get_valid_transitions(status)]

    def is_terminal(self, status: S) -> bool:
        return not self._from_status_map.get(status)

    def can_transition(self, from_status: S, to_status: S) -> bool:
        return to_status in self.get_next_statuses(from_status)

    def get_transition(self, from_status: S, event: E) -> Optional[Transition[S, E]]:
        return self._transitions.get((from_status, event))

    def validate_transition(
        self, from_status: S, event: E, reason: Optional[str] = None
    ) -> TransitionResult[S, E]:
        """
        Validate a transition attempt.

        Returns:
            TransitionResult indicating success/failure
        """
        transition = self.get_transition(from_status, event)
        if transition is None:
            return TransitionResult(
                success=False,
                from_status=from_status,
                error=(
                    f"Cannot {event.value} a {self.entity_name} "
                    f"with status '{enum_value(from_status)}'"
                ),
            )

        if transition.requires_reason and not (reason and str(reason).strip()):
            return TransitionResult(
                success=False,
                from_status=from_status,
                error="Reason is required for this transition",
            )

        return TransitionResult(
            success=True,
            from_status=from_status,
            to_status=transition.to_status,
            transition=transition,
        )

    def require(self, from_status: S, event: E) -> Transition[S, E]:
        """
        Get the transition for an event or raise.

        Reason and confirmation flags are left to the caller's form.

        Raises:
            InvalidTransitionError: the event is not legal from this status
        """
        transition = self.get_transition(from_status, event)
        if transition is None:
            error = self.validate_transition(from_status, event).error
            logger.warning(f"Rejected {self.entity_name} transition: {error}")
            raise InvalidTransitionError(
                error or "Invalid transition",
                from_status=enum_value(from_status),
                event=event.value,
            )
        return transition

    def record(self, entity_id: Any, transition: Transition[S, E]) -> None:
        """Log a completed transition."""
        logger.info(
            f"{self.entity_name.capitalize()} {entity_id} transitioned: "
            f"{transition.from_status.value} -> {transition.to_status.value} "
            f"(event: {transition.event.value})"
        )
