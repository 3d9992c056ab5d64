from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Iterable

from .models import NotFoundReason, PasteRecord


class PasteState(str, enum.Enum):
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    EXHAUSTED = "EXHAUSTED"
    DELETED = "DELETED"


class InvalidPasteStateTransition(Exception):
    """Raised when an invalid state transition is requested for a Paste."""


# Explicitly enumerated allowed transitions between distinct states.
_ALLOWED_TRANSITIONS: set[tuple[PasteState, PasteState]] = {
    (PasteState.ACTIVE, PasteState.EXPIRED),
    (PasteState.ACTIVE, PasteState.EXHAUSTED),
    (PasteState.EXPIRED, PasteState.DELETED),
    (PasteState.EXHAUSTED, PasteState.DELETED),
}

_NOT_FOUND_REASONS: dict[PasteState, NotFoundReason] = {
    PasteState.EXPIRED: NotFoundReason.EXPIRED,
    PasteState.EXHAUSTED: NotFoundReason.VIEW_LIMIT,
}


def _coerce_state(value: PasteState | str) -> PasteState:
    """Normalize incoming state values to ``PasteState``."""
    if isinstance(value, PasteState):
        return value
    try:
        return PasteState(value)
    except ValueError as exc:
        valid: Iterable[str] = (s.value for s in PasteState)
        raise InvalidPasteStateTransition(
            f"Unknown paste state {value!r}. Valid states: {', '.join(valid)}"
        ) from exc


def validate_transition(
    current_state: PasteState | str,
    next_state: PasteState | str,
) -> None:
    """
    Validate a transition between two Paste states.

    - Allowed transitions:
      ACTIVE → EXPIRED, ACTIVE → EXHAUSTED,
      EXPIRED → DELETED, EXHAUSTED → DELETED.
    - Forbidden transitions raise ``InvalidPasteStateTransition``.
    - A \"no-op\" transition (``current_state == next_state``) is always allowed.
    """

    current = _coerce_state(current_state)
    target = _coerce_state(next_state)

    if current is target:
        return

    if (current, target) not in _ALLOWED_TRANSITIONS:
        raise InvalidPasteStateTransition(
            f"Cannot transition Paste from {current.value} to {target.value}."
        )


def evaluate_state(record: PasteRecord, now_ms: int) -> PasteState:
    """
    Classify a stored record at ``now_ms``.

    Expiry is checked before the view limit, so a record that is both past
    its expiry and out of views is EXPIRED.
    """
    if record.expires_at is not None and now_ms >= record.expires_at:
        return PasteState.EXPIRED
    if record.remaining_views is not None and record.remaining_views <= 0:
        return PasteState.EXHAUSTED
    return PasteState.ACTIVE


def not_found_reason(state: PasteState) -> NotFoundReason:
    try:
        return _NOT_FOUND_REASONS[state]
    except KeyError as exc:
        raise InvalidPasteStateTransition(
            f"Paste in state {state.value} is not a not-found outcome."
        ) from exc


@dataclass(frozen=True)
class ViewOutcome:
    """Result of consuming one view of an ACTIVE record."""

    record: PasteRecord
    state: PasteState

    @property
    def is_last_view(self) -> bool:
        return self.state is PasteState.EXHAUSTED


def consume_view(record: PasteRecord, now_ms: int) -> ViewOutcome:
    """
    Apply the view-count side effect of a successful read.

    Unlimited pastes come back unchanged. Limited pastes are decremented; the
    view that brings ``remaining_views`` to zero moves the paste to EXHAUSTED,
    and the caller is expected to delete it.
    """
    current = evaluate_state(record, now_ms)
    if current is not PasteState.ACTIVE:
        raise InvalidPasteStateTransition(
            f"Cannot serve a view of a paste in state {current.value}."
        )

    if record.remaining_views is None:
        return ViewOutcome(record=record, state=PasteState.ACTIVE)

    updated = record.with_remaining_views(record.remaining_views - 1)
    next_state = (
        PasteState.EXHAUSTED if updated.remaining_views <= 0 else PasteState.ACTIVE  # type: ignore[operator]
    )
    validate_transition(current, next_state)
    return ViewOutcome(record=updated, state=next_state)
