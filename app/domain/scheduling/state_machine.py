"""
Appointment status state machine.

    pending ──vendor──▶ confirmed ──vendor──▶ completed
       │  │                 │
       │  └──vendor──▶ declined
       │                    └──vendor/customer──▶ cancelled
       └──customer──▶ cancelled

completed, cancelled and declined are terminal. Nothing returns to pending.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .errors import InvalidStateTransition
from .schemas import AppointmentStatus

logger = logging.getLogger(__name__)

VENDOR = "vendor"
CUSTOMER = "customer"

TERMINAL_STATUSES = frozenset(
    {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, AppointmentStatus.DECLINED}
)


@dataclass(frozen=True)
class Transition:
    from_status: AppointmentStatus
    to_status: AppointmentStatus
    actors: frozenset


TRANSITIONS: list[Transition] = [
    Transition(AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED, frozenset({VENDOR})),
    Transition(AppointmentStatus.PENDING, AppointmentStatus.DECLINED, frozenset({VENDOR})),
    Transition(AppointmentStatus.PENDING, AppointmentStatus.CANCELLED, frozenset({CUSTOMER})),
    Transition(AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED, frozenset({VENDOR})),
    Transition(
        AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED, frozenset({VENDOR, CUSTOMER})
    ),
]


def is_terminal(status) -> bool:
    return AppointmentStatus(status) in TERMINAL_STATUSES


def allowed_targets(status, actor: Optional[str] = None) -> list[AppointmentStatus]:
    """Statuses reachable from `status`, optionally restricted to one actor"""
    current = AppointmentStatus(status)
    return [
        t.to_status
        for t in TRANSITIONS
        if t.from_status == current and (actor is None or actor in t.actors)
    ]


def validate_transition(current, requested, actor: Optional[str]) -> Transition:
    """
    Check a requested status change.

    `actor` is VENDOR, CUSTOMER or None when the caller could not be
    resolved. An unresolved caller may still cancel.

    Raises:
        InvalidStateTransition: From a terminal status, along an edge that is
            not in the table, or by an actor the edge does not allow.
    """
    current = AppointmentStatus(current)
    requested = AppointmentStatus(requested)

    if current in TERMINAL_STATUSES:
        raise InvalidStateTransition(current.value, requested.value, "status is final")

    for t in TRANSITIONS:
        if t.from_status != current or t.to_status != requested:
            continue
        if actor is None and requested == AppointmentStatus.CANCELLED:
            return t
        if actor in t.actors:
            return t
        raise InvalidStateTransition(
            current.value, requested.value, f"not permitted for {actor or 'unknown caller'}"
        )

    raise InvalidStateTransition(current.value, requested.value)


def resolve_cancelled_by(caller_id: Optional[int], vendor_id: int) -> Optional[str]:
    """Which party performed a cancellation: VENDOR, CUSTOMER or None if unknown"""
    if caller_id is None:
        return None
    return VENDOR if caller_id == vendor_id else CUSTOMER
