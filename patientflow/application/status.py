"""Appointment status machine.

The transition table is the single source of truth for which status changes
are legal. Services ask :func:`can_transition` (or :func:`ensure_transition`)
before writing a new status; nothing else compares status strings ad hoc.
"""
from enum import Enum
from typing import Dict, FrozenSet

from ..exceptions import InvalidStateError


class AppointmentStatus(str, Enum):
    CREATED = "CREATED"
    VITALS_RECORDED = "VITALS_RECORDED"
    ASSIGNED = "ASSIGNED"
    IN_QUEUE = "IN_QUEUE"
    IN_CONSULTATION = "IN_CONSULTATION"
    PENDING_PHARMACY = "PENDING_PHARMACY"
    PENDING_REFERRAL = "PENDING_REFERRAL"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Priority(str, Enum):
    NORMAL = "NORMAL"
    URGENT = "URGENT"
    EMERGENCY = "EMERGENCY"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


class StaffRole(str, Enum):
    ADMIN = "ADMIN"
    NURSE = "NURSE"
    DOCTOR = "DOCTOR"
    PHARMACIST = "PHARMACIST"
    RECEPTIONIST = "RECEPTIONIST"


_PRIORITY_RANK = {
    Priority.NORMAL: 1,
    Priority.URGENT: 2,
    Priority.EMERGENCY: 3,
}

S = AppointmentStatus

TERMINAL_STATUSES: FrozenSet[AppointmentStatus] = frozenset({S.COMPLETED, S.CANCELLED})

# assigned_doctor_id is set exactly for these statuses
DOCTOR_HELD_STATUSES: FrozenSet[AppointmentStatus] = frozenset({
    S.ASSIGNED,
    S.IN_QUEUE,
    S.IN_CONSULTATION,
    S.PENDING_PHARMACY,
    S.PENDING_REFERRAL,
    S.COMPLETED,
})

# count towards a doctor's load
ACTIVE_STATUSES: FrozenSet[AppointmentStatus] = frozenset({S.ASSIGNED, S.IN_QUEUE, S.IN_CONSULTATION})
WAITING_STATUSES: FrozenSet[AppointmentStatus] = frozenset({S.ASSIGNED, S.IN_QUEUE})
PENDING_FULFILMENT_STATUSES: FrozenSet[AppointmentStatus] = frozenset({S.PENDING_PHARMACY, S.PENDING_REFERRAL})

TRANSITIONS: Dict[AppointmentStatus, FrozenSet[AppointmentStatus]] = {
    S.CREATED: frozenset({S.VITALS_RECORDED, S.CANCELLED}),
    S.VITALS_RECORDED: frozenset({S.ASSIGNED, S.IN_QUEUE, S.CANCELLED}),
    S.ASSIGNED: frozenset({S.IN_QUEUE, S.IN_CONSULTATION, S.CANCELLED}),
    S.IN_QUEUE: frozenset({S.ASSIGNED, S.IN_CONSULTATION, S.CANCELLED}),
    # ASSIGNED here is the release path used when a doctor logs out mid-consultation
    S.IN_CONSULTATION: frozenset({S.PENDING_PHARMACY, S.PENDING_REFERRAL, S.COMPLETED, S.ASSIGNED, S.CANCELLED}),
    S.PENDING_PHARMACY: frozenset({S.COMPLETED, S.CANCELLED}),
    S.PENDING_REFERRAL: frozenset({S.COMPLETED, S.CANCELLED}),
    S.COMPLETED: frozenset(),
    S.CANCELLED: frozenset(),
}


def can_transition(current: str, new: str) -> bool:
    """Return True if an appointment may move from ``current`` to ``new``."""
    return AppointmentStatus(new) in TRANSITIONS.get(AppointmentStatus(current), frozenset())


def ensure_transition(current: str, new: str) -> None:
    if not can_transition(current, new):
        raise InvalidStateError(f"Cannot move appointment from {current} to {new}")


def is_terminal(status: str) -> bool:
    return AppointmentStatus(status) in TERMINAL_STATUSES


def priority_rank(priority: str) -> int:
    return Priority(priority).rank
