"""Slot availability and booking-conflict rules.

Everything here is pure: callers load a doctor's weekly rules and the
appointments for a date, and the functions below decide which catalogue slots
can be offered and whether a proposed slot can be committed.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import Iterable, Protocol, Sequence

SUNDAY = 0
WORKING_DAYS = range(1, 7)  # Monday=1..Saturday=6

EMPTY_MARKER_DAY = 0
EMPTY_MARKER_TIME = time(0, 0)

SLOT_BOUNDARY_MINUTES = (0, 30)


class AppointmentStatus(str, Enum):
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


ACTIVE_STATUSES = frozenset({AppointmentStatus.PENDING.value, AppointmentStatus.CONFIRMED.value})

ALLOWED_TRANSITIONS = {
    AppointmentStatus.PENDING.value: frozenset({AppointmentStatus.CONFIRMED.value, AppointmentStatus.CANCELLED.value}),
    AppointmentStatus.CONFIRMED.value: frozenset({AppointmentStatus.COMPLETED.value, AppointmentStatus.CANCELLED.value}),
    AppointmentStatus.COMPLETED.value: frozenset(),
    AppointmentStatus.CANCELLED.value: frozenset(),
}


class AssignmentResult(str, Enum):
    OK = 'ok'
    SLOT_NOT_AVAILABLE = 'slot_not_available'
    SLOT_ALREADY_BOOKED = 'slot_already_booked'


class RuleRow(Protocol):
    day_of_week: int
    time_slot: time
    is_available: bool


class BookedRow(Protocol):
    id: int | None
    appointment_time: time
    status: str


@dataclass(frozen=True)
class WeeklyAvailabilityRule:
    day_of_week: int
    time_slot: time
    is_available: bool = True


@dataclass(frozen=True)
class Unset:
    """The doctor never saved an availability grid."""


@dataclass(frozen=True)
class Empty:
    """The doctor saved a grid with nothing selected."""


@dataclass(frozen=True)
class Rules:
    """Day-specific available slots, keyed by day_of_week (1..6)."""

    slots_by_day: dict[int, frozenset[time]] = field(default_factory=dict)

    def slots_for(self, day_of_week: int) -> frozenset[time]:
        return self.slots_by_day.get(day_of_week, frozenset())


AvailabilityConfig = Unset | Empty | Rules


def normalize_slot(value: time) -> time:
    return value.replace(second=0, microsecond=0, tzinfo=None)


def parse_slot(value: str) -> time:
    """Parse an ``HH:MM`` (or ``HH:MM:SS``) wall-clock value."""
    cleaned = value.strip()
    for fmt in ('%H:%M', '%H:%M:%S'):
        try:
            return datetime.strptime(cleaned, fmt).time()
        except ValueError:
            continue
    raise ValueError(f'Invalid time slot {value!r}; expected HH:MM.')


def format_slot(value: time) -> str:
    return value.strftime('%H:%M')


def require_whole_minute(value: time) -> time:
    if value.second or value.microsecond:
        raise ValueError('Times must not include seconds.')
    return value.replace(tzinfo=None)


def parse_slot_catalogue(values: Iterable[str]) -> list[time]:
    """Parse the configured catalogue into a sorted, de-duplicated slot list.

    Every entry must fall on a half-hour boundary.
    """
    parsed = set()
    for value in values:
        slot = parse_slot(value)
        if slot.minute not in SLOT_BOUNDARY_MINUTES or slot.second:
            raise ValueError(f'Time slot {value!r} is not on a half-hour boundary.')
        parsed.add(slot)

    catalogue = sorted(parsed)
    if not catalogue:
        raise ValueError('The slot catalogue must contain at least one time.')
    return catalogue


def weekday_index(slot_date: date) -> int:
    """Weekday with 0=Sunday..6=Saturday."""
    return slot_date.isoweekday() % 7


def classify_rules(rules: Iterable[RuleRow]) -> AvailabilityConfig:
    """Decode stored rule rows into Unset, Empty or Rules.

    No rows at all means the doctor never configured availability. Rows that
    carry no positive working-day entry (the empty marker, or stray negative
    cells) mean the doctor configured an empty grid.
    """
    rows = list(rules)
    if not rows:
        return Unset()

    slots_by_day: dict[int, set[time]] = {}
    for rule in rows:
        if rule.is_available and rule.day_of_week in WORKING_DAYS:
            slots_by_day.setdefault(rule.day_of_week, set()).add(normalize_slot(rule.time_slot))

    if not slots_by_day:
        return Empty()

    return Rules({day: frozenset(slots) for day, slots in slots_by_day.items()})


def encode_rules(config: AvailabilityConfig) -> list[WeeklyAvailabilityRule]:
    """Encode a configuration into the rows the store keeps for it."""
    if isinstance(config, Unset):
        return []

    if isinstance(config, Rules):
        encoded = [
            WeeklyAvailabilityRule(day_of_week=day, time_slot=slot, is_available=True)
            for day in sorted(config.slots_by_day)
            for slot in sorted(config.slots_by_day[day])
        ]
        if encoded:
            return encoded

    return [WeeklyAvailabilityRule(day_of_week=EMPTY_MARKER_DAY, time_slot=EMPTY_MARKER_TIME, is_available=False)]


def candidate_slots(config: AvailabilityConfig, slot_date: date, catalogue: Sequence[time]) -> list[time]:
    """Catalogue slots the doctor works on ``slot_date``, ignoring bookings."""
    day = weekday_index(slot_date)
    if day == SUNDAY or isinstance(config, Empty):
        return []

    ordered = sorted({normalize_slot(slot) for slot in catalogue})
    if isinstance(config, Unset):
        return ordered

    working = config.slots_for(day)
    return [slot for slot in ordered if slot in working]


def occupied_slots(appointments: Iterable[BookedRow], exclude_appointment_id: int | None = None) -> set[time]:
    return {
        normalize_slot(appointment.appointment_time)
        for appointment in appointments
        if appointment.status in ACTIVE_STATUSES
        and (exclude_appointment_id is None or appointment.id != exclude_appointment_id)
    }


def available_slots(
    rules: Iterable[RuleRow] | AvailabilityConfig,
    booked_appointments: Iterable[BookedRow],
    slot_date: date,
    catalogue: Sequence[time],
) -> list[time]:
    """Bookable slots for one doctor on one date, in ascending order.

    ``booked_appointments`` are that doctor's appointments on ``slot_date``;
    only pending and confirmed ones occupy a slot.
    """
    config = rules if isinstance(rules, (Unset, Empty, Rules)) else classify_rules(rules)
    taken = occupied_slots(booked_appointments)
    return [slot for slot in candidate_slots(config, slot_date, catalogue) if slot not in taken]


def validate_assignment(
    rules: Iterable[RuleRow] | AvailabilityConfig,
    booked_appointments: Iterable[BookedRow],
    slot_date: date,
    slot_time: time,
    catalogue: Sequence[time],
    exclude_appointment_id: int | None = None,
) -> AssignmentResult:
    """Check a proposed (date, time) for a doctor before it is written.

    ``exclude_appointment_id`` is the appointment being rescheduled, so its
    own current slot does not count as a conflict.
    """
    config = rules if isinstance(rules, (Unset, Empty, Rules)) else classify_rules(rules)
    requested = normalize_slot(slot_time)

    if requested not in candidate_slots(config, slot_date, catalogue):
        return AssignmentResult.SLOT_NOT_AVAILABLE

    if requested in occupied_slots(booked_appointments, exclude_appointment_id):
        return AssignmentResult.SLOT_ALREADY_BOOKED

    return AssignmentResult.OK


def can_transition(current_status: str, new_status: str) -> bool:
    return new_status in ALLOWED_TRANSITIONS.get(current_status, frozenset())


def is_terminal(status: str) -> bool:
    return not ALLOWED_TRANSITIONS.get(status)
