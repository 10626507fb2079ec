from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from types import MappingProxyType
from typing import Iterable, Mapping

from .timeutils import SLOT_MINUTES, slot_steps, to_12_hour


logger = logging.getLogger(__name__)


class SlotIntegrityError(Exception):
    """Two bookings claim the same (court, slot) cell."""

    def __init__(self, court_name: str, label: str, booking_id, other_booking_id):
        self.court_name = court_name
        self.label = label
        self.booking_id = booking_id
        self.other_booking_id = other_booking_id
        super().__init__(
            f"Bookings {other_booking_id} and {booking_id} both occupy {court_name} at {label}."
        )


@dataclass(frozen=True)
class SlotOccupancy:
    booking_id: int
    user_id: int | None
    court_name: str
    label: str
    is_first_slot: bool
    span: int
    booking_type: str = ""
    status: str = ""

    def as_dict(self) -> dict:
        return asdict(self)


def slots_spanned(duration_minutes: int) -> int:
    return max(0, math.ceil(duration_minutes / SLOT_MINUTES))


class AvailabilityIndex:
    """
    Read-only court -> slot label -> SlotOccupancy map for one facility/date.
    A label missing from a court's map means the slot is free.
    """

    def __init__(self, cells: dict[str, dict[str, SlotOccupancy]]):
        self._cells = MappingProxyType({court: MappingProxyType(dict(slots)) for court, slots in cells.items()})

    @classmethod
    def build(cls, bookings: Iterable, *, court_names: Iterable[str] = ()) -> "AvailabilityIndex":
        """
        Expand each booking into the quarter-hour slots it spans.

        Bookings are duck-typed: id, user_id, court_name, start_time,
        duration_minutes and optionally booking_type and status. Cancelled
        bookings are skipped.
        """
        cells: dict[str, dict[str, SlotOccupancy]] = {name: {} for name in court_names}

        for booking in bookings:
            status = getattr(booking, "status", "")
            if status == "cancelled":
                continue

            span = slots_spanned(booking.duration_minutes)
            court_cells = cells.setdefault(booking.court_name, {})
            for index, slot_time in enumerate(slot_steps(booking.start_time, span)):
                label = to_12_hour(slot_time)
                existing = court_cells.get(label)
                if existing is not None:
                    logger.error(
                        "Slot integrity violation on %s at %s: booking %s overlaps booking %s",
                        booking.court_name,
                        label,
                        booking.id,
                        existing.booking_id,
                    )
                    raise SlotIntegrityError(booking.court_name, label, booking.id, existing.booking_id)
                court_cells[label] = SlotOccupancy(
                    booking_id=booking.id,
                    user_id=getattr(booking, "user_id", None),
                    court_name=booking.court_name,
                    label=label,
                    is_first_slot=index == 0,
                    span=span,
                    booking_type=getattr(booking, "booking_type", "") or "",
                    status=status or "",
                )

        return cls(cells)

    def courts(self) -> tuple[str, ...]:
        return tuple(self._cells)

    def get(self, court_name: str, label: str) -> SlotOccupancy | None:
        return self._cells.get(court_name, {}).get(label)

    def is_occupied(self, court_name: str, label: str) -> bool:
        return self.get(court_name, label) is not None

    def for_court(self, court_name: str) -> Mapping[str, SlotOccupancy]:
        return self._cells.get(court_name, MappingProxyType({}))

    def occupied_labels(self, court_name: str) -> frozenset[str]:
        return frozenset(self.for_court(court_name))

    def as_dict(self) -> dict:
        return {
            court: {label: occupancy.as_dict() for label, occupancy in slots.items()}
            for court, slots in self._cells.items()
        }
