from __future__ import annotations

from dataclasses import dataclass, field

from django.db import transaction

from .models import Court, Facility
from .slots import WEEKDAYS


def _daily_hours(open_at: str = "06:00", close_at: str = "21:00") -> dict:
    return {day: {"open": open_at, "close": close_at, "closed": False} for day in WEEKDAYS}


@dataclass(frozen=True)
class CourtSeed:
    name: str
    court_type: str
    court_number: int
    surface_type: str = "Hard"
    has_lights: bool = False


@dataclass(frozen=True)
class FacilitySeed:
    id: str
    name: str
    facility_type: str
    courts: list[CourtSeed]
    operating_hours: dict = field(default_factory=_daily_hours)


DEFAULT_FACILITIES: list[FacilitySeed] = [
    FacilitySeed(
        id="sunrise-valley",
        name="Sunrise Valley HOA",
        facility_type="HOA Tennis & Pickleball Courts",
        courts=[
            CourtSeed("Tennis Court 1", Court.CourtType.TENNIS, 1, has_lights=True),
            CourtSeed("Tennis Court 2", Court.CourtType.TENNIS, 2, has_lights=True),
            CourtSeed("Pickleball Court 1", Court.CourtType.PICKLEBALL, 3),
            CourtSeed("Pickleball Court 2", Court.CourtType.PICKLEBALL, 4),
        ],
    ),
    FacilitySeed(
        id="downtown",
        name="Downtown Tennis Center",
        facility_type="Tennis Club",
        courts=[CourtSeed(f"Court {n}", Court.CourtType.TENNIS, n, has_lights=True) for n in range(1, 5)],
    ),
    FacilitySeed(
        id="riverside",
        name="Riverside Tennis Club",
        facility_type="Premium Tennis Club",
        courts=[
            CourtSeed("Center Court", Court.CourtType.TENNIS, 1, surface_type="Clay", has_lights=True),
            CourtSeed("Court A", Court.CourtType.TENNIS, 2, surface_type="Clay"),
            CourtSeed("Court B", Court.CourtType.TENNIS, 3, surface_type="Clay"),
            CourtSeed("Practice Court", Court.CourtType.TENNIS, 4),
        ],
        operating_hours=_daily_hours("07:00", "20:00"),
    ),
    FacilitySeed(
        id="westside",
        name="Westside Pickleball Club",
        facility_type="Pickleball Club",
        courts=[CourtSeed(f"Court {n}", Court.CourtType.PICKLEBALL, n) for n in range(1, 7)],
    ),
    FacilitySeed(
        id="eastgate",
        name="Eastgate Sports Complex",
        facility_type="Multi-Sport Complex",
        courts=[
            CourtSeed("Tennis Court A", Court.CourtType.TENNIS, 1, has_lights=True),
            CourtSeed("Tennis Court B", Court.CourtType.TENNIS, 2, has_lights=True),
            *[CourtSeed(f"Pickleball Court {n}", Court.CourtType.PICKLEBALL, n + 2) for n in range(1, 5)],
        ],
    ),
]


def seed_default_facilities(*, update_existing: bool = False) -> dict[str, int]:
    """
    Idempotently seed the demo facilities and their courts.

    - If update_existing is False: creates missing rows only (does not overwrite edits).
    - If update_existing is True: updates existing rows to match defaults.
    """
    created = 0
    updated = 0
    skipped = 0

    def _apply(model, lookup: dict, defaults: dict):
        nonlocal created, updated, skipped
        if update_existing:
            _, was_created = model.objects.update_or_create(**lookup, defaults=defaults)
            if was_created:
                created += 1
            else:
                updated += 1
        else:
            _, was_created = model.objects.get_or_create(**lookup, defaults=defaults)
            if was_created:
                created += 1
            else:
                skipped += 1

    with transaction.atomic():
        for seed in DEFAULT_FACILITIES:
            _apply(
                Facility,
                {"id": seed.id},
                {
                    "name": seed.name,
                    "facility_type": seed.facility_type,
                    "operating_hours": seed.operating_hours,
                },
            )
            for court in seed.courts:
                _apply(
                    Court,
                    {"facility_id": seed.id, "name": court.name},
                    {
                        "court_number": court.court_number,
                        "court_type": court.court_type,
                        "surface_type": court.surface_type,
                        "has_lights": court.has_lights,
                        "status": Court.Status.AVAILABLE,
                    },
                )

    return {"created": created, "updated": updated, "skipped": skipped}
