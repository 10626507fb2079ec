"""
Drag selection over the calendar grid, as a pure reducer.

Every gesture event takes a SelectionState and returns a new one; nothing is
shared or mutated between renders. A release hands back the envelope of the
selected slots as a single CandidateRange.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import time
from enum import Enum
from typing import Iterable, Mapping

from .timeutils import SLOT_MINUTES, add_minutes, label_to_time, minutes_between


class GestureKind(str, Enum):
    PRESS = "press"
    ENTER = "enter"
    RELEASE = "release"


@dataclass(frozen=True)
class GestureEvent:
    kind: GestureKind
    court: str = ""
    label: str = ""


@dataclass(frozen=True)
class SelectionGrid:
    """
    What the selection needs to know about the rendered grid: the slot labels
    in display order and, per court, the labels that are booked or past.
    """

    labels: tuple[str, ...]
    unavailable: Mapping[str, frozenset[str]] = field(default_factory=dict)

    def index_of(self, label: str) -> int | None:
        try:
            return self.labels.index(label)
        except ValueError:
            return None

    def is_selectable(self, court: str, label: str) -> bool:
        if court not in self.unavailable or self.index_of(label) is None:
            return False
        return label not in self.unavailable[court]

    @classmethod
    def from_index(
        cls,
        labels: Iterable[str],
        index,
        *,
        courts: Iterable[str],
        past_labels: Iterable[str] = (),
        blocked_courts: Iterable[str] = (),
    ) -> "SelectionGrid":
        """
        Courts in `blocked_courts` (maintenance, closed) have no selectable slots.
        """
        labels = tuple(labels)
        past = frozenset(past_labels)
        blocked = set(blocked_courts)
        return cls(
            labels=labels,
            unavailable={
                name: frozenset(labels) if name in blocked else index.occupied_labels(name) | past
                for name in courts
            },
        )


@dataclass(frozen=True)
class CandidateRange:
    court: str
    start_time: time
    end_time: time
    slot_count: int

    @property
    def duration_minutes(self) -> int:
        return minutes_between(self.start_time, self.end_time)


@dataclass(frozen=True)
class SelectionState:
    dragging: bool = False
    court: str | None = None
    anchor: str | None = None
    current: str | None = None
    selected: tuple[str, ...] = ()
    committed: CandidateRange | None = None


IDLE = SelectionState()


def press(state: SelectionState, grid: SelectionGrid, court: str, label: str) -> SelectionState:
    if state.dragging:
        return state
    if not grid.is_selectable(court, label):
        return state
    return SelectionState(dragging=True, court=court, anchor=label, current=label, selected=(label,))


def enter(state: SelectionState, grid: SelectionGrid, court: str, label: str) -> SelectionState:
    if not state.dragging or court != state.court:
        return state
    if not grid.is_selectable(court, label):
        return state

    anchor_index = grid.index_of(state.anchor)
    current_index = grid.index_of(label)
    low, high = min(anchor_index, current_index), max(anchor_index, current_index)
    selected = tuple(
        candidate
        for candidate in grid.labels[low : high + 1]
        if grid.is_selectable(court, candidate)
    )
    return replace(state, current=label, selected=selected)


def release(state: SelectionState, grid: SelectionGrid) -> SelectionState:
    if not state.dragging:
        return state
    committed = envelope(state.court, state.selected, grid) if state.selected else None
    return replace(IDLE, committed=committed)


def envelope(court: str, selected: Iterable[str], grid: SelectionGrid) -> CandidateRange:
    """
    Earliest start to latest end over the selected slots.
    """
    ordered = sorted(selected, key=lambda label: grid.index_of(label))
    if not ordered:
        raise ValueError("Cannot build a booking range from an empty selection.")
    start = label_to_time(ordered[0])
    end = add_minutes(label_to_time(ordered[-1]), SLOT_MINUTES)
    return CandidateRange(court=court, start_time=start, end_time=end, slot_count=len(ordered))


def reduce(state: SelectionState, grid: SelectionGrid, event: GestureEvent) -> SelectionState:
    kind = GestureKind(event.kind)
    if kind is GestureKind.PRESS:
        return press(state, grid, event.court, event.label)
    if kind is GestureKind.ENTER:
        return enter(state, grid, event.court, event.label)
    return release(state, grid)


def resolve(grid: SelectionGrid, events: Iterable[GestureEvent], state: SelectionState = IDLE) -> SelectionState:
    for event in events:
        state = reduce(state, grid, event)
    return state
