"""
Expansion of a working period into bookable slot windows.

A working period is either a same-day interval or an overnight interval
whose UTC end falls on the next calendar day. Overnight periods are cut
into [start, 23:59] and [00:00, end]; both halves still belong to the one
schedule of the day the shift started on.
"""

from dataclasses import dataclass
from typing import List, Tuple, Union

from medschedule.core.time_utils import END_OF_DAY, MIDNIGHT, ClockTime

Window = Tuple[ClockTime, ClockTime]


@dataclass(frozen=True)
class SlotWindow:
    start_time: ClockTime
    end_time: ClockTime

    @property
    def duration(self) -> int:
        return self.end_time.minutes - self.start_time.minutes

    def to_dict(self):
        return {"start_time": str(self.start_time), "end_time": str(self.end_time)}

    def overlaps(self, other: "SlotWindow") -> bool:
        return self.start_time < other.end_time and other.start_time < self.end_time


@dataclass(frozen=True)
class SameDayPeriod:
    start: ClockTime
    end: ClockTime

    crosses_midnight = False

    def segments(self) -> List[Window]:
        return [(self.start, self.end)]


@dataclass(frozen=True)
class OvernightPeriod:
    start: ClockTime
    end: ClockTime

    crosses_midnight = True

    def segments(self) -> List[Window]:
        return [(self.start, END_OF_DAY), (MIDNIGHT, self.end)]


WorkingPeriod = Union[SameDayPeriod, OvernightPeriod]


def period_windows(period: WorkingPeriod) -> List[SlotWindow]:
    return [SlotWindow(start, end) for start, end in period.segments() if start < end]


def period_contains(period: WorkingPeriod, window: SlotWindow) -> bool:
    return any(
        segment.start_time <= window.start_time and window.end_time <= segment.end_time
        for segment in period_windows(period)
    )


def periods_overlap(first: WorkingPeriod, second: WorkingPeriod) -> bool:
    return any(a.overlaps(b) for a in period_windows(first) for b in period_windows(second))


def working_period(start_time: Union[str, ClockTime], end_time: Union[str, ClockTime]) -> WorkingPeriod:
    start = start_time if isinstance(start_time, ClockTime) else ClockTime.parse(start_time)
    end = end_time if isinstance(end_time, ClockTime) else ClockTime.parse(end_time)
    if end > start:
        return SameDayPeriod(start, end)
    return OvernightPeriod(start, end)


def _check_durations(slot_duration: int, break_duration: int) -> None:
    if slot_duration <= 0:
        raise ValueError("Slot duration must be a positive number of minutes")
    if break_duration < 0:
        raise ValueError("Break duration cannot be negative")


def segment_window(
    start: ClockTime, end: ClockTime, slot_duration: int, break_duration: int
) -> List[SlotWindow]:
    """
    Walk from ``start`` to ``end`` emitting slots of ``slot_duration``.

    The cursor moves by slot + break after each slot. A slot that would
    overrun ``end`` is cut to end exactly there, so every minute up to the
    boundary is covered apart from the breaks.
    """
    _check_durations(slot_duration, break_duration)

    slots = []
    cursor = start.minutes
    boundary = end.minutes
    while cursor < boundary:
        slot_end = min(cursor + slot_duration, boundary)
        slots.append(SlotWindow(ClockTime.from_minutes(cursor), ClockTime.from_minutes(slot_end)))
        cursor += slot_duration + break_duration
    return slots


def generate_slots(
    start_time: Union[str, ClockTime],
    end_time: Union[str, ClockTime],
    slot_duration: int,
    break_duration: int,
) -> List[SlotWindow]:
    period = working_period(start_time, end_time)
    slots = []
    for segment_start, segment_end in period.segments():
        slots.extend(segment_window(segment_start, segment_end, slot_duration, break_duration))
    return slots
