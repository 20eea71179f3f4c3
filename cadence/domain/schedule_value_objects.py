"""
Schedule Policies

Timing policies for the periodic task runner. Each policy is an immutable
value object with two pure functions computing fire instants on the
runner clock's monotonic scale:

    first_fire_time(registered_at, wall_now)
    next_fire_time(previous_fire_time, completed_at, wall_now, previous_fire_at=None)

wall_now is the wall-clock reading taken at the same moment as the monotonic
argument that follows it (registered_at or completed_at). previous_fire_at is
the wall instant the previous firing was scheduled for. Only Cron uses the
wall-clock arguments.
"""
from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from cadence.domain.cron import CronExpression
from cadence.domain.errors import InvalidPolicyError


def _require_period(period: float) -> None:
    if isinstance(period, bool) or not isinstance(period, (int, float)):
        raise InvalidPolicyError(f"period must be a number of seconds, got {period!r}")
    if not period > 0:
        raise InvalidPolicyError(f"period must be > 0, got {period}")


def _require_delay(delay: float) -> None:
    if isinstance(delay, bool) or not isinstance(delay, (int, float)):
        raise InvalidPolicyError(f"initial_delay must be a number of seconds, got {delay!r}")
    if delay < 0:
        raise InvalidPolicyError(f"initial_delay must be >= 0, got {delay}")


def _next_rate_slot(previous_fire_time: float, period: float, completed_at: float) -> float:
    """
    Next fixed-rate slot after `previous_fire_time`.

    If the run overran one or more periods, every missed slot collapses into
    the latest one not after `completed_at`, which fires immediately.
    """
    next_fire = previous_fire_time + period
    if next_fire < completed_at:
        missed = math.floor((completed_at - next_fire) / period)
        next_fire += missed * period
    return next_fire


def _nearest_minute(moment: datetime) -> datetime:
    floor = moment.replace(second=0, microsecond=0)
    if moment - floor >= timedelta(seconds=30):
        return floor + timedelta(minutes=1)
    return floor


class SchedulePolicy(ABC):
    """Base class for schedule policies."""

    @abstractmethod
    def first_fire_time(self, registered_at: float, wall_now: datetime) -> float:
        """Fire time of the first execution."""

    @abstractmethod
    def next_fire_time(
        self,
        previous_fire_time: float,
        completed_at: float,
        wall_now: datetime,
        previous_fire_at: Optional[datetime] = None,
    ) -> float:
        """Fire time of the execution following one that just completed."""


@dataclass(frozen=True)
class FixedRate(SchedulePolicy):
    """Fire every `period` seconds measured from the first firing, regardless of run time."""

    period: float

    def __post_init__(self):
        _require_period(self.period)

    def first_fire_time(self, registered_at: float, wall_now: datetime) -> float:
        return registered_at

    def next_fire_time(
        self,
        previous_fire_time: float,
        completed_at: float,
        wall_now: datetime,
        previous_fire_at: Optional[datetime] = None,
    ) -> float:
        return _next_rate_slot(previous_fire_time, self.period, completed_at)


@dataclass(frozen=True)
class FixedDelay(SchedulePolicy):
    """Fire `period` seconds after the previous run completed."""

    period: float

    def __post_init__(self):
        _require_period(self.period)

    def first_fire_time(self, registered_at: float, wall_now: datetime) -> float:
        return registered_at

    def next_fire_time(
        self,
        previous_fire_time: float,
        completed_at: float,
        wall_now: datetime,
        previous_fire_at: Optional[datetime] = None,
    ) -> float:
        return completed_at + self.period


@dataclass(frozen=True)
class InitialDelayThenFixedRate(SchedulePolicy):
    """Wait `initial_delay` after registration, then fire at a fixed rate."""

    initial_delay: float
    period: float

    def __post_init__(self):
        _require_delay(self.initial_delay)
        _require_period(self.period)

    def first_fire_time(self, registered_at: float, wall_now: datetime) -> float:
        return registered_at + self.initial_delay

    def next_fire_time(
        self,
        previous_fire_time: float,
        completed_at: float,
        wall_now: datetime,
        previous_fire_at: Optional[datetime] = None,
    ) -> float:
        return _next_rate_slot(previous_fire_time, self.period, completed_at)


@dataclass(frozen=True)
class Cron(SchedulePolicy):
    """
    Fire at every instant matching a five-field cron expression.

    The expression is parsed on construction, so malformed input fails at
    registration time rather than at run time.
    """

    expression: str
    parsed: CronExpression = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "parsed", CronExpression.parse(self.expression))

    def _fire_after(self, monotonic_now: float, wall_now: datetime, not_before: Optional[datetime] = None) -> float:
        reference = wall_now if not_before is None else max(wall_now, _nearest_minute(not_before))
        next_wall = self.parsed.next_after(reference)
        return monotonic_now + (next_wall.timestamp() - wall_now.timestamp())

    def first_fire_time(self, registered_at: float, wall_now: datetime) -> float:
        return self._fire_after(registered_at, wall_now)

    def next_fire_time(
        self,
        previous_fire_time: float,
        completed_at: float,
        wall_now: datetime,
        previous_fire_at: Optional[datetime] = None,
    ) -> float:
        # A wall clock running slightly behind must not select the slot that just fired
        return self._fire_after(completed_at, wall_now, previous_fire_at)
