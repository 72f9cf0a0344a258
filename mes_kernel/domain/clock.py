"""
Clocks for the production board.

Transitions stamp their log entries and items with ``clock.now()``; nothing
in the domain or engines reads the wall clock itself.  The daily recap
counts "today" in the clock's zone, so a workshop running on WIB passes a
``SystemClock(WORKSHOP_TZ)``.

    SystemClock         wall time, for the running board
    DeterministicClock  frozen time that only moves when told, for tests
                        and scripted demos
    SequentialClock     replays a fixed list of instants
"""

from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta, timezone, tzinfo

# Western Indonesia Time, where the workshop floor is.
WORKSHOP_TZ = timezone(timedelta(hours=7), "WIB")

_DEFAULT_SHIFT_START = datetime(2026, 1, 5, 8, 0, tzinfo=WORKSHOP_TZ)


class Clock(ABC):
    """Source of aware datetimes for anything that records when it happened."""

    @abstractmethod
    def now(self) -> datetime:
        ...

    def now_utc(self) -> datetime:
        return self.now().astimezone(UTC)


class SystemClock(Clock):
    """Wall time in ``tz``, or the host's local zone when ``tz`` is None."""

    def __init__(self, tz: tzinfo | None = None):
        self._tz = tz

    def now(self) -> datetime:
        current = datetime.now(UTC)
        return current.astimezone(self._tz) if self._tz is not None else current.astimezone()


class DeterministicClock(Clock):
    """
    A clock standing still at ``start`` until moved.

    Repeated ``now()`` calls return the same instant, which is what makes
    every entry of one transition share a timestamp in tests.  ``advance``
    and ``tick`` move forward in seconds; ``set_time`` jumps and forgets any
    earlier advance.
    """

    def __init__(self, start: datetime | None = None):
        self._origin = start if start is not None else _DEFAULT_SHIFT_START
        self._offset = timedelta()

    def now(self) -> datetime:
        return self._origin + self._offset

    def set_time(self, moment: datetime) -> None:
        self._origin = moment
        self._offset = timedelta()

    def advance(self, seconds: int = 1) -> None:
        self._offset += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        self.advance()
        return self.now()


class SequentialClock(Clock):
    """Hands out ``moments`` in order, then keeps returning the final one."""

    def __init__(self, moments: list[datetime]):
        if not moments:
            raise ValueError("SequentialClock needs at least one moment")
        self._moments = tuple(moments)
        self._cursor = 0

    def now(self) -> datetime:
        moment = self._moments[self._cursor]
        if self._cursor < len(self._moments) - 1:
            self._cursor += 1
        return moment
