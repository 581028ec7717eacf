"""Daily-claim reset boundary and claim state machine.

A claim period starts at a fixed wall-clock instant (06:30 Europe/Berlin by
default) and lasts until the same instant on the next calendar day. For any
claiming identity the state is one of:

- ``NEVER_CLAIMED``             no row in ``daily_rewards``
- ``CLAIMED_BEFORE_LAST_RESET`` last claim predates the current period
- ``CLAIMED_AFTER_LAST_RESET``  already claimed in the current period

Only the last state denies a claim. Everything here is a pure function of the
``now`` it is given; callers inject the clock.

Instants are compared in UTC. Aware datetimes that share a ``tzinfo`` compare
by wall time in Python, which would be wrong across a DST change.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from enum import Enum
from zoneinfo import ZoneInfo

from currency_server.ledger.types import RetryAfter


class ClaimState(str, Enum):
    NEVER_CLAIMED = "never_claimed"
    CLAIMED_BEFORE_LAST_RESET = "claimed_before_last_reset"
    CLAIMED_AFTER_LAST_RESET = "claimed_after_last_reset"

    @property
    def allows_claim(self) -> bool:
        return self is not ClaimState.CLAIMED_AFTER_LAST_RESET


@dataclass(frozen=True, slots=True)
class ResetSchedule:
    """Wall-clock time of the daily reset in a reference timezone."""

    hour: int = 6
    minute: int = 30
    timezone: str = "Europe/Berlin"

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def local(self, now: datetime) -> datetime:
        """Express ``now`` in the reference timezone."""
        if now.tzinfo is None:
            raise ValueError("now must be timezone-aware")
        return now.astimezone(self.tzinfo)

    def local_date(self, now: datetime) -> date:
        """Calendar date of ``now`` in the reference timezone."""
        return self.local(now).date()

    def last_reset(self, now: datetime) -> datetime:
        """Most recent reset instant at or before ``now`` (reference timezone)."""
        local_now = self.local(now)
        reset = local_now.replace(hour=self.hour, minute=self.minute, second=0, microsecond=0)
        if local_now.astimezone(UTC) < reset.astimezone(UTC):
            reset = reset - timedelta(days=1)
        return reset

    def next_reset(self, now: datetime) -> datetime:
        """Start of the following claim period (reference timezone)."""
        return self.last_reset(now) + timedelta(days=1)


def claim_state(last_claim_at: datetime | None, now: datetime, schedule: ResetSchedule) -> ClaimState:
    """Classify a claiming identity relative to the period containing ``now``."""
    if last_claim_at is None:
        return ClaimState.NEVER_CLAIMED
    last_reset = schedule.last_reset(now).astimezone(UTC)
    if last_claim_at.astimezone(UTC) >= last_reset:
        return ClaimState.CLAIMED_AFTER_LAST_RESET
    return ClaimState.CLAIMED_BEFORE_LAST_RESET


def retry_after(now: datetime, schedule: ResetSchedule) -> RetryAfter:
    """Time remaining until the next period opens."""
    return RetryAfter(schedule.next_reset(now).astimezone(UTC) - now.astimezone(UTC))
