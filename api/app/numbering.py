"""Daily order numbers of the form ``YYYYMMDDNNNN``.

The sequence comes from a per-day counter incremented atomically by the order
store. When the store cannot be reached a timestamp based number is issued
instead, shaped ``YYYYMMDD-TTTRRR`` (millisecond and random digits). Such
numbers are only probabilistically unique so the order is flagged, a warning
is logged and ``order_numbers_degraded_total`` is bumped.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from zoneinfo import ZoneInfo

from .domain.errors import StoreUnavailable
from .routes_metrics import order_numbers_degraded_total

logger = logging.getLogger("api.orders")

DEGRADED_MARKER = "-"


class CounterUnavailable(Exception):
    """The daily counter store could not be reached."""


class DailyCounter(Protocol):
    async def incr_day(self, day: str) -> int:
        """Atomically increment and return the counter for ``day``."""


@dataclass(frozen=True)
class OrderNumber:
    value: str
    degraded: bool = False


def build_day_key(at: datetime, tz: ZoneInfo) -> str:
    """Return ``YYYYMMDD`` for ``at`` in the restaurant's timezone."""

    if at.tzinfo is None:
        raise ValueError("order timestamps must be timezone aware")
    return f"{at.astimezone(tz):%Y%m%d}"


def format_number(day: str, current: int) -> str:
    # Past 9999 the sequence widens instead of wrapping.
    return f"{day}{current:04d}"


class OrderNumberGenerator:
    """Issue order numbers from a :class:`DailyCounter`."""

    def __init__(
        self,
        timezone: str = "Asia/Kolkata",
        *,
        fallback: bool = True,
        rng: random.Random | None = None,
    ) -> None:
        self.tz = ZoneInfo(timezone)
        self.fallback = fallback
        self._rng = rng or random.SystemRandom()

    async def next(self, counter: DailyCounter, at: datetime) -> OrderNumber:
        day = build_day_key(at, self.tz)
        try:
            current = await counter.incr_day(day)
        except CounterUnavailable as exc:
            if not self.fallback:
                raise StoreUnavailable(
                    "order numbers are unavailable, try again shortly"
                ) from exc
            return self.degraded(day, at, exc)
        return OrderNumber(format_number(day, current))

    def degraded(self, day: str, at: datetime, cause: Exception | None = None) -> OrderNumber:
        """Return a timestamp + random suffix number for ``day``.

        The ``-`` marker keeps these out of the counter's all-digit space, so a
        degraded number can never be reissued once the counter is back.
        """

        millis = int(at.timestamp() * 1000) % 1000
        suffix = self._rng.randrange(1000)
        value = f"{day}{DEGRADED_MARKER}{millis:03d}{suffix:03d}"
        order_numbers_degraded_total.inc()
        logger.warning(
            "order counter unavailable, issued degraded number %s",
            value,
            extra={"order_number": value, "cause": str(cause) if cause else None},
        )
        return OrderNumber(value, degraded=True)


__all__ = [
    "CounterUnavailable",
    "DEGRADED_MARKER",
    "DailyCounter",
    "OrderNumber",
    "OrderNumberGenerator",
    "build_day_key",
    "format_number",
]
