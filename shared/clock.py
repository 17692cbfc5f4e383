"""Injectable wall clock.

Services take a ``Clock`` callable instead of calling ``datetime.now``
directly so tests can move time forward without sleeping.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def seconds_until(deadline: datetime, now: datetime) -> int:
    """Whole seconds from *now* to *deadline*, rounded up; never negative."""
    remaining = (deadline - now).total_seconds()
    if remaining <= 0:
        return 0
    whole = int(remaining)
    return whole if whole == remaining else whole + 1
