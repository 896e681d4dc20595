"""Wall clock helpers.

All timestamps in PresenceGuard are integer epoch milliseconds (UTC).
Components take a ``clock`` callable so tests can pin time.
"""

import time
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], int]


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def start_of_utc_day(timestamp_ms: int) -> int:
    """Epoch milliseconds of midnight UTC on the timestamp's day."""
    moment = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    midnight = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    return int(midnight.timestamp() * 1000)


def hour_bucket(timestamp_ms: int) -> int:
    """Index of the clock hour containing the timestamp."""
    return timestamp_ms // 3_600_000
