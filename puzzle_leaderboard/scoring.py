import logging
import math
import re
import time
from typing import Callable, List, Optional, Union

from .models import Rejection, ScoreEntry, Submission
from .store import BestStore, StoreError, UserStore

LOGGER = logging.getLogger(__name__)

DEFAULT_NAME = "Anon"
MAX_NAME_LENGTH = 40
MIN_TIME_MS = 2000
MAX_TIME_MS = 60 * 60 * 1000
MAX_MOVES = 5000
RATE_LIMIT_MS = 5000
TOP_LIMIT = 10

CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]+")


def now_ms() -> int:
    return int(time.time() * 1000)


def sanitize_name(name) -> str:
    if not name:
        return DEFAULT_NAME
    cleaned = CONTROL_CHARS.sub("", str(name).strip()).strip()
    return cleaned[:MAX_NAME_LENGTH] or DEFAULT_NAME


def coerce_number(value) -> Optional[Union[int, float]]:
    """Loose numeric coercion for client input.

    Missing and blank values count as 0, numeric strings are accepted,
    fractions are floored and negatives clamp to 0. Strings or floats that
    overflow to infinity come back as ``math.inf`` so bounds checks reject
    them as too large; big ints pass through unchanged.
    Returns None when the value is not a number at all (including NaN).
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return max(0, value)
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    if math.isinf(number):
        return math.inf if number > 0 else 0
    return max(0, math.floor(number))


def check_submission(sub: Submission) -> Union[ScoreEntry, Rejection]:
    name = sanitize_name(sub.name)
    t = coerce_number(sub.time)
    m = coerce_number(sub.moves)
    if t is None:
        t = 0

    if t < MIN_TIME_MS:
        return Rejection(code="too_fast", message=f"time too small (<{MIN_TIME_MS}ms)")
    if t > MAX_TIME_MS:
        return Rejection(code="time_too_large", message="time value seems invalid")
    if m is None or m < 0 or m > MAX_MOVES:
        return Rejection(code="moves_invalid", message="moves value invalid")
    return ScoreEntry(name=name, time=t, moves=m)


class Leaderboard:
    """Submit and top-N on top of a best-time store and a per-user store.

    The cooldown check reads ``last_submit`` and writes afterwards without a
    lock, so two simultaneous submissions for one name can both pass it.
    The best time itself is still guarded by the store's atomic set-if-lower.
    """

    def __init__(self, best: BestStore, users: UserStore,
                 clock: Callable[[], int] = now_ms):
        self.best = best
        self.users = users
        self.clock = clock

    def submit(self, sub: Submission) -> Optional[Rejection]:
        """Returns None when the run was accepted, otherwise the rejection."""
        checked = check_submission(sub)
        if isinstance(checked, Rejection):
            LOGGER.info("rejected submission: %s", checked.code)
            return checked
        entry = checked

        record = self.users.get(entry.name)
        now = self.clock()
        last = coerce_number(record.get("last_submit")) or 0
        if last and now - last < RATE_LIMIT_MS:
            wait = max(1, math.ceil((RATE_LIMIT_MS - (now - last)) / 1000))
            LOGGER.info("rate limited %r for %ss", entry.name, wait)
            return Rejection(code="rate_limited",
                             message=f"submit too often. wait {wait}s",
                             retry_after=wait)

        improved = self.best.record_if_better(entry.name, entry.time)
        fields = {"moves": entry.moves, "updated": now, "last_submit": now}
        if improved:
            fields["time"] = entry.time
        self.users.upsert(entry.name, fields)
        LOGGER.info("accepted %r time=%s moves=%s improved=%s",
                    entry.name, entry.time, entry.moves, improved)
        return None

    def top(self, limit: int = TOP_LIMIT) -> List[ScoreEntry]:
        rows = self.best.top_n(limit)
        if not rows:
            return []
        try:
            moves = self.users.moves_for([name for name, _ in rows])
        except StoreError as e:
            LOGGER.warning("moves lookup failed, serving zeros: %s", e)
            moves = [0] * len(rows)
        entries = [ScoreEntry(name=name, time=t, moves=m)
                   for (name, t), m in zip(rows, moves)]
        entries.sort(key=lambda e: (e.time, e.moves, e.name))
        return entries
