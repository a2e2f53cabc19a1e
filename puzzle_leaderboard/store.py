"""
Store adapters for the leaderboard.

Two primitives back the whole service: a sorted set of player name -> best
time, and one hash per player holding ``time, moves, updated, last_submit``.
Callers only ever see the ``BestStore`` / ``UserStore`` interfaces below; reply
shapes of the backing store stay inside this module.
"""

import logging
import threading
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Tuple

import requests

LOGGER = logging.getLogger(__name__)


class StoreError(RuntimeError):
    """The external store failed or returned something unusable."""


class StoreNotConfigured(StoreError):
    def __init__(self, message: str = "store not configured"):
        super().__init__(message)


class BestStore(Protocol):
    def record_if_better(self, name: str, time_ms: int) -> bool: ...

    def top_n(self, n: int) -> List[Tuple[str, int]]: ...


class UserStore(Protocol):
    def get(self, name: str) -> Dict[str, str]: ...

    def upsert(self, name: str, fields: Mapping[str, object]) -> None: ...

    def moves_for(self, names: List[str]) -> List[int]: ...


def _to_int(value, default: int = 0) -> int:
    if value is None:
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def _pairs(flat) -> Iterable[Tuple[object, object]]:
    if not isinstance(flat, list):
        raise StoreError(f"expected a flat array reply, got {type(flat).__name__}")
    return zip(flat[0::2], flat[1::2])


class UpstashClient:
    """Minimal client for the Upstash Redis REST API."""

    def __init__(self, url: str, token: str, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        self.url = url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Authorization": f"Bearer {token}"})

    def _post(self, url: str, payload: list):
        try:
            resp = self.session.post(url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise StoreError(f"store request failed: {e}") from e
        if not resp.ok:
            raise StoreError(f"store returned {resp.status_code}: {resp.text or 'no body'}")
        try:
            return resp.json()
        except ValueError as e:
            raise StoreError("store returned invalid JSON") from e

    def call(self, *command):
        data = self._post(self.url, list(command))
        if not isinstance(data, dict):
            raise StoreError(f"unexpected reply to {command[0]}")
        if data.get("error"):
            raise StoreError(f"{command[0]} failed: {data['error']}")
        return data.get("result")

    def pipeline(self, commands: List[list]) -> list:
        if not commands:
            return []
        data = self._post(f"{self.url}/pipeline", [list(c) for c in commands])
        if not isinstance(data, list) or len(data) != len(commands):
            raise StoreError("unexpected pipeline reply")
        results = []
        for cmd, item in zip(commands, data):
            if not isinstance(item, dict) or item.get("error"):
                detail = item.get("error") if isinstance(item, dict) else item
                raise StoreError(f"{cmd[0]} failed: {detail}")
            results.append(item.get("result"))
        return results


class UpstashStore:
    """Both store interfaces on top of one Upstash database."""

    def __init__(self, client: UpstashClient, prefix: str = "puzzle"):
        self.client = client
        self.best_key = f"{prefix}:best_time"
        self.user_prefix = f"{prefix}:user:"

    def user_key(self, name: str) -> str:
        return self.user_prefix + name

    def record_if_better(self, name, time_ms):
        # LT only updates when the new score is lower; CH makes the reply
        # count updates as well as inserts.
        changed = self.client.call("ZADD", self.best_key, "LT", "CH", time_ms, name)
        return _to_int(changed) > 0

    def top_n(self, n):
        if n <= 0:
            return []
        flat = self.client.call("ZRANGE", self.best_key, 0, n - 1, "WITHSCORES") or []
        return [(str(member), _to_int(score)) for member, score in _pairs(flat)]

    def get(self, name):
        flat = self.client.call("HGETALL", self.user_key(name)) or []
        return {str(k): str(v) for k, v in _pairs(flat)}

    def upsert(self, name, fields):
        if not fields:
            return
        args = []
        for field, value in fields.items():
            args.extend([field, value])
        self.client.call("HSET", self.user_key(name), *args)

    def moves_for(self, names):
        replies = self.client.pipeline([["HGET", self.user_key(n), "moves"] for n in names])
        return [_to_int(r) for r in replies]


class MemoryStore:
    """In-process store with the same semantics, for tests and local runs."""

    def __init__(self):
        self._lock = threading.Lock()
        self.best: Dict[str, int] = {}
        self.users: Dict[str, Dict[str, str]] = {}
        self.writes = 0

    def record_if_better(self, name, time_ms):
        with self._lock:
            current = self.best.get(name)
            if current is not None and time_ms >= current:
                return False
            self.best[name] = int(time_ms)
            self.writes += 1
            return True

    def top_n(self, n):
        with self._lock:
            ranked = sorted(self.best.items(), key=lambda kv: (kv[1], kv[0]))
        return ranked[:max(n, 0)]

    def get(self, name):
        with self._lock:
            return dict(self.users.get(name, {}))

    def upsert(self, name, fields):
        with self._lock:
            record = self.users.setdefault(name, {})
            record.update({k: str(v) for k, v in fields.items()})
            self.writes += 1

    def moves_for(self, names):
        with self._lock:
            return [_to_int(self.users.get(n, {}).get("moves")) for n in names]
