import os
from dataclasses import dataclass
from typing import Optional

URL_ENV = "UPSTASH_REDIS_REST_URL"
TOKEN_ENV = "UPSTASH_REDIS_REST_TOKEN"
PREFIX_ENV = "LEADERBOARD_KEY_PREFIX"
TIMEOUT_ENV = "LEADERBOARD_STORE_TIMEOUT"
LOG_LEVEL_ENV = "LEADERBOARD_LOG_LEVEL"

DEFAULT_PREFIX = "puzzle"


@dataclass(frozen=True)
class Config:
    store_url: Optional[str]
    store_token: Optional[str]
    key_prefix: str = DEFAULT_PREFIX
    timeout: Optional[float] = None
    log_level: str = "INFO"

    @property
    def configured(self) -> bool:
        return bool(self.store_url and self.store_token)

    def __str__(self) -> str:
        """Safe string representation that masks the token."""
        return (
            f"Config(store_url={self.store_url}, "
            f"store_token={'***REDACTED***' if self.store_token else 'None'}, "
            f"key_prefix={self.key_prefix}, "
            f"timeout={self.timeout}, "
            f"log_level={self.log_level})"
        )


def _normalize(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    trimmed = value.strip().strip('"').strip("'").strip()
    return trimmed or None


def _parse_timeout(raw: Optional[str]) -> Optional[float]:
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    return value if value > 0 else None


def load_config(environ=None) -> Config:
    env = os.environ if environ is None else environ
    url = _normalize(env.get(URL_ENV))
    return Config(
        store_url=url.rstrip("/") if url else None,
        store_token=_normalize(env.get(TOKEN_ENV)),
        key_prefix=_normalize(env.get(PREFIX_ENV)) or DEFAULT_PREFIX,
        timeout=_parse_timeout(_normalize(env.get(TIMEOUT_ENV))),
        log_level=(_normalize(env.get(LOG_LEVEL_ENV)) or "INFO").upper(),
    )
