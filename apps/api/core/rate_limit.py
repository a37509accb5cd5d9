"""
Password Login Cooldown

Garmin locks accounts that attempt password logins too often, so each
username may only complete one password login per cooldown window.
Token-based requests are never gated.

The store is injected (see get_login_cooldown_store) rather than held in a
module global: Redis-backed in deployment so the window survives restarts
and is shared across workers, in-memory for local runs and tests.
"""
import math
import threading
import time
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Callable
from fastapi import Request
import redis
from redis.exceptions import RedisError
from core.cache import get_redis_client
from core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CooldownStatus:
    ok: bool
    wait_s: float = 0.0

    @property
    def wait_seconds_rounded(self) -> int:
        return int(math.ceil(self.wait_s))


class LoginCooldownStore:
    """Interface: check(username) before a password login, mark(username) after a successful one."""

    def __init__(self, window_s: int):
        self.window_s = window_s

    def check(self, username: str) -> CooldownStatus:
        raise NotImplementedError

    def mark(self, username: str) -> None:
        raise NotImplementedError


class InMemoryLoginCooldownStore(LoginCooldownStore):
    """Single-process store. Resets on restart."""

    def __init__(self, window_s: int, clock: Callable[[], float] = time.monotonic):
        super().__init__(window_s)
        self._clock = clock
        self._last_attempt: Dict[str, float] = {}
        self._lock = threading.Lock()

    def check(self, username: str) -> CooldownStatus:
        now = self._clock()
        with self._lock:
            last = self._last_attempt.get(username)
            if last is not None and now - last >= self.window_s:
                # expired
                del self._last_attempt[username]
                last = None
        if last is None:
            return CooldownStatus(ok=True)
        wait_s = self.window_s - (now - last)
        return CooldownStatus(ok=wait_s <= 0, wait_s=max(0.0, wait_s))

    def mark(self, username: str) -> None:
        with self._lock:
            self._last_attempt[username] = self._clock()


class RedisLoginCooldownStore(LoginCooldownStore):
    """Shared store: one key per username, expiring with the window."""

    KEY_PREFIX = "login_cooldown"

    def __init__(self, client: redis.Redis, window_s: int):
        super().__init__(window_s)
        self.client = client

    def _key(self, username: str) -> str:
        return f"{self.KEY_PREFIX}:{username}"

    def check(self, username: str) -> CooldownStatus:
        try:
            ttl = self.client.ttl(self._key(username))
        except RedisError as e:
            # Fail open, same as the rest of the Redis-backed helpers
            logger.error(f"Login cooldown check error: {e}")
            return CooldownStatus(ok=True)
        # -2: no key, -1: key without expiry (should not happen; treat as expired)
        if ttl is None or ttl <= 0:
            return CooldownStatus(ok=True)
        return CooldownStatus(ok=False, wait_s=float(ttl))

    def mark(self, username: str) -> None:
        if self.window_s <= 0:
            return
        try:
            self.client.set(self._key(username), int(time.time()), ex=self.window_s)
        except RedisError as e:
            logger.error(f"Login cooldown mark error: {e}")


def create_login_cooldown_store(window_s: Optional[int] = None) -> LoginCooldownStore:
    """Redis-backed when Redis answers, otherwise in-memory."""
    window = settings.PASSWORD_LOGIN_COOLDOWN_S if window_s is None else window_s
    client = get_redis_client()
    if client is not None:
        return RedisLoginCooldownStore(client, window)
    logger.warning("Login cooldowns are process-local (Redis unavailable)")
    return InMemoryLoginCooldownStore(window)


def get_login_cooldown_store(request: Request) -> LoginCooldownStore:
    """FastAPI dependency. The store is created once per app at startup."""
    store = getattr(request.app.state, "login_cooldowns", None)
    if store is None:
        store = create_login_cooldown_store()
        request.app.state.login_cooldowns = store
    return store
