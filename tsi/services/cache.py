from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from cachetools import TLRUCache

from tsi.schemas import Chain, TokenIdentity

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class _Item:
    value: Any
    expires_at: float

class EdgeCache:
    """Key/value store with per-entry TTL, shared by every request."""

    async def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    async def put(self, key: str, value: Any, ttl: float) -> None:
        raise NotImplementedError

    async def incr(self, key: str, ttl: float) -> int:
        raise NotImplementedError

class MemoryEdgeCache(EdgeCache):
    def __init__(self, maxsize: int = 10000, timer: Callable[[], float] = time.time):
        self._timer = timer
        self._data = TLRUCache(maxsize=maxsize, ttu=lambda _k, item, _now: item.expires_at, timer=timer)

    async def get(self, key: str) -> Optional[Any]:
        item = self._data.get(key)
        if item is None:
            return None
        return json.loads(item.value)

    async def put(self, key: str, value: Any, ttl: float) -> None:
        self._data[key] = _Item(json.dumps(value), self._timer() + ttl)

    async def incr(self, key: str, ttl: float) -> int:
        item = self._data.get(key)
        if item is None:
            count, expires_at = 1, self._timer() + ttl
        else:
            count, expires_at = int(json.loads(item.value)) + 1, item.expires_at
        self._data[key] = _Item(json.dumps(count), expires_at)
        return count

def report_key(chain: Chain, address: str) -> str:
    return f"inspect:{chain.value}:{address.lower()}"

def identity_key(chain: Chain, address: str) -> str:
    return f"identity:{chain.value}:{address.lower()}"

def rate_limit_key(ip: str, window_index: int) -> str:
    return f"ratelimit:{ip}:{window_index}"

@dataclass
class CachedReport:
    payload: dict
    stored_at: float

    def is_fresh(self, now: float, ttl: float) -> bool:
        return now - self.stored_at < ttl

async def get_cached_report(cache: EdgeCache, chain: Chain, address: str) -> Optional[CachedReport]:
    entry = await cache.get(report_key(chain, address))
    if not isinstance(entry, dict) or not isinstance(entry.get("payload"), dict):
        return None
    return CachedReport(payload=entry["payload"], stored_at=float(entry.get("storedAt", 0)))

async def put_cached_report(
    cache: EdgeCache, chain: Chain, address: str, payload: dict, now: float, ttl: float
) -> None:
    await cache.put(report_key(chain, address), {"payload": payload, "storedAt": now}, ttl)

async def get_cached_identity(cache: EdgeCache, chain: Chain, address: str) -> Optional[TokenIdentity]:
    try:
        entry = await cache.get(identity_key(chain, address))
        if not isinstance(entry, dict) or "token" not in entry:
            return None
        return TokenIdentity.model_validate(entry["token"])
    except Exception:
        logger.warning("Identity cache read failed for %s:%s", chain.value, address, exc_info=True)
        return None

async def put_cached_identity(
    cache: EdgeCache, chain: Chain, address: str, token: TokenIdentity, ttl: float
) -> None:
    """Best effort: a failed write is logged and never reaches the caller."""
    try:
        await cache.put(identity_key(chain, address), {"token": token.model_dump()}, ttl)
    except Exception:
        logger.warning("Identity cache write failed for %s:%s", chain.value, address, exc_info=True)

@dataclass
class RateLimitDecision:
    allowed: bool
    count: Optional[int]
    retry_after: int

async def check_rate_limit(
    cache: EdgeCache, ip: str, limit: int, window: int, now: Optional[float] = None
) -> RateLimitDecision:
    now = time.time() if now is None else now
    window_index = int(now // window)
    try:
        count = await cache.incr(rate_limit_key(ip, window_index), window)
    except Exception:
        logger.warning("Rate limit counter unavailable for %s; allowing request", ip, exc_info=True)
        return RateLimitDecision(allowed=True, count=None, retry_after=window)
    return RateLimitDecision(allowed=count <= limit, count=count, retry_after=window)
