from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, Optional

from dotenv import load_dotenv

from tsi.schemas import Chain

DEFAULT_EXPLORER_BASE_URL = "https://api.etherscan.io/v2/api"

def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    try:
        return float(raw) if raw else default
    except ValueError:
        return default

def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default

def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")

@dataclass
class Settings:
    explorer_api_key: str = ""
    explorer_base_url: str = DEFAULT_EXPLORER_BASE_URL
    rpc_urls: Dict[Chain, str] = field(default_factory=dict)
    explorer_timeout: float = 8.0
    rpc_timeout: float = 4.0
    cache_ttl: int = 86400
    stale_retention: int = 604800
    identity_cache_ttl: int = 604800
    rate_limit_max: int = 10
    rate_limit_window: int = 60
    log_level: str = "INFO"
    trust_proxy_headers: bool = False

    def rpc_url(self, chain: Chain) -> Optional[str]:
        return self.rpc_urls.get(chain) or None

def load_settings() -> Settings:
    load_dotenv()
    rpc_urls = {}
    for chain, var in ((Chain.ETH, "ETH_RPC_URL"), (Chain.BSC, "BSC_RPC_URL")):
        url = os.getenv(var, "").strip()
        if url:
            rpc_urls[chain] = url
    return Settings(
        explorer_api_key=(os.getenv("EXPLORER_API_KEY") or os.getenv("ETHERSCAN_API_KEY") or "").strip(),
        explorer_base_url=os.getenv("EXPLORER_BASE_URL", "").strip() or DEFAULT_EXPLORER_BASE_URL,
        rpc_urls=rpc_urls,
        explorer_timeout=_env_float("EXPLORER_TIMEOUT_SECONDS", 8.0),
        rpc_timeout=_env_float("RPC_TIMEOUT_SECONDS", 4.0),
        cache_ttl=_env_int("CACHE_TTL_SECONDS", 86400),
        stale_retention=_env_int("STALE_RETENTION_SECONDS", 604800),
        identity_cache_ttl=_env_int("IDENTITY_CACHE_TTL_SECONDS", 604800),
        rate_limit_max=_env_int("RATE_LIMIT_MAX", 10),
        rate_limit_window=_env_int("RATE_LIMIT_WINDOW_SECONDS", 60),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        trust_proxy_headers=_env_bool("TRUST_PROXY_HEADERS", False),
    )

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
