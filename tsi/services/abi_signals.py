from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Sequence, Tuple

SIGNAL_KEYS = (
    "pause",
    "unpause",
    "blacklist",
    "whitelist",
    "trading_toggle",
    "mint",
    "minter_role",
    "owner_setter",
)

SIGNAL_MATCHERS: List[Tuple[str, Callable[[str], bool]]] = [
    ("pause", lambda name: name == "pause"),
    ("unpause", lambda name: name == "unpause"),
    ("blacklist", lambda name: "blacklist" in name),
    ("whitelist", lambda name: "whitelist" in name),
    ("trading_toggle", lambda name: any(
        k in name for k in ("enabletrading", "disabletrading", "opentrading", "settrading"))),
    ("mint", lambda name: name.startswith("mint") or "_mint" in name),
    ("minter_role", lambda name: any(
        k in name for k in ("setminter", "addminter", "grantrole", "minterrole"))),
    ("owner_setter", lambda name: any(
        k in name for k in ("transferownership", "renounceownership", "setowner"))),
]

AbiSignals = Dict[str, List[str]]

def extract_abi_signals(function_names: Iterable[str]) -> AbiSignals:
    signals: AbiSignals = {key: [] for key in SIGNAL_KEYS}
    for raw in function_names:
        if not isinstance(raw, str) or not raw.strip():
            continue
        name = raw.strip()
        lowered = name.lower()
        for key, test in SIGNAL_MATCHERS:
            if test(lowered) and name not in signals[key]:
                signals[key].append(name)
    return signals

def collect_abi_evidence(signals: AbiSignals, keys: Sequence[str], limit: int = 5) -> List[str]:
    collected: List[str] = []
    for key in keys:
        for name in signals.get(key, []):
            if name not in collected:
                collected.append(name)
            if len(collected) >= limit:
                return collected
    return collected
