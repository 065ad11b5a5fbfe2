from __future__ import annotations

from typing import List

from tsi.services.source_scan import SignalPattern

def _strong(name: str, regex: str) -> SignalPattern:
    return SignalPattern(name=name, regex=regex, strength="strong")

def _weak(name: str, regex: str) -> SignalPattern:
    return SignalPattern(name=name, regex=regex, strength="weak")

SELL_RESTRICTION_STRONG: List[SignalPattern] = [
    _strong("blacklist", r"black_?list"),
    _strong("whitelist", r"white_?list"),
    _strong("trading_enabled_flag", r"trading_?(enabled|open|allowed|active)"),
    _strong("bot_registry", r"\b_?is_?bots?\s*\["),
]

SELL_RESTRICTION_WEAK: List[SignalPattern] = [
    _weak("anti_bot", r"anti_?(bot|snipe|sniper)"),
    _weak("cooldown", r"cool_?down"),
    _weak("max_sell_limit", r"max_?(sell|tx|transaction)_?(amount|limit|size)?"),
    _weak("sell_tax", r"sell_?(tax|fee)"),
]

OWNER_PATTERNS: List[SignalPattern] = [
    _strong("only_owner_modifier", r"\bonlyOwner\b"),
    _strong("ownable", r"\bOwnable\b"),
    _strong("owner_sender_check", r"_?owner\s*==\s*(msg\.sender|_msgSender\(\))|(msg\.sender|_msgSender\(\))\s*==\s*_?owner"),
    _strong("only_role_modifier", r"\bonlyRole\b"),
]

OWNER_CHANGE_STRONG: List[SignalPattern] = [
    _strong("blacklist_setter", r"function\s+\w*black_?list\w*\s*\("),
    _strong("whitelist_setter", r"function\s+\w*white_?list\w*\s*\("),
    _strong("balance_setter", r"function\s+_?set_?balance\w*\s*\("),
]

OWNER_CHANGE_WEAK: List[SignalPattern] = [
    _weak("fee_setter", r"function\s+\w*set\w*(fee|tax)\w*\s*\("),
    _weak("limit_setter", r"function\s+\w*set\w*(max|limit)\w*\s*\("),
    _weak("fee_exclusion", r"function\s+\w*exclude\w*from\w*\s*\("),
    _weak("wallet_setter", r"function\s+\w*set\w*(router|pair|wallet)\w*\s*\("),
]

MINT_PATTERNS: List[SignalPattern] = [
    _strong("mint_function", r"function\s+mint\w*\s*\("),
    _strong("issue_function", r"function\s+_?issue\s*\("),
]

MINTER_ROLE_PATTERNS: List[SignalPattern] = [
    _strong("minter_role", r"\bMINTER_ROLE\b"),
    _strong("only_minter", r"\bonlyMinter\b"),
    _strong("minter_setter", r"function\s+(add|set|grant|remove)_?minter\w*\s*\("),
    _strong("minter_registry", r"\b_?minters?\s*\["),
]

TRADING_PAUSE_PATTERNS: List[SignalPattern] = [
    _strong("pause_function", r"function\s+(pause|unpause)\s*\("),
    _strong("when_not_paused", r"\bwhenNotPaused\b"),
    _strong("stop_trading", r"function\s+\w*(stop|halt|resume|disable|pause)_?trading\w*\s*\("),
]

TRADING_TOGGLE_PATTERNS: List[SignalPattern] = [
    _weak("trading_toggle", r"function\s+\w*(enable|open|start|set|launch)_?trading\w*\s*\("),
]
