from __future__ import annotations

import re
import string
from typing import Dict, Optional

from web3 import Web3

HEX_PREFIX = "0x"
WORD_HEX_LENGTH = 64
UINT8_MAX = 255

_HEX_RE = re.compile(r"[0-9a-fA-F]*")

def function_selector(signature: str) -> str:
    return Web3.to_hex(Web3.keccak(text=signature)[:4])

SELECTORS: Dict[str, str] = {
    "name": function_selector("name()"),
    "symbol": function_selector("symbol()"),
    "decimals": function_selector("decimals()"),
}

def _strip_prefix(value: str) -> str:
    return value[2:] if value.startswith(HEX_PREFIX) else value

def _is_hex(value: str) -> bool:
    return _HEX_RE.fullmatch(value) is not None

def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    trimmed = value.strip("\x00" + string.whitespace)
    return trimmed or None

def _utf8(hex_str: str) -> Optional[str]:
    if len(hex_str) % 2 != 0 or not _is_hex(hex_str):
        return None
    return bytes.fromhex(hex_str).decode("utf-8", errors="replace")

def _decode_bytes32(hex_str: str) -> Optional[str]:
    decoded = _clean(_utf8(hex_str))
    if decoded is None or not decoded.isprintable():
        return None
    return decoded

def _decode_dynamic(hex_str: str) -> Optional[str]:
    if len(hex_str) < WORD_HEX_LENGTH * 2:
        return None

    offset_index = int(hex_str[:WORD_HEX_LENGTH], 16) * 2
    if offset_index < WORD_HEX_LENGTH or offset_index + WORD_HEX_LENGTH > len(hex_str):
        return None

    length = int(hex_str[offset_index:offset_index + WORD_HEX_LENGTH], 16)
    data_start = offset_index + WORD_HEX_LENGTH
    data_end = data_start + length * 2
    if data_end > len(hex_str):
        return None

    return _clean(_utf8(hex_str[data_start:data_end]))

def decode_string(value: str) -> Optional[str]:
    """Decode an eth_call return value holding a string.

    Accepts the standard dynamic `string` layout and the legacy single
    `bytes32` word. Returns None for anything malformed or empty.
    """
    try:
        hex_str = _strip_prefix(value)
        if not hex_str or len(hex_str) % 2 != 0 or not _is_hex(hex_str):
            return None
        if len(hex_str) == WORD_HEX_LENGTH:
            return _decode_bytes32(hex_str)
        return _decode_dynamic(hex_str) or _decode_bytes32(hex_str[:WORD_HEX_LENGTH])
    except (TypeError, ValueError, AttributeError):
        return None

def decode_uint8(value: str) -> Optional[int]:
    try:
        hex_str = _strip_prefix(value)
        if len(hex_str) < WORD_HEX_LENGTH or len(hex_str) % 2 != 0 or not _is_hex(hex_str):
            return None
        parsed = int(hex_str[:WORD_HEX_LENGTH], 16)
    except (TypeError, ValueError, AttributeError):
        return None
    return parsed if parsed <= UINT8_MAX else None
