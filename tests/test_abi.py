import pytest
from eth_abi import encode

from tsi.services.abi import SELECTORS, decode_string, decode_uint8

def test_selectors_match_erc20():
    assert SELECTORS == {
        "name": "0x06fdde03",
        "symbol": "0x95d89b41",
        "decimals": "0x313ce567",
    }

def test_decode_dynamic_string():
    payload = "0x" + encode(["string"], ["USDT"]).hex()
    assert decode_string(payload) == "USDT"

def test_decode_dynamic_string_multibyte():
    payload = "0x" + encode(["string"], ["Żabka Coin ✓"]).hex()
    assert decode_string(payload) == "Żabka Coin ✓"

def test_decode_bytes32_string():
    word = b"MKR".ljust(32, b"\x00").hex()
    assert decode_string("0x" + word) == "MKR"

def test_decode_string_without_prefix():
    assert decode_string(encode(["string"], ["DAI"]).hex()) == "DAI"

def test_decode_string_strips_whitespace_and_nul():
    payload = "0x" + encode(["string"], ["  PEPE \x00\x00"]).hex()
    assert decode_string(payload) == "PEPE"

@pytest.mark.parametrize("payload", [
    "",
    "0x",
    "0xzz",
    "0x123",
    "0x" + "00" * 32,
    "0x" + encode(["string"], [""]).hex(),
])
def test_decode_string_rejects_bad_or_empty(payload):
    assert decode_string(payload) is None

def test_decode_string_offset_out_of_bounds():
    offset = (4096).to_bytes(32, "big").hex()
    length = (4).to_bytes(32, "big").hex()
    assert decode_string("0x" + offset + length) is None

def test_decode_string_length_out_of_bounds():
    offset = (32).to_bytes(32, "big").hex()
    length = (200).to_bytes(32, "big").hex()
    data = b"USDT".ljust(32, b"\x00").hex()
    assert decode_string("0x" + offset + length + data) is None

def test_decode_string_non_string_input():
    assert decode_string(None) is None

def test_decode_uint8():
    assert decode_uint8("0x" + "00" * 31 + "12") == 18
    assert decode_uint8("0x" + encode(["uint8"], [6]).hex()) == 6

@pytest.mark.parametrize("payload", ["", "0x12", "0x" + "gg" * 32, "0x" + "ff" * 32, None])
def test_decode_uint8_rejects_malformed(payload):
    assert decode_uint8(payload) is None
