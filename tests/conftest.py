import json
from typing import Dict, List, Optional
from urllib.parse import parse_qs

import httpx
import pytest
from eth_abi import encode
from fastapi.testclient import TestClient

from tsi.config import Settings
from tsi.main import create_app
from tsi.schemas import Chain
from tsi.services.abi import SELECTORS
from tsi.services.cache import MemoryEdgeCache

EXPLORER_URL = "https://explorer.test/v2/api"
ETH_RPC = "https://rpc.eth.test"
BSC_RPC = "https://rpc.bsc.test"
TOKEN = "0x" + "ab" * 20

SAFE_SOURCE = """// SPDX-License-Identifier: MIT
pragma solidity ^0.8.20;

/* A plain fixed-supply token. */
contract PlainToken {
    string public name = "Plain";
    mapping(address => uint256) public balanceOf;

    function transfer(address to, uint256 amount) public returns (bool) {
        balanceOf[msg.sender] -= amount;
        balanceOf[to] += amount;
        return true;
    }
}
"""

RISKY_SOURCE = """pragma solidity ^0.8.20;

contract RiskyToken is Ownable {
    mapping(address => bool) private _blacklist;
    bool public tradingEnabled;

    function blacklistAddress(address account) external onlyOwner {
        _blacklist[account] = true;
    }

    function setSellFee(uint256 fee) external onlyOwner {
        sellFee = fee;
    }
}
"""

def hex_abi(types, values) -> str:
    return "0x" + encode(types, values).hex()

def holder_entries(quantities: List[int]) -> List[dict]:
    return [
        {"TokenHolderAddress": "0x" + f"{i:040x}", "TokenHolderQuantity": str(q)}
        for i, q in enumerate(quantities, start=1)
    ]

class FakeUpstream:
    """Routes explorer and RPC requests to canned payloads and counts calls."""

    def __init__(self):
        self.calls: List[str] = []
        self.source_code = SAFE_SOURCE
        self.abi: List[dict] = [{"type": "function", "name": "transfer"}]
        self.proxy = "0"
        self.holders: Optional[List[dict]] = holder_entries([10] * 10)
        self.total_supply = "1000"
        self.overrides: Dict[str, dict] = {}
        self.rpc_results: Dict[str, str] = {
            SELECTORS["name"]: hex_abi(["string"], ["Tether USD"]),
            SELECTORS["symbol"]: hex_abi(["string"], ["USDT"]),
            SELECTORS["decimals"]: hex_abi(["uint8"], [6]),
        }
        self.fail_all = False

    def explorer_payload(self, action: str) -> dict:
        if action in self.overrides:
            return self.overrides[action]
        if action == "getsourcecode":
            return {"status": "1", "message": "OK", "result": [{
                "SourceCode": self.source_code,
                "ABI": json.dumps(self.abi),
                "ContractName": "Token",
                "Proxy": self.proxy,
                "Implementation": "",
            }]}
        if action == "getcontractcreation":
            return {"status": "1", "message": "OK", "result": [{
                "contractAddress": TOKEN,
                "contractCreator": "0x" + "cd" * 20,
                "txHash": "0x" + "ef" * 32,
            }]}
        if action == "tokenholderlist":
            return {"status": "1", "message": "OK", "result": self.holders}
        if action == "tokensupply":
            return {"status": "1", "message": "OK", "result": self.total_supply}
        return {"status": "0", "message": "NOTOK", "result": "Unknown action"}

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.fail_all:
            raise httpx.ConnectError("upstream down", request=request)
        if request.url.host == "explorer.test":
            action = parse_qs(request.url.query.decode())["action"][0]
            self.calls.append(f"explorer:{action}")
            return httpx.Response(200, json=self.explorer_payload(action))
        body = json.loads(request.content)
        selector = body["params"][0]["data"]
        self.calls.append(f"rpc:{selector}")
        if selector not in self.rpc_results:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1,
                                             "error": {"code": 3, "message": "execution reverted"}})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": self.rpc_results[selector]})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

def make_settings(**overrides) -> Settings:
    values = dict(
        explorer_api_key="test-key",
        explorer_base_url=EXPLORER_URL,
        rpc_urls={Chain.ETH: ETH_RPC, Chain.BSC: BSC_RPC},
    )
    values.update(overrides)
    return Settings(**values)

@pytest.fixture
def settings():
    return make_settings()

@pytest.fixture
def upstream():
    return FakeUpstream()

@pytest.fixture
def cache():
    return MemoryEdgeCache()

@pytest.fixture
def client(settings, cache, upstream):
    app = create_app(settings=settings, cache=cache, transport=upstream.transport)
    return TestClient(app)
