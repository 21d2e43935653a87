"""
Pytest configuration and shared fixtures.

Transactions are built synthetically in the jsonParsed getTransaction shape,
with base58 instruction data encoded the way the aggregator emits it.
"""
import hashlib
import struct
from typing import Dict, List, Optional

import base58
import pytest
from solders.pubkey import Pubkey

from src.core.config import Settings
from src.core.entities.token import TokenInfo, TokenMetadata
from src.core.entities.trade import SignatureInfo
from src.core.interfaces.datasource import (
    IMetadataSource, ITokenStore, ITransactionSource, TradeSink
)

JUP = "JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4"
COMPUTE_BUDGET = "ComputeBudget111111111111111111111111111111"
WALLET = "9hCLuXrQrHCU9i7y648Nh7uuWKHUsKDiZ5zyBHdZPWtG"

SOL = "So11111111111111111111111111111111111111112"
USDC = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
USDT = "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB"
TOKEN_X = "7JA5eZdCzztSfQbJvS8aVVxMFfd81Rs9VvwnocV1mKHu"

AMM_A = "whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc"
AMM_B = "obriQD1zbpyLz95G5n7nJe6a4DPjpFwa5XYPoNm113y"
AMM_C = "CAMMCzo5YL8w4VFF8KVHrK22GGUsp5VTaW7grrKgrWqK"

FOUR_HOPS = [
    (AMM_A, SOL, 21112899, USDC, 4082119),
    (AMM_B, USDC, 4082119, USDT, 4083318),
    (AMM_A, USDT, 4083318, TOKEN_X, 24342982929),
    (AMM_C, TOKEN_X, 24342982929, SOL, 21135942),
]

DECIMALS = {SOL: 9, USDC: 6, USDT: 6, TOKEN_X: 5}
METADATA = {
    SOL: TokenMetadata(name="Wrapped SOL", symbol="SOL", uri=""),
    USDC: TokenMetadata(name="USD Coin", symbol="USDC", uri=""),
    USDT: TokenMetadata(name="USDT", symbol="USDT", uri=""),
}


def discriminator(namespace: str, name: str) -> bytes:
    return hashlib.sha256(f"{namespace}:{name}".encode()).digest()[:8]


EVENT_IX_TAG = discriminator("anchor", "event")


def pk(address: str) -> bytes:
    return bytes(Pubkey.from_string(address))


def swap_event_data(amm, input_mint, input_amount, output_mint, output_amount) -> str:
    payload = (
        EVENT_IX_TAG
        + discriminator("event", "SwapEvent")
        + pk(amm) + pk(input_mint) + struct.pack("<Q", input_amount)
        + pk(output_mint) + struct.pack("<Q", output_amount)
    )
    return base58.b58encode(payload).decode()


def fee_event_data(account, mint, amount) -> str:
    payload = (
        EVENT_IX_TAG
        + discriminator("event", "FeeEvent")
        + pk(account) + pk(mint) + struct.pack("<Q", amount)
    )
    return base58.b58encode(payload).decode()


def route_ix_data(
    name: str = "route",
    amounts=(21112899, 21150000),
    slippage_bps: int = 2000,
    platform_fee_bps: int = 0
) -> str:
    """
    Borsh args of a route-family instruction with a one-step route plan.
    `amounts` is the u64 pair (or single u64 for token-ledger variants)
    before slippage_bps.
    """
    data = discriminator("global", name)
    if name.startswith("shared_accounts"):
        data += bytes([3])  # id
    # Vec<RoutePlanStep> with one step: swap variant + percent + input/output index
    data += struct.pack("<I", 1) + bytes([17, 100, 0, 1])
    for amount in amounts:
        data += struct.pack("<Q", amount)
    data += struct.pack("<HB", slippage_bps, platform_fee_bps)
    return base58.b58encode(data).decode()


def ix(data: str, program_id: str = JUP) -> dict:
    return {"programId": program_id, "accounts": [], "data": data, "stackHeight": 2}


def build_transaction(
    inner: List[dict],
    route_data: Optional[str] = None,
    block_time: Optional[int] = 1700000000,
    slot: Optional[int] = 250000000,
    err=None
) -> dict:
    instructions = [ix("3gJqkocMWaMm", COMPUTE_BUDGET)]
    if route_data is not None:
        instructions.append(ix(route_data))
    return {
        "slot": slot,
        "blockTime": block_time,
        "meta": {
            "err": err,
            "innerInstructions": [{"index": len(instructions) - 1, "instructions": inner}],
            "logMessages": [],
        },
        "transaction": {
            "message": {"instructions": instructions, "accountKeys": []},
            "signatures": ["placeholder"],
        },
    }


def four_hop_transaction(**kwargs) -> dict:
    kwargs.setdefault("route_data", route_ix_data(amounts=(21112899, 21150000), slippage_bps=2000))
    return build_transaction([ix(swap_event_data(*hop)) for hop in FOUR_HOPS], **kwargs)


def signature(n: int) -> str:
    return f"sig{n:03d}" + "1" * 40


# --- Fakes ---

class FakeTransactionSource(ITransactionSource):
    def __init__(self, transactions: Optional[Dict[str, Optional[dict]]] = None,
                 listing: Optional[List[str]] = None, decimals: Optional[Dict[str, int]] = None,
                 batch_errors: Optional[List[Exception]] = None, list_error: Optional[Exception] = None):
        self.transactions = transactions or {}
        self.listing = listing if listing is not None else list(self.transactions)
        self.decimals = DECIMALS if decimals is None else decimals
        self.batch_errors = list(batch_errors or [])
        self.list_error = list_error
        self.list_calls = []
        self.batch_calls = []
        self.decimals_calls = []

    async def list_signatures(self, address, limit, before=None):
        self.list_calls.append((address, limit, before))
        if self.list_error:
            raise self.list_error
        return [SignatureInfo(signature=s, slot=1000 - i) for i, s in enumerate(self.listing[:limit])]

    async def fetch_parsed_batch(self, signatures):
        self.batch_calls.append(list(signatures))
        if self.batch_errors:
            raise self.batch_errors.pop(0)
        return [self.transactions.get(s) for s in signatures]

    async def fetch_mint_decimals(self, addresses):
        self.decimals_calls.append(list(addresses))
        return {a: self.decimals[a] for a in addresses if a in self.decimals}


class FakeMetadataSource(IMetadataSource):
    def __init__(self, metadata: Optional[Dict[str, TokenMetadata]] = None):
        self.metadata = METADATA if metadata is None else metadata
        self.calls = []

    async def fetch_descriptive_metadata(self, addresses):
        self.calls.append(list(addresses))
        return {a: self.metadata[a] for a in addresses if a in self.metadata}


class FakeTokenStore(ITokenStore):
    def __init__(self, tokens: Optional[Dict[str, TokenInfo]] = None, failing=(), find_error=None):
        self.tokens = dict(tokens or {})
        self.failing = set(failing)
        self.find_error = find_error
        self.find_calls = []

    async def find_many(self, addresses):
        self.find_calls.append(list(addresses))
        if self.find_error:
            raise self.find_error
        return [self.tokens[a] for a in addresses if a in self.tokens]

    async def create(self, token):
        if token.address in self.failing:
            raise RuntimeError("duplicate key value violates unique constraint")
        self.tokens.setdefault(token.address, token)
        return True


class RecordingSleep:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


class RecordingSink(TradeSink):
    def __init__(self):
        self.messages = []

    async def send(self, message):
        self.messages.append(message)


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def sleep():
    return RecordingSleep()
