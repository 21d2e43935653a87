import base64
import logging
from typing import Any, Dict, List, Optional

import httpx

from src.core.entities.trade import SignatureInfo
from src.core.errors import RateLimitError, UpstreamUnavailable
from src.core.interfaces.datasource import ITransactionSource

logger = logging.getLogger(__name__)

TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
TOKEN_2022_PROGRAM_ID = "TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb"

# Mint layout: mint_authority COption<Pubkey> (4 + 32) + supply u64 (8), then decimals u8
MINT_DECIMALS_OFFSET = 44
MAX_SIGNATURES_PER_CALL = 1000
MAX_ACCOUNTS_PER_CALL = 100

# JSON-RPC error codes some providers use for throttling
RATE_LIMIT_CODES = {429, -32429, -32005}


def _is_rate_limit_error(error: Dict[str, Any]) -> bool:
    message = str(error.get("message", "")).lower()
    return error.get("code") in RATE_LIMIT_CODES or "429" in message or "too many requests" in message


class SolanaRpcClient:
    """
    Minimal async JSON-RPC client. Maps throttling to RateLimitError and
    every other transport/protocol failure to UpstreamUnavailable.
    """

    def __init__(self, rpc_url: str, timeout: float = 30.0, client: Optional[httpx.AsyncClient] = None):
        self.rpc_url = rpc_url
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self._request_id = 0
        logger.info(f"SolanaRpcClient initialized. URL: {rpc_url}")

    def _next_id(self) -> int:
        self._request_id += 1
        return self._request_id

    def _body(self, method: str, params: List[Any]) -> Dict[str, Any]:
        return {"jsonrpc": "2.0", "id": self._next_id(), "method": method, "params": params}

    async def _post(self, payload: Any) -> Any:
        try:
            resp = await self.client.post(self.rpc_url, json=payload)
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"RPC request failed: {e}") from e

        if resp.status_code == 429:
            raise RateLimitError("RPC returned 429 Too Many Requests")
        if resp.status_code >= 400:
            raise UpstreamUnavailable(f"RPC returned HTTP {resp.status_code}")
        try:
            return resp.json()
        except ValueError as e:
            raise UpstreamUnavailable(f"RPC returned invalid JSON: {e}") from e

    async def call(self, method: str, params: List[Any]) -> Any:
        data = await self._post(self._body(method, params))
        error = data.get("error")
        if error:
            if _is_rate_limit_error(error):
                raise RateLimitError(f"{method} rate limited: {error.get('message')}")
            raise UpstreamUnavailable(f"{method} failed: {error.get('message')}")
        return data.get("result")

    async def batch(self, calls: List[Dict[str, Any]]) -> List[Any]:
        """
        Sends [{"method", "params"}, ...] as one JSON-RPC batch. Results come
        back in call order; entries that errored are None. If every entry was
        throttled the whole batch raises RateLimitError.
        """
        if not calls:
            return []
        requests = [self._body(c["method"], c["params"]) for c in calls]
        data = await self._post(requests)
        if isinstance(data, dict):
            # Some providers answer a throttled batch with a single error object
            error = data.get("error") or {}
            if _is_rate_limit_error(error):
                raise RateLimitError(f"Batch rate limited: {error.get('message')}")
            raise UpstreamUnavailable(f"Unexpected batch response: {error.get('message', data)}")

        position = {req["id"]: i for i, req in enumerate(requests)}
        results: List[Any] = [None] * len(requests)
        throttled = 0
        for response in data:
            i = position.get(response.get("id"))
            if i is None:
                continue
            error = response.get("error")
            if error:
                if _is_rate_limit_error(error):
                    throttled += 1
                logger.debug(f"Batch entry {i} failed: {error.get('message')}")
                continue
            results[i] = response.get("result")

        if throttled == len(requests):
            raise RateLimitError("Every request in the batch was rate limited")
        return results

    async def close(self):
        await self.client.aclose()


class SolanaRpcGateway(ITransactionSource):
    """
    Implementation of ITransactionSource over a Solana JSON-RPC node.
    """

    def __init__(self, rpc: SolanaRpcClient, commitment: str = "confirmed"):
        self.rpc = rpc
        self.commitment = commitment

    async def list_signatures(
        self,
        address: str,
        limit: int,
        before: Optional[str] = None
    ) -> List[SignatureInfo]:
        """
        Pages through getSignaturesForAddress until `limit` entries are
        collected or history runs out.
        """
        signatures: List[SignatureInfo] = []
        cursor = before

        while len(signatures) < limit:
            opts: Dict[str, Any] = {
                "limit": min(limit - len(signatures), MAX_SIGNATURES_PER_CALL),
                "commitment": self.commitment,
            }
            if cursor:
                opts["before"] = cursor

            page = await self.rpc.call("getSignaturesForAddress", [address, opts]) or []
            for entry in page:
                signatures.append(SignatureInfo(
                    signature=entry["signature"],
                    slot=entry.get("slot", 0),
                    block_time=entry.get("blockTime"),
                    err=entry.get("err"),
                ))

            if len(page) < opts["limit"]:
                break
            cursor = page[-1]["signature"]

        return signatures

    async def fetch_parsed_batch(self, signatures: List[str]) -> List[Optional[Dict[str, Any]]]:
        config = {
            "encoding": "jsonParsed",
            "maxSupportedTransactionVersion": 0,
            "commitment": self.commitment,
        }
        return await self.rpc.batch([
            {"method": "getTransaction", "params": [signature, config]}
            for signature in signatures
        ])

    async def fetch_mint_decimals(self, addresses: List[str]) -> Dict[str, int]:
        decimals: Dict[str, int] = {}
        for start in range(0, len(addresses), MAX_ACCOUNTS_PER_CALL):
            chunk = addresses[start:start + MAX_ACCOUNTS_PER_CALL]
            result = await self.rpc.call("getMultipleAccounts", [chunk, {
                "encoding": "base64",
                "dataSlice": {"offset": MINT_DECIMALS_OFFSET, "length": 1},
                "commitment": self.commitment,
            }])

            # Values stay index-aligned with `chunk`, None for missing accounts
            for address, account in zip(chunk, (result or {}).get("value") or []):
                if not account:
                    continue
                if account.get("owner") not in (TOKEN_PROGRAM_ID, TOKEN_2022_PROGRAM_ID):
                    logger.warning(f"Account {address} is not a token mint")
                    continue
                try:
                    raw = base64.b64decode(account["data"][0])
                except (KeyError, IndexError, ValueError) as e:
                    logger.warning(f"Unreadable mint account {address}: {e}")
                    continue
                if len(raw) == 1:
                    decimals[address] = raw[0]

        return decimals
