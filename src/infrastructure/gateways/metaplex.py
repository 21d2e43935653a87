import base64
import logging
import struct
from typing import Dict, List, Optional

from solders.pubkey import Pubkey

from src.core.entities.token import TokenMetadata
from src.core.errors import DecodeError
from src.core.interfaces.datasource import IMetadataSource
from src.infrastructure.gateways.solana_rpc import MAX_ACCOUNTS_PER_CALL, SolanaRpcClient

logger = logging.getLogger(__name__)

METADATA_PROGRAM_ID = Pubkey.from_string("metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s")

# key u8 + update_authority Pubkey + mint Pubkey
METADATA_HEADER_LEN = 1 + 32 + 32


def metadata_address(mint: str) -> str:
    pda, _ = Pubkey.find_program_address(
        [b"metadata", bytes(METADATA_PROGRAM_ID), bytes(Pubkey.from_string(mint))],
        METADATA_PROGRAM_ID,
    )
    return str(pda)


def _read_string(data: bytes, offset: int):
    if offset + 4 > len(data):
        raise DecodeError("Truncated metadata string length")
    length = struct.unpack_from("<I", data, offset)[0]
    offset += 4
    if offset + length > len(data):
        raise DecodeError("Truncated metadata string")
    # On-chain strings are NUL padded to a fixed width
    value = data[offset:offset + length].decode("utf-8", errors="ignore").rstrip("\x00").strip()
    return value, offset + length


def parse_metadata_account(data: bytes) -> TokenMetadata:
    """
    Reads name, symbol and uri from a Metaplex Token Metadata account.
    """
    offset = METADATA_HEADER_LEN
    name, offset = _read_string(data, offset)
    symbol, offset = _read_string(data, offset)
    uri, offset = _read_string(data, offset)
    return TokenMetadata(name=name, symbol=symbol, uri=uri)


class MetaplexMetadataGateway(IMetadataSource):
    def __init__(self, rpc: SolanaRpcClient, commitment: str = "confirmed"):
        self.rpc = rpc
        self.commitment = commitment

    async def fetch_descriptive_metadata(self, addresses: List[str]) -> Dict[str, TokenMetadata]:
        found: Dict[str, TokenMetadata] = {}
        pdas: Dict[str, str] = {}
        for mint in addresses:
            try:
                pdas[mint] = metadata_address(mint)
            except ValueError as e:
                logger.warning(f"Invalid mint address {mint}: {e}")

        mints = list(pdas)
        for start in range(0, len(mints), MAX_ACCOUNTS_PER_CALL):
            chunk = mints[start:start + MAX_ACCOUNTS_PER_CALL]
            result = await self.rpc.call("getMultipleAccounts", [
                [pdas[m] for m in chunk],
                {"encoding": "base64", "commitment": self.commitment},
            ])

            for mint, account in zip(chunk, (result or {}).get("value") or []):
                metadata = self._decode(mint, account)
                if metadata is not None:
                    found[mint] = metadata

        return found

    @staticmethod
    def _decode(mint: str, account: Optional[dict]) -> Optional[TokenMetadata]:
        if not account:
            return None
        try:
            raw = base64.b64decode(account["data"][0])
            return parse_metadata_account(raw)
        except (KeyError, IndexError, ValueError, DecodeError) as e:
            logger.warning(f"Skipping malformed metadata for {mint}: {e}")
            return None
