"""
Token Entities for SwapTrace

Display metadata for SPL mints, the formatted trade that is handed to
consumers, and the per-mint outcome of a metadata resolution.
"""
from enum import Enum
from pydantic import BaseModel
from typing import Dict, List, Optional


class TokenInfo(BaseModel):
    """
    Display metadata of a mint. `decimals` is mandatory: amounts are never
    scaled with a guessed precision.
    """
    address: str
    name: Optional[str] = None
    symbol: Optional[str] = None
    decimals: int
    image: Optional[str] = None
    metadataUri: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "address": "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
                "name": "USD Coin",
                "symbol": "USDC",
                "decimals": 6,
                "metadataUri": ""
            }
        }


class TokenMetadata(BaseModel):
    name: str
    symbol: str
    uri: str = ""


class FormattedAmount(BaseModel):
    raw: str
    formatted: str
    usd: Optional[str] = None


class FormattedToken(TokenInfo):
    amount: FormattedAmount


class FormattedRoute(BaseModel):
    amm: str
    ammName: str
    inputToken: FormattedToken
    outputToken: FormattedToken


class FormattedTrade(BaseModel):
    signature: str
    timestamp: int
    inputToken: FormattedToken
    outputToken: FormattedToken
    route: List[FormattedRoute]
    slippage: str
    priceImpact: str


class TokenSource(str, Enum):
    MEMORY = "memory"
    STORE = "store"
    CHAIN = "chain"
    FALLBACK = "fallback"


class ResolvedToken(BaseModel):
    info: TokenInfo
    source: TokenSource
    persisted: bool


class TokenResolution(BaseModel):
    """
    Result of resolving a set of mints. Mints without decimals are absent.
    """
    entries: Dict[str, ResolvedToken] = {}

    @property
    def tokens(self) -> Dict[str, TokenInfo]:
        return {address: entry.info for address, entry in self.entries.items()}

    @property
    def unpersisted(self) -> List[str]:
        """
        Mints with real metadata that never reached the store, whether
        resolved from chain now or served from the cache after a failed write.
        Fallback tokens are never persisted and are not listed.
        """
        return [
            address for address, entry in self.entries.items()
            if entry.source != TokenSource.FALLBACK and not entry.persisted
        ]
