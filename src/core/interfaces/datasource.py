from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from src.core.entities.stream import StreamMessage
from src.core.entities.token import ResolvedToken, TokenInfo, TokenMetadata
from src.core.entities.trade import SignatureInfo


class ITransactionSource(ABC):
    @abstractmethod
    async def list_signatures(
        self,
        address: str,
        limit: int,
        before: Optional[str] = None
    ) -> List[SignatureInfo]:
        """
        Newest-first signatures touching `address`.
        Raises UpstreamUnavailable (or RateLimitError) on failure.
        """
        pass

    @abstractmethod
    async def fetch_parsed_batch(self, signatures: List[str]) -> List[Optional[Dict[str, Any]]]:
        """
        Returns transactions aligned index-for-index with `signatures`,
        None where a transaction is missing. Raises RateLimitError when
        the whole batch was throttled.
        """
        pass

    @abstractmethod
    async def fetch_mint_decimals(self, addresses: List[str]) -> Dict[str, int]:
        """
        Partial mapping: mints whose decimals could not be read are absent.
        """
        pass


class IMetadataSource(ABC):
    @abstractmethod
    async def fetch_descriptive_metadata(self, addresses: List[str]) -> Dict[str, TokenMetadata]:
        pass


class ITokenStore(ABC):
    @abstractmethod
    async def find_many(self, addresses: List[str]) -> List[TokenInfo]:
        pass

    @abstractmethod
    async def create(self, token: TokenInfo) -> bool:
        """
        Idempotent per address. Returns False (or raises) when the write failed.
        """
        pass


class ITokenCache(ABC):
    """
    Holds resolved tokens together with whether they reached the store, so a
    later hit can still report a failed write.
    """

    @abstractmethod
    async def get(self, address: str) -> Optional[ResolvedToken]:
        pass

    @abstractmethod
    async def set(self, address: str, entry: ResolvedToken) -> None:
        pass


class TradeSink(ABC):
    """
    Push consumer of a trade history stream (HTTP, WebSocket, ...).
    """
    @abstractmethod
    async def send(self, message: StreamMessage) -> None:
        pass
