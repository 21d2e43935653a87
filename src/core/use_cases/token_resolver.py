import logging
from typing import Dict, Iterable, List, Optional

from src.core.entities.token import (
    ResolvedToken, TokenInfo, TokenMetadata, TokenResolution, TokenSource
)
from src.core.interfaces.datasource import (
    IMetadataSource, ITokenCache, ITokenStore, ITransactionSource
)

logger = logging.getLogger(__name__)


def fallback_token(address: str, decimals: int) -> TokenInfo:
    """Display-only token for a mint that has decimals but no metadata."""
    return TokenInfo(
        address=address,
        name="Unknown Token",
        symbol=f"{address[:4]}...{address[-4:]}",
        decimals=decimals,
        metadataUri="",
    )


class TokenResolver:
    """
    Layered mint metadata lookup: memory cache, persistent store, then chain.
    """

    def __init__(
        self,
        transactions: ITransactionSource,
        metadata: IMetadataSource,
        cache: ITokenCache,
        store: Optional[ITokenStore] = None
    ):
        self.transactions = transactions
        self.metadata = metadata
        self.cache = cache
        self.store = store

    async def resolve(self, mints: Iterable[str]) -> TokenResolution:
        resolution = TokenResolution()
        unique = list(dict.fromkeys(mints))
        logger.info(f"Fetching info for {len(unique)} tokens")

        # 1. Memory cache
        for address in unique:
            cached = await self.cache.get(address)
            if cached is not None:
                resolution.entries[address] = ResolvedToken(
                    info=cached.info, source=TokenSource.MEMORY, persisted=cached.persisted
                )

        uncached = [a for a in unique if a not in resolution.entries]
        if not uncached:
            logger.info("All tokens found in memory cache")
            return resolution

        # 2. Persistent store, one batched lookup
        for token in await self._find_stored(uncached):
            entry = ResolvedToken(info=token, source=TokenSource.STORE, persisted=True)
            resolution.entries[token.address] = entry
            await self.cache.set(token.address, entry)

        to_fetch = [a for a in uncached if a not in resolution.entries]
        if not to_fetch:
            return resolution

        # 3. Chain
        logger.info(f"Fetching {len(to_fetch)} tokens from chain")
        decimals = await self._fetch_decimals(to_fetch)
        for address in to_fetch:
            if address not in decimals:
                logger.warning(f"No decimals found for token {address}, dropping it")

        metadata = await self._fetch_metadata(list(decimals))
        valid = 0
        for address, token_decimals in decimals.items():
            meta = metadata.get(address)
            if meta is None:
                resolution.entries[address] = ResolvedToken(
                    info=fallback_token(address, token_decimals),
                    source=TokenSource.FALLBACK,
                    persisted=False,
                )
                continue

            token = TokenInfo(
                address=address,
                name=meta.name,
                symbol=meta.symbol,
                decimals=token_decimals,
                metadataUri=meta.uri,
            )
            persisted = await self._persist(token)
            entry = ResolvedToken(info=token, source=TokenSource.CHAIN, persisted=persisted)
            # Cached even when the write failed; the flag travels with it
            await self.cache.set(address, entry)
            resolution.entries[address] = entry
            valid += 1

        logger.info(
            f"Found {valid} tokens with metadata and {len(decimals) - valid} tokens without metadata"
        )
        return resolution

    async def _find_stored(self, addresses: List[str]) -> List[TokenInfo]:
        if self.store is None:
            return []
        try:
            stored = await self.store.find_many(addresses)
        except Exception as e:
            logger.error(f"Token store lookup failed: {e}")
            return []
        logger.info(f"Found {len(stored)} tokens in database")
        return stored

    async def _fetch_decimals(self, addresses: List[str]) -> Dict[str, int]:
        try:
            return await self.transactions.fetch_mint_decimals(addresses)
        except Exception as e:
            logger.error(f"Error fetching mint decimals: {e}")
            return {}

    async def _fetch_metadata(self, addresses: List[str]) -> Dict[str, TokenMetadata]:
        if not addresses:
            return {}
        try:
            return await self.metadata.fetch_descriptive_metadata(addresses)
        except Exception as e:
            logger.error(f"Error fetching token metadata: {e}")
            return {}

    async def _persist(self, token: TokenInfo) -> bool:
        if self.store is None:
            return False
        try:
            return bool(await self.store.create(token))
        except Exception as e:
            logger.error(f"Error storing token {token.address}: {e}")
            return False
