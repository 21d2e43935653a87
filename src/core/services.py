import asyncio
import logging
import time
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

from src.core.config import Settings
from src.core.entities.stream import CompleteMessage, ErrorMessage, StreamMessage, TradeMessage
from src.core.entities.trade import TradeInfo
from src.core.errors import AssemblyError, RateLimitError
from src.core.interfaces.datasource import ITransactionSource, TradeSink
from src.core.use_cases.token_resolver import TokenResolver
from src.core.use_cases.trade_formatter import format_trade
from src.core.use_cases.transaction_parser import TransactionParser

logger = logging.getLogger(__name__)


def backoff_delay_ms(attempt: int, base_ms: int, cap_ms: int) -> int:
    """Delay before retry number `attempt` (0-based): base, 2*base, 4*base, ... capped."""
    return min(base_ms * (2 ** attempt), cap_ms)


class WalletService:
    """
    Turns a wallet address into its ordered Jupiter trade history.

    Batches are fetched strictly one after another with a pause in between to
    stay under RPC rate limits; nothing fans out in parallel.
    """

    def __init__(
        self,
        source: ITransactionSource,
        resolver: TokenResolver,
        parser: Optional[TransactionParser] = None,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self.source = source
        self.resolver = resolver
        self.parser = parser or TransactionParser()
        self.settings = settings or Settings()
        self._sleep = sleep

    async def get_trade_history(
        self,
        wallet: str,
        batch_size: Optional[int] = None,
        limit: Optional[int] = None,
        until: Optional[str] = None,
        sink: Optional[TradeSink] = None
    ) -> List[TradeInfo]:
        trades: List[TradeInfo] = []
        try:
            async for message in self.stream_trade_history(wallet, batch_size, limit, until):
                if isinstance(message, TradeMessage):
                    trades.append(message.trade)
                if sink is not None:
                    await sink.send(message)
        except Exception as e:
            if sink is not None:
                await sink.send(ErrorMessage(error=str(e)))
            raise
        return trades

    async def stream_trade_history(
        self,
        wallet: str,
        batch_size: Optional[int] = None,
        limit: Optional[int] = None,
        until: Optional[str] = None
    ) -> AsyncIterator[StreamMessage]:
        """
        Yields one message per assembled (or rejected) trade, in signature
        listing order, then a CompleteMessage. Raises UpstreamUnavailable if
        the signatures cannot be listed.
        """
        batch_size = batch_size or self.settings.batch_size
        limit = limit or self.settings.trade_limit

        logger.info(f"Fetching signatures for wallet {wallet}")
        start_time = time.monotonic()

        listed = await self.source.list_signatures(wallet, limit, before=until)
        logger.info(
            f"Found {len(listed)} total signatures in {int((time.monotonic() - start_time) * 1000)}ms"
        )

        # Listings can repeat an entry
        signatures = list(dict.fromkeys(info.signature for info in listed))
        logger.info(f"Processing {len(signatures)} unique signatures")

        batch_count = (len(signatures) + batch_size - 1) // batch_size
        processed = 0
        total_trades = 0

        for i in range(batch_count):
            batch = signatures[i * batch_size:(i + 1) * batch_size]
            logger.info(f"Processing batch {i + 1}/{batch_count} with {len(batch)} signatures")

            transactions = await self._fetch_transaction_batch(batch)
            processed += sum(1 for tx in transactions if tx)

            batch_trades = 0
            async for message in self._process_batch(batch, transactions):
                if isinstance(message, TradeMessage):
                    batch_trades += 1
                yield message

            if batch_trades:
                logger.info(f"Found {batch_trades} Jupiter trades in batch {i + 1}")
            total_trades += batch_trades

            if i < batch_count - 1:
                await self._sleep(self.settings.batch_pause_ms / 1000)

        duration_ms = int((time.monotonic() - start_time) * 1000)
        logger.info(
            f"Processing complete in {duration_ms / 1000:.1f}s: {processed} transactions processed, "
            f"{total_trades} Jupiter trades found"
        )
        yield CompleteMessage(
            totalTrades=total_trades,
            processedTransactions=processed,
            durationMs=duration_ms,
        )

    async def _fetch_transaction_batch(self, signatures: List[str]) -> List[Optional[Dict[str, Any]]]:
        max_retries = self.settings.max_rate_limit_retries

        for attempt in range(max_retries + 1):
            try:
                logger.info(f"Fetching batch of {len(signatures)} transactions")
                started = time.monotonic()
                result = await self.source.fetch_parsed_batch(signatures)
                logger.info(
                    f"Fetched {sum(1 for tx in result if tx)}/{len(signatures)} transactions "
                    f"in {int((time.monotonic() - started) * 1000)}ms"
                )
                return result
            except RateLimitError:
                if attempt == max_retries:
                    break
                delay = backoff_delay_ms(attempt, self.settings.backoff_base_ms, self.settings.backoff_cap_ms)
                logger.warning(f"Rate limited, retrying after {delay}ms (attempt {attempt + 1})")
                await self._sleep(delay / 1000)
            except Exception as e:
                logger.error(f"Error fetching transactions: {e}")
                return [None] * len(signatures)

        logger.error(f"Still rate limited after {max_retries} retries, skipping batch of {len(signatures)}")
        return [None] * len(signatures)

    async def _process_batch(
        self,
        signatures: List[str],
        transactions: List[Optional[Dict[str, Any]]]
    ) -> AsyncIterator[StreamMessage]:
        for signature, tx in zip(signatures, transactions):
            if not tx:
                continue

            err = (tx.get("meta") or {}).get("err")
            if err:
                logger.warning(f"Transaction {signature} failed: {err}")
                continue

            logger.debug(f"Processing transaction {signature}")
            parsed = self.parser.parse(tx)
            if parsed is None:
                logger.debug(f"No Jupiter trade found in {signature}")
                continue

            mints = set()
            for swap in parsed.swaps:
                mints.add(swap.input_mint)
                mints.add(swap.output_mint)
            resolution = await self.resolver.resolve(mints)

            trade = TradeInfo(signature=signature, **parsed.model_dump())
            try:
                formatted = format_trade(trade, resolution.tokens)
            except AssemblyError as e:
                logger.error(f"Error formatting trade {signature}: {e}")
                yield ErrorMessage(signature=signature, error=str(e))
                continue

            yield TradeMessage(signature=signature, data=formatted, trade=trade)
