import logging
import re
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Query, Depends, HTTPException, Path
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse

# --- Imports ---
from src.core.config import Settings
from src.core.entities.stream import ErrorMessage
from src.core.errors import UpstreamUnavailable
from src.core.interfaces.datasource import ITokenCache, ITokenStore
from src.core.services import WalletService
from src.core.use_cases.token_resolver import TokenResolver
from src.core.use_cases.transaction_parser import JupiterV6Interpreter, TransactionParser
from src.infrastructure.cache.memory_cache import MemoryTokenCache
from src.infrastructure.cache.redis_service import RedisTokenCache
from src.infrastructure.gateways.metaplex import MetaplexMetadataGateway
from src.infrastructure.gateways.solana_rpc import SolanaRpcClient, SolanaRpcGateway
from src.infrastructure.persistence.postgres_repo import PostgresTokenStore

settings = Settings.from_env()

# Setup Logging
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger("SwapTrace")

# --- Dependency Injection ---
# Shared across requests: the token cache and store outlive a single query.

_rpc: Optional[SolanaRpcClient] = None
_token_cache: Optional[ITokenCache] = None
_token_store: Optional[ITokenStore] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _rpc, _token_cache

    # Application runs here
    yield

    # Shutdown
    logger.info("API shutting down")
    if _rpc is not None:
        await _rpc.close()
        _rpc = None
    if isinstance(_token_cache, RedisTokenCache):
        await _token_cache.close()
        _token_cache = None


app = FastAPI(
    title="SwapTrace API",
    version="1.0.0",
    description="Jupiter swap history reconstruction API",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

SOLANA_ADDRESS_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")


def validate_solana_address(address: str) -> bool:
    return bool(SOLANA_ADDRESS_RE.match(address))


def get_settings() -> Settings:
    return settings


def get_rpc() -> SolanaRpcClient:
    global _rpc
    if _rpc is None:
        _rpc = SolanaRpcClient(settings.rpc_url, timeout=settings.rpc_timeout_seconds)
    return _rpc


def get_token_cache() -> ITokenCache:
    global _token_cache
    if _token_cache is None:
        if settings.redis_url:
            _token_cache = RedisTokenCache(settings.redis_url, ttl_seconds=settings.token_cache_ttl_seconds)
        else:
            _token_cache = MemoryTokenCache(capacity=settings.token_cache_size or None)
    return _token_cache


def get_token_store() -> Optional[ITokenStore]:
    global _token_store
    if _token_store is None and settings.database_url:
        try:
            _token_store = PostgresTokenStore(settings.database_url)
        except Exception as e:
            logger.error(f"Failed to connect to DB: {e}")
            return None
    return _token_store


def get_wallet_service(
    rpc: SolanaRpcClient = Depends(get_rpc),
    cache: ITokenCache = Depends(get_token_cache),
    store: Optional[ITokenStore] = Depends(get_token_store),
    config: Settings = Depends(get_settings)
) -> WalletService:
    source = SolanaRpcGateway(rpc)
    resolver = TokenResolver(source, MetaplexMetadataGateway(rpc), cache, store)
    parser = TransactionParser([JupiterV6Interpreter(config.program_id)])
    return WalletService(source, resolver, parser, config)


def wallet_address(address: str = Path(..., description="Wallet address (base58)")) -> str:
    if not validate_solana_address(address):
        raise HTTPException(status_code=400, detail=f"Invalid Solana address: {address}")
    return address


# --- Endpoints ---

@app.get("/health")
async def health():
    return {"status": "healthy", "mode": "Solana RPC via Gateway"}


@app.get("/v1/wallets/{address}/trades")
async def get_trades(
    address: str = Depends(wallet_address),
    limit: Optional[int] = Query(None, ge=1, description="Max signatures to scan (default TRADE_LIMIT)"),
    until: Optional[str] = Query(None, description="Start scanning before this signature"),
    service: WalletService = Depends(get_wallet_service)
):
    try:
        trades = await service.get_trade_history(address, limit=limit, until=until)
    except UpstreamUnavailable as e:
        logger.error(f"Failed to list signatures for {address}: {e}")
        raise HTTPException(status_code=502, detail=str(e))

    return {"success": True, "data": [t.model_dump() for t in trades]}


@app.get("/v1/wallets/{address}/trades/stream")
async def stream_trades(
    address: str = Depends(wallet_address),
    limit: Optional[int] = Query(None, ge=1),
    until: Optional[str] = Query(None),
    service: WalletService = Depends(get_wallet_service)
):
    """
    Newline-delimited JSON: one message per trade or rejected trade, then a
    completion message. A listing failure ends the stream with an error message.
    Batches are only fetched as fast as the client reads.
    """
    async def lines():
        try:
            async for message in service.stream_trade_history(address, limit=limit, until=until):
                yield message.model_dump_json() + "\n"
        except Exception as e:
            logger.error(f"Error processing trades for {address}: {e}")
            yield ErrorMessage(error=str(e)).model_dump_json() + "\n"

    return StreamingResponse(lines(), media_type="application/x-ndjson")
