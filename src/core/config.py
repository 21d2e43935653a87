import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

JUPITER_V6_PROGRAM_ID = "JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4"


class Settings(BaseModel):
    """
    Runtime configuration. Defaults match the public mainnet RPC limits.
    """
    rpc_url: str = "https://api.mainnet-beta.solana.com"
    database_url: Optional[str] = None
    redis_url: Optional[str] = None
    program_id: str = JUPITER_V6_PROGRAM_ID

    batch_size: int = 100
    trade_limit: int = 1000
    batch_pause_ms: int = 500
    backoff_base_ms: int = 1000
    backoff_cap_ms: int = 10000
    max_rate_limit_retries: int = 5

    token_cache_size: int = 10000  # 0 = unbounded
    token_cache_ttl_seconds: int = 86400
    rpc_timeout_seconds: float = 30.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        defaults = cls()
        return cls(
            rpc_url=os.getenv("RPC_URL", defaults.rpc_url),
            database_url=os.getenv("DATABASE_URL") or None,
            redis_url=os.getenv("REDIS_URL") or None,
            program_id=os.getenv("JUPITER_PROGRAM_ID", defaults.program_id),
            batch_size=int(os.getenv("BATCH_SIZE", defaults.batch_size)),
            trade_limit=int(os.getenv("TRADE_LIMIT", defaults.trade_limit)),
            batch_pause_ms=int(os.getenv("BATCH_PAUSE_MS", defaults.batch_pause_ms)),
            backoff_base_ms=int(os.getenv("BACKOFF_BASE_MS", defaults.backoff_base_ms)),
            backoff_cap_ms=int(os.getenv("BACKOFF_CAP_MS", defaults.backoff_cap_ms)),
            max_rate_limit_retries=int(
                os.getenv("MAX_RATE_LIMIT_RETRIES", defaults.max_rate_limit_retries)
            ),
            token_cache_size=int(os.getenv("TOKEN_CACHE_SIZE", defaults.token_cache_size)),
            token_cache_ttl_seconds=int(
                os.getenv("TOKEN_CACHE_TTL_SECONDS", defaults.token_cache_ttl_seconds)
            ),
            rpc_timeout_seconds=float(os.getenv("RPC_TIMEOUT_SECONDS", defaults.rpc_timeout_seconds)),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
        )
