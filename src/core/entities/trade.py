from pydantic import BaseModel, ConfigDict, model_validator
from typing import Any, List, Optional


class SwapEvent(BaseModel):
    """
    One executed hop, as logged by the aggregator. Amounts are raw u64 strings.
    """
    model_config = ConfigDict(frozen=True)

    amm: str
    input_mint: str
    input_amount: str
    output_mint: str
    output_amount: str


class FeeEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    account: str
    mint: str
    amount: str


class RouteArgs(BaseModel):
    """
    Arguments of a route-family instruction that matter for display.
    """
    model_config = ConfigDict(frozen=True)

    name: str  # e.g. "route", "shared_accounts_route"
    slippage_bps: int
    quoted_out_amount: str
    platform_fee_bps: int = 0


class ParsedTransaction(BaseModel):
    """
    Standardised swap trade decoded from a single transaction.
    Never mutated after the parser builds it.
    """
    model_config = ConfigDict(frozen=True)

    swaps: List[SwapEvent]
    fee_events: List[FeeEvent] = []
    slippage_bps: Optional[str] = None
    quoted_out_amount: Optional[str] = None
    actual_out_amount: str
    timestamp: Optional[int] = None

    @model_validator(mode="after")
    def _actual_out_matches_last_hop(self):
        if self.swaps and self.actual_out_amount != self.swaps[-1].output_amount:
            raise ValueError("actual_out_amount must equal the last swap's output_amount")
        return self


class TradeInfo(ParsedTransaction):
    signature: str


class SignatureInfo(BaseModel):
    signature: str
    slot: int
    block_time: Optional[int] = None
    err: Optional[Any] = None
