from pydantic import BaseModel, Field
from typing import Literal, Optional, Union

from src.core.entities.token import FormattedTrade
from src.core.entities.trade import TradeInfo


class TradeMessage(BaseModel):
    type: Literal["trade"] = "trade"
    signature: str
    data: FormattedTrade
    # Kept for the caller that collects TradeInfo; never serialised to sinks.
    trade: TradeInfo = Field(exclude=True)


class ErrorMessage(BaseModel):
    type: Literal["error"] = "error"
    signature: Optional[str] = None
    error: str


class CompleteMessage(BaseModel):
    type: Literal["complete"] = "complete"
    totalTrades: int
    processedTransactions: int
    durationMs: int


StreamMessage = Union[TradeMessage, ErrorMessage, CompleteMessage]
