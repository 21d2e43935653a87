import logging
import time
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Optional

from src.core.entities.amm import Amm
from src.core.entities.token import (
    FormattedAmount, FormattedRoute, FormattedToken, FormattedTrade, TokenInfo
)
from src.core.entities.trade import TradeInfo
from src.core.errors import AssemblyError, MetadataMissingError

logger = logging.getLogger(__name__)

SCIENTIFIC_THRESHOLD = Decimal("0.000001")
MAX_DISPLAY_DECIMALS = 4


def scale_amount(amount: str, decimals: int) -> Decimal:
    return Decimal(int(amount)).scaleb(-decimals)


def format_token_amount(amount: str, decimals: int) -> str:
    value = scale_amount(amount, decimals)
    if value < SCIENTIFIC_THRESHOLD:
        # 4 significant digits
        return f"{float(value):.3e}"
    precision = min(decimals, MAX_DISPLAY_DECIMALS)
    # Half-up, like a locale-formatted display value
    rounded = value.quantize(Decimal(1).scaleb(-precision), rounding=ROUND_HALF_UP)
    return f"{rounded:,.{precision}f}"


def calculate_price_impact(quoted_out_amount: Optional[str], actual_out_amount: str, decimals: int) -> str:
    if not quoted_out_amount:
        return "Unknown"

    exact_value = scale_amount(quoted_out_amount, decimals)
    actual_value = scale_amount(actual_out_amount, decimals)
    if exact_value == 0:
        return "Unknown"

    logger.debug(f"exactValue: {exact_value}, actualValue: {actual_value}")
    price_impact = abs((exact_value - actual_value) / exact_value) * 100
    return f"{price_impact:.2f}%"


def format_slippage(slippage_bps: Optional[str]) -> str:
    if slippage_bps is None:
        return "Unknown"
    return f"{Decimal(int(slippage_bps)) / 100}%"


def _token(mint: str, token_info: Dict[str, TokenInfo]) -> TokenInfo:
    token = token_info.get(mint)
    if token is None:
        raise MetadataMissingError(f"No token info found for {mint}")
    return token


def _formatted_token(token: TokenInfo, raw_amount: str) -> FormattedToken:
    return FormattedToken(
        **token.model_dump(),
        amount=FormattedAmount(
            raw=raw_amount,
            formatted=format_token_amount(raw_amount, token.decimals),
        ),
    )


def format_trade(trade: TradeInfo, token_info: Dict[str, TokenInfo]) -> FormattedTrade:
    """
    Renders a decoded trade for display. Raises AssemblyError when the first
    input or last output token is unresolved; intermediate hops with unresolved
    tokens are dropped from the route.
    """
    if not trade.swaps:
        raise AssemblyError(f"Trade {trade.signature} has no swaps")

    first_swap = trade.swaps[0]
    last_swap = trade.swaps[-1]

    try:
        input_token = _token(first_swap.input_mint, token_info)
        output_token = _token(last_swap.output_mint, token_info)
    except MetadataMissingError as e:
        logger.warning(f"{e} (trade {trade.signature})")
        raise AssemblyError(
            f"No token info found for {first_swap.input_mint} or {last_swap.output_mint}"
        ) from e

    route = []
    for swap in trade.swaps:
        try:
            hop_input = _token(swap.input_mint, token_info)
            hop_output = _token(swap.output_mint, token_info)
        except MetadataMissingError as e:
            logger.warning(f"Dropping hop via {swap.amm}: {e}")
            continue

        route.append(FormattedRoute(
            amm=swap.amm,
            ammName=Amm.name_for(swap.amm),
            inputToken=_formatted_token(hop_input, swap.input_amount),
            outputToken=_formatted_token(hop_output, swap.output_amount),
        ))

    price_impact = calculate_price_impact(
        trade.quoted_out_amount,
        trade.actual_out_amount,
        output_token.decimals
    )

    return FormattedTrade(
        signature=trade.signature,
        timestamp=trade.timestamp or int(time.time()),
        inputToken=_formatted_token(input_token, first_swap.input_amount),
        outputToken=_formatted_token(output_token, last_swap.output_amount),
        route=route,
        slippage=format_slippage(trade.slippage_bps),
        priceImpact=price_impact,
    )
