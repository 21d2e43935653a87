import time

import pytest

from src.core.entities.amm import Amm
from src.core.entities.token import TokenInfo
from src.core.entities.trade import TradeInfo
from src.core.errors import AssemblyError
from src.core.use_cases.trade_formatter import (
    calculate_price_impact, format_slippage, format_token_amount, format_trade
)
from src.core.use_cases.transaction_parser import TransactionParser

from conftest import SOL, TOKEN_X, USDC, USDT, four_hop_transaction


@pytest.fixture
def token_info():
    return {
        SOL: TokenInfo(address=SOL, name="Wrapped SOL", symbol="SOL", decimals=9),
        USDC: TokenInfo(address=USDC, name="USD Coin", symbol="USDC", decimals=6),
        USDT: TokenInfo(address=USDT, name="USDT", symbol="USDT", decimals=6),
        TOKEN_X: TokenInfo(address=TOKEN_X, name="Token X", symbol="X", decimals=5),
    }


@pytest.fixture
def trade():
    parsed = TransactionParser().parse(four_hop_transaction())
    return TradeInfo(signature="sig1", **parsed.model_dump())


@pytest.mark.parametrize("amount,decimals,expected", [
    ("21112899", 9, "0.0211"),
    ("24342982929", 5, "243,429.8293"),
    ("1000000", 6, "1.0000"),
    ("1234", 0, "1,234"),
    ("125", 5, "0.0013"),
    ("1", 9, "1.000e-09"),
    ("0", 6, "0.000e+00"),
])
def test_format_token_amount(amount, decimals, expected):
    assert format_token_amount(amount, decimals) == expected


def test_display_rounding_is_half_up():
    assert format_token_amount("125", 5) == "0.0013"
    assert format_token_amount("1000050000", 9) == "1.0001"
    assert format_token_amount("25", 1) == "2.5"
    assert format_token_amount("12345", 4) == "1.2345"


@pytest.mark.parametrize("amount,decimals", [
    (21112899, 9), (24342982929, 5), (4082119, 6), (987654321987, 2), (123, 9), (5, 12),
])
def test_formatted_amount_matches_scaled_value(amount, decimals):
    expected = amount / 10 ** decimals
    formatted = format_token_amount(str(amount), decimals)

    if expected < 1e-6:
        assert "e" in formatted
        assert float(formatted) == pytest.approx(expected, rel=1e-3)
    else:
        tolerance = 0.5 * 10 ** -min(decimals, 4)
        assert float(formatted.replace(",", "")) == pytest.approx(expected, abs=tolerance)


def test_price_impact():
    assert calculate_price_impact(None, "21135942", 9) == "Unknown"
    assert calculate_price_impact("0", "21135942", 9) == "Unknown"
    assert calculate_price_impact("21200000", "21135942", 9) == "0.30%"
    # Receiving more than quoted is still a non-negative impact
    assert calculate_price_impact("100", "110", 0) == "10.00%"


def test_slippage():
    assert format_slippage(None) == "Unknown"
    assert format_slippage("2000") == "20%"
    assert format_slippage("50") == "0.5%"
    assert format_slippage("0") == "0%"


def test_amm_names():
    assert Amm.name_for("whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc") == "Whirlpool"
    assert Amm.name_for("675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8") == "Raydium"
    assert Amm.name_for("2wT8Yq49kHgDzXuPxZSaeLaH1qbmGXtEyPy64bL7aD3c") == "Unknown"
    assert Amm.RAYDIUM_CLMM.display_name == "Raydium CLMM"


def test_format_four_hop_trade(trade, token_info):
    formatted = format_trade(trade, token_info)

    assert formatted.signature == "sig1"
    assert formatted.timestamp == 1700000000
    assert formatted.inputToken.address == SOL
    assert formatted.inputToken.amount.raw == "21112899"
    assert formatted.inputToken.amount.formatted == "0.0211"
    assert formatted.outputToken.address == SOL
    assert formatted.outputToken.amount.raw == "21135942"
    assert [hop.ammName for hop in formatted.route] == ["Whirlpool", "Orca", "Whirlpool", "Raydium CLMM"]
    assert formatted.route[2].outputToken.amount.formatted == "243,429.8293"
    assert formatted.slippage == "20%"
    assert formatted.priceImpact == "0.07%"


def test_unresolved_intermediate_hops_are_dropped(trade, token_info):
    del token_info[TOKEN_X]

    formatted = format_trade(trade, token_info)

    assert len(formatted.route) == 2
    assert formatted.inputToken.address == SOL
    assert formatted.outputToken.address == SOL


def test_unresolved_endpoint_fails_assembly(trade, token_info):
    del token_info[SOL]
    with pytest.raises(AssemblyError):
        format_trade(trade, token_info)


def test_missing_timestamp_falls_back_to_now(trade, token_info):
    untimed = trade.model_copy(update={"timestamp": None})
    before = int(time.time())

    formatted = format_trade(untimed, token_info)

    assert before <= formatted.timestamp <= int(time.time()) + 1
