"""
Tests for self-logged CPI event decoding.
"""
import base64

import base58
import pytest

from src.core.errors import DecodeError
from src.core.use_cases.event_decoder import EventCoder, EventDecoder, event_discriminator

from conftest import (
    AMM_A, FOUR_HOPS, JUP, SOL, USDC, WALLET, COMPUTE_BUDGET,
    build_transaction, fee_event_data, four_hop_transaction, ix, swap_event_data
)


@pytest.fixture
def decoder():
    return EventDecoder(JUP)


def test_four_hops_decoded_in_execution_order(decoder):
    swaps, fees = decoder.extract(four_hop_transaction())

    assert [(s.amm, s.input_mint, int(s.input_amount), s.output_mint, int(s.output_amount)) for s in swaps] == FOUR_HOPS
    assert fees == []


def test_amounts_are_strings(decoder):
    swaps, _ = decoder.extract(four_hop_transaction())
    assert swaps[2].output_amount == "24342982929"


def test_fee_events_are_separated_from_swaps(decoder):
    tx = build_transaction([
        ix(swap_event_data(AMM_A, SOL, 1000, USDC, 2000)),
        ix(fee_event_data(WALLET, SOL, 920000)),
    ])

    swaps, fees = decoder.extract(tx)

    assert len(swaps) == 1
    assert len(fees) == 1
    assert fees[0].account == WALLET
    assert fees[0].mint == SOL
    assert fees[0].amount == "920000"


def test_no_matching_inner_instructions_yields_empty(decoder):
    assert decoder.extract(build_transaction([])) == ([], [])

    foreign = build_transaction([ix(swap_event_data(AMM_A, SOL, 1, USDC, 2), COMPUTE_BUDGET)])
    assert decoder.extract(foreign) == ([], [])

    no_meta = {"slot": 1, "blockTime": None, "meta": None, "transaction": {}}
    assert decoder.extract(no_meta) == ([], [])


def test_parsed_instructions_are_ignored(decoder):
    parsed = {"programId": JUP, "program": "jupiter", "parsed": {"type": "route"}}
    assert decoder.extract(build_transaction([parsed])) == ([], [])


def test_undecodable_payloads_are_skipped(decoder):
    truncated = base58.b58decode(swap_event_data(AMM_A, SOL, 1, USDC, 2))[:60]
    unknown = bytes(8) + event_discriminator("SomethingElse") + bytes(40)
    tx = build_transaction([
        ix("0OIl"),  # not base58
        ix(base58.b58encode(truncated).decode()),
        ix(base58.b58encode(unknown).decode()),
        ix(""),
        ix(swap_event_data(AMM_A, SOL, 10, USDC, 20)),
    ])

    swaps, fees = decoder.extract(tx)

    assert len(swaps) == 1
    assert swaps[0].input_amount == "10"


def test_coder_returns_none_for_unknown_event():
    payload = base64.b64encode(event_discriminator("Unknown") + bytes(72)).decode()
    assert EventCoder().decode(payload) is None


def test_coder_raises_on_truncated_event():
    payload = base64.b64encode(event_discriminator("FeeEvent") + bytes(10)).decode()
    with pytest.raises(DecodeError):
        EventCoder().decode(payload)
