import hashlib
import logging
import struct
from typing import Any, Dict, List, Optional

import base58

from src.core.entities.trade import RouteArgs
from src.core.errors import DecodeError

logger = logging.getLogger(__name__)

DISCRIMINATOR_LEN = 8
VEC_LEN_PREFIX = 4

# Every route-family instruction ends its Borsh args with a fixed tail after the
# variable-length route plan, so the tail can be read from the end.
#   full:   [u64 A, u64 B, u16 slippage_bps, u8 platform_fee_bps]
#   ledger: [u64 quoted_out_amount, u16 slippage_bps, u8 platform_fee_bps]
FULL_TAIL = struct.Struct("<QQHB")
LEDGER_TAIL = struct.Struct("<QHB")

# name -> (leading u8 `id` arg, tail layout, index of the quoted/out amount in the tail)
ROUTE_INSTRUCTIONS = {
    "route": (False, FULL_TAIL, 1),
    "shared_accounts_route": (True, FULL_TAIL, 1),
    "route_with_token_ledger": (False, LEDGER_TAIL, 0),
    "shared_accounts_route_with_token_ledger": (True, LEDGER_TAIL, 0),
    "exact_out_route": (False, FULL_TAIL, 0),
    "shared_accounts_exact_out_route": (True, FULL_TAIL, 0),
}


def instruction_discriminator(name: str) -> bytes:
    """Anchor instruction discriminator: sha256("global:<name>")[:8]."""
    return hashlib.sha256(f"global:{name}".encode()).digest()[:DISCRIMINATOR_LEN]


class InstructionDecoder:
    def __init__(self, program_id: str):
        self.program_id = program_id
        self._by_discriminator = {
            instruction_discriminator(name): name for name in ROUTE_INSTRUCTIONS
        }

    def get_instructions(self, transaction: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Instructions addressed to the program, top-level and nested, in
        execution order: top-level instruction i, then the inner ones it invoked.
        """
        message = (transaction.get("transaction") or {}).get("message") or {}
        meta = transaction.get("meta") or {}

        inner_by_index: Dict[int, List[Dict[str, Any]]] = {}
        for group in meta.get("innerInstructions") or []:
            inner_by_index.setdefault(group.get("index"), []).extend(group.get("instructions", []))

        ordered = []
        for index, ix in enumerate(message.get("instructions") or []):
            ordered.append(ix)
            ordered.extend(inner_by_index.get(index, []))

        return [ix for ix in ordered if ix.get("programId") == self.program_id]

    def get_route_args(self, instructions: List[Dict[str, Any]]) -> Optional[RouteArgs]:
        for ix in instructions:
            if "data" not in ix:
                continue
            try:
                data = base58.b58decode(ix["data"])
            except ValueError:
                logger.debug("Skipping instruction with non-base58 data")
                continue

            name = self._by_discriminator.get(data[:DISCRIMINATOR_LEN])
            if name is not None:
                return self._decode_route_args(name, data)

        return None

    def get_slippage_bps(self, instructions: List[Dict[str, Any]]) -> Optional[str]:
        args = self.get_route_args(instructions)
        return str(args.slippage_bps) if args else None

    def get_quoted_out_amount(self, instructions: List[Dict[str, Any]]) -> Optional[str]:
        args = self.get_route_args(instructions)
        return args.quoted_out_amount if args else None

    @staticmethod
    def _decode_route_args(name: str, data: bytes) -> RouteArgs:
        has_id, tail, amount_index = ROUTE_INSTRUCTIONS[name]
        min_len = DISCRIMINATOR_LEN + int(has_id) + VEC_LEN_PREFIX + tail.size
        if len(data) < min_len:
            raise DecodeError(f"{name} instruction too short: {len(data)} < {min_len} bytes")

        values = tail.unpack_from(data, len(data) - tail.size)
        slippage_bps, platform_fee_bps = values[-2], values[-1]

        return RouteArgs(
            name=name,
            slippage_bps=slippage_bps,
            quoted_out_amount=str(values[amount_index]),
            platform_fee_bps=platform_fee_bps,
        )
