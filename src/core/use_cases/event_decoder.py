import base64
import binascii
import hashlib
import logging
import struct
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple

import base58
from solders.pubkey import Pubkey

from src.core.entities.trade import FeeEvent, SwapEvent
from src.core.errors import DecodeError

logger = logging.getLogger(__name__)

# Self-CPI event instructions start with a fixed 8-byte tag; the event follows.
EVENT_IX_TAG_LEN = 8
DISCRIMINATOR_LEN = 8


def event_discriminator(name: str) -> bytes:
    """Anchor event discriminator: sha256("event:<Name>")[:8]."""
    return hashlib.sha256(f"event:{name}".encode()).digest()[:DISCRIMINATOR_LEN]


def _pubkey(raw: bytes) -> str:
    return str(Pubkey.from_bytes(raw))


def _swap_event(fields: Tuple) -> SwapEvent:
    amm, input_mint, input_amount, output_mint, output_amount = fields
    return SwapEvent(
        amm=_pubkey(amm),
        input_mint=_pubkey(input_mint),
        input_amount=str(input_amount),
        output_mint=_pubkey(output_mint),
        output_amount=str(output_amount),
    )


def _fee_event(fields: Tuple) -> FeeEvent:
    account, mint, amount = fields
    return FeeEvent(account=_pubkey(account), mint=_pubkey(mint), amount=str(amount))


class Event(NamedTuple):
    name: str
    data: Any


class EventCoder:
    """
    Decodes base64 event payloads (discriminator + Borsh body) against the
    aggregator's known event schemas. Unknown discriminators decode to None.
    """

    SCHEMAS: Dict[str, Tuple[struct.Struct, Callable[[Tuple], Any]]] = {
        # amm, input_mint, input_amount, output_mint, output_amount
        "SwapEvent": (struct.Struct("<32s32sQ32sQ"), _swap_event),
        # account, mint, amount
        "FeeEvent": (struct.Struct("<32s32sQ"), _fee_event),
    }

    def __init__(self):
        self._by_discriminator = {
            event_discriminator(name): name for name in self.SCHEMAS
        }

    def decode(self, data: str) -> Optional[Event]:
        try:
            raw = base64.b64decode(data, validate=True)
        except binascii.Error as e:
            raise DecodeError(f"Event payload is not base64: {e}") from e

        name = self._by_discriminator.get(raw[:DISCRIMINATOR_LEN])
        if name is None:
            return None

        layout, build = self.SCHEMAS[name]
        body = raw[DISCRIMINATOR_LEN:]
        if len(body) < layout.size:
            raise DecodeError(f"{name} payload too short: {len(body)} < {layout.size} bytes")
        try:
            return Event(name, build(layout.unpack_from(body)))
        except (struct.error, ValueError) as e:
            raise DecodeError(f"Malformed {name}: {e}") from e


class EventDecoder:
    def __init__(self, program_id: str, coder: Optional[EventCoder] = None):
        self.program_id = program_id
        self.coder = coder or EventCoder()

    def get_events(self, transaction: Dict[str, Any]) -> List[Event]:
        """
        Events the program logged through inner instructions addressed to itself,
        in scan order.
        """
        events: List[Event] = []
        meta = transaction.get("meta") or {}

        for group in meta.get("innerInstructions") or []:
            for ix in group.get("instructions", []):
                if ix.get("programId") != self.program_id:
                    continue
                # Already structurally parsed by the node, no raw data to decode
                if "data" not in ix:
                    continue

                try:
                    ix_data = base58.b58decode(ix["data"])
                    event_data = base64.b64encode(ix_data[EVENT_IX_TAG_LEN:]).decode()
                    event = self.coder.decode(event_data)
                except (DecodeError, ValueError) as e:
                    logger.debug(f"Skipping undecodable inner instruction: {e}")
                    continue

                if event is None:
                    continue
                events.append(event)

        return events

    def extract(self, transaction: Dict[str, Any]) -> Tuple[List[SwapEvent], List[FeeEvent]]:
        events = self.get_events(transaction)
        swap_events = [e.data for e in events if e.name == "SwapEvent"]
        fee_events = [e.data for e in events if e.name == "FeeEvent"]
        return swap_events, fee_events
