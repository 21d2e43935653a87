import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from src.core.config import JUPITER_V6_PROGRAM_ID
from src.core.entities.trade import ParsedTransaction
from src.core.use_cases.event_decoder import EventDecoder
from src.core.use_cases.instruction_decoder import InstructionDecoder

logger = logging.getLogger(__name__)

# Slot-based timestamp estimate for transactions without a block time.
# Approximation only: real slot times drift from the average.
SLOT_0_TIMESTAMP = 1598931600  # Sep 1, 2020
SLOT_TIME_MS = 400


def estimate_timestamp(block_time: Optional[int], slot: Optional[int]) -> Optional[int]:
    if block_time:
        return block_time
    if slot:
        return SLOT_0_TIMESTAMP + (slot * SLOT_TIME_MS) // 1000
    return None


class ITransactionInterpreter(ABC):
    @abstractmethod
    def interpret(self, transaction: Dict[str, Any]) -> Optional[ParsedTransaction]:
        pass


class JupiterV6Interpreter(ITransactionInterpreter):
    """
    Reads Jupiter v6 route instructions and self-logged swap/fee events.
    """

    def __init__(self, program_id: str = JUPITER_V6_PROGRAM_ID):
        self.instructions = InstructionDecoder(program_id)
        self.events = EventDecoder(program_id)

    def interpret(self, transaction: Dict[str, Any]) -> Optional[ParsedTransaction]:
        try:
            return self._interpret(transaction)
        except Exception as e:
            logger.error(f"Error parsing Jupiter transaction: {e}")
            return None

    def _interpret(self, transaction: Dict[str, Any]) -> Optional[ParsedTransaction]:
        slippage_bps: Optional[str] = None
        quoted_out_amount: Optional[str] = None

        try:
            route_args = self.instructions.get_route_args(
                self.instructions.get_instructions(transaction)
            )
            if route_args is not None:
                slippage_bps = str(route_args.slippage_bps)
                quoted_out_amount = route_args.quoted_out_amount
            logger.debug(f"slippageBps: {slippage_bps}, quotedOutAmount: {quoted_out_amount}")
        except Exception as e:
            logger.warning(f"Error parsing instruction data: {e}")

        swap_events, fee_events = self.events.extract(transaction)
        if not swap_events:
            return None

        timestamp = estimate_timestamp(transaction.get("blockTime"), transaction.get("slot"))
        if timestamp is not None and not transaction.get("blockTime"):
            logger.debug(f"Estimated timestamp from slot {transaction.get('slot')}")

        return ParsedTransaction(
            swaps=swap_events,
            fee_events=fee_events,
            slippage_bps=slippage_bps,
            quoted_out_amount=quoted_out_amount,
            actual_out_amount=swap_events[-1].output_amount,
            timestamp=timestamp,
        )


class TransactionParser:
    """
    Tries each interpreter in order; the first one that finds swaps wins.
    """

    def __init__(self, interpreters: Optional[List[ITransactionInterpreter]] = None):
        self.interpreters = interpreters if interpreters is not None else [JupiterV6Interpreter()]

    def parse(self, transaction: Optional[Dict[str, Any]]) -> Optional[ParsedTransaction]:
        if not transaction:
            return None
        for interpreter in self.interpreters:
            try:
                parsed = interpreter.interpret(transaction)
            except Exception as e:
                logger.error(f"{type(interpreter).__name__} failed: {e}")
                continue
            if parsed is not None and parsed.swaps:
                return parsed
        return None
