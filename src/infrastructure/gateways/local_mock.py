import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from src.core.entities.trade import SignatureInfo
from src.core.interfaces.datasource import ITransactionSource

logger = logging.getLogger(__name__)


class FixtureTransactionSource(ITransactionSource):
    """
    Offline ITransactionSource backed by saved `<signature>.json` transactions
    (raw jsonParsed getTransaction results), e.g. for replaying a wallet in tests.
    """

    def __init__(self, fixtures_dir: Path, mint_decimals: Optional[Dict[str, int]] = None):
        self.fixtures_dir = Path(fixtures_dir)
        self.mint_decimals = mint_decimals or {}

    def _load(self, signature: str) -> Optional[Dict[str, Any]]:
        path = self.fixtures_dir / f"{signature}.json"
        if not path.exists():
            return None
        with open(path) as f:
            return json.load(f)

    def save(self, signature: str, transaction: Dict[str, Any]) -> Path:
        self.fixtures_dir.mkdir(parents=True, exist_ok=True)
        path = self.fixtures_dir / f"{signature}.json"
        with open(path, "w") as f:
            json.dump(transaction, f, indent=2)
        return path

    async def list_signatures(
        self,
        address: str,
        limit: int,
        before: Optional[str] = None
    ) -> List[SignatureInfo]:
        entries = []
        for path in self.fixtures_dir.glob("*.json"):
            tx = self._load(path.stem) or {}
            entries.append(SignatureInfo(
                signature=path.stem,
                slot=tx.get("slot", 0),
                block_time=tx.get("blockTime"),
                err=(tx.get("meta") or {}).get("err"),
            ))
        # Newest first, like the RPC
        entries.sort(key=lambda e: e.slot, reverse=True)

        if before:
            names = [e.signature for e in entries]
            entries = entries[names.index(before) + 1:] if before in names else []
        return entries[:limit]

    async def fetch_parsed_batch(self, signatures: List[str]) -> List[Optional[Dict[str, Any]]]:
        return [self._load(signature) for signature in signatures]

    async def fetch_mint_decimals(self, addresses: List[str]) -> Dict[str, int]:
        return {a: self.mint_decimals[a] for a in addresses if a in self.mint_decimals}
