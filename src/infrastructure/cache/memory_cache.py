from collections import OrderedDict
from typing import Optional

from src.core.entities.token import ResolvedToken
from src.core.interfaces.datasource import ITokenCache


class MemoryTokenCache(ITokenCache):
    """
    Process-local LRU cache of resolved tokens. `capacity=None` means unbounded.
    """

    def __init__(self, capacity: Optional[int] = None):
        self.capacity = capacity
        self._entries: "OrderedDict[str, ResolvedToken]" = OrderedDict()

    async def get(self, address: str) -> Optional[ResolvedToken]:
        entry = self._entries.get(address)
        if entry is not None:
            self._entries.move_to_end(address)
        return entry

    async def set(self, address: str, entry: ResolvedToken) -> None:
        self._entries[address] = entry
        self._entries.move_to_end(address)
        if self.capacity is not None:
            while len(self._entries) > self.capacity:
                self._entries.popitem(last=False)

    def __len__(self):
        return len(self._entries)

    def __contains__(self, address: str):
        return address in self._entries
