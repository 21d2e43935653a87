from enum import Enum


class Amm(str, Enum):
    """
    Known swap venues, keyed by program id.
    """
    ORCA = "obriQD1zbpyLz95G5n7nJe6a4DPjpFwa5XYPoNm113y"
    GOOSEFX = "HyaB3W9q6XdA5xwpU4XnSZV94htfmbmqJXZcEbRaJutt"
    PENGUIN = "9W959DqEETiGZocYWCQPaJ6sBmUzgfxXfqGeTEdp3aQP"
    JUPITER_V6 = "JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4"
    METEORA_DLMM = "LBUZKhRxPF3XUpBCjp4YzTKgLccjZhTSDM9YuVaPwxo"
    RAYDIUM = "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8"
    WHIRLPOOL = "whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc"
    RAYDIUM_CLMM = "CAMMCzo5YL8w4VFF8KVHrK22GGUsp5VTaW7grrKgrWqK"
    PHOENIX = "PhoeNiXZ8ByJGLkxNfZRnkUfjvmuYqLR89jjFHGqdXY"
    RAYDIUM_CPMM = "CPMMoo8L3F4NbTegBCKVNunggL7H1ZpdTHKxQB5qKP1C"
    SOLFI = "SoLFiHG9TfgtdUXUjWAxi3LtvYuFyDLVhBWxdMZxyCe"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @classmethod
    def name_for(cls, address: str) -> str:
        try:
            return cls(address).display_name
        except ValueError:
            return "Unknown"


_DISPLAY_NAMES = {
    Amm.ORCA: "Orca",
    Amm.GOOSEFX: "GooseFX",
    Amm.PENGUIN: "Penguin",
    Amm.JUPITER_V6: "Jupiter Aggregator V6",
    Amm.METEORA_DLMM: "Meteora DLMM",
    Amm.RAYDIUM: "Raydium",
    Amm.WHIRLPOOL: "Whirlpool",
    Amm.RAYDIUM_CLMM: "Raydium CLMM",
    Amm.PHOENIX: "Phoenix",
    Amm.RAYDIUM_CPMM: "Raydium CPMM",
    Amm.SOLFI: "SolFi",
}
