
import sys
import os
import asyncio

# Add project root to path
sys.path.append(os.getcwd())

try:
    from src.core.config import Settings
    from src.core.use_cases.transaction_parser import JupiterV6Interpreter, TransactionParser
    from src.infrastructure.gateways.local_mock import FixtureTransactionSource
    from src.infrastructure.gateways.solana_rpc import SolanaRpcClient, SolanaRpcGateway
    print("✅ All imports successful.")
except Exception as e:
    print(f"❌ Import failed: {e}")
    sys.exit(1)


# Decode one transaction from the configured RPC and save it as a fixture
async def diagnose(signature: str, fixtures_dir: str = "tests/fixtures"):
    settings = Settings.from_env()
    rpc = SolanaRpcClient(settings.rpc_url, timeout=settings.rpc_timeout_seconds)
    try:
        [tx] = await SolanaRpcGateway(rpc).fetch_parsed_batch([signature])
    finally:
        await rpc.close()

    if tx is None:
        print(f"❌ Transaction {signature} not found")
        return

    FixtureTransactionSource(fixtures_dir).save(signature, tx)
    parsed = TransactionParser([JupiterV6Interpreter(settings.program_id)]).parse(tx)
    if parsed is None:
        print(f"❌ No Jupiter swap found in {signature}")
        return

    print(f"✅ {len(parsed.swaps)} hops, slippage={parsed.slippage_bps}bps, "
          f"quoted={parsed.quoted_out_amount}, actual={parsed.actual_out_amount}")
    for swap in parsed.swaps:
        print(f"   {swap.amm}: {swap.input_amount} {swap.input_mint} -> {swap.output_amount} {swap.output_mint}")

if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("usage: python diagnose.py <signature>")
        sys.exit(2)
    asyncio.run(diagnose(sys.argv[1]))
