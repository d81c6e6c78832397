# Copyright © Soroban TTL contributors
# SPDX-License-Identifier: Apache-2.0

"""
Print the live-until ledger and remaining TTL of a contract's entries.

Set ``SOROBAN_WASM_HASH`` to include the contract's code entry as well.
"""

import asyncio

from soroban_ttl.async_client import SorobanRpcClient
from soroban_ttl.ttl import contract_ttl

from .common import CONTRACT_ID, RPC_URL, WASM_HASH


async def main():
    if CONTRACT_ID is None:
        raise SystemExit("Set SOROBAN_CONTRACT_ID to the contract to inspect")
    wasm_hash = bytes.fromhex(WASM_HASH) if WASM_HASH else None

    async with SorobanRpcClient(RPC_URL) as rpc_client:
        latest = await rpc_client.get_latest_ledger()
        print(f"Latest ledger: {latest['sequence']}")
        for entry in await contract_ttl(rpc_client, CONTRACT_ID, wasm_hash):
            print(entry)


if __name__ == "__main__":
    asyncio.run(main())
