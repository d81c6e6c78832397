# Copyright © Soroban TTL contributors
# SPDX-License-Identifier: Apache-2.0

"""
Extend a deployed contract's TTL - the individual steps, spelled out.

This example performs, in order:

1. Fetch the source account's sequence number from the RPC server
2. Build Soroban data marking the contract instance read-only, with a
   resource fee of 200,000 stroops
3. Build a transaction with a total fee of 200,100 stroops on testnet
4. Add one extend-footprint-TTL operation extending the TTL to 500,000 ledgers
5. Sign it with the source key pair
6. Submit it and print the RPC result

`soroban_ttl.ttl.extend_contract_ttl` wraps the same sequence in one call.

Configuration comes from the environment, see `examples/common.py`.
"""

import asyncio
import json
import logging

from soroban_ttl.async_client import SorobanRpcClient, TransactionFailed
from soroban_ttl.keypair import Keypair
from soroban_ttl.ledger import Contract
from soroban_ttl.soroban_data import SorobanDataBuilder
from soroban_ttl.transactions import ExtendFootprintTTL, TransactionBuilder

from .common import CONTRACT_ID, NETWORK_PASSPHRASE, RPC_URL, SECRET_KEY_ENV


async def main():
    rpc_client = SorobanRpcClient(RPC_URL)
    try:
        source_keypair = Keypair.from_environment(SECRET_KEY_ENV)
        contract = Contract(CONTRACT_ID or "")
        instance = contract.get_footprint()

        # :!:>section_1
        account = await rpc_client.get_account(source_keypair.public_key())
        fee = 200_100  # <:!:section_1

        # :!:>section_2
        soroban_data = (
            SorobanDataBuilder()
            .set_resource_fee(200_000)
            .set_read_only([instance])
            .build()
        )  # <:!:section_2

        # :!:>section_3
        transaction = (
            TransactionBuilder(account, fee, NETWORK_PASSPHRASE)
            .set_soroban_data(soroban_data)
            .add_operation(ExtendFootprintTTL(extend_to=500_000))
            .set_timeout(30)
            .build()
        )  # <:!:section_3

        # :!:>section_4
        transaction.sign(source_keypair)
        result = await rpc_client.send_transaction(transaction)  # <:!:section_4
        print(json.dumps(result, indent=2))
    except TransactionFailed as e:
        print(json.dumps(e.result, indent=2))
        logging.error(e, exc_info=True)
    except Exception as e:
        logging.error(e, exc_info=True)
    finally:
        await rpc_client.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
