# Copyright © Soroban TTL contributors
# SPDX-License-Identifier: Apache-2.0

"""
Extend, restore and inspect the time-to-live of a deployed Soroban contract.

Soroban ledger entries carry a TTL: the number of ledgers they remain live
before being archived. A contract stays callable only while its instance
entry and its Wasm code entry are live. This module strings the SDK pieces
together into the three procedures an operator needs:

- `extend_contract_ttl`: fetch the source account, describe the contract's
  entries as a read-only footprint with a resource fee, build a transaction
  with a single `ExtendFootprintTTL` operation, sign it and submit it.
- `restore_contract`: the same chain with a `RestoreFootprint` operation and
  a read-write footprint, for entries that were already archived.
- `contract_ttl`: report the live-until ledger of each entry and how many
  ledgers remain.

Fees are not estimated: the total fee and the resource fee are passed in as
plain stroop amounts.

Examples:
    Extending a testnet contract for 500,000 ledgers::

        async with SorobanRpcClient("https://soroban-testnet.stellar.org") as client:
            result = await extend_contract_ttl(
                client,
                Keypair.from_secret(secret),
                "CA3D5KRYM6CB7OWQ6TWYRR3Z4T7GNZLKERYNZGGA5SOAOPIFY6YQGAXE",
            )
            print(result)
"""

import unittest
import unittest.mock
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from . import strkey
from .account import Account
from .async_client import SorobanRpcClient
from .keypair import Keypair
from .ledger import Contract, LedgerKey, contract_code_key
from .network import Network
from .soroban_data import SorobanDataBuilder
from .transactions import (
    ExtendFootprintTTL,
    Operation,
    RestoreFootprint,
    TransactionBuilder,
    TransactionEnvelope,
)

DEFAULT_EXTEND_TO = 500_000
DEFAULT_FEE = 200_100
DEFAULT_RESOURCE_FEE = 200_000
DEFAULT_TIMEOUT = 30


def contract_footprint(contract_id: str, wasm_hash: Optional[bytes] = None) -> List[LedgerKey]:
    """Ledger keys of a contract: its instance and, if known, its Wasm code."""
    keys = [Contract(contract_id).get_footprint()]
    if wasm_hash is not None:
        keys.append(contract_code_key(wasm_hash))
    return keys


def build_extend_ttl_transaction(
    source_account: Account,
    signer: Keypair,
    contract_id: str,
    extend_to: int = DEFAULT_EXTEND_TO,
    fee: int = DEFAULT_FEE,
    resource_fee: int = DEFAULT_RESOURCE_FEE,
    network_passphrase: str = Network.TESTNET,
    timeout: int = DEFAULT_TIMEOUT,
    wasm_hash: Optional[bytes] = None,
) -> TransactionEnvelope:
    """Build and sign a TTL extension for `contract_id` without touching the network."""
    soroban_data = (
        SorobanDataBuilder()
        .set_resource_fee(resource_fee)
        .set_read_only(contract_footprint(contract_id, wasm_hash))
        .build()
    )
    return _build_and_sign(
        source_account,
        signer,
        Operation(ExtendFootprintTTL(extend_to)),
        soroban_data,
        fee,
        network_passphrase,
        timeout,
    )


def build_restore_transaction(
    source_account: Account,
    signer: Keypair,
    contract_id: str,
    fee: int = DEFAULT_FEE,
    resource_fee: int = DEFAULT_RESOURCE_FEE,
    network_passphrase: str = Network.TESTNET,
    timeout: int = DEFAULT_TIMEOUT,
    wasm_hash: Optional[bytes] = None,
) -> TransactionEnvelope:
    """Build and sign a restore of the contract's archived entries."""
    soroban_data = (
        SorobanDataBuilder()
        .set_resource_fee(resource_fee)
        .set_read_write(contract_footprint(contract_id, wasm_hash))
        .build()
    )
    return _build_and_sign(
        source_account,
        signer,
        Operation(RestoreFootprint()),
        soroban_data,
        fee,
        network_passphrase,
        timeout,
    )


def _build_and_sign(
    source_account, signer, operation, soroban_data, fee, network_passphrase, timeout
) -> TransactionEnvelope:
    envelope = (
        TransactionBuilder(source_account, fee, network_passphrase)
        .set_soroban_data(soroban_data)
        .add_operation(operation)
        .set_timeout(timeout)
        .build()
    )
    return envelope.sign(signer)


async def extend_contract_ttl(
    client: SorobanRpcClient,
    signer: Keypair,
    contract_id: str,
    extend_to: int = DEFAULT_EXTEND_TO,
    fee: int = DEFAULT_FEE,
    resource_fee: int = DEFAULT_RESOURCE_FEE,
    network_passphrase: str = Network.TESTNET,
    timeout: int = DEFAULT_TIMEOUT,
    wasm_hash: Optional[bytes] = None,
    wait: bool = False,
) -> Dict[str, Any]:
    """Extend the TTL of a deployed contract's entries.

    The steps run strictly in order, each awaited before the next:

    1. fetch the signer's account sequence from the RPC server;
    2. mark the contract instance (and the code entry, when `wasm_hash` is
       given) read-only and attach `resource_fee`;
    3. build a transaction paying `fee` in total, expiring after `timeout`
       seconds;
    4. add one `ExtendFootprintTTL(extend_to)` operation;
    5. sign with `signer`;
    6. submit, and if `wait` is set, poll until the transaction is final.

    Args:
        client: RPC client for the target network.
        signer: Key pair of the fee-paying source account.
        contract_id: ``C...`` id of the deployed contract.
        extend_to: Ledgers past the current one the entries must stay live.
        fee: Total fee in stroops, resource fee included.
        resource_fee: Resource fee in stroops.
        network_passphrase: Passphrase of the network `client` talks to.
        timeout: Seconds until the transaction expires.
        wasm_hash: SHA-256 of the contract's Wasm, to extend the code as well.
        wait: Wait for the transaction to be applied.

    Returns:
        The ``sendTransaction`` result, or the final ``getTransaction`` result
        when `wait` is set.

    Raises:
        AccountNotFound: If the signer's account does not exist.
        TransactionFailed: If the transaction is rejected or fails.
    """
    account = await client.get_account(signer.public_key())
    envelope = build_extend_ttl_transaction(
        account,
        signer,
        contract_id,
        extend_to,
        fee,
        resource_fee,
        network_passphrase,
        timeout,
        wasm_hash,
    )
    if wait:
        return await client.submit_and_wait(envelope)
    return await client.send_transaction(envelope)


async def restore_contract(
    client: SorobanRpcClient,
    signer: Keypair,
    contract_id: str,
    fee: int = DEFAULT_FEE,
    resource_fee: int = DEFAULT_RESOURCE_FEE,
    network_passphrase: str = Network.TESTNET,
    timeout: int = DEFAULT_TIMEOUT,
    wasm_hash: Optional[bytes] = None,
    wait: bool = False,
) -> Dict[str, Any]:
    """Restore a contract's archived instance (and code) entries."""
    account = await client.get_account(signer.public_key())
    envelope = build_restore_transaction(
        account,
        signer,
        contract_id,
        fee,
        resource_fee,
        network_passphrase,
        timeout,
        wasm_hash,
    )
    if wait:
        return await client.submit_and_wait(envelope)
    return await client.send_transaction(envelope)


@dataclass
class EntryTtl:
    key: LedgerKey
    live_until_ledger: Optional[int]
    latest_ledger: int

    @property
    def remaining(self) -> Optional[int]:
        """Ledgers left before archival; None if the entry is missing or archived."""
        if self.live_until_ledger is None:
            return None
        return max(self.live_until_ledger - self.latest_ledger, 0)

    def __str__(self) -> str:
        if self.live_until_ledger is None:
            return f"{self.key}: not found or archived"
        return (
            f"{self.key}: live until ledger {self.live_until_ledger} "
            f"({self.remaining} ledgers remaining)"
        )


async def contract_ttl(
    client: SorobanRpcClient, contract_id: str, wasm_hash: Optional[bytes] = None
) -> List[EntryTtl]:
    """Report the TTL of a contract's instance (and code) entries."""
    keys = contract_footprint(contract_id, wasm_hash)
    result = await client.get_ledger_entries(keys)
    latest_ledger = int(result["latestLedger"])
    live_until = {
        entry["key"]: int(entry["liveUntilLedgerSeq"])
        for entry in result.get("entries") or []
        if "liveUntilLedgerSeq" in entry
    }
    return [
        EntryTtl(key, live_until.get(key.to_xdr_base64()), latest_ledger)
        for key in keys
    ]


class Test(unittest.IsolatedAsyncioTestCase):
    CONTRACT_ID = strkey.encode_contract(bytes(range(32)))

    def setUp(self):
        self.signer = Keypair.from_raw_seed(b"\x0b" * 32)

    def test_build_extend_ttl_transaction(self):
        account = Account(self.signer.public_key(), 9)
        envelope = build_extend_ttl_transaction(account, self.signer, self.CONTRACT_ID)
        transaction = envelope.transaction

        self.assertEqual(transaction.fee, DEFAULT_FEE)
        self.assertEqual(transaction.sequence, 10)
        self.assertEqual(transaction.operations, [Operation(ExtendFootprintTTL(500_000))])
        footprint = transaction.soroban_data.resources.footprint
        self.assertEqual(footprint.read_only, [Contract(self.CONTRACT_ID).get_footprint()])
        self.assertEqual(footprint.read_write, [])
        self.assertEqual(transaction.soroban_data.resource_fee, DEFAULT_RESOURCE_FEE)
        self.assertEqual(envelope.network_passphrase, Network.TESTNET)
        self.assertTrue(envelope.is_signed_by(self.signer))

    def test_build_with_wasm_hash(self):
        account = Account(self.signer.public_key(), 1)
        envelope = build_extend_ttl_transaction(
            account, self.signer, self.CONTRACT_ID, wasm_hash=b"\x0c" * 32
        )
        read_only = envelope.transaction.soroban_data.resources.footprint.read_only
        self.assertEqual(read_only[1], contract_code_key(b"\x0c" * 32))

    def test_build_restore_transaction(self):
        account = Account(self.signer.public_key(), 1)
        envelope = build_restore_transaction(account, self.signer, self.CONTRACT_ID)
        footprint = envelope.transaction.soroban_data.resources.footprint
        self.assertEqual(footprint.read_only, [])
        self.assertEqual(footprint.read_write, [Contract(self.CONTRACT_ID).get_footprint()])
        self.assertEqual(envelope.transaction.operations, [Operation(RestoreFootprint())])

    async def test_extend_contract_ttl(self):
        account = Account(self.signer.public_key(), 41)
        send = unittest.mock.AsyncMock(return_value={"status": "PENDING", "hash": "ab"})
        with unittest.mock.patch.object(
            SorobanRpcClient, "get_account", return_value=account
        ), unittest.mock.patch.object(SorobanRpcClient, "send_transaction", send):
            client = SorobanRpcClient("https://rpc.test")
            result = await extend_contract_ttl(
                client, self.signer, self.CONTRACT_ID, extend_to=1_000
            )
            await client.close()

        self.assertEqual(result, {"status": "PENDING", "hash": "ab"})
        envelope = send.call_args.args[0]
        self.assertEqual(envelope.transaction.sequence, 42)
        self.assertEqual(envelope.transaction.operations[0].body.extend_to, 1_000)

    async def test_extend_contract_ttl_wait(self):
        account = Account(self.signer.public_key(), 1)
        submit = unittest.mock.AsyncMock(return_value={"status": "SUCCESS"})
        with unittest.mock.patch.object(
            SorobanRpcClient, "get_account", return_value=account
        ), unittest.mock.patch.object(SorobanRpcClient, "submit_and_wait", submit):
            client = SorobanRpcClient("https://rpc.test")
            result = await extend_contract_ttl(
                client, self.signer, self.CONTRACT_ID, wait=True
            )
            await client.close()
        self.assertEqual(result["status"], "SUCCESS")
        submit.assert_awaited_once()

    async def test_contract_ttl(self):
        instance_key = Contract(self.CONTRACT_ID).get_footprint()
        entries = {
            "entries": [
                {"key": instance_key.to_xdr_base64(), "xdr": "", "liveUntilLedgerSeq": 1500}
            ],
            "latestLedger": 1000,
        }
        with unittest.mock.patch.object(
            SorobanRpcClient, "get_ledger_entries", return_value=entries
        ):
            client = SorobanRpcClient("https://rpc.test")
            ttls = await contract_ttl(client, self.CONTRACT_ID, b"\x0c" * 32)
            await client.close()

        self.assertEqual(ttls[0].remaining, 500)
        self.assertEqual(ttls[0].live_until_ledger, 1500)
        self.assertIsNone(ttls[1].remaining)
        self.assertIn("not found", str(ttls[1]))


if __name__ == "__main__":
    unittest.main()
