# Copyright © Soroban TTL contributors
# SPDX-License-Identifier: Apache-2.0

"""
Asynchronous client for the Stellar RPC (Soroban RPC) JSON-RPC API.

This module provides the network side of TTL management: reading account
sequence numbers and ledger-entry TTLs, submitting signed transaction
envelopes and following them until they land in a ledger.

Key Features:
- **SorobanRpcClient**: async JSON-RPC 2.0 client on top of httpx
- **FriendbotClient**: funds accounts on test networks
- **Error Handling**: one exception type per failure mode

Examples:
    Fetching sequence state and submitting::

        from soroban_ttl.async_client import SorobanRpcClient

        async with SorobanRpcClient("https://soroban-testnet.stellar.org") as client:
            account = await client.get_account(signer.public_key())
            ...
            result = await client.send_transaction(envelope)
            print(result["status"], result["hash"])

    Inspecting a contract's remaining TTL::

        live_until = await client.get_ttl(contract.get_footprint())
        latest = await client.get_latest_ledger()
        print(live_until - latest["sequence"], "ledgers left")

Error Handling:
    - ApiError: the HTTP request failed (status >= 400)
    - RpcError: the server answered with a JSON-RPC error object
    - AccountNotFound / LedgerEntryNotFound: the requested entry does not exist
    - TransactionFailed: the transaction was rejected or failed on-ledger
    - TransactionTimeout: the transaction was not seen within the wait window

Note:
    All client operations are async and must be awaited. Call `close()` (or use
    the client as an async context manager) to release connections.
"""

import asyncio
import itertools
import json
import logging
import unittest
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from . import strkey
from .account import Account, AccountEntry
from .keypair import Keypair
from .ledger import AccountId, Contract, LedgerKey, account_key
from .metadata import Metadata
from .soroban_data import SorobanDataBuilder
from .transactions import ExtendFootprintTTL, TransactionBuilder, TransactionEnvelope


@dataclass
class ClientConfig:
    """Configuration parameters for RPC clients.

    Attributes:
        transaction_wait_in_seconds: How long `wait_for_transaction` polls
            before giving up (default: 30).
        poll_interval_in_seconds: Delay between `getTransaction` polls
            (default: 1).
        request_timeout_in_seconds: Per-request HTTP timeout (default: 60).
        http2: Enable HTTP/2 (default: True).
        api_key: Optional bearer token for authenticated RPC providers.
    """

    transaction_wait_in_seconds: int = 30
    poll_interval_in_seconds: float = 1.0
    request_timeout_in_seconds: float = 60.0
    http2: bool = True
    api_key: Optional[str] = None


class TransactionStatus:
    # sendTransaction
    PENDING = "PENDING"
    DUPLICATE = "DUPLICATE"
    TRY_AGAIN_LATER = "TRY_AGAIN_LATER"
    ERROR = "ERROR"
    # getTransaction
    SUCCESS = "SUCCESS"
    NOT_FOUND = "NOT_FOUND"
    FAILED = "FAILED"


class SorobanRpcClient:
    """Async client for a Stellar RPC endpoint.

    Attributes:
        rpc_url: The JSON-RPC endpoint, e.g. ``https://soroban-testnet.stellar.org``.
        client: The underlying httpx client.
        client_config: Timeouts and polling behaviour.
    """

    rpc_url: str
    client: httpx.AsyncClient
    client_config: ClientConfig

    def __init__(self, rpc_url: str, client_config: ClientConfig = ClientConfig()):
        self.rpc_url = rpc_url
        limits = httpx.Limits()
        # No pool timeout: queued requests wait as long as progress is being made.
        timeout = httpx.Timeout(client_config.request_timeout_in_seconds, pool=None)
        headers = Metadata.get_headers()
        self.client = httpx.AsyncClient(
            http2=client_config.http2,
            limits=limits,
            timeout=timeout,
            headers=headers,
        )
        self.client_config = client_config
        self._request_ids = itertools.count(1)
        if client_config.api_key:
            self.client.headers["Authorization"] = f"Bearer {client_config.api_key}"

    async def __aenter__(self) -> "SorobanRpcClient":
        return self

    async def __aexit__(self, *exc_info: Any):
        await self.close()

    async def close(self):
        await self.client.aclose()

    #
    # Network state
    #

    async def get_health(self) -> Dict[str, Any]:
        return await self._rpc("getHealth")

    async def get_network(self) -> Dict[str, Any]:
        """Passphrase, protocol version and Friendbot URL of the network."""
        return await self._rpc("getNetwork")

    async def get_latest_ledger(self) -> Dict[str, Any]:
        """The most recent ledger known to the server (``id``, ``sequence``, ...)."""
        return await self._rpc("getLatestLedger")

    #
    # Ledger entries
    #

    async def get_ledger_entries(self, keys: List[LedgerKey]) -> Dict[str, Any]:
        """Raw ``getLedgerEntries`` result for the given keys.

        Entries that do not exist (or are archived) are omitted from the
        returned ``entries`` list.
        """
        return await self._rpc(
            "getLedgerEntries", {"keys": [key.to_xdr_base64() for key in keys]}
        )

    async def get_ledger_entry(self, key: LedgerKey) -> Optional[Dict[str, Any]]:
        encoded = key.to_xdr_base64()
        result = await self._rpc("getLedgerEntries", {"keys": [encoded]})
        for entry in result.get("entries") or []:
            if entry.get("key") == encoded:
                return entry
        return None

    async def get_account(self, account_id: str) -> Account:
        """Fetch the current sequence state of an account.

        :raises AccountNotFound: If the account does not exist (e.g. unfunded).
        """
        entry = await self.get_ledger_entry(account_key(account_id))
        if entry is None:
            raise AccountNotFound(f"Account not found: {account_id}", account_id)
        return AccountEntry.from_ledger_entry_data(entry["xdr"]).to_account()

    async def get_ttl(self, key: LedgerKey) -> int:
        """Ledger sequence until which the entry stays live.

        :raises LedgerEntryNotFound: If the entry is missing, archived, or has
            no TTL (account entries never expire).
        """
        entry = await self.get_ledger_entry(key)
        if entry is None:
            raise LedgerEntryNotFound(f"Ledger entry not found: {key}", key)
        if "liveUntilLedgerSeq" not in entry:
            raise LedgerEntryNotFound(f"Ledger entry has no TTL: {key}", key)
        return int(entry["liveUntilLedgerSeq"])

    #
    # Transactions
    #

    async def send_transaction(self, envelope: TransactionEnvelope) -> Dict[str, Any]:
        """Submit a signed envelope. The result status is usually ``PENDING``.

        ``TRY_AGAIN_LATER`` is returned unchanged; resubmission is left to the
        caller.

        :raises TransactionFailed: If the server rejected the transaction
            (status ``ERROR``).
        """
        result = await self._rpc(
            "sendTransaction", {"transaction": envelope.to_xdr_base64()}
        )
        status = result.get("status")
        logging.info(f"sendTransaction {result.get('hash')}: {status}")
        if status == TransactionStatus.ERROR:
            raise TransactionFailed(
                f"Transaction rejected: {result.get('errorResultXdr')}",
                result.get("hash", envelope.hash_hex()),
                result,
            )
        return result

    async def get_transaction(self, tx_hash: str) -> Dict[str, Any]:
        return await self._rpc("getTransaction", {"hash": tx_hash})

    async def wait_for_transaction(self, tx_hash: str) -> Dict[str, Any]:
        """Poll `getTransaction` until the transaction leaves ``NOT_FOUND``.

        :raises TransactionTimeout: If it is not seen within
            `transaction_wait_in_seconds`.
        :raises TransactionFailed: If it was included but failed.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.client_config.transaction_wait_in_seconds
        result = await self.get_transaction(tx_hash)
        while result.get("status") == TransactionStatus.NOT_FOUND:
            if loop.time() >= deadline:
                raise TransactionTimeout(f"transaction {tx_hash} timed out", tx_hash)
            await asyncio.sleep(self.client_config.poll_interval_in_seconds)
            result = await self.get_transaction(tx_hash)

        if result.get("status") == TransactionStatus.FAILED:
            raise TransactionFailed(
                f"Transaction failed: {result.get('resultXdr')}", tx_hash, result
            )
        return result

    async def submit_and_wait(self, envelope: TransactionEnvelope) -> Dict[str, Any]:
        result = await self.send_transaction(envelope)
        if result.get("status") not in (
            TransactionStatus.PENDING,
            TransactionStatus.DUPLICATE,
        ):
            raise TransactionFailed(
                f"Transaction not accepted: {result.get('status')}",
                result.get("hash", envelope.hash_hex()),
                result,
            )
        return await self.wait_for_transaction(result["hash"])

    async def _rpc(self, method: str, params: Optional[Dict[str, Any]] = None) -> Any:
        request: Dict[str, Any] = {
            "jsonrpc": "2.0",
            "id": next(self._request_ids),
            "method": method,
        }
        if params is not None:
            request["params"] = params
        response = await self.client.post(self.rpc_url, json=request)
        if response.status_code >= 400:
            raise ApiError(f"{response.text} - {method}", response.status_code)
        body = response.json()
        if "error" in body:
            error = body["error"]
            raise RpcError(
                f"{method}: {error.get('message')}", error.get("code"), error.get("data")
            )
        return body["result"]


class FriendbotClient:
    """Friendbot funds new accounts on test networks. This is a thin wrapper around it."""

    base_url: str
    rpc_client: SorobanRpcClient

    def __init__(self, base_url: str, rpc_client: SorobanRpcClient):
        self.base_url = base_url
        self.rpc_client = rpc_client

    async def close(self):
        await self.rpc_client.close()

    async def fund_account(self, account_id: str) -> Dict[str, Any]:
        """Create and fund `account_id` with the network's starting balance."""
        response = await self.rpc_client.client.get(
            self.base_url, params={"addr": account_id}
        )
        if response.status_code >= 400:
            raise ApiError(response.text, response.status_code)
        return response.json()


class ApiError(Exception):
    """The API returned a non-success status code, e.g., >= 400"""

    status_code: int

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class RpcError(Exception):
    """The server answered with a JSON-RPC error object"""

    code: Optional[int]
    data: Any

    def __init__(self, message: str, code: Optional[int], data: Any = None):
        super().__init__(message)
        self.code = code
        self.data = data


class AccountNotFound(Exception):
    """The account was not found"""

    account_id: str

    def __init__(self, message: str, account_id: str):
        super().__init__(message)
        self.account_id = account_id


class LedgerEntryNotFound(Exception):
    """The ledger entry was not found or has no TTL"""

    key: LedgerKey

    def __init__(self, message: str, key: LedgerKey):
        super().__init__(message)
        self.key = key


class TransactionFailed(Exception):
    """The transaction was rejected on submission or failed on-ledger"""

    tx_hash: str
    result: Dict[str, Any]

    def __init__(self, message: str, tx_hash: str, result: Dict[str, Any]):
        super().__init__(message)
        self.tx_hash = tx_hash
        self.result = result


class TransactionTimeout(Exception):
    """The transaction was not seen in a ledger within the wait window"""

    tx_hash: str

    def __init__(self, message: str, tx_hash: str):
        super().__init__(message)
        self.tx_hash = tx_hash


class Test(unittest.IsolatedAsyncioTestCase):
    """Exercises the JSON-RPC layer against an in-process `httpx.MockTransport`."""

    async def asyncSetUp(self):
        self.requests: List[Dict[str, Any]] = []
        self.results: Dict[str, Any] = {}
        self.signer = Keypair.from_raw_seed(b"\x05" * 32)
        self.rpc = SorobanRpcClient(
            "https://rpc.test", ClientConfig(poll_interval_in_seconds=0)
        )
        await self.rpc.client.aclose()
        self.rpc.client = httpx.AsyncClient(transport=httpx.MockTransport(self.handle))

    async def asyncTearDown(self):
        await self.rpc.close()

    def handle(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "friendbot.test":
            return httpx.Response(200, json={"hash": "ab"})
        body = json.loads(request.content)
        self.requests.append(body)
        result = self.results[body["method"]]
        if isinstance(result, list):
            result = result.pop(0)
        if isinstance(result, httpx.Response):
            return result
        response: Dict[str, Any] = {"jsonrpc": "2.0", "id": body["id"]}
        if isinstance(result, Exception):
            response["error"] = {"code": -32602, "message": str(result)}
        else:
            response["result"] = result
        return httpx.Response(200, json=response)

    def envelope(self) -> TransactionEnvelope:
        contract = Contract(strkey.encode_contract(b"\x03" * 32))
        return (
            TransactionBuilder(Account(self.signer.public_key(), 1), 200_100)
            .set_soroban_data(
                SorobanDataBuilder()
                .set_resource_fee(200_000)
                .set_read_only([contract.get_footprint()])
                .build()
            )
            .add_operation(ExtendFootprintTTL(500_000))
            .set_timeout(30)
            .build()
            .sign(self.signer)
        )

    async def test_get_account(self):
        key = account_key(self.signer.public_key())
        entry = AccountEntry(AccountId(self.signer.raw_public_key()), 100, 77, 0)
        self.results["getLedgerEntries"] = {
            "entries": [
                {
                    "key": key.to_xdr_base64(),
                    "xdr": entry.to_ledger_entry_data(),
                    "lastModifiedLedgerSeq": 10,
                }
            ],
            "latestLedger": 12,
        }
        account = await self.rpc.get_account(self.signer.public_key())
        self.assertEqual(account, Account(self.signer.public_key(), 77))
        self.assertEqual(self.requests[0]["jsonrpc"], "2.0")
        self.assertEqual(self.requests[0]["params"], {"keys": [key.to_xdr_base64()]})

    async def test_account_not_found(self):
        self.results["getLedgerEntries"] = {"entries": [], "latestLedger": 12}
        with self.assertRaises(AccountNotFound):
            await self.rpc.get_account(self.signer.public_key())

    async def test_get_ttl(self):
        key = Contract(strkey.encode_contract(b"\x03" * 32)).get_footprint()
        self.results["getLedgerEntries"] = [
            {
                "entries": [
                    {"key": key.to_xdr_base64(), "xdr": "", "liveUntilLedgerSeq": 5000}
                ],
                "latestLedger": 12,
            },
            {"entries": None, "latestLedger": 12},
        ]
        self.assertEqual(await self.rpc.get_ttl(key), 5000)
        with self.assertRaises(LedgerEntryNotFound):
            await self.rpc.get_ttl(key)

    async def test_send_transaction(self):
        envelope = self.envelope()
        self.results["sendTransaction"] = {
            "status": "PENDING",
            "hash": envelope.hash_hex(),
            "latestLedger": 100,
        }
        result = await self.rpc.send_transaction(envelope)
        self.assertEqual(result["status"], TransactionStatus.PENDING)
        self.assertEqual(
            self.requests[0]["params"], {"transaction": envelope.to_xdr_base64()}
        )

    async def test_send_transaction_error(self):
        self.results["sendTransaction"] = {
            "status": "ERROR",
            "hash": "ff",
            "errorResultXdr": "AAAAAAAAAGT////7AAAAAA==",
        }
        with self.assertRaises(TransactionFailed) as cm:
            await self.rpc.send_transaction(self.envelope())
        self.assertEqual(cm.exception.tx_hash, "ff")

    async def test_submit_and_wait(self):
        envelope = self.envelope()
        self.results["sendTransaction"] = {"status": "PENDING", "hash": envelope.hash_hex()}
        self.results["getTransaction"] = [
            {"status": "NOT_FOUND"},
            {"status": "NOT_FOUND"},
            {"status": "SUCCESS", "ledger": 101},
        ]
        result = await self.rpc.submit_and_wait(envelope)
        self.assertEqual(result["status"], TransactionStatus.SUCCESS)
        self.assertEqual(
            [request["method"] for request in self.requests],
            ["sendTransaction", "getTransaction", "getTransaction", "getTransaction"],
        )

    async def test_submit_try_again_later(self):
        self.results["sendTransaction"] = {"status": "TRY_AGAIN_LATER", "hash": "ab"}
        with self.assertRaises(TransactionFailed):
            await self.rpc.submit_and_wait(self.envelope())

    async def test_wait_failed(self):
        self.results["getTransaction"] = {"status": "FAILED", "resultXdr": "AAAA"}
        with self.assertRaises(TransactionFailed):
            await self.rpc.wait_for_transaction("ab")

    async def test_wait_timeout(self):
        self.rpc.client_config = ClientConfig(
            transaction_wait_in_seconds=0, poll_interval_in_seconds=0
        )
        self.results["getTransaction"] = {"status": "NOT_FOUND"}
        with self.assertRaises(TransactionTimeout):
            await self.rpc.wait_for_transaction("ab")

    async def test_rpc_error(self):
        self.results["getLatestLedger"] = Exception("invalid params")
        with self.assertRaises(RpcError) as cm:
            await self.rpc.get_latest_ledger()
        self.assertEqual(cm.exception.code, -32602)

    async def test_api_error(self):
        self.results["getHealth"] = httpx.Response(503, text="unavailable")
        with self.assertRaises(ApiError) as cm:
            await self.rpc.get_health()
        self.assertEqual(cm.exception.status_code, 503)

    async def test_friendbot(self):
        friendbot = FriendbotClient("https://friendbot.test", self.rpc)
        self.assertEqual(await friendbot.fund_account(self.signer.public_key()), {"hash": "ab"})
