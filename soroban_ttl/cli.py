# Copyright © Soroban TTL contributors
# SPDX-License-Identifier: Apache-2.0

"""
Command-line interface for managing the TTL of deployed Soroban contracts.

Supported Commands:
- extend-ttl: Extend the TTL of a contract's instance (and code) entries
- restore: Restore a contract's archived entries
- ttl: Show the live-until ledger and remaining TTL of a contract's entries

Examples:
    Extend a testnet contract by 500,000 ledgers::

        python -m soroban_ttl.cli extend-ttl \\
            --contract-id CA3D5KRYM6CB7OWQ6TWYRR3Z4T7GNZLKERYNZGGA5SOAOPIFY6YQGAXE \\
            --secret-key-path ./secret.txt \\
            --network testnet \\
            --extend-to 500000

    Inspect the remaining TTL, including the Wasm code entry::

        python -m soroban_ttl.cli ttl \\
            --contract-id CA3D5KRYM6CB7OWQ6TWYRR3Z4T7GNZLKERYNZGGA5SOAOPIFY6YQGAXE \\
            --wasm-hash 5c0b...e1 \\
            --rpc-url https://soroban-testnet.stellar.org

File Format Requirements:
    Secret Key File: a single line holding an ``S...`` secret seed. When
    ``--secret-key-path`` is omitted the seed is read from the
    ``SOROBAN_SECRET_KEY`` environment variable.

Error Handling:
    Argument problems are reported by argparse. Any failure while talking to
    the network is logged with its traceback and the command exits with 1. A
    transaction the server rejects has its RPC result printed first.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
import tempfile
import unittest
import unittest.mock
from typing import List

from . import strkey
from .async_client import SorobanRpcClient, TransactionFailed
from .keypair import Keypair
from .network import Network
from .ttl import (
    DEFAULT_EXTEND_TO,
    DEFAULT_FEE,
    DEFAULT_RESOURCE_FEE,
    DEFAULT_TIMEOUT,
    contract_ttl,
    extend_contract_ttl,
    restore_contract,
)

SECRET_KEY_ENV = "SOROBAN_SECRET_KEY"


def contract_id(value: str) -> str:
    if not strkey.is_valid_contract(value):
        raise argparse.ArgumentTypeError(f"Invalid contract id: {value}")
    return value


def wasm_hash(value: str) -> bytes:
    try:
        raw = bytes.fromhex(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Wasm hash is not hex: {value}") from None
    if len(raw) != 32:
        raise argparse.ArgumentTypeError("Wasm hash must be 32 bytes (64 hex characters)")
    return raw


def load_signer(parser: argparse.ArgumentParser, path: str | None) -> Keypair:
    try:
        if path is None:
            return Keypair.from_environment(SECRET_KEY_ENV)
        return Keypair.load(path)
    except FileNotFoundError:
        parser.error(f"Secret key file not found: {path}")
    except Exception as e:
        parser.error(f"Failed to load secret key: {e}")


async def main(args: List[str]) -> int:
    """Parse `args`, run the command and return the process exit code."""
    parser = argparse.ArgumentParser(description="Soroban contract TTL tool")
    parser.add_argument(
        "command",
        type=str,
        help="The command to execute",
        choices=["extend-ttl", "restore", "ttl"],
    )
    parser.add_argument("--contract-id", help="C... id of the contract", type=contract_id)
    parser.add_argument(
        "--secret-key-path",
        help=f"File holding the source account's S... secret (default: ${SECRET_KEY_ENV})",
        type=str,
    )
    parser.add_argument(
        "--network",
        help="Network name: testnet, futurenet, public or standalone",
        default="testnet",
        type=str,
    )
    parser.add_argument(
        "--rpc-url", help="Stellar RPC endpoint (default: the network's public RPC)", type=str
    )
    parser.add_argument(
        "--extend-to",
        help="Ledgers past the current one the entries must stay live",
        default=DEFAULT_EXTEND_TO,
        type=int,
    )
    parser.add_argument(
        "--fee",
        help="Total fee in stroops, resource fee included",
        default=DEFAULT_FEE,
        type=int,
    )
    parser.add_argument(
        "--resource-fee",
        help="Resource fee in stroops",
        default=DEFAULT_RESOURCE_FEE,
        type=int,
    )
    parser.add_argument(
        "--timeout",
        help="Seconds until the transaction expires",
        default=DEFAULT_TIMEOUT,
        type=int,
    )
    parser.add_argument(
        "--wasm-hash", help="Hex SHA-256 of the contract's Wasm code", type=wasm_hash
    )
    parser.add_argument(
        "--wait", help="Wait until the transaction is applied", action="store_true"
    )
    parser.add_argument("--verbose", help="Enable debug logging", action="store_true")

    parsed_args = parser.parse_args(args)

    logging.basicConfig(
        level=logging.DEBUG if parsed_args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if parsed_args.contract_id is None:
        parser.error("Missing required argument '--contract-id'")
    try:
        network_passphrase = Network.from_name(parsed_args.network)
    except ValueError as e:
        parser.error(str(e))
    rpc_url = parsed_args.rpc_url or Network.default_rpc_url(network_passphrase)
    if rpc_url is None:
        parser.error(f"Missing required argument '--rpc-url' for {parsed_args.network}")

    signer = None
    if parsed_args.command in ("extend-ttl", "restore"):
        signer = load_signer(parser, parsed_args.secret_key_path)

    try:
        async with SorobanRpcClient(rpc_url) as client:
            if parsed_args.command == "extend-ttl":
                result = await extend_contract_ttl(
                    client,
                    signer,
                    parsed_args.contract_id,
                    parsed_args.extend_to,
                    parsed_args.fee,
                    parsed_args.resource_fee,
                    network_passphrase,
                    parsed_args.timeout,
                    parsed_args.wasm_hash,
                    parsed_args.wait,
                )
                print(json.dumps(result, indent=2))
            elif parsed_args.command == "restore":
                result = await restore_contract(
                    client,
                    signer,
                    parsed_args.contract_id,
                    parsed_args.fee,
                    parsed_args.resource_fee,
                    network_passphrase,
                    parsed_args.timeout,
                    parsed_args.wasm_hash,
                    parsed_args.wait,
                )
                print(json.dumps(result, indent=2))
            else:
                for entry in await contract_ttl(
                    client, parsed_args.contract_id, parsed_args.wasm_hash
                ):
                    print(entry)
    except TransactionFailed as e:
        print(json.dumps(e.result, indent=2))
        logging.error(e, exc_info=True)
        return 1
    except Exception as e:
        logging.error(e, exc_info=True)
        return 1
    return 0


def run():
    sys.exit(asyncio.run(main(sys.argv[1:])))


class Test(unittest.IsolatedAsyncioTestCase):
    CONTRACT_ID = strkey.encode_contract(bytes(range(32)))

    def setUp(self):
        self.signer = Keypair.random()
        (file, self.secret_path) = tempfile.mkstemp()
        with os.fdopen(file, "w") as f:
            f.write(self.signer.secret())

    def tearDown(self):
        os.remove(self.secret_path)

    def args(self, command: str, *extra: str) -> List[str]:
        return [
            command,
            "--contract-id",
            self.CONTRACT_ID,
            "--secret-key-path",
            self.secret_path,
            *extra,
        ]

    async def test_extend_ttl(self):
        extend = unittest.mock.AsyncMock(return_value={"status": "PENDING", "hash": "ab"})
        with unittest.mock.patch("soroban_ttl.cli.extend_contract_ttl", extend):
            code = await main(self.args("extend-ttl", "--extend-to", "1000", "--wait"))

        self.assertEqual(code, 0)
        call_args = extend.call_args.args
        self.assertEqual(call_args[1], self.signer)
        self.assertEqual(call_args[2], self.CONTRACT_ID)
        self.assertEqual(call_args[3], 1000)
        self.assertEqual(call_args[4:8], (DEFAULT_FEE, DEFAULT_RESOURCE_FEE, Network.TESTNET, 30))
        self.assertIsNone(call_args[8])
        self.assertTrue(call_args[9])

    async def test_failure_is_logged_and_swallowed(self):
        extend = unittest.mock.AsyncMock(side_effect=RuntimeError("network down"))
        with unittest.mock.patch("soroban_ttl.cli.extend_contract_ttl", extend):
            with self.assertLogs(level="ERROR") as logs:
                code = await main(self.args("extend-ttl"))
        self.assertEqual(code, 1)
        self.assertIn("network down", logs.output[0])

    async def test_rejected_transaction_prints_result(self):
        result = {"status": "ERROR", "hash": "ff", "errorResultXdr": "AAAA"}
        extend = unittest.mock.AsyncMock(
            side_effect=TransactionFailed("Transaction rejected: AAAA", "ff", result)
        )
        with unittest.mock.patch("soroban_ttl.cli.extend_contract_ttl", extend):
            with unittest.mock.patch("builtins.print") as printed:
                with self.assertLogs(level="ERROR") as logs:
                    code = await main(self.args("extend-ttl"))
        self.assertEqual(code, 1)
        printed.assert_called_once_with(json.dumps(result, indent=2))
        self.assertIn("Transaction rejected", logs.output[0])

    async def test_ttl_does_not_need_a_key(self):
        report = unittest.mock.AsyncMock(return_value=[])
        with unittest.mock.patch("soroban_ttl.cli.contract_ttl", report):
            code = await main(
                ["ttl", "--contract-id", self.CONTRACT_ID, "--wasm-hash", "0c" * 32]
            )
        self.assertEqual(code, 0)
        self.assertEqual(report.call_args.args[2], b"\x0c" * 32)

    async def test_missing_contract_id(self):
        with self.assertRaises(SystemExit):
            await main(["extend-ttl", "--secret-key-path", self.secret_path])

    async def test_invalid_contract_id(self):
        with self.assertRaises(SystemExit):
            await main(["ttl", "--contract-id", self.signer.public_key()])

    async def test_public_network_needs_rpc_url(self):
        with self.assertRaises(SystemExit):
            await main(self.args("extend-ttl", "--network", "public"))

    async def test_missing_secret_file(self):
        with self.assertRaises(SystemExit):
            await main(["restore", "--contract-id", self.CONTRACT_ID, "--secret-key-path", "/nonexistent/secret"])


if __name__ == "__main__":
    run()
