# Copyright © Soroban TTL contributors
# SPDX-License-Identifier: Apache-2.0

"""
Network passphrases and the default endpoints for each public network.

Transactions are signed over ``sha256(passphrase)`` so a signature produced for
one network is never valid on another.
"""

from __future__ import annotations

import hashlib
import unittest
from typing import Dict, Optional


class Network:
    PUBLIC = "Public Global Stellar Network ; September 2015"
    TESTNET = "Test SDF Network ; September 2015"
    FUTURENET = "Test SDF Future Network ; October 2022"
    STANDALONE = "Standalone Network ; February 2017"

    _BY_NAME: Dict[str, str] = {
        "public": PUBLIC,
        "mainnet": PUBLIC,
        "testnet": TESTNET,
        "futurenet": FUTURENET,
        "standalone": STANDALONE,
        "local": STANDALONE,
    }

    RPC_URLS: Dict[str, str] = {
        TESTNET: "https://soroban-testnet.stellar.org",
        FUTURENET: "https://rpc-futurenet.stellar.org",
        STANDALONE: "http://localhost:8000/soroban/rpc",
    }

    FRIENDBOT_URLS: Dict[str, str] = {
        TESTNET: "https://friendbot.stellar.org",
        FUTURENET: "https://friendbot-futurenet.stellar.org",
        STANDALONE: "http://localhost:8000/friendbot",
    }

    @staticmethod
    def from_name(name: str) -> str:
        """Map a network name such as ``testnet`` to its passphrase."""
        try:
            return Network._BY_NAME[name.lower()]
        except KeyError:
            raise ValueError(
                f"Unknown network {name!r}, expected one of {sorted(Network._BY_NAME)}"
            ) from None

    @staticmethod
    def network_id(passphrase: str) -> bytes:
        return hashlib.sha256(passphrase.encode()).digest()

    @staticmethod
    def default_rpc_url(passphrase: str) -> Optional[str]:
        # There is no SDF-operated public RPC endpoint for mainnet.
        return Network.RPC_URLS.get(passphrase)


class Test(unittest.TestCase):
    def test_from_name(self):
        self.assertEqual(Network.from_name("TESTNET"), Network.TESTNET)
        self.assertEqual(Network.from_name("mainnet"), Network.PUBLIC)
        with self.assertRaises(ValueError):
            Network.from_name("nope")

    def test_network_id(self):
        self.assertEqual(
            Network.network_id(Network.TESTNET),
            hashlib.sha256(b"Test SDF Network ; September 2015").digest(),
        )
        self.assertNotEqual(
            Network.network_id(Network.TESTNET), Network.network_id(Network.PUBLIC)
        )

    def test_default_rpc_url(self):
        self.assertIsNone(Network.default_rpc_url(Network.PUBLIC))
        self.assertEqual(
            Network.default_rpc_url(Network.TESTNET), "https://soroban-testnet.stellar.org"
        )


if __name__ == "__main__":
    unittest.main()
