# Copyright © Soroban TTL contributors
# SPDX-License-Identifier: Apache-2.0

"""
Shared configuration for the examples, overridable through the environment.

Environment Variables:
    SOROBAN_NETWORK_PASSPHRASE: Passphrase of the target network
    SOROBAN_RPC_URL: Stellar RPC endpoint
    SOROBAN_FRIENDBOT_URL: Friendbot endpoint for funding test accounts
    SOROBAN_SECRET_KEY: S... secret of the fee-paying source account
    SOROBAN_CONTRACT_ID: C... id of the contract to operate on
    SOROBAN_WASM_HASH: Optional hex hash of the contract's Wasm code

Defaults point at testnet.
"""

import os

from soroban_ttl.network import Network

NETWORK_PASSPHRASE = os.getenv("SOROBAN_NETWORK_PASSPHRASE", Network.TESTNET)

RPC_URL = os.getenv("SOROBAN_RPC_URL", "https://soroban-testnet.stellar.org")

FRIENDBOT_URL = os.getenv("SOROBAN_FRIENDBOT_URL", "https://friendbot.stellar.org")

SECRET_KEY_ENV = "SOROBAN_SECRET_KEY"

CONTRACT_ID = os.getenv("SOROBAN_CONTRACT_ID")

WASM_HASH = os.getenv("SOROBAN_WASM_HASH")
