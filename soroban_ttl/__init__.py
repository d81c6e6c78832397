# Copyright © Soroban TTL contributors
# SPDX-License-Identifier: Apache-2.0

"""
Soroban TTL - keep deployed Soroban smart contracts alive on Stellar.

Soroban ledger entries expire: each carries a TTL, the number of ledgers it
stays live before being archived. This package provides the pieces needed to
extend that TTL (or restore archived entries) from Python: a Stellar RPC
client, Ed25519 key pairs, XDR encoding of the relevant protocol structures,
a transaction builder and the high-level procedures tying them together.

Quick Start:
    Extend a contract's TTL on testnet::

        import asyncio
        from soroban_ttl.async_client import SorobanRpcClient
        from soroban_ttl.keypair import Keypair
        from soroban_ttl.ttl import extend_contract_ttl

        async def main():
            signer = Keypair.from_environment("SOROBAN_SECRET_KEY")
            async with SorobanRpcClient("https://soroban-testnet.stellar.org") as client:
                result = await extend_contract_ttl(
                    client, signer, "CA3D5KRYM6CB7OWQ6TWYRR3Z4T7GNZLKERYNZGGA5SOAOPIFY6YQGAXE"
                )
                print(result["status"], result["hash"])

        asyncio.run(main())

Module Organization:
    - **ttl**: extend / restore / inspect contract TTLs
    - **async_client**: async Stellar RPC and Friendbot clients
    - **transactions**: operations, envelopes and the transaction builder
    - **soroban_data**: footprint and resource-fee descriptor
    - **ledger**: ledger keys and contract footprints
    - **account**: source-account sequence state
    - **keypair**: Ed25519 signing via PyNaCl
    - **strkey**: ``G...`` / ``S...`` / ``C...`` string encodings
    - **xdr**: XDR packer and unpacker
    - **network**: network passphrases and default endpoints
    - **cli**: command-line entry point

Requirements:
    - Python 3.8 or higher
    - httpx (with HTTP/2 support) for RPC requests
    - PyNaCl for Ed25519 signatures
"""
