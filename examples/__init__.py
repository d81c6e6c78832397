# Copyright © Soroban TTL contributors
# SPDX-License-Identifier: Apache-2.0

"""
Runnable examples for the Soroban TTL package.

- **extend_contract_ttl.py**: extend a deployed contract's TTL, step by step
- **contract_ttl_report.py**: print how many ledgers a contract has left

All examples default to testnet and read their settings from the environment
(see `common.py`). Run them as modules from the repository root::

    SOROBAN_SECRET_KEY=S... SOROBAN_CONTRACT_ID=C... \\
        python -m examples.extend_contract_ttl
"""
