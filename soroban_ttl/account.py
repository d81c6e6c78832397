# Copyright © Soroban TTL contributors
# SPDX-License-Identifier: Apache-2.0

"""
Source-account sequence state for building transactions.

A transaction must carry the source account's next sequence number. `Account`
holds the current number as fetched from the network and is advanced by the
transaction builder, so several transactions can be built in a row without
another round trip.
"""

from __future__ import annotations

import base64
import unittest

from . import strkey
from .ledger import AccountId, LedgerEntryType
from .xdr import Packer, Unpacker, XdrError


class Account:
    """A Stellar account id together with its current sequence number."""

    account_id: str
    sequence: int

    def __init__(self, account_id: str, sequence: int):
        if not strkey.is_valid_account_id(account_id):
            raise ValueError(f"Invalid account id: {account_id}")
        self.account_id = account_id
        self.sequence = int(sequence)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Account):
            return NotImplemented
        return self.account_id == other.account_id and self.sequence == other.sequence

    def __repr__(self) -> str:
        return f"Account({self.account_id}, {self.sequence})"

    def next_sequence_number(self) -> int:
        return self.sequence + 1

    def increment_sequence_number(self):
        self.sequence += 1


class AccountEntry:
    """The leading fields of an on-ledger account entry.

    The RPC server returns account entries as base64 ``LedgerEntryData`` XDR.
    Only the fields needed to build transactions are decoded; the remainder of
    the entry (signers, thresholds, extensions) is skipped.
    """

    account_id: AccountId
    balance: int
    sequence: int
    num_sub_entries: int

    def __init__(
        self, account_id: AccountId, balance: int, sequence: int, num_sub_entries: int
    ):
        self.account_id = account_id
        self.balance = balance
        self.sequence = sequence
        self.num_sub_entries = num_sub_entries

    @staticmethod
    def from_ledger_entry_data(data: str) -> AccountEntry:
        unpacker = Unpacker(base64.b64decode(data))
        entry_type = unpacker.int32()
        if entry_type != LedgerEntryType.ACCOUNT:
            raise XdrError(f"Expected an account entry, got ledger entry type {entry_type}")
        account_id = AccountId.unpack(unpacker)
        balance = unpacker.int64()
        sequence = unpacker.int64()
        num_sub_entries = unpacker.uint32()
        return AccountEntry(account_id, balance, sequence, num_sub_entries)

    def to_account(self) -> Account:
        return Account(str(self.account_id), self.sequence)

    def to_ledger_entry_data(self) -> str:
        """Encode as ``LedgerEntryData`` with default values for skipped fields."""
        packer = Packer()
        packer.int32(LedgerEntryType.ACCOUNT)
        packer.struct(self.account_id)
        packer.int64(self.balance)
        packer.int64(self.sequence)
        packer.uint32(self.num_sub_entries)
        packer.optional(None, Packer.struct)  # inflationDest
        packer.uint32(0)  # flags
        packer.string("", 32)  # homeDomain
        packer.fixed_opaque(b"\x01\x00\x00\x00", 4)  # thresholds
        packer.array([], Packer.struct)  # signers
        packer.int32(0)  # ext
        return base64.b64encode(packer.output()).decode()


class Test(unittest.TestCase):
    def test_increment(self):
        account_id = strkey.encode_account_id(b"\x00" * 32)
        account = Account(account_id, 41)
        self.assertEqual(account.next_sequence_number(), 42)
        account.increment_sequence_number()
        self.assertEqual(account.sequence, 42)

    def test_invalid_account_id(self):
        with self.assertRaises(ValueError):
            Account(strkey.encode_contract(b"\x00" * 32), 1)

    def test_account_entry(self):
        raw_key = bytes(range(32))
        data = AccountEntry(
            AccountId(raw_key), 10_000_000_000, 4_294_967_297, 0
        ).to_ledger_entry_data()
        entry = AccountEntry.from_ledger_entry_data(data)
        self.assertEqual(entry.account_id.key, raw_key)
        self.assertEqual(entry.balance, 10_000_000_000)
        self.assertEqual(
            entry.to_account(),
            Account(strkey.encode_account_id(raw_key), 4_294_967_297),
        )

    def test_wrong_entry_type(self):
        packer = Packer()
        packer.int32(LedgerEntryType.CONTRACT_CODE)
        with self.assertRaises(XdrError):
            AccountEntry.from_ledger_entry_data(base64.b64encode(packer.output()).decode())


if __name__ == "__main__":
    unittest.main()
