# Copyright © Soroban TTL contributors
# SPDX-License-Identifier: Apache-2.0

"""
Transactions, operations and envelopes for Soroban state-archival management.

This module models the parts of a Stellar transaction needed to keep Soroban
ledger entries alive:

- `ExtendFootprintTTL`: extends the TTL of every entry in the transaction's
  read-only footprint so that it lives at least `extend_to` ledgers past the
  ledger the transaction executes in.
- `RestoreFootprint`: restores archived entries listed in the read-write
  footprint.

Transactions are built with `TransactionBuilder`, wrapped in a
`TransactionEnvelope`, signed with a `Keypair` and serialized to base64 XDR
for submission.

Signing:
    The signed payload is ``sha256(network_id || ENVELOPE_TYPE_TX || tx)``
    where ``network_id`` is the SHA-256 of the network passphrase. Each
    signature is stored with a four-byte hint (the tail of the signer's
    public key) so validators can match it to a signer quickly.

Examples:
    Building and signing a TTL extension::

        account = await client.get_account(signer.public_key())
        soroban_data = (
            SorobanDataBuilder()
            .set_resource_fee(200_000)
            .set_read_only([contract.get_footprint()])
            .build()
        )
        envelope = (
            TransactionBuilder(account, fee=200_100, network_passphrase=Network.TESTNET)
            .set_soroban_data(soroban_data)
            .add_operation(ExtendFootprintTTL(500_000))
            .set_timeout(30)
            .build()
        )
        envelope.sign(signer)
        print(envelope.to_xdr_base64())
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import time
import typing
import unittest
from typing import List, Optional, Union

from . import strkey
from .account import Account
from .keypair import Keypair
from .ledger import AccountId, Contract, contract_code_key
from .network import Network
from .soroban_data import SorobanDataBuilder, SorobanTransactionData
from .xdr import MAX_UINT32, Packable, Packer, Unpackable, Unpacker, XdrError, encoder

MAX_OPERATIONS = 100
MAX_SIGNATURES = 20


class EnvelopeType:
    TX: int = 2


class ExtendFootprintTTL:
    """Extend the TTL of the read-only footprint to `extend_to` ledgers."""

    extend_to: int

    def __init__(self, extend_to: int):
        if extend_to < 0 or extend_to > MAX_UINT32:
            raise ValueError(f"extend_to out of range: {extend_to}")
        self.extend_to = extend_to

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ExtendFootprintTTL):
            return NotImplemented
        return self.extend_to == other.extend_to

    def __str__(self) -> str:
        return f"ExtendFootprintTTL(extend_to={self.extend_to})"

    @staticmethod
    def unpack(unpacker: Unpacker) -> ExtendFootprintTTL:
        ext = unpacker.int32()
        if ext != 0:
            raise XdrError(f"Unsupported extension: {ext}")
        return ExtendFootprintTTL(unpacker.uint32())

    def pack(self, packer: Packer):
        packer.int32(0)
        packer.uint32(self.extend_to)


class RestoreFootprint:
    """Restore the archived entries of the read-write footprint."""

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RestoreFootprint):
            return NotImplemented
        return True

    def __str__(self) -> str:
        return "RestoreFootprint()"

    @staticmethod
    def unpack(unpacker: Unpacker) -> RestoreFootprint:
        ext = unpacker.int32()
        if ext != 0:
            raise XdrError(f"Unsupported extension: {ext}")
        return RestoreFootprint()

    def pack(self, packer: Packer):
        packer.int32(0)


class Operation(Packable, Unpackable):
    """A single operation with an optional per-operation source account."""

    EXTEND_FOOTPRINT_TTL: int = 25
    RESTORE_FOOTPRINT: int = 26

    variant: int
    body: typing.Any
    source_account: Optional[str]

    def __init__(self, body: typing.Any, source_account: Optional[str] = None):
        if isinstance(body, ExtendFootprintTTL):
            self.variant = Operation.EXTEND_FOOTPRINT_TTL
        elif isinstance(body, RestoreFootprint):
            self.variant = Operation.RESTORE_FOOTPRINT
        else:
            raise Exception("Invalid type")
        if source_account is not None and not strkey.is_valid_account_id(
            source_account
        ):
            raise ValueError(f"Invalid operation source account: {source_account}")
        self.body = body
        self.source_account = source_account

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Operation):
            return NotImplemented
        return (
            self.variant == other.variant
            and self.body == other.body
            and self.source_account == other.source_account
        )

    def __str__(self) -> str:
        return self.body.__str__()

    def is_soroban(self) -> bool:
        return self.variant in (
            Operation.EXTEND_FOOTPRINT_TTL,
            Operation.RESTORE_FOOTPRINT,
        )

    @staticmethod
    def unpack(unpacker: Unpacker) -> Operation:
        source = unpacker.optional(_unpack_muxed_account)
        variant = unpacker.int32()
        if variant == Operation.EXTEND_FOOTPRINT_TTL:
            body: typing.Any = ExtendFootprintTTL.unpack(unpacker)
        elif variant == Operation.RESTORE_FOOTPRINT:
            body = RestoreFootprint.unpack(unpacker)
        else:
            raise XdrError(f"Unsupported operation type: {variant}")
        return Operation(body, source)

    def pack(self, packer: Packer):
        packer.optional(self.source_account, _pack_muxed_account)
        packer.int32(self.variant)
        packer.struct(self.body)


def _unpack_muxed_account(unpacker: Unpacker) -> str:
    # KEY_TYPE_ED25519 shares its tag and layout with an AccountId.
    return str(AccountId.unpack(unpacker))


def _pack_muxed_account(packer: Packer, account_id: str):
    packer.struct(AccountId.from_str(account_id))


class TimeBounds:
    min_time: int
    max_time: int

    def __init__(self, min_time: int, max_time: int):
        if max_time != 0 and max_time < min_time:
            raise ValueError(f"max_time {max_time} before min_time {min_time}")
        self.min_time = min_time
        self.max_time = max_time

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TimeBounds):
            return NotImplemented
        return self.min_time == other.min_time and self.max_time == other.max_time

    def __repr__(self) -> str:
        return f"TimeBounds({self.min_time}, {self.max_time})"

    @staticmethod
    def unpack(unpacker: Unpacker) -> TimeBounds:
        return TimeBounds(unpacker.uint64(), unpacker.uint64())

    def pack(self, packer: Packer):
        packer.uint64(self.min_time)
        packer.uint64(self.max_time)


class Preconditions:
    NONE: int = 0
    TIME: int = 1

    time_bounds: Optional[TimeBounds]

    def __init__(self, time_bounds: Optional[TimeBounds] = None):
        self.time_bounds = time_bounds

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Preconditions):
            return NotImplemented
        return self.time_bounds == other.time_bounds

    @staticmethod
    def unpack(unpacker: Unpacker) -> Preconditions:
        variant = unpacker.int32()
        if variant == Preconditions.NONE:
            return Preconditions()
        elif variant == Preconditions.TIME:
            return Preconditions(TimeBounds.unpack(unpacker))
        raise XdrError(f"Unsupported precondition type: {variant}")

    def pack(self, packer: Packer):
        if self.time_bounds is None:
            packer.int32(Preconditions.NONE)
        else:
            packer.int32(Preconditions.TIME)
            packer.struct(self.time_bounds)


class Transaction(Packable, Unpackable):
    """An unsigned Stellar transaction (envelope type ``ENVELOPE_TYPE_TX``).

    `fee` is the maximum total fee in stroops the source pays; for Soroban
    transactions it already includes the resource fee carried in
    `soroban_data`.
    """

    MEMO_NONE: int = 0

    source_account: str
    fee: int
    sequence: int
    preconditions: Preconditions
    operations: List[Operation]
    soroban_data: Optional[SorobanTransactionData]

    def __init__(
        self,
        source_account: str,
        fee: int,
        sequence: int,
        preconditions: Preconditions,
        operations: List[Operation],
        soroban_data: Optional[SorobanTransactionData] = None,
    ):
        self.source_account = source_account
        self.fee = fee
        self.sequence = sequence
        self.preconditions = preconditions
        self.operations = operations
        self.soroban_data = soroban_data

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Transaction):
            return NotImplemented
        return (
            self.source_account == other.source_account
            and self.fee == other.fee
            and self.sequence == other.sequence
            and self.preconditions == other.preconditions
            and self.operations == other.operations
            and self.soroban_data == other.soroban_data
        )

    def __str__(self) -> str:
        operations = ", ".join(str(op) for op in self.operations)
        return (
            f"Transaction(source={self.source_account}, fee={self.fee}, "
            f"sequence={self.sequence}, operations=[{operations}])"
        )

    def signature_base(self, network_passphrase: str) -> bytes:
        """The bytes whose SHA-256 is signed: network id, envelope type, transaction."""
        return (
            Network.network_id(network_passphrase)
            + encoder(EnvelopeType.TX, Packer.int32)
            + self.to_xdr()
        )

    def hash(self, network_passphrase: str) -> bytes:
        return hashlib.sha256(self.signature_base(network_passphrase)).digest()

    @staticmethod
    def unpack(unpacker: Unpacker) -> Transaction:
        source_account = _unpack_muxed_account(unpacker)
        fee = unpacker.uint32()
        sequence = unpacker.int64()
        preconditions = Preconditions.unpack(unpacker)
        memo = unpacker.int32()
        if memo != Transaction.MEMO_NONE:
            raise XdrError(f"Unsupported memo type: {memo}")
        operations = unpacker.array(Operation.unpack, MAX_OPERATIONS)
        ext = unpacker.int32()
        if ext == 0:
            soroban_data = None
        elif ext == 1:
            soroban_data = SorobanTransactionData.unpack(unpacker)
        else:
            raise XdrError(f"Unsupported transaction extension: {ext}")
        return Transaction(
            source_account, fee, sequence, preconditions, operations, soroban_data
        )

    def pack(self, packer: Packer):
        _pack_muxed_account(packer, self.source_account)
        packer.uint32(self.fee)
        packer.int64(self.sequence)
        packer.struct(self.preconditions)
        packer.int32(Transaction.MEMO_NONE)
        packer.array(self.operations, Packer.struct, MAX_OPERATIONS)
        if self.soroban_data is None:
            packer.int32(0)
        else:
            packer.int32(1)
            packer.struct(self.soroban_data)


class DecoratedSignature:
    hint: bytes
    signature: bytes

    def __init__(self, hint: bytes, signature: bytes):
        self.hint = hint
        self.signature = signature

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DecoratedSignature):
            return NotImplemented
        return self.hint == other.hint and self.signature == other.signature

    @staticmethod
    def unpack(unpacker: Unpacker) -> DecoratedSignature:
        return DecoratedSignature(unpacker.fixed_opaque(4), unpacker.opaque(64))

    def pack(self, packer: Packer):
        packer.fixed_opaque(self.hint, 4)
        packer.opaque(self.signature, 64)


class TransactionEnvelope(Packable):
    """A transaction bound to a network, together with its signatures."""

    transaction: Transaction
    network_passphrase: str
    signatures: List[DecoratedSignature]

    def __init__(
        self,
        transaction: Transaction,
        network_passphrase: str,
        signatures: Optional[List[DecoratedSignature]] = None,
    ):
        self.transaction = transaction
        self.network_passphrase = network_passphrase
        self.signatures = list(signatures or [])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TransactionEnvelope):
            return NotImplemented
        return (
            self.transaction == other.transaction
            and self.network_passphrase == other.network_passphrase
            and self.signatures == other.signatures
        )

    def hash(self) -> bytes:
        return self.transaction.hash(self.network_passphrase)

    def hash_hex(self) -> str:
        return self.hash().hex()

    def sign(self, keypair: Keypair) -> TransactionEnvelope:
        """Sign the transaction hash and append the decorated signature."""
        if len(self.signatures) >= MAX_SIGNATURES:
            raise XdrError(f"Envelope already holds {MAX_SIGNATURES} signatures")
        signature = keypair.sign(self.hash())
        self.signatures.append(DecoratedSignature(keypair.signature_hint(), signature))
        return self

    def is_signed_by(self, keypair: Keypair) -> bool:
        tx_hash = self.hash()
        return any(
            signature.hint == keypair.signature_hint()
            and keypair.verify(tx_hash, signature.signature)
            for signature in self.signatures
        )

    @staticmethod
    def from_xdr_base64(data: str, network_passphrase: str) -> TransactionEnvelope:
        try:
            raw = base64.b64decode(data, validate=True)
        except binascii.Error as e:
            raise XdrError(f"Invalid base64 XDR: {e}") from e
        unpacker = Unpacker(raw)
        envelope = TransactionEnvelope.unpack(unpacker, network_passphrase)
        if unpacker.remaining() != 0:
            raise XdrError(f"{unpacker.remaining()} trailing bytes after envelope")
        return envelope

    @staticmethod
    def unpack(unpacker: Unpacker, network_passphrase: str) -> TransactionEnvelope:
        envelope_type = unpacker.int32()
        if envelope_type != EnvelopeType.TX:
            raise XdrError(f"Unsupported envelope type: {envelope_type}")
        transaction = Transaction.unpack(unpacker)
        signatures = unpacker.array(DecoratedSignature.unpack, MAX_SIGNATURES)
        return TransactionEnvelope(transaction, network_passphrase, signatures)

    def pack(self, packer: Packer):
        packer.int32(EnvelopeType.TX)
        packer.struct(self.transaction)
        packer.array(self.signatures, Packer.struct, MAX_SIGNATURES)


class TransactionBuildError(Exception):
    """The builder was asked to produce an invalid transaction."""


class TransactionBuilder:
    """Assemble a `TransactionEnvelope` for a source account.

    The builder consumes one sequence number from `source_account` each time
    `build` succeeds. A timeout must be set explicitly; use
    `TIMEOUT_INFINITE` for a transaction without an expiry.
    """

    BASE_FEE = 100
    TIMEOUT_INFINITE = 0

    source_account: Account
    fee: int
    network_passphrase: str
    operations: List[Operation]
    soroban_data: Optional[SorobanTransactionData]
    time_bounds: Optional[TimeBounds]

    def __init__(
        self,
        source_account: Account,
        fee: int = BASE_FEE,
        network_passphrase: str = Network.TESTNET,
    ):
        if fee < 0 or fee > MAX_UINT32:
            raise TransactionBuildError(f"Fee out of range: {fee}")
        self.source_account = source_account
        self.fee = fee
        self.network_passphrase = network_passphrase
        self.operations = []
        self.soroban_data = None
        self.time_bounds = None

    def add_operation(
        self, operation: Union[Operation, ExtendFootprintTTL, RestoreFootprint]
    ) -> TransactionBuilder:
        if not isinstance(operation, Operation):
            operation = Operation(operation)
        self.operations.append(operation)
        return self

    def set_soroban_data(
        self, soroban_data: Union[SorobanTransactionData, str]
    ) -> TransactionBuilder:
        self.soroban_data = SorobanDataBuilder(soroban_data).build()
        return self

    def set_timeout(self, seconds: int) -> TransactionBuilder:
        """Expire the transaction `seconds` from now (0 means never)."""
        if seconds < 0:
            raise TransactionBuildError(f"Timeout must be non-negative, got {seconds}")
        max_time = 0 if seconds == 0 else int(time.time()) + seconds
        self.time_bounds = TimeBounds(0, max_time)
        return self

    def set_time_bounds(self, min_time: int, max_time: int) -> TransactionBuilder:
        self.time_bounds = TimeBounds(min_time, max_time)
        return self

    def build(self) -> TransactionEnvelope:
        if self.time_bounds is None:
            raise TransactionBuildError(
                "Time bounds are required; call set_timeout (TIMEOUT_INFINITE for none)"
            )
        if not self.operations:
            raise TransactionBuildError("A transaction needs at least one operation")
        soroban_ops = [op for op in self.operations if op.is_soroban()]
        if soroban_ops and len(self.operations) != 1:
            raise TransactionBuildError(
                "A Soroban operation must be the only operation in its transaction"
            )
        if soroban_ops and self.soroban_data is None:
            raise TransactionBuildError(f"{soroban_ops[0]} requires Soroban data")
        if self.soroban_data is not None and self.fee < self.soroban_data.resource_fee:
            raise TransactionBuildError(
                f"Fee {self.fee} is lower than the resource fee "
                f"{self.soroban_data.resource_fee}"
            )

        transaction = Transaction(
            self.source_account.account_id,
            self.fee,
            self.source_account.next_sequence_number(),
            Preconditions(self.time_bounds),
            list(self.operations),
            self.soroban_data,
        )
        self.source_account.increment_sequence_number()
        return TransactionEnvelope(transaction, self.network_passphrase)


class Test(unittest.TestCase):
    def setUp(self):
        self.signer = Keypair.from_raw_seed(b"\x07" * 32)
        self.contract = Contract(strkey.encode_contract(bytes(range(32))))
        self.soroban_data = (
            SorobanDataBuilder()
            .set_resource_fee(200_000)
            .set_read_only([self.contract.get_footprint()])
            .build()
        )

    def build(self, account: Account) -> TransactionEnvelope:
        return (
            TransactionBuilder(account, 200_100, Network.TESTNET)
            .set_soroban_data(self.soroban_data)
            .add_operation(ExtendFootprintTTL(500_000))
            .set_timeout(30)
            .build()
        )

    def test_build_consumes_sequence(self):
        account = Account(self.signer.public_key(), 100)
        envelope = self.build(account)
        self.assertEqual(envelope.transaction.sequence, 101)
        self.assertEqual(account.sequence, 101)
        self.assertEqual(envelope.transaction.fee, 200_100)
        self.assertEqual(envelope.transaction.soroban_data, self.soroban_data)
        time_bounds = envelope.transaction.preconditions.time_bounds
        self.assertIsNotNone(time_bounds)
        self.assertEqual(time_bounds.min_time, 0)
        self.assertLessEqual(time_bounds.max_time, int(time.time()) + 30)

    def test_operation_encoding(self):
        operation = Operation(ExtendFootprintTTL(500_000))
        self.assertEqual(
            operation.to_xdr().hex(),
            "00000000" "00000019" "00000000" "0007a120",
        )
        self.assertEqual(
            Operation(RestoreFootprint()).to_xdr().hex(), "00000000" "0000001a" "00000000"
        )

    def test_sign_and_round_trip(self):
        envelope = self.build(Account(self.signer.public_key(), 1)).sign(self.signer)
        self.assertTrue(envelope.is_signed_by(self.signer))
        self.assertFalse(envelope.is_signed_by(Keypair.random()))

        decoded = TransactionEnvelope.from_xdr_base64(
            envelope.to_xdr_base64(), Network.TESTNET
        )
        self.assertEqual(decoded, envelope)
        self.assertEqual(decoded.hash_hex(), envelope.hash_hex())

    def test_hash_depends_on_network(self):
        envelope = self.build(Account(self.signer.public_key(), 1))
        transaction = envelope.transaction
        self.assertNotEqual(
            transaction.hash(Network.TESTNET), transaction.hash(Network.PUBLIC)
        )
        self.assertEqual(
            transaction.signature_base(Network.TESTNET)[32:36], b"\x00\x00\x00\x02"
        )

    def test_envelope_invalid_base64(self):
        with self.assertRaises(XdrError):
            TransactionEnvelope.from_xdr_base64("not base64!", Network.TESTNET)
        encoded = self.build(Account(self.signer.public_key(), 1)).to_xdr_base64()
        with self.assertRaises(XdrError):
            TransactionEnvelope.from_xdr_base64(encoded + "A", Network.TESTNET)

    def test_signature_from_other_network_rejected(self):
        envelope = self.build(Account(self.signer.public_key(), 1)).sign(self.signer)
        moved = TransactionEnvelope(
            envelope.transaction, Network.PUBLIC, envelope.signatures
        )
        self.assertFalse(moved.is_signed_by(self.signer))

    def test_timeout_required(self):
        builder = TransactionBuilder(Account(self.signer.public_key(), 1), 200_100)
        builder.set_soroban_data(self.soroban_data).add_operation(ExtendFootprintTTL(1))
        with self.assertRaises(TransactionBuildError):
            builder.build()
        builder.set_timeout(TransactionBuilder.TIMEOUT_INFINITE)
        envelope = builder.build()
        self.assertEqual(envelope.transaction.preconditions.time_bounds, TimeBounds(0, 0))

    def test_soroban_data_required(self):
        builder = (
            TransactionBuilder(Account(self.signer.public_key(), 1), 200_100)
            .add_operation(ExtendFootprintTTL(1))
            .set_timeout(30)
        )
        with self.assertRaises(TransactionBuildError):
            builder.build()

    def test_single_soroban_operation(self):
        builder = (
            TransactionBuilder(Account(self.signer.public_key(), 1), 200_100)
            .set_soroban_data(self.soroban_data)
            .add_operation(ExtendFootprintTTL(1))
            .add_operation(RestoreFootprint())
            .set_timeout(30)
        )
        with self.assertRaises(TransactionBuildError):
            builder.build()

    def test_fee_below_resource_fee(self):
        account = Account(self.signer.public_key(), 1)
        builder = (
            TransactionBuilder(account, 100)
            .set_soroban_data(self.soroban_data)
            .add_operation(ExtendFootprintTTL(1))
            .set_timeout(30)
        )
        with self.assertRaises(TransactionBuildError):
            builder.build()
        self.assertEqual(account.sequence, 1)

    def test_code_key_in_footprint(self):
        data = (
            SorobanDataBuilder(self.soroban_data)
            .set_read_only(
                [self.contract.get_footprint(), contract_code_key(b"\x09" * 32)]
            )
            .build()
        )
        envelope = (
            TransactionBuilder(Account(self.signer.public_key(), 1), 200_100)
            .set_soroban_data(data)
            .add_operation(ExtendFootprintTTL(1))
            .set_timeout(30)
            .build()
        )
        decoded = Transaction.from_xdr(envelope.transaction.to_xdr())
        self.assertEqual(len(decoded.soroban_data.resources.footprint.read_only), 2)


if __name__ == "__main__":
    unittest.main()
