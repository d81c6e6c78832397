# Copyright © Soroban TTL contributors
# SPDX-License-Identifier: Apache-2.0

"""
Ledger keys for the entries a Soroban footprint can reference.

Soroban transactions declare up front every ledger entry they read or write.
For TTL management the relevant entries are:

- the contract instance, a persistent contract-data entry keyed by the
  special ``SCV_LEDGER_KEY_CONTRACT_INSTANCE`` value;
- the contract code, keyed by the SHA-256 hash of the uploaded Wasm;
- arbitrary persistent or temporary contract data keyed by an `ScVal`;
- accounts, which the RPC client reads to learn sequence numbers.

Union types follow one pattern: a wrapper class records the variant tag and
holds the concrete value, selected by the value's Python type.

Examples:
    Footprint of a deployed contract::

        from soroban_ttl.ledger import Contract

        contract = Contract("CA3D5KRYM6CB7OWQ6TWYRR3Z4T7GNZLKERYNZGGA5SOAOPIFY6YQGAXE")
        instance_key = contract.get_footprint()

    Code entry for a Wasm hash::

        code_key = contract_code_key(bytes.fromhex(wasm_hash_hex))
"""

from __future__ import annotations

import typing
import unittest

from . import strkey
from .xdr import Packable, Packer, Unpackable, Unpacker, XdrError

HASH_LENGTH = 32


class LedgerEntryType:
    ACCOUNT: int = 0
    CONTRACT_DATA: int = 6
    CONTRACT_CODE: int = 7


class ContractDataDurability:
    TEMPORARY: int = 0
    PERSISTENT: int = 1

    @staticmethod
    def validate(durability: int) -> int:
        if durability not in (
            ContractDataDurability.TEMPORARY,
            ContractDataDurability.PERSISTENT,
        ):
            raise XdrError(f"Invalid contract data durability: {durability}")
        return durability


class PublicKeyType:
    ED25519: int = 0


class AccountId(Packable, Unpackable):
    """An Ed25519 account id (``PublicKey`` in the protocol XDR)."""

    key: bytes

    def __init__(self, key: bytes):
        if len(key) != HASH_LENGTH:
            raise XdrError(f"Expected {HASH_LENGTH} byte public key, got {len(key)}")
        self.key = key

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AccountId):
            return NotImplemented
        return self.key == other.key

    def __str__(self) -> str:
        return strkey.encode_account_id(self.key)

    def __repr__(self) -> str:
        return f"AccountId({self})"

    @staticmethod
    def from_str(account_id: str) -> AccountId:
        return AccountId(strkey.decode_account_id(account_id))

    @staticmethod
    def unpack(unpacker: Unpacker) -> AccountId:
        key_type = unpacker.int32()
        if key_type != PublicKeyType.ED25519:
            raise XdrError(f"Unsupported public key type: {key_type}")
        return AccountId(unpacker.fixed_opaque(HASH_LENGTH))

    def pack(self, packer: Packer):
        packer.int32(PublicKeyType.ED25519)
        packer.fixed_opaque(self.key, HASH_LENGTH)


class ContractId(Packable, Unpackable):
    """A 32-byte contract hash, rendered as a ``C...`` StrKey."""

    contract_hash: bytes

    def __init__(self, contract_hash: bytes):
        if len(contract_hash) != HASH_LENGTH:
            raise XdrError(
                f"Expected {HASH_LENGTH} byte contract hash, got {len(contract_hash)}"
            )
        self.contract_hash = contract_hash

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ContractId):
            return NotImplemented
        return self.contract_hash == other.contract_hash

    def __str__(self) -> str:
        return strkey.encode_contract(self.contract_hash)

    def __repr__(self) -> str:
        return f"ContractId({self})"

    @staticmethod
    def from_str(contract_id: str) -> ContractId:
        return ContractId(strkey.decode_contract(contract_id))

    @staticmethod
    def unpack(unpacker: Unpacker) -> ContractId:
        return ContractId(unpacker.fixed_opaque(HASH_LENGTH))

    def pack(self, packer: Packer):
        packer.fixed_opaque(self.contract_hash, HASH_LENGTH)


class ScAddress(Packable, Unpackable):
    """Address of an account or a contract, as seen by smart contracts."""

    ACCOUNT: int = 0
    CONTRACT: int = 1

    variant: int
    address: typing.Any

    def __init__(self, address: typing.Any):
        if isinstance(address, AccountId):
            self.variant = ScAddress.ACCOUNT
        elif isinstance(address, ContractId):
            self.variant = ScAddress.CONTRACT
        else:
            raise Exception("Invalid type")
        self.address = address

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ScAddress):
            return NotImplemented
        return self.variant == other.variant and self.address == other.address

    def __str__(self) -> str:
        return str(self.address)

    def __repr__(self) -> str:
        return f"ScAddress({self})"

    @staticmethod
    def from_str(address: str) -> ScAddress:
        """Parse a ``G...`` account id or a ``C...`` contract id."""
        if address.startswith("C"):
            return ScAddress(ContractId.from_str(address))
        return ScAddress(AccountId.from_str(address))

    @staticmethod
    def unpack(unpacker: Unpacker) -> ScAddress:
        variant = unpacker.int32()
        if variant == ScAddress.ACCOUNT:
            address: typing.Any = AccountId.unpack(unpacker)
        elif variant == ScAddress.CONTRACT:
            address = ContractId.unpack(unpacker)
        else:
            raise XdrError(f"Unsupported ScAddress type: {variant}")
        return ScAddress(address)

    def pack(self, packer: Packer):
        packer.int32(self.variant)
        packer.struct(self.address)


class ScVal(Packable, Unpackable):
    """The subset of Soroban values usable as contract data keys here.

    Only scalar variants are supported; collection values (vectors, maps)
    and big integers are rejected on both encode and decode.
    """

    BOOL: int = 0
    VOID: int = 1
    U32: int = 3
    I32: int = 4
    U64: int = 5
    I64: int = 6
    BYTES: int = 13
    STRING: int = 14
    SYMBOL: int = 15
    LEDGER_KEY_CONTRACT_INSTANCE: int = 20

    SYMBOL_MAX_LENGTH = 32

    variant: int
    value: typing.Any

    def __init__(self, variant: int, value: typing.Any = None):
        self.variant = variant
        self.value = value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ScVal):
            return NotImplemented
        return self.variant == other.variant and self.value == other.value

    def __repr__(self) -> str:
        return f"ScVal({self.variant}, {self.value!r})"

    @staticmethod
    def ledger_key_contract_instance() -> ScVal:
        return ScVal(ScVal.LEDGER_KEY_CONTRACT_INSTANCE)

    @staticmethod
    def symbol(value: str) -> ScVal:
        if len(value) > ScVal.SYMBOL_MAX_LENGTH:
            raise XdrError(f"Symbol longer than {ScVal.SYMBOL_MAX_LENGTH}: {value}")
        return ScVal(ScVal.SYMBOL, value)

    @staticmethod
    def unpack(unpacker: Unpacker) -> ScVal:
        variant = unpacker.int32()
        if variant in (ScVal.VOID, ScVal.LEDGER_KEY_CONTRACT_INSTANCE):
            return ScVal(variant)
        elif variant == ScVal.BOOL:
            return ScVal(variant, unpacker.bool())
        elif variant == ScVal.U32:
            return ScVal(variant, unpacker.uint32())
        elif variant == ScVal.I32:
            return ScVal(variant, unpacker.int32())
        elif variant == ScVal.U64:
            return ScVal(variant, unpacker.uint64())
        elif variant == ScVal.I64:
            return ScVal(variant, unpacker.int64())
        elif variant == ScVal.BYTES:
            return ScVal(variant, unpacker.opaque())
        elif variant == ScVal.STRING:
            return ScVal(variant, unpacker.string())
        elif variant == ScVal.SYMBOL:
            return ScVal(variant, unpacker.string(ScVal.SYMBOL_MAX_LENGTH))
        raise XdrError(f"Unsupported ScVal type: {variant}")

    def pack(self, packer: Packer):
        packer.int32(self.variant)
        if self.variant in (ScVal.VOID, ScVal.LEDGER_KEY_CONTRACT_INSTANCE):
            return
        elif self.variant == ScVal.BOOL:
            packer.bool(self.value)
        elif self.variant == ScVal.U32:
            packer.uint32(self.value)
        elif self.variant == ScVal.I32:
            packer.int32(self.value)
        elif self.variant == ScVal.U64:
            packer.uint64(self.value)
        elif self.variant == ScVal.I64:
            packer.int64(self.value)
        elif self.variant == ScVal.BYTES:
            packer.opaque(self.value)
        elif self.variant == ScVal.STRING:
            packer.string(self.value)
        elif self.variant == ScVal.SYMBOL:
            packer.string(self.value, ScVal.SYMBOL_MAX_LENGTH)
        else:
            raise XdrError(f"Unsupported ScVal type: {self.variant}")


class LedgerKeyAccount:
    account_id: AccountId

    def __init__(self, account_id: AccountId):
        self.account_id = account_id

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LedgerKeyAccount):
            return NotImplemented
        return self.account_id == other.account_id

    def __str__(self) -> str:
        return f"account {self.account_id}"

    @staticmethod
    def unpack(unpacker: Unpacker) -> LedgerKeyAccount:
        return LedgerKeyAccount(AccountId.unpack(unpacker))

    def pack(self, packer: Packer):
        packer.struct(self.account_id)


class LedgerKeyContractData:
    contract: ScAddress
    key: ScVal
    durability: int

    def __init__(
        self,
        contract: ScAddress,
        key: ScVal,
        durability: int = ContractDataDurability.PERSISTENT,
    ):
        self.contract = contract
        self.key = key
        self.durability = ContractDataDurability.validate(durability)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LedgerKeyContractData):
            return NotImplemented
        return (
            self.contract == other.contract
            and self.key == other.key
            and self.durability == other.durability
        )

    def __str__(self) -> str:
        if self.key.variant == ScVal.LEDGER_KEY_CONTRACT_INSTANCE:
            return f"contract instance {self.contract}"
        return f"contract data {self.contract} {self.key!r}"

    @staticmethod
    def unpack(unpacker: Unpacker) -> LedgerKeyContractData:
        contract = ScAddress.unpack(unpacker)
        key = ScVal.unpack(unpacker)
        durability = unpacker.int32()
        return LedgerKeyContractData(contract, key, durability)

    def pack(self, packer: Packer):
        packer.struct(self.contract)
        packer.struct(self.key)
        packer.int32(self.durability)


class LedgerKeyContractCode:
    wasm_hash: bytes

    def __init__(self, wasm_hash: bytes):
        if len(wasm_hash) != HASH_LENGTH:
            raise XdrError(f"Expected {HASH_LENGTH} byte wasm hash, got {len(wasm_hash)}")
        self.wasm_hash = wasm_hash

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LedgerKeyContractCode):
            return NotImplemented
        return self.wasm_hash == other.wasm_hash

    def __str__(self) -> str:
        return f"contract code {self.wasm_hash.hex()}"

    @staticmethod
    def unpack(unpacker: Unpacker) -> LedgerKeyContractCode:
        return LedgerKeyContractCode(unpacker.fixed_opaque(HASH_LENGTH))

    def pack(self, packer: Packer):
        packer.fixed_opaque(self.wasm_hash, HASH_LENGTH)


class LedgerKey(Packable, Unpackable):
    """Key of a single ledger entry, tagged by `LedgerEntryType`."""

    variant: int
    key: typing.Any

    def __init__(self, key: typing.Any):
        if isinstance(key, LedgerKeyAccount):
            self.variant = LedgerEntryType.ACCOUNT
        elif isinstance(key, LedgerKeyContractData):
            self.variant = LedgerEntryType.CONTRACT_DATA
        elif isinstance(key, LedgerKeyContractCode):
            self.variant = LedgerEntryType.CONTRACT_CODE
        else:
            raise Exception("Invalid type")
        self.key = key

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LedgerKey):
            return NotImplemented
        return self.variant == other.variant and self.key == other.key

    def __hash__(self) -> int:
        return hash(self.to_xdr())

    def __str__(self) -> str:
        return self.key.__str__()

    def __repr__(self) -> str:
        return f"LedgerKey({self})"

    @staticmethod
    def unpack(unpacker: Unpacker) -> LedgerKey:
        variant = unpacker.int32()
        if variant == LedgerEntryType.ACCOUNT:
            key: typing.Any = LedgerKeyAccount.unpack(unpacker)
        elif variant == LedgerEntryType.CONTRACT_DATA:
            key = LedgerKeyContractData.unpack(unpacker)
        elif variant == LedgerEntryType.CONTRACT_CODE:
            key = LedgerKeyContractCode.unpack(unpacker)
        else:
            raise XdrError(f"Unsupported ledger key type: {variant}")
        return LedgerKey(key)

    def pack(self, packer: Packer):
        packer.int32(self.variant)
        packer.struct(self.key)


def account_key(account_id: str) -> LedgerKey:
    return LedgerKey(LedgerKeyAccount(AccountId.from_str(account_id)))


def contract_code_key(wasm_hash: bytes) -> LedgerKey:
    return LedgerKey(LedgerKeyContractCode(wasm_hash))


def contract_data_key(
    contract_id: str,
    key: ScVal,
    durability: int = ContractDataDurability.PERSISTENT,
) -> LedgerKey:
    return LedgerKey(
        LedgerKeyContractData(
            ScAddress(ContractId.from_str(contract_id)), key, durability
        )
    )


class Contract:
    """A deployed contract, identified by its ``C...`` contract id."""

    contract_id: ContractId

    def __init__(self, contract_id: str):
        self.contract_id = ContractId.from_str(contract_id)

    def __str__(self) -> str:
        return str(self.contract_id)

    def address(self) -> ScAddress:
        return ScAddress(self.contract_id)

    def get_footprint(self) -> LedgerKey:
        """Ledger key of the contract's persistent instance entry."""
        return LedgerKey(
            LedgerKeyContractData(
                self.address(),
                ScVal.ledger_key_contract_instance(),
                ContractDataDurability.PERSISTENT,
            )
        )


class Test(unittest.TestCase):
    CONTRACT_HASH = bytes(range(32))

    def test_instance_footprint_encoding(self):
        contract = Contract(strkey.encode_contract(self.CONTRACT_HASH))
        expected = (
            "00000006"  # CONTRACT_DATA
            "00000001"  # SC_ADDRESS_TYPE_CONTRACT
            + self.CONTRACT_HASH.hex()
            + "00000014"  # SCV_LEDGER_KEY_CONTRACT_INSTANCE
            "00000001"  # PERSISTENT
        )
        self.assertEqual(contract.get_footprint().to_xdr().hex(), expected)

    def test_code_key_encoding(self):
        key = contract_code_key(b"\xab" * 32)
        self.assertEqual(key.to_xdr().hex(), "00000007" + "ab" * 32)
        self.assertEqual(str(key), "contract code " + "ab" * 32)

    def test_account_key_encoding(self):
        account_id = strkey.encode_account_id(b"\x00" * 32)
        key = account_key(account_id)
        self.assertEqual(key.to_xdr().hex(), "00000000" + "00000000" + "00" * 32)
        self.assertEqual(str(key), f"account {account_id}")

    def test_round_trip(self):
        contract_id = strkey.encode_contract(self.CONTRACT_HASH)
        keys = [
            Contract(contract_id).get_footprint(),
            contract_code_key(b"\x01" * 32),
            contract_data_key(
                contract_id, ScVal.symbol("COUNTER"), ContractDataDurability.TEMPORARY
            ),
            contract_data_key(contract_id, ScVal(ScVal.U64, 42)),
        ]
        for key in keys:
            self.assertEqual(LedgerKey.from_xdr_base64(key.to_xdr_base64()), key)

    def test_invalid_contract_id(self):
        with self.assertRaises(strkey.StrKeyError):
            Contract(strkey.encode_account_id(self.CONTRACT_HASH))

    def test_invalid_durability(self):
        with self.assertRaises(XdrError):
            contract_data_key(
                strkey.encode_contract(self.CONTRACT_HASH), ScVal.symbol("a"), 2
            )

    def test_unsupported_key_type(self):
        with self.assertRaises(XdrError):
            LedgerKey.from_xdr(bytes.fromhex("00000009") + b"\x00" * 32)

    def test_trailing_bytes(self):
        data = contract_code_key(b"\x01" * 32).to_xdr() + b"\x00\x00\x00\x00"
        with self.assertRaises(XdrError):
            LedgerKey.from_xdr(data)


if __name__ == "__main__":
    unittest.main()
