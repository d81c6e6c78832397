# Copyright © Soroban TTL contributors
# SPDX-License-Identifier: Apache-2.0

"""
Soroban resource descriptor attached to smart-contract transactions.

Every Soroban transaction carries a `SorobanTransactionData`: the footprint of
ledger entries it touches, the resources it may consume and the resource fee
it is willing to pay on top of the base fee. TTL extension only needs the
footprint (read-only) and a resource fee; restoring archived entries needs a
read-write footprint.
"""

from __future__ import annotations

import typing
import unittest
from typing import List, Optional, Union

from .ledger import LedgerKey, contract_code_key
from .xdr import Packable, Packer, Unpackable, Unpacker, XdrError


class LedgerFootprint(Packable, Unpackable):
    read_only: List[LedgerKey]
    read_write: List[LedgerKey]

    def __init__(
        self,
        read_only: Optional[List[LedgerKey]] = None,
        read_write: Optional[List[LedgerKey]] = None,
    ):
        self.read_only = list(read_only or [])
        self.read_write = list(read_write or [])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LedgerFootprint):
            return NotImplemented
        return self.read_only == other.read_only and self.read_write == other.read_write

    def __repr__(self) -> str:
        return f"LedgerFootprint(read_only={self.read_only}, read_write={self.read_write})"

    @staticmethod
    def unpack(unpacker: Unpacker) -> LedgerFootprint:
        read_only = unpacker.array(LedgerKey.unpack)
        read_write = unpacker.array(LedgerKey.unpack)
        return LedgerFootprint(read_only, read_write)

    def pack(self, packer: Packer):
        packer.array(self.read_only, Packer.struct)
        packer.array(self.read_write, Packer.struct)


class SorobanResources(Packable, Unpackable):
    footprint: LedgerFootprint
    instructions: int
    disk_read_bytes: int
    write_bytes: int

    def __init__(
        self,
        footprint: LedgerFootprint,
        instructions: int = 0,
        disk_read_bytes: int = 0,
        write_bytes: int = 0,
    ):
        self.footprint = footprint
        self.instructions = instructions
        self.disk_read_bytes = disk_read_bytes
        self.write_bytes = write_bytes

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SorobanResources):
            return NotImplemented
        return (
            self.footprint == other.footprint
            and self.instructions == other.instructions
            and self.disk_read_bytes == other.disk_read_bytes
            and self.write_bytes == other.write_bytes
        )

    @staticmethod
    def unpack(unpacker: Unpacker) -> SorobanResources:
        footprint = LedgerFootprint.unpack(unpacker)
        instructions = unpacker.uint32()
        disk_read_bytes = unpacker.uint32()
        write_bytes = unpacker.uint32()
        return SorobanResources(footprint, instructions, disk_read_bytes, write_bytes)

    def pack(self, packer: Packer):
        packer.struct(self.footprint)
        packer.uint32(self.instructions)
        packer.uint32(self.disk_read_bytes)
        packer.uint32(self.write_bytes)


class SorobanTransactionData(Packable, Unpackable):
    """Resources and resource fee of a Soroban transaction.

    Only the ``v = 0`` extension is produced; archived-entry extensions are
    rejected when decoding.
    """

    resources: SorobanResources
    resource_fee: int

    def __init__(self, resources: SorobanResources, resource_fee: int):
        self.resources = resources
        self.resource_fee = resource_fee

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SorobanTransactionData):
            return NotImplemented
        return (
            self.resources == other.resources
            and self.resource_fee == other.resource_fee
        )

    @staticmethod
    def unpack(unpacker: Unpacker) -> SorobanTransactionData:
        ext = unpacker.int32()
        if ext != 0:
            raise XdrError(f"Unsupported SorobanTransactionData extension: {ext}")
        resources = SorobanResources.unpack(unpacker)
        resource_fee = unpacker.int64()
        return SorobanTransactionData(resources, resource_fee)

    def pack(self, packer: Packer):
        packer.int32(0)
        packer.struct(self.resources)
        packer.int64(self.resource_fee)


class SorobanDataBuilder:
    """Incrementally assemble a `SorobanTransactionData`.

    Examples:
        Read-only footprint for a TTL extension::

            data = (
                SorobanDataBuilder()
                .set_resource_fee(200_000)
                .set_read_only([contract.get_footprint()])
                .build()
            )
    """

    _data: SorobanTransactionData

    def __init__(
        self, data: Optional[Union[SorobanTransactionData, str]] = None
    ):
        if data is None:
            self._data = SorobanTransactionData(SorobanResources(LedgerFootprint()), 0)
        elif isinstance(data, str):
            self._data = typing.cast(
                SorobanTransactionData, SorobanTransactionData.from_xdr_base64(data)
            )
        else:
            # Copy so later setters do not mutate the caller's object.
            self._data = typing.cast(
                SorobanTransactionData, SorobanTransactionData.from_xdr(data.to_xdr())
            )

    def set_resource_fee(self, fee: int) -> SorobanDataBuilder:
        if fee < 0:
            raise ValueError(f"Resource fee must be non-negative, got {fee}")
        self._data.resource_fee = fee
        return self

    def set_resources(
        self, instructions: int, disk_read_bytes: int, write_bytes: int
    ) -> SorobanDataBuilder:
        resources = self._data.resources
        resources.instructions = instructions
        resources.disk_read_bytes = disk_read_bytes
        resources.write_bytes = write_bytes
        return self

    def set_read_only(self, keys: List[LedgerKey]) -> SorobanDataBuilder:
        self._data.resources.footprint.read_only = list(keys)
        return self

    def set_read_write(self, keys: List[LedgerKey]) -> SorobanDataBuilder:
        self._data.resources.footprint.read_write = list(keys)
        return self

    def set_footprint(
        self, read_only: List[LedgerKey], read_write: List[LedgerKey]
    ) -> SorobanDataBuilder:
        return self.set_read_only(read_only).set_read_write(read_write)

    def build(self) -> SorobanTransactionData:
        return typing.cast(
            SorobanTransactionData, SorobanTransactionData.from_xdr(self._data.to_xdr())
        )


class Test(unittest.TestCase):
    def test_builder(self):
        key = contract_code_key(b"\x02" * 32)
        data = SorobanDataBuilder().set_resource_fee(200_000).set_read_only([key]).build()
        self.assertEqual(data.resource_fee, 200_000)
        self.assertEqual(data.resources.footprint.read_only, [key])
        self.assertEqual(data.resources.footprint.read_write, [])

    def test_encoding(self):
        key = contract_code_key(b"\x02" * 32)
        data = SorobanDataBuilder().set_resource_fee(200_000).set_read_only([key]).build()
        expected = (
            "00000000"  # ext v0
            "00000001" + "00000007" + "02" * 32  # read only
            + "00000000"  # read write
            + "00000000" * 3  # instructions, disk read, write
            + "0000000000030d40"  # 200000
        )
        self.assertEqual(data.to_xdr().hex(), expected)

    def test_builder_does_not_alias(self):
        key = contract_code_key(b"\x02" * 32)
        original = SorobanDataBuilder().set_read_only([key]).build()
        rebuilt = SorobanDataBuilder(original).set_read_write([key]).set_read_only([]).build()
        self.assertEqual(original.resources.footprint.read_only, [key])
        self.assertEqual(original.resources.footprint.read_write, [])
        self.assertEqual(rebuilt.resources.footprint.read_write, [key])

    def test_builder_from_base64(self):
        data = SorobanDataBuilder().set_resource_fee(5).set_resources(1, 2, 3).build()
        rebuilt = SorobanDataBuilder(data.to_xdr_base64()).build()
        self.assertEqual(rebuilt, data)

    def test_negative_fee(self):
        with self.assertRaises(ValueError):
            SorobanDataBuilder().set_resource_fee(-1)


if __name__ == "__main__":
    unittest.main()
