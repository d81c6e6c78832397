# Copyright © Soroban TTL contributors
# SPDX-License-Identifier: Apache-2.0

"""
External Data Representation (XDR) implementation for Soroban transactions.

This module provides a small XDR packer and unpacker for encoding and decoding
the subset of the Stellar protocol structures used when extending or restoring
Soroban ledger entries. XDR (RFC 4506) is a big-endian format in which every
item occupies a multiple of four bytes.

The module contains:
- Protocol interfaces for packable and unpackable objects
- Unpacker class for reading XDR-encoded data
- Packer class for writing XDR-encoded data
- Helper functions for encoding values

Examples:
    Basic packing::

        from soroban_ttl.xdr import Packer, Unpacker

        packer = Packer()
        packer.string("hello")
        data = packer.output()  # b"\\x00\\x00\\x00\\x05hello\\x00\\x00\\x00"

        unpacker = Unpacker(data)
        result = unpacker.string()  # "hello"

    Working with custom structures::

        class TimeBounds:
            def pack(self, packer):
                packer.uint64(self.min_time)
                packer.uint64(self.max_time)

            @staticmethod
            def unpack(unpacker):
                return TimeBounds(unpacker.uint64(), unpacker.uint64())
"""

from __future__ import annotations

import base64
import binascii
import io
import typing
import unittest
from typing import List, Optional

from typing_extensions import Protocol

MIN_INT32 = -(2**31)
MAX_INT32 = 2**31 - 1
MAX_UINT32 = 2**32 - 1
MIN_INT64 = -(2**63)
MAX_INT64 = 2**63 - 1
MAX_UINT64 = 2**64 - 1


class XdrError(Exception):
    """Raised when a value cannot be packed or the input cannot be unpacked."""


class Unpackable(Protocol):
    """Protocol for objects that can be decoded from an XDR byte stream."""

    @classmethod
    def from_xdr(cls, indata: bytes) -> Unpackable:
        """Decode an instance from raw XDR bytes, rejecting trailing data."""
        unpacker = Unpacker(indata)
        value = unpacker.struct(cls)
        if unpacker.remaining() != 0:
            raise XdrError(f"{unpacker.remaining()} trailing bytes after XDR value")
        return value

    @classmethod
    def from_xdr_base64(cls, indata: str) -> Unpackable:
        """Decode an instance from base64-encoded XDR, as used by the RPC API."""
        try:
            raw = base64.b64decode(indata, validate=True)
        except binascii.Error as e:
            raise XdrError(f"Invalid base64 XDR: {e}") from e
        return cls.from_xdr(raw)

    @staticmethod
    def unpack(unpacker: Unpacker) -> Unpackable:
        ...


class Packable(Protocol):
    """Protocol for objects that can be encoded into an XDR byte stream."""

    def to_xdr(self) -> bytes:
        packer = Packer()
        packer.struct(self)
        return packer.output()

    def to_xdr_base64(self) -> str:
        return base64.b64encode(self.to_xdr()).decode()

    def pack(self, packer: Packer):
        ...


class Unpacker:
    """An XDR unpacker for reading data from a byte stream.

    The Unpacker keeps an internal position in the input and exposes one
    reader per XDR primitive. Composite values are read with `array`,
    `optional` and `struct`.

    Examples:
        Reading a footprint-like structure::

            unpacker = Unpacker(data)
            read_only = unpacker.array(LedgerKey.unpack)
            read_write = unpacker.array(LedgerKey.unpack)
    """

    _input: io.BytesIO
    _length: int

    def __init__(self, data: bytes):
        self._length = len(data)
        self._input = io.BytesIO(data)

    def remaining(self) -> int:
        """Get the number of bytes remaining in the input stream."""
        return self._length - self._input.tell()

    def bool(self) -> bool:
        """Read a boolean, encoded as a 32-bit integer that must be 0 or 1."""
        value = self.int32()
        if value == 0:
            return False
        elif value == 1:
            return True
        else:
            raise XdrError(f"Unexpected boolean value: {value}")

    def int32(self) -> int:
        return self._read_int(4, True)

    def uint32(self) -> int:
        return self._read_int(4, False)

    def int64(self) -> int:
        return self._read_int(8, True)

    def uint64(self) -> int:
        return self._read_int(8, False)

    def fixed_opaque(self, length: int) -> bytes:
        """Read a fixed-length opaque value followed by its zero padding."""
        value = self._read(length)
        self._read_padding(length)
        return value

    def opaque(self, max_length: Optional[int] = None) -> bytes:
        """Read a variable-length opaque value prefixed by its uint32 length.

        Args:
            max_length: Upper bound declared by the XDR schema, if any.

        Raises:
            XdrError: If the declared length exceeds `max_length` or the stream
                is too short.
        """
        length = self.uint32()
        if max_length is not None and length > max_length:
            raise XdrError(f"Opaque length {length} exceeds maximum {max_length}")
        return self.fixed_opaque(length)

    def string(self, max_length: Optional[int] = None) -> str:
        value = self.opaque(max_length)
        try:
            return value.decode()
        except UnicodeDecodeError as e:
            raise XdrError(f"String is not valid UTF-8: {value!r}") from e

    def array(
        self,
        value_decoder: typing.Callable[[Unpacker], typing.Any],
        max_length: Optional[int] = None,
    ) -> List[typing.Any]:
        """Read a variable-length array of elements decoded with `value_decoder`."""
        length = self.uint32()
        if max_length is not None and length > max_length:
            raise XdrError(f"Array length {length} exceeds maximum {max_length}")
        values: List = []
        while len(values) < length:
            values.append(value_decoder(self))
        return values

    def optional(
        self, value_decoder: typing.Callable[[Unpacker], typing.Any]
    ) -> Optional[typing.Any]:
        """Read an optional value: a boolean presence flag then the value."""
        if self.bool():
            return value_decoder(self)
        return None

    def struct(self, struct: typing.Any) -> typing.Any:
        return struct.unpack(self)

    def _read(self, length: int) -> bytes:
        value = self._input.read(length)
        if value is None or len(value) < length:
            actual_length = 0 if value is None else len(value)
            error = (
                f"Unexpected end of input. Requested: {length}, found: {actual_length}"
            )
            raise XdrError(error)
        return value

    def _read_padding(self, length: int):
        padding = (4 - length % 4) % 4
        if padding and self._read(padding) != b"\x00" * padding:
            raise XdrError("Non-zero XDR padding")

    def _read_int(self, length: int, signed: bool) -> int:
        return int.from_bytes(self._read(length), byteorder="big", signed=signed)


class Packer:
    """An XDR packer for writing data to a byte stream.

    Examples:
        Packing a transaction header::

            packer = Packer()
            packer.uint32(fee)
            packer.int64(sequence)
            data = packer.output()
    """

    _output: io.BytesIO

    def __init__(self):
        self._output = io.BytesIO()

    def output(self) -> bytes:
        """Get the accumulated XDR bytes."""
        return self._output.getvalue()

    def bool(self, value: bool):
        self.int32(int(value))

    def int32(self, value: int):
        self._write_int(value, 4, MIN_INT32, MAX_INT32)

    def uint32(self, value: int):
        self._write_int(value, 4, 0, MAX_UINT32)

    def int64(self, value: int):
        self._write_int(value, 8, MIN_INT64, MAX_INT64)

    def uint64(self, value: int):
        self._write_int(value, 8, 0, MAX_UINT64)

    def fixed_opaque(self, value: bytes, length: Optional[int] = None):
        """Write a fixed-length opaque value and pad it to a 4-byte boundary.

        Args:
            value: The raw bytes.
            length: Expected length declared by the schema; checked if given.
        """
        if length is not None and len(value) != length:
            raise XdrError(f"Expected {length} bytes, got {len(value)}")
        self._output.write(value)
        self._output.write(b"\x00" * ((4 - len(value) % 4) % 4))

    def opaque(self, value: bytes, max_length: Optional[int] = None):
        if max_length is not None and len(value) > max_length:
            raise XdrError(f"Opaque length {len(value)} exceeds maximum {max_length}")
        self.uint32(len(value))
        self.fixed_opaque(value)

    def string(self, value: str, max_length: Optional[int] = None):
        self.opaque(value.encode(), max_length)

    def array(
        self,
        values: typing.List[typing.Any],
        value_encoder: typing.Callable[[Packer, typing.Any], None],
        max_length: Optional[int] = None,
    ):
        """Write a variable-length array, each element with `value_encoder`."""
        if max_length is not None and len(values) > max_length:
            raise XdrError(f"Array length {len(values)} exceeds maximum {max_length}")
        self.uint32(len(values))
        for value in values:
            value_encoder(self, value)

    def optional(
        self,
        value: Optional[typing.Any],
        value_encoder: typing.Callable[[Packer, typing.Any], None],
    ):
        self.bool(value is not None)
        if value is not None:
            value_encoder(self, value)

    def struct(self, value: typing.Any):
        value.pack(self)

    def _write_int(self, value: int, length: int, minimum: int, maximum: int):
        if value < minimum or value > maximum:
            raise XdrError(f"{value} out of range [{minimum}, {maximum}]")
        self._output.write(value.to_bytes(length, "big", signed=minimum < 0))


def encoder(
    value: typing.Any, encoder: typing.Callable[[Packer, typing.Any], typing.Any]
) -> bytes:
    """Encode a single value using the specified packer method.

    Examples:
        Encoding an envelope type tag::

            data = encoder(2, Packer.int32)
    """
    packer = Packer()
    encoder(packer, value)
    return packer.output()


class Test(unittest.TestCase):
    def test_bool(self):
        packer = Packer()
        packer.bool(True)
        packer.bool(False)
        self.assertEqual(packer.output(), bytes.fromhex("0000000100000000"))

        unpacker = Unpacker(packer.output())
        self.assertTrue(unpacker.bool())
        self.assertFalse(unpacker.bool())

    def test_bool_error(self):
        unpacker = Unpacker(encoder(2, Packer.uint32))
        with self.assertRaises(XdrError):
            unpacker.bool()

    def test_integers_are_big_endian(self):
        self.assertEqual(encoder(1, Packer.uint32), b"\x00\x00\x00\x01")
        self.assertEqual(encoder(-1, Packer.int32), b"\xff\xff\xff\xff")
        self.assertEqual(encoder(25, Packer.int64), bytes.fromhex("0000000000000019"))

    def test_signed_round_trip(self):
        packer = Packer()
        packer.int64(MIN_INT64)
        packer.int32(MIN_INT32)
        unpacker = Unpacker(packer.output())
        self.assertEqual(unpacker.int64(), MIN_INT64)
        self.assertEqual(unpacker.int32(), MIN_INT32)

    def test_out_of_range(self):
        with self.assertRaises(XdrError):
            encoder(-1, Packer.uint32)
        with self.assertRaises(XdrError):
            encoder(MAX_UINT32 + 1, Packer.uint32)
        with self.assertRaises(XdrError):
            encoder(MAX_INT64 + 1, Packer.int64)

    def test_opaque_padding(self):
        data = encoder(b"abcde", Packer.opaque)
        self.assertEqual(data, bytes.fromhex("000000056162636465000000"))
        self.assertEqual(Unpacker(data).opaque(), b"abcde")

    def test_nonzero_padding_rejected(self):
        data = bytes.fromhex("000000016100ff00")
        with self.assertRaises(XdrError):
            Unpacker(data).opaque()

    def test_opaque_max_length(self):
        with self.assertRaises(XdrError):
            encoder(b"x" * 65, lambda packer, value: packer.opaque(value, 64))
        data = encoder(b"x" * 65, Packer.opaque)
        with self.assertRaises(XdrError):
            Unpacker(data).opaque(64)

    def test_fixed_opaque_length_checked(self):
        with self.assertRaises(XdrError):
            encoder(b"abc", lambda packer, value: packer.fixed_opaque(value, 4))
        self.assertEqual(Unpacker(b"wxyz").fixed_opaque(4), b"wxyz")

    def test_string(self):
        data = encoder("hello", Packer.string)
        self.assertEqual(data, b"\x00\x00\x00\x05hello\x00\x00\x00")
        self.assertEqual(Unpacker(data).string(), "hello")

    def test_string_invalid_utf8(self):
        data = encoder(b"\xff\xfe", Packer.opaque)
        with self.assertRaises(XdrError):
            Unpacker(data).string()

    def test_array(self):
        in_value = [1, 2, 3]
        packer = Packer()
        packer.array(in_value, Packer.uint32)
        self.assertEqual(len(packer.output()), 16)
        self.assertEqual(Unpacker(packer.output()).array(Unpacker.uint32), in_value)

    def test_optional(self):
        packer = Packer()
        packer.optional(None, Packer.uint32)
        packer.optional(7, Packer.uint32)
        unpacker = Unpacker(packer.output())
        self.assertIsNone(unpacker.optional(Unpacker.uint32))
        self.assertEqual(unpacker.optional(Unpacker.uint32), 7)
        self.assertEqual(unpacker.remaining(), 0)

    def test_short_input(self):
        with self.assertRaises(XdrError):
            Unpacker(b"\x00\x00").uint32()


if __name__ == "__main__":
    unittest.main()
