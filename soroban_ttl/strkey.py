# Copyright © Soroban TTL contributors
# SPDX-License-Identifier: Apache-2.0

"""
StrKey encoding for Stellar account ids, secret seeds and contract ids.

A StrKey is the base32 rendering of ``version byte || payload || checksum``,
where the checksum is the CRC16-XModem of the first two parts stored little
endian. The version byte determines the leading character of the result:

- ``G...``: Ed25519 public key (account id)
- ``S...``: Ed25519 secret seed
- ``C...``: contract id (32-byte contract hash)

Examples:
    Encoding and decoding an account id::

        from soroban_ttl import strkey

        account_id = strkey.encode_account_id(raw_public_key)
        assert strkey.decode_account_id(account_id) == raw_public_key

    Validating user input::

        if not strkey.is_valid_contract(contract_id):
            raise ValueError("not a contract id")
"""

from __future__ import annotations

import base64
import binascii
import unittest


class VersionByte:
    """Version bytes prefixed to StrKey payloads."""

    ACCOUNT_ID: int = 6 << 3
    SEED: int = 18 << 3
    CONTRACT: int = 2 << 3


PAYLOAD_LENGTH = 32


class StrKeyError(Exception):
    """Raised when a string is not a valid StrKey of the expected kind."""


def crc16_xmodem(data: bytes) -> int:
    crc = 0x0000
    for byte in data:
        crc ^= byte << 8
        for _ in range(8):
            if crc & 0x8000:
                crc = ((crc << 1) ^ 0x1021) & 0xFFFF
            else:
                crc = (crc << 1) & 0xFFFF
    return crc


def encode(version_byte: int, payload: bytes) -> str:
    """Encode a raw payload as a StrKey with the given version byte."""
    if len(payload) != PAYLOAD_LENGTH:
        raise StrKeyError(f"Expected {PAYLOAD_LENGTH} byte payload, got {len(payload)}")
    data = bytes([version_byte]) + payload
    checksum = crc16_xmodem(data).to_bytes(2, "little")
    return base64.b32encode(data + checksum).decode().rstrip("=")


def decode(version_byte: int, value: str) -> bytes:
    """Decode a StrKey, checking its version byte, length and checksum.

    Raises:
        StrKeyError: If the value is malformed, has the wrong kind, or fails
            the checksum.
    """
    if not isinstance(value, str) or len(value) != 56:
        raise StrKeyError(f"Invalid StrKey length: {value!r}")
    try:
        raw = base64.b32decode(value.encode(), casefold=False)
    except (binascii.Error, ValueError) as e:
        raise StrKeyError(f"Invalid base32 StrKey: {value}") from e

    if raw[0] != version_byte:
        raise StrKeyError(
            f"Unexpected version byte {raw[0]}, expected {version_byte}: {value}"
        )
    data, checksum = raw[:-2], raw[-2:]
    if crc16_xmodem(data).to_bytes(2, "little") != checksum:
        raise StrKeyError(f"Invalid StrKey checksum: {value}")
    payload = data[1:]
    # Reject non-canonical spellings whose unused trailing bits are set.
    if encode(version_byte, payload) != value:
        raise StrKeyError(f"Non-canonical StrKey: {value}")
    return payload


def encode_account_id(public_key: bytes) -> str:
    return encode(VersionByte.ACCOUNT_ID, public_key)


def decode_account_id(account_id: str) -> bytes:
    return decode(VersionByte.ACCOUNT_ID, account_id)


def encode_seed(seed: bytes) -> str:
    return encode(VersionByte.SEED, seed)


def decode_seed(seed: str) -> bytes:
    return decode(VersionByte.SEED, seed)


def encode_contract(contract_hash: bytes) -> str:
    return encode(VersionByte.CONTRACT, contract_hash)


def decode_contract(contract_id: str) -> bytes:
    return decode(VersionByte.CONTRACT, contract_id)


def _is_valid(version_byte: int, value: str) -> bool:
    try:
        decode(version_byte, value)
    except StrKeyError:
        return False
    return True


def is_valid_account_id(value: str) -> bool:
    return _is_valid(VersionByte.ACCOUNT_ID, value)


def is_valid_seed(value: str) -> bool:
    return _is_valid(VersionByte.SEED, value)


def is_valid_contract(value: str) -> bool:
    return _is_valid(VersionByte.CONTRACT, value)


class Test(unittest.TestCase):
    ZERO_ACCOUNT = "GAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAWHF"

    def test_crc16_check_value(self):
        self.assertEqual(crc16_xmodem(b"123456789"), 0x31C3)

    def test_zero_account(self):
        self.assertEqual(encode_account_id(b"\x00" * 32), self.ZERO_ACCOUNT)
        self.assertEqual(decode_account_id(self.ZERO_ACCOUNT), b"\x00" * 32)

    def test_prefixes(self):
        payload = bytes(range(32))
        self.assertTrue(encode_account_id(payload).startswith("G"))
        self.assertTrue(encode_seed(payload).startswith("S"))
        self.assertTrue(encode_contract(payload).startswith("C"))

    def test_round_trip(self):
        payload = bytes(range(32))
        self.assertEqual(decode_contract(encode_contract(payload)), payload)
        self.assertEqual(decode_seed(encode_seed(payload)), payload)

    def test_wrong_kind(self):
        contract_id = encode_contract(bytes(range(32)))
        with self.assertRaises(StrKeyError):
            decode_account_id(contract_id)
        self.assertFalse(is_valid_account_id(contract_id))
        self.assertTrue(is_valid_contract(contract_id))

    def test_bad_checksum(self):
        corrupted = self.ZERO_ACCOUNT[:-1] + "G"
        with self.assertRaises(StrKeyError):
            decode_account_id(corrupted)

    def test_bad_input(self):
        self.assertFalse(is_valid_account_id(""))
        self.assertFalse(is_valid_account_id(self.ZERO_ACCOUNT[:-1]))
        self.assertFalse(is_valid_account_id(self.ZERO_ACCOUNT.lower()))
        self.assertFalse(is_valid_account_id("G" + "1" * 55))

    def test_wrong_payload_length(self):
        with self.assertRaises(StrKeyError):
            encode_account_id(b"\x00" * 31)


if __name__ == "__main__":
    unittest.main()
