# Copyright © Soroban TTL contributors
# SPDX-License-Identifier: Apache-2.0

"""
Ed25519 key pairs used to sign Soroban transactions.

A `Keypair` wraps a NaCl signing key (or only a verify key, when built from a
public ``G...`` account id) and exposes the StrKey renderings Stellar tools
use: ``G...`` for the public key and ``S...`` for the secret seed.

Key management is out of scope: keys are read from a file or from an
environment variable, never written back.

Examples:
    Loading a signer::

        from soroban_ttl.keypair import Keypair

        signer = Keypair.from_secret("SB...")
        print(signer.public_key())

        signature = signer.sign(b"payload")
        assert signer.verify(b"payload", signature)

    Reading the secret from the environment::

        signer = Keypair.from_environment("SOROBAN_SECRET_KEY")
"""

from __future__ import annotations

import os
import tempfile
import unittest
from typing import Optional

from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

from . import strkey


class MissingSecretKeyError(Exception):
    """The key pair only holds a public key and cannot sign."""


class Keypair:
    """Ed25519 signing credential for a Stellar account.

    Attributes:
        verify_key: The NaCl verify (public) key.
        signing_key: The NaCl signing key, or None for verify-only key pairs.
    """

    LENGTH: int = 32

    verify_key: VerifyKey
    signing_key: Optional[SigningKey]

    def __init__(self, verify_key: VerifyKey, signing_key: Optional[SigningKey] = None):
        self.verify_key = verify_key
        self.signing_key = signing_key

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Keypair):
            return NotImplemented
        return (
            self.verify_key == other.verify_key
            and self.signing_key == other.signing_key
        )

    def __str__(self) -> str:
        return self.public_key()

    def __repr__(self) -> str:
        return f"Keypair({self.public_key()})"

    @staticmethod
    def random() -> Keypair:
        """Generate a new random key pair. Intended for tests and Friendbot funding."""
        signing_key = SigningKey.generate()
        return Keypair(signing_key.verify_key, signing_key)

    @staticmethod
    def from_raw_seed(seed: bytes) -> Keypair:
        if len(seed) != Keypair.LENGTH:
            raise ValueError(f"Expected {Keypair.LENGTH} byte seed, got {len(seed)}")
        signing_key = SigningKey(seed)
        return Keypair(signing_key.verify_key, signing_key)

    @staticmethod
    def from_secret(secret: str) -> Keypair:
        """Create a signing key pair from an ``S...`` secret seed.

        Raises:
            StrKeyError: If the value is not a valid secret seed.
        """
        return Keypair.from_raw_seed(strkey.decode_seed(secret.strip()))

    @staticmethod
    def from_public_key(account_id: str) -> Keypair:
        """Create a verify-only key pair from a ``G...`` account id."""
        return Keypair(VerifyKey(strkey.decode_account_id(account_id.strip())))

    @staticmethod
    def load(path: str) -> Keypair:
        """Read an ``S...`` secret seed from the first line of a text file."""
        with open(path) as file:
            return Keypair.from_secret(file.readline())

    @staticmethod
    def from_environment(name: str) -> Keypair:
        value = os.getenv(name)
        if not value:
            raise MissingSecretKeyError(f"Environment variable {name} is not set")
        return Keypair.from_secret(value)

    def can_sign(self) -> bool:
        return self.signing_key is not None

    def public_key(self) -> str:
        """The ``G...`` account id of this key pair."""
        return strkey.encode_account_id(self.raw_public_key())

    def raw_public_key(self) -> bytes:
        return self.verify_key.encode()

    def secret(self) -> str:
        """The ``S...`` secret seed of this key pair."""
        return strkey.encode_seed(self._require_signing_key().encode())

    def signature_hint(self) -> bytes:
        """Last four bytes of the public key, attached to decorated signatures."""
        return self.raw_public_key()[-4:]

    def sign(self, data: bytes) -> bytes:
        """Create a detached 64-byte Ed25519 signature over `data`."""
        return self._require_signing_key().sign(data).signature

    def verify(self, data: bytes, signature: bytes) -> bool:
        try:
            self.verify_key.verify(data, signature)
        except BadSignatureError:
            return False
        except ValueError:
            # Wrong signature length.
            return False
        return True

    def _require_signing_key(self) -> SigningKey:
        if self.signing_key is None:
            raise MissingSecretKeyError(
                f"Keypair {self.public_key()} has no secret key and cannot sign"
            )
        return self.signing_key


class Test(unittest.TestCase):
    def test_secret_round_trip(self):
        keypair = Keypair.random()
        restored = Keypair.from_secret(keypair.secret())
        self.assertEqual(keypair, restored)
        self.assertTrue(keypair.secret().startswith("S"))
        self.assertTrue(keypair.public_key().startswith("G"))

    def test_sign_and_verify(self):
        message = b"test_message"
        keypair = Keypair.random()
        signature = keypair.sign(message)
        self.assertEqual(len(signature), 64)
        self.assertTrue(keypair.verify(message, signature))
        self.assertFalse(keypair.verify(b"other message", signature))
        self.assertFalse(keypair.verify(message, signature[:10]))

    def test_verify_only(self):
        keypair = Keypair.random()
        public = Keypair.from_public_key(keypair.public_key())
        self.assertFalse(public.can_sign())
        self.assertTrue(public.verify(b"x", keypair.sign(b"x")))
        with self.assertRaises(MissingSecretKeyError):
            public.sign(b"x")
        with self.assertRaises(MissingSecretKeyError):
            public.secret()

    def test_signature_hint(self):
        keypair = Keypair.from_raw_seed(b"\x01" * 32)
        self.assertEqual(keypair.signature_hint(), keypair.raw_public_key()[28:])

    def test_load(self):
        keypair = Keypair.random()
        (file, path) = tempfile.mkstemp()
        with os.fdopen(file, "w") as f:
            f.write(keypair.secret() + "\n")
        try:
            self.assertEqual(Keypair.load(path), keypair)
        finally:
            os.remove(path)

    def test_from_environment(self):
        keypair = Keypair.random()
        name = "SOROBAN_TTL_TEST_SECRET"
        os.environ[name] = keypair.secret()
        try:
            self.assertEqual(Keypair.from_environment(name), keypair)
        finally:
            del os.environ[name]
        with self.assertRaises(MissingSecretKeyError):
            Keypair.from_environment(name)

    def test_bad_seed_length(self):
        with self.assertRaises(ValueError):
            Keypair.from_raw_seed(b"\x01" * 31)


if __name__ == "__main__":
    unittest.main()
