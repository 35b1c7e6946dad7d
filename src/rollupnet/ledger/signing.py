"""
Operator signing for batch commit requests.

Signatures use Ed25519 over the canonical JSON of the request's unsigned
fields. Key IDs are the first 16 hex chars of SHA-256 of the raw public key.

The operator key is loaded once at start-up (ROLLUPNET_OPERATOR_KEY_FILE);
a ledger only accepts commits signed by a key it was given in advance.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
from typing import Dict, List, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from rollupnet.protocol.models import BatchCommitRequest
from rollupnet.utils.json import canonical_json


def _key_id(public_key: Ed25519PublicKey) -> str:
    raw = public_key.public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return hashlib.sha256(raw).hexdigest()[:16]


def _signing_bytes(request: BatchCommitRequest) -> bytes:
    return canonical_json(request.signing_payload()).encode("utf-8")


class OperatorSigner:
    """
    Ed25519 signer for commit requests.

    Usage:
        signer = OperatorSigner.from_pem_file("/path/to/key.pem")
        signer.sign_request(request)

        # Testing only
        signer = OperatorSigner.generate()
    """

    def __init__(self, private_key: Ed25519PrivateKey):
        self._private_key = private_key
        self._public_key = private_key.public_key()
        self._key_id = _key_id(self._public_key)

    @property
    def key_id(self) -> str:
        return self._key_id

    @property
    def public_key_bytes(self) -> bytes:
        return self._public_key.public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )

    def sign(self, data: bytes) -> bytes:
        return self._private_key.sign(data)

    def sign_request(self, request: BatchCommitRequest) -> BatchCommitRequest:
        """Attach key_id and a base64 signature to the request in place."""
        signature = self.sign(_signing_bytes(request))
        request.key_id = self._key_id
        request.signature = base64.b64encode(signature).decode("ascii")
        return request

    @classmethod
    def generate(cls) -> "OperatorSigner":
        """
        Generate a new Ed25519 key pair.

        WARNING: Use only for testing and local simulation.
        """
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_private_bytes(cls, key_bytes: bytes) -> "OperatorSigner":
        return cls(Ed25519PrivateKey.from_private_bytes(key_bytes))

    @classmethod
    def from_pem_file(cls, path: str, password: Optional[bytes] = None) -> "OperatorSigner":
        with open(path, "rb") as f:
            private_key = serialization.load_pem_private_key(f.read(), password=password)
        if not isinstance(private_key, Ed25519PrivateKey):
            raise TypeError(f"Expected Ed25519 private key, got {type(private_key)}")
        return cls(private_key)


class OperatorVerifier:
    """
    Ed25519 verifier for commit requests.

    Verification is OFFLINE - all operator public keys must be pre-loaded.
    """

    def __init__(self):
        self._public_keys: Dict[str, Ed25519PublicKey] = {}

    def add_public_key(self, public_key_bytes: bytes) -> str:
        """Register a raw 32-byte public key and return its key ID."""
        public_key = Ed25519PublicKey.from_public_bytes(public_key_bytes)
        key_id = _key_id(public_key)
        self._public_keys[key_id] = public_key
        return key_id

    def add_from_signer(self, signer: OperatorSigner) -> str:
        return self.add_public_key(signer.public_key_bytes)

    def has_key(self, key_id: str) -> bool:
        return key_id in self._public_keys

    @property
    def key_ids(self) -> List[str]:
        return list(self._public_keys.keys())

    def verify_request(self, request: BatchCommitRequest) -> bool:
        """True only for a known key and a valid signature."""
        if request.key_id is None or request.signature is None:
            return False
        public_key = self._public_keys.get(request.key_id)
        if public_key is None:
            return False

        try:
            signature = base64.b64decode(request.signature, validate=True)
            public_key.verify(signature, _signing_bytes(request))
            return True
        except (InvalidSignature, binascii.Error):
            return False
